from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from taskpicker.adapters.sources import FileSourceRepository, SourceRepositoryError
from taskpicker.adapters.tasks import CalDavSource, GitLabSource
from taskpicker.domain.sources import SourceRegistry


def test_missing_file_loads_empty_registry(tmp_path: Path) -> None:
    registry = FileSourceRepository(tmp_path / "sources.yaml").load()
    assert len(registry) == 0


def test_roundtrip_keeps_order_flags_and_options(tmp_path: Path) -> None:
    path = tmp_path / "sources.yaml"
    registry = SourceRegistry()
    registry.add_or_replace(GitLabSource({"name": "Work GitLab", "user_name": "alice"}))
    registry.add_or_replace(
        CalDavSource({"calendar_name": "Chores", "username": "alice", "base_url": "https://dav.example.test/"})
    )
    registry.source_at(0).enabled = False

    repository = FileSourceRepository(path)
    repository.save(registry)
    loaded = repository.load()

    assert loaded.names() == ["Chores", "Work GitLab"]
    assert [entry.enabled for entry in loaded] == [False, True]
    assert loaded.source_at(1).source.options()["user_name"] == "alice"
    raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    assert raw["version"] == 1
    assert raw["sources"][0]["type"] == "caldav"


def test_secrets_are_never_persisted(tmp_path: Path) -> None:
    path = tmp_path / "sources.yaml"
    path.write_text(
        yaml.safe_dump(
            {"sources": [{"type": "github", "options": {"name": "GitHub", "token": "ghp_secret"}}]}
        ),
        encoding="utf-8",
    )
    repository = FileSourceRepository(path)
    registry = repository.load()
    repository.save(registry)

    assert "ghp_secret" not in path.read_text(encoding="utf-8")
    assert "token" not in registry.source_at(0).source.options()


def test_schema_violation_is_reported(tmp_path: Path) -> None:
    path = tmp_path / "sources.yaml"
    path.write_text(yaml.safe_dump({"sources": [{"type": "jira"}]}), encoding="utf-8")
    with pytest.raises(SourceRepositoryError, match="sources file invalid"):
        FileSourceRepository(path).load()


def test_invalid_yaml_is_reported(tmp_path: Path) -> None:
    path = tmp_path / "sources.yaml"
    path.write_text("sources: [unclosed", encoding="utf-8")
    with pytest.raises(SourceRepositoryError, match="invalid YAML"):
        FileSourceRepository(path).load()


def test_source_without_name_is_rejected(tmp_path: Path) -> None:
    path = tmp_path / "sources.yaml"
    path.write_text(yaml.safe_dump({"sources": [{"type": "caldav", "options": {}}]}), encoding="utf-8")
    with pytest.raises(SourceRepositoryError, match="needs a name"):
        FileSourceRepository(path).load()


@pytest.mark.parametrize("per_page", [None, "abc"])
def test_bad_numeric_option_is_reported(tmp_path: Path, per_page: object) -> None:
    path = tmp_path / "sources.yaml"
    entry = {"type": "gitlab", "options": {"name": "Work", "user_name": "alice", "per_page": per_page}}
    path.write_text(yaml.safe_dump({"sources": [entry]}), encoding="utf-8")
    with pytest.raises(SourceRepositoryError, match="per_page"):
        FileSourceRepository(path).load()
