"""JSON schema helpers for packaged resources."""

from __future__ import annotations

import json
from functools import lru_cache
from importlib import resources
from typing import Any, Iterator, Tuple

from jsonschema import Draft202012Validator

_SCHEMA_PACKAGE = "taskpicker.resources"


@lru_cache(maxsize=None)
def _validator(resource_name: str) -> Draft202012Validator:
    resource = resources.files(_SCHEMA_PACKAGE) / resource_name
    with resource.open("r", encoding="utf-8") as handle:
        return Draft202012Validator(json.load(handle))


def iter_schema_errors(resource_name: str, document: Any) -> Iterator[Tuple[str, str]]:
    """Yield (path, message) pairs for schema issues in ``document``."""
    for error in _validator(resource_name).iter_errors(document):
        path = ".".join(str(item) for item in error.absolute_path)
        yield path, error.message


def validate(resource_name: str, document: Any) -> None:
    _validator(resource_name).validate(document)


__all__ = ["iter_schema_errors", "validate"]
