#!/usr/bin/env python3
"""Entry point for the taskpicker CLI."""

from __future__ import annotations

import argparse
import json
import logging
import sys
import time
from pathlib import Path
from textwrap import dedent
from typing import Any, Dict

from taskpicker import __version__
from taskpicker.adapters.secrets import EnvironmentSecretProvider, secret_env_var
from taskpicker.adapters.sources import FileSourceRepository, SourceRepositoryError
from taskpicker.adapters.tasks.sources import SOURCE_TYPES, build_source
from taskpicker.app.tasks import RefreshReport, TaskRefreshService
from taskpicker.domain.sources import SourceRegistry
from taskpicker.domain.tasks import TaskRecord
from taskpicker.ports.tasks.source import SourceConfigError, SourceTransportError, TaskSourceError
from taskpicker.settings import SETTINGS
from taskpicker.utils.telemetry import clear as telemetry_clear
from taskpicker.utils.telemetry import iter_events as telemetry_iter
from taskpicker.utils.telemetry import record_event
from taskpicker.utils.telemetry import summarize as telemetry_summarize

HELP_OVERVIEW = dedent(
    """
    Collect open tasks from CalDAV, GitHub, GitLab and OpenProject.

    Quick start:
      - taskpicker sources add github --option name=GitHub
      - export TASKPICKER_SECRET_GITHUB=<token>
      - taskpicker list

    Secrets never go into the sources file; each source reads
    TASKPICKER_SECRET_<NAME> from the environment.
    """
)


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _repository(args: argparse.Namespace) -> FileSourceRepository:
    raw = getattr(args, "sources_file", None)
    path = Path(raw).expanduser() if raw else SETTINGS.sources_file
    return FileSourceRepository(path)


def _load_registry(args: argparse.Namespace) -> SourceRegistry | None:
    try:
        return _repository(args).load()
    except SourceRepositoryError as exc:
        print(str(exc), file=sys.stderr)
        return None


def _build_service(registry: SourceRegistry) -> TaskRefreshService:
    return TaskRefreshService(registry, EnvironmentSecretProvider(), settings=SETTINGS)


def _parse_option_value(raw: str) -> Any:
    value = raw.strip()
    if value == "":
        return ""
    try:
        return json.loads(value)
    except json.JSONDecodeError:
        return value


def _assign_option(options: Dict[str, Any], key: str, value: Any) -> None:
    parts = [segment.strip() for segment in key.split(".") if segment.strip()]
    if not parts:
        raise ValueError("source option key must be non-empty")
    target: Dict[str, Any] = options
    for part in parts[:-1]:
        current = target.get(part)
        if current is None:
            current = {}
            target[part] = current
        elif not isinstance(current, dict):
            raise ValueError(f"source option '{part}' already set as a non-object value")
        target = current
    target[parts[-1]] = value


def _collect_options(raw_options: list[str]) -> Dict[str, Any]:
    options: Dict[str, Any] = {}
    for raw_option in raw_options:
        if "=" not in raw_option:
            raise ValueError(f"invalid source option '{raw_option}': expected key=value")
        opt_key, opt_value = raw_option.split("=", 1)
        _assign_option(options, opt_key.strip(), _parse_option_value(opt_value))
    return options


def _format_when(task: TaskRecord) -> str:
    if task.due is None:
        return ""
    return f" (due {task.due.astimezone().strftime('%Y-%m-%d %H:%M')})"


def _describe_error(error: TaskSourceError) -> str:
    if isinstance(error, SourceTransportError) and error.unreachable:
        return f"unreachable: {error}"
    return f"error: {error}"


def _print_report(report: RefreshReport, errors: Dict[str, TaskSourceError], *, as_json: bool) -> None:
    if as_json:
        payload = {
            "cycle": report.cycle,
            "tasks": [task.to_dict() for task in report.tasks],
            "errors": {
                name: {
                    "kind": type(error).__name__,
                    "message": str(error),
                    "unreachable": isinstance(error, SourceTransportError) and error.unreachable,
                }
                for name, error in sorted(report.errors.items())
            },
        }
        print(json.dumps(payload, ensure_ascii=False, indent=2))
    else:
        if not report.tasks:
            print("No open tasks")
        for task in report.tasks:
            print(f"{task.project}: {task.title}{_format_when(task)}")
            if task.is_link:
                print(f"    {task.description}")
    for name, error in sorted(errors.items()):
        print(f"{name}: {_describe_error(error)}", file=sys.stderr)


def _list_cmd(args: argparse.Namespace) -> int:
    registry = _load_registry(args)
    if registry is None:
        return 1
    with _build_service(registry) as service:
        report = service.refresh().result()
        _print_report(report, service.store.drain_errors(), as_json=args.json)
    return 1 if report.errors else 0


def _watch_cmd(args: argparse.Namespace) -> int:
    registry = _load_registry(args)
    if registry is None:
        return 1
    interval = max(float(args.interval), 1.0)
    cycles = 0
    with _build_service(registry) as service:
        try:
            while args.cycles is None or cycles < args.cycles:
                started = time.monotonic()
                report = service.refresh().result()
                _print_report(report, service.store.drain_errors(), as_json=args.json)
                cycles += 1
                if args.cycles is not None and cycles >= args.cycles:
                    break
                # cycles never overlap; the next one starts at least `interval` after this one
                remaining = interval - (time.monotonic() - started)
                if remaining > 0:
                    time.sleep(remaining)
        except KeyboardInterrupt:
            return 130
    return 0


def _sources_list_cmd(args: argparse.Namespace) -> int:
    registry = _load_registry(args)
    if registry is None:
        return 1
    rows = [
        {
            "index": index,
            "name": entry.name,
            "type": entry.source.type_name,
            "enabled": entry.enabled,
            "secret_env": secret_env_var(entry.name),
            "options": entry.source.options(),
        }
        for index, entry in enumerate(registry)
    ]
    if args.json:
        print(json.dumps({"sources": rows}, ensure_ascii=False, indent=2))
        return 0
    if not rows:
        print("No sources configured")
    for row in rows:
        state = "enabled" if row["enabled"] else "disabled"
        print(f"[{row['index']}] {row['name']} ({row['type']}, {state}) secret: ${row['secret_env']}")
    return 0


def _sources_add_cmd(args: argparse.Namespace) -> int:
    repository = _repository(args)
    registry = _load_registry(args)
    if registry is None:
        return 1
    try:
        options = _collect_options(list(args.option or []))
        source = build_source(args.source_type, options)
    except (ValueError, SourceConfigError) as exc:
        print(f"sources.config_invalid: {exc}", file=sys.stderr)
        return 1
    replaced = registry.find(source.name()) is not None
    index = registry.add_or_replace(source)
    repository.save(registry)
    action = "replaced" if replaced else "added"
    print(f"Source '{source.name()}' {action} at position {index}")
    record_event(SETTINGS, f"sources.{action}", component="sources", payload={"type": source.config_type})
    return 0


def _sources_mutate_cmd(args: argparse.Namespace) -> int:
    repository = _repository(args)
    registry = _load_registry(args)
    if registry is None:
        return 1
    index = registry.find(args.name)
    if index is None:
        print(f"sources.not_found: {args.name}", file=sys.stderr)
        return 1
    action = args.sources_command
    if action == "remove":
        registry.remove(index)
    else:
        registry.source_at(index).enabled = action == "enable"
    repository.save(registry)
    print(f"Source '{args.name}': {action}d")
    record_event(SETTINGS, f"sources.{action}d", component="sources")
    return 0


def _telemetry_cmd(args: argparse.Namespace) -> int:
    if args.clear:
        telemetry_clear(SETTINGS)
        print("Telemetry log cleared")
        return 0
    summary = telemetry_summarize(telemetry_iter(SETTINGS))
    if args.json:
        print(json.dumps(summary, ensure_ascii=False, indent=2))
        return 0
    print(f"Events: {summary['total']}")
    for name, count in sorted(summary["by_event"].items()):
        print(f"  {name}: {count}")
    refresh = summary["refresh"]
    if refresh["cycles"]:
        print(f"Refresh cycles: {refresh['cycles']} (mean {refresh['mean_duration_ms'] or 0:.0f} ms)")
        for name, count in sorted(refresh["failures_by_source"].items()):
            print(f"  {name} failed {count} time(s)")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="taskpicker",
        description=HELP_OVERVIEW,
        formatter_class=argparse.RawTextHelpFormatter,
    )
    parser.add_argument("--version", action="version", version=f"taskpicker {__version__}")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    parser.add_argument(
        "--sources-file",
        help="Sources file (default: ~/.taskpicker/sources.yaml or $TASKPICKER_HOME/sources.yaml)",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    list_cmd = sub.add_parser("list", help="Refresh all enabled sources once and print open tasks")
    list_cmd.add_argument("--json", action="store_true", help="Emit tasks and errors as JSON")
    list_cmd.set_defaults(func=_list_cmd)

    watch_cmd = sub.add_parser("watch", help="Refresh repeatedly with a cooldown between cycles")
    watch_cmd.add_argument("--interval", type=float, default=300.0, help="Seconds between cycle starts (default: 300)")
    watch_cmd.add_argument("--cycles", type=int, default=None, help="Stop after N cycles")
    watch_cmd.add_argument("--json", action="store_true", help="Emit each cycle as JSON")
    watch_cmd.set_defaults(func=_watch_cmd)

    sources_cmd = sub.add_parser(
        "sources",
        help="Manage configured task sources",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    sources_sub = sources_cmd.add_subparsers(dest="sources_command", required=True)

    sources_list = sources_sub.add_parser("list", help="Show sources in name order")
    sources_list.add_argument("--json", action="store_true", help="Emit machine-readable output")
    sources_list.set_defaults(func=_sources_list_cmd)

    sources_add = sources_sub.add_parser("add", help="Add a source or replace the one with the same name")
    sources_add.add_argument("source_type", choices=sorted(SOURCE_TYPES), help="Source type")
    sources_add.add_argument(
        "--option",
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help="Set a source option (repeatable, dot notation supported)",
    )
    sources_add.set_defaults(func=_sources_add_cmd)

    for action, help_text in (
        ("remove", "Remove a source"),
        ("enable", "Include a source in refreshes"),
        ("disable", "Exclude a source from refreshes"),
    ):
        action_cmd = sources_sub.add_parser(action, help=help_text)
        action_cmd.add_argument("name", help="Source name")
        action_cmd.set_defaults(func=_sources_mutate_cmd)

    telemetry_cmd = sub.add_parser("telemetry", help="Summarise or clear local telemetry")
    telemetry_cmd.add_argument("--clear", action="store_true", help="Delete the telemetry log")
    telemetry_cmd.add_argument("--json", action="store_true", help="Emit summary as JSON")
    telemetry_cmd.set_defaults(func=_telemetry_cmd)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(sys.argv[1:] if argv is None else argv)
    _configure_logging(args.verbose)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
