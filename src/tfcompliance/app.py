"""Command-line entry point: analyze Terraform files and optionally apply fixes."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys
from dataclasses import asdict, dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Sequence, TextIO, get_args, get_origin, get_type_hints

from .ai.client import AdvisoryClient, ClientSettings
from .ai.errors import ComplianceError
from .editor.document_model import TERRAFORM_LANGUAGE, infer_language
from .editor.workspace import DocumentWorkspace
from .services.settings import Settings, SettingsStore, redact_secret
from .suggestions.controller import SuggestionController
from .suggestions.models import LocatedSuggestion
from .ui.commands import (
    ACCEPT_SUGGESTION,
    CHECK_COMPLIANCE,
    DECLINE_SUGGESTION,
    CommandRegistry,
    register_compliance_commands,
)
from .ui.events import EventBus
from .ui.presenter import RecordingSink, SuggestionPresenter
from .utils import logging as logging_utils

_TRUE_VALUES = {"1", "true", "yes", "on", "debug"}
_FALSE_VALUES = {"0", "false", "no", "off", "disabled"}
_LOGGER = logging.getLogger(__name__)

EXIT_CLEAN = 0
EXIT_ISSUES = 1
EXIT_ERROR = 2


@dataclass(slots=True)
class FileReport:
    """Outcome of checking one file."""

    path: str
    suggestions: tuple[LocatedSuggestion, ...] = ()
    accepted: int = 0
    error: str | None = None
    saved: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": self.path,
            "suggestions": [
                {**item.suggestion.to_dict(), "found": item.found} for item in self.suggestions
            ],
            "accepted": self.accepted,
            "error": self.error,
            "saved": self.saved,
        }


@dataclass(slots=True)
class CheckReport:
    files: list[FileReport] = field(default_factory=list)

    @property
    def issue_count(self) -> int:
        return sum(len(report.suggestions) for report in self.files)

    @property
    def exit_code(self) -> int:
        if any(report.error for report in self.files):
            return EXIT_ERROR
        return EXIT_ISSUES if self.issue_count else EXIT_CLEAN


def configure_logging(settings: Settings, *, debug: bool = False, force: bool = False) -> Path:
    """Configure logging for the command-line tool from the loaded settings."""

    log_path = logging_utils.configure_from_settings(settings, debug=debug, force=force)
    _LOGGER.debug(
        "Logging to %s (debug=%s)", log_path, debug or settings.enable_debug_logging
    )
    return log_path


def load_settings(
    path: Optional[Path] = None,
    *,
    store: SettingsStore | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> Settings:
    """Load persisted settings, falling back to defaults when the file is unusable."""

    active_store = store or SettingsStore(path)
    try:
        return active_store.load(overrides=overrides)
    except (OSError, ValueError) as exc:
        _LOGGER.warning("Failed to load settings from %s: %s", active_store.path, exc)
        return Settings()


async def run_check(
    paths: Sequence[Path],
    settings: Settings,
    *,
    client: AdvisoryClient | None = None,
    accept_all: bool = False,
    write: bool = False,
) -> CheckReport:
    """Analyze every path once and, when asked, apply the suggestions in ranked order.

    Automatic triggers stay off; each file is analyzed through the manual check
    command so notices and error reporting match an interactive session.
    """

    bus = EventBus()
    workspace = DocumentWorkspace(event_bus=bus)
    advisory = client or AdvisoryClient(ClientSettings.from_settings(settings))
    controller = SuggestionController(
        workspace, advisory, replace(settings, enable_auto_analysis=False), event_bus=bus
    )
    sink = RecordingSink()
    presenter = SuggestionPresenter(bus, sink, auto_enabled=False)
    registry = CommandRegistry()
    register_compliance_commands(registry, controller, bus)

    presenter.attach()
    controller.start()
    report = CheckReport()
    try:
        for path in paths:
            report.files.append(
                await _check_file(path, workspace, controller, registry, sink, accept_all=accept_all, write=write)
            )
    finally:
        controller.dispose()
        presenter.detach()
        if client is None:
            await advisory.aclose()
    return report


async def _check_file(
    path: Path,
    workspace: DocumentWorkspace,
    controller: SuggestionController,
    registry: CommandRegistry,
    sink: RecordingSink,
    *,
    accept_all: bool,
    write: bool,
) -> FileReport:
    report = FileReport(path=str(path))
    if infer_language(path) != TERRAFORM_LANGUAGE:
        report.error = "Current file is not a Terraform file (.tf or .tfvars)"
        return report
    try:
        document = workspace.open_file(path)
    except OSError as exc:
        report.error = f"Unable to read {path}: {exc.strerror or exc}"
        return report

    notices_before = len(sink.notices)
    suggestions = await registry.execute(CHECK_COMPLIANCE, document.document_id)
    if suggestions is None:
        errors = [message for level, message in sink.notices[notices_before:] if level == "error"]
        report.error = errors[-1] if errors else "Analysis did not complete"
        workspace.close_document(document.document_id)
        return report
    report.suggestions = tuple(suggestions)

    if accept_all:
        report.accepted = await _accept_all(document.document_id, controller, registry)
        if write and report.accepted:
            workspace.save_document(document.document_id)
            report.saved = True
    workspace.close_document(document.document_id)
    return report


async def _accept_all(document_id: str, controller: SuggestionController, registry: CommandRegistry) -> int:
    accepted = 0
    # Every accept or decline shrinks the active set by one.
    while True:
        remaining = controller.suggestions_for(document_id)
        if not remaining:
            return accepted
        head = remaining[0]
        if await registry.execute(ACCEPT_SUGGESTION, head.suggestion, document_id):
            accepted += 1
        elif not await registry.execute(DECLINE_SUGGESTION, head.suggestion, document_id):
            return accepted


def render_report(report: CheckReport, *, as_json: bool = False, stream: TextIO | None = None) -> None:
    destination = stream or sys.stdout
    if as_json:
        json.dump({"files": [item.to_dict() for item in report.files]}, destination, indent=2)
        destination.write("\n")
        return
    for item in report.files:
        if item.error:
            destination.write(f"{item.path}: error: {item.error}\n")
            continue
        for located in item.suggestions:
            marker = "" if located.found else " (approximate)"
            destination.write(f"{item.path}:{located.line_number}:{marker} {located.reasoning}\n")
        if item.accepted:
            verb = "applied and saved" if item.saved else "applied"
            destination.write(f"{item.path}: {item.accepted} suggestion(s) {verb}\n")
    destination.write(f"{report.issue_count} compliance issue(s) in {len(report.files)} file(s)\n")


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point invoked by the `tfcompliance` console script."""

    args = _parse_cli_args(argv)
    debug = args.debug or _env_flag("TFCOMPLIANCE_DEBUG", default=False)

    settings_path = args.settings_path or os.environ.get("TFCOMPLIANCE_SETTINGS_PATH")
    resolved_path = Path(settings_path).expanduser() if settings_path else None
    settings_store = SettingsStore(resolved_path)
    try:
        cli_overrides = _coerce_cli_overrides(args.overrides or [])
    except ValueError as exc:
        print(f"Invalid --set override: {exc}", file=sys.stderr)
        return EXIT_ERROR

    settings = load_settings(resolved_path, store=settings_store, overrides=cli_overrides or None)
    configure_logging(settings, debug=debug)

    if args.dump_settings:
        _dump_settings(settings, settings_store, overrides=cli_overrides)
        return EXIT_CLEAN

    if not args.paths:
        print("No files given; pass one or more .tf or .tfvars files.", file=sys.stderr)
        return EXIT_ERROR

    paths = [Path(item).expanduser() for item in args.paths]
    try:
        report = asyncio.run(
            run_check(paths, settings, accept_all=args.accept_all, write=args.write)
        )
    except ComplianceError as exc:
        print(f"Failed to analyze Terraform code: {exc}", file=sys.stderr)
        return EXIT_ERROR
    except KeyboardInterrupt:  # pragma: no cover - manual shutdown path
        _LOGGER.info("Shutdown requested by user.")
        return EXIT_ERROR
    render_report(report, as_json=args.json)
    return report.exit_code


def _env_flag(name: str, *, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in _TRUE_VALUES


def _parse_cli_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="tfcompliance",
        description="Check Terraform files for compliance issues and optionally apply the suggested fixes.",
    )
    parser.add_argument("paths", nargs="*", metavar="FILE", help="Terraform files to analyze.")
    parser.add_argument(
        "--accept-all",
        action="store_true",
        help="Apply every located suggestion, highest priority first.",
    )
    parser.add_argument(
        "--write",
        action="store_true",
        help="Save files changed by --accept-all back to disk.",
    )
    parser.add_argument("--json", action="store_true", help="Print the report as JSON.")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging.")
    parser.add_argument(
        "--dump-settings",
        action="store_true",
        help="Print the effective settings payload (with secrets redacted) and exit.",
    )
    parser.add_argument(
        "--settings-path",
        metavar="PATH",
        help="Override the default ~/.tfcompliance/settings.json path.",
    )
    parser.add_argument(
        "--set",
        dest="overrides",
        metavar="KEY=VALUE",
        action="append",
        default=[],
        help="Override persisted settings for this run (repeatable).",
    )
    return parser.parse_args(argv)


def _coerce_cli_overrides(items: Sequence[str]) -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    if not items:
        return overrides

    fields = Settings.__dataclass_fields__  # type: ignore[attr-defined]
    type_hints = get_type_hints(Settings)
    for entry in items:
        if "=" not in entry:
            raise ValueError(f"Override '{entry}' must use KEY=VALUE syntax.")
        key, raw_value = entry.split("=", 1)
        key = key.strip()
        if not key:
            raise ValueError("Override is missing a field name.")
        if key not in fields:
            raise ValueError(f"Unknown setting '{key}'.")
        annotation = type_hints.get(key, fields[key].type)
        overrides[key] = _coerce_value(annotation, raw_value.strip())
    return overrides


def _coerce_value(annotation: Any, raw_value: str) -> Any:
    target = _resolve_annotation(annotation)
    normalized = raw_value.strip()

    if target is str or target is Any:
        return normalized
    if target is bool:
        return _parse_bool(normalized)
    if target is int:
        return int(normalized, 10)
    if target is float:
        return float(normalized)
    if target is dict:
        try:
            payload = json.loads(normalized or "{}")
        except json.JSONDecodeError as exc:
            raise ValueError("Dict overrides must be valid JSON objects") from exc
        if not isinstance(payload, dict):
            raise ValueError("Dict overrides must be valid JSON objects")
        return payload
    return normalized


def _resolve_annotation(annotation: Any) -> Any:
    origin = get_origin(annotation)
    if origin is None:
        return annotation
    if origin is dict:
        return origin
    args = [arg for arg in get_args(annotation) if arg is not type(None)]
    if not args:
        return origin
    return args[0]


def _parse_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValueError(f"Cannot coerce '{value}' to a boolean.")


def _dump_settings(
    settings: Settings,
    store: SettingsStore,
    *,
    overrides: Mapping[str, Any],
    stream: TextIO | None = None,
) -> None:
    destination = stream or sys.stdout
    payload = asdict(settings)
    payload["api_key"] = redact_secret(payload.get("api_key", ""))
    log_path = logging_utils.get_log_path()
    metadata = {
        "path": str(store.path),
        "secret_backend": store.vault.strategy,
        "log_path": str(log_path) if log_path else None,
        "cli_overrides": sorted(overrides.keys()),
        "environment_variables": _active_env_overrides(),
    }
    json.dump({"settings": payload, "meta": metadata}, destination, indent=2)
    destination.write("\n")


def _active_env_overrides() -> list[str]:
    return sorted(name for name in os.environ if name.startswith("TFCOMPLIANCE_"))


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
