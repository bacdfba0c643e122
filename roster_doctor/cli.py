from __future__ import annotations

import argparse
import json
import math
import os
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from roster_doctor import __version__ as TOOL_VERSION
from roster_doctor.autofix import apply_auto_fixes
from roster_doctor.contracts import build_contract, build_export_document, build_run_summary
from roster_doctor.diagnostics import ValidationResult
from roster_doctor.engine import overall_summary, validate_all
from roster_doctor.header_mapper import reconcile_headers
from roster_doctor.loader import load_file
from roster_doctor.records import EntityRecord, IngestResult, ingest_rows
from roster_doctor.rules import RulesConfiguration
from roster_doctor.schema import ENTITY_KINDS
from roster_doctor.settings import (
    DEFAULT_SETTINGS,
    ValidationSettings,
    read_config_file,
    settings_from_config,
)

EXIT_SUCCESS = 0
EXIT_COMMAND_ERROR = 1
EXIT_PARSE_FAILED = 2
EXIT_VALIDATE_FAILED = 5

FIXED_TIMESTAMP = "1970-01-01T00:00:00Z"


class CliError(Exception):
    def __init__(self, message: str, code: int = EXIT_COMMAND_ERROR) -> None:
        super().__init__(message)
        self.code = code


class RosterDoctorArgumentParser(argparse.ArgumentParser):
    def error(self, message: str) -> None:
        raise CliError(message, EXIT_COMMAND_ERROR)


def eprint(message: str) -> None:
    print(message, file=sys.stderr)


def emit_human(message: str, *, quiet: bool = False) -> None:
    if not quiet:
        eprint(message)


def finite_or_null(value: Any) -> Any:
    """Swap NaN and infinities for None so the output stays strict JSON."""
    if isinstance(value, float) and not math.isfinite(value):
        return None
    if isinstance(value, dict):
        return {key: finite_or_null(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [finite_or_null(item) for item in value]
    return value


def json_dumps(payload: Any) -> str:
    return json.dumps(
        finite_or_null(payload),
        indent=2,
        ensure_ascii=False,
        sort_keys=True,
        allow_nan=False,
        default=str,
    )


def timestamp_token() -> str:
    override = os.environ.get("ROSTER_DOCTOR_OUTPUT_STAMP")
    if override:
        return override
    return datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")


def default_output_dir(label: str) -> Path:
    return Path.cwd() / "roster-doctor-output" / f"{label}-{timestamp_token()}"


def ensure_parent(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def write_text(path: Path, payload: str) -> None:
    ensure_parent(path)
    path.write_text(payload, encoding="utf-8")


def write_json(path: Path, payload: Any) -> None:
    write_text(path, json_dumps(payload))


def pin_generated_at(value: Any) -> Any:
    """Replace run timestamps when ROSTER_DOCTOR_OUTPUT_STAMP pins the run."""
    if isinstance(value, dict):
        return {
            key: FIXED_TIMESTAMP if key in {"generated_at", "generatedAt", "exportDate"} else pin_generated_at(item)
            for key, item in value.items()
        }
    if isinstance(value, list):
        return [pin_generated_at(item) for item in value]
    return value


def normalize_payload_for_cli(payload: Any) -> Any:
    if os.environ.get("ROSTER_DOCTOR_OUTPUT_STAMP"):
        return pin_generated_at(payload)
    return payload


def classify_exception(exc: Exception) -> int:
    if isinstance(exc, CliError):
        return exc.code
    if isinstance(exc, FileNotFoundError):
        return EXIT_COMMAND_ERROR
    if isinstance(exc, (UnicodeDecodeError, ValueError)):
        return EXIT_PARSE_FAILED
    return EXIT_COMMAND_ERROR


def maybe_emit_json_stdout(payload: Any, enabled: bool) -> None:
    if enabled:
        print(json_dumps(payload))


def safe_output_path(path: Path) -> Path:
    if path.exists():
        raise CliError(f"Refusing to overwrite existing output: {path}", EXIT_COMMAND_ERROR)
    return path


def input_paths_from_args(args: argparse.Namespace) -> dict[str, Path]:
    paths = {kind: Path(getattr(args, kind)) for kind in ENTITY_KINDS if getattr(args, kind, None)}
    if not paths:
        raise CliError("Provide at least one of --clients, --workers or --tasks", EXIT_COMMAND_ERROR)
    for path in paths.values():
        if not path.exists():
            raise CliError(f"File not found: {path}", EXIT_COMMAND_ERROR)
    return paths


def load_config_payload(config_path: str | None) -> dict[str, Any]:
    if not config_path:
        return {}
    try:
        return read_config_file(Path(config_path))
    except (FileNotFoundError, ValueError) as exc:
        raise CliError(str(exc), EXIT_COMMAND_ERROR) from exc


def load_cli_settings(config: dict[str, Any]) -> ValidationSettings:
    if not config:
        return DEFAULT_SETTINGS
    try:
        return settings_from_config(config)
    except (TypeError, ValueError) as exc:
        raise CliError(f"Invalid config: {exc}", EXIT_COMMAND_ERROR) from exc


def ingest_inputs(
    paths: dict[str, Path],
    settings: ValidationSettings,
    *,
    sheet_name: str | None = None,
) -> tuple[dict[str, IngestResult], list[str]]:
    ingested: dict[str, IngestResult] = {}
    warnings: list[str] = []
    for kind, path in paths.items():
        loaded = load_file(path, kind=kind, sheet_name=sheet_name)
        warnings.extend(f"{kind}: {message}" for message in loaded["warnings"])
        result = ingest_rows(
            loaded["rows"],
            kind,
            headers=loaded["headers"],
            threshold=settings.header_match_threshold,
            containment_score=settings.containment_score,
        )
        if result.reconciliation.missing_required_fields:
            warnings.append(
                f"{kind}: no column found for "
                + ", ".join(result.reconciliation.missing_required_fields)
            )
        ingested[kind] = result
    return ingested, warnings


def run_validation(
    data: dict[str, list[EntityRecord]],
    settings: ValidationSettings,
) -> dict[str, ValidationResult]:
    return validate_all(
        clients=data.get("clients"),
        workers=data.get("workers"),
        tasks=data.get("tasks"),
        settings=settings,
    )


def render_map_text(payload: dict[str, Any]) -> str:
    lines = [
        "roster-doctor map",
        f"Input: {payload['input']}",
        f"Kind: {payload['kind']}",
        f"Confidence: {payload['confidence']}%",
    ]
    for canonical_field, header in payload["mapping"].items():
        score = payload["scores"].get(canonical_field, 0.0)
        lines.append(f"- {canonical_field} <- {header} ({score:.2f})")
    if payload["missing_required_fields"]:
        lines.append("Missing required: " + ", ".join(payload["missing_required_fields"]))
    if payload["passthrough_headers"]:
        lines.append("Passthrough: " + ", ".join(payload["passthrough_headers"]))
    return "\n".join(lines) + "\n"


def render_validate_text(payload: dict[str, Any], *, verbose: bool = False) -> str:
    summary = payload["summary"]
    lines = [
        "roster-doctor validate",
        f"Valid: {summary['is_valid']}",
        f"Errors: {summary['total_errors']}",
        f"Warnings: {summary['total_warnings']}",
        f"Confidence: {summary['confidence']}%",
    ]
    for kind, result in payload["results"].items():
        counts = result["summary"]
        lines.append(
            f"- {kind}: {counts['valid_rows']}/{counts['total_rows']} rows valid, "
            f"{counts['total_errors']} errors, {counts['total_warnings']} warnings"
        )
        if not verbose:
            continue
        for item in result["errors"] + result["warnings"]:
            line = f"    [{item['severity']}] row {item['row']} {item['column']}: {item['message']}"
            if item["suggestion"] is not None:
                line += f" (suggestion: {item['suggestion']})"
            lines.append(line)
    return "\n".join(lines) + "\n"


def build_parser() -> argparse.ArgumentParser:
    parser = RosterDoctorArgumentParser(
        prog="roster-doctor",
        description="Reconcile and validate client, worker and task sheets.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    map_cmd = subparsers.add_parser("map", help="Show how a file's headers map onto canonical fields.")
    map_cmd.add_argument("input", help="Input file path")
    map_cmd.add_argument("--kind", required=True, choices=ENTITY_KINDS, help="Entity kind of the file")
    map_cmd.add_argument("--config", help="JSON config with validation settings")
    map_cmd.add_argument("--sheet", dest="sheet_name", help="Workbook sheet name")
    map_cmd.add_argument("--json", action="store_true", help="Write machine JSON to stdout")

    def add_input_args(sub: argparse.ArgumentParser) -> None:
        sub.add_argument("--clients", help="Clients file")
        sub.add_argument("--workers", help="Workers file")
        sub.add_argument("--tasks", help="Tasks file")
        sub.add_argument("--config", help="JSON config with validation settings and rules")
        sub.add_argument("--sheet", dest="sheet_name", help="Workbook sheet name")
        sub.add_argument("-q", "--quiet", action="store_true", help="Minimal human logs")
        sub.add_argument("-v", "--verbose", action="store_true", help="More human logs")

    validate = subparsers.add_parser("validate", help="Validate one or more collections.")
    add_input_args(validate)
    validate.add_argument("--json", action="store_true", help="Write machine JSON to stdout")
    validate.add_argument("-o", "--out", dest="out_dir", help="Output directory")
    validate.add_argument("--output", help="Explicit validation output path")

    export = subparsers.add_parser("export", help="Write the coerced collections as an export document.")
    add_input_args(export)
    export.add_argument("--output", required=True, help="Export document path")
    export.add_argument("--rules", help="JSON file with business_rules and priority_settings")
    export.add_argument("--apply-fixes", action="store_true", help="Apply automatic fixes before exporting")
    export.add_argument("--with-validation", action="store_true", help="Include the validation report")

    config = subparsers.add_parser("config", help="Generate configuration.")
    config_subparsers = config.add_subparsers(dest="config_command", required=True)
    config_init = config_subparsers.add_parser("init", help="Write a starter config file.")
    config_init.add_argument("--path", default="roster-doctor.json", help="Config output path")

    subparsers.add_parser("version", help="Print version")
    return parser


def run_map(args: argparse.Namespace) -> int:
    input_path = Path(args.input)
    if not input_path.exists():
        eprint(f"File not found: {input_path}")
        return EXIT_COMMAND_ERROR
    try:
        settings = load_cli_settings(load_config_payload(args.config))
        loaded = load_file(input_path, kind=args.kind, sheet_name=args.sheet_name)
        reconciliation = reconcile_headers(
            loaded["headers"],
            args.kind,
            threshold=settings.header_match_threshold,
            containment_score=settings.containment_score,
        )
        payload = {
            "contract": build_contract("roster_doctor.header_map"),
            "tool": "roster-doctor",
            "version": TOOL_VERSION,
            "input": str(input_path),
            "headers": loaded["headers"],
            "detected_format": loaded["detected_format"],
            "warnings": loaded["warnings"],
            **reconciliation.to_dict(),
        }
        if args.json:
            maybe_emit_json_stdout(payload, True)
        else:
            eprint(render_map_text(payload).rstrip())
        return EXIT_SUCCESS
    except Exception as exc:
        eprint(str(exc))
        return classify_exception(exc)


def run_validate(args: argparse.Namespace) -> int:
    try:
        paths = input_paths_from_args(args)
        settings = load_cli_settings(load_config_payload(args.config))
        ingested, warnings = ingest_inputs(paths, settings, sheet_name=args.sheet_name)
        for message in warnings:
            emit_human(f"Warning: {message}", quiet=args.quiet)
        data = {kind: result.records for kind, result in ingested.items()}
        results = run_validation(data, settings)
        summary = overall_summary(results)

        output_path = None
        if args.output or args.out_dir:
            out_dir = Path(args.out_dir) if args.out_dir else default_output_dir("validate")
            output_path = Path(args.output) if args.output else out_dir / "validation.json"

        payload = {
            "contract": build_contract("roster_doctor.validation"),
            "version": TOOL_VERSION,
            "run_summary": build_run_summary(
                tool="roster-doctor",
                command="validate",
                input_paths=paths,
                status="ok" if summary["is_valid"] else "failed",
                output_path=output_path,
                metrics=dict(summary),
                warnings=warnings,
            ),
            "summary": summary,
            "header_maps": {kind: result.reconciliation.to_dict() for kind, result in ingested.items()},
            "results": {kind: result.to_dict() for kind, result in results.items()},
        }
        payload = normalize_payload_for_cli(payload)
        if output_path is not None:
            write_json(output_path, payload)
            emit_human(f"Validation report: {output_path}", quiet=args.quiet)
        if args.json:
            maybe_emit_json_stdout(payload, True)
        else:
            emit_human(render_validate_text(payload, verbose=args.verbose).rstrip(), quiet=args.quiet)
        return EXIT_SUCCESS if summary["is_valid"] else EXIT_VALIDATE_FAILED
    except Exception as exc:
        eprint(str(exc))
        return classify_exception(exc)


def load_rules_configuration(rules_path: str | None, config: dict[str, Any]) -> RulesConfiguration | None:
    payload = load_config_payload(rules_path) if rules_path else config
    if not payload or not ({"business_rules", "priority_settings"} & set(payload)):
        return None
    try:
        return RulesConfiguration.from_config(payload)
    except (KeyError, TypeError, ValueError) as exc:
        raise CliError(f"Invalid rules: {exc}", EXIT_COMMAND_ERROR) from exc


def run_export(args: argparse.Namespace) -> int:
    try:
        paths = input_paths_from_args(args)
        output_path = safe_output_path(Path(args.output))
        config = load_config_payload(args.config)
        settings = load_cli_settings(config)
        configuration = load_rules_configuration(args.rules, config)
        ingested, warnings = ingest_inputs(paths, settings, sheet_name=args.sheet_name)
        if configuration is not None:
            warnings.extend(configuration.warnings())
        for message in warnings:
            emit_human(f"Warning: {message}", quiet=args.quiet)

        data = {kind: result.records for kind, result in ingested.items()}
        results = run_validation(data, settings)
        if args.apply_fixes:
            for kind, result in results.items():
                fixed, applied = apply_auto_fixes(data[kind], result.diagnostics)
                data[kind] = fixed
                emit_human(f"{kind}: applied {len(applied)} automatic fixes", quiet=args.quiet)
                if args.verbose:
                    for item in applied:
                        emit_human(f"    row {item.row} {item.column} -> {item.suggestion}", quiet=args.quiet)
            results = run_validation(data, settings)

        document = build_export_document(
            data,
            configuration=configuration,
            validation=results if args.with_validation else None,
        )
        write_json(output_path, normalize_payload_for_cli(document))
        summary = overall_summary(results)
        emit_human(f"Export written: {output_path}", quiet=args.quiet)
        emit_human(
            f"Rows: {summary['total_rows']}, errors: {summary['total_errors']}, "
            f"warnings: {summary['total_warnings']}",
            quiet=args.quiet,
        )
        return EXIT_SUCCESS
    except Exception as exc:
        eprint(str(exc))
        return classify_exception(exc)


def starter_config() -> dict[str, Any]:
    return {
        "validation": DEFAULT_SETTINGS.to_dict(),
        "priority_settings": RulesConfiguration().priority_settings.to_dict(),
        "business_rules": [],
    }


def run_config_init(args: argparse.Namespace) -> int:
    config_path = Path(args.path)
    if config_path.exists():
        eprint(f"Refusing to overwrite existing config: {config_path}")
        return EXIT_COMMAND_ERROR
    write_json(config_path, starter_config())
    emit_human(f"Config written: {config_path}")
    return EXIT_SUCCESS


def run_version() -> int:
    print(TOOL_VERSION)
    return EXIT_SUCCESS


def main(argv: list[str] | None = None) -> int:
    try:
        parser = build_parser()
        args = parser.parse_args(argv)
        if args.command == "map":
            return run_map(args)
        if args.command == "validate":
            return run_validate(args)
        if args.command == "export":
            return run_export(args)
        if args.command == "config":
            if args.config_command == "init":
                return run_config_init(args)
        if args.command == "version":
            return run_version()
        raise CliError(f"Unknown command: {args.command}", EXIT_COMMAND_ERROR)
    except CliError as exc:
        eprint(str(exc))
        return exc.code


if __name__ == "__main__":
    raise SystemExit(main())
