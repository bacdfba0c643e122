"""Shared versioned contracts for roster-doctor outputs."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from roster_doctor.diagnostics import ValidationResult
from roster_doctor.records import EntityRecord
from roster_doctor.rules import CONFIG_VERSION, RulesConfiguration
from roster_doctor.schema import ENTITY_KINDS

CONTRACT_VERSIONS = {
    "roster_doctor.header_map": "1.0.0",
    "roster_doctor.validation": "1.0.0",
    "roster_doctor.export": "1.0.0",
}

EXPORT_SCHEMA_VERSION = "1.0"


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def build_contract(name: str) -> dict[str, str]:
    version = CONTRACT_VERSIONS[name]
    return {"name": name, "version": version}


def build_run_summary(
    *,
    tool: str,
    command: str,
    input_paths: Mapping[str, Path],
    status: str = "ok",
    output_path: Path | None = None,
    metrics: dict[str, Any] | None = None,
    warnings: list[str] | None = None,
) -> dict[str, Any]:
    return {
        "tool": tool,
        "command": command,
        "status": status,
        "generated_at": utc_now_iso(),
        "input_files": {kind: str(path) for kind, path in input_paths.items()},
        "output_file": str(output_path) if output_path else None,
        "warnings_count": len(warnings or []),
        "warnings": list(warnings or []),
        "metrics": metrics or {},
    }


def build_rules_configuration(configuration: RulesConfiguration) -> dict[str, Any]:
    return {
        "businessRules": [rule.to_dict() for rule in configuration.active_rules()],
        "prioritySettings": configuration.priority_settings.to_dict(),
        "configVersion": CONFIG_VERSION,
        "generatedAt": utc_now_iso(),
    }


def build_export_document(
    data: Mapping[str, Sequence[EntityRecord] | None],
    *,
    configuration: RulesConfiguration | None = None,
    validation: Mapping[str, ValidationResult] | None = None,
) -> dict[str, Any]:
    """Build the JSON export: ``metadata`` plus the coerced collections under ``data``.

    Every kind is present under ``data``; unknown collections export as empty
    lists. Passthrough columns are not exported.
    """
    document: dict[str, Any] = {
        "metadata": {
            "exportDate": utc_now_iso(),
            "version": EXPORT_SCHEMA_VERSION,
        },
        "data": {
            kind: [record.to_dict(include_extras=False) for record in (data.get(kind) or [])]
            for kind in ENTITY_KINDS
        },
    }
    if configuration is not None:
        document["configuration"] = build_rules_configuration(configuration)
    if validation is not None:
        document["validation"] = {kind: result.to_dict() for kind, result in validation.items()}
    return document
