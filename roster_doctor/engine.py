"""Validation entry points.

``validate`` checks one collection (plus cross-entity checks when siblings are
known). ``validate_all`` runs the full report cycle: every known collection
first, then a single cross-entity pass whose findings are routed to the
collection they belong to.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence

from roster_doctor.cross_validator import run_cross_entity_checks
from roster_doctor.diagnostics import DiagnosticCollector, ValidationResult, compute_confidence
from roster_doctor.entity_validator import run_entity_checks
from roster_doctor.records import EntityRecord
from roster_doctor.schema import CLIENTS, ENTITY_KINDS, TASKS, WORKERS, check_kind
from roster_doctor.settings import DEFAULT_SETTINGS, ValidationSettings


def validate(
    records: Sequence[EntityRecord],
    kind: str,
    siblings: Mapping[str, Sequence[EntityRecord] | None] | None = None,
    settings: ValidationSettings | None = None,
) -> ValidationResult:
    check_kind(kind)
    settings = settings or DEFAULT_SETTINGS
    collector = DiagnosticCollector()
    run_entity_checks(records, kind, collector, settings)

    if siblings:
        collections = {name: siblings.get(name) for name in ENTITY_KINDS}
        collections[kind] = records
        cross = DiagnosticCollector()
        run_cross_entity_checks(
            collections[CLIENTS], collections[WORKERS], collections[TASKS], cross, settings
        )
        collector.diagnostics.extend(item for item in cross.diagnostics if item.entity == kind)

    return ValidationResult(entity=kind, total_rows=len(records), diagnostics=collector.diagnostics)


def validate_all(
    clients: Sequence[EntityRecord] | None = None,
    workers: Sequence[EntityRecord] | None = None,
    tasks: Sequence[EntityRecord] | None = None,
    settings: ValidationSettings | None = None,
) -> dict[str, ValidationResult]:
    settings = settings or DEFAULT_SETTINGS
    collections = {CLIENTS: clients, WORKERS: workers, TASKS: tasks}
    results: dict[str, ValidationResult] = {}
    for kind, records in collections.items():
        if records is None:
            continue
        collector = DiagnosticCollector()
        run_entity_checks(records, kind, collector, settings)
        results[kind] = ValidationResult(
            entity=kind, total_rows=len(records), diagnostics=collector.diagnostics
        )

    cross = DiagnosticCollector()
    run_cross_entity_checks(clients, workers, tasks, cross, settings)
    for diagnostic in cross.diagnostics:
        results[diagnostic.entity].diagnostics.append(diagnostic)
    return results


def overall_summary(results: Mapping[str, ValidationResult]) -> dict[str, int | bool]:
    total_rows = sum(result.total_rows for result in results.values())
    valid_rows = sum(result.valid_rows for result in results.values())
    return {
        "is_valid": all(result.is_valid for result in results.values()),
        "total_errors": sum(len(result.errors) for result in results.values()),
        "total_warnings": sum(len(result.warnings) for result in results.values()),
        "valid_rows": valid_rows,
        "total_rows": total_rows,
        "confidence": compute_confidence(total_rows, total_rows - valid_rows),
    }
