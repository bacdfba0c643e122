"""Checks that span the client, worker and task collections."""

from __future__ import annotations

from collections.abc import Sequence

from roster_doctor.coercion import is_blank
from roster_doctor.diagnostics import COLLECTION_ROW, COLLECTION_SCOPE, Diagnostic, DiagnosticCollector
from roster_doctor.entity_validator import is_number, is_whole_number
from roster_doctor.records import EntityRecord
from roster_doctor.schema import CLIENTS, TASKS
from roster_doctor.settings import DEFAULT_SETTINGS, ValidationSettings
from roster_doctor.similarity import best_match


def _list_of(record: EntityRecord, field_name: str) -> list:
    value = record.get(field_name)
    return value if isinstance(value, list) else []


def _number_of(record: EntityRecord, field_name: str) -> float:
    value = record.get(field_name)
    return float(value) if is_number(value) else 0.0


def _identifier(record: EntityRecord, field_name: str) -> str | None:
    value = record.get(field_name)
    if value is None:
        return None
    text = value.strip() if isinstance(value, str) else str(value)
    return text or None


def check_task_references(
    clients: Sequence[EntityRecord],
    tasks: Sequence[EntityRecord],
    collector: DiagnosticCollector,
    settings: ValidationSettings = DEFAULT_SETTINGS,
) -> None:
    task_ids = [task_id for task_id in (_identifier(task, "TaskID") for task in tasks) if task_id]
    known = set(task_ids)
    for row, client in enumerate(clients):
        missing = [
            item for item in _list_of(client, "RequestedTaskIDs")
            if not is_blank(item)
            and (item.strip() if isinstance(item, str) else str(item)) not in known
        ]
        if not missing:
            continue
        hints = []
        for item in missing:
            candidate, _ = best_match(str(item), task_ids, settings.task_id_hint_threshold)
            if candidate is not None:
                hints.append(f"{item} -> {candidate}")
        collector.error(
            CLIENTS,
            row,
            "RequestedTaskIDs",
            f"Referenced task IDs not found: {', '.join(str(item) for item in missing)}",
            missing,
            suggestion=f"Did you mean: {', '.join(hints)}" if hints else None,
        )


def check_skill_coverage(
    workers: Sequence[EntityRecord],
    tasks: Sequence[EntityRecord],
    collector: DiagnosticCollector,
) -> None:
    available = {
        skill.strip()
        for worker in workers
        for skill in _list_of(worker, "Skills")
        if isinstance(skill, str)
    }
    for row, task in enumerate(tasks):
        uncovered = [
            skill for skill in _list_of(task, "RequiredSkills")
            if isinstance(skill, str) and skill.strip() and skill.strip() not in available
        ]
        if uncovered:
            collector.warning(
                TASKS,
                row,
                "RequiredSkills",
                f"No workers have these required skills: {', '.join(uncovered)}",
                uncovered,
            )


def max_available_phase(workers: Sequence[EntityRecord]) -> int:
    phases = [
        int(slot)
        for worker in workers
        for slot in _list_of(worker, "AvailableSlots")
        if is_whole_number(slot)
    ]
    return max(phases, default=0)


def check_phase_availability(
    workers: Sequence[EntityRecord],
    tasks: Sequence[EntityRecord],
    collector: DiagnosticCollector,
) -> None:
    max_phase = max_available_phase(workers)
    for row, task in enumerate(tasks):
        beyond = [
            phase for phase in _list_of(task, "PreferredPhases")
            if is_number(phase) and phase > max_phase
        ]
        if beyond:
            collector.warning(
                TASKS,
                row,
                "PreferredPhases",
                f"Some preferred phases exceed worker availability (max phase {max_phase}): "
                + ", ".join(str(phase) for phase in beyond),
                beyond,
            )


def capacity_totals(
    workers: Sequence[EntityRecord],
    tasks: Sequence[EntityRecord],
) -> tuple[float, float]:
    """Coarse demand/capacity totals.

    Capacity is each worker's per-phase load times their slot count (at least
    one). Skills and concurrency limits are ignored, so this is an early
    warning signal only.
    """
    demand = sum(_number_of(task, "Duration") for task in tasks)
    capacity = sum(
        _number_of(worker, "MaxLoadPerPhase") * max(len(_list_of(worker, "AvailableSlots")), 1)
        for worker in workers
    )
    return demand, capacity


def check_capacity(
    workers: Sequence[EntityRecord],
    tasks: Sequence[EntityRecord],
    collector: DiagnosticCollector,
) -> None:
    demand, capacity = capacity_totals(workers, tasks)
    if demand > capacity:
        collector.warning(
            TASKS,
            COLLECTION_ROW,
            "Duration",
            f"Total task duration ({demand:g}) may exceed total worker capacity ({capacity:g})",
            {"total_duration": demand, "total_capacity": capacity},
            scope=COLLECTION_SCOPE,
        )


def run_cross_entity_checks(
    clients: Sequence[EntityRecord] | None,
    workers: Sequence[EntityRecord] | None,
    tasks: Sequence[EntityRecord] | None,
    collector: DiagnosticCollector,
    settings: ValidationSettings = DEFAULT_SETTINGS,
) -> None:
    if clients is not None and tasks is not None:
        check_task_references(clients, tasks, collector, settings)
    if workers is not None and tasks is not None:
        check_skill_coverage(workers, tasks, collector)
        check_phase_availability(workers, tasks, collector)
        check_capacity(workers, tasks, collector)


def validate_cross_entity(
    clients: Sequence[EntityRecord] | None,
    workers: Sequence[EntityRecord] | None,
    tasks: Sequence[EntityRecord] | None,
    settings: ValidationSettings | None = None,
) -> list[Diagnostic]:
    """Run every cross-entity check whose collections are known.

    ``None`` means a collection has not been provided yet; an empty list is a
    known, empty collection.
    """
    collector = DiagnosticCollector()
    run_cross_entity_checks(clients, workers, tasks, collector, settings or DEFAULT_SETTINGS)
    return collector.diagnostics
