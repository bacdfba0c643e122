"""Per-collection validation rules for clients, workers and tasks."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from roster_doctor.coercion import (
    coerce_integer_list,
    is_blank,
    parse_number,
    round_half_up,
    strict_json_loads,
)
from roster_doctor.diagnostics import Diagnostic, DiagnosticCollector
from roster_doctor.records import EntityRecord
from roster_doctor.schema import CLIENTS, ID_FIELDS, TASKS, WORKERS, check_kind
from roster_doctor.settings import DEFAULT_SETTINGS, ValidationSettings
from roster_doctor.similarity import best_match

PRIORITY_RANGE = (1, 5)
JSON_SYNTAX_HINT = "Ensure proper JSON syntax with double quotes around keys and string values"


def is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def is_whole_number(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return True
    return isinstance(value, float) and value.is_integer()


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


class _RowChecks:
    """Field-level checks bound to one collector and one entity kind."""

    def __init__(self, collector: DiagnosticCollector, kind: str, settings: ValidationSettings) -> None:
        self.collector = collector
        self.kind = kind
        self.settings = settings

    def error(self, row: int, column: str, message: str, value: Any = None, **kwargs: Any) -> Diagnostic:
        return self.collector.error(self.kind, row, column, message, value, **kwargs)

    def warning(self, row: int, column: str, message: str, value: Any = None, **kwargs: Any) -> Diagnostic:
        return self.collector.warning(self.kind, row, column, message, value, **kwargs)

    def text(self, row: int, record: EntityRecord, field_name: str, *, required: bool) -> str | None:
        value = record.get(field_name)
        if value is None or (isinstance(value, str) and not value.strip()):
            if required:
                self.error(row, field_name, f"Missing required field: {field_name}", value)
            return None
        return value.strip() if isinstance(value, str) else str(value)

    def number(self, row: int, record: EntityRecord, field_name: str, *, required: bool) -> float | None:
        value = record.get(field_name)
        if value is None:
            raw = record.raw(field_name)
            if not is_blank(raw):
                self.error(row, field_name, f"{field_name} could not be parsed as a number", raw)
            elif required:
                self.error(row, field_name, f"Missing required field: {field_name}", value)
            return None
        if not is_number(value):
            self.error(
                row,
                field_name,
                f"{field_name} must be a number",
                value,
                suggestion=parse_number(value),
                auto_fix=True,
            )
            return None
        return value

    def positive(self, row: int, field_name: str, value: float | None) -> bool:
        if value is None:
            return False
        if value <= 0:
            self.error(
                row,
                field_name,
                f"{field_name} must be greater than 0",
                value,
                suggestion=1,
                auto_fix=True,
            )
            return False
        return True

    def string_list(self, row: int, record: EntityRecord, field_name: str) -> list[Any] | None:
        value = record.get(field_name)
        if value is None:
            return None
        if not isinstance(value, list):
            suggestion = None
            if isinstance(value, str):
                suggestion = [piece.strip() for piece in value.split(",") if piece.strip()]
            self.error(
                row,
                field_name,
                f"{field_name} must be a list",
                value,
                suggestion=suggestion,
                auto_fix=True,
            )
            return None
        invalid = [item for item in value if not isinstance(item, str) or not item.strip()]
        if invalid:
            cleaned = [str(item).strip() for item in value if item is not None and str(item).strip()]
            self.warning(
                row,
                field_name,
                f"Some entries in {field_name} are empty or invalid",
                invalid,
                suggestion=cleaned,
                auto_fix=True,
            )
        return value

    def integer_list(
        self,
        row: int,
        record: EntityRecord,
        field_name: str,
        minimum: int,
    ) -> list[int] | None:
        value = record.get(field_name)
        if value is None:
            return None
        if not isinstance(value, list):
            suggestion = coerce_integer_list(value) if isinstance(value, str) else None
            self.error(
                row,
                field_name,
                f"{field_name} must be a list of whole numbers",
                value,
                suggestion=suggestion,
                auto_fix=True,
            )
            return None
        valid = [int(item) for item in value if is_whole_number(item) and item >= minimum]
        invalid = [item for item in value if not (is_whole_number(item) and item >= minimum)]
        if invalid:
            self.error(
                row,
                field_name,
                f"Invalid {field_name} values (must be whole numbers >= {minimum})",
                invalid,
                suggestion=valid,
                auto_fix=True,
            )
        return valid

    def short_name(self, row: int, field_name: str, name: str | None, minimum: int) -> None:
        if name is not None and len(name) < minimum:
            self.warning(row, field_name, f"{field_name} seems too short", name)

    def duplicate(self, row: int, field_name: str, identifier: str | None, seen: set[str]) -> None:
        if identifier is None:
            return
        if identifier in seen:
            self.error(
                row,
                field_name,
                f"Duplicate {field_name}: {identifier}",
                identifier,
                suggestion="Use a unique identifier, for example by adding a suffix",
            )
        seen.add(identifier)


def _validate_client(checks: _RowChecks, row: int, record: EntityRecord, seen: set[str]) -> None:
    settings = checks.settings
    client_id = checks.text(row, record, "ClientID", required=True)
    name = checks.text(row, record, "ClientName", required=True)
    priority = checks.number(row, record, "PriorityLevel", required=True)

    checks.duplicate(row, "ClientID", client_id, seen)

    if priority is not None:
        low, high = PRIORITY_RANGE
        if priority < low or priority > high:
            checks.error(
                row,
                "PriorityLevel",
                f"PriorityLevel must be between {low} and {high}",
                priority,
                suggestion=int(clamp(round_half_up(priority), low, high)),
                auto_fix=True,
            )
        elif not is_whole_number(priority):
            checks.warning(
                row,
                "PriorityLevel",
                "PriorityLevel should be a whole number",
                priority,
                suggestion=int(clamp(round_half_up(priority), low, high)),
                auto_fix=True,
            )

    requested = checks.string_list(row, record, "RequestedTaskIDs")
    if requested == []:
        checks.warning(row, "RequestedTaskIDs", "No requested tasks listed", requested)

    attributes = record.get("AttributesJSON")
    if isinstance(attributes, str):
        try:
            parsed = strict_json_loads(attributes)
        except ValueError:
            checks.error(
                row,
                "AttributesJSON",
                "Invalid JSON format in AttributesJSON",
                attributes,
                suggestion=JSON_SYNTAX_HINT,
            )
        else:
            if not isinstance(parsed, dict):
                checks.error(row, "AttributesJSON", "AttributesJSON must be a JSON object", attributes)
    elif attributes is not None and not isinstance(attributes, dict):
        checks.error(row, "AttributesJSON", "AttributesJSON must be a JSON object", attributes)

    checks.short_name(row, "ClientName", name, settings.min_client_name_length)

    group_tag = checks.text(row, record, "GroupTag", required=False)
    if group_tag is not None and group_tag not in settings.recommended_group_tags:
        suggestion, _ = best_match(group_tag, settings.recommended_group_tags, settings.header_match_threshold)
        checks.warning(
            row,
            "GroupTag",
            "Unusual group tag value",
            group_tag,
            suggestion=suggestion,
            auto_fix=True,
        )


def _validate_worker(checks: _RowChecks, row: int, record: EntityRecord, seen: set[str]) -> None:
    settings = checks.settings
    worker_id = checks.text(row, record, "WorkerID", required=True)
    name = checks.text(row, record, "WorkerName", required=True)

    skills_value = record.get("Skills")
    if skills_value is None or (isinstance(skills_value, list) and all(is_blank(item) for item in skills_value)):
        checks.error(
            row,
            "Skills",
            "Missing or empty skills list",
            skills_value,
            suggestion="Add at least one skill",
        )
    else:
        checks.string_list(row, record, "Skills")

    checks.duplicate(row, "WorkerID", worker_id, seen)

    slots = checks.integer_list(row, record, "AvailableSlots", minimum=0)
    if record.get("AvailableSlots") == []:
        checks.warning(row, "AvailableSlots", "No available slots listed", [])

    max_load = checks.number(row, record, "MaxLoadPerPhase", required=False)
    if checks.positive(row, "MaxLoadPerPhase", max_load) and slots and max_load > len(slots):
        checks.warning(
            row,
            "MaxLoadPerPhase",
            "MaxLoadPerPhase exceeds the number of available slots",
            max_load,
            suggestion=len(slots),
            auto_fix=True,
        )

    checks.short_name(row, "WorkerName", name, settings.min_worker_name_length)

    qualification = checks.number(row, record, "QualificationLevel", required=False)
    low, high = settings.qualification_range
    if qualification is not None and (qualification < low or qualification > high):
        checks.warning(
            row,
            "QualificationLevel",
            f"Unusual qualification level (expected {low:g}-{high:g})",
            qualification,
        )


def _validate_task(checks: _RowChecks, row: int, record: EntityRecord, seen: set[str]) -> None:
    settings = checks.settings
    task_id = checks.text(row, record, "TaskID", required=True)
    name = checks.text(row, record, "TaskName", required=True)
    checks.text(row, record, "Category", required=True)
    duration = checks.number(row, record, "Duration", required=True)

    checks.duplicate(row, "TaskID", task_id, seen)

    if checks.positive(row, "Duration", duration) and duration > settings.long_duration_threshold:
        checks.warning(row, "Duration", "Unusually long duration", duration)

    required_skills = checks.string_list(row, record, "RequiredSkills")
    if required_skills == []:
        checks.warning(row, "RequiredSkills", "No required skills specified", required_skills)

    checks.integer_list(row, record, "PreferredPhases", minimum=1)

    max_concurrent = checks.number(row, record, "MaxConcurrent", required=False)
    if checks.positive(row, "MaxConcurrent", max_concurrent) and not is_whole_number(max_concurrent):
        checks.warning(
            row,
            "MaxConcurrent",
            "MaxConcurrent should be a whole number",
            max_concurrent,
            suggestion=max(1, round_half_up(max_concurrent)),
            auto_fix=True,
        )

    checks.short_name(row, "TaskName", name, settings.min_task_name_length)


_ROW_VALIDATORS = {
    CLIENTS: _validate_client,
    WORKERS: _validate_worker,
    TASKS: _validate_task,
}


def run_entity_checks(
    records: Sequence[EntityRecord],
    kind: str,
    collector: DiagnosticCollector,
    settings: ValidationSettings = DEFAULT_SETTINGS,
) -> None:
    checks = _RowChecks(collector, check_kind(kind), settings)
    row_validator = _ROW_VALIDATORS[kind]
    seen: set[str] = set()
    for row, record in enumerate(records):
        if record.kind != kind:
            checks.error(
                row,
                ID_FIELDS[kind],
                f"Expected a {kind} record, got {record.kind or type(record).__name__}",
                record.kind,
            )
            continue
        row_validator(checks, row, record, seen)


def validate_entity(
    records: Sequence[EntityRecord],
    kind: str,
    settings: ValidationSettings | None = None,
) -> list[Diagnostic]:
    collector = DiagnosticCollector()
    run_entity_checks(records, kind, collector, settings or DEFAULT_SETTINGS)
    return collector.diagnostics
