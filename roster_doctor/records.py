"""Typed entity records and the rows -> records ingest step."""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, ClassVar

from roster_doctor.coercion import coerce_row
from roster_doctor.header_mapper import (
    DEFAULT_MATCH_THRESHOLD,
    HeaderReconciliation,
    reconcile_headers,
)
from roster_doctor.schema import CLIENTS, TASKS, WORKERS, check_kind, fields_for
from roster_doctor.similarity import CONTAINMENT_SCORE


@dataclass
class EntityRecord:
    """Base for the three record kinds.

    ``extras`` holds unclaimed input columns in input order. ``source`` holds the
    raw cell behind each canonical field so the validator can tell an empty
    cell from one that failed to parse.
    """

    kind: ClassVar[str] = ""

    extras: dict[str, Any] = field(default_factory=dict)
    source: dict[str, Any] = field(default_factory=dict)

    def get(self, field_name: str) -> Any:
        for spec in fields_for(self.kind):
            if spec.name == field_name:
                return getattr(self, spec.attr)
        raise ValueError(f"{field_name} is not a {self.kind} field")

    def raw(self, field_name: str) -> Any:
        return self.source.get(field_name)

    def to_dict(self, *, include_extras: bool = True) -> dict[str, Any]:
        payload = {spec.name: getattr(self, spec.attr) for spec in fields_for(self.kind)}
        if include_extras:
            for key, value in self.extras.items():
                payload.setdefault(key, value)
        return payload


@dataclass
class ClientRecord(EntityRecord):
    kind: ClassVar[str] = CLIENTS

    client_id: Any = None
    client_name: Any = None
    priority_level: Any = None
    requested_task_ids: Any = None
    group_tag: Any = None
    attributes_json: Any = None


@dataclass
class WorkerRecord(EntityRecord):
    kind: ClassVar[str] = WORKERS

    worker_id: Any = None
    worker_name: Any = None
    skills: Any = None
    available_slots: Any = None
    max_load_per_phase: Any = None
    worker_group: Any = None
    qualification_level: Any = None


@dataclass
class TaskRecord(EntityRecord):
    kind: ClassVar[str] = TASKS

    task_id: Any = None
    task_name: Any = None
    category: Any = None
    duration: Any = None
    required_skills: Any = None
    preferred_phases: Any = None
    max_concurrent: Any = None


RECORD_TYPES: dict[str, type[EntityRecord]] = {
    CLIENTS: ClientRecord,
    WORKERS: WorkerRecord,
    TASKS: TaskRecord,
}


def record_from_dict(
    data: Mapping[str, Any],
    kind: str,
    *,
    source: Mapping[str, Any] | None = None,
) -> EntityRecord:
    """Build a record from canonical-field-keyed data without coercing it.

    Keys that are not canonical fields of ``kind`` land in ``extras``.
    """
    specs = {spec.name: spec for spec in fields_for(kind)}
    values = {}
    extras = {}
    for key, value in data.items():
        spec = specs.get(key)
        if spec is None:
            extras[key] = value
        else:
            values[spec.attr] = value
    return RECORD_TYPES[kind](extras=extras, source=dict(source or {}), **values)


def records_from_dicts(items: Iterable[Mapping[str, Any]], kind: str) -> list[EntityRecord]:
    return [record_from_dict(item, kind) for item in items]


@dataclass
class IngestResult:
    kind: str
    records: list[EntityRecord]
    reconciliation: HeaderReconciliation
    headers: list[str]


def collect_headers(rows: Sequence[Mapping[str, Any]]) -> list[str]:
    seen: dict[str, None] = {}
    for row in rows:
        for key in row:
            seen.setdefault(str(key), None)
    return list(seen)


def ingest_rows(
    rows: Sequence[Mapping[str, Any]],
    kind: str,
    *,
    headers: Sequence[str] | None = None,
    threshold: float = DEFAULT_MATCH_THRESHOLD,
    containment_score: float = CONTAINMENT_SCORE,
) -> IngestResult:
    """Reconcile headers once, then coerce every decoded row into a record."""
    check_kind(kind)
    header_list = list(headers) if headers is not None else collect_headers(rows)
    reconciliation = reconcile_headers(
        header_list, kind, threshold=threshold, containment_score=containment_score
    )
    records = []
    for row in rows:
        coerced = coerce_row(row, reconciliation.mapping, reconciliation.passthrough_headers)
        record = record_from_dict(coerced.values, kind, source=coerced.source)
        record.extras.update(coerced.extras)
        records.append(record)
    return IngestResult(
        kind=kind,
        records=records,
        reconciliation=reconciliation,
        headers=header_list,
    )
