"""Diagnostic value objects, the per-call accumulator and validation results.

Severity policy lives here so the entity and cross-entity validators cannot
drift: structural problems are errors, quality concerns are warnings, and
only errors affect ``is_valid`` and ``confidence``.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from roster_doctor.coercion import round_half_up

ERROR = "error"
WARNING = "warning"

IMPACT_BY_SEVERITY = {ERROR: "high", WARNING: "medium"}

ROW_SCOPE = "row"
COLLECTION_SCOPE = "collection"
COLLECTION_ROW = 0


def new_diagnostic_id() -> str:
    return uuid.uuid4().hex


@dataclass(frozen=True)
class Diagnostic:
    id: str
    severity: str
    entity: str
    row: int
    column: str
    message: str
    value: Any = None
    suggestion: Any = None
    auto_fix_available: bool = False
    scope: str = ROW_SCOPE

    @property
    def impact(self) -> str:
        return IMPACT_BY_SEVERITY[self.severity]

    @property
    def is_error(self) -> bool:
        return self.severity == ERROR

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "severity": self.severity,
            "impact": self.impact,
            "entity": self.entity,
            "row": self.row,
            "column": self.column,
            "message": self.message,
            "value": self.value,
            "suggestion": self.suggestion,
            "auto_fix_available": self.auto_fix_available,
            "scope": self.scope,
        }


class DiagnosticCollector:
    """Accumulates diagnostics for exactly one validation call."""

    def __init__(self) -> None:
        self.diagnostics: list[Diagnostic] = []

    def _add(
        self,
        severity: str,
        entity: str,
        row: int,
        column: str,
        message: str,
        value: Any,
        suggestion: Any,
        auto_fix: bool,
        scope: str,
    ) -> Diagnostic:
        diagnostic = Diagnostic(
            id=new_diagnostic_id(),
            severity=severity,
            entity=entity,
            row=row,
            column=column,
            message=message,
            value=value,
            suggestion=suggestion,
            auto_fix_available=auto_fix and suggestion is not None,
            scope=scope,
        )
        self.diagnostics.append(diagnostic)
        return diagnostic

    def error(
        self,
        entity: str,
        row: int,
        column: str,
        message: str,
        value: Any = None,
        *,
        suggestion: Any = None,
        auto_fix: bool = False,
        scope: str = ROW_SCOPE,
    ) -> Diagnostic:
        return self._add(ERROR, entity, row, column, message, value, suggestion, auto_fix, scope)

    def warning(
        self,
        entity: str,
        row: int,
        column: str,
        message: str,
        value: Any = None,
        *,
        suggestion: Any = None,
        auto_fix: bool = False,
        scope: str = ROW_SCOPE,
    ) -> Diagnostic:
        return self._add(WARNING, entity, row, column, message, value, suggestion, auto_fix, scope)


def compute_confidence(total_rows: int, rows_with_errors: int) -> int:
    if total_rows <= 0:
        return 100
    valid_rows = max(total_rows - rows_with_errors, 0)
    return round_half_up(100 * valid_rows / total_rows)


@dataclass
class ValidationResult:
    entity: str
    total_rows: int
    diagnostics: list[Diagnostic] = field(default_factory=list)

    @property
    def errors(self) -> list[Diagnostic]:
        return [item for item in self.diagnostics if item.severity == ERROR]

    @property
    def warnings(self) -> list[Diagnostic]:
        return [item for item in self.diagnostics if item.severity == WARNING]

    @property
    def is_valid(self) -> bool:
        return not self.errors

    @property
    def rows_with_errors(self) -> set[int]:
        return {
            item.row
            for item in self.errors
            if item.entity == self.entity and item.scope == ROW_SCOPE
        }

    @property
    def valid_rows(self) -> int:
        return max(self.total_rows - len(self.rows_with_errors), 0)

    @property
    def confidence(self) -> int:
        return compute_confidence(self.total_rows, len(self.rows_with_errors))

    def summary(self) -> dict[str, int]:
        return {
            "total_errors": len(self.errors),
            "total_warnings": len(self.warnings),
            "valid_rows": self.valid_rows,
            "total_rows": self.total_rows,
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "entity": self.entity,
            "is_valid": self.is_valid,
            "confidence": self.confidence,
            "summary": self.summary(),
            "errors": [item.to_dict() for item in self.errors],
            "warnings": [item.to_dict() for item in self.warnings],
        }


def strip_ids(diagnostics: Iterable[Diagnostic]) -> list[dict[str, Any]]:
    """Diagnostic payloads without their generated ids, for comparing runs."""
    payloads = []
    for item in diagnostics:
        payload = item.to_dict()
        payload.pop("id")
        payloads.append(payload)
    return payloads
