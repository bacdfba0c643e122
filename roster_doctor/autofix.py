"""Apply the fixes that diagnostics offer, without touching the input records.

Diagnostics stay immutable: a caller applies fixes to get new records and
then re-runs validation on them.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Iterable, Sequence
from typing import Any

from roster_doctor.diagnostics import ROW_SCOPE, Diagnostic
from roster_doctor.records import EntityRecord
from roster_doctor.schema import field_spec


def generate_auto_fix(diagnostic: Diagnostic) -> Any:
    """Return the replacement value for a fixable diagnostic, else raise ValueError."""
    if not diagnostic.auto_fix_available:
        raise ValueError(f"No automatic fix for: {diagnostic.message}")
    return diagnostic.suggestion


def apply_auto_fixes(
    records: Sequence[EntityRecord],
    diagnostics: Iterable[Diagnostic],
) -> tuple[list[EntityRecord], list[Diagnostic]]:
    """Return copies of ``records`` with every applicable fix written in.

    Only row-scoped, auto-fixable diagnostics for the records' own kind and
    for a canonical field are applied. When several fixes target the same
    cell the last one wins.
    """
    fixed = [
        dataclasses.replace(record, extras=dict(record.extras), source=dict(record.source))
        for record in records
    ]
    applied: list[Diagnostic] = []
    for diagnostic in diagnostics:
        if not diagnostic.auto_fix_available or diagnostic.scope != ROW_SCOPE:
            continue
        if not 0 <= diagnostic.row < len(fixed):
            continue
        record = fixed[diagnostic.row]
        if record.kind != diagnostic.entity:
            continue
        try:
            spec = field_spec(diagnostic.column)
        except ValueError:
            continue
        if not hasattr(record, spec.attr):
            continue
        setattr(record, spec.attr, generate_auto_fix(diagnostic))
        record.source.pop(diagnostic.column, None)
        applied.append(diagnostic)
    return fixed, applied
