"""Lenient cell coercion.

Every function here is total: bad input degrades to None or to the original
value, and the validator reports it later.
"""

from __future__ import annotations

import json
import math
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

import pandas as pd

from roster_doctor.schema import (
    INTEGER_LIST,
    JSON_OBJECT,
    LIST,
    NUMBER,
    field_spec,
)


def is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, dict, set)):
        return False
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def _split_pieces(text: str) -> list[Any]:
    """Bracket-or-comma splitting shared by the list coercions."""
    if text.startswith("[") and text.endswith("]"):
        try:
            parsed = json.loads(text)
        except ValueError:
            return [piece.strip().strip("'\"").strip() for piece in text[1:-1].split(",")]
        return parsed
    return [piece.strip() for piece in text.split(",") if piece.strip()]


def parse_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) and value.is_integer() else None
    if not isinstance(value, str):
        return None
    text = value.strip()
    try:
        return int(text)
    except ValueError:
        pass
    number = parse_number(text)
    if number is not None and number.is_integer():
        return int(number)
    return None


def parse_number(value: Any) -> float | None:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        try:
            number = float(str(value).strip())
        except ValueError:
            return None
    return number if math.isfinite(number) else None


def coerce_list(value: Any) -> list[Any]:
    if isinstance(value, (list, tuple)):
        return list(value)
    return _split_pieces(str(value).strip())


def coerce_integer_list(value: Any) -> list[int]:
    pieces = list(value) if isinstance(value, (list, tuple)) else _split_pieces(str(value).strip())
    result: list[int] = []
    for piece in pieces:
        parsed = parse_int(piece)
        if parsed is not None:
            result.append(parsed)
    return result


def _reject_constant(name: str) -> Any:
    raise ValueError(f"Invalid JSON constant: {name}")


def strict_json_loads(text: str) -> Any:
    """Parse JSON text, refusing the NaN and Infinity extensions."""
    return json.loads(text, parse_constant=_reject_constant)


def coerce_json_object(value: Any) -> Any:
    if not isinstance(value, str):
        return value
    try:
        return strict_json_loads(value.strip())
    except ValueError:
        return value


def coerce_value(raw: Any, field_name: str) -> Any:
    """Convert one raw cell to the type its canonical field implies."""
    coercion = field_spec(field_name).coercion
    if is_blank(raw):
        return None
    if coercion == LIST:
        return coerce_list(raw)
    if coercion == JSON_OBJECT:
        return coerce_json_object(raw)
    if coercion == NUMBER:
        return parse_number(raw)
    if coercion == INTEGER_LIST:
        return coerce_integer_list(raw)
    return str(raw).strip()


@dataclass
class CoercedRow:
    values: dict[str, Any]
    source: dict[str, Any]
    extras: dict[str, Any] = field(default_factory=dict)


def coerce_row(
    row: Mapping[str, Any],
    mapping: Mapping[str, str],
    passthrough_headers: list[str] | None = None,
) -> CoercedRow:
    values: dict[str, Any] = {}
    source: dict[str, Any] = {}
    for canonical_field, header in mapping.items():
        raw = row.get(header)
        source[canonical_field] = raw
        values[canonical_field] = coerce_value(raw, canonical_field)

    claimed = set(mapping.values())
    if passthrough_headers is None:
        passthrough_headers = [header for header in row if header not in claimed]
    extras = {header: row.get(header) for header in passthrough_headers if header not in claimed}
    return CoercedRow(values=values, source=source, extras=extras)


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))
