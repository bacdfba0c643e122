"""
loader.py: file decoding for roster-doctor

Supports: .csv .tsv .txt .xlsx .xlsm .json .jsonl

Public API:
    loaded = load_file("path/to/clients.csv")
    rows   = loaded["rows"]      # list of {header: raw value}
    df     = loaded["dataframe"]

Result dict keys:
    dataframe         pandas DataFrame with every cell kept as a string
    rows              decoded rows, blank cells as None
    headers           column names in file order
    detected_format   "csv", "xlsx", "json", ...
    detected_encoding encoding for text files; None for workbooks
    delimiter         delimiter for delimited text; None otherwise
    sheet_name        active sheet for workbooks; None otherwise
    warnings          list of warning strings

The validation core never imports this module; it only sees ``rows``.
"""

from __future__ import annotations

import csv
import io
import json
from collections import Counter
from pathlib import Path
from typing import Any

import chardet
import pandas as pd

TEXT_FORMATS = {".csv", ".tsv", ".txt"}
EXCEL_FORMATS = {".xlsx", ".xlsm"}
JSON_FORMATS = {".json"}
JSONL_FORMATS = {".jsonl"}
ALL_FORMATS = TEXT_FORMATS | EXCEL_FORMATS | JSON_FORMATS | JSONL_FORMATS


def detect_encoding(raw: bytes) -> str:
    result = chardet.detect(raw)
    detected = result.get("encoding") or "utf-8"
    if detected.upper().replace("-", "") == "ASCII":
        return "utf-8"
    return detected


def read_text_safely(raw: bytes, preferred_encoding: str) -> str:
    """Decode line by line (UTF-8, detected encoding, latin-1) and drop NUL bytes."""
    decoded_lines: list[str] = []
    for raw_line in raw.split(b"\n"):
        decoded: str | None = None
        for enc in ("utf-8", preferred_encoding, "latin-1"):
            try:
                decoded = raw_line.decode(enc)
                break
            except (LookupError, UnicodeDecodeError):
                continue
        if decoded is None:
            decoded = raw_line.decode("cp1252", errors="replace")
        decoded_lines.append(decoded.replace("\x00", ""))
    return "\n".join(decoded_lines).lstrip("﻿")


def detect_delimiter(text: str) -> str:
    """Sniff the delimiter; fall back to the candidate with the most stable width."""
    sample_lines = [line for line in text.splitlines() if line.strip()][:50]
    sample = "\n".join(sample_lines[:25])
    if sample:
        try:
            return csv.Sniffer().sniff(sample, delimiters=",;\t|").delimiter
        except csv.Error:
            pass

    best_delim = ","
    best_score = float("-inf")
    for delim in (",", ";", "\t", "|"):
        rows = [
            row
            for row in csv.reader(io.StringIO("\n".join(sample_lines)), delimiter=delim)
            if any(cell.strip() for cell in row)
        ]
        if len(rows) < 2:
            continue
        mode_width, mode_count = Counter(len(row) for row in rows).most_common(1)[0]
        score = mode_width * 2.0 + (mode_count / len(rows)) * mode_width
        if mode_width == 1:
            score -= 10.0
        if score > best_score:
            best_score = score
            best_delim = delim
    return best_delim


def _cell(value: Any) -> Any:
    if isinstance(value, (list, dict)):
        return value
    return None if pd.isna(value) else value


def rows_from_dataframe(df: pd.DataFrame) -> list[dict[str, Any]]:
    columns = [str(column) for column in df.columns]
    return [
        {column: _cell(value) for column, value in zip(columns, values)}
        for values in df.itertuples(index=False, name=None)
    ]


def _result(df: pd.DataFrame, fmt: str, **extra: Any) -> dict[str, Any]:
    payload = {
        "dataframe": df,
        "rows": rows_from_dataframe(df),
        "headers": [str(column) for column in df.columns],
        "detected_format": fmt,
        "detected_encoding": None,
        "delimiter": None,
        "sheet_name": None,
        "warnings": [],
    }
    payload.update(extra)
    return payload


def _load_text(path: Path, suffix: str) -> dict[str, Any]:
    raw = path.read_bytes()
    encoding = detect_encoding(raw)
    text = read_text_safely(raw, encoding)
    delimiter = "\t" if suffix == ".tsv" else detect_delimiter(text)
    sep = r"\|" if delimiter == "|" else delimiter
    try:
        df = pd.read_csv(
            io.StringIO(text),
            dtype=str,
            keep_default_na=False,
            na_values=[""],
            skip_blank_lines=True,
            on_bad_lines="skip",
            sep=sep,
            engine="python",
        )
    except Exception as exc:
        raise ValueError(f"Could not parse {suffix} file: {exc}") from exc
    return _result(df, suffix.lstrip("."), detected_encoding=encoding, delimiter=delimiter)


def _load_excel(path: Path, suffix: str, sheet_name: str | None) -> dict[str, Any]:
    warnings: list[str] = []
    try:
        with pd.ExcelFile(path, engine="openpyxl") as workbook:
            all_sheets = list(workbook.sheet_names)
    except Exception as exc:
        raise ValueError(f"Could not read workbook: {exc}") from exc

    if sheet_name is None:
        sheet_name = all_sheets[0]
        if len(all_sheets) > 1:
            warnings.append(
                f"Multiple sheets found ({len(all_sheets)} total); used '{sheet_name}'. "
                f"Ignored: {all_sheets[1:]}"
            )
    elif sheet_name not in all_sheets:
        raise ValueError(f"Sheet '{sheet_name}' not found. Available: {all_sheets}")

    try:
        df = pd.read_excel(path, sheet_name=sheet_name, dtype=str, engine="openpyxl")
    except Exception as exc:
        raise ValueError(f"Could not load sheet '{sheet_name}': {exc}") from exc
    return _result(df, suffix.lstrip("."), sheet_name=sheet_name, warnings=warnings)


def _records_from_json(data: Any, kind: str | None) -> tuple[list[Any], list[str]]:
    if isinstance(data, list):
        return data, []
    if not isinstance(data, dict):
        raise ValueError(f"JSON root must be an array or object, got {type(data).__name__}")
    exported = data.get("data")
    if kind and isinstance(exported, dict) and isinstance(exported.get(kind), list):
        return exported[kind], [f"Export document: used data.{kind}"]
    if kind and isinstance(data.get(kind), list):
        return data[kind], [f"Nested JSON: used array at top-level key '{kind}'"]
    list_keys = [key for key, value in data.items() if isinstance(value, list)]
    if list_keys:
        return data[list_keys[0]], [f"Nested JSON: used array at top-level key '{list_keys[0]}'"]
    return [data], ["JSON is a single object; treated as a one-row table"]


def _load_json(path: Path, kind: str | None) -> dict[str, Any]:
    raw = path.read_bytes()
    encoding = detect_encoding(raw)
    try:
        data = json.loads(raw.decode(encoding, errors="replace"))
    except ValueError as exc:
        raise ValueError(f"Invalid JSON: {exc}") from exc
    records, warnings = _records_from_json(data, kind)
    if not all(isinstance(item, dict) for item in records):
        raise ValueError("JSON records must be objects")
    df = pd.DataFrame.from_records(records) if records else pd.DataFrame()
    return _result(df, "json", detected_encoding=encoding, warnings=warnings)


def _load_jsonl(path: Path) -> dict[str, Any]:
    raw = path.read_bytes()
    encoding = detect_encoding(raw)
    records: list[dict[str, Any]] = []
    parse_errors: list[str] = []
    for line_num, line in enumerate(raw.decode(encoding, errors="replace").splitlines(), start=1):
        line = line.strip()
        if not line:
            continue
        try:
            item = json.loads(line)
        except ValueError as exc:
            parse_errors.append(f"line {line_num}: {exc}")
            continue
        if isinstance(item, dict):
            records.append(item)
        else:
            parse_errors.append(f"line {line_num}: not a JSON object")

    warnings: list[str] = []
    if parse_errors:
        sample = "; ".join(parse_errors[:3])
        extra = f" (+{len(parse_errors) - 3} more)" if len(parse_errors) > 3 else ""
        warnings.append(f"{len(parse_errors)} lines could not be parsed: {sample}{extra}")
    df = pd.DataFrame.from_records(records) if records else pd.DataFrame()
    return _result(df, "jsonl", detected_encoding=encoding, warnings=warnings)


def load_file(
    path: "str | Path",
    *,
    kind: str | None = None,
    sheet_name: str | None = None,
) -> dict[str, Any]:
    """Decode a supported file into header -> raw value rows.

    ``kind`` only matters for JSON inputs, where it selects the matching array
    from an export document or a keyed object.

    Raises:
        FileNotFoundError  if the file does not exist.
        ValueError         if the format is unsupported or unreadable.
    """
    path = Path(path)
    suffix = path.suffix.lower()

    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")
    if suffix not in ALL_FORMATS:
        raise ValueError(f"Unsupported format '{suffix}'. Supported: {', '.join(sorted(ALL_FORMATS))}")

    if suffix in TEXT_FORMATS:
        return _load_text(path, suffix)
    if suffix in EXCEL_FORMATS:
        return _load_excel(path, suffix, sheet_name)
    if suffix in JSON_FORMATS:
        return _load_json(path, kind)
    return _load_jsonl(path)
