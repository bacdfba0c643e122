"""Tunable thresholds and the JSON config file that overrides them."""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any

from roster_doctor.header_mapper import DEFAULT_MATCH_THRESHOLD
from roster_doctor.schema import RECOMMENDED_GROUP_TAGS
from roster_doctor.similarity import CONTAINMENT_SCORE

SUPPORTED_CONFIG_SUFFIXES = {".json"}
CONFIG_SECTIONS = {"validation", "priority_settings", "business_rules"}


@dataclass(frozen=True)
class ValidationSettings:
    header_match_threshold: float = DEFAULT_MATCH_THRESHOLD
    containment_score: float = CONTAINMENT_SCORE
    min_client_name_length: int = 2
    min_worker_name_length: int = 2
    min_task_name_length: int = 3
    recommended_group_tags: tuple[str, ...] = RECOMMENDED_GROUP_TAGS
    qualification_range: tuple[float, float] = (1, 10)
    long_duration_threshold: float = 1000
    task_id_hint_threshold: float = 0.6

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["recommended_group_tags"] = list(self.recommended_group_tags)
        payload["qualification_range"] = list(self.qualification_range)
        return payload


DEFAULT_SETTINGS = ValidationSettings()


def settings_from_dict(payload: dict[str, Any]) -> ValidationSettings:
    known = {item.name for item in fields(ValidationSettings)}
    unknown = sorted(set(payload) - known)
    if unknown:
        raise ValueError(f"Unknown settings: {', '.join(unknown)}")

    values = dict(payload)
    if "recommended_group_tags" in values:
        values["recommended_group_tags"] = tuple(str(tag) for tag in values["recommended_group_tags"])
    if "qualification_range" in values:
        bounds = tuple(values["qualification_range"])
        if len(bounds) != 2 or bounds[0] > bounds[1]:
            raise ValueError("qualification_range must be [low, high]")
        values["qualification_range"] = bounds
    threshold = values.get("header_match_threshold", DEFAULT_MATCH_THRESHOLD)
    if not 0 <= threshold < 1:
        raise ValueError("header_match_threshold must be in [0, 1)")
    return ValidationSettings(**values)


def read_config_file(path: Path) -> dict[str, Any]:
    if not path.exists():
        raise FileNotFoundError(f"Config not found: {path}")
    if path.suffix.lower() not in SUPPORTED_CONFIG_SUFFIXES:
        raise ValueError("Config must be a .json file")
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except ValueError as exc:
        raise ValueError(f"Could not read config: {exc}") from exc
    if not isinstance(payload, dict):
        raise ValueError("Config must be a JSON object")
    return payload


def settings_from_config(payload: dict[str, Any]) -> ValidationSettings:
    if CONFIG_SECTIONS & set(payload):
        return settings_from_dict(payload.get("validation") or {})
    return settings_from_dict(payload)


def load_settings(path: Path) -> ValidationSettings:
    return settings_from_config(read_config_file(path))
