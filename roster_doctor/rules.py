"""Business-rule and priority-weight configuration carried into exports.

These are plain values: roster-doctor checks their shape and writes them out,
it does not evaluate them or allocate anything.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from roster_doctor.schema import ENTITY_KINDS

RULE_TYPES = ("allocation", "constraint", "priority", "dependency")
CONDITION_OPERATORS = ("equals", "not_equals", "greater_than", "less_than", "contains", "in", "not_in")
ACTION_TYPES = ("assign", "restrict", "prioritize", "group")
CONFIG_VERSION = "1.0"

WEIGHT_KEYS = (
    ("client_priority_weight", "clientPriorityWeight"),
    ("skill_match_weight", "skillMatchWeight"),
    ("workload_balance_weight", "workloadBalanceWeight"),
    ("deadline_weight", "deadlineWeight"),
    ("cost_optimization_weight", "costOptimizationWeight"),
)
WEIGHT_TOTAL_TOLERANCE = (95, 105)


def _choice(value: Any, allowed: tuple[str, ...], label: str) -> str:
    if value not in allowed:
        raise ValueError(f"Invalid {label} '{value}'. Expected one of: {', '.join(allowed)}")
    return value


@dataclass(frozen=True)
class RuleCondition:
    field: str
    operator: str
    value: Any
    entity: str

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "RuleCondition":
        return cls(
            field=str(payload["field"]),
            operator=_choice(payload.get("operator"), CONDITION_OPERATORS, "condition operator"),
            value=payload.get("value"),
            entity=_choice(payload.get("entity"), ENTITY_KINDS, "condition entity"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {"field": self.field, "operator": self.operator, "value": self.value, "entity": self.entity}


@dataclass(frozen=True)
class RuleAction:
    type: str
    target: str
    value: Any = None

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "RuleAction":
        return cls(
            type=_choice(payload.get("type"), ACTION_TYPES, "action type"),
            target=str(payload["target"]),
            value=payload.get("value"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "target": self.target, "value": self.value}


@dataclass(frozen=True)
class BusinessRule:
    id: str
    name: str
    description: str
    type: str = "allocation"
    active: bool = True
    conditions: tuple[RuleCondition, ...] = ()
    actions: tuple[RuleAction, ...] = ()
    priority: int = 5

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "BusinessRule":
        try:
            rule_id = str(payload["id"])
            name = str(payload["name"])
        except KeyError as exc:
            raise ValueError(f"Business rule is missing {exc.args[0]!r}") from exc
        priority = int(payload.get("priority", 5))
        if not 1 <= priority <= 10:
            raise ValueError(f"Business rule {rule_id}: priority must be between 1 and 10")
        return cls(
            id=rule_id,
            name=name,
            description=str(payload.get("description", "")),
            type=_choice(payload.get("type", "allocation"), RULE_TYPES, "rule type"),
            active=bool(payload.get("active", True)),
            conditions=tuple(RuleCondition.from_dict(item) for item in payload.get("conditions", [])),
            actions=tuple(RuleAction.from_dict(item) for item in payload.get("actions", [])),
            priority=priority,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "type": self.type,
            "active": self.active,
            "conditions": [item.to_dict() for item in self.conditions],
            "actions": [item.to_dict() for item in self.actions],
            "priority": self.priority,
        }


@dataclass(frozen=True)
class PrioritySettings:
    client_priority_weight: int = 30
    skill_match_weight: int = 25
    workload_balance_weight: int = 20
    deadline_weight: int = 15
    cost_optimization_weight: int = 10

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "PrioritySettings":
        values = {}
        for attr, export_key in WEIGHT_KEYS:
            raw = payload.get(attr, payload.get(export_key))
            if raw is None:
                continue
            weight = int(raw)
            if not 0 <= weight <= 100:
                raise ValueError(f"{attr} must be between 0 and 100")
            values[attr] = weight
        return cls(**values)

    @property
    def total_weight(self) -> int:
        return sum(getattr(self, attr) for attr, _ in WEIGHT_KEYS)

    @property
    def is_balanced(self) -> bool:
        low, high = WEIGHT_TOTAL_TOLERANCE
        return low <= self.total_weight <= high

    def to_dict(self) -> dict[str, int]:
        return {export_key: getattr(self, attr) for attr, export_key in WEIGHT_KEYS}


@dataclass
class RulesConfiguration:
    business_rules: list[BusinessRule] = field(default_factory=list)
    priority_settings: PrioritySettings = field(default_factory=PrioritySettings)

    @classmethod
    def from_config(cls, payload: dict[str, Any]) -> "RulesConfiguration":
        rules = [BusinessRule.from_dict(item) for item in payload.get("business_rules", [])]
        seen: set[str] = set()
        for rule in rules:
            if rule.id in seen:
                raise ValueError(f"Duplicate business rule id: {rule.id}")
            seen.add(rule.id)
        return cls(
            business_rules=rules,
            priority_settings=PrioritySettings.from_dict(payload.get("priority_settings", {})),
        )

    def active_rules(self) -> list[BusinessRule]:
        return [rule for rule in self.business_rules if rule.active]

    def warnings(self) -> list[str]:
        if self.priority_settings.is_balanced:
            return []
        return [f"Priority weights total {self.priority_settings.total_weight}%, expected about 100%"]
