"""Canonical schema for the three entity kinds.

Field order matters: the header mapper visits canonical fields in the order
listed here, so an earlier field wins a header that two fields both want.
"""

from __future__ import annotations

from dataclasses import dataclass

CLIENTS = "clients"
WORKERS = "workers"
TASKS = "tasks"
ENTITY_KINDS = (CLIENTS, WORKERS, TASKS)

LIST = "list"
JSON_OBJECT = "json_object"
NUMBER = "number"
INTEGER_LIST = "integer_list"
STRING = "string"

RECOMMENDED_GROUP_TAGS = ("Enterprise", "SMB", "Startup", "Freelancer")


@dataclass(frozen=True)
class FieldSpec:
    name: str
    attr: str
    coercion: str
    alternatives: tuple[str, ...]
    required: bool = False


ENTITY_FIELDS: dict[str, tuple[FieldSpec, ...]] = {
    CLIENTS: (
        FieldSpec("ClientID", "client_id", STRING,
                  ("client_id", "clientid", "id", "client", "client_identifier"), required=True),
        FieldSpec("ClientName", "client_name", STRING,
                  ("client_name", "clientname", "name", "company", "organization"), required=True),
        FieldSpec("PriorityLevel", "priority_level", NUMBER,
                  ("priority_level", "priority", "importance", "urgency"), required=True),
        FieldSpec("RequestedTaskIDs", "requested_task_ids", LIST,
                  ("requested_task_ids", "requested_tasks", "tasks", "task_ids", "taskids")),
        FieldSpec("GroupTag", "group_tag", STRING,
                  ("group_tag", "group", "category", "segment", "type")),
        FieldSpec("AttributesJSON", "attributes_json", JSON_OBJECT,
                  ("attributes_json", "attributes", "metadata", "properties", "extras")),
    ),
    WORKERS: (
        FieldSpec("WorkerID", "worker_id", STRING,
                  ("worker_id", "workerid", "id", "employee_id", "worker"), required=True),
        FieldSpec("WorkerName", "worker_name", STRING,
                  ("worker_name", "workername", "name", "employee_name", "full_name"), required=True),
        FieldSpec("Skills", "skills", LIST,
                  ("skills", "skill_set", "competencies", "abilities", "expertise"), required=True),
        FieldSpec("AvailableSlots", "available_slots", INTEGER_LIST,
                  ("available_slots", "availability", "slots", "capacity", "schedule")),
        FieldSpec("MaxLoadPerPhase", "max_load_per_phase", NUMBER,
                  ("max_load_per_phase", "max_load", "capacity", "workload_limit")),
        FieldSpec("WorkerGroup", "worker_group", STRING,
                  ("worker_group", "group", "team", "department", "division")),
        FieldSpec("QualificationLevel", "qualification_level", NUMBER,
                  ("qualification_level", "level", "experience", "seniority", "grade")),
    ),
    TASKS: (
        FieldSpec("TaskID", "task_id", STRING,
                  ("task_id", "taskid", "id", "task", "task_identifier"), required=True),
        FieldSpec("TaskName", "task_name", STRING,
                  ("task_name", "taskname", "name", "title", "description"), required=True),
        FieldSpec("Category", "category", STRING,
                  ("category", "type", "classification", "domain", "area"), required=True),
        FieldSpec("Duration", "duration", NUMBER,
                  ("duration", "time", "hours", "effort", "estimated_duration"), required=True),
        FieldSpec("RequiredSkills", "required_skills", LIST,
                  ("required_skills", "skills", "skill_requirements", "competencies")),
        FieldSpec("PreferredPhases", "preferred_phases", INTEGER_LIST,
                  ("preferred_phases", "phases", "timeline", "schedule", "periods")),
        FieldSpec("MaxConcurrent", "max_concurrent", NUMBER,
                  ("max_concurrent", "concurrency", "parallel_limit", "simultaneous")),
    ),
}

ID_FIELDS = {CLIENTS: "ClientID", WORKERS: "WorkerID", TASKS: "TaskID"}

_FIELD_INDEX: dict[str, FieldSpec] = {
    spec.name: spec for specs in ENTITY_FIELDS.values() for spec in specs
}


def check_kind(kind: str) -> str:
    if kind not in ENTITY_FIELDS:
        raise ValueError(f"Unknown entity kind '{kind}'. Expected one of: {', '.join(ENTITY_KINDS)}")
    return kind


def fields_for(kind: str) -> tuple[FieldSpec, ...]:
    return ENTITY_FIELDS[check_kind(kind)]


def field_spec(field_name: str) -> FieldSpec:
    try:
        return _FIELD_INDEX[field_name]
    except KeyError:
        raise ValueError(f"Unknown canonical field: {field_name}") from None


def field_alternatives(kind: str) -> dict[str, tuple[str, ...]]:
    return {spec.name: spec.alternatives for spec in fields_for(kind)}


def required_fields(kind: str) -> list[str]:
    return [spec.name for spec in fields_for(kind) if spec.required]
