from __future__ import annotations

import unittest

from roster_doctor.autofix import apply_auto_fixes, generate_auto_fix
from roster_doctor.engine import validate
from roster_doctor.records import record_from_dict
from roster_doctor.schema import CLIENTS, TASKS, WORKERS


def build_clients():
    return [
        record_from_dict(
            {"ClientID": "C1", "ClientName": "Acme", "PriorityLevel": 7, "RequestedTaskIDs": ["T1"], "GroupTag": "Startpu"},
            CLIENTS,
            source={"PriorityLevel": "7", "GroupTag": "Startpu"},
        ),
        record_from_dict(
            {"ClientID": "C1", "ClientName": "Bolt", "PriorityLevel": -3, "RequestedTaskIDs": ["T1"]},
            CLIENTS,
        ),
    ]


class AutoFixTests(unittest.TestCase):
    def test_generate_auto_fix_returns_suggestion(self):
        result = validate(build_clients(), CLIENTS)
        fixable = [item for item in result.diagnostics if item.auto_fix_available]
        self.assertEqual(sorted(generate_auto_fix(item) for item in fixable if item.column == "PriorityLevel"), [1, 5])

    def test_generate_auto_fix_rejects_unfixable(self):
        result = validate(build_clients(), CLIENTS)
        duplicate = [item for item in result.errors if item.message.startswith("Duplicate")][0]
        with self.assertRaises(ValueError):
            generate_auto_fix(duplicate)

    def test_apply_fixes_returns_new_records(self):
        records = build_clients()
        result = validate(records, CLIENTS)
        fixed, applied = apply_auto_fixes(records, result.diagnostics)

        self.assertEqual(len(applied), 3)
        self.assertEqual((fixed[0].priority_level, fixed[0].group_tag), (5, "Startup"))
        self.assertEqual(fixed[1].priority_level, 1)
        self.assertEqual(fixed[0].source, {})
        self.assertEqual(records[0].priority_level, 7)
        self.assertEqual(records[0].source["GroupTag"], "Startpu")

        revalidated = validate(fixed, CLIENTS)
        self.assertEqual([item.message for item in revalidated.diagnostics], ["Duplicate ClientID: C1"])

    def test_collection_and_foreign_diagnostics_are_skipped(self):
        tasks = [
            record_from_dict(
                {"TaskID": "T1", "TaskName": "Build", "Category": "Eng", "Duration": 9, "RequiredSkills": ["go"]},
                TASKS,
            )
        ]
        workers = [
            record_from_dict(
                {"WorkerID": "W1", "WorkerName": "Ana", "Skills": ["go"], "AvailableSlots": [1], "MaxLoadPerPhase": 0},
                WORKERS,
            )
        ]
        task_result = validate(tasks, TASKS, siblings={WORKERS: workers})
        worker_result = validate(workers, WORKERS)
        fixed, applied = apply_auto_fixes(tasks, task_result.diagnostics + worker_result.diagnostics)
        self.assertEqual(applied, [])
        self.assertEqual(fixed[0].duration, 9)


if __name__ == "__main__":
    unittest.main()
