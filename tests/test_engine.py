from __future__ import annotations

import json
import unittest

from roster_doctor.diagnostics import strip_ids
from roster_doctor.engine import overall_summary, validate, validate_all
from roster_doctor.records import records_from_dicts
from roster_doctor.schema import CLIENTS, TASKS, WORKERS


def client_rows(count, bad_rows=()):
    rows = []
    for index in range(count):
        rows.append(
            {
                "ClientID": f"C{index}",
                "ClientName": "Acme",
                "PriorityLevel": 9 if index in bad_rows else 3,
                "RequestedTaskIDs": ["T1"],
            }
        )
    return records_from_dicts(rows, CLIENTS)


TASKS_FIXTURE = records_from_dicts(
    [{"TaskID": "T1", "TaskName": "Build", "Category": "Eng", "Duration": 4, "RequiredSkills": ["python"], "PreferredPhases": [1]}],
    TASKS,
)
WORKERS_FIXTURE = records_from_dicts(
    [{"WorkerID": "W1", "WorkerName": "Ana", "Skills": ["python"], "AvailableSlots": [1], "MaxLoadPerPhase": 1}],
    WORKERS,
)


class ValidateTests(unittest.TestCase):
    def test_confidence_counts_rows_with_errors(self):
        result = validate(client_rows(10, bad_rows={2, 5, 8}), CLIENTS)
        self.assertEqual(result.confidence, 70)
        self.assertFalse(result.is_valid)
        self.assertEqual(result.summary(), {"total_errors": 3, "total_warnings": 0, "valid_rows": 7, "total_rows": 10})

    def test_several_errors_on_one_row_count_once(self):
        records = client_rows(10, bad_rows={2, 5, 8})
        records[5].client_name = None
        result = validate(records, CLIENTS)
        self.assertEqual(len(result.errors), 4)
        self.assertEqual(result.confidence, 70)

    def test_empty_collection_is_fully_confident(self):
        result = validate([], TASKS)
        self.assertTrue(result.is_valid)
        self.assertEqual(result.confidence, 100)

    def test_warnings_do_not_affect_validity(self):
        records = client_rows(1)
        records[0].group_tag = "Zzzz"
        result = validate(records, CLIENTS)
        self.assertTrue(result.is_valid)
        self.assertEqual(len(result.warnings), 1)
        self.assertEqual(result.confidence, 100)

    def test_siblings_enable_cross_checks_for_own_kind(self):
        records = client_rows(1)
        records[0].requested_task_ids = ["T9"]
        result = validate(records, CLIENTS, siblings={TASKS: TASKS_FIXTURE})
        self.assertEqual([item.message for item in result.errors], ["Referenced task IDs not found: T9"])
        self.assertEqual(validate(records, CLIENTS).errors, [])

    def test_collection_warning_does_not_mark_rows_invalid(self):
        result = validate(TASKS_FIXTURE, TASKS, siblings={WORKERS: WORKERS_FIXTURE})
        self.assertEqual([item.scope for item in result.warnings], ["collection"])
        self.assertEqual(result.valid_rows, 1)

    def test_repeated_runs_are_identical_apart_from_ids(self):
        records = client_rows(4, bad_rows={1})
        records[3].requested_task_ids = ["T1", "T7"]
        first = validate(records, CLIENTS, siblings={TASKS: TASKS_FIXTURE})
        second = validate(records, CLIENTS, siblings={TASKS: TASKS_FIXTURE})
        self.assertEqual(
            json.dumps(strip_ids(first.diagnostics), sort_keys=True),
            json.dumps(strip_ids(second.diagnostics), sort_keys=True),
        )
        self.assertNotEqual(first.diagnostics[0].id, second.diagnostics[0].id)

    def test_unknown_kind_raises(self):
        with self.assertRaises(ValueError):
            validate([], "vendors")


class ValidateAllTests(unittest.TestCase):
    def test_cross_diagnostics_are_routed_to_their_collection(self):
        clients = client_rows(2)
        clients[1].requested_task_ids = ["T9"]
        results = validate_all(clients=clients, workers=WORKERS_FIXTURE, tasks=TASKS_FIXTURE)
        self.assertEqual(set(results), {CLIENTS, WORKERS, TASKS})
        self.assertEqual([(item.row, item.column) for item in results[CLIENTS].errors], [(1, "RequestedTaskIDs")])
        self.assertEqual(len(results[TASKS].warnings), 1)
        self.assertTrue(results[WORKERS].is_valid)

    def test_missing_collections_are_left_out(self):
        results = validate_all(clients=client_rows(1))
        self.assertEqual(list(results), [CLIENTS])

    def test_overall_summary(self):
        results = validate_all(clients=client_rows(4, bad_rows={0}), tasks=TASKS_FIXTURE)
        self.assertEqual(
            overall_summary(results),
            {
                "is_valid": False,
                "total_errors": 1,
                "total_warnings": 0,
                "valid_rows": 4,
                "total_rows": 5,
                "confidence": 80,
            },
        )


if __name__ == "__main__":
    unittest.main()
