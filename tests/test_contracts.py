from __future__ import annotations

import json
import unittest
from pathlib import Path

from roster_doctor.contracts import (
    CONTRACT_VERSIONS,
    build_contract,
    build_export_document,
    build_run_summary,
)
from roster_doctor.engine import validate_all
from roster_doctor.records import record_from_dict
from roster_doctor.rules import BusinessRule, RulesConfiguration
from roster_doctor.schema import CLIENTS, TASKS


CLIENT = record_from_dict(
    {"ClientID": "C1", "ClientName": "Acme", "PriorityLevel": 9, "RequestedTaskIDs": ["T1"], "Notes": "vip"},
    CLIENTS,
)
TASK = record_from_dict({"TaskID": "T1", "TaskName": "Build", "Category": "Eng", "Duration": 2}, TASKS)


class ContractTests(unittest.TestCase):
    def test_build_contract_uses_registered_version(self):
        self.assertEqual(
            build_contract("roster_doctor.validation"),
            {"name": "roster_doctor.validation", "version": CONTRACT_VERSIONS["roster_doctor.validation"]},
        )
        with self.assertRaises(KeyError):
            build_contract("roster_doctor.unknown")

    def test_run_summary(self):
        summary = build_run_summary(
            tool="roster-doctor",
            command="validate",
            input_paths={"clients": Path("clients.csv")},
            status="failed",
            warnings=["clients: no column found for PriorityLevel"],
        )
        self.assertEqual(summary["input_files"], {"clients": "clients.csv"})
        self.assertEqual(summary["warnings_count"], 1)
        self.assertIsNone(summary["output_file"])
        self.assertTrue(summary["generated_at"].endswith("Z"))


class ExportDocumentTests(unittest.TestCase):
    def test_export_has_metadata_and_every_kind(self):
        document = build_export_document({CLIENTS: [CLIENT]})
        self.assertEqual(document["metadata"]["version"], "1.0")
        self.assertTrue(document["metadata"]["exportDate"].endswith("Z"))
        self.assertEqual(set(document["data"]), {"clients", "workers", "tasks"})
        self.assertEqual(document["data"]["workers"], [])
        self.assertNotIn("Notes", document["data"]["clients"][0])
        self.assertEqual(document["data"]["clients"][0]["PriorityLevel"], 9)
        self.assertNotIn("configuration", document)
        self.assertNotIn("validation", document)
        json.dumps(document)

    def test_export_with_configuration_and_validation(self):
        configuration = RulesConfiguration(
            business_rules=[
                BusinessRule(id="R1", name="Active", description=""),
                BusinessRule(id="R2", name="Off", description="", active=False),
            ]
        )
        results = validate_all(clients=[CLIENT], tasks=[TASK])
        document = build_export_document(
            {CLIENTS: [CLIENT], TASKS: [TASK]},
            configuration=configuration,
            validation=results,
        )
        config_section = document["configuration"]
        self.assertEqual([rule["id"] for rule in config_section["businessRules"]], ["R1"])
        self.assertEqual(config_section["configVersion"], "1.0")
        self.assertEqual(config_section["prioritySettings"]["skillMatchWeight"], 25)
        error = document["validation"]["clients"]["errors"][0]
        self.assertEqual(
            set(error),
            {"id", "severity", "impact", "entity", "row", "column", "message", "value", "suggestion", "auto_fix_available", "scope"},
        )
        self.assertEqual(error["impact"], "high")
        self.assertEqual(document["validation"]["tasks"]["confidence"], 100)


if __name__ == "__main__":
    unittest.main()
