from __future__ import annotations

import json
import os
import subprocess
import sys
import tempfile
import unittest
from pathlib import Path

from roster_doctor import __version__
from roster_doctor.cli import json_dumps


ROOT = Path(__file__).resolve().parents[1]
CLI = [sys.executable, "-m", "roster_doctor.cli"]
FIXED_STAMP = "20260301T010203Z"
SAMPLE_INPUTS = [
    "--clients", "sample-data/clients.csv",
    "--workers", "sample-data/workers.csv",
    "--tasks", "sample-data/tasks.csv",
]
CLEAN_INPUTS = [
    "--clients", "sample-data/clean_clients.csv",
    "--tasks", "sample-data/clean_tasks.csv",
]


def run_cli(*args: str, env: dict[str, str] | None = None) -> subprocess.CompletedProcess[str]:
    merged_env = dict(os.environ)
    merged_env["ROSTER_DOCTOR_OUTPUT_STAMP"] = FIXED_STAMP
    if env:
        merged_env.update(env)
    return subprocess.run(
        [*CLI, *args],
        cwd=ROOT,
        capture_output=True,
        text=True,
        env=merged_env,
    )


class RosterDoctorCliTests(unittest.TestCase):
    def test_version(self):
        proc = run_cli("version")
        self.assertEqual(proc.returncode, 0, proc.stderr)
        self.assertEqual(proc.stdout.strip(), __version__)

    def test_unknown_command_returns_exit_1(self):
        proc = run_cli("diagnose")
        self.assertEqual(proc.returncode, 1)

    def test_map_reports_messy_headers(self):
        proc = run_cli("map", "sample-data/clients.csv", "--kind", "clients", "--json")
        self.assertEqual(proc.returncode, 0, proc.stderr)
        payload = json.loads(proc.stdout)
        self.assertEqual(payload["contract"]["name"], "roster_doctor.header_map")
        self.assertEqual(
            payload["mapping"],
            {
                "ClientID": "Client ID",
                "ClientName": "Company",
                "PriorityLevel": "Priority",
                "RequestedTaskIDs": "Requested Tasks",
                "GroupTag": "Segment",
                "AttributesJSON": "Attributes",
            },
        )
        self.assertEqual(payload["passthrough_headers"], ["Notes"])
        self.assertEqual(payload["confidence"], 100)

    def test_map_text_output_goes_to_stderr(self):
        proc = run_cli("map", "sample-data/tasks.csv", "--kind", "tasks")
        self.assertEqual(proc.returncode, 0, proc.stderr)
        self.assertEqual(proc.stdout, "")
        self.assertIn("RequiredSkills <- Skills Needed (0.80)", proc.stderr)

    def test_validate_messy_sample_returns_exit_5(self):
        proc = run_cli("validate", *SAMPLE_INPUTS, "--json")
        self.assertEqual(proc.returncode, 5, proc.stderr)
        self.assertEqual(proc.stderr.strip(), "")
        payload = json.loads(proc.stdout)
        summary = payload["summary"]
        self.assertFalse(summary["is_valid"])
        self.assertEqual((summary["total_errors"], summary["total_warnings"]), (6, 5))
        self.assertEqual(summary["confidence"], 50)

        clients = payload["results"]["clients"]
        self.assertEqual(clients["confidence"], 25)
        by_column = {(item["row"], item["column"]): item for item in clients["errors"]}
        self.assertEqual(by_column[(1, "PriorityLevel")]["suggestion"], 5)
        self.assertIn("T9", by_column[(2, "RequestedTaskIDs")]["message"])
        self.assertEqual(by_column[(3, "ClientID")]["message"], "Duplicate ClientID: C1")
        self.assertEqual(clients["warnings"][0]["suggestion"], "Startup")
        self.assertEqual(payload["run_summary"]["generated_at"], "1970-01-01T00:00:00Z")

    def test_validate_clean_sample_writes_report(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            proc = run_cli("validate", *CLEAN_INPUTS, "--out", tmpdir)
            self.assertEqual(proc.returncode, 0, proc.stderr)
            self.assertIn("Validation report:", proc.stderr)
            self.assertIn("Confidence: 100%", proc.stderr)
            report = json.loads((Path(tmpdir) / "validation.json").read_text(encoding="utf-8"))
            self.assertTrue(report["summary"]["is_valid"])
            self.assertEqual(set(report["results"]), {"clients", "tasks"})
            self.assertEqual(report["run_summary"]["status"], "ok")

    def test_validate_verbose_lists_diagnostics(self):
        proc = run_cli("validate", *SAMPLE_INPUTS, "-v")
        self.assertEqual(proc.returncode, 5)
        self.assertIn("[error] row 3 ClientID: Duplicate ClientID: C1", proc.stderr)
        quiet = run_cli("validate", *SAMPLE_INPUTS, "-q")
        self.assertEqual(quiet.returncode, 5)
        self.assertEqual(quiet.stderr, "")

    def test_validate_requires_an_input(self):
        proc = run_cli("validate")
        self.assertEqual(proc.returncode, 1)
        self.assertIn("Provide at least one of", proc.stderr)

    def test_validate_missing_file_returns_exit_1(self):
        proc = run_cli("validate", "--clients", "sample-data/nope.csv")
        self.assertEqual(proc.returncode, 1)
        self.assertIn("File not found", proc.stderr)

    def test_validate_unreadable_workbook_returns_exit_2(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "clients.xlsx"
            path.write_bytes(b"not a workbook")
            proc = run_cli("validate", "--clients", str(path))
            self.assertEqual(proc.returncode, 2)
            self.assertIn("Could not read workbook", proc.stderr)

    def test_validate_rejects_yaml_config(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "roster.yml"
            path.write_text("validation: {}\n", encoding="utf-8")
            proc = run_cli("validate", *CLEAN_INPUTS, "--config", str(path))
            self.assertEqual(proc.returncode, 1)
            self.assertIn("Config must be a .json file", proc.stderr)

    def test_config_init_then_validate_with_it(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            config_path = Path(tmpdir) / "roster-doctor.json"
            proc = run_cli("config", "init", "--path", str(config_path))
            self.assertEqual(proc.returncode, 0, proc.stderr)
            config = json.loads(config_path.read_text(encoding="utf-8"))
            self.assertEqual(config["validation"]["header_match_threshold"], 0.6)
            self.assertEqual(config["priority_settings"]["clientPriorityWeight"], 30)

            again = run_cli("config", "init", "--path", str(config_path))
            self.assertEqual(again.returncode, 1)
            self.assertIn("Refusing to overwrite", again.stderr)

            validated = run_cli("validate", *CLEAN_INPUTS, "--config", str(config_path), "--json")
            self.assertEqual(validated.returncode, 0, validated.stderr)

    def test_export_applies_fixes_and_embeds_rules(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            rules_path = Path(tmpdir) / "rules.json"
            rules_path.write_text(
                json.dumps(
                    {
                        "business_rules": [{"id": "R1", "name": "Enterprise first", "type": "priority"}],
                        "priority_settings": {"clientPriorityWeight": 40},
                    }
                ),
                encoding="utf-8",
            )
            output_path = Path(tmpdir) / "export.json"
            proc = run_cli(
                "export",
                *SAMPLE_INPUTS,
                "--rules", str(rules_path),
                "--apply-fixes",
                "--with-validation",
                "--output", str(output_path),
            )
            self.assertEqual(proc.returncode, 0, proc.stderr)
            self.assertIn("Export written:", proc.stderr)
            self.assertIn("Priority weights total 110%", proc.stderr)

            document = json.loads(output_path.read_text(encoding="utf-8"))
            self.assertEqual(document["metadata"], {"exportDate": "1970-01-01T00:00:00Z", "version": "1.0"})
            clients = document["data"]["clients"]
            self.assertEqual(clients[1]["PriorityLevel"], 5)
            self.assertEqual(clients[2]["GroupTag"], "Startup")
            self.assertNotIn("Notes", clients[0])
            self.assertEqual(document["data"]["tasks"][2]["Duration"], 1)
            self.assertEqual(document["configuration"]["businessRules"][0]["id"], "R1")
            self.assertEqual(document["configuration"]["configVersion"], "1.0")
            remaining = [item["message"] for item in document["validation"]["clients"]["errors"]]
            self.assertIn("Duplicate ClientID: C1", remaining)

            again = run_cli("export", *SAMPLE_INPUTS, "--output", str(output_path))
            self.assertEqual(again.returncode, 1)
            self.assertIn("Refusing to overwrite", again.stderr)


class JsonOutputTests(unittest.TestCase):
    def test_non_finite_numbers_are_written_as_null(self):
        text = json_dumps({"score": float("nan"), "totals": [float("inf"), 1.5, -float("inf")]})

        def reject(name):
            raise ValueError(name)

        self.assertEqual(
            json.loads(text, parse_constant=reject),
            {"score": None, "totals": [None, 1.5, None]},
        )


if __name__ == "__main__":
    unittest.main()
