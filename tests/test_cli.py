"""CLI tests against the sample project in tests/fixtures/sample_project.

The sample project contains, per file:
    app/__init__.py  VERSION (exported, unused)
    app/models.py    User.__init__ (User is used), User.legacy_format, AuditRecord (unused)
    app/services.py  RETIRED_FLAG, _normalize (unused), cleanup_cache (named in a string)
    main.py          unused_helper (unused)
"""
import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from pydeadcode.config import __version__
from pydeadcode.main import app

SAMPLE_PROJECT = Path(__file__).parent / "fixtures" / "sample_project"

runner = CliRunner()

EXPECTED = [
    ("VERSION", "module_variable", 10),
    ("__init__", "method", 10),
    ("legacy_format", "method", 100),
    ("AuditRecord", "class", 100),
    ("RETIRED_FLAG", "module_variable", 100),
    ("_normalize", "function", 100),
    ("cleanup_cache", "function", 70),
    ("unused_helper", "function", 100),
]


@pytest.fixture(autouse=True)
def isolated_cwd(tmp_path, monkeypatch):
    """Run from an empty directory so no stray .env file is picked up."""
    monkeypatch.chdir(tmp_path)


def invoke(*args):
    return runner.invoke(app, [str(arg) for arg in args])


def json_findings(*args):
    result = invoke(SAMPLE_PROJECT, "--json", *args)
    assert result.exit_code == 0, result.output
    return json.loads(result.stdout)


class TestJsonOutput:

    def test_sample_project_findings(self):
        records = json_findings()

        assert [(r["symbol_name"], r["kind"], r["confidence"]) for r in records] == EXPECTED
        assert set(records[0]) == {"file", "line", "symbol_name", "kind", "confidence"}

    def test_locations(self):
        records = {r["symbol_name"]: r for r in json_findings()}

        assert records["unused_helper"]["file"].endswith("main.py")
        assert records["unused_helper"]["line"] == 13
        assert records["legacy_format"]["line"] == 11
        assert records["VERSION"]["file"].endswith("__init__.py")

    def test_min_confidence(self):
        records = json_findings("--min-confidence", 50)

        assert [r["symbol_name"] for r in records] == [
            name for name, _kind, confidence in EXPECTED if confidence >= 50
        ]

    def test_sort_by_size(self):
        names = [r["symbol_name"] for r in json_findings("--sort-by-size")]

        assert sorted(names) == sorted(name for name, _, _ in EXPECTED)
        assert names[-2:] == ["VERSION", "RETIRED_FLAG"], "One-line variables sort last"

    def test_exclude(self):
        names = [r["symbol_name"] for r in json_findings("--exclude", "app")]
        assert names == ["unused_helper"]

    def test_explain_adds_reasons(self):
        records = {r["symbol_name"]: r for r in json_findings("--explain")}

        assert "dynamic-string-use" in records["cleanup_cache"]["reasons"]
        assert records["VERSION"]["reasons"] == ["no-references", "exported", "module-variable"]

    def test_worker_count_does_not_change_output(self):
        assert json_findings("--workers", 1) == json_findings("--workers", 4)

    def test_empty_result_is_empty_array(self, tmp_path):
        (tmp_path / "clean.py").write_text("def used():\n    pass\n\nused()\n", encoding="utf-8")
        result = invoke(tmp_path, "--json")

        assert result.exit_code == 0
        assert json.loads(result.stdout) == []


class TestTextOutput:

    def test_report_lines(self):
        result = invoke(SAMPLE_PROJECT)

        assert result.exit_code == 0, result.output
        assert "Dead Code Found:" in result.output
        assert "main.py: line 13 - unused_helper [function] (100% confidence)" in result.output
        assert "services.py: line 23 - cleanup_cache [function] (70% confidence)" in result.output
        assert "8 dead code items found" in result.output

    def test_explain_lists_reasons(self):
        result = invoke(SAMPLE_PROJECT, "--explain")
        assert "dynamic-string-use:" in result.output

    def test_no_dead_code_message(self, tmp_path):
        (tmp_path / "clean.py").write_text("def used():\n    pass\n\nused()\n", encoding="utf-8")
        result = invoke(tmp_path)

        assert result.exit_code == 0
        assert "No dead code found!" in result.output

    def test_broken_file_is_a_warning(self, tmp_path):
        (tmp_path / "broken.py").write_text("))) ]]] }}}\n", encoding="utf-8")
        (tmp_path / "dead.py").write_text("def orphan():\n    pass\n", encoding="utf-8")
        result = invoke(tmp_path)

        assert result.exit_code == 0, result.output
        assert "warning:" in result.output
        assert "broken.py" in result.output
        assert "orphan" in result.output


class TestExitCodes:

    def test_no_paths(self):
        result = invoke()

        assert result.exit_code == 1
        assert "No paths specified" in result.output

    def test_invalid_min_confidence(self):
        result = invoke(SAMPLE_PROJECT, "--min-confidence", 150)

        assert result.exit_code == 1
        assert "min_confidence" in result.output

    def test_invalid_sort_policy(self):
        result = invoke(SAMPLE_PROJECT, "--sort", "alphabetical")

        assert result.exit_code == 1
        assert "sort_policy" in result.output

    def test_fail_on_findings(self):
        assert invoke(SAMPLE_PROJECT, "--fail-on-findings").exit_code == 1
        assert invoke(SAMPLE_PROJECT, "--fail-on-findings", "--exclude", "*.py").exit_code == 0

    def test_version(self):
        result = invoke("--version")

        assert result.exit_code == 0
        assert __version__ in result.output
