from __future__ import annotations

import json
from pathlib import Path

import pytest

from codex_review.core.models import DiffAnalysisResult, Issue
from codex_review.report.writer import ReportPaths, build_json_report, parse_formats, write_reports


def _result() -> DiffAnalysisResult:
    return DiffAnalysisResult(
        overall_assessment="One problem",
        should_merge=False,
        issues=[
            Issue(
                file="a.py",
                type="bug",
                severity="major",
                issue="Off by one",
                why_problem="Skips last item",
                fix="Use <=",
                line_range="10",
                fingerprint="0123456789abcdef",
            )
        ],
        positive_notes=[],
    )


def _paths(root: Path) -> ReportPaths:
    return ReportPaths(json=root / "out.json", sarif=root / "out.sarif", markdown=root / "out.md")


def test_parse_formats_accepts_repeats_commas_and_alias() -> None:
    assert parse_formats(["json,sarif", "md", "json"]) == ["json", "sarif", "markdown"]


def test_parse_formats_rejects_unknown() -> None:
    with pytest.raises(ValueError, match="Unsupported report format 'html'"):
        parse_formats(["json,html"])


def test_build_json_report_includes_metadata() -> None:
    payload = build_json_report(_result(), {"ref": "main...HEAD"})
    assert payload["schema_version"] == "1"
    assert payload["issues"][0]["fingerprint"] == "0123456789abcdef"
    assert payload["metadata"] == {"ref": "main...HEAD"}
    assert "metadata" not in build_json_report(_result())


def test_write_reports_writes_each_requested_format(tmp_path: Path) -> None:
    outcome = write_reports(_result(), ["json", "sarif", "markdown"], _paths(tmp_path / "reports"))

    assert outcome.ok
    assert set(outcome.written) == {"json", "sarif", "markdown"}
    assert json.loads((tmp_path / "reports" / "out.json").read_text(encoding="utf-8"))["should_merge"] is False
    sarif = json.loads((tmp_path / "reports" / "out.sarif").read_text(encoding="utf-8"))
    assert sarif["runs"][0]["results"][0]["level"] == "warning"
    assert (tmp_path / "reports" / "out.md").read_text(encoding="utf-8").startswith("# Code Review Summary")


def test_write_reports_only_writes_requested_formats(tmp_path: Path) -> None:
    write_reports(_result(), ["sarif"], _paths(tmp_path))
    assert [item.name for item in tmp_path.iterdir()] == ["out.sarif"]


def test_one_failing_format_does_not_block_others(tmp_path: Path) -> None:
    blocker = tmp_path / "blocker"
    blocker.write_text("a file, not a directory", encoding="utf-8")
    paths = ReportPaths(json=blocker / "out.json", sarif=tmp_path / "out.sarif", markdown=tmp_path / "out.md")

    outcome = write_reports(_result(), ["json", "sarif", "markdown"], paths)

    assert not outcome.ok
    assert set(outcome.written) == {"sarif", "markdown"}
    assert len(outcome.errors) == 1
    assert "json" in outcome.errors[0]
    assert (tmp_path / "out.sarif").exists()
