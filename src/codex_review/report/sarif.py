from __future__ import annotations

import re
from collections.abc import Iterable
from typing import Any, Literal

from codex_review import __version__
from codex_review.constants import TOOL_INFORMATION_URI, TOOL_NAME
from codex_review.core.models import Issue

SarifLevel = Literal["error", "warning", "note"]

SARIF_VERSION = "2.1.0"
SARIF_SCHEMA_URI = "https://json.schemastore.org/sarif-2.1.0.json"

_LINE_RANGE_RE = re.compile(r"(\d+)(?:\s*-\s*(\d+))?")


def severity_to_level(severity: str) -> SarifLevel:
    value = severity.strip().lower()
    if value in ("blocker", "critical"):
        return "error"
    if value in ("major", "high"):
        return "warning"
    return "note"


def parse_line_range(line_range: str | None) -> tuple[int, int | None]:
    """Return ``(start, end)``; missing or unparsable ranges anchor at line 1."""
    if not line_range:
        return 1, None
    match = _LINE_RANGE_RE.search(line_range)
    if not match:
        return 1, None
    start = int(match.group(1))
    end = int(match.group(2)) if match.group(2) else None
    if start < 1:
        return 1, None
    if end is not None and end < start:
        end = None
    return start, end


def rule_id_for(issue_type: str) -> str:
    return f"CODEX.{issue_type.upper().replace('-', '_')}"


def _rule(issue: Issue) -> dict[str, Any]:
    return {
        "id": rule_id_for(issue.type),
        "shortDescription": {"text": issue.type.replace("-", " ")},
        "fullDescription": {"text": issue.why_problem},
        "help": {"text": issue.fix},
        "properties": {"tags": [issue.type, issue.severity]},
    }


def _result(issue: Issue) -> dict[str, Any]:
    start, end = parse_line_range(issue.line_range)
    region: dict[str, int] = {"startLine": start}
    if end is not None:
        region["endLine"] = end
    result: dict[str, Any] = {
        "ruleId": rule_id_for(issue.type),
        "level": severity_to_level(issue.severity),
        "message": {"text": issue.issue},
        "locations": [
            {
                "physicalLocation": {
                    "artifactLocation": {"uri": issue.file},
                    "region": region,
                }
            }
        ],
    }
    if issue.fingerprint:
        result["partialFingerprints"] = {"codexReview/v1": issue.fingerprint}
    return result


def convert_to_sarif(issues: Iterable[Issue], tool_version: str = __version__) -> dict[str, Any]:
    rules: dict[str, dict[str, Any]] = {}
    results: list[dict[str, Any]] = []
    for issue in issues:
        rule_id = rule_id_for(issue.type)
        if rule_id not in rules:
            rules[rule_id] = _rule(issue)
        results.append(_result(issue))

    return {
        "version": SARIF_VERSION,
        "$schema": SARIF_SCHEMA_URI,
        "runs": [
            {
                "tool": {
                    "driver": {
                        "name": TOOL_NAME,
                        "version": tool_version,
                        "informationUri": TOOL_INFORMATION_URI,
                        "rules": list(rules.values()),
                    }
                },
                "results": results,
            }
        ],
    }


__all__ = ["convert_to_sarif", "parse_line_range", "rule_id_for", "severity_to_level"]
