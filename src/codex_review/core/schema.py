"""Response schemas the agent must satisfy.

Each schema pairs a JSON Schema document (embedded in the prompt so the agent
knows the expected shape) with a parser that checks the decoded payload and
builds the typed result. Parsers collect every violation before raising so a
single :class:`SchemaValidationError` lists all failing field paths.
"""
from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from codex_review.core.errors import SchemaValidationError
from codex_review.core.models import DiffAnalysisResult, Issue, PRComment

T = TypeVar("T")


@dataclass(slots=True, frozen=True)
class ResponseSchema(Generic[T]):
    name: str
    json_schema: dict[str, Any]
    parse: Callable[[Any], T]


def _join(path: str, key: str | int) -> str:
    return f"{path}.{key}" if path else str(key)


def _check_object(value: Any, path: str, errors: list[str]) -> dict[str, Any] | None:
    if not isinstance(value, dict):
        errors.append(f"{path or '<root>'}: expected object, got {type(value).__name__}")
        return None
    return value


def _check_str(
    obj: dict[str, Any],
    key: str,
    path: str,
    errors: list[str],
    *,
    required: bool = True,
    non_empty: bool = False,
) -> str | None:
    field_path = _join(path, key)
    if key not in obj or obj[key] is None:
        if required:
            errors.append(f"{field_path}: required")
        return None
    value = obj[key]
    if not isinstance(value, str):
        errors.append(f"{field_path}: expected string, got {type(value).__name__}")
        return None
    if non_empty and not value.strip():
        errors.append(f"{field_path}: must not be empty")
        return None
    return value


def _check_int(
    obj: dict[str, Any],
    key: str,
    path: str,
    errors: list[str],
    *,
    required: bool = True,
) -> int | None:
    field_path = _join(path, key)
    if key not in obj or obj[key] is None:
        if required:
            errors.append(f"{field_path}: required")
        return None
    value = obj[key]
    if isinstance(value, bool) or not isinstance(value, (int, float)) or int(value) != value:
        errors.append(f"{field_path}: expected integer, got {type(value).__name__}")
        return None
    return int(value)


def _check_bool(obj: dict[str, Any], key: str, path: str, errors: list[str]) -> bool | None:
    field_path = _join(path, key)
    if key not in obj:
        errors.append(f"{field_path}: required")
        return None
    value = obj[key]
    if not isinstance(value, bool):
        errors.append(f"{field_path}: expected boolean, got {type(value).__name__}")
        return None
    return value


def _check_list(obj: dict[str, Any], key: str, path: str, errors: list[str]) -> list[Any] | None:
    field_path = _join(path, key)
    if key not in obj:
        errors.append(f"{field_path}: required")
        return None
    value = obj[key]
    if not isinstance(value, list):
        errors.append(f"{field_path}: expected array, got {type(value).__name__}")
        return None
    return value


def _line_range(obj: dict[str, Any], path: str, errors: list[str]) -> str | None:
    # Agents emit "45-52" but sometimes a bare number for single lines.
    raw = obj.get("line_range")
    if raw is None:
        return None
    if isinstance(raw, int) and not isinstance(raw, bool):
        return str(raw)
    if not isinstance(raw, str):
        errors.append(f"{_join(path, 'line_range')}: expected string, got {type(raw).__name__}")
        return None
    return raw


DIFF_ISSUE_JSON_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "file": {"type": "string", "description": "File path"},
        "line_range": {"type": "string", "description": "Line range affected (e.g., '45-52')"},
        "type": {
            "type": "string",
            "enum": ["bug", "security", "performance", "style", "suggestion"],
            "description": "Issue type",
        },
        "severity": {
            "type": "string",
            "enum": ["blocker", "critical", "major", "minor", "info"],
            "description": "Severity",
        },
        "issue": {"type": "string", "description": "Description of the issue"},
        "why_problem": {"type": "string", "description": "Why this is a problem"},
        "fix": {"type": "string", "description": "Concrete recommended fix"},
    },
    "required": ["file", "type", "severity", "issue", "why_problem", "fix"],
    "additionalProperties": False,
}

DIFF_ANALYSIS_JSON_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "overall_assessment": {"type": "string", "description": "Overall assessment of the changes"},
        "should_merge": {"type": "boolean", "description": "Whether changes are safe to merge"},
        "issues": {"type": "array", "items": DIFF_ISSUE_JSON_SCHEMA, "description": "Issues found in the diff"},
        "positive_notes": {
            "type": "array",
            "items": {"type": "string"},
            "description": "Good practices observed",
        },
        "test_coverage_notes": {"type": "string", "description": "Notes about test coverage"},
    },
    "required": ["overall_assessment", "should_merge", "issues", "positive_notes"],
    "additionalProperties": False,
}


def _parse_diff_issue(value: Any, path: str, errors: list[str]) -> Issue | None:
    obj = _check_object(value, path, errors)
    if obj is None:
        return None
    start = len(errors)
    file = _check_str(obj, "file", path, errors, non_empty=True)
    issue_type = _check_str(obj, "type", path, errors, non_empty=True)
    severity = _check_str(obj, "severity", path, errors, non_empty=True)
    text = _check_str(obj, "issue", path, errors)
    why_problem = _check_str(obj, "why_problem", path, errors)
    fix = _check_str(obj, "fix", path, errors)
    line_range = _line_range(obj, path, errors)
    title = _check_str(obj, "title", path, errors, required=False)
    if len(errors) > start:
        return None
    assert file is not None and issue_type is not None and severity is not None
    assert text is not None and why_problem is not None and fix is not None
    return Issue(
        file=file,
        type=issue_type,
        severity=severity,
        issue=text,
        why_problem=why_problem,
        fix=fix,
        line_range=line_range,
        title=title,
    )


def parse_diff_analysis(data: Any) -> DiffAnalysisResult:
    errors: list[str] = []
    obj = _check_object(data, "", errors)
    if obj is None:
        raise SchemaValidationError(errors, data)

    overall = _check_str(obj, "overall_assessment", "", errors)
    should_merge = _check_bool(obj, "should_merge", "", errors)
    raw_issues = _check_list(obj, "issues", "", errors)
    raw_notes = _check_list(obj, "positive_notes", "", errors)
    coverage = _check_str(obj, "test_coverage_notes", "", errors, required=False)

    issues: list[Issue] = []
    for index, raw_issue in enumerate(raw_issues or []):
        parsed = _parse_diff_issue(raw_issue, _join("issues", index), errors)
        if parsed is not None:
            issues.append(parsed)

    notes: list[str] = []
    for index, note in enumerate(raw_notes or []):
        if not isinstance(note, str):
            errors.append(f"positive_notes.{index}: expected string, got {type(note).__name__}")
            continue
        notes.append(note)

    if errors:
        raise SchemaValidationError(errors, data)
    assert overall is not None and should_merge is not None
    return DiffAnalysisResult(
        overall_assessment=overall,
        should_merge=should_merge,
        issues=issues,
        positive_notes=notes,
        test_coverage_notes=coverage,
    )


PR_REVIEW_JSON_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "comments": {
            "type": "array",
            "description": "Array of review comments to post",
            "items": {
                "type": "object",
                "properties": {
                    "path": {"type": "string", "description": "File path"},
                    "line": {"type": "integer", "description": "Line number in the file"},
                    "body": {"type": "string", "description": "Comment body with clear issue description and fix"},
                },
                "required": ["path", "line", "body"],
                "additionalProperties": False,
            },
        },
    },
    "required": ["comments"],
    "additionalProperties": False,
}


def parse_pr_review(data: Any) -> list[PRComment]:
    errors: list[str] = []
    obj = _check_object(data, "", errors)
    if obj is None:
        raise SchemaValidationError(errors, data)

    comments: list[PRComment] = []
    for index, raw in enumerate(_check_list(obj, "comments", "", errors) or []):
        path = _join("comments", index)
        item = _check_object(raw, path, errors)
        if item is None:
            continue
        start = len(errors)
        file_path = _check_str(item, "path", path, errors, non_empty=True)
        line = _check_int(item, "line", path, errors)
        body = _check_str(item, "body", path, errors, non_empty=True)
        if len(errors) == start and file_path is not None and line is not None and body is not None:
            comments.append(PRComment(path=file_path, line=line, body=body))

    if errors:
        raise SchemaValidationError(errors, data)
    return comments


CODE_REVIEW_SEVERITIES = ("critical", "high", "medium", "low", "info")

CODE_REVIEW_JSON_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "summary": {"type": "string", "description": "Overall code review summary"},
        "issues": {
            "type": "array",
            "description": "List of identified issues",
            "items": {
                "type": "object",
                "properties": {
                    "file": {"type": "string", "description": "File path"},
                    "line": {"type": "integer", "description": "Line number if applicable"},
                    "severity": {"type": "string", "enum": list(CODE_REVIEW_SEVERITIES)},
                    "category": {
                        "type": "string",
                        "enum": ["security", "performance", "bug", "style", "best-practice", "maintainability"],
                    },
                    "title": {"type": "string", "description": "Short issue title"},
                    "description": {"type": "string", "description": "Detailed description of the issue"},
                    "suggestion": {"type": "string", "description": "Suggested fix or improvement"},
                },
                "required": ["file", "severity", "category", "title", "description", "suggestion"],
            },
        },
        "stats": {
            "type": "object",
            "properties": {
                "total_issues": {"type": "integer"},
                **{name: {"type": "integer"} for name in CODE_REVIEW_SEVERITIES},
            },
            "required": ["total_issues", *CODE_REVIEW_SEVERITIES],
        },
    },
    "required": ["summary", "issues", "stats"],
}


def parse_code_review(data: Any) -> dict[str, Any]:
    """Validate a path-review payload; the normalized dict is written as-is."""
    errors: list[str] = []
    obj = _check_object(data, "", errors)
    if obj is None:
        raise SchemaValidationError(errors, data)

    summary = _check_str(obj, "summary", "", errors)
    issues: list[dict[str, Any]] = []
    for index, raw in enumerate(_check_list(obj, "issues", "", errors) or []):
        path = _join("issues", index)
        item = _check_object(raw, path, errors)
        if item is None:
            continue
        start = len(errors)
        normalized: dict[str, Any] = {}
        for key in ("file", "severity", "category", "title", "description", "suggestion"):
            normalized[key] = _check_str(item, key, path, errors)
        line = _check_int(item, "line", path, errors, required=False)
        if line is not None:
            normalized["line"] = line
        if len(errors) == start:
            issues.append(normalized)

    stats: dict[str, int] = {}
    stats_obj = _check_object(obj.get("stats"), "stats", errors)
    if stats_obj is not None:
        for key in ("total_issues", *CODE_REVIEW_SEVERITIES):
            count = _check_int(stats_obj, key, "stats", errors)
            if count is not None:
                stats[key] = count

    if errors:
        raise SchemaValidationError(errors, data)
    return {"summary": summary, "issues": issues, "stats": stats}


DIFF_ANALYSIS_SCHEMA: ResponseSchema[DiffAnalysisResult] = ResponseSchema(
    name="diff_analysis",
    json_schema=DIFF_ANALYSIS_JSON_SCHEMA,
    parse=parse_diff_analysis,
)
PR_REVIEW_SCHEMA: ResponseSchema[list[PRComment]] = ResponseSchema(
    name="pr_review",
    json_schema=PR_REVIEW_JSON_SCHEMA,
    parse=parse_pr_review,
)
CODE_REVIEW_SCHEMA: ResponseSchema[dict[str, Any]] = ResponseSchema(
    name="code_review",
    json_schema=CODE_REVIEW_JSON_SCHEMA,
    parse=parse_code_review,
)


__all__ = [
    "CODE_REVIEW_SCHEMA",
    "DIFF_ANALYSIS_SCHEMA",
    "PR_REVIEW_SCHEMA",
    "ResponseSchema",
    "parse_code_review",
    "parse_diff_analysis",
    "parse_pr_review",
]
