from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any


class Severity(str, Enum):
    BLOCKER = "blocker"
    CRITICAL = "critical"
    MAJOR = "major"
    MINOR = "minor"
    INFO = "info"
    OTHER = "other"

    @classmethod
    def parse(cls, raw: str | None) -> Severity:
        value = (raw or "").strip().lower()
        for member in cls:
            if member.value == value and member is not cls.OTHER:
                return member
        return cls.OTHER


# Most severe first. INFO and OTHER carry no rank and never trip the gate.
SEVERITY_RANK: dict[Severity, int] = {
    Severity.BLOCKER: 4,
    Severity.CRITICAL: 3,
    Severity.MAJOR: 2,
    Severity.MINOR: 1,
}


class IssueType(str, Enum):
    BUG = "bug"
    SECURITY = "security"
    PERFORMANCE = "performance"
    STYLE = "style"
    SUGGESTION = "suggestion"
    OTHER = "other"

    @classmethod
    def parse(cls, raw: str | None) -> IssueType:
        value = (raw or "").strip().lower()
        for member in cls:
            if member.value == value and member is not cls.OTHER:
                return member
        return cls.OTHER


@dataclass(slots=True, frozen=True)
class Usage:
    input_tokens: int = 0
    cached_input_tokens: int = 0
    output_tokens: int = 0

    def __add__(self, other: Usage) -> Usage:
        return Usage(
            input_tokens=self.input_tokens + other.input_tokens,
            cached_input_tokens=self.cached_input_tokens + other.cached_input_tokens,
            output_tokens=self.output_tokens + other.output_tokens,
        )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Usage:
        def _count(key: str) -> int:
            value = data.get(key, 0)
            return int(value) if isinstance(value, (int, float)) and not isinstance(value, bool) else 0

        return cls(
            input_tokens=_count("input_tokens"),
            cached_input_tokens=_count("cached_input_tokens"),
            output_tokens=_count("output_tokens"),
        )

    def to_dict(self) -> dict[str, int]:
        return {
            "input_tokens": self.input_tokens,
            "cached_input_tokens": self.cached_input_tokens,
            "output_tokens": self.output_tokens,
        }


@dataclass(slots=True, frozen=True)
class Issue:
    file: str
    type: str
    severity: str
    issue: str
    why_problem: str
    fix: str
    line_range: str | None = None
    title: str | None = None
    fingerprint: str | None = None

    @property
    def severity_level(self) -> Severity:
        return Severity.parse(self.severity)

    @property
    def issue_type(self) -> IssueType:
        return IssueType.parse(self.type)

    def with_fingerprint(self, fingerprint: str) -> Issue:
        return replace(self, fingerprint=fingerprint)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "file": self.file,
            "type": self.type,
            "severity": self.severity,
            "issue": self.issue,
            "why_problem": self.why_problem,
            "fix": self.fix,
        }
        if self.line_range is not None:
            payload["line_range"] = self.line_range
        if self.title is not None:
            payload["title"] = self.title
        if self.fingerprint is not None:
            payload["fingerprint"] = self.fingerprint
        return payload

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Issue:
        return cls(
            file=str(data["file"]),
            type=str(data["type"]),
            severity=str(data["severity"]),
            issue=str(data["issue"]),
            why_problem=str(data["why_problem"]),
            fix=str(data["fix"]),
            line_range=data.get("line_range"),
            title=data.get("title"),
            fingerprint=data.get("fingerprint"),
        )


@dataclass(slots=True)
class DiffAnalysisResult:
    overall_assessment: str
    should_merge: bool
    issues: list[Issue] = field(default_factory=list)
    positive_notes: list[str] = field(default_factory=list)
    test_coverage_notes: str | None = None

    def truncated(self, max_issues: int | None) -> DiffAnalysisResult:
        if max_issues is None or len(self.issues) <= max_issues:
            return self
        return replace(self, issues=self.issues[:max_issues])

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "overall_assessment": self.overall_assessment,
            "should_merge": self.should_merge,
            "issues": [issue.to_dict() for issue in self.issues],
            "positive_notes": list(self.positive_notes),
        }
        if self.test_coverage_notes is not None:
            payload["test_coverage_notes"] = self.test_coverage_notes
        return payload

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DiffAnalysisResult:
        return cls(
            overall_assessment=str(data["overall_assessment"]),
            should_merge=bool(data["should_merge"]),
            issues=[Issue.from_dict(item) for item in data.get("issues", [])],
            positive_notes=[str(note) for note in data.get("positive_notes", [])],
            test_coverage_notes=data.get("test_coverage_notes"),
        )


@dataclass(slots=True, frozen=True)
class PRComment:
    path: str
    line: int
    body: str

    def to_dict(self) -> dict[str, Any]:
        return {"path": self.path, "line": self.line, "body": self.body}


__all__ = [
    "SEVERITY_RANK",
    "DiffAnalysisResult",
    "Issue",
    "IssueType",
    "PRComment",
    "Severity",
    "Usage",
]
