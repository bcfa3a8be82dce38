from __future__ import annotations

from collections import Counter

from codex_review.constants import MARKDOWN_ISSUE_TEXT_LIMIT, MARKDOWN_MAX_ISSUES
from codex_review.core.models import DiffAnalysisResult, Issue, Severity

_HISTOGRAM_ROWS = (
    (Severity.BLOCKER, "🔴", "Blocker"),
    (Severity.CRITICAL, "🔴", "Critical"),
    (Severity.MAJOR, "🟠", "Major"),
    (Severity.MINOR, "🟡", "Minor"),
)


def severity_icon(severity: str) -> str:
    value = severity.strip().lower()
    if value in ("blocker", "critical"):
        return "🔴"
    if value in ("major", "high"):
        return "🟠"
    if value in ("minor", "medium"):
        return "🟡"
    return "ℹ️"


def severity_histogram(issues: list[Issue]) -> dict[Severity, int]:
    counts = Counter(issue.severity_level for issue in issues)
    return {severity: counts.get(severity, 0) for severity in Severity}


def _issue_row(issue: Issue) -> str:
    file_ref = f"{issue.file}:{issue.line_range}" if issue.line_range else issue.file
    text = issue.issue.replace("\n", " ").replace("|", "\\|")[:MARKDOWN_ISSUE_TEXT_LIMIT]
    return f"| {severity_icon(issue.severity)} {issue.severity} | {issue.type} | `{file_ref}` | {text} |"


def render_markdown(result: DiffAnalysisResult) -> str:
    lines: list[str] = []
    lines.append("# Code Review Summary")
    lines.append("")
    lines.append("✅ **APPROVED**" if result.should_merge else "⚠️ **NEEDS WORK**")
    lines.append("")

    lines.append("## Overall Assessment")
    lines.append(result.overall_assessment)
    lines.append("")

    histogram = severity_histogram(result.issues)
    lines.append("## Statistics")
    lines.append(f"- **Total Issues**: {len(result.issues)}")
    for severity, icon, label in _HISTOGRAM_ROWS:
        if histogram[severity] > 0:
            lines.append(f"- {icon} **{label}**: {histogram[severity]}")
    lines.append("")

    if result.issues:
        lines.append("## Issues Found")
        lines.append("")
        lines.append("| Severity | Type | File | Issue |")
        lines.append("|----------|------|------|-------|")
        for issue in result.issues[:MARKDOWN_MAX_ISSUES]:
            lines.append(_issue_row(issue))
        remaining = len(result.issues) - MARKDOWN_MAX_ISSUES
        if remaining > 0:
            lines.append("")
            lines.append(f"... and {remaining} more issues.")
    else:
        lines.append("## ✨ No Issues Found!")
    lines.append("")

    if result.positive_notes:
        lines.append("## 👍 Positive Notes")
        for note in result.positive_notes:
            lines.append(f"- {note}")
        lines.append("")

    if result.test_coverage_notes:
        lines.append("## 🧪 Test Coverage")
        lines.append(result.test_coverage_notes)
        lines.append("")

    return "\n".join(lines)


__all__ = ["render_markdown", "severity_histogram", "severity_icon"]
