from __future__ import annotations

import hashlib
import re
from collections.abc import Iterable

from codex_review.constants import FINGERPRINT_LENGTH
from codex_review.core.models import Issue

NO_LINE_RANGE = "0"
_WHITESPACE_RE = re.compile(r"\s+")


def normalize_line_range(line_range: str | None) -> str:
    if not line_range:
        return NO_LINE_RANGE
    return _WHITESPACE_RE.sub("", line_range)


def normalize_issue_text(text: str | None) -> str:
    if not text:
        return ""
    return _WHITESPACE_RE.sub(" ", text.lower().strip())


def compute_fingerprint(issue: Issue) -> str:
    parts = [
        issue.file,
        normalize_line_range(issue.line_range),
        issue.type or issue.title or "",
        normalize_issue_text(issue.issue),
    ]
    digest = hashlib.sha256("|".join(parts).encode("utf-8"))
    return digest.hexdigest()[:FINGERPRINT_LENGTH]


def add_fingerprints(issues: Iterable[Issue]) -> list[Issue]:
    return [issue.with_fingerprint(compute_fingerprint(issue)) for issue in issues]


def fingerprint_of(issue: Issue) -> str:
    return issue.fingerprint or compute_fingerprint(issue)


def filter_new(issues: Iterable[Issue], baseline: set[str] | frozenset[str]) -> list[Issue]:
    return [issue for issue in issues if fingerprint_of(issue) not in baseline]


__all__ = [
    "NO_LINE_RANGE",
    "add_fingerprints",
    "compute_fingerprint",
    "filter_new",
    "fingerprint_of",
    "normalize_issue_text",
    "normalize_line_range",
]
