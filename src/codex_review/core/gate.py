from __future__ import annotations

from collections.abc import Iterable
from typing import Literal, cast

from codex_review.constants import FAIL_ON_THRESHOLDS
from codex_review.core.models import SEVERITY_RANK, Issue, Severity

FailOn = Literal["none", "minor", "major", "critical", "blocker"]


def parse_threshold(raw: str) -> FailOn:
    value = raw.strip().lower()
    if value not in FAIL_ON_THRESHOLDS:
        supported = ", ".join(FAIL_ON_THRESHOLDS)
        raise ValueError(f"Unsupported --fail-on value '{raw}'. Supported values: {supported}")
    return cast(FailOn, value)


def should_fail(issues: Iterable[Issue], fail_on: FailOn) -> bool:
    """Return True when any issue is at least as severe as ``fail_on``."""
    if fail_on == "none":
        return False
    threshold = SEVERITY_RANK[Severity(fail_on)]
    for issue in issues:
        rank = SEVERITY_RANK.get(issue.severity_level)
        if rank is not None and rank >= threshold:
            return True
    return False


def blocking_issues(issues: Iterable[Issue], fail_on: FailOn) -> list[Issue]:
    if fail_on == "none":
        return []
    threshold = SEVERITY_RANK[Severity(fail_on)]
    return [
        issue
        for issue in issues
        if SEVERITY_RANK.get(issue.severity_level, 0) >= threshold
    ]


__all__ = ["FailOn", "blocking_issues", "parse_threshold", "should_fail"]
