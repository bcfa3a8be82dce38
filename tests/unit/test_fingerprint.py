from __future__ import annotations

import hashlib

from codex_review.core.fingerprint import (
    NO_LINE_RANGE,
    add_fingerprints,
    compute_fingerprint,
    filter_new,
    normalize_issue_text,
    normalize_line_range,
)
from codex_review.core.models import Issue


def _issue(**overrides: object) -> Issue:
    fields: dict[str, object] = {
        "file": "src/db.py",
        "type": "security",
        "severity": "critical",
        "issue": "SQL built by string concatenation",
        "why_problem": "Injection",
        "fix": "Use parameters",
        "line_range": "45-52",
    }
    fields.update(overrides)
    return Issue(**fields)  # type: ignore[arg-type]


def test_fingerprint_matches_documented_layout() -> None:
    expected = hashlib.sha256(
        "src/db.py|45-52|security|sql built by string concatenation".encode("utf-8")
    ).hexdigest()[:16]
    assert compute_fingerprint(_issue()) == expected


def test_fingerprint_is_sixteen_lowercase_hex_chars() -> None:
    fingerprint = compute_fingerprint(_issue())
    assert len(fingerprint) == 16
    assert fingerprint == fingerprint.lower()
    int(fingerprint, 16)


def test_fingerprint_ignores_whitespace_and_case_in_text() -> None:
    noisy = _issue(issue="  SQL   built by\nstring CONCATENATION  ", line_range=" 45 - 52 ")
    assert compute_fingerprint(noisy) == compute_fingerprint(_issue())


def test_fingerprint_ignores_non_identity_fields() -> None:
    changed = _issue(severity="minor", why_problem="other", fix="other", title="Different title")
    assert compute_fingerprint(changed) == compute_fingerprint(_issue())


def test_fingerprint_changes_with_identity_fields() -> None:
    base = compute_fingerprint(_issue())
    assert compute_fingerprint(_issue(file="src/other.py")) != base
    assert compute_fingerprint(_issue(line_range="46-52")) != base
    assert compute_fingerprint(_issue(type="bug")) != base
    assert compute_fingerprint(_issue(issue="Different problem")) != base


def test_fingerprint_hashes_type_as_reported() -> None:
    expected = hashlib.sha256(
        "src/db.py|45-52|Security|sql built by string concatenation".encode("utf-8")
    ).hexdigest()[:16]
    assert compute_fingerprint(_issue(type="Security")) == expected


def test_missing_line_range_normalizes_to_zero() -> None:
    assert normalize_line_range(None) == NO_LINE_RANGE
    assert normalize_line_range("") == NO_LINE_RANGE
    assert compute_fingerprint(_issue(line_range=None)) == compute_fingerprint(_issue(line_range="0"))


def test_normalize_issue_text_collapses_whitespace() -> None:
    assert normalize_issue_text("  A\t\tB \n C ") == "a b c"
    assert normalize_issue_text(None) == ""


def test_add_fingerprints_preserves_order_and_content() -> None:
    issues = [_issue(file="a.py"), _issue(file="b.py")]
    stamped = add_fingerprints(issues)

    assert [issue.file for issue in stamped] == ["a.py", "b.py"]
    assert all(issue.fingerprint == compute_fingerprint(issue) for issue in stamped)
    assert issues[0].fingerprint is None


def test_filter_new_removes_known_and_is_idempotent() -> None:
    known, fresh = add_fingerprints([_issue(file="a.py"), _issue(file="b.py")])
    baseline = frozenset({known.fingerprint or ""})

    once = filter_new([known, fresh], baseline)
    twice = filter_new(once, baseline)

    assert once == [fresh]
    assert twice == once


def test_filter_new_computes_missing_fingerprints() -> None:
    issue = _issue()
    assert filter_new([issue], {compute_fingerprint(issue)}) == []
