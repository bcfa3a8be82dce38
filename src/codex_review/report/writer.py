from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal, cast

from codex_review.constants import REPORT_FORMATS, REPORT_SCHEMA_VERSION
from codex_review.core.models import DiffAnalysisResult
from codex_review.report.renderers import render_markdown
from codex_review.report.sarif import convert_to_sarif

logger = logging.getLogger(__name__)

ReportFormat = Literal["json", "sarif", "markdown"]


def parse_formats(raw: Iterable[str]) -> list[ReportFormat]:
    formats: list[ReportFormat] = []
    for item in raw:
        # Accept both repeated options and comma-separated lists.
        for part in item.split(","):
            value = part.strip().lower()
            if not value:
                continue
            if value == "md":
                value = "markdown"
            if value not in REPORT_FORMATS:
                supported = ", ".join(REPORT_FORMATS)
                raise ValueError(f"Unsupported report format '{part}'. Supported formats: {supported}")
            if value not in formats:
                formats.append(cast(ReportFormat, value))
    return formats


@dataclass(slots=True)
class ReportPaths:
    json: Path
    sarif: Path
    markdown: Path

    def for_format(self, fmt: ReportFormat) -> Path:
        return cast(Path, getattr(self, fmt))


@dataclass(slots=True)
class ReportWriteResult:
    written: dict[str, Path] = field(default_factory=dict)
    errors: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


def build_json_report(result: DiffAnalysisResult, metadata: dict[str, Any] | None = None) -> dict[str, Any]:
    payload: dict[str, Any] = {"schema_version": REPORT_SCHEMA_VERSION, **result.to_dict()}
    if metadata:
        payload["metadata"] = metadata
    return payload


def _render(fmt: ReportFormat, result: DiffAnalysisResult, metadata: dict[str, Any] | None) -> str:
    if fmt == "json":
        return json.dumps(build_json_report(result, metadata), indent=2) + "\n"
    if fmt == "sarif":
        return json.dumps(convert_to_sarif(result.issues), indent=2) + "\n"
    return render_markdown(result)


def write_reports(
    result: DiffAnalysisResult,
    formats: Iterable[ReportFormat],
    paths: ReportPaths,
    metadata: dict[str, Any] | None = None,
) -> ReportWriteResult:
    """Write every requested format; one failing artifact never stops the others."""
    outcome = ReportWriteResult()
    for fmt in formats:
        path = paths.for_format(fmt)
        try:
            content = _render(fmt, result, metadata)
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content, encoding="utf-8")
        except OSError as exc:
            logger.error("Failed to write %s report to %s: %s", fmt, path, exc)
            outcome.errors.append(f"Failed to write {fmt} report to {path}: {exc}")
            continue
        outcome.written[fmt] = path
    return outcome


__all__ = [
    "ReportFormat",
    "ReportPaths",
    "ReportWriteResult",
    "build_json_report",
    "parse_formats",
    "write_reports",
]
