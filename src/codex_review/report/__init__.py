from codex_review.report.renderers import render_markdown
from codex_review.report.sarif import convert_to_sarif
from codex_review.report.writer import ReportPaths, ReportWriteResult, parse_formats, write_reports

__all__ = [
    "ReportPaths",
    "ReportWriteResult",
    "convert_to_sarif",
    "parse_formats",
    "render_markdown",
    "write_reports",
]
