"""Review pipeline core: diffs, agent exchange, fingerprints, and the quality gate."""
from codex_review.core.errors import ReviewError
from codex_review.core.models import DiffAnalysisResult, Issue, Severity, Usage

__all__ = ["DiffAnalysisResult", "Issue", "ReviewError", "Severity", "Usage"]
