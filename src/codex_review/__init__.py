"""AI-assisted code review for git diffs, built for CI pipelines."""
from __future__ import annotations

__version__ = "1.0.0"

__all__ = ["__version__"]
