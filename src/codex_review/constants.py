from __future__ import annotations

import os
from pathlib import Path

REPORT_SCHEMA_VERSION = "1"
TOOL_NAME = "Codex Code Reviewer"
TOOL_INFORMATION_URI = "https://github.com/haasonsaas/codex-code-reviewer"

CONFIG_FILENAME = ".codex-review.yaml"

CACHE_DIR_ENV = "CODEX_REVIEW_CACHE_DIR"
CODEX_PATH_ENV = "CODEX_REVIEW_CODEX_PATH"
API_KEY_ENVS = ("OPENAI_API_KEY", "CODEX_API_KEY")

DEFAULT_CACHE_DIR = Path.home() / ".codex-reviewer"
SESSION_CACHE_FILENAME = "threads.json"
SESSION_MAX_AGE_MS = 24 * 60 * 60 * 1000

DEFAULT_BRANCH = "main"
DEFAULT_TIMEOUT_MS = 180_000
DEFAULT_MAX_DIFF_TOKENS = 20_000
DEFAULT_DIFF_OUTPUT = Path("diff-analysis.json")
DEFAULT_PR_COMMENTS_OUTPUT = Path("pr-comments.json")
DEFAULT_REVIEW_OUTPUT = Path("review-results.json")
DEFAULT_REVIEW_FOCUS = "security,performance,bugs,style"

FINGERPRINT_LENGTH = 16
MARKDOWN_MAX_ISSUES = 20
MARKDOWN_ISSUE_TEXT_LIMIT = 80

REPORT_FORMATS = ("json", "sarif", "markdown")
FAIL_ON_THRESHOLDS = ("none", "minor", "major", "critical", "blocker")

EXIT_SUCCESS = 0
EXIT_GATE_FAILURE = 1
EXIT_OPERATIONAL_ERROR = 2


def resolve_cache_dir() -> Path:
    override = os.getenv(CACHE_DIR_ENV, "").strip()
    if override:
        return Path(override).expanduser()
    return DEFAULT_CACHE_DIR
