from __future__ import annotations

import logging
import math
import re
import subprocess
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from codex_review.constants import DEFAULT_BRANCH, DEFAULT_MAX_DIFF_TOKENS
from codex_review.core.errors import ExternalToolError

logger = logging.getLogger(__name__)

FILE_HEADER_PREFIX = "diff --git"
_FILE_HEADER_RE = re.compile(r"^diff --git a/(.*?) b/(.*)$")

GitRunner = Callable[[list[str], Path], str]


def run_git(args: list[str], cwd: Path) -> str:
    command = ["git", *args]
    try:
        completed = subprocess.run(
            command,
            cwd=str(cwd),
            capture_output=True,
            encoding="utf-8",
            errors="replace",
            check=False,
        )
    except OSError as exc:
        raise ExternalToolError(f"Failed to run git: {exc}", command=command) from exc
    if completed.returncode != 0:
        stderr = completed.stderr.strip() or "no output"
        raise ExternalToolError(
            f"`{' '.join(command)}` exited with code {completed.returncode}: {stderr}",
            command=command,
            returncode=completed.returncode,
        )
    return completed.stdout


def estimate_tokens(text: str) -> int:
    # Roughly four characters per token.
    return math.ceil(len(text) / 4)


def is_too_large(text: str, limit: int = DEFAULT_MAX_DIFF_TOKENS) -> bool:
    return estimate_tokens(text) > limit


def _header_file_key(line: str) -> str:
    match = _FILE_HEADER_RE.match(line)
    if match:
        return match.group(2)
    return line[len(FILE_HEADER_PREFIX):].strip() or line


def chunk_by_file(text: str) -> dict[str, str]:
    """Split a unified diff into per-file chunks keyed by the new path.

    Lines before the first file header are dropped. A file that shows up under
    several headers keeps all of its sections in arrival order.
    """
    chunks: dict[str, list[str]] = {}
    current: list[str] | None = None

    for line in text.split("\n"):
        if line.startswith(FILE_HEADER_PREFIX):
            current = chunks.setdefault(_header_file_key(line), [])
            current.append(line)
        elif current is not None:
            current.append(line)

    return {path: "\n".join(lines) for path, lines in chunks.items()}


@dataclass(slots=True, frozen=True)
class DiffDocument:
    text: str
    ref: str

    @property
    def is_empty(self) -> bool:
        return not self.text

    @property
    def token_estimate(self) -> int:
        return estimate_tokens(self.text)

    @property
    def chunks(self) -> dict[str, str]:
        return chunk_by_file(self.text)

    def is_too_large(self, limit: int = DEFAULT_MAX_DIFF_TOKENS) -> bool:
        return is_too_large(self.text, limit)


class GitDiffProvider:
    """Produces zero-context diffs for a branch comparison or a single commit."""

    def __init__(self, project_root: Path, runner: GitRunner = run_git) -> None:
        self._project_root = project_root
        self._runner = runner

    @property
    def project_root(self) -> Path:
        return self._project_root

    def ensure_repository(self) -> None:
        try:
            self._runner(["rev-parse", "--git-dir"], self._project_root)
        except ExternalToolError as exc:
            raise ExternalToolError(
                "Not a git repository. Please run this command in a git repository.",
                command=exc.command,
                returncode=exc.returncode,
            ) from exc

    def get_diff(self, branch: str | None = None, commit: str | None = None) -> DiffDocument:
        if commit:
            args = ["show", "--unified=0", "--no-color", commit]
            ref = commit
        else:
            target = branch or DEFAULT_BRANCH
            args = ["diff", "--unified=0", "--no-color", f"{target}...HEAD"]
            ref = f"{target}...HEAD"
        logger.debug("Collecting diff for %s in %s", ref, self._project_root)
        return DiffDocument(text=self._runner(args, self._project_root).strip(), ref=ref)


__all__ = [
    "DiffDocument",
    "GitDiffProvider",
    "GitRunner",
    "chunk_by_file",
    "estimate_tokens",
    "is_too_large",
    "run_git",
]
