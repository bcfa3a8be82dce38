"""Project configuration loaded from ``.codex-review.yaml``.

Precedence is CLI option, then config file, then built-in default.
"""
from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any

from codex_review.constants import (
    CONFIG_FILENAME,
    DEFAULT_BRANCH,
    DEFAULT_DIFF_OUTPUT,
    DEFAULT_MAX_DIFF_TOKENS,
    DEFAULT_TIMEOUT_MS,
)
from codex_review.core.gate import FailOn, parse_threshold
from codex_review.report.writer import ReportFormat, parse_formats

STARTER_CONFIG = """\
# codex-review project configuration
branch: main
fail_on: none
formats:
  - json
output: diff-analysis.json
# baseline: .codex-review-baseline.json
new_issues_only: true
timeout_ms: 180000
max_diff_tokens: 20000
"""


@dataclass(slots=True)
class ReviewConfig:
    branch: str = DEFAULT_BRANCH
    fail_on: FailOn = "none"
    formats: list[ReportFormat] = field(default_factory=lambda: ["json"])
    output: Path = DEFAULT_DIFF_OUTPUT
    sarif_output: Path | None = None
    markdown_output: Path | None = None
    baseline: Path | None = None
    new_issues_only: bool = True
    max_issues: int | None = None
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    max_diff_tokens: int = DEFAULT_MAX_DIFF_TOKENS
    model: str | None = None

    def resolved_sarif_output(self) -> Path:
        return self.sarif_output or self.output.with_suffix(".sarif")

    def resolved_markdown_output(self) -> Path:
        return self.markdown_output or self.output.with_suffix(".md")

    def with_overrides(self, **overrides: Any) -> ReviewConfig:
        """Apply non-None overrides, validating them like file values."""
        present = {key: value for key, value in overrides.items() if value is not None}
        return replace(self, **_coerce(present, source="command line"))


def _load_yaml(path: Path) -> dict[str, Any]:
    import yaml

    try:
        loaded = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, yaml.YAMLError) as exc:
        raise ValueError(f"Could not read config file {path}: {exc}") from exc
    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise ValueError(f"Config file must be a mapping: {path}")
    return loaded


def _positive_int(key: str, value: Any, source: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValueError(f"`{key}` must be a positive integer ({source})")
    return value


def _path(key: str, value: Any, source: str) -> Path:
    if isinstance(value, Path):
        return value
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"`{key}` must be a non-empty path string ({source})")
    return Path(value.strip())


def _coerce(data: dict[str, Any], *, source: str) -> dict[str, Any]:
    known = {item.name for item in fields(ReviewConfig)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ValueError(f"Unknown config key(s) in {source}: {', '.join(unknown)}")

    coerced: dict[str, Any] = {}
    for key, value in data.items():
        if key in ("branch", "model"):
            if not isinstance(value, str) or not value.strip():
                raise ValueError(f"`{key}` must be a non-empty string ({source})")
            coerced[key] = value.strip()
        elif key == "fail_on":
            coerced[key] = parse_threshold(str(value))
        elif key == "formats":
            items = [value] if isinstance(value, str) else value
            if not isinstance(items, list) or not items:
                raise ValueError(f"`formats` must be a non-empty list ({source})")
            coerced[key] = parse_formats(str(item) for item in items)
        elif key in ("output", "sarif_output", "markdown_output", "baseline"):
            coerced[key] = _path(key, value, source)
        elif key == "new_issues_only":
            if not isinstance(value, bool):
                raise ValueError(f"`new_issues_only` must be a boolean ({source})")
            coerced[key] = value
        elif key in ("max_issues", "timeout_ms", "max_diff_tokens"):
            coerced[key] = _positive_int(key, value, source)
    return coerced


def load_config(project_root: Path, config_path: Path | None = None) -> ReviewConfig:
    path = config_path or project_root / CONFIG_FILENAME
    if not path.exists():
        if config_path is not None:
            raise ValueError(f"Config file not found: {config_path}")
        return ReviewConfig()

    data = _coerce(_load_yaml(path), source=str(path))
    for key in ("output", "sarif_output", "markdown_output", "baseline"):
        if key in data and not data[key].is_absolute():
            data[key] = project_root / data[key]
    return ReviewConfig(**data)


def write_starter_config(project_root: Path) -> Path | None:
    path = project_root / CONFIG_FILENAME
    if path.exists():
        return None
    path.write_text(STARTER_CONFIG, encoding="utf-8")
    return path


__all__ = [
    "STARTER_CONFIG",
    "ReviewConfig",
    "load_config",
    "write_starter_config",
]
