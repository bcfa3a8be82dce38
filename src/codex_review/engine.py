"""Pipeline orchestration for the ``diff``, ``pr-comments`` and ``review`` commands."""
from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, TypeVar

from codex_review.config import ReviewConfig
from codex_review.constants import (
    DEFAULT_BRANCH,
    DEFAULT_MAX_DIFF_TOKENS,
    DEFAULT_TIMEOUT_MS,
    EXIT_GATE_FAILURE,
    EXIT_OPERATIONAL_ERROR,
    EXIT_SUCCESS,
)
from codex_review.core.agent.codex import CodexCliClient
from codex_review.core.agent.extractor import RunResult, run_with_schema
from codex_review.core.agent.interfaces import AgentClient, AgentSession
from codex_review.core.diff import DiffDocument, GitDiffProvider
from codex_review.core.errors import ReviewError
from codex_review.core.fingerprint import add_fingerprints, filter_new
from codex_review.core.gate import blocking_issues, should_fail
from codex_review.core.models import DiffAnalysisResult, PRComment, Usage
from codex_review.core.prompts import code_review_prompt, diff_analysis_prompt, pr_comments_prompt, with_schema
from codex_review.core.schema import CODE_REVIEW_SCHEMA, DIFF_ANALYSIS_SCHEMA, PR_REVIEW_SCHEMA, ResponseSchema
from codex_review.core.stores.baselines import BaselineStore, LocalBaselineStore
from codex_review.core.stores.files import write_text_atomic
from codex_review.core.stores.sessions import LocalSessionCache, SessionCache
from codex_review.report.writer import ReportPaths, write_reports

logger = logging.getLogger(__name__)

T = TypeVar("T")

NO_CHANGES_MESSAGE = "No changes found."

__all__ = [
    "NO_CHANGES_MESSAGE",
    "CommandOutcome",
    "ReviewServices",
    "analyze_diff",
    "generate_pr_comments",
    "review_paths",
    "run_diff_review",
]


@dataclass(slots=True)
class CommandOutcome:
    exit_code: int
    message: str | None = None
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    result: DiffAnalysisResult | None = None
    reports: dict[str, Path] = field(default_factory=dict)
    usage: Usage | None = None
    total_issues: int = 0
    suppressed_issues: int = 0
    gate_failed: bool = False


@dataclass(slots=True)
class ReviewServices:
    """Collaborators a pipeline run talks to; tests swap in fakes."""

    agent_client: AgentClient
    diff_provider: GitDiffProvider
    session_cache: SessionCache

    @classmethod
    def default(cls, project_root: Path, model: str | None = None) -> ReviewServices:
        return cls(
            agent_client=CodexCliClient(project_root, model=model),
            diff_provider=GitDiffProvider(project_root),
            session_cache=LocalSessionCache(),
        )


def _context_key(kind: str, project_root: Path, ref: str) -> str:
    return f"{kind}:{project_root.resolve()}:{ref}"


def _compact_sessions(services: ReviewServices) -> None:
    try:
        services.session_cache.compact()
    except OSError as exc:
        logger.warning("Could not compact agent session cache: %s", exc)


def _open_session(services: ReviewServices, context_key: str) -> AgentSession:
    session_id = services.session_cache.get(context_key)
    if session_id is not None:
        logger.debug("Resuming agent session %s for %s", session_id, context_key)
        return services.agent_client.resume_session(session_id)
    return services.agent_client.start_session()


async def _exchange(
    services: ReviewServices,
    context_key: str,
    prompt: str,
    schema: ResponseSchema[T],
    *,
    timeout_ms: int,
    cancel_event: asyncio.Event | None,
) -> RunResult[T]:
    session = _open_session(services, context_key)
    run = await run_with_schema(
        session,
        with_schema(prompt, schema.json_schema),
        schema,
        timeout_ms=timeout_ms,
        cancel_event=cancel_event,
    )
    if session.id:
        try:
            services.session_cache.put(context_key, session.id)
        except OSError as exc:
            logger.warning("Could not persist agent session for reuse: %s", exc)
    return run


def _acquire_diff(
    services: ReviewServices,
    *,
    branch: str | None,
    commit: str | None,
    max_diff_tokens: int,
    warnings: list[str],
) -> DiffDocument:
    services.diff_provider.ensure_repository()
    diff = services.diff_provider.get_diff(branch=branch, commit=commit)
    if not diff.is_empty and diff.is_too_large(max_diff_tokens):
        warning = (
            f"Diff is large (~{diff.token_estimate} tokens, limit {max_diff_tokens}); "
            "review quality may degrade."
        )
        logger.warning(warning)
        warnings.append(warning)
    return diff


async def analyze_diff(
    config: ReviewConfig,
    *,
    project_root: Path,
    commit: str | None = None,
    update_baseline: bool = False,
    services: ReviewServices | None = None,
    baseline_store: BaselineStore | None = None,
    cancel_event: asyncio.Event | None = None,
) -> CommandOutcome:
    if update_baseline and config.baseline is None and baseline_store is None:
        return CommandOutcome(
            exit_code=EXIT_OPERATIONAL_ERROR,
            errors=["--update-baseline requires --baseline <file>"],
        )

    services = services or ReviewServices.default(project_root, model=config.model)
    if baseline_store is None and config.baseline is not None:
        baseline_store = LocalBaselineStore(config.baseline)
    warnings: list[str] = []

    try:
        services.agent_client.check_environment()
        _compact_sessions(services)
        diff = _acquire_diff(
            services,
            branch=config.branch,
            commit=commit,
            max_diff_tokens=config.max_diff_tokens,
            warnings=warnings,
        )
        if diff.is_empty:
            return CommandOutcome(exit_code=EXIT_SUCCESS, message=NO_CHANGES_MESSAGE, warnings=warnings)

        run = await _exchange(
            services,
            _context_key("diff", project_root, diff.ref),
            diff_analysis_prompt(diff.text),
            DIFF_ANALYSIS_SCHEMA,
            timeout_ms=config.timeout_ms,
            cancel_event=cancel_event,
        )
    except ReviewError as exc:
        return CommandOutcome(exit_code=EXIT_OPERATIONAL_ERROR, errors=[exc.message], warnings=warnings)

    analysis = run.data
    all_issues = add_fingerprints(analysis.issues)
    reported = all_issues
    if baseline_store is not None:
        known = baseline_store.load()
        if config.new_issues_only:
            reported = filter_new(all_issues, known)
        if update_baseline:
            try:
                baseline_store.write(issue.fingerprint for issue in all_issues if issue.fingerprint)
            except OSError as exc:
                return CommandOutcome(
                    exit_code=EXIT_OPERATIONAL_ERROR,
                    errors=[f"Failed to update baseline: {exc}"],
                    warnings=warnings,
                )
            logger.info("Baseline updated with %d fingerprint(s)", len(all_issues))

    result = DiffAnalysisResult(
        overall_assessment=analysis.overall_assessment,
        should_merge=analysis.should_merge,
        issues=reported,
        positive_notes=analysis.positive_notes,
        test_coverage_notes=analysis.test_coverage_notes,
    ).truncated(config.max_issues)
    gate_failed = should_fail(result.issues, config.fail_on)
    if gate_failed:
        logger.info(
            "Quality gate failed: %d issue(s) at or above %s",
            len(blocking_issues(result.issues, config.fail_on)),
            config.fail_on,
        )

    metadata: dict[str, Any] = {
        "ref": diff.ref,
        "fail_on": config.fail_on,
        "gate_failed": gate_failed,
        "total_issues": len(all_issues),
        "suppressed_by_baseline": len(all_issues) - len(reported),
        "usage": run.usage.to_dict() if run.usage else None,
    }
    written = write_reports(
        result,
        config.formats,
        ReportPaths(
            json=config.output,
            sarif=config.resolved_sarif_output(),
            markdown=config.resolved_markdown_output(),
        ),
        metadata=metadata,
    )

    if not written.ok:
        exit_code = EXIT_OPERATIONAL_ERROR
    elif gate_failed:
        exit_code = EXIT_GATE_FAILURE
    else:
        exit_code = EXIT_SUCCESS
    return CommandOutcome(
        exit_code=exit_code,
        errors=list(written.errors),
        warnings=warnings,
        result=result,
        reports=dict(written.written),
        usage=run.usage,
        total_issues=len(all_issues),
        suppressed_issues=len(all_issues) - len(reported),
        gate_failed=gate_failed,
    )


def run_diff_review(
    config: ReviewConfig,
    *,
    project_root: Path,
    commit: str | None = None,
    update_baseline: bool = False,
    services: ReviewServices | None = None,
) -> CommandOutcome:
    return asyncio.run(
        analyze_diff(
            config,
            project_root=project_root,
            commit=commit,
            update_baseline=update_baseline,
            services=services,
        )
    )


async def _generate_pr_comments(
    *,
    project_root: Path,
    output: Path,
    branch: str,
    commit: str | None,
    timeout_ms: int,
    max_diff_tokens: int,
    services: ReviewServices,
) -> CommandOutcome:
    warnings: list[str] = []
    try:
        services.agent_client.check_environment()
        _compact_sessions(services)
        diff = _acquire_diff(
            services, branch=branch, commit=commit, max_diff_tokens=max_diff_tokens, warnings=warnings
        )
        if diff.is_empty:
            return CommandOutcome(exit_code=EXIT_SUCCESS, message=NO_CHANGES_MESSAGE, warnings=warnings)
        run: RunResult[list[PRComment]] = await _exchange(
            services,
            _context_key("pr-comments", project_root, diff.ref),
            pr_comments_prompt(diff.text),
            PR_REVIEW_SCHEMA,
            timeout_ms=timeout_ms,
            cancel_event=None,
        )
    except ReviewError as exc:
        return CommandOutcome(exit_code=EXIT_OPERATIONAL_ERROR, errors=[exc.message], warnings=warnings)

    try:
        write_text_atomic(output, json.dumps([comment.to_dict() for comment in run.data], indent=2) + "\n")
    except OSError as exc:
        return CommandOutcome(exit_code=EXIT_OPERATIONAL_ERROR, errors=[f"Failed to write {output}: {exc}"])
    return CommandOutcome(
        exit_code=EXIT_SUCCESS,
        message=f"Found {len(run.data)} issue(s) to comment on.",
        warnings=warnings,
        reports={"json": output},
        usage=run.usage,
        total_issues=len(run.data),
    )


def generate_pr_comments(
    *,
    project_root: Path,
    output: Path,
    branch: str = DEFAULT_BRANCH,
    commit: str | None = None,
    timeout_ms: int = DEFAULT_TIMEOUT_MS,
    max_diff_tokens: int = DEFAULT_MAX_DIFF_TOKENS,
    services: ReviewServices | None = None,
    model: str | None = None,
) -> CommandOutcome:
    return asyncio.run(
        _generate_pr_comments(
            project_root=project_root,
            output=output,
            branch=branch,
            commit=commit,
            timeout_ms=timeout_ms,
            max_diff_tokens=max_diff_tokens,
            services=services or ReviewServices.default(project_root, model=model),
        )
    )


async def _review_paths(
    paths: list[str],
    focus: list[str],
    *,
    project_root: Path,
    output: Path,
    timeout_ms: int,
    services: ReviewServices,
) -> CommandOutcome:
    missing = [path for path in paths if not (project_root / path).exists()]
    if missing:
        return CommandOutcome(
            exit_code=EXIT_OPERATIONAL_ERROR,
            errors=[f"Path not found: {path}" for path in missing],
        )
    try:
        services.agent_client.check_environment()
        _compact_sessions(services)
        run: RunResult[dict[str, Any]] = await _exchange(
            services,
            _context_key("review", project_root, ",".join(paths)),
            code_review_prompt(paths, focus),
            CODE_REVIEW_SCHEMA,
            timeout_ms=timeout_ms,
            cancel_event=None,
        )
    except ReviewError as exc:
        return CommandOutcome(exit_code=EXIT_OPERATIONAL_ERROR, errors=[exc.message])

    try:
        write_text_atomic(output, json.dumps(run.data, indent=2) + "\n")
    except OSError as exc:
        return CommandOutcome(exit_code=EXIT_OPERATIONAL_ERROR, errors=[f"Failed to write {output}: {exc}"])
    return CommandOutcome(
        exit_code=EXIT_SUCCESS,
        message=str(run.data["summary"]),
        reports={"json": output},
        usage=run.usage,
        total_issues=len(run.data["issues"]),
    )


def review_paths(
    paths: list[str],
    focus: list[str],
    *,
    project_root: Path,
    output: Path,
    timeout_ms: int = DEFAULT_TIMEOUT_MS,
    services: ReviewServices | None = None,
    model: str | None = None,
) -> CommandOutcome:
    return asyncio.run(
        _review_paths(
            paths,
            focus,
            project_root=project_root,
            output=output,
            timeout_ms=timeout_ms,
            services=services or ReviewServices.default(project_root, model=model),
        )
    )
