from __future__ import annotations

import logging
from pathlib import Path

import typer

from codex_review.config import ReviewConfig, load_config, write_starter_config
from codex_review.constants import (
    CONFIG_FILENAME,
    DEFAULT_BRANCH,
    DEFAULT_PR_COMMENTS_OUTPUT,
    DEFAULT_REVIEW_FOCUS,
    DEFAULT_REVIEW_OUTPUT,
    DEFAULT_TIMEOUT_MS,
    EXIT_GATE_FAILURE,
    EXIT_OPERATIONAL_ERROR,
    EXIT_SUCCESS,
)
from codex_review.engine import CommandOutcome, generate_pr_comments, review_paths, run_diff_review


def _version_callback(value: bool) -> None:
    if value:
        from codex_review import __version__

        typer.echo(f"codex-review {__version__}")
        raise typer.Exit()


app = typer.Typer(add_completion=False, help="AI-powered code review CLI using OpenAI Codex")


@app.callback(invoke_without_command=True)
def _main(
    version: bool = typer.Option(
        False, "--version", callback=_version_callback, is_eager=True, help="Print version and exit."
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging on stderr."),
) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        force=True,
    )


def _echo_usage(outcome: CommandOutcome) -> None:
    if outcome.usage is None:
        return
    typer.echo("Token Usage:")
    typer.echo(f"   Input: {outcome.usage.input_tokens}")
    typer.echo(f"   Cached: {outcome.usage.cached_input_tokens}")
    typer.echo(f"   Output: {outcome.usage.output_tokens}")


def _emit_outcome(outcome: CommandOutcome) -> None:
    for error in outcome.errors:
        typer.echo(f"ERROR: {error}", err=True)
    for fmt, path in outcome.reports.items():
        typer.echo(f"Wrote {fmt} report: {path}")
    _echo_usage(outcome)
    if outcome.exit_code == EXIT_GATE_FAILURE:
        typer.echo("Quality gate failed.", err=True)
    raise typer.Exit(outcome.exit_code)


def _echo_diff_summary(outcome: CommandOutcome) -> None:
    result = outcome.result
    if result is None:
        return
    verdict = "APPROVE" if result.should_merge else "NEEDS WORK"
    typer.echo(f"Merge Recommendation: {verdict}")
    typer.echo(f"Assessment: {result.overall_assessment}")
    typer.echo(
        f"Issues: {len(result.issues)} reported, {outcome.suppressed_issues} suppressed by baseline, "
        f"{outcome.total_issues} found"
    )
    for index, issue in enumerate(result.issues, start=1):
        location = f" (lines {issue.line_range})" if issue.line_range else ""
        typer.echo(f"{index}. [{issue.severity.upper()}] {issue.type} {issue.file}{location}: {issue.issue}")


@app.command()
def init(project_root: Path = typer.Argument(Path("."), help="Project root to initialize")) -> None:
    """Write a starter .codex-review.yaml."""
    try:
        created = write_starter_config(project_root.resolve())
    except OSError as exc:
        typer.echo(f"ERROR: {exc}", err=True)
        raise typer.Exit(EXIT_OPERATIONAL_ERROR) from exc
    if created is None:
        typer.echo(f"{CONFIG_FILENAME} already exists; nothing written.")
    else:
        typer.echo(f"Created {created}")
    raise typer.Exit(EXIT_SUCCESS)


@app.command()
def diff(
    branch: str | None = typer.Option(None, "--branch", "-b", help=f"Compare against branch (default: {DEFAULT_BRANCH})"),
    commit: str | None = typer.Option(None, "--commit", "-c", help="Analyze a specific commit"),
    output: Path | None = typer.Option(None, "--output", "-o", help="JSON report path"),
    sarif_output: Path | None = typer.Option(None, "--sarif-output", help="SARIF report path"),
    markdown_output: Path | None = typer.Option(None, "--markdown-output", help="Markdown report path"),
    formats: list[str] | None = typer.Option(
        None, "--format", help="Output formats: json, sarif, markdown (repeatable or comma-separated)"
    ),
    fail_on: str | None = typer.Option(
        None, "--fail-on", help="Fail build on severity: none|minor|major|critical|blocker"
    ),
    baseline: Path | None = typer.Option(None, "--baseline", help="Baseline fingerprints file"),
    update_baseline: bool = typer.Option(False, "--update-baseline", help="Overwrite the baseline with this run"),
    new_issues_only: bool | None = typer.Option(
        None, "--new-issues-only/--all-issues", help="Report and gate only issues missing from the baseline"
    ),
    max_issues: int | None = typer.Option(None, "--max-issues", min=1, help="Maximum number of issues to report"),
    timeout: int | None = typer.Option(None, "--timeout", min=1, help="Agent timeout in milliseconds"),
    project_root: Path = typer.Option(Path("."), "--project-root", help="Repository root"),
    config_path: Path | None = typer.Option(None, "--config", help=f"Config file (default: {CONFIG_FILENAME})"),
) -> None:
    """Analyze a git diff or commit and gate on issue severity."""
    root = project_root.resolve()
    try:
        config: ReviewConfig = load_config(root, config_path).with_overrides(
            branch=branch,
            output=output,
            sarif_output=sarif_output,
            markdown_output=markdown_output,
            formats=formats or None,
            fail_on=fail_on,
            baseline=baseline,
            new_issues_only=new_issues_only,
            max_issues=max_issues,
            timeout_ms=timeout,
        )
    except ValueError as exc:
        typer.echo(f"ERROR: {exc}", err=True)
        raise typer.Exit(EXIT_OPERATIONAL_ERROR) from exc

    if commit:
        typer.echo(f"Analyzing commit: {commit}")
    else:
        typer.echo(f"Comparing against: {config.branch}")

    outcome = run_diff_review(config, project_root=root, commit=commit, update_baseline=update_baseline)
    if outcome.message:
        typer.echo(outcome.message)
    _echo_diff_summary(outcome)
    if update_baseline and outcome.result is not None and config.baseline is not None:
        typer.echo(f"Baseline updated: {config.baseline}")
    _emit_outcome(outcome)


@app.command("pr-comments")
def pr_comments(
    branch: str = typer.Option(DEFAULT_BRANCH, "--branch", "-b", help="Compare against branch"),
    commit: str | None = typer.Option(None, "--commit", "-c", help="Analyze a specific commit"),
    output: Path = typer.Option(DEFAULT_PR_COMMENTS_OUTPUT, "--output", "-o", help="Output file for comments (JSON)"),
    timeout: int = typer.Option(DEFAULT_TIMEOUT_MS, "--timeout", min=1, help="Agent timeout in milliseconds"),
    project_root: Path = typer.Option(Path("."), "--project-root", help="Repository root"),
) -> None:
    """Generate inline PR review comments for critical issues."""
    outcome = generate_pr_comments(
        project_root=project_root.resolve(),
        output=output,
        branch=branch,
        commit=commit,
        timeout_ms=timeout,
    )
    if outcome.message:
        typer.echo(outcome.message)
    _emit_outcome(outcome)


@app.command()
def review(
    paths: list[str] | None = typer.Argument(None, help="Files or directories to review"),
    output: Path = typer.Option(DEFAULT_REVIEW_OUTPUT, "--output", "-o", help="Output file for review results (JSON)"),
    focus: str = typer.Option(DEFAULT_REVIEW_FOCUS, "--focus", help="Comma-separated focus areas"),
    timeout: int = typer.Option(DEFAULT_TIMEOUT_MS, "--timeout", min=1, help="Agent timeout in milliseconds"),
    project_root: Path = typer.Option(Path("."), "--project-root", help="Repository root"),
) -> None:
    """Review files or directories for issues and improvements."""
    targets = list(paths or ["."])
    focus_areas = [area.strip() for area in focus.split(",") if area.strip()]
    outcome = review_paths(
        targets,
        focus_areas,
        project_root=project_root.resolve(),
        output=output,
        timeout_ms=timeout,
    )
    if outcome.message:
        typer.echo(f"Summary: {outcome.message}")
    _emit_outcome(outcome)
