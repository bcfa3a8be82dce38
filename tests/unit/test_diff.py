from __future__ import annotations

import subprocess
from pathlib import Path

import pytest

from codex_review.core.diff import (
    DiffDocument,
    GitDiffProvider,
    chunk_by_file,
    estimate_tokens,
    is_too_large,
    run_git,
)
from codex_review.core.errors import ExternalToolError

TWO_FILE_DIFF = "\n".join(
    [
        "diff --git a/src/a.py b/src/a.py",
        "@@ -1,0 +1,1 @@",
        "+print('a')",
        "diff --git a/src/old.py b/src/new.py",
        "similarity index 90%",
        "@@ -3,0 +3,1 @@",
        "+print('b')",
    ]
)


def test_estimate_tokens_rounds_up() -> None:
    assert estimate_tokens("") == 0
    assert estimate_tokens("abc") == 1
    assert estimate_tokens("abcd") == 1
    assert estimate_tokens("abcde") == 2


def test_is_too_large_is_strictly_greater_than_limit() -> None:
    assert not is_too_large("x" * 40, limit=10)
    assert is_too_large("x" * 41, limit=10)


def test_chunk_by_file_keys_by_new_path() -> None:
    chunks = chunk_by_file(TWO_FILE_DIFF)

    assert list(chunks) == ["src/a.py", "src/new.py"]
    assert chunks["src/a.py"].startswith("diff --git a/src/a.py b/src/a.py")
    assert chunks["src/new.py"].endswith("+print('b')")


def test_chunk_by_file_drops_preamble_and_merges_repeated_files() -> None:
    text = "\n".join(
        [
            "commit deadbeef",
            "Author: someone",
            "diff --git a/x.py b/x.py",
            "+one",
            "diff --git a/x.py b/x.py",
            "+two",
        ]
    )

    chunks = chunk_by_file(text)

    assert list(chunks) == ["x.py"]
    assert "commit deadbeef" not in chunks["x.py"]
    assert chunks["x.py"].count("diff --git") == 2
    assert chunks["x.py"].index("+one") < chunks["x.py"].index("+two")


def test_chunks_rebuild_the_diff_in_order() -> None:
    preamble = "commit deadbeef\nAuthor: someone\n"

    assert "\n".join(chunk_by_file(TWO_FILE_DIFF).values()) == TWO_FILE_DIFF
    assert "\n".join(chunk_by_file(preamble + TWO_FILE_DIFF).values()) == TWO_FILE_DIFF


def test_chunk_by_file_without_headers_is_empty() -> None:
    assert chunk_by_file("no headers here\n+just text") == {}


def test_diff_document_properties() -> None:
    document = DiffDocument(text=TWO_FILE_DIFF, ref="main...HEAD")

    assert not document.is_empty
    assert document.token_estimate == estimate_tokens(TWO_FILE_DIFF)
    assert set(document.chunks) == {"src/a.py", "src/new.py"}
    assert DiffDocument(text="", ref="main...HEAD").is_empty


def test_provider_branch_mode_uses_three_dot_range(tmp_path: Path) -> None:
    calls: list[list[str]] = []

    def runner(args: list[str], cwd: Path) -> str:
        calls.append(args)
        return "\n" + TWO_FILE_DIFF + "\n\n"

    document = GitDiffProvider(tmp_path, runner=runner).get_diff(branch="develop")

    assert calls == [["diff", "--unified=0", "--no-color", "develop...HEAD"]]
    assert document.ref == "develop...HEAD"
    assert document.text == TWO_FILE_DIFF


def test_provider_commit_mode_takes_precedence(tmp_path: Path) -> None:
    calls: list[list[str]] = []

    def runner(args: list[str], cwd: Path) -> str:
        calls.append(args)
        return ""

    document = GitDiffProvider(tmp_path, runner=runner).get_diff(branch="develop", commit="abc123")

    assert calls == [["show", "--unified=0", "--no-color", "abc123"]]
    assert document.ref == "abc123"
    assert document.is_empty


def test_provider_defaults_to_main(tmp_path: Path) -> None:
    document = GitDiffProvider(tmp_path, runner=lambda args, cwd: "").get_diff()
    assert document.ref == "main...HEAD"


def test_ensure_repository_reports_missing_repo(tmp_path: Path) -> None:
    def runner(args: list[str], cwd: Path) -> str:
        raise ExternalToolError("fatal", command=["git", *args], returncode=128)

    with pytest.raises(ExternalToolError, match="Not a git repository"):
        GitDiffProvider(tmp_path, runner=runner).ensure_repository()


def test_run_git_raises_on_nonzero_exit(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    def fake_run(command, **kwargs):
        return subprocess.CompletedProcess(command, 128, stdout="", stderr="fatal: bad revision 'nope'")

    monkeypatch.setattr(subprocess, "run", fake_run)

    with pytest.raises(ExternalToolError, match="bad revision") as excinfo:
        run_git(["diff", "nope...HEAD"], tmp_path)
    assert excinfo.value.returncode == 128
    assert excinfo.value.command == ["git", "diff", "nope...HEAD"]


def test_run_git_tolerates_non_utf8_output(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    raw = b"diff --git a/latin1.txt b/latin1.txt\n+caf\xe9\n"

    def fake_run(command, **kwargs):
        assert "text" not in kwargs
        stdout = raw.decode(kwargs["encoding"], kwargs["errors"])
        return subprocess.CompletedProcess(command, 0, stdout=stdout, stderr="")

    monkeypatch.setattr(subprocess, "run", fake_run)

    output = run_git(["show", "HEAD"], tmp_path)

    assert output.endswith("+caf�\n")
    assert list(chunk_by_file(output)) == ["latin1.txt"]


def test_run_git_wraps_missing_binary(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    def fake_run(command, **kwargs):
        raise FileNotFoundError("git")

    monkeypatch.setattr(subprocess, "run", fake_run)

    with pytest.raises(ExternalToolError, match="Failed to run git"):
        run_git(["status"], tmp_path)
