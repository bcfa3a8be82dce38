"""Shared fakes for the agent, git and stores."""
from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Callable, Iterable
from pathlib import Path
from typing import Any

import pytest

from codex_review.core.agent.interfaces import AgentEvent
from codex_review.core.diff import GitDiffProvider
from codex_review.core.errors import ExternalToolError, ReviewError
from codex_review.engine import ReviewServices

# A turn is a list of steps: an AgentEvent to yield, a float to sleep for,
# or a zero-argument callable to run before the next step.
Turn = list[Any]


class ScriptedSession:
    def __init__(self, turns: list[Turn], assigned_id: str | None = "thread-1", session_id: str | None = None) -> None:
        self._turns = turns
        self._assigned_id = assigned_id
        self._id = session_id
        self.prompts: list[str] = []

    @property
    def id(self) -> str | None:
        return self._id

    async def run_streamed(self, prompt: str) -> AsyncIterator[AgentEvent]:
        self.prompts.append(prompt)
        if not self._turns:
            raise AssertionError(f"unexpected agent turn: {prompt[:60]}")
        steps = self._turns.pop(0)
        if self._id is None and self._assigned_id:
            self._id = self._assigned_id
            yield AgentEvent.session(self._assigned_id)
        for step in steps:
            if isinstance(step, AgentEvent):
                yield step
            elif isinstance(step, (int, float)):
                await asyncio.sleep(step)
            else:
                step()


class ScriptedAgentClient:
    def __init__(self, turns: Iterable[Turn] = (), env_error: ReviewError | None = None) -> None:
        self.turns: list[Turn] = list(turns)
        self.env_error = env_error
        self.started = 0
        self.resumed: list[str] = []
        self.sessions: list[ScriptedSession] = []

    def check_environment(self) -> None:
        if self.env_error is not None:
            raise self.env_error

    def start_session(self) -> ScriptedSession:
        self.started += 1
        session = ScriptedSession(self.turns)
        self.sessions.append(session)
        return session

    def resume_session(self, session_id: str) -> ScriptedSession:
        self.resumed.append(session_id)
        session = ScriptedSession(self.turns, session_id=session_id)
        self.sessions.append(session)
        return session

    @property
    def prompts(self) -> list[str]:
        return [prompt for session in self.sessions for prompt in session.prompts]


class FakeGit:
    def __init__(self, diff_text: str = "", *, is_repo: bool = True) -> None:
        self.diff_text = diff_text
        self.is_repo = is_repo
        self.calls: list[list[str]] = []

    def __call__(self, args: list[str], cwd: Path) -> str:
        self.calls.append(list(args))
        if args[0] == "rev-parse":
            if not self.is_repo:
                raise ExternalToolError("fatal: not a git repository", command=["git", *args], returncode=128)
            return ".git\n"
        return self.diff_text


class MemorySessionCache:
    def __init__(self, entries: dict[str, str] | None = None) -> None:
        self.entries = dict(entries or {})
        self.compactions = 0

    def get(self, context_key: str) -> str | None:
        return self.entries.get(context_key)

    def put(self, context_key: str, session_id: str) -> None:
        self.entries[context_key] = session_id

    def compact(self) -> None:
        self.compactions += 1


def reply(text: str, usage: Any = None) -> Turn:
    return [AgentEvent.message(text), AgentEvent.completed(usage)]


SAMPLE_DIFF = """diff --git a/src/app.py b/src/app.py
index 1111111..2222222 100644
--- a/src/app.py
+++ b/src/app.py
@@ -45,0 +45,8 @@
+def load(user_id):
+    query = "SELECT * FROM users WHERE id = " + user_id
+    return db.execute(query)
"""


@pytest.fixture
def make_services(tmp_path: Path) -> Callable[..., ReviewServices]:
    def _make(
        diff_text: str = SAMPLE_DIFF,
        turns: Iterable[Turn] = (),
        *,
        env_error: ReviewError | None = None,
        is_repo: bool = True,
        session_cache: Any = None,
    ) -> ReviewServices:
        return ReviewServices(
            agent_client=ScriptedAgentClient(turns, env_error=env_error),
            diff_provider=GitDiffProvider(tmp_path, runner=FakeGit(diff_text, is_repo=is_repo)),
            session_cache=session_cache if session_cache is not None else MemorySessionCache(),
        )

    return _make


@pytest.fixture
def scripted_session() -> Callable[..., ScriptedSession]:
    def _make(*turns: Turn) -> ScriptedSession:
        return ScriptedSession(list(turns))

    return _make


@pytest.fixture
def agent_reply() -> Callable[..., Turn]:
    return reply
