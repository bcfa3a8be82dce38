from __future__ import annotations

from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import Literal, Protocol

from codex_review.core.models import Usage

AgentEventKind = Literal["session", "message", "error", "completed"]


@dataclass(slots=True, frozen=True)
class AgentEvent:
    """One streamed event from a single agent turn.

    ``session`` carries the session id once the agent assigns it, ``message``
    carries a piece of response text, ``error`` a failure message, and
    ``completed`` ends the turn with optional token usage.
    """

    kind: AgentEventKind
    text: str = ""
    session_id: str | None = None
    usage: Usage | None = None

    @classmethod
    def session(cls, session_id: str) -> AgentEvent:
        return cls(kind="session", session_id=session_id)

    @classmethod
    def message(cls, text: str) -> AgentEvent:
        return cls(kind="message", text=text)

    @classmethod
    def error(cls, text: str) -> AgentEvent:
        return cls(kind="error", text=text)

    @classmethod
    def completed(cls, usage: Usage | None = None) -> AgentEvent:
        return cls(kind="completed", usage=usage)


class AgentSession(Protocol):
    @property
    def id(self) -> str | None:
        ...

    def run_streamed(self, prompt: str) -> AsyncIterator[AgentEvent]:
        ...


class AgentClient(Protocol):
    def check_environment(self) -> None:
        ...

    def start_session(self) -> AgentSession:
        ...

    def resume_session(self, session_id: str) -> AgentSession:
        ...


__all__ = ["AgentClient", "AgentEvent", "AgentEventKind", "AgentSession"]
