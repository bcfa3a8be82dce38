"""Drive one agent exchange and turn its text into schema-checked data."""
from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from codex_review.constants import DEFAULT_TIMEOUT_MS
from codex_review.core.agent.interfaces import AgentSession
from codex_review.core.errors import (
    AgentError,
    ExchangeCancelledError,
    ExchangeTimeoutError,
    ResponseFormatError,
)
from codex_review.core.models import Usage
from codex_review.core.schema import ResponseSchema

logger = logging.getLogger(__name__)

T = TypeVar("T")

REPAIR_PROMPT = (
    "Return ONLY the valid JSON from your previous response. "
    "No markdown, no code fences, no explanations. Just the raw JSON object."
)

_OPENING_FENCE_RE = re.compile(r"^```[\w+-]*[ \t]*\n?")
_CLOSING_FENCE_RE = re.compile(r"\n?```\s*$")


@dataclass(slots=True)
class RunResult(Generic[T]):
    data: T
    usage: Usage | None


@dataclass(slots=True)
class TurnResult:
    text: str
    usage: Usage | None


def strip_code_fences(text: str) -> str:
    stripped = text.strip()
    stripped = _OPENING_FENCE_RE.sub("", stripped, count=1)
    stripped = _CLOSING_FENCE_RE.sub("", stripped, count=1)
    return stripped.strip()


def _combine_usage(first: Usage | None, second: Usage | None) -> Usage | None:
    if first is None:
        return second
    if second is None:
        return first
    return first + second


async def consume_turn(
    session: AgentSession,
    prompt: str,
    *,
    timeout_ms: int = DEFAULT_TIMEOUT_MS,
    cancel_event: asyncio.Event | None = None,
) -> TurnResult:
    """Run one turn, enforcing the timeout and cancellation at every event."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout_ms / 1000
    messages: list[str] = []
    usage: Usage | None = None

    async with contextlib.aclosing(session.run_streamed(prompt)) as events:
        iterator = events.__aiter__()
        while True:
            if cancel_event is not None and cancel_event.is_set():
                raise ExchangeCancelledError()
            remaining = deadline - loop.time()
            if remaining <= 0:
                raise ExchangeTimeoutError(timeout_ms)
            try:
                event = await asyncio.wait_for(iterator.__anext__(), timeout=remaining)
            except StopAsyncIteration:
                break
            except asyncio.TimeoutError as exc:
                raise ExchangeTimeoutError(timeout_ms) from exc

            if cancel_event is not None and cancel_event.is_set():
                raise ExchangeCancelledError()
            if event.kind == "message":
                messages.append(event.text)
            elif event.kind == "error":
                raise AgentError(event.text)
            elif event.kind == "completed":
                usage = event.usage

    return TurnResult(text="\n".join(messages).strip(), usage=usage)


def _decode(text: str) -> Any:
    return json.loads(strip_code_fences(text))


async def run_with_schema(
    session: AgentSession,
    prompt: str,
    schema: ResponseSchema[T],
    *,
    timeout_ms: int = DEFAULT_TIMEOUT_MS,
    cancel_event: asyncio.Event | None = None,
) -> RunResult[T]:
    turn = await consume_turn(session, prompt, timeout_ms=timeout_ms, cancel_event=cancel_event)
    usage = turn.usage
    try:
        payload = _decode(turn.text)
    except json.JSONDecodeError:
        logger.warning("Failed to parse %s response as JSON, attempting repair", schema.name)
        repair = await consume_turn(session, REPAIR_PROMPT, timeout_ms=timeout_ms, cancel_event=cancel_event)
        usage = _combine_usage(usage, repair.usage)
        try:
            payload = _decode(repair.text)
        except json.JSONDecodeError as exc:
            raise ResponseFormatError(turn.text) from exc

    return RunResult(data=schema.parse(payload), usage=usage)


__all__ = [
    "REPAIR_PROMPT",
    "RunResult",
    "TurnResult",
    "consume_turn",
    "run_with_schema",
    "strip_code_fences",
]
