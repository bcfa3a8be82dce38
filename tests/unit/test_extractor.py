from __future__ import annotations

import asyncio
import json
from typing import Any

import pytest

from codex_review.core.agent.extractor import REPAIR_PROMPT, consume_turn, run_with_schema, strip_code_fences
from codex_review.core.agent.interfaces import AgentEvent
from codex_review.core.errors import (
    AgentError,
    ExchangeCancelledError,
    ExchangeTimeoutError,
    ResponseFormatError,
    SchemaValidationError,
)
from codex_review.core.models import Usage
from codex_review.core.schema import DIFF_ANALYSIS_SCHEMA, ResponseSchema

ECHO_SCHEMA: ResponseSchema[Any] = ResponseSchema(name="echo", json_schema={}, parse=lambda data: data)

VALID_ANALYSIS = json.dumps(
    {"overall_assessment": "Fine", "should_merge": True, "issues": [], "positive_notes": []}
)


@pytest.mark.parametrize(
    "raw",
    [
        '{"a": 1}',
        '```json\n{"a": 1}\n```',
        '```\n{"a": 1}\n```',
        '  ```JSON\n{"a": 1}```  ',
    ],
)
def test_strip_code_fences(raw: str) -> None:
    assert strip_code_fences(raw) == '{"a": 1}'


def test_fenced_json_parses_without_repair(scripted_session, agent_reply) -> None:
    session = scripted_session(agent_reply(f"```json\n{VALID_ANALYSIS}\n```", Usage(10, 2, 5)))

    run = asyncio.run(run_with_schema(session, "review please", DIFF_ANALYSIS_SCHEMA))

    assert run.data.should_merge is True
    assert run.usage == Usage(10, 2, 5)
    assert session.prompts == ["review please"]
    assert session.id == "thread-1"


def test_multiple_messages_are_joined_with_newlines(scripted_session) -> None:
    session = scripted_session(
        [AgentEvent.message('{"a":'), AgentEvent.message("1}"), AgentEvent.completed()]
    )

    turn = asyncio.run(consume_turn(session, "go"))

    assert turn.text == '{"a":\n1}'


def test_repair_turn_recovers_and_sums_usage(scripted_session, agent_reply) -> None:
    session = scripted_session(
        agent_reply("Here is my analysis, it looks good overall.", Usage(100, 0, 40)),
        agent_reply('{"fixed": true}', Usage(20, 10, 5)),
    )

    run = asyncio.run(run_with_schema(session, "review", ECHO_SCHEMA))

    assert run.data == {"fixed": True}
    assert run.usage == Usage(120, 10, 45)
    assert session.prompts == ["review", REPAIR_PROMPT]


def test_empty_response_goes_through_repair(scripted_session, agent_reply) -> None:
    session = scripted_session([AgentEvent.completed()], agent_reply('{"ok": 1}'))

    run = asyncio.run(run_with_schema(session, "review", ECHO_SCHEMA))

    assert run.data == {"ok": 1}
    assert run.usage is None


def test_second_parse_failure_raises_with_first_response(scripted_session, agent_reply) -> None:
    session = scripted_session(agent_reply("not json at all"), agent_reply("still not json"))

    with pytest.raises(ResponseFormatError, match="even after repair") as excinfo:
        asyncio.run(run_with_schema(session, "review", ECHO_SCHEMA))

    assert excinfo.value.raw_text == "not json at all"
    assert len(session.prompts) == 2


def test_schema_violation_is_not_repaired(scripted_session, agent_reply) -> None:
    session = scripted_session(agent_reply('{"should_merge": true}'))

    with pytest.raises(SchemaValidationError, match="overall_assessment: required"):
        asyncio.run(run_with_schema(session, "review", DIFF_ANALYSIS_SCHEMA))

    assert session.prompts == ["review"]


def test_agent_error_wins_over_parseable_text(scripted_session) -> None:
    session = scripted_session([AgentEvent.message('{"a": 1}'), AgentEvent.error("model overloaded")])

    with pytest.raises(AgentError, match="Codex agent error: model overloaded"):
        asyncio.run(run_with_schema(session, "review", ECHO_SCHEMA))


def test_stream_is_drained_after_completion(scripted_session) -> None:
    session = scripted_session(
        [AgentEvent.message('{"a": 1}'), AgentEvent.completed(Usage(1, 0, 1)), AgentEvent.error("late failure")]
    )

    with pytest.raises(AgentError, match="late failure"):
        asyncio.run(consume_turn(session, "go"))


def test_timeout_raises_exchange_timeout(scripted_session) -> None:
    session = scripted_session([AgentEvent.message("partial"), 5.0, AgentEvent.completed()])

    with pytest.raises(ExchangeTimeoutError) as excinfo:
        asyncio.run(consume_turn(session, "go", timeout_ms=50))

    assert excinfo.value.timeout_ms == 50
    assert isinstance(excinfo.value, TimeoutError)


def test_cancel_before_first_event(scripted_session, agent_reply) -> None:
    session = scripted_session(agent_reply('{"a": 1}'))

    async def scenario() -> None:
        cancel = asyncio.Event()
        cancel.set()
        await run_with_schema(session, "go", ECHO_SCHEMA, cancel_event=cancel)

    with pytest.raises(ExchangeCancelledError):
        asyncio.run(scenario())


def test_cancel_mid_stream(scripted_session) -> None:
    async def scenario() -> None:
        cancel = asyncio.Event()
        session = scripted_session(
            [AgentEvent.message('{"a":'), cancel.set, AgentEvent.message("1}"), AgentEvent.completed()]
        )
        await consume_turn(session, "go", cancel_event=cancel)

    with pytest.raises(ExchangeCancelledError, match="cancelled"):
        asyncio.run(scenario())
