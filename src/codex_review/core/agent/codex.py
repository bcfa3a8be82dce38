"""Agent client backed by the Codex CLI's ``codex exec --json`` event stream."""
from __future__ import annotations

import asyncio
import json
import logging
import os
import shutil
from collections.abc import AsyncIterator
from pathlib import Path
from typing import Any

from codex_review.constants import API_KEY_ENVS, CODEX_PATH_ENV
from codex_review.core.agent.interfaces import AgentEvent
from codex_review.core.errors import MissingEnvironmentError
from codex_review.core.models import Usage

logger = logging.getLogger(__name__)

# Agent messages arrive as single JSONL lines and can be large.
_STREAM_LIMIT = 16 * 1024 * 1024


def parse_codex_event(payload: dict[str, Any]) -> AgentEvent | None:
    """Map one ``codex exec --json`` record onto an :class:`AgentEvent`.

    Returns None for records that carry nothing the extractor consumes.
    """
    event_type = payload.get("type")
    if event_type == "thread.started":
        thread_id = payload.get("thread_id")
        return AgentEvent.session(thread_id) if isinstance(thread_id, str) and thread_id else None
    if event_type == "item.completed":
        item = payload.get("item")
        if not isinstance(item, dict):
            return None
        item_type = item.get("type") or item.get("item_type")
        if item_type == "agent_message":
            return AgentEvent.message(str(item.get("text", "")))
        if item_type == "error":
            return AgentEvent.error(str(item.get("message", "unknown error")))
        return None
    if event_type == "turn.completed":
        usage = payload.get("usage")
        return AgentEvent.completed(Usage.from_dict(usage) if isinstance(usage, dict) else None)
    if event_type == "turn.failed":
        error = payload.get("error")
        message = error.get("message") if isinstance(error, dict) else None
        return AgentEvent.error(str(message or "turn failed"))
    if event_type == "error":
        return AgentEvent.error(str(payload.get("message", "unknown error")))
    return None


class CodexCliSession:
    def __init__(self, client: CodexCliClient, session_id: str | None = None) -> None:
        self._client = client
        self._id = session_id

    @property
    def id(self) -> str | None:
        return self._id

    def build_command(self) -> list[str]:
        command = [
            self._client.codex_path,
            "exec",
            "--json",
            "--sandbox",
            "read-only",
            "--skip-git-repo-check",
            "--cd",
            str(self._client.workdir),
        ]
        if self._client.model:
            command.extend(["--model", self._client.model])
        if self._id:
            command.extend(["resume", self._id])
        command.append("-")
        return command

    async def run_streamed(self, prompt: str) -> AsyncIterator[AgentEvent]:
        command = self.build_command()
        logger.debug("Starting codex turn: %s", " ".join(command[:-1]))
        proc = await asyncio.create_subprocess_exec(
            *command,
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            limit=_STREAM_LIMIT,
        )
        assert proc.stdin is not None and proc.stdout is not None and proc.stderr is not None
        stderr_task = asyncio.ensure_future(proc.stderr.read())
        terminal_seen = False
        try:
            try:
                proc.stdin.write(prompt.encode("utf-8"))
                await proc.stdin.drain()
            except (BrokenPipeError, ConnectionResetError) as exc:
                logger.debug("codex closed stdin early: %s", exc)
            finally:
                proc.stdin.close()

            async for raw_line in proc.stdout:
                line = raw_line.decode("utf-8", errors="replace").strip()
                if not line:
                    continue
                try:
                    payload = json.loads(line)
                except json.JSONDecodeError:
                    logger.debug("Skipping non-JSON codex output: %s", line[:200])
                    continue
                if not isinstance(payload, dict):
                    continue
                event = parse_codex_event(payload)
                if event is None:
                    continue
                if event.kind == "session":
                    self._id = event.session_id
                elif event.kind in ("error", "completed"):
                    terminal_seen = True
                yield event

            returncode = await proc.wait()
            stderr = (await stderr_task).decode("utf-8", errors="replace").strip()
            if not terminal_seen:
                if returncode != 0:
                    yield AgentEvent.error(f"codex exited with code {returncode}: {stderr or 'no output'}")
                else:
                    yield AgentEvent.completed()
        finally:
            if proc.returncode is None:
                proc.kill()
                await proc.wait()
            if not stderr_task.done():
                stderr_task.cancel()


class CodexCliClient:
    def __init__(
        self,
        workdir: Path,
        *,
        codex_path: str | None = None,
        model: str | None = None,
    ) -> None:
        self.workdir = workdir
        self.codex_path = codex_path or os.getenv(CODEX_PATH_ENV, "").strip() or "codex"
        self.model = model

    def check_environment(self) -> None:
        if not any(os.getenv(name) for name in API_KEY_ENVS):
            raise MissingEnvironmentError(
                "API key not found. Please set OPENAI_API_KEY or CODEX_API_KEY environment variable."
            )
        if shutil.which(self.codex_path) is None:
            raise MissingEnvironmentError(
                "Codex CLI not found. Please install it:\n"
                "  npm install -g @openai/codex\n"
                "  or\n"
                "  brew install codex"
            )

    def start_session(self) -> CodexCliSession:
        return CodexCliSession(self)

    def resume_session(self, session_id: str) -> CodexCliSession:
        return CodexCliSession(self, session_id=session_id)


__all__ = ["CodexCliClient", "CodexCliSession", "parse_codex_event"]
