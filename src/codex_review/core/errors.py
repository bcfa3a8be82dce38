from __future__ import annotations

import json
from typing import Any

ERROR_CODE_EXTERNAL_TOOL = "EXTERNAL_TOOL_FAILED"
ERROR_CODE_ENVIRONMENT = "ENVIRONMENT_MISSING"
ERROR_CODE_TIMEOUT = "EXCHANGE_TIMEOUT"
ERROR_CODE_CANCELLED = "EXCHANGE_CANCELLED"
ERROR_CODE_RESPONSE_FORMAT = "RESPONSE_FORMAT"
ERROR_CODE_SCHEMA_VALIDATION = "SCHEMA_VALIDATION"
ERROR_CODE_AGENT = "AGENT_FAILED"


class ReviewError(Exception):
    """Base class for every fatal pipeline error."""

    code = "REVIEW_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class ExternalToolError(ReviewError):
    code = ERROR_CODE_EXTERNAL_TOOL

    def __init__(self, message: str, command: list[str] | None = None, returncode: int | None = None) -> None:
        details: dict[str, Any] = {}
        if command is not None:
            details["command"] = list(command)
        if returncode is not None:
            details["returncode"] = returncode
        super().__init__(message, details)
        self.command = command
        self.returncode = returncode


class MissingEnvironmentError(ReviewError):
    code = ERROR_CODE_ENVIRONMENT


class ExchangeTimeoutError(ReviewError, TimeoutError):
    code = ERROR_CODE_TIMEOUT

    def __init__(self, timeout_ms: int) -> None:
        super().__init__(f"Agent exchange timed out after {timeout_ms}ms", {"timeout_ms": timeout_ms})
        self.timeout_ms = timeout_ms


class ExchangeCancelledError(ReviewError):
    code = ERROR_CODE_CANCELLED

    def __init__(self) -> None:
        super().__init__("Agent exchange was cancelled")


class AgentError(ReviewError):
    code = ERROR_CODE_AGENT

    def __init__(self, agent_message: str) -> None:
        super().__init__(f"Codex agent error: {agent_message}", {"agent_message": agent_message})
        self.agent_message = agent_message


class ResponseFormatError(ReviewError):
    code = ERROR_CODE_RESPONSE_FORMAT

    def __init__(self, raw_text: str) -> None:
        super().__init__(
            f"Failed to parse JSON even after repair. Response: {raw_text}",
            {"raw_text": raw_text},
        )
        self.raw_text = raw_text


class SchemaValidationError(ReviewError, ValueError):
    code = ERROR_CODE_SCHEMA_VALIDATION

    def __init__(self, errors: list[str], payload: Any = None) -> None:
        lines = "\n".join(f"  {error}" for error in errors)
        message = f"Response validation failed:\n{lines}"
        if payload is not None:
            message += f"\n\nRaw data: {json.dumps(payload, indent=2, default=str)}"
        super().__init__(message, {"errors": list(errors)})
        self.errors = list(errors)
        self.payload = payload


__all__ = [
    "ERROR_CODE_AGENT",
    "ERROR_CODE_CANCELLED",
    "ERROR_CODE_ENVIRONMENT",
    "ERROR_CODE_EXTERNAL_TOOL",
    "ERROR_CODE_RESPONSE_FORMAT",
    "ERROR_CODE_SCHEMA_VALIDATION",
    "ERROR_CODE_TIMEOUT",
    "AgentError",
    "ExchangeCancelledError",
    "ExchangeTimeoutError",
    "ExternalToolError",
    "MissingEnvironmentError",
    "ResponseFormatError",
    "ReviewError",
    "SchemaValidationError",
]
