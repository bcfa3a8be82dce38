"""Agent capability: streamed sessions and structured response extraction."""
from codex_review.core.agent.codex import CodexCliClient, CodexCliSession
from codex_review.core.agent.extractor import REPAIR_PROMPT, RunResult, run_with_schema, strip_code_fences
from codex_review.core.agent.interfaces import AgentClient, AgentEvent, AgentSession

__all__ = [
    "REPAIR_PROMPT",
    "AgentClient",
    "AgentEvent",
    "AgentSession",
    "CodexCliClient",
    "CodexCliSession",
    "RunResult",
    "run_with_schema",
    "strip_code_fences",
]
