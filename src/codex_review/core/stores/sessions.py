"""SessionCache protocol and local JSON-file implementation."""
from __future__ import annotations

import json
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from codex_review.constants import SESSION_CACHE_FILENAME, SESSION_MAX_AGE_MS, resolve_cache_dir
from codex_review.core.stores.files import write_text_atomic

logger = logging.getLogger(__name__)


def _now_ms() -> float:
    return time.time() * 1000


@runtime_checkable
class SessionCache(Protocol):
    """Maps a review context to a resumable agent session id."""

    def get(self, context_key: str) -> str | None: ...
    def put(self, context_key: str, session_id: str) -> None: ...
    def compact(self) -> None: ...


@dataclass(slots=True, frozen=True)
class SessionCacheEntry:
    context_key: str
    session_id: str
    last_used: float

    def age_ms(self, now_ms: float) -> float:
        return now_ms - self.last_used

    def to_dict(self) -> dict[str, Any]:
        return {"threadId": self.session_id, "lastUsed": self.last_used}


class LocalSessionCache:
    """Whole-file JSON store; every write rewrites the full map.

    There is no cross-process locking: concurrent runs against the same file
    are last-writer-wins.
    """

    def __init__(
        self,
        path: Path | None = None,
        *,
        max_age_ms: int = SESSION_MAX_AGE_MS,
        clock: Callable[[], float] = _now_ms,
    ) -> None:
        self._path = path if path is not None else resolve_cache_dir() / SESSION_CACHE_FILENAME
        self._max_age_ms = max_age_ms
        self._clock = clock

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> dict[str, SessionCacheEntry]:
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
            logger.debug("Ignoring unreadable session cache %s: %s", self._path, exc)
            return {}
        if not isinstance(raw, dict):
            return {}

        entries: dict[str, SessionCacheEntry] = {}
        for key, value in raw.items():
            if not isinstance(value, dict):
                continue
            session_id = value.get("threadId")
            last_used = value.get("lastUsed")
            if not isinstance(session_id, str) or not isinstance(last_used, (int, float)):
                continue
            entries[str(key)] = SessionCacheEntry(context_key=str(key), session_id=session_id, last_used=last_used)
        return entries

    def _save(self, entries: dict[str, SessionCacheEntry]) -> None:
        payload = {key: entry.to_dict() for key, entry in entries.items()}
        write_text_atomic(self._path, json.dumps(payload, indent=2))

    def _is_fresh(self, entry: SessionCacheEntry, now_ms: float) -> bool:
        return entry.age_ms(now_ms) < self._max_age_ms

    def entries(self) -> list[SessionCacheEntry]:
        return list(self._load().values())

    def get(self, context_key: str) -> str | None:
        entry = self._load().get(context_key)
        if entry is None or not self._is_fresh(entry, self._clock()):
            return None
        return entry.session_id

    def put(self, context_key: str, session_id: str) -> None:
        entries = self._load()
        entries[context_key] = SessionCacheEntry(
            context_key=context_key,
            session_id=session_id,
            last_used=self._clock(),
        )
        self._save(entries)

    def compact(self) -> None:
        entries = self._load()
        now_ms = self._clock()
        fresh = {key: entry for key, entry in entries.items() if self._is_fresh(entry, now_ms)}
        if not fresh and not self._path.exists():
            return
        dropped = len(entries) - len(fresh)
        if dropped:
            logger.debug("Dropping %d expired session(s) from %s", dropped, self._path)
        self._save(fresh)


__all__ = ["LocalSessionCache", "SessionCache", "SessionCacheEntry"]
