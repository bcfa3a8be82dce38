"""BaselineStore protocol and local filesystem implementation."""
from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from pathlib import Path
from typing import Protocol, runtime_checkable

from codex_review.constants import REPORT_SCHEMA_VERSION
from codex_review.core.stores.files import write_text_atomic

logger = logging.getLogger(__name__)


@runtime_checkable
class BaselineStore(Protocol):
    """Abstraction for reading and overwriting a baseline fingerprint set."""

    def load(self) -> frozenset[str]: ...
    def write(self, fingerprints: Iterable[str]) -> None: ...


class LocalBaselineStore:
    """Baseline kept as a JSON document of sorted fingerprints."""

    def __init__(self, path: Path) -> None:
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> frozenset[str]:
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            logger.debug("Baseline %s not found; treating as empty", self._path)
            return frozenset()
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
            logger.warning("Baseline %s is unreadable (%s); treating as empty", self._path, exc)
            return frozenset()

        items = raw.get("fingerprints") if isinstance(raw, dict) else raw
        if not isinstance(items, list):
            logger.warning("Baseline %s has no fingerprint list; treating as empty", self._path)
            return frozenset()
        return frozenset(item for item in items if isinstance(item, str))

    def write(self, fingerprints: Iterable[str]) -> None:
        payload = {
            "schema_version": REPORT_SCHEMA_VERSION,
            "fingerprints": sorted(set(fingerprints)),
        }
        write_text_atomic(self._path, json.dumps(payload, indent=2) + "\n")


__all__ = ["BaselineStore", "LocalBaselineStore"]
