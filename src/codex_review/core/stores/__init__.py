"""Store abstractions for agent sessions and issue baselines."""
from codex_review.core.stores.baselines import BaselineStore, LocalBaselineStore
from codex_review.core.stores.sessions import LocalSessionCache, SessionCache, SessionCacheEntry

__all__ = [
    "BaselineStore",
    "LocalBaselineStore",
    "LocalSessionCache",
    "SessionCache",
    "SessionCacheEntry",
]
