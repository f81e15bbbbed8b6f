# Overview: Short-TTL in-memory cache of resolved identities, keyed by identity id.

"""
Identity Cache

Sits between token verification and permission evaluation so that a burst
of requests from one user costs one store round trip per TTL window.

- resolve(): hit within TTL returns the cached identity without I/O;
  otherwise the loader is called and the result cached
- invalidate(): the next resolve() for that id goes to the store. A load
  that was already in flight when invalidate() ran is not cached.
- requests that already hold an identity may finish with it

The loader returns an identity object (with .is_active) or None. Store
failures in the loader surface as IdentityResolutionFailed, distinct from
IdentityNotFound and IdentityInactive.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

from sqlalchemy.exc import SQLAlchemyError

from ..errors import IdentityInactive, IdentityNotFound, IdentityResolutionFailed, StoreUnavailable

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 300.0


@dataclass(frozen=True)
class _Entry:
    identity: Any
    fetched_at: float


class IdentityCache:
    def __init__(
        self,
        loader: Callable[[int], Optional[Any]],
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._loader = loader
        self._ttl = float(ttl_seconds)
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: dict[int, _Entry] = {}
        # Bumped on invalidate so a load racing an invalidation is discarded
        self._generations: dict[int, int] = {}
        self._epoch = 0
        self._hits = 0
        self._misses = 0

    @property
    def ttl_seconds(self) -> float:
        return self._ttl

    @staticmethod
    def normalize_id(identity_id) -> int:
        """Token subjects arrive as strings; the store keys are integers."""
        if isinstance(identity_id, bool):
            raise IdentityNotFound(identity_id)
        try:
            return int(identity_id)
        except (TypeError, ValueError):
            raise IdentityNotFound(identity_id) from None

    def resolve(self, identity_id):
        """
        Return the active identity for identity_id.

        Raises IdentityNotFound, IdentityInactive or IdentityResolutionFailed.
        """
        key = self.normalize_id(identity_id)

        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and self._clock() - entry.fetched_at < self._ttl:
                self._hits += 1
                identity = entry.identity
            else:
                if entry is not None:
                    del self._entries[key]
                self._misses += 1
                identity = None
                generation = self._generation(key)

        if identity is None:
            identity = self._load(key)
            with self._lock:
                if self._generation(key) == generation:
                    self._entries[key] = _Entry(identity, self._clock())

        if not identity.is_active:
            raise IdentityInactive(key)
        return identity

    def _generation(self, key: int) -> tuple[int, int]:
        return self._epoch, self._generations.get(key, 0)

    def _load(self, key: int):
        try:
            identity = self._loader(key)
        except (StoreUnavailable, SQLAlchemyError) as exc:
            logger.error("Identity lookup failed for %s: %s", key, exc.__class__.__name__)
            raise IdentityResolutionFailed(key, exc) from exc
        if identity is None:
            raise IdentityNotFound(key)
        return identity

    def invalidate(self, identity_id) -> None:
        try:
            key = self.normalize_id(identity_id)
        except IdentityNotFound:
            return
        with self._lock:
            self._entries.pop(key, None)
            self._generations[key] = self._generations.get(key, 0) + 1

    def clear_all(self) -> None:
        with self._lock:
            self._entries.clear()
            self._epoch += 1
            self._hits = 0
            self._misses = 0

    def stats(self) -> dict:
        with self._lock:
            return {
                "hits": self._hits,
                "misses": self._misses,
                "size": len(self._entries),
                "ttl_seconds": self._ttl,
            }
