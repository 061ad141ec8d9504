"""Read-side cache for ledger and aggregate views.

Entries expire after ``settings.cache_ttl_seconds`` but are normally dropped
earlier: every value is stored under a set of tags and a committed write
invalidates all entries carrying any of the tags it touched.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Callable, Hashable, Iterable, Type

from sqlalchemy import event
from sqlalchemy.orm import Session

from .config import settings

logger = logging.getLogger(__name__)

PENDING_TAGS_KEY = "pending_cache_tags"


@dataclass
class _Entry:
    value: Any
    expires_at: float
    tags: frozenset[str]


class TaggedCache:
    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[Hashable, _Entry] = {}
        self._keys_by_tag: dict[str, set[Hashable]] = defaultdict(set)
        self._lock = threading.RLock()

    def get(self, key: Hashable) -> tuple[bool, Any]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return False, None
            if entry.expires_at <= self._clock():
                self._drop(key)
                return False, None
            return True, entry.value

    def set(self, key: Hashable, value: Any, tags: Iterable[str]) -> None:
        with self._lock:
            self._drop(key)
            tag_set = frozenset(tags)
            self._entries[key] = _Entry(value=value, expires_at=self._clock() + self.ttl_seconds, tags=tag_set)
            for tag in tag_set:
                self._keys_by_tag[tag].add(key)

    def get_or_load(self, key: Hashable, tags: Iterable[str], loader: Callable[[], Any]) -> Any:
        hit, value = self.get(key)
        if hit:
            return value
        value = loader()
        self.set(key, value, tags)
        return value

    def invalidate(self, tag: str) -> int:
        with self._lock:
            keys = self._keys_by_tag.pop(tag, set())
            for key in list(keys):
                self._drop(key)
        if keys:
            logger.debug("Cache tag %s invalidated %d entries", tag, len(keys))
        return len(keys)

    def invalidate_many(self, tags: Iterable[str]) -> int:
        return sum(self.invalidate(tag) for tag in set(tags))

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._keys_by_tag.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def _drop(self, key: Hashable) -> None:
        entry = self._entries.pop(key, None)
        if entry is None:
            return
        for tag in entry.tags:
            keys = self._keys_by_tag.get(tag)
            if keys is None:
                continue
            keys.discard(key)
            if not keys:
                del self._keys_by_tag[tag]


cache = TaggedCache(ttl_seconds=settings.cache_ttl_seconds)


def mark_dirty(session: Session, *tags: str) -> None:
    """Queue tags for invalidation once the session commits."""
    pending: set[str] = session.info.setdefault(PENDING_TAGS_KEY, set())
    pending.update(tag for tag in tags if tag)


def setup_cache_events(session_cls: Type[Session]) -> None:
    @event.listens_for(session_cls, "after_commit")
    def _flush_invalidations(session):  # type: ignore[unused-variable]
        pending = session.info.pop(PENDING_TAGS_KEY, None)
        if pending:
            cache.invalidate_many(pending)

    @event.listens_for(session_cls, "after_rollback")
    def _discard_invalidations(session):  # type: ignore[unused-variable]
        session.info.pop(PENDING_TAGS_KEY, None)


# Tag builders shared by writers and readers.

def user_tag(kind: str, user_id: str) -> str:
    return f"{kind}:{user_id}"


def entity_tag(kind: str, entity_id: str) -> str:
    return f"{kind}:{entity_id}"


def specification_tag(contract_id: str) -> str:
    return entity_tag("specification", contract_id)


def contract_totals_tag(contract_id: str) -> str:
    return entity_tag("contract-totals", contract_id)


def dashboard_tag(user_id: str) -> str:
    return user_tag("dashboard", user_id)
