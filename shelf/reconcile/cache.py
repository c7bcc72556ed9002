# shelf/reconcile/cache.py

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from shelf.models import CatalogEntry, CollectionContext, entries_from_payload

logger = logging.getLogger(__name__)


class CacheEventKind(str, Enum):
    PUT = "put"
    PATCH = "patch"
    STALE = "stale"
    EVICT = "evict"


@dataclass(frozen=True)
class CacheEvent:
    kind: CacheEventKind
    keys: Tuple[str, ...]


CacheListener = Callable[[CacheEvent], None]
EntryPatch = Callable[[CatalogEntry], None]


class ContextCache:
    """Process-wide cache of collection contexts keyed by ``kind:ident``.

    Entries are patched in place. Subscribers are told about every change so
    several views (and the snapshot store) can share one cache.
    """

    def __init__(self):
        self._contexts: Dict[str, CollectionContext] = {}
        self._listeners: List[CacheListener] = []

    def __contains__(self, key: str) -> bool:
        return key in self._contexts

    def __len__(self) -> int:
        return len(self._contexts)

    def get(self, key: str) -> Optional[CollectionContext]:
        return self._contexts.get(key)

    def keys(self) -> List[str]:
        return list(self._contexts)

    def contexts(self) -> List[CollectionContext]:
        return list(self._contexts.values())

    def snapshot(self, key: str) -> List[CatalogEntry]:
        """Deep copies of a context's entries, safe to hand to the view engine."""
        context = self._contexts.get(key)
        if context is None:
            return []
        return [entry.model_copy(deep=True) for entry in context.entries]

    def put(
        self,
        key: str,
        entries: Iterable,
        fetched_at: Optional[datetime] = None,
        stale: bool = False
    ) -> CollectionContext:
        context = CollectionContext(key=key, entries=entries_from_payload(entries), stale=stale)
        if fetched_at is not None:
            context.fetched_at = fetched_at
        self._contexts[key] = context
        self._emit(CacheEventKind.PUT, [key])
        return context

    def evict(self, key: str) -> bool:
        if self._contexts.pop(key, None) is None:
            return False
        self._emit(CacheEventKind.EVICT, [key])
        return True

    def clear(self) -> None:
        keys = list(self._contexts)
        self._contexts.clear()
        if keys:
            self._emit(CacheEventKind.EVICT, keys)

    def keys_containing(self, external_id: str) -> List[str]:
        return [
            key for key, context in self._contexts.items()
            if context.find_external(external_id) is not None
        ]

    def keys_referencing(self, local_id: int) -> List[str]:
        return [key for key, context in self._contexts.items() if context.find_local(local_id)]

    def find_external(self, external_id: str) -> Optional[CatalogEntry]:
        for context in self._contexts.values():
            entry = context.find_external(external_id)
            if entry is not None:
                return entry
        return None

    def find_local(self, local_id: int) -> Optional[CatalogEntry]:
        for context in self._contexts.values():
            matches = context.find_local(local_id)
            if matches:
                return matches[0]
        return None

    def patch_external(self, external_id: str, patch: EntryPatch) -> List[str]:
        """Apply ``patch`` to the entry with ``external_id`` in every context.

        Returns:
            Keys of the contexts that were patched
        """
        patched = []
        for key, context in self._contexts.items():
            entry = context.find_external(external_id)
            if entry is not None:
                patch(entry)
                patched.append(key)
        if patched:
            self._emit(CacheEventKind.PATCH, patched)
        return patched

    def patch_local(self, local_id: int, patch: EntryPatch) -> List[str]:
        """Apply ``patch`` to every entry whose library record has ``local_id``."""
        patched = []
        for key, context in self._contexts.items():
            matches = context.find_local(local_id)
            for entry in matches:
                patch(entry)
            if matches:
                patched.append(key)
        if patched:
            self._emit(CacheEventKind.PATCH, patched)
        return patched

    def mark_stale(self, keys: Iterable[str]) -> List[str]:
        marked = []
        for key in keys:
            context = self._contexts.get(key)
            if context is not None:
                context.stale = True
                marked.append(key)
        if marked:
            self._emit(CacheEventKind.STALE, marked)
        return marked

    def subscribe(self, listener: CacheListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _emit(self, kind: CacheEventKind, keys: List[str]) -> None:
        event = CacheEvent(kind=kind, keys=tuple(keys))
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception(f"Cache listener failed on {kind.value} {event.keys}")
