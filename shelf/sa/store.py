# shelf/sa/store.py

import logging
from typing import Callable, Optional

from shelf.reconcile.cache import CacheEvent, CacheEventKind, ContextCache
from shelf.sa.database import Database
from shelf.sa.repositories.snapshot import SnapshotRepository

logger = logging.getLogger(__name__)


class SnapshotStore:
    """Keeps a ContextCache and the context_snapshot table in step.

    ``load`` fills the cache from the database, ``attach`` subscribes to the
    cache so every later change is written back.
    """

    def __init__(self, database: Database, cache: ContextCache):
        self.database = database
        self.cache = cache
        self._unsubscribe: Optional[Callable[[], None]] = None

    def load(self) -> int:
        with self.database.get_db() as session:
            contexts = SnapshotRepository(session).get_all()
        for context in contexts:
            self.cache.put(context.key, context.entries, fetched_at=context.fetched_at, stale=context.stale)
        logger.debug(f"Loaded {len(contexts)} cached contexts")
        return len(contexts)

    def attach(self) -> None:
        if self._unsubscribe is None:
            self._unsubscribe = self.cache.subscribe(self._on_event)

    def detach(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def _on_event(self, event: CacheEvent) -> None:
        with self.database.get_db() as session:
            repo = SnapshotRepository(session)
            for key in event.keys:
                if event.kind == CacheEventKind.EVICT:
                    repo.delete(key)
                    continue
                context = self.cache.get(key)
                if context is not None:
                    repo.save(context)
        logger.debug(f"Persisted {event.kind.value} for {', '.join(event.keys)}")
