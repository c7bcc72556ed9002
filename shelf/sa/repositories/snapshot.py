# shelf/sa/repositories/snapshot.py

import json
from datetime import datetime, UTC
from typing import Iterable, List, Optional
from sqlalchemy.orm import Session
from shelf.models import CollectionContext, entries_from_payload
from shelf.sa.models import ContextSnapshot

class SnapshotRepository:
    """Repository for persisted collection contexts."""

    def __init__(self, session: Session):
        """Initialize the repository with a database session.

        Args:
            session: SQLAlchemy session for database operations
        """
        self.session = session

    def get_by_key(self, key: str) -> Optional[ContextSnapshot]:
        return self.session.query(ContextSnapshot).filter(ContextSnapshot.key == key).first()

    def get(self, key: str) -> Optional[CollectionContext]:
        """Load a stored context.

        Args:
            key: Context key such as "author:42"

        Returns:
            The CollectionContext if stored, None otherwise
        """
        snapshot = self.get_by_key(key)
        if not snapshot:
            return None
        return self._to_context(snapshot)

    def get_all(self) -> List[CollectionContext]:
        snapshots = self.session.query(ContextSnapshot).order_by(ContextSnapshot.key).all()
        return [self._to_context(snapshot) for snapshot in snapshots]

    def list_keys(self) -> List[str]:
        rows = self.session.query(ContextSnapshot.key).order_by(ContextSnapshot.key).all()
        return [row[0] for row in rows]

    def save(self, context: CollectionContext) -> ContextSnapshot:
        """Insert or replace the stored copy of a context.

        Args:
            context: The context to store

        Returns:
            The stored ContextSnapshot row
        """
        payload = json.dumps([
            entry.model_dump(mode="json", by_alias=True, exclude_none=True)
            for entry in context.entries
        ])
        fetched_at = context.fetched_at.astimezone(UTC).replace(tzinfo=None)

        snapshot = self.get_by_key(context.key)
        if snapshot:
            snapshot.payload = payload
            snapshot.fetched_at = fetched_at
            snapshot.stale = context.stale
        else:
            snapshot = ContextSnapshot(
                key=context.key,
                payload=payload,
                fetched_at=fetched_at,
                stale=context.stale
            )
            self.session.add(snapshot)
        self.session.commit()
        return snapshot

    def mark_stale(self, keys: Iterable[str]) -> int:
        keys = list(keys)
        if not keys:
            return 0
        count = (
            self.session.query(ContextSnapshot)
            .filter(ContextSnapshot.key.in_(keys))
            .update({ContextSnapshot.stale: True}, synchronize_session=False)
        )
        self.session.commit()
        return count

    def delete(self, key: str) -> bool:
        """Delete a stored context.

        Returns:
            True if the context was deleted, False if not found
        """
        snapshot = self.get_by_key(key)
        if not snapshot:
            return False
        self.session.delete(snapshot)
        self.session.commit()
        return True

    def delete_all(self) -> int:
        count = self.session.query(ContextSnapshot).delete()
        self.session.commit()
        return count

    def _to_context(self, snapshot: ContextSnapshot) -> CollectionContext:
        fetched_at = snapshot.fetched_at
        if fetched_at.tzinfo is None:
            fetched_at = fetched_at.replace(tzinfo=UTC)
        return CollectionContext(
            key=snapshot.key,
            entries=entries_from_payload(json.loads(snapshot.payload)),
            fetched_at=fetched_at,
            stale=snapshot.stale
        )
