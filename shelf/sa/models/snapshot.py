# shelf/sa/models/snapshot.py
from datetime import datetime
from sqlalchemy import String, Text, Boolean, DateTime, Index
from sqlalchemy.orm import Mapped, mapped_column
from .base import Base, TimestampMixin

class ContextSnapshot(Base, TimestampMixin):
    """A cached collection context persisted between CLI runs"""
    __tablename__ = 'context_snapshot'

    key: Mapped[str] = mapped_column(String(500), primary_key=True)  # e.g. "author:42", "search:dune"
    payload: Mapped[str] = mapped_column(Text, nullable=False)        # JSON list of catalog entries
    fetched_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    stale: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    __table_args__ = (
        Index('idx_context_snapshot_fetched_at', 'fetched_at'),
    )
