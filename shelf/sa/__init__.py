# shelf/sa/__init__.py
from .database import Database
from .models import Base, ContextSnapshot
from .repositories import SnapshotRepository
from .store import SnapshotStore

__all__ = [
    'Database',
    'Base',
    'ContextSnapshot',
    'SnapshotRepository',
    'SnapshotStore'
]
