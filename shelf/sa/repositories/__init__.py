# shelf/sa/repositories/__init__.py
from .snapshot import SnapshotRepository

__all__ = ['SnapshotRepository']
