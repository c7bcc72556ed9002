# shelf/sa/models/__init__.py
from .base import Base, TimestampMixin
from .snapshot import ContextSnapshot

__all__ = [
    'Base',
    'TimestampMixin',
    'ContextSnapshot'
]
