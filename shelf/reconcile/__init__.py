# shelf/reconcile/__init__.py
from .cache import ContextCache, CacheEvent, CacheEventKind
from .controller import (
    LibraryController, MutationOutcome, OutcomeResult, AddOptions,
    mark_added, mark_removed
)

__all__ = [
    'ContextCache',
    'CacheEvent',
    'CacheEventKind',
    'LibraryController',
    'MutationOutcome',
    'OutcomeResult',
    'AddOptions',
    'mark_added',
    'mark_removed'
]
