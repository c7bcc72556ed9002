# shelf/models/__init__.py
from .entry import BookStatus, LibraryBook, CatalogEntry, entries_from_payload
from .context import ContextKind, CollectionContext, context_key, parse_context_key

__all__ = [
    'BookStatus',
    'LibraryBook',
    'CatalogEntry',
    'entries_from_payload',
    'ContextKind',
    'CollectionContext',
    'context_key',
    'parse_context_key'
]
