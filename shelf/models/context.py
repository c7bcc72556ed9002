# shelf/models/context.py

from dataclasses import dataclass, field
from datetime import datetime, UTC
from enum import Enum
from typing import List, Optional, Tuple

from .entry import CatalogEntry


class ContextKind(str, Enum):
    AUTHOR = "author"
    SERIES = "series"
    SEARCH = "search"


def context_key(kind, ident) -> str:
    """Build a cache key such as ``author:42`` or ``search:dune``."""
    kind = ContextKind(kind)
    ident = str(ident).strip()
    if not ident:
        raise ValueError("Context identifier must not be empty")
    return f"{kind.value}:{ident}"


def parse_context_key(key: str) -> Tuple[ContextKind, str]:
    """Split a cache key into its kind and identifier.

    Raises:
        ValueError: If the key has no ``kind:`` prefix or the kind is unknown
    """
    kind, sep, ident = key.partition(":")
    if not sep or not ident:
        raise ValueError(f"Invalid context key '{key}'")
    return ContextKind(kind), ident


@dataclass
class CollectionContext:
    """A named, cached list of catalog entries."""
    key: str
    entries: List[CatalogEntry] = field(default_factory=list)
    fetched_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    stale: bool = False

    @property
    def kind(self) -> ContextKind:
        return parse_context_key(self.key)[0]

    def find_external(self, external_id: str) -> Optional[CatalogEntry]:
        for entry in self.entries:
            if entry.external_id == external_id:
                return entry
        return None

    def find_local(self, local_id: int) -> List[CatalogEntry]:
        return [
            entry for entry in self.entries
            if entry.library_book is not None and entry.library_book.id == local_id
        ]
