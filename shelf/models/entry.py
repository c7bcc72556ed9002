# shelf/models/entry.py

import logging
from enum import Enum
from typing import Any, Iterable, List, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator, model_validator
from pydantic.alias_generators import to_camel

logger = logging.getLogger(__name__)


class BookStatus(str, Enum):
    DOWNLOADED = "downloaded"
    DOWNLOADING = "downloading"
    MISSING = "missing"
    UNRELEASED = "unreleased"
    UNMONITORED = "unmonitored"   # Reported by the backend for books nobody is watching
    UNKNOWN = "unknown"


class LibraryBook(BaseModel):
    """Local library record attached to a catalog entry."""
    id: int
    status: BookStatus = BookStatus.UNKNOWN
    monitored: bool = True
    external_id: Optional[str] = None
    title: Optional[str] = None
    cover_url: Optional[str] = None
    rating: Optional[float] = None
    has_ebook: bool = False
    has_audiobook: bool = False

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    @field_validator("status", mode="before")
    @classmethod
    def _coerce_status(cls, value: Any) -> Any:
        if isinstance(value, BookStatus):
            return value
        try:
            return BookStatus(value)
        except ValueError:
            logger.debug(f"Unrecognised book status {value!r}, using 'unknown'")
            return BookStatus.UNKNOWN


class CatalogEntry(BaseModel):
    """One external catalog item as seen from a library-aware view.

    ``in_library`` is derived from ``library_book``. Search results only carry
    an ``inLibrary`` flag without the record; that flag is kept in
    ``library_flag`` so those entries still count as owned.
    """
    external_id: str
    title: str = ""
    author_name: Optional[str] = None
    series_id: Optional[str] = None
    series_name: Optional[str] = None
    series_index: Optional[float] = None
    rating: Optional[float] = None
    release_year: Optional[int] = None
    cover_url: Optional[str] = None
    compilation: bool = False
    has_ebook: bool = False
    has_audiobook: bool = False
    library_book: Optional[LibraryBook] = None
    library_flag: bool = Field(default=False, exclude=True)

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    @model_validator(mode="before")
    @classmethod
    def _normalise_payload(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        # The catalog uses "id" for the provider identifier
        if "externalId" not in data and "external_id" not in data and "id" in data:
            data["externalId"] = str(data.pop("id"))
        if not data.get("releaseYear") and not data.get("release_year"):
            release_date = data.get("releaseDate")
            if isinstance(release_date, str) and len(release_date) >= 4 and release_date[:4].isdigit():
                data["releaseYear"] = int(release_date[:4])
        # Search results name the author under "author"
        if "authorName" not in data and "author_name" not in data and isinstance(data.get("author"), str):
            data["authorName"] = data.pop("author")
        if not data.get("libraryBook") and not data.get("library_book") and "inLibrary" in data:
            data["libraryFlag"] = bool(data.pop("inLibrary"))
        return data

    @computed_field(alias="inLibrary")
    @property
    def in_library(self) -> bool:
        return self.library_book is not None or self.library_flag

    @property
    def status(self) -> Optional[BookStatus]:
        return self.library_book.status if self.library_book else None

    def display_title(self, fallback: str = "Book") -> str:
        return self.title or fallback


def entries_from_payload(items: Iterable[Any]) -> List[CatalogEntry]:
    """Build a list of entries keeping the first occurrence of each external id."""
    entries: List[CatalogEntry] = []
    seen = set()
    for item in items:
        entry = item if isinstance(item, CatalogEntry) else CatalogEntry.model_validate(item)
        if entry.external_id in seen:
            logger.warning(f"Dropping duplicate catalog entry {entry.external_id}")
            continue
        seen.add(entry.external_id)
        entries.append(entry)
    return entries
