# shelf/views/sort_filter.py

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import List, Sequence

from shelf.models import BookStatus, CatalogEntry


class SortField(str, Enum):
    TITLE = "title"
    RATING = "rating"
    RELEASE_YEAR = "releaseYear"
    SERIES_INDEX = "seriesIndex"


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"


class FilterStatus(str, Enum):
    ALL = "all"
    IN_LIBRARY = "inLibrary"
    NOT_IN_LIBRARY = "notInLibrary"
    MISSING = "missing"
    DOWNLOADED = "downloaded"


class ViewMode(str, Enum):
    GRID = "grid"
    LIST = "list"


@dataclass(frozen=True)
class SortFilterState:
    filter_status: FilterStatus = FilterStatus.ALL
    sort_field: SortField = SortField.TITLE
    sort_order: SortOrder = SortOrder.ASC
    hide_compilations: bool = False
    view_mode: ViewMode = ViewMode.GRID

    def toggled_order(self) -> "SortFilterState":
        order = SortOrder.DESC if self.sort_order == SortOrder.ASC else SortOrder.ASC
        return replace(self, sort_order=order)

    @property
    def active_filter_count(self) -> int:
        return (self.filter_status != FilterStatus.ALL) + bool(self.hide_compilations)


@dataclass
class CollectionView:
    """What a page renders: ordered entries plus toolbar counts."""
    entries: List[CatalogEntry] = field(default_factory=list)
    total_count: int = 0
    filtered_count: int = 0

    @property
    def is_filtered(self) -> bool:
        return self.filtered_count != self.total_count


@dataclass(frozen=True)
class LibraryCounts:
    total: int
    in_library: int
    downloaded: int

    @property
    def missing(self) -> int:
        return self.total - self.in_library


def get_default_sort_filter_state(is_series_context: bool = False) -> SortFilterState:
    """Series pages are ordered by series index, everything else by title."""
    return SortFilterState(
        filter_status=FilterStatus.ALL,
        sort_field=SortField.SERIES_INDEX if is_series_context else SortField.TITLE,
        sort_order=SortOrder.ASC,
        hide_compilations=False,
        view_mode=ViewMode.GRID,
    )


def _matches(entry: CatalogEntry, filter_status: FilterStatus) -> bool:
    if filter_status == FilterStatus.ALL:
        return True
    if filter_status == FilterStatus.IN_LIBRARY:
        return entry.in_library
    if filter_status == FilterStatus.NOT_IN_LIBRARY:
        return not entry.in_library
    if filter_status == FilterStatus.MISSING:
        # Owned books with no known status count as missing
        return not entry.in_library or entry.status != BookStatus.DOWNLOADED
    if filter_status == FilterStatus.DOWNLOADED:
        return entry.status == BookStatus.DOWNLOADED
    return True


def filter_books(
    entries: Sequence[CatalogEntry],
    filter_status=FilterStatus.ALL,
    hide_compilations: bool = False
) -> List[CatalogEntry]:
    """Return the entries matching ``filter_status``, keeping their order.

    Args:
        entries: Catalog entries to filter, never modified
        filter_status: One of ``FilterStatus`` (or its string value)
        hide_compilations: Drop compilations whatever the status filter says

    Raises:
        ValueError: If ``filter_status`` is not a recognised value
    """
    filter_status = FilterStatus(filter_status)
    return [
        entry for entry in entries
        if not (hide_compilations and entry.compilation is True)
        and _matches(entry, filter_status)
    ]


def _sort_key(entry: CatalogEntry, sort_field: SortField):
    if sort_field == SortField.TITLE:
        return (entry.title or "").casefold()
    if sort_field == SortField.RATING:
        return entry.rating or 0
    if sort_field == SortField.RELEASE_YEAR:
        # Missing years sort as the lowest value
        return entry.release_year if entry.release_year is not None else float("-inf")
    return entry.series_index


def sort_books(
    entries: Sequence[CatalogEntry],
    sort_field=SortField.TITLE,
    sort_order=SortOrder.ASC
) -> List[CatalogEntry]:
    """Stable sort of catalog entries.

    ``desc`` reverses the comparison for every field. The one exception is a
    missing series index, which always goes last.
    """
    sort_field = SortField(sort_field)
    reverse = SortOrder(sort_order) == SortOrder.DESC

    if sort_field == SortField.SERIES_INDEX:
        indexed = [entry for entry in entries if entry.series_index is not None]
        unindexed = [entry for entry in entries if entry.series_index is None]
        return sorted(indexed, key=lambda e: e.series_index, reverse=reverse) + unindexed

    return sorted(entries, key=lambda e: _sort_key(e, sort_field), reverse=reverse)


def derive_view(entries: Sequence[CatalogEntry], state: SortFilterState) -> CollectionView:
    filtered = filter_books(entries, state.filter_status, state.hide_compilations)
    ordered = sort_books(filtered, state.sort_field, state.sort_order)
    return CollectionView(entries=ordered, total_count=len(entries), filtered_count=len(ordered))


def library_counts(entries: Sequence[CatalogEntry]) -> LibraryCounts:
    in_library = sum(1 for entry in entries if entry.in_library)
    downloaded = sum(1 for entry in entries if entry.status == BookStatus.DOWNLOADED)
    return LibraryCounts(total=len(entries), in_library=in_library, downloaded=downloaded)
