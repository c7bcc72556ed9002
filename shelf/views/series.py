# shelf/views/series.py

from dataclasses import dataclass, field
from typing import Dict, List, Sequence

from shelf.models import CatalogEntry


@dataclass
class SeriesGroup:
    series_id: str
    name: str
    books: List[CatalogEntry] = field(default_factory=list)

    @property
    def in_library_count(self) -> int:
        return sum(1 for book in self.books if book.in_library)

    @property
    def missing_count(self) -> int:
        return len(self.books) - self.in_library_count


def group_by_series(entries: Sequence[CatalogEntry], min_size: int = 1) -> List[SeriesGroup]:
    """Group entries by series for author, series and collection pages.

    Entries without both a series id and a series name are left out. Books
    inside a group follow their series index with a missing index counted
    as 0, and groups are ordered by name.

    Args:
        entries: Catalog entries to group
        min_size: Groups with fewer books than this are dropped

    Returns:
        List of SeriesGroup objects
    """
    groups: Dict[str, SeriesGroup] = {}
    for entry in entries:
        if not (entry.series_id and entry.series_name):
            continue
        group = groups.get(entry.series_id)
        if group is None:
            group = groups[entry.series_id] = SeriesGroup(series_id=entry.series_id, name=entry.series_name)
        group.books.append(entry)

    for group in groups.values():
        group.books.sort(key=lambda book: book.series_index or 0)

    return sorted(
        (group for group in groups.values() if len(group.books) >= min_size),
        key=lambda group: group.name
    )


def author_series_groups(entries: Sequence[CatalogEntry]) -> List[SeriesGroup]:
    """Series shown on an author's bibliography: only groups with two or more books."""
    return group_by_series(entries, min_size=2)
