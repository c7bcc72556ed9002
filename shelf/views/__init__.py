# shelf/views/__init__.py
from .sort_filter import (
    SortField, SortOrder, FilterStatus, ViewMode,
    SortFilterState, CollectionView, LibraryCounts,
    filter_books, sort_books, derive_view, library_counts,
    get_default_sort_filter_state
)
from .series import SeriesGroup, group_by_series, author_series_groups

__all__ = [
    'SortField',
    'SortOrder',
    'FilterStatus',
    'ViewMode',
    'SortFilterState',
    'CollectionView',
    'LibraryCounts',
    'filter_books',
    'sort_books',
    'derive_view',
    'library_counts',
    'get_default_sort_filter_state',
    'SeriesGroup',
    'group_by_series',
    'author_series_groups'
]
