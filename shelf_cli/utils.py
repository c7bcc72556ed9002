import asyncio
import click
import logging
from dataclasses import dataclass, replace
from typing import Callable, List, Optional, Sequence

from shelf.errors import ApiError
from shelf.models import CatalogEntry, CollectionContext
from shelf.notifications import Notification, NotificationKind, NotificationQueue
from shelf.reconcile import ContextCache, LibraryController, MutationOutcome, OutcomeResult
from shelf.sa.database import Database
from shelf.sa.store import SnapshotStore
from shelf.utils.http import LibraryGateway, ShelfClient
from shelf.views import (
    CollectionView, FilterStatus, LibraryCounts, SeriesGroup, SortField, SortFilterState,
    SortOrder, ViewMode, derive_view, get_default_sort_filter_state, library_counts
)

logger = logging.getLogger(__name__)

NOTIFICATION_COLORS = {
    NotificationKind.SUCCESS: 'green',
    NotificationKind.ERROR: 'red',
    NotificationKind.INFO: 'blue',
}

STATUS_COLORS = {
    'downloaded': 'green',
    'downloading': 'cyan',
    'missing': 'yellow',
    'unreleased': 'magenta',
}


@dataclass
class ShelfApp:
    """Everything a command needs, wired together once per invocation"""
    cache: ContextCache
    notifications: NotificationQueue
    controller: LibraryController
    store: Optional[SnapshotStore] = None

    def close(self) -> None:
        if self.store is not None:
            self.store.detach()
            self.store.database.dispose()


def build_app(
    api_url: Optional[str] = None,
    token: Optional[str] = None,
    database_url: Optional[str] = None,
    gateway=None,
    persist: bool = True
) -> ShelfApp:
    """Create the cache, notification queue and controller for the CLI"""
    cache = ContextCache()
    notifications = NotificationQueue()
    if gateway is None:
        gateway = LibraryGateway(ShelfClient(api_url=api_url, token=token))

    store = None
    if persist:
        database = Database(database_url)
        database.init_db()
        store = SnapshotStore(database, cache)
        store.load()
        store.attach()

    # Pages touched by a mutation are refetched the next time they are shown
    controller = LibraryController(
        cache,
        notifications,
        gateway,
        fetcher=getattr(gateway, 'fetch', None),
        invalidation_hook=cache.mark_stale,
    )
    notifications.subscribe(echo_notification)
    return ShelfApp(
        cache=cache,
        notifications=notifications,
        controller=controller,
        store=store
    )


def run(coro):
    """Run a coroutine from a synchronous click command"""
    return asyncio.run(coro)


def echo_notification(event: str, notification: Notification) -> None:
    if event != 'push':
        return
    color = NOTIFICATION_COLORS.get(notification.kind, 'white')
    click.echo(click.style(f"[{notification.kind.value}] ", fg=color) + notification.message)


def format_entry(entry: CatalogEntry, view_mode: ViewMode = ViewMode.LIST) -> str:
    """One line describing a catalog entry"""
    if entry.library_book is not None:
        status = entry.library_book.status.value
        marker = click.style(f"{status:<11}", fg=STATUS_COLORS.get(status, 'white'))
        local = click.style(f"#{entry.library_book.id}", fg='cyan')
    elif entry.in_library:
        marker = click.style(f"{'in library':<11}", fg='green')
        local = ""
    else:
        marker = click.style(f"{'-':<11}", fg='bright_black')
        local = ""

    title = entry.title
    if entry.series_name and entry.series_index is not None:
        title += click.style(f" ({entry.series_name} #{entry.series_index:g})", fg='bright_black')
    if view_mode == ViewMode.GRID:
        return f"{marker} {title} {local}".rstrip()

    details = []
    if entry.release_year:
        details.append(str(entry.release_year))
    if entry.rating:
        details.append(f"{entry.rating:.2f}★")
    if entry.compilation:
        details.append("compilation")
    extra = click.style(f"  [{', '.join(details)}]", fg='bright_black') if details else ""
    return f"{marker} {click.style(entry.external_id, fg='cyan')}  {title}{extra} {local}".rstrip()


def print_counts(view: CollectionView, counts: LibraryCounts) -> None:
    shown = f"{view.filtered_count} of {view.total_count}" if view.is_filtered else f"{view.total_count}"
    click.echo(click.style(f"\n{shown} books", fg='blue') +
               click.style(f"  In library: {counts.in_library}", fg='green') +
               click.style(f"  Missing: {counts.missing}", fg='yellow') +
               click.style(f"  Downloaded: {counts.downloaded}", fg='cyan'))


def print_books(entries: Sequence[CatalogEntry], view_mode: ViewMode = ViewMode.GRID) -> None:
    if not entries:
        click.echo(click.style("No books match the current filters", fg='yellow'))
        return
    for entry in entries:
        click.echo(format_entry(entry, view_mode))


def print_series_groups(groups: Sequence[SeriesGroup]) -> None:
    if not groups:
        return
    click.echo("\n" + click.style(f"Series ({len(groups)})", fg='blue'))
    for group in groups:
        click.echo(click.style(group.name, fg='cyan') +
                   click.style(f"  {group.in_library_count}/{len(group.books)} in library", fg='bright_black'))
        for book in group.books:
            index = f"#{book.series_index:g}" if book.series_index is not None else "#?"
            mark = click.style("✓", fg='green') if book.in_library else click.style("·", fg='bright_black')
            click.echo(f"  {mark} {index:<5} {book.title}")


def sort_filter_options(func):
    """Shared --filter/--sort/--order/--view options for the show commands"""
    options = [
        click.option('--filter', 'filter_status', default='all', show_default=True,
                     type=click.Choice([f.value for f in FilterStatus]), help='Which books to show'),
        click.option('--sort', 'sort_field', default=None,
                     type=click.Choice([f.value for f in SortField]), help='Sort field'),
        click.option('--order', 'sort_order', default='asc', show_default=True,
                     type=click.Choice([o.value for o in SortOrder]), help='Sort order'),
        click.option('--hide-compilations/--show-compilations', default=False, help='Hide omnibus and box set editions'),
        click.option('--view', 'view_mode', default='grid', show_default=True,
                     type=click.Choice([m.value for m in ViewMode]), help='Compact grid or detailed list'),
        click.option('--refresh/--no-refresh', default=False, help='Fetch fresh data instead of using the cache'),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def build_state(
    is_series_context: bool,
    filter_status: str,
    sort_field: Optional[str],
    sort_order: str,
    hide_compilations: bool,
    view_mode: str
) -> SortFilterState:
    """Start from the page default and apply whatever was given on the command line"""
    state = get_default_sort_filter_state(is_series_context)
    return replace(
        state,
        filter_status=FilterStatus(filter_status),
        sort_field=SortField(sort_field) if sort_field else state.sort_field,
        sort_order=SortOrder(sort_order),
        hide_compilations=hide_compilations,
        view_mode=ViewMode(view_mode),
    )


def load_context(app: ShelfApp, key: str, refresh: bool = False) -> CollectionContext:
    """Fetch (or reuse) a cached context, exiting with an error message if the backend fails"""
    try:
        if refresh:
            return run(app.controller.refresh_context(key))
        return run(app.controller.load_context(key))
    except ApiError as e:
        click.echo("\n" + click.style(f"Failed to load {key}: {e}", fg='red'), err=True)
        raise click.exceptions.Exit(1)


def show_context(
    app: ShelfApp,
    key: str,
    state: SortFilterState,
    refresh: bool = False,
    grouping: Optional[Callable[[Sequence[CatalogEntry]], List[SeriesGroup]]] = None
) -> CollectionContext:
    """Load a context and print its derived view"""
    context = load_context(app, key, refresh)
    logger.debug(f"Deriving view for {key} with {state}")

    entries = app.cache.snapshot(key)
    view = derive_view(entries, state)
    print_counts(view, library_counts(entries))
    print_books(view.entries, state.view_mode)
    if grouping is not None:
        print_series_groups(grouping(entries))
    return context


class OutcomeTracker:
    """Tallies the outcomes of a bulk add"""

    def __init__(self, outcomes: Sequence[MutationOutcome]):
        self.outcomes = list(outcomes)

    def count(self, result: OutcomeResult) -> int:
        return sum(1 for outcome in self.outcomes if outcome.result == result)

    def print_results(self, item_type: str = 'books'):
        click.echo("\n" + click.style("Results:", fg='blue'))
        click.echo(click.style("Processed: ", fg='blue') +
                   click.style(str(len(self.outcomes)), fg='cyan') +
                   click.style(f" {item_type}", fg='blue'))
        click.echo(click.style("Added: ", fg='blue') +
                   click.style(str(self.count(OutcomeResult.SUCCESS)), fg='green'))
        conflicts = self.count(OutcomeResult.CONFLICT)
        if conflicts:
            click.echo(click.style("Already in library: ", fg='blue') +
                       click.style(str(conflicts), fg='yellow'))
        failed = self.count(OutcomeResult.ERROR)
        if failed:
            click.echo(click.style("Failed: ", fg='blue') +
                       click.style(str(failed), fg='red'))
