# shelf/reconcile/controller.py

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, UTC
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Sequence, Set

from shelf.errors import error_message, is_conflict, is_not_found
from shelf.models import BookStatus, CatalogEntry, CollectionContext, LibraryBook
from shelf.notifications import NotificationQueue
from .cache import ContextCache

logger = logging.getLogger(__name__)

DEFAULT_STALE_KEYS = ("library", "library-stats")

Fetcher = Callable[[str], Awaitable[Sequence[Any]]]
InvalidationHook = Callable[[List[str]], None]


class OutcomeResult(str, Enum):
    SUCCESS = "success"
    CONFLICT = "conflict"   # Add rejected because the book is already in the library
    MISSING = "missing"     # Remove/update target was already gone
    ERROR = "error"


@dataclass
class MutationOutcome:
    result: OutcomeResult
    local_id: Optional[int] = None
    notification_id: Optional[str] = None
    patched_keys: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.result != OutcomeResult.ERROR


@dataclass(frozen=True)
class AddOptions:
    monitored: bool = True
    media_type: Optional[str] = None

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"monitored": self.monitored}
        if self.media_type:
            payload["mediaType"] = self.media_type
        return payload


def mark_added(entry: CatalogEntry, local_id: int, monitored: bool = True) -> None:
    """Give ``entry`` a freshly created library record.

    The record is rebuilt from scratch every time so applying it twice gives
    the same result as applying it once.
    """
    entry.library_book = LibraryBook(
        id=local_id,
        status=BookStatus.MISSING,
        monitored=monitored,
        external_id=entry.external_id,
        title=entry.title,
        cover_url=entry.cover_url or "",
        rating=entry.rating,
        has_ebook=entry.has_ebook,
        has_audiobook=entry.has_audiobook,
    )


def mark_removed(entry: CatalogEntry) -> None:
    entry.library_book = None
    entry.library_flag = False


class LibraryController:
    """Runs add/remove/monitor mutations and keeps the cached contexts in step.

    The controller is the only writer of the ``ContextCache``. Callers check
    ``is_adding``/``is_removing`` before dispatching; the controller itself
    does not de-duplicate requests.
    """

    def __init__(
        self,
        cache: ContextCache,
        notifications: NotificationQueue,
        gateway,
        fetcher: Optional[Fetcher] = None,
        invalidation_hook: Optional[InvalidationHook] = None,
        extra_stale_keys: Iterable[str] = DEFAULT_STALE_KEYS
    ):
        self.cache = cache
        self.notifications = notifications
        self.gateway = gateway
        self.fetcher = fetcher
        self.invalidation_hook = invalidation_hook
        self.extra_stale_keys = tuple(extra_stale_keys)
        self.pending_adds: Set[str] = set()
        self.pending_removes: Set[int] = set()
        self.pending_updates: Set[int] = set()

    def is_adding(self, external_id: str) -> bool:
        return external_id in self.pending_adds

    def is_removing(self, local_id: int) -> bool:
        return local_id in self.pending_removes

    def is_updating(self, local_id: int) -> bool:
        return local_id in self.pending_updates

    @property
    def busy(self) -> bool:
        return bool(self.pending_adds or self.pending_removes or self.pending_updates)

    # ------------------------------------------------------------------ #
    # Loading
    # ------------------------------------------------------------------ #
    async def load_context(self, key: str) -> CollectionContext:
        """Return the cached context, fetching it when missing or stale."""
        context = self.cache.get(key)
        if context is not None and not context.stale:
            return context
        return await self.refresh_context(key)

    async def refresh_context(self, key: str) -> CollectionContext:
        if self.fetcher is None:
            raise RuntimeError("No catalog fetcher configured")
        entries = await self.fetcher(key)
        logger.info(f"Fetched {len(entries)} entries for {key}")
        return self.cache.put(key, entries, fetched_at=datetime.now(UTC))

    # ------------------------------------------------------------------ #
    # Mutations
    # ------------------------------------------------------------------ #
    async def add_to_library(self, external_id: str, options: Optional[AddOptions] = None) -> MutationOutcome:
        """Add a catalog item to the library and patch every cached view of it."""
        options = options or AddOptions()
        title = self._title_for_external(external_id)
        self.pending_adds.add(external_id)
        try:
            try:
                response = await self.gateway.add_book(external_id, options.to_payload())
            except Exception as e:
                if is_conflict(e):
                    logger.info(f"{external_id} is already in the library, refreshing affected views")
                    return await self._resolve_conflict(external_id, title)
                logger.warning(f"Adding {external_id} failed: {e}")
                notification_id = self.notifications.error(f'Failed to add "{title}" to library')
                return MutationOutcome(OutcomeResult.ERROR, notification_id=notification_id)

            local_id = int(response["bookId"])
            outcome = MutationOutcome(OutcomeResult.SUCCESS, local_id=local_id)
            try:
                outcome.patched_keys = self.cache.patch_external(
                    external_id, lambda entry: mark_added(entry, local_id, options.monitored)
                )
            finally:
                outcome.notification_id = self.notifications.success(f'Added "{title}" to library')
            self._invalidate(outcome.patched_keys)
            return outcome
        finally:
            self.pending_adds.discard(external_id)

    async def remove_from_library(self, local_id: int) -> MutationOutcome:
        """Delete a library record; an already-deleted record counts as removed."""
        title = self._title_for_local(local_id)
        self.pending_removes.add(local_id)
        try:
            result = OutcomeResult.SUCCESS
            try:
                await self.gateway.delete_book(local_id)
            except Exception as e:
                if not is_not_found(e):
                    logger.warning(f"Removing library book {local_id} failed: {e}")
                    message = error_message(e, f'Failed to remove "{title}"')
                    return MutationOutcome(
                        OutcomeResult.ERROR, local_id=local_id,
                        notification_id=self.notifications.error(message)
                    )
                logger.info(f"Library book {local_id} was already gone")
                result = OutcomeResult.MISSING

            outcome = MutationOutcome(result, local_id=local_id)
            try:
                outcome.patched_keys = self.cache.patch_local(local_id, mark_removed)
            finally:
                outcome.notification_id = self.notifications.success(f'Removed "{title}" from library')
            self._invalidate(outcome.patched_keys)
            return outcome
        finally:
            self.pending_removes.discard(local_id)

    async def set_monitored(self, local_id: int, monitored: bool) -> MutationOutcome:
        """Toggle whether the backend keeps looking for files for a library book."""
        title = self._title_for_local(local_id)
        self.pending_updates.add(local_id)
        try:
            try:
                await self.gateway.update_book(local_id, monitored=monitored)
            except Exception as e:
                if not is_not_found(e):
                    logger.warning(f"Updating library book {local_id} failed: {e}")
                    message = error_message(e, f'Failed to update "{title}"')
                    return MutationOutcome(
                        OutcomeResult.ERROR, local_id=local_id,
                        notification_id=self.notifications.error(message)
                    )
                outcome = MutationOutcome(OutcomeResult.MISSING, local_id=local_id)
                try:
                    outcome.patched_keys = self.cache.patch_local(local_id, mark_removed)
                finally:
                    outcome.notification_id = self.notifications.info(f'"{title}" is no longer in your library')
                self._invalidate(outcome.patched_keys)
                return outcome

            def apply(entry: CatalogEntry) -> None:
                entry.library_book.monitored = monitored

            outcome = MutationOutcome(OutcomeResult.SUCCESS, local_id=local_id)
            message = f'Now monitoring "{title}"' if monitored else f'Stopped monitoring "{title}"'
            try:
                outcome.patched_keys = self.cache.patch_local(local_id, apply)
            finally:
                outcome.notification_id = self.notifications.success(message)
            self._invalidate(outcome.patched_keys)
            return outcome
        finally:
            self.pending_updates.discard(local_id)

    async def add_all_missing(
        self,
        entries: Iterable[CatalogEntry],
        options: Optional[AddOptions] = None
    ) -> List[MutationOutcome]:
        """Add every entry that is not in the library yet.

        Each add runs on its own; one failing does not stop or undo the rest.
        """
        external_ids = []
        for entry in entries:
            if entry.in_library or self.is_adding(entry.external_id) or entry.external_id in external_ids:
                continue
            external_ids.append(entry.external_id)
        if not external_ids:
            return []
        logger.info(f"Adding {len(external_ids)} missing books")
        return list(await asyncio.gather(
            *(self.add_to_library(external_id, options) for external_id in external_ids)
        ))

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #
    async def _resolve_conflict(self, external_id: str, title: str) -> MutationOutcome:
        keys = self.cache.mark_stale(self.cache.keys_containing(external_id))
        outcome = MutationOutcome(OutcomeResult.CONFLICT)
        try:
            if self.fetcher is not None:
                for key in keys:
                    try:
                        await self.refresh_context(key)
                    except Exception as e:
                        logger.warning(f"Could not refresh {key} after conflict: {e}")
            refreshed = self.cache.find_external(external_id)
            if refreshed is not None and refreshed.library_book is not None:
                outcome.local_id = refreshed.library_book.id
        finally:
            outcome.notification_id = self.notifications.info(f'"{title}" is already in your library')
        self._invalidate(keys)
        return outcome

    def _invalidate(self, keys: Iterable[str]) -> None:
        if self.invalidation_hook is None:
            return
        stale = list(dict.fromkeys([*keys, *self.extra_stale_keys]))
        try:
            self.invalidation_hook(stale)
        except Exception:
            logger.exception(f"Invalidation hook failed for {stale}")

    def _title_for_external(self, external_id: str) -> str:
        entry = self.cache.find_external(external_id)
        return entry.display_title() if entry else "Book"

    def _title_for_local(self, local_id: int) -> str:
        entry = self.cache.find_local(local_id)
        return entry.display_title() if entry else "Book"
