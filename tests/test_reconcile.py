# tests/test_reconcile.py

import asyncio
import pytest
from shelf.errors import ApiError
from shelf.models import BookStatus
from shelf.notifications import NotificationKind
from shelf.reconcile import AddOptions, LibraryController, OutcomeResult
from shelf.reconcile.controller import mark_added
from conftest import SEARCH_RESULTS, FakeGateway, make_entry


@pytest.fixture
def two_contexts(cache):
    """The same catalog book cached in an author page and a search page"""
    cache.put("author:9", [make_entry("X1", "Dune"), make_entry("X2", "Dune Messiah")])
    cache.put("search:dune", [make_entry("X1", "Dune"), make_entry("X3", "Dune Encyclopedia")])
    return cache


@pytest.fixture
def library_contexts(cache):
    """Two cached pages that both reference library book 501"""
    cache.put("author:9", [make_entry("X1", "Dune", local_id=501), make_entry("X2", "Dune Messiah", local_id=502)])
    cache.put("series:3", [make_entry("X1", "Dune", local_id=501)])
    return cache


def last_notification(notifications):
    return notifications.notifications[-1]


# Adding

def test_add_patches_every_context(controller, two_contexts, gateway, notifications, invalidated):
    """Test that a successful add updates the book in every cached page."""
    gateway.add_results["X1"] = {"bookId": 501}

    outcome = asyncio.run(controller.add_to_library("X1"))

    assert outcome.result == OutcomeResult.SUCCESS
    assert outcome.local_id == 501
    assert outcome.patched_keys == ["author:9", "search:dune"]
    for key in ("author:9", "search:dune"):
        entry = two_contexts.get(key).find_external("X1")
        assert entry.in_library is True
        assert entry.library_book.id == 501
        assert entry.library_book.status == BookStatus.MISSING
        assert entry.library_book.monitored is True

    # Other books are left alone
    assert two_contexts.get("author:9").find_external("X2").in_library is False

    notification = last_notification(notifications)
    assert notification.id == outcome.notification_id
    assert notification.kind == NotificationKind.SUCCESS
    assert notification.message == 'Added "Dune" to library'
    assert invalidated == [["author:9", "search:dune", "library", "library-stats"]]
    assert not controller.is_adding("X1")


def test_add_sends_options(controller, two_contexts, gateway):
    """Test that add options reach the gateway and the patched record."""
    outcome = asyncio.run(controller.add_to_library("X2", AddOptions(monitored=False, media_type="audiobook")))

    assert gateway.calls == [("add", "X2", {"monitored": False, "mediaType": "audiobook"})]
    entry = two_contexts.get("author:9").find_external("X2")
    assert entry.library_book.id == outcome.local_id
    assert entry.library_book.monitored is False


def test_add_patch_is_idempotent(two_contexts):
    """Test that applying the same success patch twice equals applying it once."""
    once = make_entry("X1", "Dune", cover_url="http://covers/1.jpg", rating=4.2)
    twice = once.model_copy(deep=True)

    mark_added(once, 501)
    mark_added(twice, 501)
    mark_added(twice, 501)

    assert once.model_dump() == twice.model_dump()


def test_repeated_add_settlement_leaves_same_state(controller, two_contexts, gateway):
    """Test that settling the same add twice leaves the cache as one settlement would."""
    gateway.add_results["X1"] = {"bookId": 501}
    asyncio.run(controller.add_to_library("X1"))
    after_first = [entry.model_dump() for entry in two_contexts.get("author:9").entries]

    asyncio.run(controller.add_to_library("X1"))
    after_second = [entry.model_dump() for entry in two_contexts.get("author:9").entries]

    assert after_first == after_second


def test_add_uncached_book_uses_fallback_title(controller, notifications):
    """Test the notification for a book that is in no cached page."""
    outcome = asyncio.run(controller.add_to_library("nowhere"))

    assert outcome.result == OutcomeResult.SUCCESS
    assert outcome.patched_keys == []
    assert last_notification(notifications).message == 'Added "Book" to library'


def test_add_conflict_refreshes_instead_of_patching(controller, two_contexts, gateway, notifications, invalidated):
    """Test that an 'already in library' rejection becomes info and a refresh."""
    gateway.add_results["X1"] = ApiError(409, "Book already in library")
    gateway.catalog["author:9"] = [
        {"id": "X1", "title": "Dune", "libraryBook": {"id": 777, "status": "downloaded"}},
        {"id": "X2", "title": "Dune Messiah"},
    ]
    gateway.catalog["search:dune"] = [
        {"id": "X1", "title": "Dune", "libraryBook": {"id": 777, "status": "downloaded"}},
    ]

    outcome = asyncio.run(controller.add_to_library("X1"))

    assert outcome.result == OutcomeResult.CONFLICT
    assert outcome.ok
    assert outcome.local_id == 777
    notification = last_notification(notifications)
    assert notification.kind == NotificationKind.INFO
    assert notification.message == '"Dune" is already in your library'
    assert ("fetch", "author:9") in gateway.calls
    assert ("fetch", "search:dune") in gateway.calls
    for key in ("author:9", "search:dune"):
        context = two_contexts.get(key)
        assert context.stale is False
        assert context.find_external("X1").library_book.status == BookStatus.DOWNLOADED
    assert invalidated == [["author:9", "search:dune", "library", "library-stats"]]
    assert not controller.is_adding("X1")


def test_add_conflict_without_fetcher_marks_stale(two_contexts, notifications, invalidated):
    """Test that a conflict marks pages stale when nothing can refresh them."""
    gateway = FakeGateway()
    gateway.add_results["X1"] = ApiError(500, "Request failed with status 409")
    controller = LibraryController(two_contexts, notifications, gateway, invalidation_hook=invalidated.append)

    outcome = asyncio.run(controller.add_to_library("X1"))

    assert outcome.result == OutcomeResult.CONFLICT
    assert last_notification(notifications).kind == NotificationKind.INFO
    for key in ("author:9", "search:dune"):
        context = two_contexts.get(key)
        assert context.stale is True
        assert context.find_external("X1").in_library is False
    assert invalidated == [["author:9", "search:dune", "library", "library-stats"]]


def test_add_conflict_refresh_failure_leaves_stale(controller, two_contexts, gateway, notifications):
    """Test that a failed refresh after a conflict keeps the page stale."""
    gateway.add_results["X1"] = ApiError(409, "Conflict")
    gateway.catalog["author:9"] = ApiError(503, "Service Unavailable")
    gateway.catalog["search:dune"] = [{"id": "X1", "title": "Dune", "libraryBook": {"id": 777}}]

    outcome = asyncio.run(controller.add_to_library("X1"))

    assert outcome.result == OutcomeResult.CONFLICT
    assert two_contexts.get("author:9").stale is True
    assert two_contexts.get("search:dune").stale is False
    assert last_notification(notifications).kind == NotificationKind.INFO


def test_add_failure(controller, two_contexts, gateway, notifications, invalidated):
    """Test that other add failures leave the cache alone and report an error."""
    gateway.add_results["X1"] = ApiError(500, "Internal Server Error")

    outcome = asyncio.run(controller.add_to_library("X1"))

    assert outcome.result == OutcomeResult.ERROR
    assert not outcome.ok
    assert two_contexts.get("author:9").find_external("X1").in_library is False
    notification = last_notification(notifications)
    assert notification.kind == NotificationKind.ERROR
    assert notification.message == 'Failed to add "Dune" to library'
    assert invalidated == []
    assert not controller.is_adding("X1")


def test_add_marks_pending_while_in_flight(cache, notifications):
    """Test that the pending marker is set during the request and cleared after."""
    seen = []

    class WatchingGateway(FakeGateway):
        async def add_book(self, external_id, options=None):
            seen.append((controller.is_adding(external_id), controller.busy))
            return await super().add_book(external_id, options)

    controller = LibraryController(cache, notifications, WatchingGateway())
    asyncio.run(controller.add_to_library("X1"))

    assert seen == [(True, True)]
    assert not controller.busy


def test_patch_failure_still_notifies(controller, two_contexts, notifications, monkeypatch):
    """Test that a broken patch propagates but the user is still told."""
    def broken_patch(external_id, patch):
        raise RuntimeError("patch bug")

    monkeypatch.setattr(two_contexts, "patch_external", broken_patch)

    with pytest.raises(RuntimeError):
        asyncio.run(controller.add_to_library("X1"))

    assert last_notification(notifications).message == 'Added "Dune" to library'
    assert not controller.is_adding("X1")


def test_invalidation_hook_failure_is_logged(cache, notifications, gateway):
    """Test that a failing invalidation hook does not fail the add."""
    def broken_hook(keys):
        raise RuntimeError("hook bug")

    cache.put("author:9", [make_entry("X1", "Dune")])
    controller = LibraryController(cache, notifications, gateway, invalidation_hook=broken_hook)

    outcome = asyncio.run(controller.add_to_library("X1"))
    assert outcome.result == OutcomeResult.SUCCESS
    assert cache.get("author:9").find_external("X1").in_library


# Removing

def test_remove(controller, library_contexts, notifications, invalidated):
    """Test that removing clears the library record in every page."""
    outcome = asyncio.run(controller.remove_from_library(501))

    assert outcome.result == OutcomeResult.SUCCESS
    assert outcome.patched_keys == ["author:9", "series:3"]
    for key in ("author:9", "series:3"):
        assert library_contexts.get(key).find_external("X1").in_library is False
    assert library_contexts.get("author:9").find_external("X2").library_book.id == 502
    notification = last_notification(notifications)
    assert notification.kind == NotificationKind.SUCCESS
    assert notification.message == 'Removed "Dune" from library'
    assert invalidated == [["author:9", "series:3", "library", "library-stats"]]
    assert not controller.is_removing(501)


def test_remove_not_found_counts_as_removed(controller, library_contexts, gateway, notifications):
    """Test that removing an already deleted book still clears it everywhere."""
    gateway.delete_results[501] = ApiError(404, "Not Found")

    outcome = asyncio.run(controller.remove_from_library(501))

    assert outcome.result == OutcomeResult.MISSING
    assert outcome.ok
    for key in ("author:9", "series:3"):
        entry = library_contexts.get(key).find_external("X1")
        assert entry.in_library is False
        assert entry.library_book is None
    notification = last_notification(notifications)
    assert notification.kind == NotificationKind.SUCCESS
    assert notification.message == 'Removed "Dune" from library'


def test_remove_not_found_by_message(controller, library_contexts, gateway):
    """Test that a not-found message without a status is recognised."""
    gateway.delete_results[501] = RuntimeError("Book not found")

    outcome = asyncio.run(controller.remove_from_library(501))
    assert outcome.result == OutcomeResult.MISSING
    assert library_contexts.get("series:3").find_external("X1").in_library is False


def test_remove_failure_uses_backend_message(controller, library_contexts, gateway, notifications, invalidated):
    """Test that other remove failures keep the cache and show the backend message."""
    gateway.delete_results[501] = ApiError(500, "Database is locked")

    outcome = asyncio.run(controller.remove_from_library(501))

    assert outcome.result == OutcomeResult.ERROR
    assert library_contexts.get("author:9").find_external("X1").library_book.id == 501
    notification = last_notification(notifications)
    assert notification.kind == NotificationKind.ERROR
    assert notification.message == "Database is locked"
    assert invalidated == []
    assert not controller.is_removing(501)


def test_remove_failure_fallback_message(controller, library_contexts, gateway, notifications):
    """Test the error message when the backend gives none."""
    gateway.delete_results[501] = ApiError(500, "")

    asyncio.run(controller.remove_from_library(501))
    assert last_notification(notifications).message == 'Failed to remove "Dune"'


# Monitoring

def test_set_monitored(controller, library_contexts, gateway, notifications):
    """Test toggling monitoring patches every page that shows the book."""
    outcome = asyncio.run(controller.set_monitored(501, False))

    assert outcome.result == OutcomeResult.SUCCESS
    assert gateway.calls == [("update", 501, False)]
    for key in ("author:9", "series:3"):
        assert library_contexts.get(key).find_external("X1").library_book.monitored is False
    assert last_notification(notifications).message == 'Stopped monitoring "Dune"'

    asyncio.run(controller.set_monitored(501, True))
    assert library_contexts.get("series:3").find_external("X1").library_book.monitored is True
    assert last_notification(notifications).message == 'Now monitoring "Dune"'
    assert not controller.is_updating(501)


def test_set_monitored_on_deleted_book(controller, library_contexts, gateway, notifications):
    """Test that monitoring a book deleted elsewhere drops it from the library view."""
    gateway.update_results[501] = ApiError(404, "Book not found")

    outcome = asyncio.run(controller.set_monitored(501, True))

    assert outcome.result == OutcomeResult.MISSING
    assert library_contexts.get("author:9").find_external("X1").in_library is False
    notification = last_notification(notifications)
    assert notification.kind == NotificationKind.INFO
    assert notification.message == '"Dune" is no longer in your library'


def test_set_monitored_failure(controller, library_contexts, gateway, notifications):
    """Test that a failed update leaves the monitored flag alone."""
    gateway.update_results[501] = ApiError(None, "Connection refused")

    outcome = asyncio.run(controller.set_monitored(501, False))

    assert outcome.result == OutcomeResult.ERROR
    assert library_contexts.get("author:9").find_external("X1").library_book.monitored is True
    assert last_notification(notifications).kind == NotificationKind.ERROR


# Bulk add

def test_add_all_missing_partial_failure(controller, cache, gateway, notifications, sample_entries):
    """Test that one failing add neither stops nor undoes the others."""
    cache.put("author:1", sample_entries)
    gateway.add_results["4"] = ApiError(500, "boom")

    outcomes = asyncio.run(controller.add_all_missing(cache.get("author:1").entries))

    assert sorted(outcome.result.value for outcome in outcomes) == ["error", "success", "success"]
    context = cache.get("author:1")
    assert context.find_external("3").in_library
    assert context.find_external("5").in_library
    assert not context.find_external("4").in_library
    # Books already in the library are not sent again
    assert sorted(call[1] for call in gateway.calls) == ["3", "4", "5"]
    assert len(notifications) == 3
    assert not controller.busy


def test_add_all_missing_skips_pending_and_duplicates(controller, cache, gateway):
    """Test that pending and repeated books are dispatched at most once."""
    entries = [make_entry("a"), make_entry("b"), make_entry("a"), make_entry("c", local_id=9)]
    controller.pending_adds.add("b")

    outcomes = asyncio.run(controller.add_all_missing(entries))

    assert len(outcomes) == 1
    assert gateway.calls == [("add", "a", {"monitored": True})]


def test_add_all_missing_nothing_to_do(controller, gateway):
    """Test that a fully owned list sends no requests."""
    assert asyncio.run(controller.add_all_missing([make_entry("a", local_id=1)])) == []
    assert gateway.calls == []


# Loading

def test_load_context_fetches_once(controller, cache, gateway):
    """Test that a fresh cached page is reused and a stale one is refetched."""
    gateway.catalog["series:3"] = [{"id": "1", "title": "Dune", "seriesIndex": 1}]

    context = asyncio.run(controller.load_context("series:3"))
    assert [entry.external_id for entry in context.entries] == ["1"]
    asyncio.run(controller.load_context("series:3"))
    assert gateway.calls == [("fetch", "series:3")]

    cache.mark_stale(["series:3"])
    asyncio.run(controller.load_context("series:3"))
    assert gateway.calls.count(("fetch", "series:3")) == 2
    assert cache.get("series:3").stale is False


def test_refresh_without_fetcher(cache, notifications, gateway):
    """Test that refreshing requires a fetcher."""
    controller = LibraryController(cache, notifications, gateway)
    with pytest.raises(RuntimeError):
        asyncio.run(controller.refresh_context("author:1"))


def test_load_context_propagates_fetch_errors(controller, gateway):
    """Test that a failed fetch reaches the caller."""
    gateway.catalog["author:404"] = ApiError(404, "Author not found")
    with pytest.raises(ApiError):
        asyncio.run(controller.load_context("author:404"))


# Search results

def test_add_all_missing_skips_flagged_search_results(controller, cache, gateway):
    """Test that search hits already flagged as owned are not added again."""
    cache.put("search:dune", SEARCH_RESULTS)

    outcomes = asyncio.run(controller.add_all_missing(cache.get("search:dune").entries))

    assert [outcome.result for outcome in outcomes] == [OutcomeResult.SUCCESS]
    assert [call[1] for call in gateway.calls] == ["7"]


def test_conflict_on_search_page_keeps_book_owned(controller, cache, gateway, notifications):
    """Test that refetching a search page after a conflict shows the book as owned."""
    cache.put("search:dune", [dict(SEARCH_RESULTS[0], inLibrary=False), SEARCH_RESULTS[1]])
    gateway.add_results["1"] = ApiError(409, "Book already in library")
    gateway.catalog["search:dune"] = SEARCH_RESULTS

    outcome = asyncio.run(controller.add_to_library("1"))

    assert outcome.result == OutcomeResult.CONFLICT
    assert outcome.local_id is None
    entry = cache.get("search:dune").find_external("1")
    assert entry.in_library is True
    assert entry.library_book is None
    assert last_notification(notifications).message == '"Dune" is already in your library'
