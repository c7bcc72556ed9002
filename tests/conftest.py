# tests/conftest.py
import sys
import pytest
from pathlib import Path

# Add project root to Python path
project_root = str(Path(__file__).parent.parent)
if project_root not in sys.path:
    sys.path.insert(0, project_root)

from shelf.errors import ApiError
from shelf.models import BookStatus, CatalogEntry, LibraryBook
from shelf.notifications import NotificationQueue
from shelf.reconcile import ContextCache, LibraryController
from shelf.sa.database import Database


# Shape of /search/hardcover results: an inLibrary flag but no library record
SEARCH_RESULTS = [
    {"id": "1", "title": "Dune", "author": "Frank Herbert", "authorId": "9",
     "coverUrl": "http://covers/1.jpg", "rating": 4.3, "releaseYear": 1965, "inLibrary": True},
    {"id": "7", "title": "Dune Encyclopedia", "author": "Willis McNelly", "authorId": "12",
     "coverUrl": "", "rating": 3.9, "inLibrary": False},
]


def make_entry(external_id, title=None, local_id=None, status=BookStatus.MISSING, **kwargs):
    """Build a CatalogEntry, optionally already in the library"""
    library_book = None
    if local_id is not None:
        library_book = LibraryBook(id=local_id, status=status)
    return CatalogEntry(
        external_id=external_id,
        title=title if title is not None else f"Book {external_id}",
        library_book=library_book,
        **kwargs
    )


class FakeGateway:
    """Stands in for LibraryGateway.

    Results are looked up per id; a BaseException value is raised instead of
    returned. ``catalog`` maps context keys to the payload ``fetch`` returns.
    """

    def __init__(self):
        self.add_results = {}
        self.delete_results = {}
        self.update_results = {}
        self.catalog = {}
        self.calls = []
        self.next_book_id = 500

    async def add_book(self, external_id, options=None):
        self.calls.append(("add", external_id, options))
        result = self.add_results.get(external_id)
        if isinstance(result, BaseException):
            raise result
        if result is None:
            self.next_book_id += 1
            result = {"bookId": self.next_book_id}
        return result

    async def delete_book(self, local_id):
        self.calls.append(("delete", local_id))
        result = self.delete_results.get(local_id)
        if isinstance(result, BaseException):
            raise result

    async def update_book(self, local_id, monitored=None):
        self.calls.append(("update", local_id, monitored))
        result = self.update_results.get(local_id)
        if isinstance(result, BaseException):
            raise result
        return {"id": local_id, "monitored": monitored}

    async def fetch(self, key):
        self.calls.append(("fetch", key))
        result = self.catalog.get(key)
        if isinstance(result, BaseException):
            raise result
        if result is None:
            raise ApiError(404, f"Nothing found for {key}")
        return [dict(item) for item in result]


@pytest.fixture
def cache():
    return ContextCache()


@pytest.fixture
def notifications():
    return NotificationQueue()


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def invalidated():
    """Collects every list of keys passed to the invalidation hook"""
    return []


@pytest.fixture
def controller(cache, notifications, gateway, invalidated):
    return LibraryController(
        cache,
        notifications,
        gateway,
        fetcher=gateway.fetch,
        invalidation_hook=invalidated.append
    )


@pytest.fixture
def sample_entries():
    """A mixed list covering every library state"""
    return [
        make_entry("1", "Dune", local_id=11, status=BookStatus.DOWNLOADED, rating=4.2, release_year=1965,
                   series_id="s1", series_name="Dune", series_index=1),
        make_entry("2", "Dune Messiah", local_id=12, status=BookStatus.MISSING, rating=3.9, release_year=1969,
                   series_id="s1", series_name="Dune", series_index=2),
        make_entry("3", "Children of Dune", rating=4.0, release_year=1976,
                   series_id="s1", series_name="Dune", series_index=3),
        make_entry("4", "The Dosadi Experiment", rating=3.8, release_year=1977),
        make_entry("5", "Dune Box Set", compilation=True, rating=4.5, release_year=2001),
    ]


@pytest.fixture
def database(tmp_path):
    """A fresh SQLite database in a temporary directory"""
    db = Database(f"sqlite:///{tmp_path / 'shelf_test.db'}")
    db.init_db()
    yield db
    db.dispose()


@pytest.fixture
def db_session(database):
    """Create a new database session for a test"""
    session = database._SessionFactory()
    try:
        yield session
    finally:
        session.close()
