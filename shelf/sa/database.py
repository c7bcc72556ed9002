# shelf/sa/database.py
from contextlib import contextmanager
from typing import Iterator, Optional
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import NullPool
import os

from shelf.sa.models import Base

DEFAULT_DATABASE_URL = "sqlite:///shelf_cache.db"

class Database:
    def __init__(self, connection_string: Optional[str] = None):
        """Open the local cache database

        Args:
            connection_string: SQLite URL (e.g., "sqlite:///shelf_cache.db")
                              If None, will use the SHELF_DATABASE_URL environment variable or fall back to the default
        """
        self.connection_string = connection_string or os.getenv("SHELF_DATABASE_URL", DEFAULT_DATABASE_URL)

        # Each CLI run opens and closes the file, so there is nothing to pool
        self.engine = create_engine(
            self.connection_string,
            connect_args={"check_same_thread": False},
            poolclass=NullPool
        )

        self._SessionFactory = sessionmaker(
            autocommit=False,
            autoflush=False,
            bind=self.engine
        )

    @contextmanager
    def get_db(self) -> Iterator[Session]:
        """Context manager for database sessions"""
        session: Session = self._SessionFactory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def init_db(self) -> None:
        """Create the snapshot table if it does not exist yet"""
        Base.metadata.create_all(self.engine)

    def dispose(self) -> None:
        self.engine.dispose()
