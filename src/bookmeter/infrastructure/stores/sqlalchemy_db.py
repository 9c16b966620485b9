from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

DEFAULT_DB_URL = "sqlite:///data/books.sqlite3"


def get_db_url() -> str:
    """Database URL from BOOKMETER_DB_URL, defaulting to a local SQLite file."""
    return os.getenv("BOOKMETER_DB_URL") or DEFAULT_DB_URL


def _ensure_sqlite_dir(db_url: str) -> None:
    prefix = "sqlite:///"
    if not db_url.startswith(prefix) or db_url == "sqlite:///:memory:":
        return
    path = Path(db_url[len(prefix) :])
    if path.parent and not path.parent.exists():
        path.parent.mkdir(parents=True, exist_ok=True)


class SessionProvider:
    """Engine plus a session factory for one database URL."""

    def __init__(self, db_url: Optional[str] = None):
        self.db_url = db_url or get_db_url()
        connect_args = {}
        if self.db_url.startswith("sqlite"):
            _ensure_sqlite_dir(self.db_url)
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(self.db_url, connect_args=connect_args)
        self._factory = sessionmaker(bind=self.engine, expire_on_commit=False)

    def session(self) -> Session:
        return self._factory()

