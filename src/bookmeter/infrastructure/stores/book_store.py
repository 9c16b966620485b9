from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy import delete, func, select

from bookmeter.domain.book import BookRecord, Catalog, ListType
from bookmeter.domain.errors import PersistenceError
from bookmeter.domain.library import LIBRARY_TAGS, LibraryHolding
from bookmeter.infrastructure.stores.models import Base, BookRowMixin, model_for
from bookmeter.infrastructure.stores.sqlalchemy_db import SessionProvider, get_db_url
from bookmeter.utils.logging_config import LogFiles, Logger

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class SyncStats:
    list_type: str
    inserted: int = 0
    updated: int = 0
    deleted: int = 0
    descriptions_preserved: int = 0

    @property
    def written(self) -> int:
        return self.inserted + self.updated

    def to_dict(self) -> Dict[str, Any]:
        return {
            "list_type": self.list_type,
            "inserted": self.inserted,
            "updated": self.updated,
            "deleted": self.deleted,
            "descriptions_preserved": self.descriptions_preserved,
        }


class BookStore:
    """Persisted wish and stacked lists, one table each."""

    def __init__(self, db_url: Optional[str] = None, *, auto_create_schema: bool = True):
        self.db_url = db_url or get_db_url()
        self._provider = SessionProvider(self.db_url)
        if auto_create_schema:
            Base.metadata.create_all(self._provider.engine)

    def sync(self, list_type: ListType, catalog: Catalog) -> SyncStats:
        """
        Make the table for ``list_type`` equal to ``catalog``.

        Runs in a single transaction: rows whose key is absent from the
        catalog are deleted, every catalog record is written, and a stored
        description survives when the incoming one is blank. Any failure
        rolls the whole write back and raises PersistenceError.
        """
        model = model_for(list_type)
        table = model.__tablename__
        stats = SyncStats(list_type=ListType(list_type).value)
        now = _utcnow()

        try:
            with self._provider.session() as session:
                with session.begin():
                    stored: Dict[str, str] = {
                        key: description or ""
                        for key, description in session.execute(
                            select(model.bookmeter_url, model.description)
                        ).all()
                    }

                    for key in stored:
                        if key not in catalog:
                            session.execute(delete(model).where(model.bookmeter_url == key))
                            stats.deleted += 1

                    for record in catalog.values():
                        description = record.description
                        if not description.strip() and stored.get(record.key, "").strip():
                            description = stored[record.key]
                            stats.descriptions_preserved += 1
                        session.merge(self._record_to_row(model, record, description, now))
                        if record.key in stored:
                            stats.updated += 1
                        else:
                            stats.inserted += 1
        except PersistenceError:
            raise
        except Exception as e:
            Logger.error(f"sync of {table} rolled back: {e}", file=LogFiles.ERROR)
            raise PersistenceError("sync", table, str(e)) from e

        Logger.info(
            f"{table}: {stats.inserted} inserted, {stats.updated} updated, "
            f"{stats.deleted} deleted, {stats.descriptions_preserved} descriptions kept",
            file=LogFiles.SYNC,
        )
        return stats

    def load_catalog(self, list_type: ListType) -> Optional[Catalog]:
        """The stored list, or None when the table is empty."""
        model = model_for(list_type)
        with self._provider.session() as session:
            rows = session.execute(select(model).order_by(model.bookmeter_url)).scalars().all()
            if not rows:
                return None
            return Catalog(self._row_to_record(row) for row in rows)

    def count(self, list_type: ListType) -> int:
        model = model_for(list_type)
        with self._provider.session() as session:
            return int(session.execute(select(func.count()).select_from(model)).scalar_one())

    def _record_to_row(
        self, model: type, record: BookRecord, description: str, now: datetime
    ) -> BookRowMixin:
        values: Dict[str, Any] = {
            "bookmeter_url": record.key,
            "isbn_or_asin": record.identifier,
            "book_title": record.title,
            "author": record.author,
            "publisher": record.publisher,
            "published_date": record.published_date,
            "mathlib_opac": record.mathlib_opac_link,
            "description": description,
            "updated_at": now,
        }
        for tag in LIBRARY_TAGS:
            holding = record.holding(tag)
            values[f"exist_in_{tag}"] = holding.held
            values[f"{tag}_opac"] = holding.opac_link or None
        return model(**values)

    @staticmethod
    def _row_to_record(row: BookRowMixin) -> BookRecord:
        holdings = {
            tag: LibraryHolding(
                held=bool(getattr(row, f"exist_in_{tag}")),
                opac_link=getattr(row, f"{tag}_opac") or None,
            )
            for tag in LIBRARY_TAGS
        }
        return BookRecord(
            key=row.bookmeter_url,
            identifier=row.isbn_or_asin or "",
            title=row.book_title or "",
            author=row.author or "",
            publisher=row.publisher or "",
            published_date=row.published_date or "",
            description=row.description or "",
            holdings=holdings,
            mathlib_opac_link=row.mathlib_opac or "",
        )

    def close(self) -> None:
        self._provider.engine.dispose()
