from __future__ import annotations

from datetime import datetime
from typing import Optional, Type

from sqlalchemy import Boolean, DateTime, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from bookmeter.domain.book import ListType


class Base(DeclarativeBase):
    pass


class BookRowMixin:
    """Columns shared by both reading lists. One held/link pair per library tag."""

    bookmeter_url: Mapped[str] = mapped_column(String(512), primary_key=True)
    isbn_or_asin: Mapped[str] = mapped_column(String(32), default="", index=True)
    book_title: Mapped[str] = mapped_column(Text, default="")
    author: Mapped[str] = mapped_column(Text, default="")
    publisher: Mapped[str] = mapped_column(Text, default="")
    published_date: Mapped[str] = mapped_column(String(64), default="")

    exist_in_utokyo: Mapped[bool] = mapped_column(Boolean, default=False)
    utokyo_opac: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    exist_in_sophia: Mapped[bool] = mapped_column(Boolean, default=False)
    sophia_opac: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    mathlib_opac: Mapped[str] = mapped_column(Text, default="")

    description: Mapped[str] = mapped_column(Text, default="")
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)


class WishBookModel(BookRowMixin, Base):
    __tablename__ = "wish"


class StackedBookModel(BookRowMixin, Base):
    __tablename__ = "stacked"


_MODELS = {
    ListType.WISH: WishBookModel,
    ListType.STACKED: StackedBookModel,
}


def model_for(list_type: ListType | str) -> Type[BookRowMixin]:
    return _MODELS[ListType(list_type)]
