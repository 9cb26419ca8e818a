from datetime import datetime

from sqlalchemy import BigInteger, DateTime, Index, Integer, Text, func, literal_column
from sqlalchemy.dialects.postgresql import ARRAY
from sqlalchemy.orm import Mapped, mapped_column

from .db import Base


def title_document(column):
    return func.to_tsvector(literal_column("'simple'"), column)


def title_query(term: str):
    return func.plainto_tsquery(literal_column("'simple'"), term)


class BookRecord(Base):
    __tablename__ = "books"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    title: Mapped[str] = mapped_column(Text, nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    runtime: Mapped[int] = mapped_column(Integer, nullable=False)
    genres: Mapped[list[str]] = mapped_column(ARRAY(Text), nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False, server_default="1")
    price: Mapped[int] = mapped_column(BigInteger, nullable=False)


Index("books_title_idx", title_document(BookRecord.title), postgresql_using="gin")
Index("books_genres_idx", BookRecord.genres, postgresql_using="gin")
