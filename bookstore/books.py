import logging
import math
import time
from collections.abc import Iterator, Sequence
from contextlib import contextmanager

from opentelemetry import metrics, trace
from sqlalchemy import delete, func, insert, select, text, update
from sqlalchemy.exc import OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeout
from sqlalchemy.orm import Session

from .config import DEFAULT_SORT_SAFELIST
from .entities import BookRecord, title_document, title_query
from .errors import DeadlineExceeded, EditConflict, RecordNotFound
from .filters import Filters, Metadata, calculate_metadata, validate_filters
from .models import Book, validate_book

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)
meter = metrics.get_meter(__name__)

edit_conflicts = meter.create_counter(
    "bookstore.books.edit_conflicts", description="Updates rejected because of a stale version"
)
deadlines_exceeded = meter.create_counter(
    "bookstore.books.deadline_exceeded", description="Statements cancelled by the per-call deadline"
)

DEFAULT_TIMEOUT_SECONDS = 3.0
QUERY_CANCELED = "57014"

SORTABLE_COLUMNS = {
    "id": BookRecord.id,
    "title": BookRecord.title,
    "year": BookRecord.year,
    "runtime": BookRecord.runtime,
    "price": BookRecord.price,
}


def _is_query_canceled(exc: OperationalError) -> bool:
    return getattr(exc.orig, "sqlstate", None) == QUERY_CANCELED


class BookRepository:
    def __init__(self, session_factory, timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS):
        self.session_factory = session_factory
        self.timeout_seconds = timeout_seconds

    def timeout_ms(self) -> int:
        # statement_timeout = 0 disables the limit, so never round down to it.
        return max(1, math.ceil(self.timeout_seconds * 1000))

    def _deadline_exceeded(self, operation: str) -> DeadlineExceeded:
        deadlines_exceeded.add(1, {"operation": operation})
        logger.warning(
            "book.deadline_exceeded",
            extra={"operation": operation, "timeout_seconds": self.timeout_seconds},
        )
        return DeadlineExceeded(operation, self.timeout_seconds)

    @contextmanager
    def deadline(self, operation: str) -> Iterator[Session]:
        """Open a session whose statements are cancelled after ``timeout_seconds``.

        Waiting on a busy pool past the same limit is reported as
        DeadlineExceeded too; connecting is bounded by the engine (see
        ``db.engine_options``).

        The timeout is scoped to the transaction, so it is released on commit
        or rollback and never leaks back into the pool.
        """
        session = self.session_factory()
        started = time.monotonic()
        try:
            if session.get_bind().dialect.name == "postgresql":
                session.execute(
                    text("SELECT set_config('statement_timeout', :timeout, true)"),
                    {"timeout": str(self.timeout_ms())},
                )
            yield session
            session.commit()
        except PoolTimeout as exc:
            session.rollback()
            raise self._deadline_exceeded(operation) from exc
        except OperationalError as exc:
            session.rollback()
            if _is_query_canceled(exc):
                raise self._deadline_exceeded(operation) from exc
            raise
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()
            logger.debug(
                "book.query",
                extra={"operation": operation, "elapsed_ms": round((time.monotonic() - started) * 1000, 2)},
            )

    def insert(self, book: Book) -> None:
        validate_book(book)
        stmt = (
            insert(BookRecord)
            .values(
                title=book.title,
                year=book.year,
                runtime=book.runtime,
                genres=list(book.genres),
                price=book.price,
            )
            .returning(BookRecord.id, BookRecord.created_at, BookRecord.version)
        )
        with tracer.start_as_current_span("books.insert"), self.deadline("insert") as session:
            row = session.execute(stmt).one()
        book.id = row.id
        book.created_at = row.created_at
        book.version = row.version
        logger.info("book.insert", extra={"book_id": book.id})

    def get(self, book_id: int) -> Book:
        if book_id < 1:
            raise RecordNotFound()
        stmt = select(BookRecord).where(BookRecord.id == book_id)
        with tracer.start_as_current_span("books.get") as span, self.deadline("get") as session:
            span.set_attribute("book.id", book_id)
            record = session.execute(stmt).scalar_one_or_none()
            if record is None:
                raise RecordNotFound()
            return self._to_book(record)

    def update(self, book: Book) -> None:
        """Write ``book`` back if nobody else has changed it since it was read.

        The row must still carry ``book.version``; on success the bumped
        version is copied onto ``book``. A mismatch raises EditConflict and
        leaves the stored row untouched.
        """
        validate_book(book)
        stmt = (
            update(BookRecord)
            .where(BookRecord.id == book.id, BookRecord.version == book.version)
            .values(
                title=book.title,
                year=book.year,
                runtime=book.runtime,
                genres=list(book.genres),
                price=book.price,
                version=BookRecord.version + 1,
            )
            .returning(BookRecord.version)
            .execution_options(synchronize_session=False)
        )
        with tracer.start_as_current_span("books.update") as span, self.deadline("update") as session:
            span.set_attribute("book.id", book.id)
            version = session.execute(stmt).scalar_one_or_none()
        if version is None:
            edit_conflicts.add(1)
            logger.info("book.edit_conflict", extra={"book_id": book.id, "version": book.version})
            raise EditConflict()
        book.version = version
        logger.info("book.update", extra={"book_id": book.id, "version": version})

    def delete(self, book_id: int) -> None:
        if book_id < 1:
            raise RecordNotFound()
        stmt = delete(BookRecord).where(BookRecord.id == book_id).execution_options(synchronize_session=False)
        with tracer.start_as_current_span("books.delete") as span, self.deadline("delete") as session:
            span.set_attribute("book.id", book_id)
            result = session.execute(stmt)
            if result.rowcount == 0:
                raise RecordNotFound()
        logger.info("book.delete", extra={"book_id": book_id})

    def get_all(self, title: str, genres: Sequence[str], filters: Filters) -> tuple[list[Book], Metadata]:
        stmt = self.list_statement(title, genres, filters)
        with tracer.start_as_current_span("books.get_all"), self.deadline("get_all") as session:
            rows = session.execute(stmt).all()

        total_records = 0
        books = []
        for total, record in rows:
            total_records = total
            books.append(self._to_book(record))
        return books, calculate_metadata(total_records, filters.page, filters.page_size)

    @staticmethod
    def list_statement(title: str, genres: Sequence[str], filters: Filters):
        column = SORTABLE_COLUMNS.get(filters.sort_column())
        if column is None:
            raise RuntimeError(f"unsafe sort parameter: {filters.sort}")
        order = column.desc() if filters.sort_direction() == "DESC" else column.asc()

        stmt = select(func.count().over().label("total_records"), BookRecord)
        if title:
            stmt = stmt.where(title_document(BookRecord.title).bool_op("@@")(title_query(title)))
        if genres:
            stmt = stmt.where(BookRecord.genres.contains(list(genres)))
        return stmt.order_by(order, BookRecord.id.asc()).limit(filters.limit()).offset(filters.offset())

    @staticmethod
    def _to_book(record: BookRecord) -> Book:
        return Book.model_validate(record, from_attributes=True)


class Models:
    def __init__(
        self,
        session_factory,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        default_page_size: int = 20,
        sort_safelist: Sequence[str] = DEFAULT_SORT_SAFELIST,
    ):
        self.books = BookRepository(session_factory, timeout_seconds)
        self.default_page_size = default_page_size
        self.sort_safelist = tuple(sort_safelist)

    def filters(self, *, page: int = 1, page_size: int | None = None, sort: str = "id") -> Filters:
        """Validate listing parameters against the configured page size and sort safelist."""
        return validate_filters(
            page=page,
            page_size=self.default_page_size if page_size is None else page_size,
            sort=sort,
            sort_safelist=self.sort_safelist,
        )
