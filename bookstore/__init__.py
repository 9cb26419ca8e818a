from .books import BookRepository, Models
from .config import Settings, configure_logging, get_settings
from .db import get_engine, make_session_factory
from .errors import BookstoreError, DeadlineExceeded, EditConflict, RecordNotFound, ValidationFailure
from .filters import Filters, Metadata, calculate_metadata, validate_filters
from .models import Book, parse_book, validate_book

__all__ = [
    "Book",
    "BookRepository",
    "BookstoreError",
    "DeadlineExceeded",
    "EditConflict",
    "Filters",
    "Metadata",
    "Models",
    "RecordNotFound",
    "Settings",
    "ValidationFailure",
    "calculate_metadata",
    "open_models",
    "parse_book",
    "validate_book",
    "validate_filters",
]


def open_models(settings: Settings | None = None) -> Models:
    settings = settings or get_settings()
    configure_logging(settings.log_level)
    engine = get_engine(settings)
    if settings.otel_enabled:
        from .telemetry import configure_telemetry

        configure_telemetry(engine, settings.service_name)
    return Models(
        make_session_factory(engine),
        timeout_seconds=settings.query_timeout_seconds,
        default_page_size=settings.default_page_size,
        sort_safelist=settings.sort_safelist,
    )
