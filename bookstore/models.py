from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from .errors import ValidationFailure

MIN_YEAR = 1888
MAX_TITLE_BYTES = 500
MAX_GENRES = 5
MIN_PRICE = 10


class Book(BaseModel):
    model_config = ConfigDict(validate_assignment=True, from_attributes=True)

    id: int = 0
    created_at: datetime | None = None
    title: str
    year: int
    runtime: int
    genres: list[str]
    price: int
    version: int = 0

    @field_validator("title")
    @classmethod
    def _check_title(cls, value: str) -> str:
        if value == "":
            raise ValueError("must be provided")
        if len(value.encode("utf-8")) > MAX_TITLE_BYTES:
            raise ValueError(f"must not be more than {MAX_TITLE_BYTES} bytes long")
        return value

    @field_validator("year")
    @classmethod
    def _check_year(cls, value: int) -> int:
        if value == 0:
            raise ValueError("must be provided")
        if value < MIN_YEAR:
            raise ValueError(f"must be greater than {MIN_YEAR}")
        if value > date.today().year:
            raise ValueError("must not be in the future")
        return value

    @field_validator("runtime")
    @classmethod
    def _check_runtime(cls, value: int) -> int:
        if value == 0:
            raise ValueError("must be provided")
        if value < 0:
            raise ValueError("must be a positive integer")
        return value

    @field_validator("genres")
    @classmethod
    def _check_genres(cls, value: list[str]) -> list[str]:
        if len(value) < 1:
            raise ValueError("must contain at least 1 genre")
        if len(value) > MAX_GENRES:
            raise ValueError(f"must not contain more than {MAX_GENRES} genres")
        if len(set(value)) != len(value):
            raise ValueError("must not contain duplicate values")
        return value

    @field_validator("price")
    @classmethod
    def _check_price(cls, value: int) -> int:
        if value <= MIN_PRICE:
            raise ValueError(f"must be higher than {MIN_PRICE}")
        return value


def parse_book(data: dict[str, Any]) -> Book:
    """Build a Book from caller-supplied fields, raising ValidationFailure on bad input."""
    try:
        return Book.model_validate(data)
    except ValidationError as exc:
        raise ValidationFailure.from_pydantic(exc) from exc


def validate_book(book: Book) -> None:
    """Re-check every field of ``book`` against the current rules.

    Run before any statement is sent to the store; a model built with
    ``model_construct`` or a year checked last December can both be stale.
    """
    parse_book(book.model_dump())
