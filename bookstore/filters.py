from typing import Iterable

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from .config import DEFAULT_SORT_SAFELIST
from .errors import ValidationFailure

MAX_PAGE = 10_000_000
MAX_PAGE_SIZE = 100


class Filters(BaseModel):
    model_config = ConfigDict(frozen=True)

    page: int = Field(default=1, ge=1, le=MAX_PAGE)
    page_size: int = Field(default=20, ge=1, le=MAX_PAGE_SIZE)
    sort: str = "id"
    sort_safelist: tuple[str, ...] = DEFAULT_SORT_SAFELIST

    @model_validator(mode="after")
    def _check_sort(self) -> "Filters":
        if self.sort not in self.sort_safelist:
            raise ValueError("invalid sort value")
        return self

    def sort_column(self) -> str:
        # Only reachable with an unchecked sort key, e.g. from model_construct.
        if self.sort not in self.sort_safelist:
            raise RuntimeError(f"unsafe sort parameter: {self.sort}")
        return self.sort.lstrip("-")

    def sort_direction(self) -> str:
        return "DESC" if self.sort.startswith("-") else "ASC"

    def limit(self) -> int:
        return self.page_size

    def offset(self) -> int:
        return (self.page - 1) * self.page_size


class Metadata(BaseModel):
    current_page: int = 0
    page_size: int = 0
    first_page: int = 0
    last_page: int = 0
    total_records: int = 0


def calculate_metadata(total_records: int, page: int, page_size: int) -> Metadata:
    if total_records == 0:
        return Metadata()
    return Metadata(
        current_page=page,
        page_size=page_size,
        first_page=1,
        last_page=(total_records + page_size - 1) // page_size,
        total_records=total_records,
    )


def validate_filters(
    *,
    page: int = 1,
    page_size: int = 20,
    sort: str = "id",
    sort_safelist: Iterable[str] = DEFAULT_SORT_SAFELIST,
) -> Filters:
    try:
        return Filters(page=page, page_size=page_size, sort=sort, sort_safelist=tuple(sort_safelist))
    except ValidationError as exc:
        errors = ValidationFailure.from_pydantic(exc).errors
        # The safelist check is model-level, so pydantic reports it without a field.
        if "__root__" in errors:
            errors["sort"] = errors.pop("__root__")
        raise ValidationFailure(errors) from exc
