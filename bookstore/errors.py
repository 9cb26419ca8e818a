"""Error kinds raised by the bookstore data layer.

Anything else that escapes a repository call is the original
``sqlalchemy.exc.SQLAlchemyError`` and should be treated as a generic
data-access failure by the caller.
"""

from pydantic import ValidationError


class BookstoreError(Exception):
    pass


class RecordNotFound(BookstoreError):
    def __init__(self, message: str = "record not found"):
        super().__init__(message)


class EditConflict(BookstoreError):
    def __init__(self, message: str = "edit conflict"):
        super().__init__(message)


class DeadlineExceeded(BookstoreError, TimeoutError):
    def __init__(self, operation: str, timeout_seconds: float):
        super().__init__(f"{operation} exceeded its {timeout_seconds:g}s deadline")
        self.operation = operation
        self.timeout_seconds = timeout_seconds


class ValidationFailure(BookstoreError):
    def __init__(self, errors: dict[str, str]):
        super().__init__("validation failed: " + ", ".join(f"{k} {v}" for k, v in errors.items()))
        self.errors = errors

    @classmethod
    def from_pydantic(cls, exc: ValidationError) -> "ValidationFailure":
        errors: dict[str, str] = {}
        for error in exc.errors():
            field = ".".join(str(part) for part in error["loc"]) or "__root__"
            message = error["msg"]
            # Messages raised from our own validators come through as "Value error, <msg>".
            if message.startswith("Value error, "):
                message = message[len("Value error, ") :]
            errors.setdefault(field, message)
        return cls(errors)
