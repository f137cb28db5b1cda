"""Domain error kinds raised by the service layer.

Callers branch on ``DomainError.kind`` rather than on database error codes.
Input problems are reported as ``ValidationError`` with a field-keyed map of
messages so the API can hand them back unchanged.
"""

from typing import Any

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import IntegrityError

DUPLICATE_CONTACT = "DUPLICATE_CONTACT"
CROSS_PROGRAM_MERGE = "CROSS_PROGRAM_MERGE"
RECORD_NOT_FOUND = "RECORD_NOT_FOUND"
FOREIGN_KEY_VIOLATION = "FOREIGN_KEY_VIOLATION"
DUPLICATE_RECORD = "DUPLICATE_RECORD"

ERROR_KINDS = (
    DUPLICATE_CONTACT,
    CROSS_PROGRAM_MERGE,
    RECORD_NOT_FOUND,
    FOREIGN_KEY_VIOLATION,
    DUPLICATE_RECORD,
)


class DomainError(Exception):
    def __init__(self, kind: str, message: str, context: dict[str, Any] | None = None):
        if kind not in ERROR_KINDS:
            raise ValueError(f"Unknown error kind: {kind}")
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.context = context or {}


class RecordNotFoundError(DomainError):
    def __init__(self, entity: str, record_id: Any = None):
        message = f"{entity} not found"
        super().__init__(RECORD_NOT_FOUND, message, {"entity": entity, "id": record_id})


class CrossProgramMergeError(DomainError):
    def __init__(self, programs: set[str]):
        super().__init__(
            CROSS_PROGRAM_MERGE,
            "Cannot merge profiles that belong to different programs",
            {"programs": sorted(programs)},
        )


class ValidationError(Exception):
    """Business-rule or shape failure reported per field."""

    def __init__(self, errors: dict[str, list[str]]):
        super().__init__("; ".join(f"{field}: {', '.join(msgs)}" for field, msgs in errors.items()))
        self.errors = errors

    @classmethod
    def single(cls, field: str, message: str) -> "ValidationError":
        return cls({field: [message]})


def field_errors(exc: PydanticValidationError) -> dict[str, list[str]]:
    """Flatten pydantic errors into ``{"field.path": [messages]}``."""
    errors: dict[str, list[str]] = {}
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path")]
        key = ".".join(loc) or "__root__"
        errors.setdefault(key, []).append(err.get("msg", "Invalid value"))
    return errors


def translate_integrity_error(exc: IntegrityError, **context) -> DomainError | None:
    """Map a constraint violation onto a domain error kind.

    Returns ``None`` for integrity failures outside the known set (NOT NULL,
    CHECK) so the caller can re-raise the original exception.
    """
    message = str(getattr(exc, "orig", exc)).lower()
    if "foreign key" in message:
        return DomainError(FOREIGN_KEY_VIOLATION, "Referenced record does not exist", context)
    if "unique" in message or "duplicate key" in message:
        if "contact_point" in message:
            return DomainError(DUPLICATE_CONTACT, "Contact point already exists", context)
        return DomainError(DUPLICATE_RECORD, "Record already exists", context)
    return None
