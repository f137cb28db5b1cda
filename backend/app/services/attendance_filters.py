"""Filter record for attendance queries and its translation into SQL conditions."""

from dataclasses import asdict, dataclass
from datetime import date

from sqlalchemy import select

from backend.app.core.errors import ValidationError
from backend.app.models.attendance_session import AttendanceSession
from backend.app.models.school_class import SchoolClass


@dataclass(frozen=True)
class AttendanceFilters:
    class_id: int | None = None
    teacher_id: int | None = None
    shift: str | None = None
    date_from: date | None = None
    date_to: date | None = None

    def validate(self) -> "AttendanceFilters":
        if self.date_from and self.date_to and self.date_from > self.date_to:
            raise ValidationError.single("date_from", "date_from must not be after date_to")
        return self

    def as_dict(self) -> dict:
        return asdict(self)


def build_session_conditions(filters: AttendanceFilters | None) -> list:
    """Translate filters into WHERE clauses on ``AttendanceSession``.

    Unset fields add nothing, so an empty filter matches every session. The
    shift filter is a subquery on classes, so callers never need a join.
    """
    if filters is None:
        return []
    conditions = []
    if filters.class_id is not None:
        conditions.append(AttendanceSession.class_id == filters.class_id)
    if filters.teacher_id is not None:
        conditions.append(AttendanceSession.teacher_id == filters.teacher_id)
    if filters.shift is not None:
        conditions.append(
            AttendanceSession.class_id.in_(select(SchoolClass.id).where(SchoolClass.shift == filters.shift))
        )
    if filters.date_from is not None:
        conditions.append(AttendanceSession.date >= filters.date_from)
    if filters.date_to is not None:
        conditions.append(AttendanceSession.date <= filters.date_to)
    return conditions
