"""Attendance sessions and the marks recorded in them."""

from datetime import date, datetime

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from backend.app.core.app_logger import get_logger
from backend.app.core.cache import invalidate_attendance
from backend.app.core.errors import DUPLICATE_RECORD, DomainError, RecordNotFoundError, ValidationError, translate_integrity_error
from backend.app.core.settings import get_settings
from backend.app.core.time import as_utc, end_of_day, utc_now, weekend_sunday
from backend.app.db.session import transaction
from backend.app.models.attendance_record import ATTENDANCE_STATUSES, AttendanceRecord
from backend.app.models.attendance_session import AttendanceSession
from backend.app.models.class_teacher import ClassTeacher
from backend.app.models.school_class import SchoolClass
from backend.app.models.teacher import Teacher
from backend.app.services.attendance_filters import AttendanceFilters, build_session_conditions

logger = get_logger("attendance")

RECORD_FIELDS = ("status", "lesson_completed", "lesson_name", "lesson_from", "lesson_to", "lesson_notes", "notes")


def is_session_open(session: AttendanceSession, now: datetime | None = None) -> bool:
    """A session stays editable until the end of the Sunday of its weekend."""
    if session.is_closed:
        return False
    now = as_utc(now) if now else utc_now()
    return now <= end_of_day(weekend_sunday(session.date))


def get_session(db: Session, session_id: int) -> AttendanceSession:
    session = (
        db.query(AttendanceSession)
        .options(selectinload(AttendanceSession.records))
        .filter(AttendanceSession.id == session_id)
        .first()
    )
    if not session:
        raise RecordNotFoundError("Attendance session", session_id)
    return session


def _active_teacher_id(db: Session, class_id: int) -> int | None:
    link = (
        db.query(ClassTeacher)
        .join(Teacher, Teacher.id == ClassTeacher.teacher_id)
        .filter(ClassTeacher.class_id == class_id, ClassTeacher.is_active.is_(True), Teacher.is_active.is_(True))
        .order_by(ClassTeacher.id)
        .first()
    )
    return link.teacher_id if link else None


def create_session(db: Session, *, class_id: int, session_date: date, notes: str | None = None) -> AttendanceSession:
    if get_settings().weekend_sessions_only and session_date.weekday() not in (5, 6):
        raise ValidationError.single("date", "Sessions can only be created on weekends (Saturday or Sunday)")

    school_class = db.query(SchoolClass).filter(SchoolClass.id == class_id).first()
    if not school_class:
        raise RecordNotFoundError("Class", class_id)
    if not school_class.is_active:
        raise ValidationError.single("class_id", "Class is not active")

    teacher_id = _active_teacher_id(db, class_id)
    if teacher_id is None:
        raise ValidationError.single("class_id", "No active teacher assigned to this class")

    session = AttendanceSession(class_id=class_id, date=session_date, teacher_id=teacher_id, notes=notes)
    try:
        with transaction(db):
            db.add(session)
    except IntegrityError as exc:
        domain_error = translate_integrity_error(exc, class_id=class_id, date=session_date)
        if domain_error is None:
            raise
        if domain_error.kind == DUPLICATE_RECORD:
            domain_error = DomainError(
                DUPLICATE_RECORD, "A session already exists for this class on this date", domain_error.context
            )
        raise domain_error from exc

    db.refresh(session)
    invalidate_attendance()
    logger.info(
        "Attendance session created",
        extra={"context": {"session_id": session.id, "class_id": class_id, "teacher_id": teacher_id, "date": str(session_date)}},
    )
    return session


def _validate_records(records: list[dict]) -> None:
    errors: dict[str, list[str]] = {}
    if not records:
        errors["records"] = ["At least one record is required"]
    for index, record in enumerate(records):
        if record.get("program_profile_id") is None:
            errors.setdefault(f"records.{index}.program_profile_id", []).append("Field required")
        if record.get("status") not in ATTENDANCE_STATUSES:
            errors.setdefault(f"records.{index}.status", []).append(
                f"Status must be one of {', '.join(ATTENDANCE_STATUSES)}"
            )
    if errors:
        raise ValidationError(errors)


def mark_attendance(db: Session, *, session_id: int, records: list[dict], now: datetime | None = None) -> dict:
    """Upsert one mark per (session, profile); later marks replace earlier ones."""
    _validate_records(records)
    session = get_session(db, session_id)
    if not is_session_open(session, now):
        raise ValidationError.single("session_id", "Cannot modify a closed session")

    marked_at = utc_now()
    try:
        with transaction(db):
            existing = {r.program_profile_id: r for r in session.records}
            for payload in records:
                profile_id = payload["program_profile_id"]
                record = existing.get(profile_id)
                if record is None:
                    record = AttendanceRecord(session_id=session_id, program_profile_id=profile_id)
                    db.add(record)
                    existing[profile_id] = record
                for field in RECORD_FIELDS:
                    value = payload.get(field)
                    if field == "lesson_completed":
                        value = bool(value)
                    setattr(record, field, value)
                record.marked_at = marked_at
                db.flush()
    except IntegrityError as exc:
        domain_error = translate_integrity_error(exc, session_id=session_id)
        if domain_error is None:
            raise
        raise domain_error from exc

    invalidate_attendance()
    logger.info("Attendance marked", extra={"context": {"session_id": session_id, "record_count": len(records)}})
    return {"session_id": session_id, "record_count": len(records)}


def close_session(db: Session, session_id: int) -> AttendanceSession:
    session = get_session(db, session_id)
    if not session.is_closed:
        session.is_closed = True
        db.commit()
        db.refresh(session)
        invalidate_attendance()
    return session


def delete_session(db: Session, session_id: int) -> None:
    session = get_session(db, session_id)
    class_id, session_date = session.class_id, session.date
    db.delete(session)
    db.commit()
    invalidate_attendance()
    logger.info(
        "Attendance session deleted",
        extra={"context": {"session_id": session_id, "class_id": class_id, "date": str(session_date)}},
    )


def _session_summary(session: AttendanceSession, record_count: int) -> dict:
    return {
        "id": session.id,
        "date": session.date,
        "class_id": session.class_id,
        "class_name": session.school_class.name,
        "shift": session.school_class.shift,
        "teacher_id": session.teacher_id,
        "notes": session.notes,
        "is_closed": session.is_closed,
        "is_open": is_session_open(session),
        "record_count": record_count,
    }


def list_sessions(db: Session, filters: AttendanceFilters | None = None, page: int = 1, limit: int | None = None) -> dict:
    limit = limit or get_settings().default_page_size
    page = max(page, 1)
    conditions = build_session_conditions(filters)

    total = db.query(func.count(AttendanceSession.id)).filter(*conditions).scalar() or 0
    sessions = (
        db.query(AttendanceSession)
        .options(selectinload(AttendanceSession.school_class))
        .filter(*conditions)
        .order_by(AttendanceSession.date.desc(), AttendanceSession.created_at.desc(), AttendanceSession.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    counts = dict(
        db.query(AttendanceRecord.session_id, func.count(AttendanceRecord.id))
        .filter(AttendanceRecord.session_id.in_([s.id for s in sessions]))
        .group_by(AttendanceRecord.session_id)
        .all()
    )
    return {
        "data": [_session_summary(s, counts.get(s.id, 0)) for s in sessions],
        "total": total,
        "page": page,
        "limit": limit,
        "total_pages": (total + limit - 1) // limit,
    }
