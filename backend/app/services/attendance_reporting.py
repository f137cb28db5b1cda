"""Attendance statistics, trends and period comparisons."""

from datetime import date, timedelta

from sqlalchemy import func
from sqlalchemy.orm import Session

from backend.app.core.cache import (
    ATTENDANCE_STATS_TAG,
    CLASSES_TAG,
    TEACHER_DASHBOARD_TAG,
    cache_key,
    read_cache,
)
from backend.app.core.errors import RecordNotFoundError
from backend.app.core.settings import get_settings
from backend.app.core.time import age_on, month_bounds
from backend.app.models.attendance_record import AttendanceRecord
from backend.app.models.attendance_session import AttendanceSession
from backend.app.models.class_enrollment import ClassEnrollment
from backend.app.models.class_teacher import ClassTeacher
from backend.app.models.program_profile import SHIFTS, ProgramProfile
from backend.app.models.school_class import SchoolClass
from backend.app.models.teacher import Teacher
from backend.app.services.attendance_filters import AttendanceFilters, build_session_conditions
from backend.app.services.attendance_math import (
    aggregate_status_counts,
    compare_grouped,
    compare_periods,
    merge_counts,
    sort_by_family_then_name,
    summarize_status_counts,
)


def _status_counts(db: Session, conditions: list) -> dict[str, int]:
    rows = (
        db.query(AttendanceRecord.status, func.count(AttendanceRecord.id))
        .join(AttendanceSession, AttendanceSession.id == AttendanceRecord.session_id)
        .filter(*conditions)
        .group_by(AttendanceRecord.status)
        .all()
    )
    return aggregate_status_counts(rows)


def _grouped_status_counts(db: Session, group_column, conditions: list) -> dict:
    rows = (
        db.query(group_column, AttendanceRecord.status, func.count(AttendanceRecord.id))
        .join(AttendanceSession, AttendanceSession.id == AttendanceRecord.session_id)
        .join(SchoolClass, SchoolClass.id == AttendanceSession.class_id)
        .filter(*conditions)
        .group_by(group_column, AttendanceRecord.status)
        .all()
    )
    pairs: dict = {}
    for key, status, count in rows:
        pairs.setdefault(key, []).append((status, count))
    return {key: aggregate_status_counts(group) for key, group in pairs.items()}


def _period_conditions(today: date) -> tuple[list, list]:
    current_start, previous_start = month_bounds(today)
    current = [AttendanceSession.date >= current_start, AttendanceSession.date <= today]
    previous = [AttendanceSession.date >= previous_start, AttendanceSession.date < current_start]
    return current, previous


def _require_profile(db: Session, profile_id: int) -> ProgramProfile:
    profile = db.query(ProgramProfile).filter(ProgramProfile.id == profile_id).first()
    if not profile:
        raise RecordNotFoundError("Program profile", profile_id)
    return profile


def _require_teacher(db: Session, teacher_id: int) -> Teacher:
    teacher = db.query(Teacher).filter(Teacher.id == teacher_id).first()
    if not teacher:
        raise RecordNotFoundError("Teacher", teacher_id)
    return teacher


def get_attendance_stats(db: Session, filters: AttendanceFilters | None = None) -> dict:
    conditions = build_session_conditions(filters)
    total_sessions = db.query(func.count(AttendanceSession.id)).filter(*conditions).scalar() or 0
    summary = summarize_status_counts(_status_counts(db, conditions))
    return {"total_sessions": total_sessions, **summary}


def get_attendance_stats_cached(db: Session, filters: AttendanceFilters | None = None) -> dict:
    filters = filters or AttendanceFilters()
    return read_cache.get_or_set(
        cache_key(ATTENDANCE_STATS_TAG, filters.as_dict()),
        lambda: get_attendance_stats(db, filters),
        ttl=get_settings().stats_cache_ttl,
        tags=[ATTENDANCE_STATS_TAG],
    )


def get_student_attendance_stats(db: Session, profile_id: int) -> dict:
    _require_profile(db, profile_id)
    conditions = [AttendanceRecord.program_profile_id == profile_id]
    summary = summarize_status_counts(_status_counts(db, conditions))
    recent = (
        db.query(AttendanceRecord.status, AttendanceSession.date)
        .join(AttendanceSession, AttendanceSession.id == AttendanceRecord.session_id)
        .filter(*conditions)
        .order_by(AttendanceSession.date.desc())
        .all()
    )
    summary["recent_records"] = [{"status": status, "date": session_date} for status, session_date in recent]
    return summary


def get_student_weekly_trend(db: Session, profile_id: int, weeks_back: int = 12, today: date | None = None) -> list[dict]:
    _require_profile(db, profile_id)
    today = today or date.today()
    since = today - timedelta(weeks=weeks_back)
    rows = (
        db.query(AttendanceSession.date, AttendanceRecord.status)
        .join(AttendanceSession, AttendanceSession.id == AttendanceRecord.session_id)
        .filter(AttendanceRecord.program_profile_id == profile_id, AttendanceSession.date >= since)
        .order_by(AttendanceSession.date.asc())
        .all()
    )
    return [{"date": session_date, "status": status} for session_date, status in rows]


def get_student_monthly_comparison(db: Session, profile_id: int, today: date | None = None) -> dict:
    _require_profile(db, profile_id)
    current, previous = _period_conditions(today or date.today())
    scope = [AttendanceRecord.program_profile_id == profile_id]
    return compare_periods(_status_counts(db, scope + current), _status_counts(db, scope + previous))


def get_teacher_class_ids(db: Session, teacher_id: int) -> list[int]:
    rows = (
        db.query(ClassTeacher.class_id)
        .filter(ClassTeacher.teacher_id == teacher_id, ClassTeacher.is_active.is_(True))
        .order_by(ClassTeacher.class_id)
        .all()
    )
    return [class_id for (class_id,) in rows]


def get_students_by_teacher(db: Session, teacher_id: int, today: date | None = None) -> list[dict]:
    _require_teacher(db, teacher_id)
    class_ids = get_teacher_class_ids(db, teacher_id)
    if not class_ids:
        return []
    today = today or date.today()
    placements = (
        db.query(ClassEnrollment)
        .filter(ClassEnrollment.class_id.in_(class_ids), ClassEnrollment.is_active.is_(True))
        .all()
    )
    students = [
        {
            "profile_id": placement.program_profile_id,
            "name": placement.program_profile.person.name,
            "age": age_on(placement.program_profile.person.date_of_birth, today),
            "class_id": placement.class_id,
            "class_name": placement.school_class.name,
            "shift": placement.school_class.shift,
            "family_reference_id": placement.program_profile.family_reference_id,
        }
        for placement in placements
    ]
    return sort_by_family_then_name(students)


def get_teacher_shift_comparison(db: Session, teacher_id: int, today: date | None = None) -> dict:
    """Month-over-month rate change for the teacher overall and per shift.

    Each shift is compared on its own, so a shift without last-month records
    has a ``None`` diff even when the overall figure is defined.
    """
    _require_teacher(db, teacher_id)
    class_ids = get_teacher_class_ids(db, teacher_id)
    current, previous = _period_conditions(today or date.today())
    scope = [AttendanceSession.class_id.in_(class_ids)]

    current_by_shift = _grouped_status_counts(db, SchoolClass.shift, scope + current)
    previous_by_shift = _grouped_status_counts(db, SchoolClass.shift, scope + previous)
    return {
        "teacher_id": teacher_id,
        "overall": compare_periods(
            merge_counts(*current_by_shift.values()), merge_counts(*previous_by_shift.values())
        ),
        "shifts": compare_grouped(current_by_shift, previous_by_shift, SHIFTS),
    }


def get_class_comparisons(db: Session, filters: AttendanceFilters | None = None, today: date | None = None) -> list[dict]:
    filters = filters or AttendanceFilters()
    class_query = db.query(SchoolClass).filter(SchoolClass.is_active.is_(True))
    if filters.class_id is not None:
        class_query = class_query.filter(SchoolClass.id == filters.class_id)
    if filters.shift is not None:
        class_query = class_query.filter(SchoolClass.shift == filters.shift)
    classes = class_query.order_by(SchoolClass.name).all()

    # The comparison windows are fixed by ``today``; date filters do not apply.
    scope = build_session_conditions(
        AttendanceFilters(class_id=filters.class_id, teacher_id=filters.teacher_id, shift=filters.shift)
    )
    current, previous = _period_conditions(today or date.today())
    compared = compare_grouped(
        _grouped_status_counts(db, AttendanceSession.class_id, scope + current),
        _grouped_status_counts(db, AttendanceSession.class_id, scope + previous),
        [c.id for c in classes],
    )
    return [
        {"class_id": c.id, "class_name": c.name, "shift": c.shift, **compared[c.id]}
        for c in classes
    ]


def _build_teacher_dashboard(db: Session, teacher_id: int, today: date) -> dict:
    class_ids = get_teacher_class_ids(db, teacher_id)
    students = get_students_by_teacher(db, teacher_id, today)
    scope = [AttendanceSession.class_id.in_(class_ids)]
    total_sessions = db.query(func.count(AttendanceSession.id)).filter(*scope).scalar() or 0
    return {
        "teacher_id": teacher_id,
        "class_count": len(class_ids),
        "student_count": len(students),
        "stats": {"total_sessions": total_sessions, **summarize_status_counts(_status_counts(db, scope))},
        "comparison": get_teacher_shift_comparison(db, teacher_id, today),
        "students": students,
    }


def get_teacher_dashboard(db: Session, teacher_id: int, today: date | None = None) -> dict:
    _require_teacher(db, teacher_id)
    today = today or date.today()
    return read_cache.get_or_set(
        cache_key(TEACHER_DASHBOARD_TAG, {"teacher_id": teacher_id, "today": today}),
        lambda: _build_teacher_dashboard(db, teacher_id, today),
        ttl=get_settings().dashboard_cache_ttl,
        tags=[TEACHER_DASHBOARD_TAG, CLASSES_TAG],
    )
