"""Classes, their teachers and the single-class placement of each student."""

from datetime import date

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from backend.app.core.app_logger import get_logger, log_error
from backend.app.core.cache import CLASSES_TAG, cache_key, invalidate_attendance, invalidate_classes, read_cache
from backend.app.core.errors import DUPLICATE_RECORD, DomainError, RecordNotFoundError, ValidationError, translate_integrity_error
from backend.app.core.settings import get_settings
from backend.app.core.time import age_on, utc_now
from backend.app.db.session import transaction
from backend.app.models.class_enrollment import ClassEnrollment
from backend.app.models.class_teacher import ClassTeacher
from backend.app.models.enrollment import ENROLLED, REGISTERED
from backend.app.models.person import Person
from backend.app.models.program_profile import SHIFTS, WEEKEND_SCHOOL, ProgramProfile
from backend.app.models.school_class import SchoolClass
from backend.app.models.teacher import Teacher

logger = get_logger("classes")

UNASSIGNED_STATUSES = (ENROLLED, REGISTERED)


def _commit(db: Session, duplicate_message: str, **context) -> None:
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        domain_error = translate_integrity_error(exc, **context)
        if domain_error is None:
            raise
        if domain_error.kind == DUPLICATE_RECORD:
            domain_error = DomainError(DUPLICATE_RECORD, duplicate_message, domain_error.context)
        raise domain_error from exc


def _validate_shift(shift: str) -> None:
    if shift not in SHIFTS:
        raise ValidationError.single("shift", f"Shift must be one of {', '.join(SHIFTS)}")


def get_class(db: Session, class_id: int, active_only: bool = True) -> SchoolClass:
    query = db.query(SchoolClass).filter(SchoolClass.id == class_id)
    if active_only:
        query = query.filter(SchoolClass.is_active.is_(True))
    school_class = query.first()
    if not school_class:
        raise RecordNotFoundError("Class", class_id)
    return school_class


def class_summary(school_class: SchoolClass) -> dict:
    return {
        "id": school_class.id,
        "name": school_class.name,
        "shift": school_class.shift,
        "description": school_class.description,
        "is_active": school_class.is_active,
        "teachers": [
            {"teacher_id": link.teacher_id, "name": link.teacher.person.name}
            for link in school_class.teachers
            if link.is_active
        ],
        "student_count": sum(1 for placement in school_class.students if placement.is_active),
    }


def _load_classes(db: Session, shift: str | None) -> list[dict]:
    query = (
        db.query(SchoolClass)
        .options(
            selectinload(SchoolClass.teachers).selectinload(ClassTeacher.teacher).selectinload(Teacher.person),
            selectinload(SchoolClass.students),
        )
        .filter(SchoolClass.is_active.is_(True))
    )
    if shift:
        query = query.filter(SchoolClass.shift == shift)
    return [class_summary(c) for c in query.order_by(SchoolClass.shift, SchoolClass.name).all()]


def list_classes(db: Session, shift: str | None = None) -> list[dict]:
    return read_cache.get_or_set(
        cache_key(CLASSES_TAG, {"shift": shift}),
        lambda: _load_classes(db, shift),
        ttl=get_settings().dashboard_cache_ttl,
        tags=[CLASSES_TAG],
    )


def create_class(db: Session, *, name: str, shift: str, description: str | None = None) -> SchoolClass:
    name = (name or "").strip()
    if not name:
        raise ValidationError.single("name", "Name is required")
    _validate_shift(shift)

    school_class = SchoolClass(name=name, shift=shift, description=description, is_active=True)
    db.add(school_class)
    _commit(db, "A class with this name already exists", name=name)
    db.refresh(school_class)
    invalidate_classes()
    logger.info("Class created", extra={"context": {"class_id": school_class.id, "shift": shift}})
    return school_class


def update_class(db: Session, class_id: int, *, name: str | None = None, description: str | None = None, shift: str | None = None) -> SchoolClass:
    school_class = get_class(db, class_id)
    if name is not None:
        name = name.strip()
        if not name:
            raise ValidationError.single("name", "Name is required")
        school_class.name = name
    if description is not None:
        school_class.description = description
    shift_changed = False
    if shift is not None:
        _validate_shift(shift)
        shift_changed = shift != school_class.shift
        school_class.shift = shift
    _commit(db, "A class with this name already exists", class_id=class_id)
    db.refresh(school_class)
    invalidate_classes()
    # Shift-filtered stats select sessions through the class shift
    if shift_changed:
        invalidate_attendance()
    return school_class


def deactivate_class(db: Session, class_id: int) -> SchoolClass:
    school_class = get_class(db, class_id)
    school_class.is_active = False
    db.commit()
    db.refresh(school_class)
    invalidate_classes()
    logger.info("Class deactivated", extra={"context": {"class_id": class_id}})
    return school_class


def create_teacher(db: Session, *, person_id: int) -> Teacher:
    if not db.query(Person.id).filter(Person.id == person_id).first():
        raise RecordNotFoundError("Person", person_id)
    teacher = db.query(Teacher).filter(Teacher.person_id == person_id).first()
    if teacher is None:
        teacher = Teacher(person_id=person_id, is_active=True)
        db.add(teacher)
    teacher.is_active = True
    _commit(db, "This person is already a teacher", person_id=person_id)
    db.refresh(teacher)
    return teacher


def assign_teacher(db: Session, class_id: int, teacher_id: int) -> ClassTeacher:
    get_class(db, class_id)
    teacher = db.query(Teacher).filter(Teacher.id == teacher_id).first()
    if not teacher:
        raise RecordNotFoundError("Teacher", teacher_id)
    if not teacher.is_active:
        raise ValidationError.single("teacher_id", "Teacher is not active")

    link = db.query(ClassTeacher).filter(ClassTeacher.class_id == class_id, ClassTeacher.teacher_id == teacher_id).first()
    if link is None:
        link = ClassTeacher(class_id=class_id, teacher_id=teacher_id)
        db.add(link)
    link.is_active = True
    _commit(db, "Teacher is already assigned to this class", class_id=class_id, teacher_id=teacher_id)
    db.refresh(link)
    invalidate_classes()
    return link


def remove_teacher(db: Session, class_id: int, teacher_id: int) -> ClassTeacher:
    link = db.query(ClassTeacher).filter(ClassTeacher.class_id == class_id, ClassTeacher.teacher_id == teacher_id).first()
    if not link:
        raise RecordNotFoundError("Class teacher", {"class_id": class_id, "teacher_id": teacher_id})
    link.is_active = False
    db.commit()
    db.refresh(link)
    invalidate_classes()
    return link


def _place(db: Session, class_id: int, profile_id: int, existing: ClassEnrollment | None) -> bool:
    """Point the profile's placement at ``class_id``. Returns True for a move."""
    was_moving = existing is not None and existing.is_active and existing.class_id != class_id
    if existing is None:
        db.add(ClassEnrollment(class_id=class_id, program_profile_id=profile_id, is_active=True, start_date=utc_now()))
    else:
        if existing.class_id != class_id:
            existing.start_date = utc_now()
        existing.class_id = class_id
        existing.is_active = True
        existing.end_date = None
    db.flush()
    return was_moving


def bulk_enroll(db: Session, *, class_id: int, profile_ids: list[int]) -> dict:
    """Place every profile in ``class_id`` in one transaction.

    A profile already active in the class is left alone. One active
    elsewhere is moved and counted in both ``moved`` and ``enrolled``.
    """
    unique_ids = list(dict.fromkeys(profile_ids))
    get_class(db, class_id)
    logger.info(
        "Starting bulk enrollment",
        extra={"context": {"class_id": class_id, "total_students": len(unique_ids), "profile_ids": unique_ids}},
    )

    enrolled = 0
    moved = 0
    try:
        with transaction(db, timeout_ms=get_settings().bulk_enrollment_timeout_ms):
            existing_rows = (
                db.query(ClassEnrollment).filter(ClassEnrollment.program_profile_id.in_(unique_ids)).all()
                if unique_ids
                else []
            )
            existing_map = {row.program_profile_id: row for row in existing_rows}
            for profile_id in unique_ids:
                existing = existing_map.get(profile_id)
                if existing is not None and existing.is_active and existing.class_id == class_id:
                    continue
                if _place(db, class_id, profile_id, existing):
                    moved += 1
                enrolled += 1
    except IntegrityError as exc:
        log_error(logger, "Bulk enrollment failed", class_id=class_id, profile_ids=unique_ids)
        domain_error = translate_integrity_error(exc, class_id=class_id, profile_ids=unique_ids)
        if domain_error is None:
            raise
        raise domain_error from exc
    except Exception:
        log_error(logger, "Bulk enrollment failed", class_id=class_id, profile_ids=unique_ids)
        raise

    invalidate_classes()
    logger.info("Bulk enrollment completed", extra={"context": {"class_id": class_id, "enrolled": enrolled, "moved": moved}})
    return {"enrolled": enrolled, "moved": moved}


def enroll_student_in_class(db: Session, *, class_id: int, profile_id: int) -> ClassEnrollment:
    get_class(db, class_id)
    if not db.query(ProgramProfile.id).filter(ProgramProfile.id == profile_id).first():
        raise RecordNotFoundError("Program profile", profile_id)
    existing = db.query(ClassEnrollment).filter(ClassEnrollment.program_profile_id == profile_id).first()
    if not (existing is not None and existing.is_active and existing.class_id == class_id):
        with transaction(db):
            _place(db, class_id, profile_id, existing)
        invalidate_classes()
    return db.query(ClassEnrollment).filter(ClassEnrollment.program_profile_id == profile_id).one()


def remove_from_class(db: Session, profile_id: int) -> ClassEnrollment:
    """Deactivate the profile's placement and stamp its end date."""
    placement = db.query(ClassEnrollment).filter(ClassEnrollment.program_profile_id == profile_id).first()
    if not placement:
        raise RecordNotFoundError("Class enrollment", profile_id)
    if placement.is_active:
        placement.is_active = False
        placement.end_date = utc_now()
        db.commit()
        db.refresh(placement)
        invalidate_classes()
    return placement


def get_enrolled_students(db: Session, class_id: int, today: date | None = None) -> list[dict]:
    get_class(db, class_id, active_only=False)
    today = today or date.today()
    rows = (
        db.query(ClassEnrollment, ProgramProfile, Person)
        .join(ProgramProfile, ProgramProfile.id == ClassEnrollment.program_profile_id)
        .join(Person, Person.id == ProgramProfile.person_id)
        .filter(ClassEnrollment.class_id == class_id, ClassEnrollment.is_active.is_(True))
        .order_by(Person.name, ProgramProfile.id)
        .all()
    )
    return [
        {
            "profile_id": profile.id,
            "name": person.name,
            "age": age_on(person.date_of_birth, today),
            "family_reference_id": profile.family_reference_id,
            "start_date": placement.start_date,
        }
        for placement, profile, person in rows
    ]


def get_unassigned_students(db: Session, program: str = WEEKEND_SCHOOL, today: date | None = None) -> list[dict]:
    today = today or date.today()
    rows = (
        db.query(ProgramProfile, Person)
        .join(Person, Person.id == ProgramProfile.person_id)
        .outerjoin(ClassEnrollment, ClassEnrollment.program_profile_id == ProgramProfile.id)
        .filter(
            ProgramProfile.program == program,
            ProgramProfile.status.in_(UNASSIGNED_STATUSES),
            or_(ClassEnrollment.id.is_(None), ClassEnrollment.is_active.is_(False)),
        )
        .order_by(Person.name, ProgramProfile.id)
        .all()
    )
    return [
        {
            "profile_id": profile.id,
            "name": person.name,
            "age": age_on(person.date_of_birth, today),
            "shift": profile.shift,
            "family_reference_id": profile.family_reference_id,
        }
        for profile, person in rows
    ]
