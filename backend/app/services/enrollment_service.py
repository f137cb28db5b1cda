"""Batch enrollments: creation, status transitions and re-enrollment."""

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from backend.app.core.app_logger import get_logger
from backend.app.core.errors import DUPLICATE_RECORD, DomainError, RecordNotFoundError, ValidationError, translate_integrity_error
from backend.app.core.time import utc_now
from backend.app.models.batch import Batch
from backend.app.models.enrollment import (
    COMPLETED,
    ENROLLED,
    ENROLLMENT_STATUSES,
    ON_LEAVE,
    REGISTERED,
    SUSPENDED,
    WITHDRAWN,
    Enrollment,
)
from backend.app.models.program_profile import WEEKEND_SCHOOL, ProgramProfile

logger = get_logger("enrollment")

STATUS_TRANSITIONS = {
    REGISTERED: (ENROLLED, ON_LEAVE, WITHDRAWN),
    ENROLLED: (ON_LEAVE, WITHDRAWN, COMPLETED, SUSPENDED),
    ON_LEAVE: (ENROLLED, WITHDRAWN),
    SUSPENDED: (ENROLLED, WITHDRAWN),
    WITHDRAWN: (),
    COMPLETED: (),
}

# Statuses that close the enrollment period.
CLOSING_STATUSES = (WITHDRAWN, COMPLETED)


def is_valid_transition(current: str, new: str) -> bool:
    return new in STATUS_TRANSITIONS.get(current, ())


def get_active_enrollment(db: Session, profile_id: int) -> Enrollment | None:
    return (
        db.query(Enrollment)
        .filter(
            Enrollment.program_profile_id == profile_id,
            Enrollment.end_date.is_(None),
            Enrollment.status != WITHDRAWN,
        )
        .first()
    )


def list_enrollments(db: Session, profile_id: int) -> list[Enrollment]:
    return (
        db.query(Enrollment)
        .filter(Enrollment.program_profile_id == profile_id)
        .order_by(Enrollment.start_date.desc(), Enrollment.id.desc())
        .all()
    )


def _validate_target(db: Session, profile_id: int, batch_id: int | None) -> ProgramProfile:
    profile = db.query(ProgramProfile).filter(ProgramProfile.id == profile_id).first()
    if not profile:
        raise RecordNotFoundError("Program profile", profile_id)
    if batch_id is not None:
        if profile.program == WEEKEND_SCHOOL:
            raise ValidationError.single("batch_id", "Weekend school enrollments are placed in classes, not batches")
        if not db.query(Batch.id).filter(Batch.id == batch_id).first():
            raise RecordNotFoundError("Batch", batch_id)
    return profile


def _insert(db: Session, profile: ProgramProfile, enrollment: Enrollment) -> Enrollment:
    if get_active_enrollment(db, profile.id) is not None:
        raise DomainError(
            DUPLICATE_RECORD, "Profile already has an active enrollment", {"program_profile_id": profile.id}
        )
    db.add(enrollment)
    profile.status = enrollment.status
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        domain_error = translate_integrity_error(exc, program_profile_id=profile.id)
        if domain_error is None:
            raise
        raise domain_error from exc
    db.refresh(enrollment)
    return enrollment


def create_enrollment(
    db: Session,
    *,
    profile_id: int,
    batch_id: int | None = None,
    status: str = REGISTERED,
    reason: str | None = None,
    notes: str | None = None,
) -> Enrollment:
    if status not in ENROLLMENT_STATUSES or status in CLOSING_STATUSES:
        raise ValidationError.single("status", f"Cannot open an enrollment with status {status}")
    profile = _validate_target(db, profile_id, batch_id)
    enrollment = _insert(
        db,
        profile,
        Enrollment(program_profile_id=profile_id, batch_id=batch_id, status=status, reason=reason, notes=notes, start_date=utc_now()),
    )
    logger.info("Enrollment created", extra={"context": {"enrollment_id": enrollment.id, "program_profile_id": profile_id}})
    return enrollment


def update_enrollment_status(db: Session, enrollment_id: int, status: str, reason: str | None = None) -> Enrollment:
    enrollment = db.query(Enrollment).filter(Enrollment.id == enrollment_id).first()
    if not enrollment:
        raise RecordNotFoundError("Enrollment", enrollment_id)
    if not is_valid_transition(enrollment.status, status):
        allowed = ", ".join(STATUS_TRANSITIONS.get(enrollment.status, ())) or "none"
        raise ValidationError.single(
            "status",
            f"Invalid status transition from {enrollment.status} to {status}. Allowed: {allowed}",
        )

    enrollment.status = status
    enrollment.reason = reason
    if status in CLOSING_STATUSES and enrollment.end_date is None:
        enrollment.end_date = utc_now()
    enrollment.program_profile.status = status
    db.commit()
    db.refresh(enrollment)
    logger.info(
        "Enrollment status updated",
        extra={"context": {"enrollment_id": enrollment_id, "status": status}},
    )
    return enrollment


def reenroll(db: Session, *, profile_id: int, batch_id: int | None = None, notes: str | None = None) -> Enrollment:
    """Open a fresh REGISTERED enrollment once the previous one has ended."""
    profile = _validate_target(db, profile_id, batch_id)
    return _insert(
        db,
        profile,
        Enrollment(program_profile_id=profile_id, batch_id=batch_id, status=REGISTERED, notes=notes, start_date=utc_now()),
    )
