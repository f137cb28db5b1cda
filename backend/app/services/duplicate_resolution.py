"""Duplicate person detection and the merge that folds duplicates into one profile.

Detection clusters people who share a normalized phone or WhatsApp number.
The merge runs inside a single transaction: a failure at any step leaves the
database exactly as it was before the call.
"""

from collections import defaultdict
from datetime import datetime, timedelta

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from backend.app.core.app_logger import get_logger, log_error
from backend.app.core.cache import invalidate_attendance, invalidate_classes
from backend.app.core.errors import CrossProgramMergeError, RecordNotFoundError, ValidationError
from backend.app.core.settings import get_settings
from backend.app.core.time import as_utc, utc_now
from backend.app.db.session import transaction
from backend.app.models.contact_point import PHONE_TYPES, ContactPoint
from backend.app.models.enrollment import WITHDRAWN
from backend.app.models.guardian_relationship import ACTIVE, GuardianRelationship
from backend.app.models.person import Person
from backend.app.models.program_profile import ProgramProfile
from backend.app.models.sibling_relationship import SiblingRelationship
from backend.app.services.person_service import sibling_pair

logger = get_logger("duplicates")

# Profile columns that a merge may fill in on the kept profile.
MERGEABLE_PROFILE_FIELDS = ("grade_level", "school_name", "shift", "family_reference_id")

DUPLICATE_RESOLVED_REASON = "Duplicate resolved"


def _person_summary(person: Person) -> dict:
    return {
        "id": person.id,
        "name": person.name,
        "updated_at": as_utc(person.updated_at),
        "program_profiles": [{"id": p.id, "program": p.program} for p in person.program_profiles],
    }


def find_duplicate_persons(db: Session, now: datetime | None = None) -> list[dict]:
    """Group people that share a phone value into clusters of two or more."""
    now = as_utc(now) if now else utc_now()
    window = timedelta(days=get_settings().duplicate_recent_activity_days)

    rows = (
        db.query(ContactPoint.value, Person)
        .join(Person, Person.id == ContactPoint.person_id)
        .filter(ContactPoint.type.in_(PHONE_TYPES), ContactPoint.is_active.is_(True))
        .order_by(ContactPoint.value, Person.id)
        .all()
    )

    by_phone: dict[str, dict[int, Person]] = defaultdict(dict)
    for value, person in rows:
        by_phone[value][person.id] = person

    clusters = []
    for phone, people in by_phone.items():
        if len(people) < 2:
            continue
        ordered = sorted(people.values(), key=lambda p: (as_utc(p.updated_at), p.id), reverse=True)
        keep, rest = ordered[0], ordered[1:]
        clusters.append(
            {
                "phone": phone,
                "keep": _person_summary(keep),
                "delete_candidates": [_person_summary(p) for p in rest],
                "has_recent_activity": any(now - as_utc(p.updated_at) <= window for p in ordered),
                "size": len(ordered),
            }
        )
    return clusters


def _copy_contact_points(db: Session, keep_person: Person, sources: list[Person]) -> int:
    existing = {(cp.type, cp.value) for cp in keep_person.contact_points}
    copied = 0
    for source in sources:
        for cp in source.contact_points:
            key = (cp.type, cp.value)
            if key in existing:
                continue
            try:
                with db.begin_nested():
                    db.add(
                        ContactPoint(
                            person_id=keep_person.id,
                            type=cp.type,
                            value=cp.value,
                            is_active=cp.is_active,
                            is_primary=False,
                        )
                    )
            except IntegrityError:
                logger.warning("Skipped conflicting contact point", extra={"context": {"type": cp.type, "value": cp.value}})
                continue
            existing.add(key)
            copied += 1
    return copied


def _backfill_profile_fields(keep: ProgramProfile, sources: list[ProgramProfile]) -> list[str]:
    filled = []
    for field in MERGEABLE_PROFILE_FIELDS:
        if getattr(keep, field) is not None:
            continue
        value = next((getattr(s, field) for s in sources if getattr(s, field) is not None), None)
        if value is not None:
            setattr(keep, field, value)
            filled.append(field)
    return filled


def _reparent_billing(db: Session, keep: ProgramProfile, sources: list[ProgramProfile]) -> int:
    moved = 0
    for source in sources:
        for assignment in list(source.billing_assignments):
            assignment.program_profile = keep
            moved += 1
    db.flush()
    return moved


def _reparent_enrollments(db: Session, keep: ProgramProfile, sources: list[ProgramProfile]) -> int:
    keep_has_active = any(e.end_date is None and e.status != WITHDRAWN for e in keep.enrollments)
    moved = 0
    for source in sources:
        for enrollment in list(source.enrollments):
            is_active = enrollment.end_date is None and enrollment.status != WITHDRAWN
            if is_active and keep_has_active:
                enrollment.status = WITHDRAWN
                enrollment.end_date = utc_now()
                enrollment.reason = DUPLICATE_RESOLVED_REASON
            elif is_active:
                keep_has_active = True
            enrollment.program_profile = keep
            db.flush()
            moved += 1
    return moved


def _reparent_class_enrollment(db: Session, keep: ProgramProfile, sources: list[ProgramProfile]) -> None:
    for source in sources:
        placement = source.class_enrollment
        if placement is None:
            continue
        if keep.class_enrollment is None:
            placement.program_profile = keep
        else:
            db.delete(placement)
        db.flush()


def _reparent_attendance(db: Session, keep: ProgramProfile, sources: list[ProgramProfile]) -> int:
    keep_sessions = {r.session_id for r in keep.attendance_records}
    moved = 0
    for source in sources:
        for record in list(source.attendance_records):
            if record.session_id in keep_sessions:
                db.delete(record)
                continue
            record.program_profile = keep
            keep_sessions.add(record.session_id)
            moved += 1
    db.flush()
    return moved


def _delete_profiles(db: Session, sources: list[ProgramProfile]) -> list[int]:
    deleted = []
    for source in sources:
        deleted.append(source.id)
        # Billing left behind when merge_data is off goes with the profile.
        for assignment in list(source.billing_assignments):
            db.delete(assignment)
        db.flush()
        db.expire(source)
        db.delete(source)
    db.flush()
    return deleted


def _orphaned_person_ids(db: Session, keep_person_id: int, person_ids: set[int]) -> list[int]:
    orphaned = []
    for person_id in sorted(person_ids - {keep_person_id}):
        person = db.query(Person).filter(Person.id == person_id).first()
        if person is None:
            continue
        db.expire(person)
        remaining = db.query(ProgramProfile.id).filter(ProgramProfile.person_id == person_id).count()
        if remaining or person.teacher is not None:
            continue
        orphaned.append(person_id)
    return orphaned


def _reactivate(link) -> None:
    link.status = ACTIVE
    link.inactive_reason = None
    link.ended_at = None


def _reparent_guardian_links(db: Session, keep_person_id: int, merged_ids: list[int]) -> int:
    """Point guardian edges of merged people at the kept person, folding collisions."""
    merged = set(merged_ids)
    links = (
        db.query(GuardianRelationship)
        .filter(or_(GuardianRelationship.guardian_id.in_(sorted(merged)), GuardianRelationship.dependent_id.in_(sorted(merged))))
        .order_by(GuardianRelationship.id)
        .all()
    )
    moved = 0
    for link in links:
        guardian_id = keep_person_id if link.guardian_id in merged else link.guardian_id
        dependent_id = keep_person_id if link.dependent_id in merged else link.dependent_id
        if guardian_id == dependent_id:
            # Both ends collapsed onto one person.
            db.delete(link)
            db.flush()
            continue
        existing = (
            db.query(GuardianRelationship)
            .filter(
                GuardianRelationship.guardian_id == guardian_id,
                GuardianRelationship.dependent_id == dependent_id,
                GuardianRelationship.role == link.role,
                GuardianRelationship.id != link.id,
            )
            .first()
        )
        if existing is None:
            link.guardian_id = guardian_id
            link.dependent_id = dependent_id
            db.flush()
            db.expire(link)
            moved += 1
            continue
        if link.is_active:
            if not existing.is_active:
                _reactivate(existing)
            existing.is_primary_payer = existing.is_primary_payer or link.is_primary_payer
        db.delete(link)
        db.flush()
    return moved


def _reparent_sibling_links(db: Session, keep_person_id: int, merged_ids: list[int]) -> int:
    """Re-point sibling edges of merged people, keeping the lower id first."""
    merged = set(merged_ids)
    links = (
        db.query(SiblingRelationship)
        .filter(or_(SiblingRelationship.person1_id.in_(sorted(merged)), SiblingRelationship.person2_id.in_(sorted(merged))))
        .order_by(SiblingRelationship.id)
        .all()
    )
    moved = 0
    for link in links:
        low, high = sibling_pair(
            keep_person_id if link.person1_id in merged else link.person1_id,
            keep_person_id if link.person2_id in merged else link.person2_id,
        )
        if low == high:
            db.delete(link)
            db.flush()
            continue
        existing = (
            db.query(SiblingRelationship)
            .filter(
                SiblingRelationship.person1_id == low,
                SiblingRelationship.person2_id == high,
                SiblingRelationship.id != link.id,
            )
            .first()
        )
        if existing is None:
            link.person1_id, link.person2_id = low, high
            db.flush()
            db.expire(link)
            moved += 1
            continue
        if link.is_active and not existing.is_active:
            _reactivate(existing)
        db.delete(link)
        db.flush()
    return moved


def _delete_persons(db: Session, person_ids: list[int]) -> list[int]:
    for person_id in person_ids:
        person = db.query(Person).filter(Person.id == person_id).one()
        db.expire(person)
        db.delete(person)
    db.flush()
    return list(person_ids)


def resolve_duplicates(db: Session, *, keep_id: int, delete_ids: list[int], merge_data: bool = False) -> dict:
    """Fold the ``delete_ids`` program profiles into ``keep_id``.

    All profiles must belong to the same program. With ``merge_data`` the kept
    person also receives missing contact points, the kept profile receives any
    missing scalar fields and billing assignments move across.
    """
    delete_ids = [pid for pid in dict.fromkeys(delete_ids) if pid != keep_id]
    if not delete_ids:
        raise ValidationError.single("delete_ids", "At least one duplicate profile is required")

    keep = db.query(ProgramProfile).filter(ProgramProfile.id == keep_id).first()
    if not keep:
        raise RecordNotFoundError("Program profile", keep_id)
    sources = db.query(ProgramProfile).filter(ProgramProfile.id.in_(delete_ids)).order_by(ProgramProfile.id).all()
    missing = set(delete_ids) - {p.id for p in sources}
    if missing:
        raise RecordNotFoundError("Program profile", sorted(missing))

    programs = {keep.program} | {p.program for p in sources}
    if len(programs) > 1:
        raise CrossProgramMergeError(programs)

    source_person_ids = {p.person_id for p in sources}
    result = {"keep_id": keep_id, "contact_points_copied": 0, "fields_filled": [], "billing_moved": 0}
    try:
        with transaction(db):
            if merge_data:
                source_persons = db.query(Person).filter(Person.id.in_(source_person_ids)).order_by(Person.id).all()
                result["contact_points_copied"] = _copy_contact_points(db, keep.person, source_persons)
                result["fields_filled"] = _backfill_profile_fields(keep, sources)
                result["billing_moved"] = _reparent_billing(db, keep, sources)
            result["enrollments_moved"] = _reparent_enrollments(db, keep, sources)
            _reparent_class_enrollment(db, keep, sources)
            result["attendance_moved"] = _reparent_attendance(db, keep, sources)
            result["deleted_profile_ids"] = _delete_profiles(db, sources)
            merged_ids = _orphaned_person_ids(db, keep.person_id, source_person_ids)
            result["guardian_links_moved"] = _reparent_guardian_links(db, keep.person_id, merged_ids)
            result["sibling_links_moved"] = _reparent_sibling_links(db, keep.person_id, merged_ids)
            result["deleted_person_ids"] = _delete_persons(db, merged_ids)
    except Exception:
        log_error(logger, "Duplicate merge failed", keep_id=keep_id, delete_ids=delete_ids)
        raise

    invalidate_attendance()
    invalidate_classes()
    logger.info("Duplicates resolved", extra={"context": result})
    return result
