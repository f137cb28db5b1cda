"""Person graph: contact lookup, guardians, dependents and siblings."""

from datetime import date

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from backend.app.core.app_logger import get_logger, log_error
from backend.app.core.errors import RecordNotFoundError, ValidationError, translate_integrity_error
from backend.app.core.time import utc_now
from backend.app.models.contact_point import EMAIL, PHONE, PHONE_TYPES, ContactPoint
from backend.app.models.enrollment import WITHDRAWN, Enrollment
from backend.app.models.guardian_relationship import ACTIVE, INACTIVE, GuardianRelationship
from backend.app.models.person import Person
from backend.app.models.program_profile import ProgramProfile
from backend.app.models.sibling_relationship import DETECTION_METHODS, SiblingRelationship
from backend.app.services.contact_normalization import normalize_email, normalize_phone

logger = get_logger("person")


def _commit(db: Session, **context) -> None:
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        domain_error = translate_integrity_error(exc, **context)
        if domain_error is None:
            raise
        raise domain_error from exc


def get_person(db: Session, person_id: int) -> Person:
    person = db.query(Person).filter(Person.id == person_id).first()
    if not person:
        raise RecordNotFoundError("Person", person_id)
    return person


def get_program_profile(db: Session, profile_id: int) -> ProgramProfile:
    profile = db.query(ProgramProfile).filter(ProgramProfile.id == profile_id).first()
    if not profile:
        raise RecordNotFoundError("Program profile", profile_id)
    return profile


def create_person(
    db: Session,
    *,
    name: str,
    email: str | None = None,
    phone: str | None = None,
    date_of_birth: date | None = None,
    commit: bool = True,
) -> Person:
    name = (name or "").strip()
    if not name:
        raise ValidationError.single("name", "Name is required")

    person = Person(name=name, date_of_birth=date_of_birth)
    if email is not None:
        normalized = normalize_email(email)
        if normalized is None:
            raise ValidationError.single("email", "Invalid email address")
        person.contact_points.append(ContactPoint(type=EMAIL, value=normalized, is_primary=True))
    if phone is not None:
        normalized = normalize_phone(phone)
        if normalized is None:
            raise ValidationError.single("phone", "Invalid phone number - cannot be normalized")
        person.contact_points.append(ContactPoint(type=PHONE, value=normalized, is_primary=True))

    db.add(person)
    if commit:
        _commit(db, name=name)
        db.refresh(person)
    else:
        db.flush()
    return person


def create_program_profile(
    db: Session,
    *,
    person_id: int,
    program: str,
    status: str = "REGISTERED",
    grade_level: str | None = None,
    school_name: str | None = None,
    shift: str | None = None,
    family_reference_id: str | None = None,
    commit: bool = True,
) -> ProgramProfile:
    get_person(db, person_id)
    profile = ProgramProfile(
        person_id=person_id,
        program=program,
        status=status,
        grade_level=grade_level,
        school_name=school_name,
        shift=shift,
        family_reference_id=family_reference_id,
    )
    db.add(profile)
    if commit:
        _commit(db, person_id=person_id, program=program)
        db.refresh(profile)
    else:
        db.flush()
    return profile


def find_person_by_contact(db: Session, email: str | None = None, phone: str | None = None) -> Person | None:
    """Return the first person with an active contact matching either value."""
    conditions = []
    normalized_email = normalize_email(email)
    if normalized_email:
        conditions.append((ContactPoint.type == EMAIL) & (ContactPoint.value == normalized_email))
    normalized_phone = normalize_phone(phone)
    if normalized_phone:
        conditions.append(ContactPoint.type.in_(PHONE_TYPES) & (ContactPoint.value == normalized_phone))
    if not conditions:
        return None

    return (
        db.query(Person)
        .join(ContactPoint, ContactPoint.person_id == Person.id)
        .filter(ContactPoint.is_active.is_(True), or_(*conditions))
        .order_by(Person.id)
        .first()
    )


def determine_duplicate_field(person: Person, email: str | None, phone: str | None) -> str:
    normalized_email = normalize_email(email)
    normalized_phone = normalize_phone(phone)
    active = [cp for cp in person.contact_points if cp.is_active]
    email_matches = bool(normalized_email) and any(
        cp.type == EMAIL and cp.value == normalized_email for cp in active
    )
    phone_matches = bool(normalized_phone) and any(
        cp.type in PHONE_TYPES and cp.value == normalized_phone for cp in active
    )
    if email_matches and phone_matches:
        return "both"
    if phone_matches:
        return "phone"
    return "email"


def check_duplicate(db: Session, *, program: str, email: str | None = None, phone: str | None = None) -> dict:
    """Report whether these contact details already belong to someone in ``program``."""
    result = {"is_duplicate": False, "duplicate_field": None, "person": None, "has_active_profile": False, "active_profile_id": None}
    if not email and not phone:
        return result

    try:
        person = find_person_by_contact(db, email=email, phone=phone)
        if person is None:
            return result

        active_profile = None
        for profile in person.program_profiles:
            if profile.program != program:
                continue
            has_active_enrollment = (
                db.query(Enrollment.id)
                .filter(
                    Enrollment.program_profile_id == profile.id,
                    Enrollment.end_date.is_(None),
                    Enrollment.status != WITHDRAWN,
                )
                .first()
                is not None
            )
            if has_active_enrollment:
                active_profile = profile
                break
    except Exception:
        log_error(logger, "Duplicate check failed", program=program, email=email, phone=phone)
        raise

    result.update(
        is_duplicate=True,
        duplicate_field=determine_duplicate_field(person, email, phone),
        person=person,
        has_active_profile=active_profile is not None,
        active_profile_id=active_profile.id if active_profile else None,
    )
    logger.info(
        "Duplicate check complete",
        extra={"context": {"person_id": person.id, "duplicate_field": result["duplicate_field"]}},
    )
    return result


def get_guardians(db: Session, person_id: int) -> list[Person]:
    return (
        db.query(Person)
        .join(GuardianRelationship, GuardianRelationship.guardian_id == Person.id)
        .filter(GuardianRelationship.dependent_id == person_id, GuardianRelationship.status == ACTIVE)
        .order_by(GuardianRelationship.is_primary_payer.desc(), GuardianRelationship.id)
        .all()
    )


def get_dependents(db: Session, person_id: int) -> list[Person]:
    return (
        db.query(Person)
        .join(GuardianRelationship, GuardianRelationship.dependent_id == Person.id)
        .filter(GuardianRelationship.guardian_id == person_id, GuardianRelationship.status == ACTIVE)
        .order_by(Person.name)
        .all()
    )


def add_guardian(
    db: Session,
    *,
    guardian_id: int,
    dependent_id: int,
    role: str = "PARENT",
    is_primary_payer: bool = False,
) -> GuardianRelationship:
    if guardian_id == dependent_id:
        raise ValidationError.single("guardian_id", "A person cannot be their own guardian")
    get_person(db, guardian_id)
    get_person(db, dependent_id)

    link = (
        db.query(GuardianRelationship)
        .filter(
            GuardianRelationship.guardian_id == guardian_id,
            GuardianRelationship.dependent_id == dependent_id,
            GuardianRelationship.role == role,
        )
        .first()
    )
    if link is None:
        link = GuardianRelationship(guardian_id=guardian_id, dependent_id=dependent_id, role=role)
        db.add(link)
    link.status = ACTIVE
    link.inactive_reason = None
    link.ended_at = None
    link.is_primary_payer = is_primary_payer
    _commit(db, guardian_id=guardian_id, dependent_id=dependent_id)
    db.refresh(link)
    return link


def deactivate_guardian(db: Session, relationship_id: int, reason: str) -> GuardianRelationship:
    link = db.query(GuardianRelationship).filter(GuardianRelationship.id == relationship_id).first()
    if not link:
        raise RecordNotFoundError("Guardian relationship", relationship_id)
    if link.status == ACTIVE:
        link.status = INACTIVE
        link.inactive_reason = reason
        link.ended_at = utc_now()
        db.commit()
        db.refresh(link)
    return link


def sibling_pair(person_a_id: int, person_b_id: int) -> tuple[int, int]:
    """Canonical storage order for an undirected sibling edge."""
    return (person_a_id, person_b_id) if person_a_id < person_b_id else (person_b_id, person_a_id)


def link_siblings(db: Session, person_a_id: int, person_b_id: int, method: str = "MANUAL") -> SiblingRelationship:
    if person_a_id == person_b_id:
        raise ValidationError.single("person_b_id", "A person cannot be their own sibling")
    if method not in DETECTION_METHODS:
        raise ValidationError.single("method", f"Unknown detection method: {method}")
    get_person(db, person_a_id)
    get_person(db, person_b_id)

    low, high = sibling_pair(person_a_id, person_b_id)
    link = (
        db.query(SiblingRelationship)
        .filter(SiblingRelationship.person1_id == low, SiblingRelationship.person2_id == high)
        .first()
    )
    if link is None:
        link = SiblingRelationship(person1_id=low, person2_id=high, detection_method=method)
        db.add(link)
    link.status = ACTIVE
    link.inactive_reason = None
    link.ended_at = None
    _commit(db, person1_id=low, person2_id=high)
    db.refresh(link)
    return link


def unlink_siblings(db: Session, person_a_id: int, person_b_id: int, reason: str) -> SiblingRelationship:
    low, high = sibling_pair(person_a_id, person_b_id)
    link = (
        db.query(SiblingRelationship)
        .filter(SiblingRelationship.person1_id == low, SiblingRelationship.person2_id == high)
        .first()
    )
    if not link:
        raise RecordNotFoundError("Sibling relationship", f"{low}-{high}")
    if link.status == ACTIVE:
        link.status = INACTIVE
        link.inactive_reason = reason
        link.ended_at = utc_now()
        db.commit()
        db.refresh(link)
    return link


def get_siblings(db: Session, person_id: int) -> list[Person]:
    links = (
        db.query(SiblingRelationship)
        .filter(
            or_(SiblingRelationship.person1_id == person_id, SiblingRelationship.person2_id == person_id),
            SiblingRelationship.status == ACTIVE,
        )
        .all()
    )
    other_ids = [link.person2_id if link.person1_id == person_id else link.person1_id for link in links]
    if not other_ids:
        return []
    return db.query(Person).filter(Person.id.in_(other_ids)).order_by(Person.name).all()
