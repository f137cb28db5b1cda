"""Partition program profiles into families for the family views."""

from collections import defaultdict
from datetime import UTC, datetime

from sqlalchemy.orm import Session, selectinload

from backend.app.core.errors import RecordNotFoundError
from backend.app.core.time import as_utc
from backend.app.models.contact_point import EMAIL, PHONE_TYPES
from backend.app.models.guardian_relationship import ACTIVE, GuardianRelationship
from backend.app.models.person import Person
from backend.app.models.program_profile import ProgramProfile
from backend.app.services.contact_normalization import normalize_email

GUARDIAN_FIELDS = ("name", "email", "phone")
_EPOCH = datetime.min.replace(tzinfo=UTC)


def family_key(row: dict) -> str:
    """family_reference_id, then guardian 1 email, then the row's own profile id."""
    if row.get("family_reference_id"):
        return row["family_reference_id"]
    email = normalize_email(row.get("guardian1_email"))
    if email:
        return email
    return f"profile-{row['profile_id']}"


def _set_if_absent(target: dict, key: str, value) -> None:
    if target.get(key) is None and value is not None:
        target[key] = value


def _child_entry(row: dict) -> dict:
    return {
        "profile_id": row["profile_id"],
        "name": row.get("child_name"),
        "date_of_birth": row.get("date_of_birth"),
        "grade_level": row.get("grade_level"),
        "shift": row.get("shift"),
        "status": row.get("status"),
    }


def group_families(rows: list[dict]) -> list[dict]:
    """Group flat profile rows into families, newest registration first.

    Guardian 1 comes from the first row seen for a family. Guardian 2 fields
    are filled field by field from the first row that has a value for them.
    """
    families: dict[str, dict] = {}
    for row in rows:
        key = family_key(row)
        family = families.get(key)
        if family is None:
            family = {
                "family_key": key,
                "family_reference_id": row.get("family_reference_id"),
                "guardian1": {field: row.get(f"guardian1_{field}") for field in GUARDIAN_FIELDS},
                "guardian2": {field: None for field in GUARDIAN_FIELDS},
                "children": [],
                "registered_at": None,
            }
            families[key] = family

        for field in GUARDIAN_FIELDS:
            _set_if_absent(family["guardian2"], field, row.get(f"guardian2_{field}"))
        family["children"].append(_child_entry(row))

        created_at = row.get("created_at")
        if created_at is not None:
            created_at = as_utc(created_at)
            if family["registered_at"] is None or created_at > family["registered_at"]:
                family["registered_at"] = created_at

    return sorted(
        families.values(),
        key=lambda f: f["registered_at"] or _EPOCH,
        reverse=True,
    )


def _primary_contact(person: Person, types: tuple[str, ...]) -> str | None:
    active = [cp for cp in person.contact_points if cp.is_active and cp.type in types]
    active.sort(key=lambda cp: (not cp.is_primary, cp.id))
    return active[0].value if active else None


def _guardian_fields(prefix: str, guardian: Person | None) -> dict:
    if guardian is None:
        return {f"{prefix}_{field}": None for field in GUARDIAN_FIELDS}
    return {
        f"{prefix}_name": guardian.name,
        f"{prefix}_email": _primary_contact(guardian, (EMAIL,)),
        f"{prefix}_phone": _primary_contact(guardian, PHONE_TYPES),
    }


def _guardians_by_dependent(db: Session, person_ids: list[int]) -> dict[int, list[Person]]:
    if not person_ids:
        return {}
    links = (
        db.query(GuardianRelationship)
        .options(selectinload(GuardianRelationship.guardian).selectinload(Person.contact_points))
        .filter(GuardianRelationship.dependent_id.in_(person_ids), GuardianRelationship.status == ACTIVE)
        .order_by(GuardianRelationship.is_primary_payer.desc(), GuardianRelationship.id)
        .all()
    )
    guardians: dict[int, list[Person]] = defaultdict(list)
    for link in links:
        guardians[link.dependent_id].append(link.guardian)
    return guardians


def _profile_row(profile: ProgramProfile, guardians: list[Person]) -> dict:
    row = {
        "profile_id": profile.id,
        "family_reference_id": profile.family_reference_id,
        "child_name": profile.person.name,
        "date_of_birth": profile.person.date_of_birth,
        "grade_level": profile.grade_level,
        "shift": profile.shift,
        "status": profile.status,
        "created_at": profile.created_at,
    }
    row.update(_guardian_fields("guardian1", guardians[0] if guardians else None))
    row.update(_guardian_fields("guardian2", guardians[1] if len(guardians) > 1 else None))
    return row


def get_family_rows(db: Session, program: str) -> list[dict]:
    profiles = (
        db.query(ProgramProfile)
        .options(selectinload(ProgramProfile.person))
        .filter(ProgramProfile.program == program)
        .order_by(ProgramProfile.created_at, ProgramProfile.id)
        .all()
    )
    guardians = _guardians_by_dependent(db, [p.person_id for p in profiles])
    return [_profile_row(p, guardians.get(p.person_id, [])) for p in profiles]


def get_families(db: Session, program: str) -> list[dict]:
    return group_families(get_family_rows(db, program))


def get_family_members(db: Session, family_reference_id: str) -> list[dict]:
    profiles = (
        db.query(ProgramProfile)
        .join(Person, Person.id == ProgramProfile.person_id)
        .filter(ProgramProfile.family_reference_id == family_reference_id)
        .order_by(Person.name, ProgramProfile.id)
        .all()
    )
    if not profiles:
        raise RecordNotFoundError("Family", family_reference_id)
    guardians = _guardians_by_dependent(db, [p.person_id for p in profiles])
    return [
        dict(_child_entry(_profile_row(p, guardians.get(p.person_id, []))), program=p.program)
        for p in profiles
    ]
