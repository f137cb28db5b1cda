"""Suggest likely siblings for a person from shared guardians, families, contacts and surnames.

Suggestions are never written: staff confirm one by linking the pair with the
suggested method through ``person_service.link_siblings``.
"""

from collections import defaultdict

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from backend.app.core.app_logger import get_logger
from backend.app.core.errors import ValidationError
from backend.app.models.contact_point import EMAIL, PHONE_TYPES, ContactPoint
from backend.app.models.guardian_relationship import ACTIVE, GuardianRelationship
from backend.app.models.person import Person
from backend.app.models.program_profile import ProgramProfile
from backend.app.models.sibling_relationship import (
    CONTACT_MATCH,
    DETECTION_METHODS,
    FAMILY_REFERENCE,
    MANUAL,
    NAME_MATCH,
    SHARED_GUARDIAN,
    SiblingRelationship,
)
from backend.app.services.person_service import get_person

logger = get_logger("siblings")

SIMILAR_AGE_YEARS = 5


def calculate_confidence_score(
    method: str,
    *,
    shared_guardians: int = 0,
    shared_contacts: int = 0,
    age_gap_years: float | None = None,
) -> float:
    """Score a suggested sibling pair between 0 and 1 for one detection method."""
    if method not in DETECTION_METHODS:
        raise ValidationError.single("method", f"Unknown detection method: {method}")

    if method == MANUAL:
        score = 1.0
    elif method == SHARED_GUARDIAN:
        score = 0.95 if shared_guardians > 1 else 0.9
    elif method == FAMILY_REFERENCE:
        score = 0.85
    elif method == CONTACT_MATCH:
        score = min(0.7 + 0.1 * shared_contacts, 0.95)
    else:
        score = 0.5
        if age_gap_years is not None and age_gap_years < SIMILAR_AGE_YEARS:
            score += 0.2
        score = min(score, 0.9)
    return round(min(max(score, 0.0), 1.0), 2)


def _last_name(name: str) -> str | None:
    parts = name.split()
    return parts[-1].lower() if len(parts) >= 2 else None


def _contact_kind(contact_type: str) -> str:
    return "phone" if contact_type in PHONE_TYPES else contact_type.lower()


def _excluded_ids(db: Session, person_id: int) -> set[int]:
    """The person, anyone already paired with them and their own guardians or dependents."""
    excluded = {person_id}
    for low, high in db.query(SiblingRelationship.person1_id, SiblingRelationship.person2_id).filter(
        or_(SiblingRelationship.person1_id == person_id, SiblingRelationship.person2_id == person_id)
    ):
        excluded.update((low, high))
    for guardian_id, dependent_id in db.query(GuardianRelationship.guardian_id, GuardianRelationship.dependent_id).filter(
        GuardianRelationship.status == ACTIVE,
        or_(GuardianRelationship.guardian_id == person_id, GuardianRelationship.dependent_id == person_id),
    ):
        excluded.update((guardian_id, dependent_id))
    return excluded


def detect_potential_siblings(db: Session, person_id: int) -> list[dict]:
    """Return unlinked people who look like siblings of ``person_id``, most confident first.

    Each suggestion carries the strongest matching method, its confidence and
    every reason found across methods.
    """
    person = get_person(db, person_id)
    excluded = _excluded_ids(db, person_id)

    reasons: dict[int, list[str]] = defaultdict(list)
    guardians_shared: dict[int, set[int]] = defaultdict(set)
    families_shared: dict[int, set[str]] = defaultdict(set)
    contacts_shared: dict[int, set[tuple[str, str]]] = defaultdict(set)
    surname_matches: set[int] = set()

    own_guardian_ids = [
        guardian_id
        for (guardian_id,) in db.query(GuardianRelationship.guardian_id).filter(
            GuardianRelationship.dependent_id == person_id, GuardianRelationship.status == ACTIVE
        )
    ]
    shared_guardian_rows = []
    if own_guardian_ids:
        shared_guardian_rows = (
            db.query(GuardianRelationship.dependent_id, Person.id, Person.name)
            .join(Person, Person.id == GuardianRelationship.guardian_id)
            .filter(GuardianRelationship.guardian_id.in_(own_guardian_ids), GuardianRelationship.status == ACTIVE)
            .order_by(GuardianRelationship.dependent_id, Person.id)
            .all()
        )
    for candidate_id, guardian_id, guardian_name in shared_guardian_rows:
        if candidate_id in excluded or guardian_id in guardians_shared[candidate_id]:
            continue
        guardians_shared[candidate_id].add(guardian_id)
        reasons[candidate_id].append(f"Shared guardian: {guardian_name}")

    own_references = {
        ref
        for (ref,) in db.query(ProgramProfile.family_reference_id).filter(
            ProgramProfile.person_id == person_id, ProgramProfile.family_reference_id.isnot(None)
        )
    }
    if own_references:
        rows = (
            db.query(ProgramProfile.person_id, ProgramProfile.family_reference_id)
            .filter(ProgramProfile.family_reference_id.in_(own_references))
            .order_by(ProgramProfile.person_id)
            .all()
        )
        for candidate_id, reference in rows:
            if candidate_id in excluded or reference in families_shared[candidate_id]:
                continue
            families_shared[candidate_id].add(reference)
            reasons[candidate_id].append(f"Shared family reference: {reference}")

    own_contacts = {(_contact_kind(cp.type), cp.value) for cp in person.contact_points if cp.is_active}
    if own_contacts:
        rows = (
            db.query(ContactPoint.person_id, ContactPoint.type, ContactPoint.value)
            .filter(
                ContactPoint.value.in_(sorted({value for _, value in own_contacts})),
                ContactPoint.is_active.is_(True),
                ContactPoint.type.in_((EMAIL, *PHONE_TYPES)),
            )
            .order_by(ContactPoint.person_id, ContactPoint.id)
            .all()
        )
        for candidate_id, contact_type, value in rows:
            key = (_contact_kind(contact_type), value)
            if candidate_id in excluded or key not in own_contacts or key in contacts_shared[candidate_id]:
                continue
            contacts_shared[candidate_id].add(key)
            reasons[candidate_id].append(f"Shared {key[0]}: {value}")

    surname = _last_name(person.name)
    if surname:
        rows = db.query(Person.id, Person.name).filter(func.lower(Person.name).like(f"% {surname}")).all()
        for candidate_id, name in rows:
            if candidate_id in excluded or _last_name(name) != surname:
                continue
            surname_matches.add(candidate_id)

    candidate_ids = set(reasons) | surname_matches
    if not candidate_ids:
        return []
    candidates = {p.id: p for p in db.query(Person).filter(Person.id.in_(candidate_ids))}

    suggestions = []
    for candidate_id, candidate in candidates.items():
        age_gap = None
        if person.date_of_birth and candidate.date_of_birth:
            age_gap = abs((person.date_of_birth - candidate.date_of_birth).days) / 365
        scored = []
        if guardians_shared[candidate_id]:
            scored.append((calculate_confidence_score(SHARED_GUARDIAN, shared_guardians=len(guardians_shared[candidate_id])), SHARED_GUARDIAN))
        if families_shared[candidate_id]:
            scored.append((calculate_confidence_score(FAMILY_REFERENCE), FAMILY_REFERENCE))
        if contacts_shared[candidate_id]:
            scored.append((calculate_confidence_score(CONTACT_MATCH, shared_contacts=len(contacts_shared[candidate_id])), CONTACT_MATCH))
        if candidate_id in surname_matches:
            scored.append((calculate_confidence_score(NAME_MATCH, age_gap_years=age_gap), NAME_MATCH))
            reasons[candidate_id].append(f"Shared last name: {surname.title()}")
            if age_gap is not None and age_gap < SIMILAR_AGE_YEARS:
                reasons[candidate_id].append(f"Similar age ({round(age_gap)} years apart)")

        confidence, method = max(scored)
        suggestions.append({"person": candidate, "method": method, "confidence": confidence, "reasons": reasons[candidate_id]})

    suggestions.sort(key=lambda s: (-s["confidence"], s["person"].name, s["person"].id))
    logger.info(
        "Sibling suggestions computed",
        extra={"context": {"person_id": person_id, "count": len(suggestions)}},
    )
    return suggestions
