from datetime import date

import pytest

from backend.app.core.errors import RecordNotFoundError, ValidationError
from backend.app.db.base import Base
from backend.app.db.session import SessionLocal, engine
from backend.app.services import person_service
from backend.app.services.sibling_detection import calculate_confidence_score, detect_potential_siblings


@pytest.fixture(autouse=True)
def setup_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db():
    session = SessionLocal()
    yield session
    session.close()


@pytest.mark.parametrize(
    "method,criteria,expected",
    [
        ("MANUAL", {}, 1.0),
        ("SHARED_GUARDIAN", {"shared_guardians": 1}, 0.9),
        ("SHARED_GUARDIAN", {"shared_guardians": 2}, 0.95),
        ("FAMILY_REFERENCE", {}, 0.85),
        ("CONTACT_MATCH", {"shared_contacts": 1}, 0.8),
        ("CONTACT_MATCH", {"shared_contacts": 3}, 0.95),
        ("NAME_MATCH", {}, 0.5),
        ("NAME_MATCH", {"age_gap_years": 2}, 0.7),
        ("NAME_MATCH", {"age_gap_years": 7}, 0.5),
    ],
)
def test_confidence_scores(method, criteria, expected):
    assert calculate_confidence_score(method, **criteria) == expected


def test_unknown_method_is_rejected(db):
    with pytest.raises(ValidationError):
        calculate_confidence_score("GUESS")

    a = person_service.create_person(db, name="A")
    b = person_service.create_person(db, name="B")
    with pytest.raises(ValidationError) as exc:
        person_service.link_siblings(db, a.id, b.id, method="GUESS")
    assert "method" in exc.value.errors


def test_detects_siblings_across_methods(db):
    parent = person_service.create_person(db, name="Hawa Ali")
    yusuf = person_service.create_person(db, name="Yusuf Ali", date_of_birth=date(2014, 1, 1), phone="555-200-3000")
    amina = person_service.create_person(db, name="Amina Ali", date_of_birth=date(2016, 1, 1))
    omar = person_service.create_person(db, name="Omar Farah")
    deqa = person_service.create_person(db, name="Deqa Noor", phone="5552003000")
    zahra = person_service.create_person(db, name="Zahra Ali", date_of_birth=date(2000, 1, 1))
    bilal = person_service.create_person(db, name="Bilal Ali")
    person_service.create_person(db, name="Ali")
    person_service.create_person(db, name="Stranger Smith")

    person_service.add_guardian(db, guardian_id=parent.id, dependent_id=yusuf.id)
    person_service.add_guardian(db, guardian_id=parent.id, dependent_id=amina.id)
    person_service.create_program_profile(db, person_id=yusuf.id, program="WEEKEND_SCHOOL", family_reference_id="F9")
    person_service.create_program_profile(db, person_id=omar.id, program="WEEKEND_SCHOOL", family_reference_id="F9")
    person_service.link_siblings(db, yusuf.id, bilal.id)
    person_service.unlink_siblings(db, yusuf.id, bilal.id, "Entered by mistake")

    suggestions = detect_potential_siblings(db, yusuf.id)

    assert [(s["person"].id, s["method"], s["confidence"]) for s in suggestions] == [
        (amina.id, "SHARED_GUARDIAN", 0.9),
        (omar.id, "FAMILY_REFERENCE", 0.85),
        (deqa.id, "CONTACT_MATCH", 0.8),
        (zahra.id, "NAME_MATCH", 0.5),
    ]
    assert suggestions[0]["reasons"] == ["Shared guardian: Hawa Ali", "Shared last name: Ali", "Similar age (2 years apart)"]
    assert suggestions[1]["reasons"] == ["Shared family reference: F9"]
    assert suggestions[2]["reasons"] == ["Shared phone: 5552003000"]
    assert suggestions[3]["reasons"] == ["Shared last name: Ali"]


def test_two_shared_guardians_raise_confidence(db):
    mother = person_service.create_person(db, name="Hawa")
    father = person_service.create_person(db, name="Abdi")
    first = person_service.create_person(db, name="First")
    second = person_service.create_person(db, name="Second")
    for guardian in (mother, father):
        for child in (first, second):
            person_service.add_guardian(db, guardian_id=guardian.id, dependent_id=child.id)

    [suggestion] = detect_potential_siblings(db, first.id)
    assert suggestion["person"].id == second.id
    assert suggestion["confidence"] == 0.95


def test_inactive_guardian_links_are_ignored(db):
    parent = person_service.create_person(db, name="Hawa")
    first = person_service.create_person(db, name="First")
    second = person_service.create_person(db, name="Second")
    person_service.add_guardian(db, guardian_id=parent.id, dependent_id=first.id)
    link = person_service.add_guardian(db, guardian_id=parent.id, dependent_id=second.id)
    person_service.deactivate_guardian(db, link.id, "Custody changed")

    assert detect_potential_siblings(db, first.id) == []


def test_detection_for_missing_person(db):
    with pytest.raises(RecordNotFoundError):
        detect_potential_siblings(db, 999)
