from datetime import date, datetime, timedelta
from decimal import Decimal

import pytest

from backend.app.core.errors import CrossProgramMergeError, RecordNotFoundError, ValidationError
from backend.app.db.base import Base
from backend.app.db.session import SessionLocal, engine
from backend.app.models.attendance_record import AttendanceRecord
from backend.app.models.attendance_session import AttendanceSession
from backend.app.models.billing_assignment import BillingAssignment
from backend.app.models.class_enrollment import ClassEnrollment
from backend.app.models.contact_point import ContactPoint
from backend.app.models.enrollment import Enrollment
from backend.app.models.guardian_relationship import GuardianRelationship
from backend.app.models.person import Person
from backend.app.models.program_profile import ProgramProfile
from backend.app.models.school_class import SchoolClass
from backend.app.models.sibling_relationship import SiblingRelationship
from backend.app.models.teacher import Teacher
from backend.app.services import duplicate_resolution, person_service
from backend.app.services.duplicate_resolution import find_duplicate_persons, resolve_duplicates

NOW = datetime(2024, 6, 1, 12, 0)


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


def make_person(db, name, updated_at, **contacts):
    person = person_service.create_person(db, name=name, **contacts)
    person.updated_at = updated_at
    db.commit()
    return person


def make_profile(db, person, program="WEEKEND_SCHOOL", **fields):
    return person_service.create_program_profile(db, person_id=person.id, program=program, **fields)


@pytest.fixture
def pair(db):
    older = make_person(db, "Amina Old", NOW - timedelta(days=90), phone="555-111-2222", email="amina@example.com")
    newer = make_person(db, "Amina", NOW - timedelta(days=5), phone="(555) 111 2222")
    old_profile = make_profile(db, older, grade_level="3", shift="MORNING", family_reference_id="F1")
    new_profile = make_profile(db, newer, school_name="Lincoln")
    return older, newer, old_profile, new_profile


def test_find_duplicates_clusters_by_phone(db, pair):
    older, newer, old_profile, new_profile = pair
    make_person(db, "Unrelated", NOW, phone="5559998888")

    clusters = find_duplicate_persons(db, now=NOW)
    assert len(clusters) == 1
    cluster = clusters[0]
    assert cluster["phone"] == "5551112222"
    assert cluster["size"] == 2
    assert cluster["keep"]["id"] == newer.id
    assert [p["id"] for p in cluster["delete_candidates"]] == [older.id]
    assert cluster["keep"]["program_profiles"] == [{"id": new_profile.id, "program": "WEEKEND_SCHOOL"}]
    assert cluster["has_recent_activity"] is True


def test_recent_activity_flag_uses_thirty_day_window(db, pair):
    clusters = find_duplicate_persons(db, now=NOW + timedelta(days=60))
    assert clusters[0]["has_recent_activity"] is False


def add_history(db, profile):
    school_class = SchoolClass(name="Level 1", shift="MORNING")
    teacher_person = person_service.create_person(db, name="Teacher")
    teacher = Teacher(person_id=teacher_person.id)
    db.add_all([school_class, teacher])
    db.flush()
    session = AttendanceSession(date=date(2024, 5, 4), class_id=school_class.id, teacher_id=teacher.id)
    db.add(session)
    db.flush()
    db.add_all(
        [
            BillingAssignment(program_profile_id=profile.id, amount=Decimal("80.00")),
            Enrollment(program_profile_id=profile.id, status="ENROLLED"),
            ClassEnrollment(class_id=school_class.id, program_profile_id=profile.id),
            AttendanceRecord(session_id=session.id, program_profile_id=profile.id, status="PRESENT"),
        ]
    )
    db.commit()


def test_merge_moves_history_and_removes_orphans(db, pair):
    older, newer, old_profile, new_profile = pair
    add_history(db, old_profile)
    older_id, keep_id, old_profile_id = older.id, new_profile.id, old_profile.id

    result = resolve_duplicates(db, keep_id=keep_id, delete_ids=[old_profile_id, old_profile_id], merge_data=True)

    assert result["deleted_profile_ids"] == [old_profile_id]
    assert result["deleted_person_ids"] == [older_id]
    assert result["contact_points_copied"] == 1
    assert result["fields_filled"] == ["grade_level", "shift", "family_reference_id"]
    assert result["billing_moved"] == 1
    assert result["enrollments_moved"] == 1
    assert result["attendance_moved"] == 1

    db.expire_all()
    keep = db.query(ProgramProfile).filter(ProgramProfile.id == keep_id).one()
    assert keep.grade_level == "3"
    assert keep.school_name == "Lincoln"
    assert len(keep.billing_assignments) == 1
    assert len(keep.enrollments) == 1
    assert keep.class_enrollment is not None
    assert len(keep.attendance_records) == 1
    assert sorted(cp.value for cp in keep.person.contact_points) == ["5551112222", "amina@example.com"]
    assert db.query(Person).filter(Person.id == older_id).first() is None
    assert db.query(ContactPoint).filter(ContactPoint.person_id == older_id).count() == 0


def test_merge_without_data_keeps_profile_fields(db, pair):
    older, newer, old_profile, new_profile = pair
    result = resolve_duplicates(db, keep_id=new_profile.id, delete_ids=[old_profile.id])
    assert result["fields_filled"] == []
    assert result["contact_points_copied"] == 0
    db.expire_all()
    keep = db.query(ProgramProfile).filter(ProgramProfile.id == new_profile.id).one()
    assert keep.grade_level is None
    assert [cp.value for cp in keep.person.contact_points] == ["5551112222"]


def test_second_active_enrollment_is_closed_on_merge(db, pair):
    older, newer, old_profile, new_profile = pair
    db.add_all(
        [
            Enrollment(program_profile_id=old_profile.id, status="ENROLLED"),
            Enrollment(program_profile_id=new_profile.id, status="ENROLLED"),
        ]
    )
    db.commit()

    resolve_duplicates(db, keep_id=new_profile.id, delete_ids=[old_profile.id])

    db.expire_all()
    enrollments = db.query(Enrollment).filter(Enrollment.program_profile_id == new_profile.id).all()
    active = [e for e in enrollments if e.end_date is None and e.status != "WITHDRAWN"]
    assert len(enrollments) == 2
    assert len(active) == 1
    closed = next(e for e in enrollments if e not in active)
    assert closed.reason == "Duplicate resolved"


def test_person_with_other_profiles_survives(db, pair):
    older, newer, old_profile, new_profile = pair
    make_profile(db, older, program="K12_PROGRAM")
    result = resolve_duplicates(db, keep_id=new_profile.id, delete_ids=[old_profile.id])
    assert result["deleted_person_ids"] == []
    assert db.query(Person).filter(Person.id == older.id).first() is not None


def test_cross_program_merge_rejected_before_writes(db, pair):
    older, newer, old_profile, new_profile = pair
    other = make_person(db, "Other", NOW, phone="5551112222")
    k12 = make_profile(db, other, program="K12_PROGRAM")

    with pytest.raises(CrossProgramMergeError):
        resolve_duplicates(db, keep_id=new_profile.id, delete_ids=[old_profile.id, k12.id], merge_data=True)

    assert db.query(ProgramProfile).count() == 3
    assert db.query(Person).count() == 3


def test_merge_rolls_back_everything_on_failure(db, pair, monkeypatch):
    older, newer, old_profile, new_profile = pair
    keep_id, old_profile_id, newer_id = new_profile.id, old_profile.id, newer.id

    def explode(*args, **kwargs):
        raise RuntimeError("boom")

    monkeypatch.setattr(duplicate_resolution, "_reparent_enrollments", explode)
    with pytest.raises(RuntimeError):
        resolve_duplicates(db, keep_id=keep_id, delete_ids=[old_profile_id], merge_data=True)

    check = SessionLocal()
    try:
        assert check.query(ContactPoint).filter(ContactPoint.person_id == newer_id).count() == 1
        assert check.query(ProgramProfile).filter(ProgramProfile.id == keep_id).one().grade_level is None
        assert check.query(ProgramProfile).filter(ProgramProfile.id == old_profile_id).first() is not None
    finally:
        check.close()


def test_merge_input_errors(db, pair):
    older, newer, old_profile, new_profile = pair
    with pytest.raises(ValidationError):
        resolve_duplicates(db, keep_id=new_profile.id, delete_ids=[new_profile.id])
    with pytest.raises(RecordNotFoundError):
        resolve_duplicates(db, keep_id=new_profile.id, delete_ids=[999])
    with pytest.raises(RecordNotFoundError):
        resolve_duplicates(db, keep_id=999, delete_ids=[old_profile.id])


def test_merge_moves_guardian_and_sibling_links_to_kept_person(db, pair):
    older, newer, old_profile, new_profile = pair
    parent = person_service.create_person(db, name="Parent")
    little = person_service.create_person(db, name="Little")
    brother = person_service.create_person(db, name="Brother")
    person_service.add_guardian(db, guardian_id=parent.id, dependent_id=older.id, is_primary_payer=True)
    person_service.add_guardian(db, guardian_id=older.id, dependent_id=little.id, role="GUARDIAN")
    person_service.link_siblings(db, older.id, brother.id)
    older_id = older.id

    result = resolve_duplicates(db, keep_id=new_profile.id, delete_ids=[old_profile.id], merge_data=True)

    assert result["deleted_person_ids"] == [older_id]
    assert result["guardian_links_moved"] == 2
    assert result["sibling_links_moved"] == 1
    assert [p.name for p in person_service.get_guardians(db, newer.id)] == ["Parent"]
    assert [p.name for p in person_service.get_dependents(db, newer.id)] == ["Little"]
    assert [p.name for p in person_service.get_siblings(db, newer.id)] == ["Brother"]

    link = db.query(SiblingRelationship).one()
    assert (link.person1_id, link.person2_id) == (min(newer.id, brother.id), max(newer.id, brother.id))
    payer = db.query(GuardianRelationship).filter(GuardianRelationship.guardian_id == parent.id).one()
    assert payer.dependent_id == newer.id
    assert payer.is_primary_payer is True


def test_merge_folds_colliding_links_and_drops_self_pairs(db, pair):
    older, newer, old_profile, new_profile = pair
    parent = person_service.create_person(db, name="Parent")
    existing = person_service.add_guardian(db, guardian_id=parent.id, dependent_id=newer.id)
    person_service.deactivate_guardian(db, existing.id, "Moved away")
    person_service.add_guardian(db, guardian_id=parent.id, dependent_id=older.id)
    person_service.link_siblings(db, older.id, newer.id)
    existing_id = existing.id

    result = resolve_duplicates(db, keep_id=new_profile.id, delete_ids=[old_profile.id])

    assert result["guardian_links_moved"] == 0
    links = db.query(GuardianRelationship).all()
    assert [(link.id, link.dependent_id, link.status) for link in links] == [(existing_id, newer.id, "ACTIVE")]
    assert links[0].inactive_reason is None
    assert db.query(SiblingRelationship).count() == 0
    assert [p.name for p in person_service.get_guardians(db, newer.id)] == ["Parent"]


def test_person_kept_for_other_program_keeps_its_links(db, pair):
    older, newer, old_profile, new_profile = pair
    make_profile(db, older, program="K12_PROGRAM")
    parent = person_service.create_person(db, name="Parent")
    person_service.add_guardian(db, guardian_id=parent.id, dependent_id=older.id)

    result = resolve_duplicates(db, keep_id=new_profile.id, delete_ids=[old_profile.id])

    assert result["deleted_person_ids"] == []
    assert result["guardian_links_moved"] == 0
    assert [p.name for p in person_service.get_guardians(db, older.id)] == ["Parent"]
