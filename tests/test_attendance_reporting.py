from datetime import date

import pytest

from backend.app.core.cache import invalidate_attendance, read_cache
from backend.app.core.errors import RecordNotFoundError
from backend.app.db.base import Base
from backend.app.db.session import SessionLocal, engine
from backend.app.models.attendance_record import AttendanceRecord
from backend.app.models.attendance_session import AttendanceSession
from backend.app.services import attendance_reporting as reporting
from backend.app.services import class_enrollment_service as classes
from backend.app.services import person_service
from backend.app.services.attendance_filters import AttendanceFilters

TODAY = date(2024, 3, 20)


@pytest.fixture(autouse=True)
def setup_db():
    read_cache.clear()
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)
    read_cache.clear()


@pytest.fixture
def db():
    session = SessionLocal()
    yield session
    session.close()


def make_profile(db, name, family=None):
    person = person_service.create_person(db, name=name, date_of_birth=date(2015, 1, 1))
    return person_service.create_program_profile(
        db, person_id=person.id, program="WEEKEND_SCHOOL", status="ENROLLED", family_reference_id=family
    )


def record_session(db, class_id, teacher_id, day, marks):
    session = AttendanceSession(class_id=class_id, teacher_id=teacher_id, date=day)
    db.add(session)
    db.flush()
    for profile, status in marks:
        db.add(AttendanceRecord(session_id=session.id, program_profile_id=profile.id, status=status))
    db.commit()
    return session


@pytest.fixture
def school(db):
    morning = classes.create_class(db, name="Level 1", shift="MORNING")
    afternoon = classes.create_class(db, name="Level 2", shift="AFTERNOON")
    teacher = classes.create_teacher(db, person_id=person_service.create_person(db, name="Ustad Ali").id)
    classes.assign_teacher(db, morning.id, teacher.id)
    classes.assign_teacher(db, afternoon.id, teacher.id)

    yusuf, amina = make_profile(db, "Yusuf", "F2"), make_profile(db, "Amina", "F2")
    bilal, deqa, cali = make_profile(db, "Bilal"), make_profile(db, "Deqa"), make_profile(db, "Cali")
    omar, hodan = make_profile(db, "Omar", "F1"), make_profile(db, "Hodan")
    classes.bulk_enroll(db, class_id=morning.id, profile_ids=[p.id for p in (yusuf, amina, bilal, deqa, cali)])
    classes.bulk_enroll(db, class_id=afternoon.id, profile_ids=[omar.id, hodan.id])

    record_session(db, morning.id, teacher.id, date(2024, 2, 10), [(yusuf, "PRESENT"), (amina, "ABSENT")])
    record_session(
        db,
        morning.id,
        teacher.id,
        date(2024, 3, 2),
        [(yusuf, "PRESENT"), (amina, "PRESENT"), (bilal, "PRESENT"), (deqa, "PRESENT"), (cali, "ABSENT")],
    )
    record_session(
        db,
        morning.id,
        teacher.id,
        date(2024, 3, 9),
        [(yusuf, "PRESENT"), (amina, "PRESENT"), (bilal, "PRESENT"), (deqa, "LATE"), (cali, "PRESENT")],
    )
    record_session(db, afternoon.id, teacher.id, date(2024, 3, 3), [(omar, "PRESENT"), (hodan, "EXCUSED")])
    return {"morning": morning, "afternoon": afternoon, "teacher": teacher, "yusuf": yusuf, "deqa": deqa}


def test_overall_and_filtered_stats(db, school):
    overall = reporting.get_attendance_stats(db)
    assert overall["total_sessions"] == 4
    assert overall["total"] == 14
    assert overall["present"] == 10
    assert overall["attendance_rate"] == 78.6

    morning = reporting.get_attendance_stats(db, AttendanceFilters(shift="MORNING"))
    assert morning["total_sessions"] == 3
    assert morning["attendance_rate"] == 83.3

    march = reporting.get_attendance_stats(
        db, AttendanceFilters(class_id=school["morning"].id, date_from=date(2024, 3, 1))
    )
    assert march["total_sessions"] == 2
    assert march["total"] == 10
    assert march["attendance_rate"] == 90.0


def test_stats_for_empty_scope_are_zero(db, school):
    empty = reporting.get_attendance_stats(db, AttendanceFilters(date_from=date(2030, 1, 1)))
    assert empty["total_sessions"] == 0
    assert empty["total"] == 0
    assert empty["attendance_rate"] == 0.0


def test_cached_stats_refresh_after_invalidation(db, school):
    first = reporting.get_attendance_stats_cached(db)
    record_session(db, school["afternoon"].id, school["teacher"].id, date(2024, 3, 10), [])
    assert reporting.get_attendance_stats_cached(db)["total_sessions"] == first["total_sessions"]

    invalidate_attendance()
    assert reporting.get_attendance_stats_cached(db)["total_sessions"] == first["total_sessions"] + 1


def test_changing_class_shift_refreshes_shift_filtered_stats(db, school):
    afternoon = AttendanceFilters(shift="AFTERNOON")
    assert reporting.get_attendance_stats_cached(db, afternoon)["total_sessions"] == 1

    classes.update_class(db, school["morning"].id, shift="AFTERNOON")

    refreshed = reporting.get_attendance_stats_cached(db, afternoon)
    assert refreshed["total_sessions"] == 4
    assert refreshed == reporting.get_attendance_stats(db, afternoon)


def test_student_stats_trend_and_comparison(db, school):
    deqa = reporting.get_student_attendance_stats(db, school["deqa"].id)
    assert deqa["total"] == 2
    assert deqa["attendance_rate"] == 100.0
    assert deqa["recent_records"] == [
        {"status": "LATE", "date": date(2024, 3, 9)},
        {"status": "PRESENT", "date": date(2024, 3, 2)},
    ]

    trend = reporting.get_student_weekly_trend(db, school["yusuf"].id, today=TODAY)
    assert [row["date"] for row in trend] == [date(2024, 2, 10), date(2024, 3, 2), date(2024, 3, 9)]
    short = reporting.get_student_weekly_trend(db, school["yusuf"].id, weeks_back=2, today=TODAY)
    assert [row["date"] for row in short] == [date(2024, 3, 9)]

    comparison = reporting.get_student_monthly_comparison(db, school["yusuf"].id, today=TODAY)
    assert comparison["current_rate"] == 100.0
    assert comparison["previous_rate"] == 100.0
    assert comparison["diff"] == 0.0

    no_history = reporting.get_student_monthly_comparison(db, school["deqa"].id, today=TODAY)
    assert no_history["diff"] is None

    with pytest.raises(RecordNotFoundError):
        reporting.get_student_attendance_stats(db, 999)


def test_class_comparisons(db, school):
    rows = reporting.get_class_comparisons(db, today=TODAY)
    assert [r["class_name"] for r in rows] == ["Level 1", "Level 2"]
    level1, level2 = rows
    assert (level1["current_rate"], level1["previous_rate"], level1["diff"]) == (90.0, 50.0, 40.0)
    assert (level2["current_rate"], level2["previous_rate"], level2["diff"]) == (50.0, None, None)

    afternoon_only = reporting.get_class_comparisons(db, AttendanceFilters(shift="AFTERNOON"), today=TODAY)
    assert [r["class_id"] for r in afternoon_only] == [school["afternoon"].id]


def test_teacher_students_sorted_by_family(db, school):
    students = reporting.get_students_by_teacher(db, school["teacher"].id, today=TODAY)
    assert [s["name"] for s in students] == ["Omar", "Amina", "Yusuf", "Bilal", "Cali", "Deqa", "Hodan"]
    assert students[0]["class_name"] == "Level 2"
    assert students[0]["age"] == 9


def test_teacher_shift_comparison(db, school):
    result = reporting.get_teacher_shift_comparison(db, school["teacher"].id, today=TODAY)
    assert result["overall"]["current_rate"] == 83.3
    assert result["overall"]["diff"] == 33.3
    assert result["shifts"]["MORNING"]["diff"] == 40.0
    assert result["shifts"]["AFTERNOON"]["diff"] is None


def test_teacher_without_classes(db, school):
    loner = classes.create_teacher(db, person_id=person_service.create_person(db, name="New").id)
    assert reporting.get_students_by_teacher(db, loner.id) == []
    comparison = reporting.get_teacher_shift_comparison(db, loner.id, today=TODAY)
    assert comparison["overall"]["current_total"] == 0
    assert comparison["overall"]["diff"] is None
    with pytest.raises(RecordNotFoundError):
        reporting.get_teacher_dashboard(db, 999)


def test_teacher_dashboard_is_cached_until_classes_change(db, school):
    teacher_id = school["teacher"].id
    dashboard = reporting.get_teacher_dashboard(db, teacher_id, today=TODAY)
    assert dashboard["class_count"] == 2
    assert dashboard["student_count"] == 7
    assert dashboard["stats"]["total_sessions"] == 4
    assert dashboard["stats"]["attendance_rate"] == 78.6

    classes.remove_teacher(db, school["afternoon"].id, teacher_id)
    refreshed = reporting.get_teacher_dashboard(db, teacher_id, today=TODAY)
    assert refreshed["class_count"] == 1
    assert refreshed["student_count"] == 5
