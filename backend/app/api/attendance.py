"""Attendance sessions, marks and reporting endpoints."""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from backend.app.db.session import get_db
from backend.app.dependencies.auth import get_current_admin, get_current_user
from backend.app.models.user import User
from backend.app.schemas.attendance import (
    AttendanceStats,
    ClassComparison,
    MarkAttendanceRequest,
    MarkAttendanceResponse,
    PeriodComparison,
    SessionCreate,
    SessionDetail,
    SessionPage,
    SessionRead,
    ShiftComparison,
    StatusOnDate,
    StudentAttendanceStats,
    TeacherDashboard,
    TeacherStudent,
)
from backend.app.schemas.school_class import Shift
from backend.app.services import attendance_reporting as reporting
from backend.app.services import attendance_service
from backend.app.services.attendance_filters import AttendanceFilters

router = APIRouter(prefix="/attendance", tags=["attendance"])


def attendance_filters(
    class_id: Optional[int] = None,
    teacher_id: Optional[int] = None,
    shift: Optional[Shift] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
) -> AttendanceFilters:
    return AttendanceFilters(
        class_id=class_id, teacher_id=teacher_id, shift=shift, date_from=date_from, date_to=date_to
    ).validate()


@router.get("/sessions", response_model=SessionPage)
def list_sessions(
    filters: AttendanceFilters = Depends(attendance_filters),
    page: int = Query(default=1, ge=1),
    limit: Optional[int] = Query(default=None, ge=1, le=200),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return attendance_service.list_sessions(db, filters, page=page, limit=limit)


@router.post("/sessions", response_model=SessionRead, status_code=status.HTTP_201_CREATED)
def create_session(session_in: SessionCreate, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return attendance_service.create_session(
        db, class_id=session_in.class_id, session_date=session_in.date, notes=session_in.notes
    )


@router.get("/sessions/{session_id}", response_model=SessionDetail)
def read_session(session_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return attendance_service.get_session(db, session_id)


@router.delete("/sessions/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_session(session_id: int, db: Session = Depends(get_db), current_admin: User = Depends(get_current_admin)):
    attendance_service.delete_session(db, session_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/sessions/{session_id}/records", response_model=MarkAttendanceResponse)
def mark_attendance(
    session_id: int,
    payload: MarkAttendanceRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return attendance_service.mark_attendance(
        db, session_id=session_id, records=[record.model_dump() for record in payload.records]
    )


@router.post("/sessions/{session_id}/close", response_model=SessionRead)
def close_session(session_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return attendance_service.close_session(db, session_id)


@router.get("/stats", response_model=AttendanceStats)
def read_stats(
    filters: AttendanceFilters = Depends(attendance_filters),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return reporting.get_attendance_stats_cached(db, filters)


@router.get("/comparisons", response_model=list[ClassComparison])
def read_class_comparisons(
    filters: AttendanceFilters = Depends(attendance_filters),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return reporting.get_class_comparisons(db, filters)


@router.get("/students/{profile_id}/stats", response_model=StudentAttendanceStats)
def read_student_stats(profile_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return reporting.get_student_attendance_stats(db, profile_id)


@router.get("/students/{profile_id}/comparison", response_model=PeriodComparison)
def read_student_comparison(profile_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return reporting.get_student_monthly_comparison(db, profile_id)


@router.get("/students/{profile_id}/trend", response_model=list[StatusOnDate])
def read_student_trend(
    profile_id: int,
    weeks_back: int = Query(default=12, ge=1, le=104),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return reporting.get_student_weekly_trend(db, profile_id, weeks_back=weeks_back)


@router.get("/teachers/{teacher_id}/students", response_model=list[TeacherStudent])
def read_teacher_students(teacher_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return reporting.get_students_by_teacher(db, teacher_id)


@router.get("/teachers/{teacher_id}/comparison", response_model=ShiftComparison)
def read_teacher_comparison(teacher_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return reporting.get_teacher_shift_comparison(db, teacher_id)


@router.get("/teachers/{teacher_id}/dashboard", response_model=TeacherDashboard)
def read_teacher_dashboard(teacher_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return reporting.get_teacher_dashboard(db, teacher_id)
