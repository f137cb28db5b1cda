"""Attendance session, mark and reporting schemas."""

from datetime import date, datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

AttendanceStatus = Literal["PRESENT", "ABSENT", "LATE", "EXCUSED", "UNEXCUSED_ABSENT"]


class SessionCreate(BaseModel):
    class_id: int
    date: date
    notes: Optional[str] = None


class AttendanceRecordRead(BaseModel):
    id: int
    program_profile_id: int
    status: str
    lesson_completed: bool
    lesson_name: Optional[str] = None
    lesson_from: Optional[int] = None
    lesson_to: Optional[int] = None
    lesson_notes: Optional[str] = None
    notes: Optional[str] = None
    marked_at: datetime

    model_config = ConfigDict(from_attributes=True)


class SessionRead(BaseModel):
    id: int
    date: date
    class_id: int
    teacher_id: int
    notes: Optional[str] = None
    is_closed: bool

    model_config = ConfigDict(from_attributes=True)


class SessionDetail(SessionRead):
    records: list[AttendanceRecordRead] = []


class SessionSummary(BaseModel):
    id: int
    date: date
    class_id: int
    class_name: str
    shift: str
    teacher_id: int
    notes: Optional[str] = None
    is_closed: bool
    is_open: bool
    record_count: int


class SessionPage(BaseModel):
    data: list[SessionSummary]
    total: int
    page: int
    limit: int
    total_pages: int


class RecordMark(BaseModel):
    program_profile_id: int
    status: AttendanceStatus
    lesson_completed: bool = False
    lesson_name: Optional[str] = None
    lesson_from: Optional[int] = Field(default=None, ge=0)
    lesson_to: Optional[int] = Field(default=None, ge=0)
    lesson_notes: Optional[str] = None
    notes: Optional[str] = None


class MarkAttendanceRequest(BaseModel):
    records: list[RecordMark] = Field(min_length=1)


class MarkAttendanceResponse(BaseModel):
    session_id: int
    record_count: int


class StatusSummary(BaseModel):
    total: int
    present: int
    absent: int
    late: int
    excused: int
    unexcused_absent: int
    attendance_rate: float


class AttendanceStats(StatusSummary):
    total_sessions: int


class StatusOnDate(BaseModel):
    date: date
    status: str


class StudentAttendanceStats(StatusSummary):
    recent_records: list[StatusOnDate]


class PeriodComparison(BaseModel):
    current_rate: float
    previous_rate: Optional[float] = None
    current_total: int
    previous_total: int
    diff: Optional[float] = None


class ClassComparison(PeriodComparison):
    class_id: int
    class_name: str
    shift: str


class ShiftComparison(BaseModel):
    teacher_id: int
    overall: PeriodComparison
    shifts: dict[str, PeriodComparison]


class TeacherStudent(BaseModel):
    profile_id: int
    name: str
    age: Optional[int] = None
    class_id: int
    class_name: str
    shift: str
    family_reference_id: Optional[str] = None


class TeacherDashboard(BaseModel):
    teacher_id: int
    class_count: int
    student_count: int
    stats: AttendanceStats
    comparison: ShiftComparison
    students: list[TeacherStudent]
