"""Class, teacher assignment and placement schemas."""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

Shift = Literal["MORNING", "AFTERNOON"]


class ClassCreate(BaseModel):
    name: str = Field(min_length=1)
    shift: Shift
    description: Optional[str] = None


class ClassUpdate(BaseModel):
    name: Optional[str] = None
    shift: Optional[Shift] = None
    description: Optional[str] = None


class ClassTeacherSummary(BaseModel):
    teacher_id: int
    name: str


class ClassRead(BaseModel):
    id: int
    name: str
    shift: str
    description: Optional[str] = None
    is_active: bool
    teachers: list[ClassTeacherSummary] = []
    student_count: int = 0


class TeacherAssignment(BaseModel):
    teacher_id: int


class ClassTeacherRead(BaseModel):
    id: int
    class_id: int
    teacher_id: int
    is_active: bool

    model_config = ConfigDict(from_attributes=True)


class BulkEnrollRequest(BaseModel):
    program_profile_ids: list[int]


class BulkEnrollResponse(BaseModel):
    enrolled: int
    moved: int


class ClassEnrollmentRead(BaseModel):
    id: int
    class_id: int
    program_profile_id: int
    start_date: datetime
    end_date: Optional[datetime] = None
    is_active: bool

    model_config = ConfigDict(from_attributes=True)


class EnrolledStudent(BaseModel):
    profile_id: int
    name: str
    age: Optional[int] = None
    family_reference_id: Optional[str] = None
    start_date: datetime


class UnassignedStudent(BaseModel):
    profile_id: int
    name: str
    age: Optional[int] = None
    shift: Optional[str] = None
    family_reference_id: Optional[str] = None
