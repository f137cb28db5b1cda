"""Class management, teacher assignment and student placement endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from backend.app.db.session import get_db
from backend.app.dependencies.auth import get_current_admin, get_current_user
from backend.app.models.user import User
from backend.app.schemas.person import Program
from backend.app.schemas.school_class import (
    BulkEnrollRequest,
    BulkEnrollResponse,
    ClassCreate,
    ClassEnrollmentRead,
    ClassRead,
    ClassTeacherRead,
    ClassUpdate,
    EnrolledStudent,
    Shift,
    TeacherAssignment,
    UnassignedStudent,
)
from backend.app.services import class_enrollment_service as classes

router = APIRouter(prefix="/classes", tags=["classes"])


@router.get("", response_model=list[ClassRead])
def list_classes(shift: Optional[Shift] = None, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return classes.list_classes(db, shift)


@router.post("", response_model=ClassRead, status_code=status.HTTP_201_CREATED)
def create_class(class_in: ClassCreate, db: Session = Depends(get_db), current_admin: User = Depends(get_current_admin)):
    school_class = classes.create_class(db, name=class_in.name, shift=class_in.shift, description=class_in.description)
    return classes.class_summary(school_class)


@router.get("/unassigned", response_model=list[UnassignedStudent])
def list_unassigned(
    program: Program = "WEEKEND_SCHOOL",
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return classes.get_unassigned_students(db, program)


@router.delete("/enrollments/{profile_id}", response_model=ClassEnrollmentRead)
def remove_from_class(profile_id: int, db: Session = Depends(get_db), current_admin: User = Depends(get_current_admin)):
    return classes.remove_from_class(db, profile_id)


@router.get("/{class_id}", response_model=ClassRead)
def read_class(class_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return classes.class_summary(classes.get_class(db, class_id))


@router.patch("/{class_id}", response_model=ClassRead)
def update_class(
    class_id: int,
    class_in: ClassUpdate,
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin),
):
    school_class = classes.update_class(db, class_id, **class_in.model_dump(exclude_unset=True))
    return classes.class_summary(school_class)


@router.delete("/{class_id}", response_model=ClassRead)
def deactivate_class(class_id: int, db: Session = Depends(get_db), current_admin: User = Depends(get_current_admin)):
    return classes.class_summary(classes.deactivate_class(db, class_id))


@router.post("/{class_id}/teachers", response_model=ClassTeacherRead, status_code=status.HTTP_201_CREATED)
def assign_teacher(
    class_id: int,
    payload: TeacherAssignment,
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin),
):
    return classes.assign_teacher(db, class_id, payload.teacher_id)


@router.delete("/{class_id}/teachers/{teacher_id}", response_model=ClassTeacherRead)
def remove_teacher(
    class_id: int,
    teacher_id: int,
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin),
):
    return classes.remove_teacher(db, class_id, teacher_id)


@router.post("/{class_id}/enroll", response_model=BulkEnrollResponse)
def bulk_enroll(
    class_id: int,
    payload: BulkEnrollRequest,
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin),
):
    return classes.bulk_enroll(db, class_id=class_id, profile_ids=payload.program_profile_ids)


@router.put("/{class_id}/students/{profile_id}", response_model=ClassEnrollmentRead)
def enroll_student(
    class_id: int,
    profile_id: int,
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin),
):
    return classes.enroll_student_in_class(db, class_id=class_id, profile_id=profile_id)


@router.get("/{class_id}/students", response_model=list[EnrolledStudent])
def list_students(class_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return classes.get_enrolled_students(db, class_id)
