from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from backend.app.db.session import get_db
from backend.app.dependencies.auth import get_current_user
from backend.app.models.user import User
from backend.app.schemas.enrollment import EnrollmentCreate, EnrollmentRead, EnrollmentStatusUpdate, ReenrollRequest
from backend.app.services import enrollment_service
from backend.app.services.person_service import get_program_profile

router = APIRouter(prefix="/enrollments", tags=["enrollments"])


@router.post("", response_model=EnrollmentRead, status_code=status.HTTP_201_CREATED)
def create_enrollment(
    enrollment_in: EnrollmentCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return enrollment_service.create_enrollment(
        db,
        profile_id=enrollment_in.program_profile_id,
        batch_id=enrollment_in.batch_id,
        status=enrollment_in.status,
        reason=enrollment_in.reason,
        notes=enrollment_in.notes,
    )


@router.post("/reenroll", response_model=EnrollmentRead, status_code=status.HTTP_201_CREATED)
def reenroll(payload: ReenrollRequest, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return enrollment_service.reenroll(
        db, profile_id=payload.program_profile_id, batch_id=payload.batch_id, notes=payload.notes
    )


@router.patch("/{enrollment_id}/status", response_model=EnrollmentRead)
def update_status(
    enrollment_id: int,
    payload: EnrollmentStatusUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return enrollment_service.update_enrollment_status(db, enrollment_id, payload.status, payload.reason)


@router.get("/profiles/{profile_id}", response_model=list[EnrollmentRead])
def list_profile_enrollments(profile_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    get_program_profile(db, profile_id)
    return enrollment_service.list_enrollments(db, profile_id)
