"""People, profile, relationship and duplicate endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from backend.app.db.session import get_db
from backend.app.dependencies.auth import get_current_admin, get_current_user
from backend.app.models.user import User
from backend.app.schemas.person import (
    DeactivateRequest,
    DuplicateCheckResponse,
    DuplicateCluster,
    GuardianCreate,
    GuardianRelationshipRead,
    PersonCreate,
    PersonRead,
    PersonSummary,
    Program,
    ProgramProfileCreate,
    ProgramProfileRead,
    ResolveDuplicatesRequest,
    ResolveDuplicatesResponse,
    SiblingCandidate,
    SiblingLink,
    SiblingRelationshipRead,
    SiblingUnlink,
    TeacherRead,
)
from backend.app.services import person_service
from backend.app.services.class_enrollment_service import create_teacher
from backend.app.services.duplicate_resolution import find_duplicate_persons, resolve_duplicates
from backend.app.services.sibling_detection import detect_potential_siblings

router = APIRouter(prefix="/people", tags=["people"])


@router.post("", response_model=PersonRead, status_code=status.HTTP_201_CREATED)
def create_person(person_in: PersonCreate, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return person_service.create_person(
        db,
        name=person_in.name,
        email=person_in.email,
        phone=person_in.phone,
        date_of_birth=person_in.date_of_birth,
    )


@router.get("/lookup", response_model=DuplicateCheckResponse)
def lookup_person(
    program: Program,
    email: Optional[str] = None,
    phone: Optional[str] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return person_service.check_duplicate(db, program=program, email=email, phone=phone)


@router.get("/duplicates", response_model=list[DuplicateCluster])
def list_duplicates(db: Session = Depends(get_db), current_admin: User = Depends(get_current_admin)):
    return find_duplicate_persons(db)


@router.post("/duplicates/resolve", response_model=ResolveDuplicatesResponse)
def resolve_duplicate_profiles(
    payload: ResolveDuplicatesRequest,
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin),
):
    return resolve_duplicates(db, keep_id=payload.keep_id, delete_ids=payload.delete_ids, merge_data=payload.merge_data)


@router.post("/guardians", response_model=GuardianRelationshipRead, status_code=status.HTTP_201_CREATED)
def add_guardian(payload: GuardianCreate, db: Session = Depends(get_db), current_admin: User = Depends(get_current_admin)):
    return person_service.add_guardian(
        db,
        guardian_id=payload.guardian_id,
        dependent_id=payload.dependent_id,
        role=payload.role,
        is_primary_payer=payload.is_primary_payer,
    )


@router.post("/guardians/{relationship_id}/deactivate", response_model=GuardianRelationshipRead)
def deactivate_guardian(
    relationship_id: int,
    payload: DeactivateRequest,
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin),
):
    return person_service.deactivate_guardian(db, relationship_id, payload.reason)


@router.post("/siblings", response_model=SiblingRelationshipRead, status_code=status.HTTP_201_CREATED)
def link_siblings(payload: SiblingLink, db: Session = Depends(get_db), current_admin: User = Depends(get_current_admin)):
    return person_service.link_siblings(db, payload.person_a_id, payload.person_b_id, payload.method)


@router.post("/siblings/unlink", response_model=SiblingRelationshipRead)
def unlink_siblings(payload: SiblingUnlink, db: Session = Depends(get_db), current_admin: User = Depends(get_current_admin)):
    return person_service.unlink_siblings(db, payload.person_a_id, payload.person_b_id, payload.reason)


@router.get("/{person_id}", response_model=PersonRead)
def read_person(person_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return person_service.get_person(db, person_id)


@router.post("/{person_id}/profiles", response_model=ProgramProfileRead, status_code=status.HTTP_201_CREATED)
def create_profile(
    person_id: int,
    profile_in: ProgramProfileCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return person_service.create_program_profile(db, person_id=person_id, **profile_in.model_dump())


@router.post("/{person_id}/teacher", response_model=TeacherRead, status_code=status.HTTP_201_CREATED)
def make_teacher(person_id: int, db: Session = Depends(get_db), current_admin: User = Depends(get_current_admin)):
    return create_teacher(db, person_id=person_id)


@router.get("/{person_id}/guardians", response_model=list[PersonSummary])
def read_guardians(person_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    person_service.get_person(db, person_id)
    return person_service.get_guardians(db, person_id)


@router.get("/{person_id}/dependents", response_model=list[PersonSummary])
def read_dependents(person_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    person_service.get_person(db, person_id)
    return person_service.get_dependents(db, person_id)


@router.get("/{person_id}/siblings", response_model=list[PersonSummary])
def read_siblings(person_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    person_service.get_person(db, person_id)
    return person_service.get_siblings(db, person_id)


@router.get("/{person_id}/sibling-candidates", response_model=list[SiblingCandidate])
def read_sibling_candidates(person_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return detect_potential_siblings(db, person_id)
