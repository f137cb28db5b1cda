"""Family views built from program profiles and guardian links."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from backend.app.db.session import get_db
from backend.app.dependencies.auth import get_current_user
from backend.app.models.user import User
from backend.app.schemas.family import FamilyMember, FamilyRead
from backend.app.schemas.person import Program
from backend.app.services.family_grouping import get_families, get_family_members

router = APIRouter(prefix="/families", tags=["families"])


@router.get("", response_model=list[FamilyRead])
def list_families(
    program: Program = "WEEKEND_SCHOOL",
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return get_families(db, program)


@router.get("/{family_reference_id}", response_model=list[FamilyMember])
def read_family(family_reference_id: str, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return get_family_members(db, family_reference_id)
