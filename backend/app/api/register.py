"""Handles staff account registration."""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from backend.app.core.app_logger import get_logger
from backend.app.core.security import get_password_hash
from backend.app.db.session import get_db
from backend.app.models.user import User
from backend.app.schemas.user import UserCreate, UserRead
from backend.app.services.contact_normalization import normalize_email

router = APIRouter(prefix="/auth", tags=["auth"])
logger = get_logger("auth")


@router.post("/register", response_model=UserRead)
def register_user(user_in: UserCreate, db: Session = Depends(get_db)):
    # Accounts are keyed by the same canonical email used for contact points
    email = normalize_email(user_in.email)
    if db.query(User).filter(User.email == email).first():
        raise HTTPException(status_code=400, detail="Email already registered")
    user = User(email=email, full_name=user_in.full_name, hashed_password=get_password_hash(user_in.password))
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("Staff account registered", extra={"context": {"user_id": user.id}})
    return user
