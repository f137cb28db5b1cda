from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict

EnrollmentStatus = Literal["REGISTERED", "ENROLLED", "ON_LEAVE", "WITHDRAWN", "COMPLETED", "SUSPENDED"]


class EnrollmentCreate(BaseModel):
    program_profile_id: int
    batch_id: Optional[int] = None
    status: EnrollmentStatus = "REGISTERED"
    reason: Optional[str] = None
    notes: Optional[str] = None


class EnrollmentStatusUpdate(BaseModel):
    status: EnrollmentStatus
    reason: Optional[str] = None


class ReenrollRequest(BaseModel):
    program_profile_id: int
    batch_id: Optional[int] = None
    notes: Optional[str] = None


class EnrollmentRead(BaseModel):
    id: int
    program_profile_id: int
    batch_id: Optional[int] = None
    status: str
    start_date: datetime
    end_date: Optional[datetime] = None
    reason: Optional[str] = None
    notes: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)
