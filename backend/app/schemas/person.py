"""Person, profile, relationship and duplicate schemas."""

from datetime import date, datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

Program = Literal["WEEKEND_SCHOOL", "K12_PROGRAM", "YOUTH_EVENTS"]
Shift = Literal["MORNING", "AFTERNOON"]
GuardianRole = Literal["PARENT", "GUARDIAN", "SPONSOR"]
DetectionMethod = Literal["MANUAL", "SHARED_GUARDIAN", "FAMILY_REFERENCE", "CONTACT_MATCH", "NAME_MATCH"]


class ContactPointRead(BaseModel):
    id: int
    type: str
    value: str
    is_active: bool
    is_primary: bool

    model_config = ConfigDict(from_attributes=True)


class PersonCreate(BaseModel):
    name: str = Field(min_length=1)
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    date_of_birth: Optional[date] = None


class PersonSummary(BaseModel):
    id: int
    name: str
    date_of_birth: Optional[date] = None

    model_config = ConfigDict(from_attributes=True)


class PersonRead(PersonSummary):
    contact_points: list[ContactPointRead] = []
    created_at: datetime
    updated_at: datetime


class ProgramProfileCreate(BaseModel):
    program: Program
    status: str = "REGISTERED"
    grade_level: Optional[str] = None
    school_name: Optional[str] = None
    shift: Optional[Shift] = None
    family_reference_id: Optional[str] = None


class ProgramProfileRead(BaseModel):
    id: int
    person_id: int
    program: str
    status: str
    grade_level: Optional[str] = None
    school_name: Optional[str] = None
    shift: Optional[str] = None
    family_reference_id: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class DuplicateCheckResponse(BaseModel):
    is_duplicate: bool
    duplicate_field: Optional[Literal["email", "phone", "both"]] = None
    person: Optional[PersonSummary] = None
    has_active_profile: bool = False
    active_profile_id: Optional[int] = None


class TeacherRead(BaseModel):
    id: int
    person_id: int
    is_active: bool

    model_config = ConfigDict(from_attributes=True)


class GuardianCreate(BaseModel):
    guardian_id: int
    dependent_id: int
    role: GuardianRole = "PARENT"
    is_primary_payer: bool = False


class DeactivateRequest(BaseModel):
    reason: str = Field(min_length=1)


class GuardianRelationshipRead(BaseModel):
    id: int
    guardian_id: int
    dependent_id: int
    role: str
    status: str
    inactive_reason: Optional[str] = None
    ended_at: Optional[datetime] = None
    is_primary_payer: bool

    model_config = ConfigDict(from_attributes=True)


class SiblingLink(BaseModel):
    person_a_id: int
    person_b_id: int
    method: DetectionMethod = "MANUAL"


class SiblingUnlink(BaseModel):
    person_a_id: int
    person_b_id: int
    reason: str = Field(min_length=1)


class SiblingRelationshipRead(BaseModel):
    id: int
    person1_id: int
    person2_id: int
    status: str
    inactive_reason: Optional[str] = None
    detection_method: str

    model_config = ConfigDict(from_attributes=True)


class SiblingCandidate(BaseModel):
    person: PersonSummary
    method: DetectionMethod
    confidence: float
    reasons: list[str]


class ProfileRef(BaseModel):
    id: int
    program: str


class DuplicatePerson(BaseModel):
    id: int
    name: str
    updated_at: datetime
    program_profiles: list[ProfileRef]


class DuplicateCluster(BaseModel):
    phone: str
    keep: DuplicatePerson
    delete_candidates: list[DuplicatePerson]
    has_recent_activity: bool
    size: int


class ResolveDuplicatesRequest(BaseModel):
    keep_id: int
    delete_ids: list[int] = Field(min_length=1)
    merge_data: bool = False


class ResolveDuplicatesResponse(BaseModel):
    keep_id: int
    deleted_profile_ids: list[int]
    deleted_person_ids: list[int]
    contact_points_copied: int
    fields_filled: list[str]
    billing_moved: int
    enrollments_moved: int
    attendance_moved: int
    guardian_links_moved: int = 0
    sibling_links_moved: int = 0
