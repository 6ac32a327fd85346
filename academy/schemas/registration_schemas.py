# academy/schemas/registration_schemas.py
from typing import List, Optional
from datetime import datetime
from uuid import UUID
from pydantic import EmailStr, Field, field_validator

from .common import APIModel, check_password_bytes
from ..models.registration import RegistrationStatus


class RegistrationCreate(APIModel):
    surname: str = Field(..., min_length=1, max_length=100)
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: Optional[str] = Field(default=None, max_length=100)
    email: EmailStr
    phone_number: Optional[str] = Field(default=None, max_length=30)
    password: str = Field(..., min_length=8, max_length=72)
    course_id: UUID
    saturday_session_id: UUID
    sunday_session_id: UUID
    payment_receipt_url: str = Field(..., min_length=1, max_length=500)
    payment_receipt_no: str = Field(..., min_length=1, max_length=100)
    portrait_photo_url: Optional[str] = Field(default=None, max_length=500)

    @field_validator("password")
    @classmethod
    def password_fits_bcrypt(cls, value: str) -> str:
        return check_password_bytes(value)


class RegistrationSubmitted(APIModel):
    registration_id: UUID
    email: str
    course_name: str
    saturday_session: str
    sunday_session: str
    submitted_at: datetime


class Registration(APIModel):
    id: UUID
    surname: str
    first_name: str
    last_name: Optional[str] = None
    email: str
    phone_number: Optional[str] = None
    course_id: UUID
    saturday_session_id: UUID
    sunday_session_id: UUID
    payment_receipt_url: str
    payment_receipt_no: str
    portrait_photo_url: Optional[str] = None
    status: RegistrationStatus
    reviewed_by_id: Optional[UUID] = None
    reviewed_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    created_at: datetime


class ApprovalResult(APIModel):
    student_id: UUID
    student_number: str


class BulkApproveRequest(APIModel):
    registration_ids: List[UUID] = Field(..., min_length=1, max_length=100)


class BulkFailure(APIModel):
    id: UUID
    reason: str


class BulkApprovedStudent(APIModel):
    registration_id: UUID
    student_id: UUID
    student_number: str


class BulkApproveResult(APIModel):
    approved: List[UUID]
    failed: List[BulkFailure]
    students: List[BulkApprovedStudent]


class RejectRequest(APIModel):
    # Checked by the workflow so blank and oversized reasons share one error
    reason: Optional[str] = None


class ExpireRequest(APIModel):
    older_than_days: Optional[int] = Field(default=None, ge=1)


class ExpireResult(APIModel):
    expired: int
    registration_ids: List[UUID]
    threshold: datetime
