from typing import List, Optional
from datetime import datetime
from uuid import UUID
from pydantic import EmailStr, StringConstraints, field_validator
from sqlmodel import Field
from typing_extensions import Annotated

from app.db.schema import UserRole
from app.models.common import ApiModel
from app.utils.wallet import normalize_identity


PhoneNumber = Annotated[
    str, StringConstraints(strip_whitespace=True, pattern=r"^[0-9+\-\s()]+$", max_length=32)
]


class UserRead(ApiModel):
    id: UUID
    wallet_address: str
    role: UserRole
    name: str
    company: Optional[str] = None
    email: Optional[str] = None
    phone_number: Optional[str] = None
    profile_image: Optional[str] = None
    is_active: bool
    last_login_at: Optional[datetime] = None


class ProjectSummary(ApiModel):
    project_id: str
    project_name: str
    status: str


class UserProfile(UserRead):
    """Profile view with the projects this identity is attached to."""
    assigned_projects: List[ProjectSummary] = []


class UserCreate(ApiModel):
    """
    DTO for wallet registration.
    The role is fixed for the lifetime of the identity.
    """
    wallet_address: str = Field(description="0x-prefixed 20 byte address.")
    role: UserRole
    name: str = Field(min_length=2, max_length=100)
    company: Optional[str] = Field(default=None, max_length=200)
    email: Optional[EmailStr] = None
    phone_number: Optional[PhoneNumber] = None

    @field_validator("wallet_address")
    @classmethod
    def _normalize(cls, value: str) -> str:
        return normalize_identity(value)

    @field_validator("email")
    @classmethod
    def _lower_email(cls, value: Optional[str]) -> Optional[str]:
        return value.lower() if value else value


class UserUpdate(ApiModel):
    name: Optional[str] = Field(default=None, min_length=2, max_length=100)
    company: Optional[str] = Field(default=None, max_length=200)
    email: Optional[EmailStr] = None
    phone_number: Optional[PhoneNumber] = None
    profile_image: Optional[str] = None

    @field_validator("email")
    @classmethod
    def _lower_email(cls, value: Optional[str]) -> Optional[str]:
        return value.lower() if value else value
