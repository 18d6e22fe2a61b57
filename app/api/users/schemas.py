from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator

from app.core.security import Role


class UserBase(BaseModel):
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    role: Role = Role.STUDENT
    roll_number: Optional[str] = None
    department: Optional[str] = None

    @field_validator('email')
    @classmethod
    def validate_email(cls, value: str) -> str:
        return value.lower().strip()


class UserCreate(UserBase):
    model_config = ConfigDict(use_enum_values=True)


class User(UserBase):
    id: int
    badge_issued_at: Optional[datetime] = None
    badge_expires_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
