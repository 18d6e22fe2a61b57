from enum import Enum
from typing import Optional

from pydantic import BaseModel, field_validator

from app.api.attendance.schemas import AttendanceRecord
from app.core.geofence import Coordinate


class CheckInOutcome(str, Enum):
    CHECKED_IN = 'checked_in'
    ALREADY_CHECKED_IN = 'already_checked_in'


class NewCheckIn(BaseModel):
    token: str
    location: Optional[Coordinate] = None

    @field_validator('token')
    def validate_token(cls, v):
        if not v or not v.strip():
            raise ValueError('Token is required')
        return v.strip()


class CheckInResponse(BaseModel):
    success: bool
    first_check_in: bool
    outcome: CheckInOutcome
    attendance: AttendanceRecord
