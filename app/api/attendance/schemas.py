import datetime as dt
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from app.core.config import settings
from app.core.geofence import Coordinate


class AttendanceStatus(str, Enum):
    PRESENT = 'present'
    ABSENT = 'absent'
    LATE = 'late'
    EXCUSED = 'excused'


class AttendanceMethod(str, Enum):
    SCANNED = 'scanned'
    MANUAL = 'manual'
    AUTOMATIC = 'automatic'


class InternalAttendanceCreate(BaseModel):
    participant_id: int
    activity_id: int
    subject_id: Optional[int] = None
    date: dt.date
    status: AttendanceStatus
    method: AttendanceMethod
    recorded_by: int
    recorded_at: dt.datetime
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    notes: Optional[str] = None

    model_config = ConfigDict(use_enum_values=True)


class ManualAttendance(BaseModel):
    participant_id: int
    activity_id: int
    subject_id: Optional[int] = None
    date: dt.date
    status: AttendanceStatus
    notes: Optional[str] = None


class AttendanceUpdate(BaseModel):
    status: Optional[AttendanceStatus] = None
    notes: Optional[str] = None

    model_config = ConfigDict(use_enum_values=True)


class AttendanceRecord(BaseModel):
    id: int
    participant_id: int
    activity_id: int
    subject_id: Optional[int] = None
    date: dt.date
    status: AttendanceStatus
    method: AttendanceMethod
    recorded_by: int
    recorded_at: dt.datetime
    location: Optional[Coordinate] = None
    notes: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class AttendanceFilter(BaseModel):
    participant_id: Optional[int] = None
    activity_id: Optional[int] = None
    subject_id: Optional[int] = None
    status: Optional[AttendanceStatus] = None
    start_date: Optional[dt.date] = None
    end_date: Optional[dt.date] = None


class AttendanceStatistics(BaseModel):
    participant_id: int
    total: int
    present: int
    absent: int
    late: int
    excused: int
    percentage: float


class LowAttendanceAlert(BaseModel):
    threshold: float = Field(
        default_factory=lambda: settings.LOW_ATTENDANCE_THRESHOLD, ge=0, le=100
    )
    subject_id: Optional[int] = None


class LowAttendanceStudent(BaseModel):
    participant_id: int
    email: str
    full_name: str
    roll_number: Optional[str] = None
    total: int
    present: int
    percentage: float


class LowAttendanceAlertResult(BaseModel):
    threshold: float
    count: int
