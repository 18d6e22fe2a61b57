import datetime as dt
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from app.core.config import settings
from app.core.geofence import Coordinate, Geofence


class SessionFence(Coordinate):
    radius_meters: float = Field(
        default_factory=lambda: settings.DEFAULT_FENCE_RADIUS_METERS, gt=0
    )

    def to_geofence(self) -> Geofence:
        return Geofence(
            center=Coordinate(latitude=self.latitude, longitude=self.longitude),
            radius_meters=self.radius_meters,
        )


class CheckInSessionCreate(BaseModel):
    activity_id: int
    subject_id: Optional[int] = None
    date: Optional[dt.date] = None
    expiry_minutes: Optional[int] = Field(
        default=None, ge=1, le=settings.CHECK_IN_MAX_EXPIRY_MINUTES
    )
    fence: Optional[SessionFence] = None
    # Admins may open a session on behalf of another presenter
    presenter_id: Optional[int] = None


class InternalCheckInSessionCreate(BaseModel):
    activity_id: int
    subject_id: Optional[int] = None
    presenter_id: int
    date: dt.date
    token: str
    expires_at: dt.datetime
    is_active: bool = True
    fence_latitude: Optional[float] = None
    fence_longitude: Optional[float] = None
    fence_radius_meters: Optional[float] = None


class CheckInSession(BaseModel):
    id: int
    activity_id: int
    subject_id: Optional[int] = None
    presenter_id: int
    date: dt.date
    expires_at: dt.datetime
    is_active: bool
    geofence: Optional[Geofence] = None
    participant_ids: List[int] = []
    created_at: Optional[dt.datetime] = None

    model_config = ConfigDict(from_attributes=True)

    @classmethod
    def from_model(cls, session, now: dt.datetime) -> 'CheckInSession':
        """Expired sessions are reported as inactive even if not yet reaped."""
        data = cls.model_validate(session)
        data.is_active = session.is_live(now)
        return data


class CheckInSessionCreated(BaseModel):
    session: CheckInSession
    token: str
    qr_code: str  # Base64 PNG of the token
