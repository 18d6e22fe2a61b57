from datetime import datetime
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    Table,
    Text,
    text,
)
from sqlalchemy.orm import Mapped, relationship

from app.core.database import Base
from app.core.geofence import Coordinate, Geofence
from app.core.utils import current_time

if TYPE_CHECKING:
    from app.api.users.models import User

# Present-set projection. attendance_records stays the source of truth.
session_participants = Table(
    'check_in_session_participants',
    Base.metadata,
    Column(
        'session_id',
        Integer,
        ForeignKey('check_in_sessions.id', ondelete='CASCADE'),
        primary_key=True,
    ),
    Column('participant_id', Integer, ForeignKey('users.id'), primary_key=True),
    Column('created_at', DateTime, default=current_time),
)


class CheckInSession(Base):
    __tablename__ = 'check_in_sessions'

    id = Column(
        Integer,
        primary_key=True,
        autoincrement=True,
        unique=True,
        index=True,
    )
    activity_id = Column(Integer, nullable=False, index=True)
    subject_id = Column(Integer, nullable=True)
    presenter_id = Column(Integer, ForeignKey('users.id'), nullable=False)
    date = Column(Date, nullable=False)
    token = Column(Text, unique=True, nullable=False)
    expires_at = Column(DateTime, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)

    fence_latitude = Column(Float, nullable=True)
    fence_longitude = Column(Float, nullable=True)
    fence_radius_meters = Column(Float, nullable=True)

    participants: Mapped[List['User']] = relationship(
        'User', secondary=session_participants
    )

    created_at = Column(DateTime, default=current_time)
    updated_at = Column(DateTime, default=current_time, onupdate=current_time)

    @property
    def geofence(self) -> Optional[Geofence]:
        if self.fence_latitude is None or self.fence_longitude is None:
            return None
        return Geofence(
            center=Coordinate(
                latitude=self.fence_latitude, longitude=self.fence_longitude
            ),
            radius_meters=self.fence_radius_meters,
        )

    @property
    def participant_ids(self) -> List[int]:
        return [p.id for p in self.participants]

    def is_live(self, now: datetime) -> bool:
        return bool(self.is_active) and now <= self.expires_at

    __table_args__ = (
        # At most one active session per activity and date
        Index(
            'ix_check_in_sessions_one_active',
            'activity_id',
            'date',
            unique=True,
            postgresql_where=text('is_active'),
            sqlite_where=text('is_active = 1'),
        ),
    )
