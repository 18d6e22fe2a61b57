from typing import Optional

from sqlalchemy import (
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)

from app.core.database import Base
from app.core.geofence import Coordinate
from app.core.utils import current_time


class AttendanceRecord(Base):
    __tablename__ = 'attendance_records'

    id = Column(
        Integer,
        primary_key=True,
        autoincrement=True,
        unique=True,
        index=True,
    )
    participant_id = Column(Integer, ForeignKey('users.id'), nullable=False)
    activity_id = Column(Integer, nullable=False)
    subject_id = Column(Integer, nullable=True)
    date = Column(Date, nullable=False)
    status = Column(String, nullable=False)
    method = Column(String, nullable=False)
    recorded_by = Column(Integer, ForeignKey('users.id'), nullable=False)
    recorded_at = Column(DateTime, nullable=False, default=current_time)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    notes = Column(String, nullable=True)

    created_at = Column(DateTime, default=current_time)
    updated_at = Column(DateTime, default=current_time, onupdate=current_time)

    @property
    def location(self) -> Optional[Coordinate]:
        if self.latitude is None or self.longitude is None:
            return None
        return Coordinate(latitude=self.latitude, longitude=self.longitude)

    __table_args__ = (
        UniqueConstraint(
            'participant_id',
            'activity_id',
            'date',
            name='uq_attendance_participant_activity_date',
        ),
        Index('ix_attendance_activity_date', 'activity_id', 'date'),
    )
