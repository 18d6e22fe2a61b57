from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.orm import Session

from app.api.attendance import schemas as attendance_schemas
from app.api.attendance.crud import attendance as attendance_crud
from app.api.check_in_sessions.crud import check_in_session as check_in_session_crud
from app.api.check_in_sessions.models import CheckInSession
from app.api.users.crud import user as user_crud
from app.core.exceptions.check_in_exceptions import (
    InvalidToken,
    LocationRequired,
    OutOfRange,
    PersonNotFound,
    SessionExpiredOrClosed,
    StorageConflict,
    Unauthorized,
    WrongTokenKind,
)
from app.core.geofence import Coordinate, distance_meters, within_fence
from app.core.logger import logger
from app.core.notifications import NotificationEvent, dispatch_notification
from app.core.security import Role, TokenData
from app.core.tokens import MalformedToken, TokenKind, decode_token
from app.core.utils import current_time

from . import schemas

ATTENDED_STATUSES = (
    attendance_schemas.AttendanceStatus.PRESENT.value,
    attendance_schemas.AttendanceStatus.LATE.value,
)


class CheckInVerifier:
    """
    Redeems a session token for one participant.

    Every step either passes or raises a typed error, and nothing is written
    until all checks pass. Duplicates are detected by the unique constraint on
    attendance records, never by a prior read.
    """

    def __init__(self, clock: Callable[[], datetime] = current_time):
        self.clock = clock

    def _check_location(
        self, session: CheckInSession, location: Optional[Coordinate]
    ) -> None:
        fence = session.geofence
        if fence is None:
            return
        if location is None:
            raise LocationRequired()
        if not within_fence(location, fence):
            distance = distance_meters(location, fence.center)
            logger.info(
                'Check-in to session %s rejected: %.0fm away (radius %.0fm)',
                session.id,
                distance,
                fence.radius_meters,
            )
            raise OutOfRange(distance, fence.radius_meters)

    def _check_participant(self, db: Session, participant: TokenData) -> None:
        role = user_crud.get_role(db, participant)
        if role is None:
            logger.error('User %s has no person record', participant.user_id)
            raise PersonNotFound(f'Person {participant.user_id} not found')
        if role != Role.STUDENT:
            logger.error(
                'User %s with role %s cannot check in', participant.user_id, role.value
            )
            raise Unauthorized('Only students can check in to a session')

    def redeem(
        self,
        db: Session,
        token: str,
        participant: TokenData,
        location: Optional[Coordinate] = None,
    ) -> schemas.CheckInResponse:
        self._check_participant(db, participant)

        try:
            decoded = decode_token(token)
        except MalformedToken as e:
            logger.info('Malformed check-in token from %s: %s', participant.user_id, e)
            raise InvalidToken()

        if decoded.kind != TokenKind.SESSION_CHECKIN:
            raise WrongTokenKind()

        session = check_in_session_crud.get_by_token(db, token)
        if not session.is_live(self.clock()):
            raise SessionExpiredOrClosed()

        self._check_location(session, location)

        to_create = attendance_schemas.InternalAttendanceCreate(
            participant_id=participant.user_id,
            activity_id=session.activity_id,
            subject_id=session.subject_id,
            date=session.date,
            status=attendance_schemas.AttendanceStatus.PRESENT,
            method=attendance_schemas.AttendanceMethod.SCANNED,
            recorded_by=session.presenter_id,
            recorded_at=self.clock(),
            latitude=location.latitude if location else None,
            longitude=location.longitude if location else None,
        )
        try:
            record = attendance_crud.create(db, to_create)
        except StorageConflict:
            logger.info(
                'Participant %s already checked in to activity %s on %s',
                participant.user_id,
                session.activity_id,
                session.date,
            )
            existing = attendance_crud.get_for_key(
                db, participant.user_id, session.activity_id, session.date
            )
            if existing is None:
                raise
            return schemas.CheckInResponse(
                # A manual absent or excused record is not a successful check-in
                success=existing.status in ATTENDED_STATUSES,
                first_check_in=False,
                outcome=schemas.CheckInOutcome.ALREADY_CHECKED_IN,
                attendance=attendance_schemas.AttendanceRecord.model_validate(existing),
            )

        logger.info(
            'Participant %s checked in to session %s (activity %s on %s)',
            participant.user_id,
            session.id,
            session.activity_id,
            session.date,
        )
        check_in_session_crud.mark_present(db, session, participant.user_id)
        dispatch_notification(
            participant.user_id,
            NotificationEvent.CHECKED_IN,
            {
                'activity_id': record.activity_id,
                'date': record.date.isoformat(),
                'recorded_at': record.recorded_at.isoformat(),
            },
        )
        return schemas.CheckInResponse(
            success=True,
            first_check_in=True,
            outcome=schemas.CheckInOutcome.CHECKED_IN,
            attendance=attendance_schemas.AttendanceRecord.model_validate(record),
        )


check_in = CheckInVerifier()
