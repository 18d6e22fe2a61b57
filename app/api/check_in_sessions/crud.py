from datetime import date, datetime, timedelta
from typing import Tuple

from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session, object_session

from app.api.base_crud import CRUDBase
from app.api.users.crud import user as user_crud
from app.core.config import settings
from app.core.exceptions.check_in_exceptions import (
    SessionAlreadyActive,
    SessionNotFound,
    StorageConflict,
    Unauthorized,
)
from app.core.logger import logger
from app.core.security import STAFF_ROLES, SYSTEM_TOKEN, Role, TokenData
from app.core.tokens import SessionCheckinPayload, TokenKind, encode_token

from . import models, schemas


class CRUDCheckInSession(
    CRUDBase[
        models.CheckInSession,
        schemas.InternalCheckInSessionCreate,
        schemas.InternalCheckInSessionCreate,
    ]
):
    def _check_permission(
        self, db_obj: models.CheckInSession, user: TokenData
    ) -> bool:
        if user == SYSTEM_TOKEN or db_obj.presenter_id == user.user_id:
            return True
        return user_crud.is_admin(object_session(db_obj), user)

    def _expire_stale(self, db: Session, activity_id: int, day: date, now: datetime):
        """Deactivate sessions for the key that are active but past expiry."""
        expired = (
            db.query(self.model)
            .filter(
                self.model.activity_id == activity_id,
                self.model.date == day,
                self.model.is_active.is_(True),
                self.model.expires_at < now,
            )
            .update({self.model.is_active: False}, synchronize_session=False)
        )
        if expired:
            db.commit()
            logger.info(
                'Deactivated %s expired session(s) for activity %s on %s',
                expired,
                activity_id,
                day,
            )

    def create_session(
        self,
        db: Session,
        obj: schemas.CheckInSessionCreate,
        user: TokenData,
    ) -> models.CheckInSession:
        role = user_crud.get_role(db, user)
        if role not in STAFF_ROLES:
            logger.error('User %s cannot start check-in sessions', user.user_id)
            raise Unauthorized('Only teachers and admins can start check-in sessions')

        presenter_id = obj.presenter_id or user.user_id
        if presenter_id != user.user_id:
            if role != Role.ADMIN:
                logger.error(
                    'User %s tried to start a session for presenter %s',
                    user.user_id,
                    presenter_id,
                )
                raise Unauthorized(
                    'Only admins can start a session on behalf of another presenter'
                )
            user_crud.get_person(db, presenter_id)

        now = self.clock()
        day = obj.date or now.date()
        expiry_minutes = obj.expiry_minutes or settings.CHECK_IN_EXPIRY_MINUTES

        self._expire_stale(db, obj.activity_id, day, now)

        token = encode_token(
            TokenKind.SESSION_CHECKIN,
            SessionCheckinPayload(
                activity_id=obj.activity_id,
                presenter_id=presenter_id,
                date=day,
            ),
            created_at=now,
        )
        fence = obj.fence.to_geofence() if obj.fence else None
        to_create = schemas.InternalCheckInSessionCreate(
            activity_id=obj.activity_id,
            subject_id=obj.subject_id,
            presenter_id=presenter_id,
            date=day,
            token=token,
            expires_at=now + timedelta(minutes=expiry_minutes),
            fence_latitude=fence.center.latitude if fence else None,
            fence_longitude=fence.center.longitude if fence else None,
            fence_radius_meters=fence.radius_meters if fence else None,
        )
        try:
            session = self.create(db, to_create)
        except StorageConflict:
            raise SessionAlreadyActive()

        logger.info(
            'Check-in session %s opened by %s for activity %s on %s until %s',
            session.id,
            presenter_id,
            session.activity_id,
            session.date,
            session.expires_at,
        )
        return session

    def get_session(
        self, db: Session, id: int, user: TokenData
    ) -> models.CheckInSession:
        session = db.query(self.model).filter(self.model.id == id).first()
        if not session:
            raise SessionNotFound()
        if not self._check_permission(session, user):
            raise Unauthorized('Only the presenter or an admin can view this session')
        return session

    def get_by_token(self, db: Session, token: str) -> models.CheckInSession:
        session = db.query(self.model).filter(self.model.token == token).first()
        if not session:
            raise SessionNotFound()
        return session

    def deactivate(
        self, db: Session, id: int, user: TokenData
    ) -> models.CheckInSession:
        session = self.get_session(db, id, user)
        if not session.is_active:
            logger.info('Check-in session %s was already inactive', session.id)
            return session

        session.is_active = False
        db.commit()
        db.refresh(session)
        logger.info('Check-in session %s ended by user %s', session.id, user.user_id)
        return session

    def mark_present(
        self, db: Session, session: models.CheckInSession, participant_id: int
    ) -> None:
        """Best-effort update of the present-set projection."""
        try:
            db.execute(
                models.session_participants.insert().values(
                    session_id=session.id,
                    participant_id=participant_id,
                    created_at=self.clock(),
                )
            )
            db.commit()
        except IntegrityError:
            db.rollback()
            logger.info(
                'Participant %s already in present-set of session %s',
                participant_id,
                session.id,
            )
        except OperationalError as e:
            db.rollback()
            logger.error(
                'Could not add participant %s to session %s: %s',
                participant_id,
                session.id,
                str(e),
            )

    def reap_expired(self, db: Session) -> Tuple[int, int]:
        """
        Storage hygiene only: readers already treat expired sessions as closed.

        Deactivates expired sessions and deletes inactive ones past the
        retention window. Returns (deactivated, deleted).
        """
        now = self.clock()
        deactivated = (
            db.query(self.model)
            .filter(self.model.is_active.is_(True), self.model.expires_at < now)
            .update({self.model.is_active: False}, synchronize_session=False)
        )

        cutoff = now - timedelta(days=settings.CHECK_IN_SESSION_RETENTION_DAYS)
        stale = (
            db.query(self.model)
            .filter(self.model.is_active.is_(False), self.model.expires_at < cutoff)
            .all()
        )
        for session in stale:
            db.delete(session)

        db.commit()
        return deactivated, len(stale)


check_in_session = CRUDCheckInSession(models.CheckInSession)
