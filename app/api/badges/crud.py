from datetime import datetime, timedelta
from typing import Callable, List

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.api.users.crud import user as user_crud
from app.core.exceptions.check_in_exceptions import (
    BadgeExpired,
    CheckInError,
    InvalidToken,
    Unauthorized,
    WrongTokenKind,
)
from app.core.logger import logger
from app.core.notifications import NotificationEvent, dispatch_notification
from app.core.security import STAFF_ROLES, TokenData
from app.core.tokens import (
    IdentityBadgePayload,
    MalformedToken,
    TokenKind,
    decode_token,
    encode_token,
)
from app.core.utils import current_time

from . import schemas


class BadgeIssuer:
    """
    Long-lived identity badges. A badge is not tied to a session or place and
    reissuing simply replaces the person's previous badge.
    """

    def __init__(self, clock: Callable[[], datetime] = current_time):
        self.clock = clock

    def _require_issuer(self, db: Session, issuer: TokenData) -> None:
        if user_crud.get_role(db, issuer) not in STAFF_ROLES:
            logger.error('User %s cannot issue identity badges', issuer.user_id)
            raise Unauthorized('Only teachers and admins can issue identity badges')

    def _issue(
        self,
        db: Session,
        person_id: int,
        issuer: TokenData,
        valid_for: timedelta,
    ) -> schemas.IdentityBadge:
        person = user_crud.get_person(db, person_id)
        now = self.clock()
        expires_at = now + valid_for
        token = encode_token(
            TokenKind.IDENTITY_BADGE,
            IdentityBadgePayload(
                person_id=person.id,
                issued_by=issuer.user_id,
                issued_at=now,
                expires_at=expires_at,
            ),
            created_at=now,
        )

        person.badge_token = token
        person.badge_issued_at = now
        person.badge_expires_at = expires_at
        db.commit()
        logger.info(
            'Identity badge issued for %s by %s, expires at %s',
            person_id,
            issuer.user_id,
            expires_at,
        )

        dispatch_notification(
            person_id,
            NotificationEvent.BADGE_ISSUED,
            {'expires_at': expires_at.isoformat()},
        )
        return schemas.IdentityBadge(
            person_id=person_id,
            token=token,
            issued_at=now,
            expires_at=expires_at,
        )

    def issue(
        self,
        db: Session,
        person_id: int,
        issuer: TokenData,
        valid_for: timedelta,
    ) -> schemas.IdentityBadge:
        self._require_issuer(db, issuer)
        return self._issue(db, person_id, issuer, valid_for)

    def issue_batch(
        self,
        db: Session,
        person_ids: List[int],
        issuer: TokenData,
        valid_for: timedelta,
    ) -> List[schemas.BadgeResult]:
        self._require_issuer(db, issuer)

        results = []
        for person_id in person_ids:
            try:
                badge = self._issue(db, person_id, issuer, valid_for)
            except CheckInError as e:
                db.rollback()
                logger.error('Failed to issue badge for %s: %s', person_id, e.detail)
                error = schemas.BadgeError(
                    code=e.detail['code'], message=e.detail['message']
                )
                results.append(schemas.BadgeResult(person_id=person_id, error=error))
            except SQLAlchemyError as e:
                db.rollback()
                logger.error('Storage error issuing badge for %s: %s', person_id, e)
                error = schemas.BadgeError(
                    code='storage_error', message='Could not store badge'
                )
                results.append(schemas.BadgeResult(person_id=person_id, error=error))
            else:
                results.append(schemas.BadgeResult(person_id=person_id, badge=badge))

        issued = sum(1 for r in results if r.badge)
        logger.info('Issued %s of %s identity badges', issued, len(person_ids))
        return results

    def verify(self, token: str) -> schemas.BadgeVerification:
        try:
            decoded = decode_token(token)
        except MalformedToken as e:
            logger.info('Malformed badge token: %s', e)
            raise InvalidToken()

        if decoded.kind != TokenKind.IDENTITY_BADGE:
            raise WrongTokenKind()

        payload = decoded.payload
        if self.clock() > payload.expires_at:
            raise BadgeExpired()

        return schemas.BadgeVerification(
            person_id=payload.person_id, issued_at=payload.issued_at
        )


badge = BadgeIssuer()
