from typing import Optional

from fastapi import HTTPException, status


class CheckInError(HTTPException):
    """
    Base class for expected check-in failures.

    The response detail is always ``{'code': ..., 'message': ...}`` plus any
    extra fields, so clients can branch on ``code`` without parsing text.
    """

    http_status: int = status.HTTP_400_BAD_REQUEST
    code: str = 'check_in_error'
    message: str = 'Check-in error'

    def __init__(self, message: Optional[str] = None, **extra):
        detail = {'code': self.code, 'message': message or self.message, **extra}
        super().__init__(self.http_status, detail)


class InvalidToken(CheckInError):
    code = 'invalid_token'
    message = 'Invalid token'


class WrongTokenKind(InvalidToken):
    code = 'wrong_token_kind'
    message = 'Token is not valid for this operation'


class SessionNotFound(CheckInError):
    http_status = status.HTTP_404_NOT_FOUND
    code = 'session_not_found'
    message = 'Check-in session not found'


class SessionAlreadyActive(CheckInError):
    http_status = status.HTTP_409_CONFLICT
    code = 'session_already_active'
    message = 'An active check-in session already exists for this activity and date'


class SessionExpiredOrClosed(CheckInError):
    http_status = status.HTTP_410_GONE
    code = 'session_expired_or_closed'
    message = 'Check-in session has expired or was closed'


class LocationRequired(CheckInError):
    code = 'location_required'
    message = 'Location is required to check in to this session'


class OutOfRange(CheckInError):
    http_status = status.HTTP_403_FORBIDDEN
    code = 'out_of_range'

    def __init__(self, distance_meters: float, radius_meters: float):
        super().__init__(
            f'You must be within {radius_meters:.0f}m of the location. '
            f'Current distance: {distance_meters:.0f}m',
            distance_meters=round(distance_meters, 2),
            radius_meters=radius_meters,
        )


class Unauthorized(CheckInError):
    http_status = status.HTTP_403_FORBIDDEN
    code = 'unauthorized'
    message = 'Not authorized'


class PersonNotFound(CheckInError):
    http_status = status.HTTP_404_NOT_FOUND
    code = 'person_not_found'
    message = 'Person not found'


class BadgeExpired(CheckInError):
    http_status = status.HTTP_410_GONE
    code = 'badge_expired'
    message = 'Identity badge has expired'


class StorageConflict(CheckInError):
    """Uniqueness violation raised by an atomic insert."""

    http_status = status.HTTP_409_CONFLICT
    code = 'storage_conflict'
    message = 'Integrity error'


class StorageUnavailable(CheckInError):
    http_status = status.HTTP_503_SERVICE_UNAVAILABLE
    code = 'storage_unavailable'
    message = 'Storage is temporarily unavailable'
