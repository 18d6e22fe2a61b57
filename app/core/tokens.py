"""
Opaque verification tokens.

A token is an HS256-signed envelope ``{kind, payload, created_at, nonce}``.
The payload shape is fixed per ``kind``. The codec knows nothing about expiry
or business rules: callers decide what a decoded token means.
"""

import secrets
from datetime import date, datetime
from enum import Enum
from typing import Dict, Optional, Type, Union

import jwt
from pydantic import BaseModel, Field, ValidationError

from app.core.config import settings
from app.core.utils import current_time

ALGORITHM = 'HS256'
NONCE_BYTES = 16


class TokenKind(str, Enum):
    SESSION_CHECKIN = 'session-checkin'
    IDENTITY_BADGE = 'identity-badge'


class SessionCheckinPayload(BaseModel):
    activity_id: int
    presenter_id: int
    date: date


class IdentityBadgePayload(BaseModel):
    person_id: int
    issued_by: int
    issued_at: datetime
    expires_at: datetime


TokenPayload = Union[SessionCheckinPayload, IdentityBadgePayload]

PAYLOAD_TYPES: Dict[TokenKind, Type[BaseModel]] = {
    TokenKind.SESSION_CHECKIN: SessionCheckinPayload,
    TokenKind.IDENTITY_BADGE: IdentityBadgePayload,
}


class MalformedToken(Exception):
    """The string could not be decoded into a known token."""


class _Envelope(BaseModel):
    kind: TokenKind
    payload: dict
    created_at: datetime
    nonce: str = Field(min_length=NONCE_BYTES * 2)


class DecodedToken(BaseModel):
    kind: TokenKind
    payload: TokenPayload
    created_at: datetime
    nonce: str


def encode_token(
    kind: TokenKind,
    payload: TokenPayload,
    *,
    created_at: Optional[datetime] = None,
) -> str:
    if not isinstance(payload, PAYLOAD_TYPES[kind]):
        raise ValueError(f'Payload {type(payload).__name__} does not match {kind}')

    envelope = {
        'kind': kind.value,
        'payload': payload.model_dump(mode='json'),
        'created_at': (created_at or current_time()).isoformat(),
        'nonce': secrets.token_hex(NONCE_BYTES),
    }
    return jwt.encode(envelope, settings.SECRET_KEY, algorithm=ALGORITHM)


def decode_token(token: str) -> DecodedToken:
    """Decode a token, raising MalformedToken for any unusable input."""
    if not isinstance(token, str) or not token:
        raise MalformedToken('Token must be a non-empty string')

    try:
        claims = jwt.decode(token, settings.SECRET_KEY, algorithms=[ALGORITHM])
    except jwt.InvalidTokenError as e:
        raise MalformedToken(str(e)) from e

    try:
        envelope = _Envelope.model_validate(claims)
        payload = PAYLOAD_TYPES[envelope.kind].model_validate(envelope.payload)
    except ValidationError as e:
        raise MalformedToken(str(e)) from e

    return DecodedToken(
        kind=envelope.kind,
        payload=payload,
        created_at=envelope.created_at,
        nonce=envelope.nonce,
    )
