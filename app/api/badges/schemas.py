from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from app.core.config import settings


class IdentityBadge(BaseModel):
    person_id: int
    token: str
    issued_at: datetime
    expires_at: datetime
    qr_code: Optional[str] = None


class BadgeIssue(BaseModel):
    valid_for_days: int = Field(default_factory=lambda: settings.BADGE_VALID_DAYS, ge=1)


class BadgeBatchIssue(BadgeIssue):
    person_ids: List[int] = Field(min_length=1)


class BadgeError(BaseModel):
    code: str
    message: str


class BadgeResult(BaseModel):
    person_id: int
    badge: Optional[IdentityBadge] = None
    error: Optional[BadgeError] = None


class BadgeVerify(BaseModel):
    token: str


class BadgeVerification(BaseModel):
    person_id: int
    issued_at: datetime
