from datetime import timedelta

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.api.badges import schemas
from app.api.badges.crud import badge as badge_crud
from app.core.database import get_db
from app.core.qr import generate_qr_base64
from app.core.security import TokenData, get_current_user

router = APIRouter()


@router.post('/verify', response_model=schemas.BadgeVerification)
def verify_badge(
    data: schemas.BadgeVerify,
    current_user: TokenData = Depends(get_current_user),
):
    return badge_crud.verify(data.token)


@router.post('/batch', response_model=list[schemas.BadgeResult])
def issue_badges_batch(
    data: schemas.BadgeBatchIssue,
    current_user: TokenData = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return badge_crud.issue_batch(
        db=db,
        person_ids=data.person_ids,
        issuer=current_user,
        valid_for=timedelta(days=data.valid_for_days),
    )


@router.post(
    '/{person_id}',
    response_model=schemas.IdentityBadge,
    status_code=status.HTTP_201_CREATED,
)
def issue_badge(
    person_id: int,
    data: schemas.BadgeIssue = schemas.BadgeIssue(),
    current_user: TokenData = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    badge = badge_crud.issue(
        db=db,
        person_id=person_id,
        issuer=current_user,
        valid_for=timedelta(days=data.valid_for_days),
    )
    badge.qr_code = generate_qr_base64(badge.token)
    return badge
