from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.check_in import schemas
from app.api.check_in.crud import check_in as check_in_crud
from app.core.database import get_db
from app.core.security import TokenData, get_current_user

router = APIRouter()


@router.post('/scan', response_model=schemas.CheckInResponse)
def scan_check_in(
    check_in: schemas.NewCheckIn,
    current_user: TokenData = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return check_in_crud.redeem(
        db=db,
        token=check_in.token,
        participant=current_user,
        location=check_in.location,
    )
