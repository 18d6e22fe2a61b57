from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.users import schemas
from app.api.users.crud import user as user_crud
from app.core.database import get_db
from app.core.security import TokenData, get_current_user

router = APIRouter()


@router.get('/me', response_model=schemas.User)
def get_me(
    current_user: TokenData = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return user_crud.get(db=db, id=current_user.user_id, user=current_user)


@router.get('/{user_id}', response_model=schemas.User)
def get_user(
    user_id: int,
    current_user: TokenData = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return user_crud.get(db=db, id=user_id, user=current_user)
