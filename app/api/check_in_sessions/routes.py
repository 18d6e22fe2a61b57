from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.api.check_in_sessions import schemas
from app.api.check_in_sessions.crud import check_in_session as check_in_session_crud
from app.core.database import get_db
from app.core.qr import generate_qr_base64
from app.core.security import TokenData, get_current_user

router = APIRouter()


@router.post(
    '/',
    response_model=schemas.CheckInSessionCreated,
    status_code=status.HTTP_201_CREATED,
)
def create_session(
    session: schemas.CheckInSessionCreate,
    current_user: TokenData = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    db_session = check_in_session_crud.create_session(
        db=db, obj=session, user=current_user
    )
    return schemas.CheckInSessionCreated(
        session=schemas.CheckInSession.from_model(
            db_session, check_in_session_crud.clock()
        ),
        token=db_session.token,
        qr_code=generate_qr_base64(db_session.token),
    )


@router.get('/{session_id}', response_model=schemas.CheckInSession)
def get_session(
    session_id: int,
    current_user: TokenData = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    db_session = check_in_session_crud.get_session(
        db=db, id=session_id, user=current_user
    )
    return schemas.CheckInSession.from_model(db_session, check_in_session_crud.clock())


@router.delete('/{session_id}', response_model=schemas.CheckInSession)
def end_session(
    session_id: int,
    current_user: TokenData = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    db_session = check_in_session_crud.deactivate(
        db=db, id=session_id, user=current_user
    )
    return schemas.CheckInSession.from_model(db_session, check_in_session_crud.clock())
