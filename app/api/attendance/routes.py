from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.api.attendance import schemas
from app.api.attendance.crud import attendance as attendance_crud
from app.core.config import settings
from app.core.database import get_db
from app.core.security import TokenData, get_current_user

router = APIRouter()


@router.get('/', response_model=list[schemas.AttendanceRecord])
def get_attendance(
    current_user: TokenData = Depends(get_current_user),
    filters: schemas.AttendanceFilter = Depends(),
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=100, ge=1, le=100),
    db: Session = Depends(get_db),
):
    return attendance_crud.find(
        db=db,
        skip=skip,
        limit=limit,
        filters=filters,
        user=current_user,
    )


@router.post(
    '/manual',
    response_model=schemas.AttendanceRecord,
    status_code=status.HTTP_201_CREATED,
)
def mark_attendance_manually(
    attendance: schemas.ManualAttendance,
    current_user: TokenData = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return attendance_crud.mark_manual(db=db, obj=attendance, user=current_user)


@router.get(
    '/students/{participant_id}/statistics',
    response_model=schemas.AttendanceStatistics,
)
def get_student_statistics(
    participant_id: int,
    subject_id: Optional[int] = None,
    current_user: TokenData = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return attendance_crud.statistics(
        db=db,
        participant_id=participant_id,
        user=current_user,
        subject_id=subject_id,
    )


@router.get(
    '/analytics/low-attendance',
    response_model=list[schemas.LowAttendanceStudent],
)
def get_low_attendance(
    threshold: float = Query(default=settings.LOW_ATTENDANCE_THRESHOLD, ge=0, le=100),
    subject_id: Optional[int] = None,
    current_user: TokenData = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return attendance_crud.low_attendance(
        db=db,
        user=current_user,
        threshold=threshold,
        subject_id=subject_id,
    )


@router.post(
    '/alerts/low-attendance',
    response_model=schemas.LowAttendanceAlertResult,
)
def send_low_attendance_alerts(
    alert: schemas.LowAttendanceAlert = schemas.LowAttendanceAlert(),
    current_user: TokenData = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return attendance_crud.send_low_attendance_alerts(
        db=db, obj=alert, user=current_user
    )


@router.get('/{attendance_id}', response_model=schemas.AttendanceRecord)
def get_attendance_record(
    attendance_id: int,
    current_user: TokenData = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return attendance_crud.get(db=db, id=attendance_id, user=current_user)


@router.put('/{attendance_id}', response_model=schemas.AttendanceRecord)
def update_attendance(
    attendance_id: int,
    attendance: schemas.AttendanceUpdate,
    current_user: TokenData = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return attendance_crud.update(
        db=db, id=attendance_id, obj=attendance, user=current_user
    )
