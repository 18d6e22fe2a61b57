from datetime import date
from typing import List, Optional

from sqlalchemy import case, func
from sqlalchemy.orm import Session, object_session

from app.api.base_crud import CRUDBase
from app.api.users.crud import user as user_crud
from app.api.users.models import User
from app.core.exceptions.check_in_exceptions import StorageConflict, Unauthorized
from app.core.logger import logger
from app.core.notifications import NotificationEvent, dispatch_notification
from app.core.security import TokenData

from . import models, schemas


class CRUDAttendance(
    CRUDBase[
        models.AttendanceRecord,
        schemas.InternalAttendanceCreate,
        schemas.AttendanceUpdate,
    ]
):
    def _check_permission(
        self, db_obj: models.AttendanceRecord, user: TokenData
    ) -> bool:
        if db_obj.participant_id == user.user_id:
            return True
        return user_crud.is_staff(object_session(db_obj), user)

    def _require_staff(
        self, db: Session, user: TokenData, action: str = 'mark attendance'
    ) -> None:
        if not user_crud.is_staff(db, user):
            logger.error('User %s is not allowed to %s', user.user_id, action)
            raise Unauthorized(f'Only teachers and admins can {action}')

    def get_for_key(
        self,
        db: Session,
        participant_id: int,
        activity_id: int,
        day: date,
    ) -> Optional[models.AttendanceRecord]:
        return (
            db.query(self.model)
            .filter(
                self.model.participant_id == participant_id,
                self.model.activity_id == activity_id,
                self.model.date == day,
            )
            .first()
        )

    def find(
        self,
        db: Session,
        skip: int = 0,
        limit: int = 100,
        filters: Optional[schemas.AttendanceFilter] = None,
        user: Optional[TokenData] = None,
    ) -> List[models.AttendanceRecord]:
        filters = filters or schemas.AttendanceFilter()
        if user and not user_crud.is_staff(db, user):
            # Students only see their own attendance
            filters.participant_id = user.user_id

        query = db.query(self.model)
        query = self._apply_filters(
            query, filters.model_copy(update={'start_date': None, 'end_date': None})
        )
        if filters.start_date:
            query = query.filter(self.model.date >= filters.start_date)
        if filters.end_date:
            query = query.filter(self.model.date <= filters.end_date)

        query = query.order_by(self.model.date.desc(), self.model.id.desc())
        return query.offset(skip).limit(limit).all()

    def mark_manual(
        self,
        db: Session,
        obj: schemas.ManualAttendance,
        user: TokenData,
    ) -> models.AttendanceRecord:
        """Create the record for the key, or overwrite status and notes if it exists."""
        self._require_staff(db, user)
        user_crud.get_person(db, obj.participant_id)

        now = self.clock()
        to_create = schemas.InternalAttendanceCreate(
            **obj.model_dump(),
            method=schemas.AttendanceMethod.MANUAL,
            recorded_by=user.user_id,
            recorded_at=now,
        )
        try:
            return self.create(db, to_create)
        except StorageConflict:
            logger.info(
                'Attendance already recorded for %s on activity %s at %s, updating',
                obj.participant_id,
                obj.activity_id,
                obj.date,
            )

        record = self.get_for_key(db, obj.participant_id, obj.activity_id, obj.date)
        record.status = obj.status.value
        if obj.notes is not None:
            record.notes = obj.notes
        record.recorded_by = user.user_id
        record.recorded_at = now
        db.commit()
        db.refresh(record)
        return record

    def update(
        self,
        db: Session,
        id: int,
        obj: schemas.AttendanceUpdate,
        user: TokenData,
    ) -> models.AttendanceRecord:
        self._require_staff(db, user)
        return super().update(db, id, obj, user)

    def statistics(
        self,
        db: Session,
        participant_id: int,
        user: TokenData,
        subject_id: Optional[int] = None,
    ) -> schemas.AttendanceStatistics:
        if participant_id != user.user_id:
            self._require_staff(db, user)

        query = db.query(self.model).filter(
            self.model.participant_id == participant_id
        )
        if subject_id is not None:
            query = query.filter(self.model.subject_id == subject_id)
        records = query.all()

        counts = {s: 0 for s in schemas.AttendanceStatus}
        for record in records:
            counts[schemas.AttendanceStatus(record.status)] += 1

        total = len(records)
        present = counts[schemas.AttendanceStatus.PRESENT]
        percentage = round(present / total * 100, 2) if total else 0.0
        return schemas.AttendanceStatistics(
            participant_id=participant_id,
            total=total,
            present=present,
            absent=counts[schemas.AttendanceStatus.ABSENT],
            late=counts[schemas.AttendanceStatus.LATE],
            excused=counts[schemas.AttendanceStatus.EXCUSED],
            percentage=percentage,
        )

    def low_attendance(
        self,
        db: Session,
        user: TokenData,
        threshold: float,
        subject_id: Optional[int] = None,
    ) -> List[schemas.LowAttendanceStudent]:
        """Participants below ``threshold`` percent present, lowest first."""
        self._require_staff(db, user, 'view attendance analytics')

        total = func.count(self.model.id)
        present = func.sum(
            case(
                (self.model.status == schemas.AttendanceStatus.PRESENT.value, 1),
                else_=0,
            )
        )
        query = (
            db.query(User, total.label('total'), present.label('present'))
            .select_from(self.model)
            .join(User, User.id == self.model.participant_id)
        )
        if subject_id is not None:
            query = query.filter(self.model.subject_id == subject_id)
        query = (
            query.group_by(User.id)
            .having(present * 100.0 < total * threshold)
            .order_by((present * 1.0 / total).asc(), User.id)
        )

        return [
            schemas.LowAttendanceStudent(
                participant_id=person.id,
                email=person.email,
                full_name=person.full_name,
                roll_number=person.roll_number,
                total=count,
                present=present_count,
                percentage=round(present_count / count * 100, 2),
            )
            for person, count, present_count in query.all()
        ]

    def send_low_attendance_alerts(
        self,
        db: Session,
        obj: schemas.LowAttendanceAlert,
        user: TokenData,
    ) -> schemas.LowAttendanceAlertResult:
        students = self.low_attendance(db, user, obj.threshold, obj.subject_id)
        for student in students:
            dispatch_notification(
                student.participant_id,
                NotificationEvent.LOW_ATTENDANCE,
                {
                    'percentage': student.percentage,
                    'threshold': obj.threshold,
                    'subject_id': obj.subject_id,
                },
            )

        logger.info(
            'Low attendance alerts sent to %s participant(s) by %s (below %s%%)',
            len(students),
            user.user_id,
            obj.threshold,
        )
        return schemas.LowAttendanceAlertResult(
            threshold=obj.threshold, count=len(students)
        )


attendance = CRUDAttendance(models.AttendanceRecord)
