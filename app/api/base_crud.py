from datetime import datetime
from typing import Callable, Generic, List, Optional, Type, TypeVar

from fastapi import HTTPException, status
from psycopg2.errors import UniqueViolation
from pydantic import BaseModel
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.ext.declarative import DeclarativeMeta
from sqlalchemy.orm import Query, Session

from app.core.exceptions.check_in_exceptions import StorageConflict, StorageUnavailable
from app.core.logger import logger
from app.core.security import SYSTEM_TOKEN, TokenData
from app.core.utils import current_time

ModelType = TypeVar('ModelType', bound=DeclarativeMeta)
CreateSchemaType = TypeVar('CreateSchemaType', bound=BaseModel)
UpdateSchemaType = TypeVar('UpdateSchemaType', bound=BaseModel)


def _conflict_detail(e: IntegrityError, resource: str) -> str:
    orig = str(e.orig)
    detail = 'Integrity error'
    if isinstance(e.orig, UniqueViolation) and 'DETAIL' in orig:
        error_detail = orig.split('DETAIL: ')[1].split('\n')[0].strip()
        if '(' in error_detail and ')' in error_detail:
            keys = error_detail.split('(')[1].split(')')[0]
            detail = f'It already exists a {resource} with this {keys}'
    return detail


class CRUDBase(Generic[ModelType, CreateSchemaType, UpdateSchemaType]):
    def __init__(
        self,
        model: Type[ModelType],
        clock: Callable[[], datetime] = current_time,
    ):
        self.model = model
        self.clock = clock

    def _check_permission(self, db_obj: ModelType, user: TokenData) -> bool:
        """Override this method to implement permission checks"""
        return user == SYSTEM_TOKEN

    def _apply_filters(
        self, query: Query, filters: Optional[BaseModel] = None
    ) -> Query:
        """Override this method to implement filter logic"""
        if not filters:
            return query

        for field, value in filters.model_dump(exclude_none=True).items():
            op = 'eq'
            if field.endswith('_in') and isinstance(value, list):
                field = field[:-3]
                op = 'in_'
            if hasattr(self.model, field) and value is not None:
                if op == 'in_':
                    query = query.filter(getattr(self.model, field).in_(value))
                else:
                    query = query.filter(getattr(self.model, field) == value)
        return query

    def create(
        self,
        db: Session,
        obj: CreateSchemaType,
        user: Optional[TokenData] = None,
    ) -> ModelType:
        """
        Insert a new record and commit.

        Uniqueness violations raise StorageConflict after rolling back, so the
        caller can treat the constraint as the source of truth for duplicates.
        """
        resource = self.model.__name__
        try:
            obj_data = obj.model_dump()
            model_columns = self.model.__table__.columns.keys()
            filtered_data = {k: v for k, v in obj_data.items() if k in model_columns}

            db_obj = self.model(**filtered_data)
            db.add(db_obj)
            db.commit()
            db.refresh(db_obj)
            return db_obj
        except IntegrityError as e:
            db.rollback()
            detail = _conflict_detail(e, resource)
            logger.info('Conflict creating %s: %s', resource, detail)
            raise StorageConflict(detail)
        except OperationalError as e:
            db.rollback()
            logger.error('Storage unavailable creating %s: %s', resource, str(e))
            raise StorageUnavailable()
        except Exception as e:
            logger.error('SQL error creating %s: %s', resource, str(e))
            db.rollback()
            raise e

    def get(self, db: Session, id: int, user: TokenData) -> ModelType:
        """Get a single record by id with permission check."""
        obj = db.query(self.model).filter(self.model.id == id).first()
        if not obj:
            logger.error('%s %s not found', self.model.__name__, id)
            raise HTTPException(
                status_code=404, detail=f'{self.model.__name__} not found'
            )
        if not self._check_permission(obj, user):
            err_msg = f'Not authorized to access this {self.model.__name__}: {obj.id}'
            logger.error(err_msg)
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=err_msg)
        return obj

    def find(
        self,
        db: Session,
        skip: int = 0,
        limit: int = 100,
        filters: Optional[BaseModel] = None,
        user: Optional[TokenData] = None,
        sort_by: str = 'created_at',
        sort_order: str = 'desc',
    ) -> List[ModelType]:
        """Get multiple records with pagination, filters and sorting."""
        query = db.query(self.model)
        query = self._apply_filters(query, filters)

        if not hasattr(self.model, sort_by):
            raise HTTPException(
                status_code=400, detail=f'Invalid sort field: {sort_by}'
            )

        order_by = getattr(self.model, sort_by)
        if sort_order == 'desc':
            order_by = order_by.desc()

        query = query.order_by(order_by)
        return query.offset(skip).limit(limit).all()

    def update(
        self,
        db: Session,
        id: int,
        obj: UpdateSchemaType,
        user: TokenData,
    ) -> ModelType:
        """Update a record."""
        db_obj = self.get(db, id, user)  # This will raise 404 if not found
        obj_data = obj.model_dump(exclude_unset=True)

        for field, value in obj_data.items():
            setattr(db_obj, field, value)

        db.commit()
        db.refresh(db_obj)
        return db_obj
