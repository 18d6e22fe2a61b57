from typing import Optional

from sqlalchemy.orm import Session, object_session

from app.api.base_crud import CRUDBase
from app.core.exceptions.check_in_exceptions import PersonNotFound
from app.core.security import SYSTEM_TOKEN, Role, TokenData

from . import models, schemas


class CRUDUser(CRUDBase[models.User, schemas.UserCreate, schemas.UserCreate]):
    def _check_permission(self, db_obj: models.User, user: TokenData) -> bool:
        if user == SYSTEM_TOKEN or db_obj.id == user.user_id:
            return True
        return self.is_staff(object_session(db_obj), user)

    def get_by_id(self, db: Session, id: int) -> Optional[models.User]:
        return db.query(self.model).filter(self.model.id == id).first()

    def get_by_email(self, db: Session, email: str) -> Optional[models.User]:
        email = email.lower().strip()
        return db.query(self.model).filter(self.model.email == email).first()

    def get_person(self, db: Session, id: int) -> models.User:
        person = self.get_by_id(db, id)
        if not person:
            raise PersonNotFound(f'Person {id} not found')
        return person

    def get_role(self, db: Session, user: TokenData) -> Optional[Role]:
        """Role of the caller, or None when the caller has no user record."""
        if user == SYSTEM_TOKEN:
            return Role.ADMIN
        person = self.get_by_id(db, user.user_id)
        if not person:
            return None
        return Role(person.role)

    def is_staff(self, db: Session, user: TokenData) -> bool:
        return self.get_role(db, user) in (Role.TEACHER, Role.ADMIN)

    def is_admin(self, db: Session, user: TokenData) -> bool:
        return self.get_role(db, user) == Role.ADMIN


user = CRUDUser(models.User)
