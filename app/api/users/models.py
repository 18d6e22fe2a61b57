from sqlalchemy import Column, DateTime, Integer, String, Text, event

from app.core.database import Base
from app.core.security import Role, Token, create_access_token
from app.core.utils import current_time


class User(Base):
    __tablename__ = 'users'

    id = Column(
        Integer,
        primary_key=True,
        autoincrement=True,
        unique=True,
        index=True,
    )
    email = Column(String, unique=True, index=True, nullable=False)
    first_name = Column(String)
    last_name = Column(String)
    role = Column(String, nullable=False, default=Role.STUDENT.value)
    roll_number = Column(String, nullable=True)
    department = Column(String, nullable=True)

    # Current identity badge. Reissuing overwrites it.
    badge_token = Column(Text, nullable=True)
    badge_issued_at = Column(DateTime, nullable=True)
    badge_expires_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=current_time)
    updated_at = Column(DateTime, default=current_time, onupdate=current_time)

    @property
    def full_name(self) -> str:
        return ' '.join(p for p in (self.first_name, self.last_name) if p)

    def get_authorization(self) -> Token:
        data = {'user_id': self.id, 'email': self.email}
        return Token(
            access_token=create_access_token(data=data),
            token_type='Bearer',
        )


@event.listens_for(User, 'before_insert')
def clean_email(mapper, connection, target):
    if target.email:
        target.email = target.email.lower().strip()
