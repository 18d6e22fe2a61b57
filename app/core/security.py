from datetime import timedelta
from enum import Enum
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from pydantic import BaseModel

from app.core.config import settings
from app.core.logger import logger
from app.core.utils import current_time


class Token(BaseModel):
    access_token: str
    token_type: str


class TokenData(BaseModel):
    user_id: int
    email: str


class Role(str, Enum):
    STUDENT = 'student'
    TEACHER = 'teacher'
    ADMIN = 'admin'


# Roles allowed to run check-in sessions and mark attendance by hand
STAFF_ROLES = (Role.TEACHER, Role.ADMIN)


# Constants
ALGORITHM = 'HS256'
ACCESS_TOKEN_EXPIRE_MINUTES = 30

# System token used for internal service operations
# user_id=0 represents a system-level operation rather than a real user
SYSTEM_TOKEN = TokenData(user_id=0, email='')

# OAuth2 scheme
oauth2_scheme = OAuth2PasswordBearer(tokenUrl='auth/token')


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    if expires_delta:
        to_encode.update({'exp': current_time() + expires_delta})

    encoded_jwt = jwt.encode(to_encode, settings.SECRET_KEY, algorithm=ALGORITHM)
    return encoded_jwt


async def get_current_user(token: str = Depends(oauth2_scheme)) -> TokenData:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail='Could not validate credentials',
        headers={'WWW-Authenticate': 'Bearer'},
    )

    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[ALGORITHM])
    except jwt.ExpiredSignatureError:
        logger.error('Token has expired')
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail='Token has expired',
            headers={'WWW-Authenticate': 'Bearer'},
        )
    except JWTError as e:
        logger.error('Error decoding token: %s', str(e))
        raise credentials_exception

    user_id: int = payload.get('user_id')
    email: str = payload.get('email')
    if user_id is None or email is None:
        logger.error('Invalid token payload: %s', payload)
        raise credentials_exception

    return TokenData(user_id=user_id, email=email)
