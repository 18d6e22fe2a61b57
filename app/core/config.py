import os
from enum import Enum

from dotenv import load_dotenv

load_dotenv()


class Environment(str, Enum):
    TEST = 'test'
    PRODUCTION = 'production'
    DEVELOP = 'develop'


class Settings:
    ENVIRONMENT: Environment = Environment(os.getenv('ENVIRONMENT') or Environment.TEST)
    DB_USERNAME: str = os.getenv('DB_USERNAME')
    DB_PASSWORD: str = os.getenv('DB_PASSWORD')
    DB_HOST: str = os.getenv('DB_HOST')
    DB_PORT: str = os.getenv('DB_PORT')
    DB_NAME: str = os.getenv('DB_NAME')

    SQLALCHEMY_TEST_DATABASE_URL = 'sqlite:///:memory:'
    DATABASE_URL: str = (
        f'postgresql://{DB_USERNAME}:{DB_PASSWORD}@{DB_HOST}:{DB_PORT}/{DB_NAME}'
        if ENVIRONMENT != Environment.TEST
        else SQLALCHEMY_TEST_DATABASE_URL
    )

    SECRET_KEY: str = os.getenv('SECRET_KEY', '')
    FRONTEND_URL: str = os.getenv('FRONTEND_URL')

    # Check-in sessions
    CHECK_IN_EXPIRY_MINUTES: int = int(os.getenv('CHECK_IN_EXPIRY_MINUTES', '10'))
    CHECK_IN_MAX_EXPIRY_MINUTES: int = int(
        os.getenv('CHECK_IN_MAX_EXPIRY_MINUTES', '240')
    )
    CHECK_IN_SESSION_RETENTION_DAYS: int = int(
        os.getenv('CHECK_IN_SESSION_RETENTION_DAYS', '30')
    )
    DEFAULT_FENCE_RADIUS_METERS: float = float(
        os.getenv('DEFAULT_FENCE_RADIUS_METERS', '100')
    )

    # Identity badges
    BADGE_VALID_DAYS: int = int(os.getenv('BADGE_VALID_DAYS', '365'))

    # Attendance analytics
    LOW_ATTENDANCE_THRESHOLD: float = float(
        os.getenv('LOW_ATTENDANCE_THRESHOLD', '75')
    )

    NOTIFICATIONS_URL: str = os.getenv('NOTIFICATIONS_URL')
    NOTIFICATIONS_API_KEY: str = os.getenv('NOTIFICATIONS_API_KEY')


settings = Settings()
