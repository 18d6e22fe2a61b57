from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.api.attendance.crud import attendance as attendance_crud
from app.api.badges.crud import badge as badge_crud
from app.api.check_in.crud import check_in as check_in_crud
from app.api.check_in_sessions.crud import check_in_session as check_in_session_crud
from app.api.users.models import User
from app.core.config import Environment, settings
from app.core.database import Base, get_db
from app.core.security import Role
from main import app

FROZEN_NOW = datetime(2025, 3, 10, 9, 0, 0)


@pytest.fixture(scope='session', autouse=True)
def check_test_environment():
    if settings.ENVIRONMENT != Environment.TEST:
        raise RuntimeError(
            f'Tests can only be executed in test environment. Current environment: {settings.ENVIRONMENT}'
        )


@pytest.fixture(scope='session', autouse=True)
def setup_test_secret_key():
    """Tokens are signed with SECRET_KEY, which is empty unless configured"""
    original_secret_key = settings.SECRET_KEY
    settings.SECRET_KEY = 'test-secret-key-for-signing-check-in-tokens'
    yield
    settings.SECRET_KEY = original_secret_key


@pytest.fixture(scope='session')
def test_db_engine():
    engine = create_engine(
        settings.SQLALCHEMY_TEST_DATABASE_URL,
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope='function')
def db_session(test_db_engine):
    """Create a fresh database session for each test"""
    TestingSessionLocal = sessionmaker(
        autocommit=False, autoflush=False, bind=test_db_engine
    )

    # Drop and recreate all tables before each test
    Base.metadata.drop_all(bind=test_db_engine)
    Base.metadata.create_all(bind=test_db_engine)

    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(scope='function')
def client(db_session):
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


class FrozenClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


@pytest.fixture
def frozen_clock(monkeypatch):
    """Pin every clock used by the check-in engine to FROZEN_NOW"""
    clock = FrozenClock(FROZEN_NOW)
    for crud in (check_in_session_crud, check_in_crud, attendance_crud, badge_crud):
        monkeypatch.setattr(crud, 'clock', clock)
    return clock


def get_auth_headers(user: User) -> dict:
    """Generate auth headers for a specific user"""
    token = user.get_authorization()
    return {'Authorization': f'{token.token_type} {token.access_token}'}


@pytest.fixture(scope='function')
def create_test_user(db_session):
    """Factory fixture to create test users"""

    def _create_user(name: str, role: Role = Role.STUDENT):
        user = User(
            email=f'{name}@example.com',
            first_name=name.capitalize(),
            last_name='User',
            role=role.value,
        )
        db_session.add(user)
        db_session.commit()
        return user

    yield _create_user


@pytest.fixture
def test_teacher(create_test_user):
    return create_test_user('teacher', Role.TEACHER)


@pytest.fixture
def test_student(create_test_user):
    return create_test_user('student', Role.STUDENT)


@pytest.fixture
def test_admin(create_test_user):
    return create_test_user('admin', Role.ADMIN)


@pytest.fixture
def teacher_headers(test_teacher):
    return get_auth_headers(test_teacher)


@pytest.fixture
def student_headers(test_student):
    return get_auth_headers(test_student)


@pytest.fixture
def admin_headers(test_admin):
    return get_auth_headers(test_admin)


@pytest.fixture
def create_session(client, teacher_headers, frozen_clock):
    """Factory fixture that opens a check-in session through the API"""

    def _create_session(headers=None, **data):
        payload = {'activity_id': 1, **data}
        response = client.post(
            '/check-in/sessions/', json=payload, headers=headers or teacher_headers
        )
        assert response.status_code == 201, response.json()
        return response.json()

    return _create_session


@pytest.fixture
def file_db(tmp_path):
    """
    File backed database shared by many connections.

    Transactions start with BEGIN IMMEDIATE so concurrent writers queue on
    the database lock instead of failing on lock upgrades.
    """
    engine = create_engine(
        f'sqlite:///{tmp_path / "attendance.db"}',
        connect_args={'check_same_thread': False, 'timeout': 30},
    )

    @event.listens_for(engine, 'connect')
    def do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, 'begin')
    def do_begin(conn):
        conn.exec_driver_sql('BEGIN IMMEDIATE')

    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()
