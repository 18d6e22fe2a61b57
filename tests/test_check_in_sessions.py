from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta

from fastapi import status

from app.api.check_in_sessions.crud import check_in_session as check_in_session_crud
from app.api.check_in_sessions.models import CheckInSession
from app.api.check_in_sessions.schemas import CheckInSessionCreate
from app.api.users.models import User
from app.core.exceptions.check_in_exceptions import SessionAlreadyActive
from app.core.security import Role, TokenData
from app.core.tokens import SessionCheckinPayload, TokenKind, decode_token
from tests.conftest import FROZEN_NOW, get_auth_headers


def test_create_session(client, teacher_headers, test_teacher, frozen_clock):
    response = client.post(
        '/check-in/sessions/',
        json={'activity_id': 1, 'subject_id': 4},
        headers=teacher_headers,
    )

    assert response.status_code == status.HTTP_201_CREATED
    data = response.json()
    session = data['session']
    assert session['activity_id'] == 1
    assert session['subject_id'] == 4
    assert session['presenter_id'] == test_teacher.id
    assert session['date'] == FROZEN_NOW.date().isoformat()
    assert session['is_active'] is True
    assert session['geofence'] is None
    assert session['participant_ids'] == []
    assert datetime.fromisoformat(session['expires_at']) == FROZEN_NOW + timedelta(
        minutes=10
    )
    assert data['qr_code']

    decoded = decode_token(data['token'])
    assert decoded.kind == TokenKind.SESSION_CHECKIN
    assert decoded.payload == SessionCheckinPayload(
        activity_id=1, presenter_id=test_teacher.id, date=FROZEN_NOW.date()
    )


def test_create_session_with_fence_and_expiry(create_session):
    data = create_session(
        expiry_minutes=30,
        fence={'latitude': 19.076, 'longitude': 72.8777},
    )

    session = data['session']
    assert datetime.fromisoformat(session['expires_at']) == FROZEN_NOW + timedelta(
        minutes=30
    )
    assert session['geofence'] == {
        'center': {'latitude': 19.076, 'longitude': 72.8777},
        'radius_meters': 100.0,
    }


def test_create_session_expiry_out_of_bounds(client, teacher_headers, frozen_clock):
    response = client.post(
        '/check-in/sessions/',
        json={'activity_id': 1, 'expiry_minutes': 0},
        headers=teacher_headers,
    )
    assert response.status_code == 422


def test_second_active_session_rejected(client, create_session, teacher_headers):
    create_session()

    response = client.post(
        '/check-in/sessions/', json={'activity_id': 1}, headers=teacher_headers
    )
    assert response.status_code == status.HTTP_409_CONFLICT
    assert response.json()['detail']['code'] == 'session_already_active'


def test_sessions_for_other_activity_or_date_allowed(create_session):
    first = create_session()
    other_activity = create_session(activity_id=2)
    other_date = create_session(date='2025-03-11')

    ids = {first['session']['id'], other_activity['session']['id']}
    ids.add(other_date['session']['id'])
    assert len(ids) == 3


def test_new_session_after_deactivation(client, create_session, teacher_headers):
    first = create_session()
    response = client.delete(
        f'/check-in/sessions/{first["session"]["id"]}', headers=teacher_headers
    )
    assert response.status_code == status.HTTP_200_OK
    assert response.json()['is_active'] is False

    second = create_session()
    assert second['session']['id'] != first['session']['id']
    assert second['token'] != first['token']


def test_expired_session_does_not_block_new_one(
    client, create_session, frozen_clock, db_session
):
    first = create_session()
    frozen_clock.advance(minutes=11)

    second = create_session()
    assert second['session']['is_active'] is True

    stale = db_session.get(CheckInSession, first['session']['id'])
    db_session.refresh(stale)
    assert stale.is_active is False


def test_expired_session_reported_inactive(
    client, create_session, frozen_clock, teacher_headers, db_session
):
    data = create_session()
    frozen_clock.advance(minutes=10, seconds=1)

    response = client.get(
        f'/check-in/sessions/{data["session"]["id"]}', headers=teacher_headers
    )
    assert response.status_code == status.HTTP_200_OK
    assert response.json()['is_active'] is False

    # Not reaped yet
    stored = db_session.get(CheckInSession, data['session']['id'])
    assert stored.is_active is True


def test_student_cannot_create_session(client, student_headers, frozen_clock):
    response = client.post(
        '/check-in/sessions/', json={'activity_id': 1}, headers=student_headers
    )
    assert response.status_code == status.HTTP_403_FORBIDDEN
    assert response.json()['detail']['code'] == 'unauthorized'


def test_teacher_cannot_create_session_for_other_presenter(
    client, create_test_user, teacher_headers, frozen_clock
):
    from app.core.security import Role

    other = create_test_user('other-teacher', Role.TEACHER)
    response = client.post(
        '/check-in/sessions/',
        json={'activity_id': 1, 'presenter_id': other.id},
        headers=teacher_headers,
    )
    assert response.status_code == status.HTTP_403_FORBIDDEN


def test_admin_creates_session_for_presenter(
    client, create_session, admin_headers, test_teacher, teacher_headers
):
    data = create_session(headers=admin_headers, presenter_id=test_teacher.id)
    assert data['session']['presenter_id'] == test_teacher.id

    # The presenter owns the session
    response = client.get(
        f'/check-in/sessions/{data["session"]["id"]}', headers=teacher_headers
    )
    assert response.status_code == status.HTTP_200_OK


def test_admin_creates_session_for_unknown_presenter(
    client, admin_headers, frozen_clock
):
    response = client.post(
        '/check-in/sessions/',
        json={'activity_id': 1, 'presenter_id': 999},
        headers=admin_headers,
    )
    assert response.status_code == status.HTTP_404_NOT_FOUND
    assert response.json()['detail']['code'] == 'person_not_found'


def test_get_session_not_found(client, teacher_headers, frozen_clock):
    response = client.get('/check-in/sessions/999', headers=teacher_headers)
    assert response.status_code == status.HTTP_404_NOT_FOUND
    assert response.json()['detail']['code'] == 'session_not_found'


def test_other_teacher_cannot_end_session(client, create_session, create_test_user):
    from app.core.security import Role

    data = create_session()
    other = create_test_user('other-teacher', Role.TEACHER)

    response = client.delete(
        f'/check-in/sessions/{data["session"]["id"]}',
        headers=get_auth_headers(other),
    )
    assert response.status_code == status.HTTP_403_FORBIDDEN
    assert response.json()['detail']['code'] == 'unauthorized'


def test_admin_can_end_any_session(client, create_session, admin_headers):
    data = create_session()

    response = client.delete(
        f'/check-in/sessions/{data["session"]["id"]}', headers=admin_headers
    )
    assert response.status_code == status.HTTP_200_OK
    assert response.json()['is_active'] is False


def test_end_session_is_idempotent(client, create_session, teacher_headers):
    data = create_session()
    url = f'/check-in/sessions/{data["session"]["id"]}'

    first = client.delete(url, headers=teacher_headers)
    second = client.delete(url, headers=teacher_headers)

    assert first.status_code == second.status_code == status.HTTP_200_OK
    assert second.json()['is_active'] is False


def test_reap_expired_sessions(create_session, frozen_clock, db_session):
    expired = create_session()
    live = create_session(activity_id=2, expiry_minutes=60)
    frozen_clock.advance(minutes=30)

    deactivated, deleted = check_in_session_crud.reap_expired(db_session)
    assert (deactivated, deleted) == (1, 0)

    assert db_session.get(CheckInSession, expired['session']['id']).is_active is False
    assert db_session.get(CheckInSession, live['session']['id']).is_active is True

    frozen_clock.advance(days=31)
    deactivated, deleted = check_in_session_crud.reap_expired(db_session)
    assert (deactivated, deleted) == (1, 2)
    assert db_session.query(CheckInSession).count() == 0


def test_concurrent_session_creation_opens_one(file_db):
    """Presenters racing to open the same activity get exactly one session"""
    with file_db() as db:
        teachers = [
            User(email=f'teacher{i}@example.com', role=Role.TEACHER.value)
            for i in range(10)
        ]
        db.add_all(teachers)
        db.commit()
        presenters = [TokenData(user_id=t.id, email=t.email) for t in teachers]

    def attempt(presenter):
        with file_db() as db:
            try:
                session = check_in_session_crud.create_session(
                    db, CheckInSessionCreate(activity_id=1), presenter
                )
            except SessionAlreadyActive:
                return None
            return session.id

    with ThreadPoolExecutor(max_workers=10) as executor:
        results = list(executor.map(attempt, presenters))

    created = [r for r in results if r is not None]
    assert len(created) == 1
    assert results.count(None) == 9

    with file_db() as db:
        active = db.query(CheckInSession).filter(CheckInSession.is_active).all()
        assert [s.id for s in active] == created
