import csv
import os

from sqlalchemy.orm import Session

from app.api.users import schemas as user_schemas
from app.api.users.crud import user as user_crud
from app.api.users.models import User
from app.core.config import settings
from app.core.database import SessionLocal, create_db
from app.core.security import SYSTEM_TOKEN


def read_users_csv(csv_path: str):
    with open(csv_path, newline='') as csvfile:
        reader = csv.DictReader(csvfile)
        return list(reader)


def get_or_create_user(db: Session, row: dict) -> User:
    """Create a user if not exists, return the user object."""
    email = row['email'].lower().strip()
    user = user_crud.get_by_email(db, email)
    if user:
        print(f'User already exists: {user.email}')
        return user

    user_data = user_schemas.UserCreate(
        email=email,
        first_name=row['first_name'],
        last_name=row['last_name'],
        role=row['role'],
        roll_number=row.get('roll_number') or None,
        department=row.get('department') or None,
    )
    user = user_crud.create(db, user_data, SYSTEM_TOKEN)
    print(f'User created: {user.id} - {user.email} ({user.role})')
    return user


def main():
    create_db()
    db = SessionLocal()
    try:
        print('\nDatabase Connection Information:')
        print('Database Type: PostgreSQL')
        print(f'Host: {settings.DB_HOST}')
        print(f'Port: {settings.DB_PORT}')
        print(f'Database Name: {settings.DB_NAME}')
        print(f'Username: {settings.DB_USERNAME}')

        print('\nThis script will create demo users from demo_users.csv')

        confirm = input('Do you want to proceed? (y/N): ')
        if confirm.lower() != 'y':
            print('Operation cancelled')
            return

        csv_path = os.path.join(os.path.dirname(__file__), 'demo_users.csv')
        users = [get_or_create_user(db, row) for row in read_users_csv(csv_path)]

        print('\nAccess tokens:')
        for user in users:
            token = user.get_authorization()
            print(f'{user.email}: {token.token_type} {token.access_token}')
    finally:
        db.close()


if __name__ == '__main__':
    main()
