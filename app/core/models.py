# Import all models here to ensure SQLAlchemy can set up relationships correctly
from app.api.attendance.models import AttendanceRecord
from app.api.check_in_sessions.models import CheckInSession
from app.api.users.models import User

# Re-export all models
__all__ = [
    'AttendanceRecord',
    'CheckInSession',
    'User',
]
