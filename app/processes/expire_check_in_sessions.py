import time

from app.api.check_in_sessions.crud import check_in_session
from app.core import models  # noqa: F401
from app.core.database import session_scope
from app.core.logger import logger


def expire_check_in_sessions():
    logger.info('Reaping expired check-in sessions')
    with session_scope() as db:
        deactivated, deleted = check_in_session.reap_expired(db)
    logger.info(
        'Check-in sessions reaped: %s deactivated, %s deleted', deactivated, deleted
    )


if __name__ == '__main__':
    expire_check_in_sessions()
    time.sleep(60)
