from enum import Enum
from typing import Optional

import requests

from app.core.config import Environment, settings
from app.core.logger import logger


class NotificationEvent(str, Enum):
    CHECKED_IN = 'attendance-checked-in'
    BADGE_ISSUED = 'identity-badge-issued'
    LOW_ATTENDANCE = 'attendance-low-alert'


def _send(recipient_id: int, event: NotificationEvent, params: dict) -> None:
    if settings.ENVIRONMENT == Environment.TEST or not settings.NOTIFICATIONS_URL:
        logger.debug('Skipping %s notification for user %s', event.value, recipient_id)
        return

    headers = {
        'Accept': 'application/json',
        'Content-Type': 'application/json',
        'X-API-Key': settings.NOTIFICATIONS_API_KEY or '',
    }
    data = {
        'recipient_id': recipient_id,
        'event': event.value,
        'params': params,
    }
    response = requests.post(
        settings.NOTIFICATIONS_URL, json=data, headers=headers, timeout=5
    )
    response.raise_for_status()


def dispatch_notification(
    recipient_id: int,
    event: NotificationEvent,
    params: Optional[dict] = None,
) -> None:
    """Fire-and-forget delivery. Failures are logged and never raised."""
    logger.info('Dispatching %s notification to user %s', event.value, recipient_id)
    try:
        _send(recipient_id, event, params or {})
    except Exception as e:
        logger.error(
            'Failed to dispatch %s notification to user %s: %s',
            event.value,
            recipient_id,
            str(e),
        )
