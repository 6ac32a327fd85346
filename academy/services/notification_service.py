# academy/services/notification_service.py
"""Outbound mail port.

Mail is sent after the state change has committed; a failed delivery is
logged and never rolls anything back.
"""
import logging
from typing import Any, Dict

logger = logging.getLogger(__name__)

# template name -> subject line
TEMPLATES: Dict[str, str] = {
    "registration_approved": "Your registration has been approved",
    "registration_rejected": "Your registration was not approved",
    "reassignment_approved": "Your session change has been approved",
    "reassignment_denied": "Your session change request was denied",
}


class Notifier:
    """Delivery channel for templated messages"""

    async def send(self, to: str, template: str, context: Dict[str, Any]) -> None:
        raise NotImplementedError


class LoggingNotifier(Notifier):
    """Default channel: records the message in the application log"""

    async def send(self, to: str, template: str, context: Dict[str, Any]) -> None:
        if template not in TEMPLATES:
            raise ValueError(f"Unknown notification template: {template}")
        logger.info(f"Notification '{TEMPLATES[template]}' to {to}: {context}")


async def notify_safely(notifier: Notifier, to: str, template: str, context: Dict[str, Any]) -> bool:
    """Send and report success; delivery errors are logged, not raised"""
    try:
        await notifier.send(to, template, context)
        return True
    except Exception as e:
        logger.error(f"Failed to send {template} notification to {to}: {e}")
        return False


_default_notifier = LoggingNotifier()


def get_notifier() -> Notifier:
    return _default_notifier
