# backend/auth.py
import logging
from typing import Optional

from events import AuthEvent
from notifier import ChangeNotifier

logger = logging.getLogger(__name__)


def notify_sign_in(auth_event: AuthEvent, notifier: ChangeNotifier) -> Optional[str]:
    """Cognito の PostAuthentication で呼ばれる。通知に失敗してもサインインは止めない。"""
    logger.info("post-auth for user %s", auth_event.username)
    message = (
        f"User {auth_event.username} has successfully signed in. "
        f"Email: {auth_event.email}"
    )
    return notifier.publish(message)
