# familybrief/notifier.py
import html
import os
from typing import Any, Dict, Optional

from .emailer import send_email
from .logger import logger

PUBLIC_BASE_URL = os.getenv("PUBLIC_BASE_URL", "http://localhost:8000").rstrip("/")


def _email_enabled() -> bool:
    return os.getenv("NOTIFY_EMAIL_ENABLED", "0").strip().lower() in ("1", "true", "yes", "on")


def send_notification(store, user_id: str, type: str, title: str, body: str,
                      metadata: Optional[Dict[str, Any]] = None) -> Optional[str]:
    """
    Record an in-app notification and, when enabled, email it.
    Best effort: failures are logged and swallowed so the caller's save stands.
    """
    notification_id = None
    try:
        notification_id = store.create_notification(user_id, type, title, body, metadata or {})
    except Exception as e:
        logger.warning(f"[NOTIFY] in-app notification failed user={user_id} type={type}: {e}")

    if not _email_enabled():
        return notification_id

    try:
        email = store.lookup_user_email(user_id)
        if not email:
            return notification_id
        link = f"{PUBLIC_BASE_URL}/weekly-briefs/{(metadata or {}).get('brief_id', '')}"
        send_email(
            title,
            f"<p>{html.escape(body)}</p><p><a href=\"{html.escape(link)}\">Open your brief</a></p>",
            f"{body}\n\n{link}",
            [email],
        )
    except Exception as e:
        logger.warning(f"[NOTIFY] email notification failed user={user_id} type={type}: {e}")
    return notification_id
