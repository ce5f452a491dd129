"""Push notifications via Pushover and ntfy.

Used for form completion alerts so HR hears about signatures without keeping
the forms view open.
"""

from __future__ import annotations

import logging

import httpx

from hrsign.config import Settings, get_settings
from hrsign.models import Notification

logger = logging.getLogger("hrsign.notifications")


def send_push(notification: Notification, settings: Settings | None = None) -> bool:
    """Send a push notification via all configured providers.

    Returns True if at least one provider succeeded.
    """
    settings = settings or get_settings()
    sent = False

    if settings.has_pushover():
        sent = _send_pushover(notification, settings) or sent

    if settings.has_ntfy():
        sent = _send_ntfy(notification, settings) or sent

    return sent


def _send_pushover(notification: Notification, settings: Settings) -> bool:
    priority_map = {
        "low": -1,
        "normal": 0,
        "high": 1,
    }
    payload: dict = {
        "token": settings.pushover_api_token,
        "user": settings.pushover_user_key,
        "title": notification.title,
        "message": notification.body,
        "priority": priority_map.get(notification.priority, 0),
    }
    if notification.url:
        payload["url"] = notification.url
        payload["url_title"] = "Open Form"

    try:
        resp = httpx.post("https://api.pushover.net/1/messages.json", data=payload)
        return resp.status_code == 200
    except httpx.HTTPError:
        logger.warning("pushover delivery failed", exc_info=True)
        return False


def _send_ntfy(notification: Notification, settings: Settings) -> bool:
    priority_map = {
        "low": "2",
        "normal": "3",
        "high": "4",
    }
    headers: dict = {
        "Title": notification.title,
        "Priority": priority_map.get(notification.priority, "3"),
        "Tags": "memo,white_check_mark",
    }
    if notification.url:
        headers["Click"] = notification.url

    url = f"{settings.ntfy_server}/{settings.ntfy_topic}"
    try:
        resp = httpx.post(url, content=notification.body, headers=headers)
        return resp.status_code == 200
    except httpx.HTTPError:
        logger.warning("ntfy delivery failed", exc_info=True)
        return False


# ---------------------------------------------------------------------------
# Convenience functions for common notification types
# ---------------------------------------------------------------------------

def form_completed(template_name: str, employee_label: str, template_id: str = "") -> Notification:
    return Notification(
        title=f"{employee_label} — Form Completed",
        body=f"{template_name} has been signed by all parties",
        priority="normal",
        template_id=template_id,
    )


def all_forms_completed(employee_label: str, total: int) -> Notification:
    return Notification(
        title=f"{employee_label} — Onboarding Forms Complete",
        body=f"All {total} required form(s) are signed",
        priority="high",
    )
