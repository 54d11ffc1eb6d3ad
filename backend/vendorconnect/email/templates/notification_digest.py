"""Unread-notification digest email (HTML and plain text)."""

from dataclasses import dataclass
from datetime import datetime
from typing import Sequence

from jinja2 import BaseLoader, Environment

from vendorconnect.models.activity import Notification
from vendorconnect.models.user import User

PRIORITY_COLORS = {
    "urgent": "#dc3545",
    "high": "#fd7e14",
    "medium": "#0d6efd",
    "low": "#198754",
}
DEFAULT_PRIORITY_COLOR = "#6c757d"

TYPE_ICONS = {
    "task_assigned": "📋",
    "task_completed": "✅",
    "task_due_soon": "⏰",
    "task_overdue": "🚨",
    "deliverable_added": "📎",
    "comment_added": "💬",
    "project_updated": "📁",
    "client_updated": "👤",
}
DEFAULT_TYPE_ICON = "🔔"

_TIME_UNITS = (
    ("year", 365 * 24 * 3600),
    ("month", 30 * 24 * 3600),
    ("week", 7 * 24 * 3600),
    ("day", 24 * 3600),
    ("hour", 3600),
    ("minute", 60),
    ("second", 1),
)

_html_env = Environment(loader=BaseLoader(), autoescape=True)
_text_env = Environment(loader=BaseLoader(), autoescape=False, keep_trailing_newline=True)


def priority_color(priority: str | None) -> str:
    return PRIORITY_COLORS.get(priority or "", DEFAULT_PRIORITY_COLOR)


def type_icon(notification_type: str | None) -> str:
    return TYPE_ICONS.get(notification_type or "", DEFAULT_TYPE_ICON)


def time_ago(then: datetime, now: datetime) -> str:
    """Relative time such as ``"5 minutes ago"``."""
    seconds = int((now - then).total_seconds())
    if seconds < 1:
        return "just now"
    for name, size in _TIME_UNITS:
        if seconds >= size:
            count = seconds // size
            return f"{count} {name}{'s' if count != 1 else ''} ago"
    return "just now"


def pluralize_notifications(count: int) -> str:
    return f"{count} unread notification{'s' if count != 1 else ''}"


def digest_subject(count: int) -> str:
    return f"You have {pluralize_notifications(count)}"


HTML_TEMPLATE = """<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>{{ subject }}</title>
</head>
<body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333; max-width: 600px; margin: 0 auto; padding: 20px;">
    <div style="background-color: #f8f9fa; padding: 20px; border-radius: 8px; margin-bottom: 20px;">
        <h1 style="color: #2c3e50; margin: 0 0 10px 0;">🔔 {{ subject }}</h1>
        <p style="margin: 0; color: #666;">Hi {{ first_name }}, you have {{ count_label }} that require your attention.</p>
    </div>

    <div style="margin-bottom: 20px;">
    {% for item in items %}
        <div style="padding: 15px; border-left: 4px solid {{ item.color }}; margin-bottom: 10px; background-color: #f8f9fa;">
            <div style="display: flex; align-items: center; margin-bottom: 8px;">
                <span style="font-size: 18px; margin-right: 10px;">{{ item.icon }}</span>
                <h3 style="margin: 0; color: #333; font-size: 16px;">{{ item.title }}</h3>
                <span style="margin-left: auto; font-size: 12px; color: #666;">{{ item.time_ago }}</span>
            </div>
            <p style="margin: 0; color: #666; font-size: 14px;">{{ item.message }}</p>
            <div style="margin-top: 8px;">
                <span style="background-color: {{ item.color }}; color: white; padding: 2px 8px; border-radius: 12px; font-size: 11px; text-transform: uppercase;">{{ item.priority }}</span>
            </div>
        </div>
    {% endfor %}
    </div>

    <div style="text-align: center; margin: 30px 0;">
        <a href="{{ notifications_url }}" style="background-color: #007bff; color: white; padding: 12px 24px; text-decoration: none; border-radius: 6px; display: inline-block; font-weight: bold;">View All Notifications</a>
    </div>

    <div style="border-top: 1px solid #eee; padding-top: 20px; margin-top: 30px; text-align: center; color: #666; font-size: 12px;">
        <p>This email was sent because you have unread notifications in {{ app_name }}.</p>
        <p>If you no longer wish to receive these emails, please update your notification preferences.</p>
    </div>
</body>
</html>
"""

TEXT_TEMPLATE = """Hi {{ first_name }},

You have {{ count_label }} that require your attention:

{% for item in items -%}
{{ item.icon }} {{ item.title }} ({{ item.priority }}) - {{ item.time_ago }}
   {{ item.message }}

{% endfor -%}
View all notifications: {{ notifications_url }}

This email was sent because you have unread notifications in {{ app_name }}.
If you no longer wish to receive these emails, please update your notification preferences.
"""


@dataclass
class DigestEmail:
    subject: str
    html_body: str
    text_body: str


def _digest_item(notification: Notification, now: datetime) -> dict:
    return {
        "icon": type_icon(notification.notification_type),
        "title": notification.title,
        "message": notification.message or "",
        "priority": notification.priority,
        "color": priority_color(notification.priority),
        "time_ago": time_ago(notification.created_at, now),
    }


def build_digest_email(
    user: User,
    notifications: Sequence[Notification],
    now: datetime,
    app_name: str,
    app_url: str,
) -> DigestEmail:
    """Render the digest for ``notifications``, newest first as given."""
    subject = digest_subject(len(notifications))
    context = {
        "subject": subject,
        "first_name": user.first_name,
        "count_label": pluralize_notifications(len(notifications)),
        "items": [_digest_item(n, now) for n in notifications],
        "notifications_url": f"{app_url.rstrip('/')}/notifications",
        "app_name": app_name,
    }
    return DigestEmail(
        subject=subject,
        html_body=_html_env.from_string(HTML_TEMPLATE).render(**context),
        text_body=_text_env.from_string(TEXT_TEMPLATE).render(**context),
    )
