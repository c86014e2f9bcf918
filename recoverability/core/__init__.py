"""Core module initialization."""

from recoverability.core.config import Settings, get_settings
from recoverability.core.database import (
    Base,
    dispose_engines,
    get_engine,
    get_session_factory,
    init_db,
    session_scope,
)
from recoverability.core.notifications import (
    Notification,
    NotificationChannel,
    Severity,
    build_posture_notification,
    format_posture_alert,
    notify_assessment,
    send_notification,
    send_teams_notification,
    severity_meets_threshold,
)

__all__ = [
    # Config
    "Settings",
    "get_settings",
    # Database
    "Base",
    "get_engine",
    "get_session_factory",
    "session_scope",
    "init_db",
    "dispose_engines",
    # Notifications
    "Notification",
    "NotificationChannel",
    "Severity",
    "build_posture_notification",
    "format_posture_alert",
    "notify_assessment",
    "send_notification",
    "send_teams_notification",
    "severity_meets_threshold",
]
