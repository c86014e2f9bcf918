"""Notification utilities for posture assessment alerts.

Posts an assessment summary to Microsoft Teams as an Adaptive Card, or to
a generic webhook as plain JSON. Delivery failures are logged and reported
in the returned dict; they never fail the assessment.

SECURITY: All webhook URLs are sanitized from logs to prevent credential leakage.
"""

import logging
import re
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

import httpx

from recoverability.core.config import get_settings
from recoverability.schemas.posture import AssessmentBundle, FindingSeverity, TrendStatus

logger = logging.getLogger(__name__)

# Teams incoming webhooks and Power Automate workflow triggers
WEBHOOK_URL_PATTERN = re.compile(
    r"https?://[^\s\"]*(?:webhook|logic\.azure\.com|powerplatform\.com)[^\s\"]*",
    re.IGNORECASE,
)
# Each pattern keeps group 1 (and group 2 if present) and masks what lies between
REDACTION_PATTERNS = {
    "signature": re.compile(r"([?&](?:sig|code|token)=)[^&\s\"]+", re.IGNORECASE),
    "database_password": re.compile(r"([a-z+]+://[^:/\s]+:)[^@\s]+(@)", re.IGNORECASE),
}

MAX_CARD_FINDINGS = 5


class NotificationChannel(str, Enum):
    """Supported notification channels."""

    TEAMS = "teams"
    WEBHOOK = "webhook"


class Severity(str, Enum):
    """Alert severity levels."""

    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


@dataclass
class Notification:
    """Notification data structure."""

    title: str
    message: str
    severity: Severity = Severity.INFO
    channel: NotificationChannel = NotificationChannel.TEAMS
    facts: dict[str, str] = field(default_factory=dict)
    highlights: list[str] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)


def severity_meets_threshold(severity: Severity | str, threshold: Severity | str) -> bool:
    """Check if severity meets or exceeds the threshold.

    Severity order: info < warning < error < critical
    """
    severity_order = {
        Severity.INFO: 0,
        Severity.WARNING: 1,
        Severity.ERROR: 2,
        Severity.CRITICAL: 3,
    }
    return severity_order[Severity(severity)] >= severity_order[Severity(threshold)]


def get_severity_color(severity: Severity | str) -> str:
    """Get Teams color code for severity level."""
    colors = {
        Severity.INFO: "#0078D4",  # Blue
        Severity.WARNING: "#FFB900",  # Gold
        Severity.ERROR: "#D83B01",  # Orange
        Severity.CRITICAL: "#A80000",  # Dark red
    }
    return colors.get(Severity(severity), "#0078D4")


def severity_for_bundle(bundle: AssessmentBundle) -> Severity:
    """Alert severity of an assessment: failing grade, then worst finding."""
    if bundle.score.grade == "F":
        return Severity.CRITICAL
    severities = {f.severity for f in bundle.findings}
    if FindingSeverity.HIGH in severities:
        return Severity.ERROR
    if FindingSeverity.MEDIUM in severities:
        return Severity.WARNING
    return Severity.INFO


def build_posture_notification(bundle: AssessmentBundle) -> Notification:
    """Summarize an assessment bundle as a notification."""
    summary = bundle.summary
    facts = {
        "Organization": bundle.organization,
        "Score": f"{bundle.score.overall_score} ({bundle.score.grade})",
        "Pass rate": f"{summary.pass_rate}%",
        "RTO compliance": f"{summary.rto_compliance_rate}% of {summary.rto_tagged_tests} tagged tests",
        "VMs tested": str(summary.total_vms),
        "Platforms": ", ".join(p.value for p in summary.platforms),
    }

    if bundle.delta is not None:
        score_delta = bundle.delta.get("compliance_score")
        if score_delta is not None:
            facts["Score change"] = f"{score_delta.change:+g}"
    elif bundle.trend_status == TrendStatus.BASELINE:
        facts["Score change"] = "baseline"

    high = bundle.high_findings
    message = (
        f"{len(bundle.findings)} findings, {len(high)} high severity."
        if bundle.findings
        else "No findings."
    )
    return Notification(
        title=f"Recoverability posture: grade {bundle.score.grade}",
        message=message,
        severity=severity_for_bundle(bundle),
        facts=facts,
        highlights=[f.title for f in high[:MAX_CARD_FINDINGS]],
        metadata={"run_id": bundle.run_id},
    )


def format_posture_alert(notification: Notification) -> dict[str, Any]:
    """Format a posture notification as a Teams Adaptive Card.

    Args:
        notification: The notification to format

    Returns:
        Adaptive Card JSON payload for Teams webhook
    """
    color = get_severity_color(notification.severity)
    timestamp = datetime.now(UTC).strftime("%Y-%m-%d %H:%M UTC")

    body: list[dict[str, Any]] = [
        {
            "type": "TextBlock",
            "text": notification.title,
            "weight": "Bolder",
            "size": "Large",
            "color": "Attention" if notification.severity == Severity.CRITICAL else "Default",
        },
        {
            "type": "TextBlock",
            "text": f"Severity: **{notification.severity.value.upper()}** • {timestamp}",
            "size": "Small",
            "isSubtle": True,
        },
        {
            "type": "TextBlock",
            "text": notification.message,
            "wrap": True,
            "spacing": "Medium",
        },
    ]

    if notification.facts:
        body.append({
            "type": "FactSet",
            "facts": [{"title": k, "value": v} for k, v in notification.facts.items()],
        })

    if notification.highlights:
        body.append({
            "type": "Container",
            "style": "emphasis",
            "items": [
                {"type": "TextBlock", "text": "High Findings", "weight": "Bolder", "size": "Medium"},
                *[
                    {"type": "TextBlock", "text": f"- {item}", "wrap": True, "size": "Small"}
                    for item in notification.highlights
                ],
            ],
        })

    return {
        "type": "message",
        "attachments": [
            {
                "contentType": "application/vnd.microsoft.card.adaptive",
                "contentVersion": "1.4",
                "content": {
                    "type": "AdaptiveCard",
                    "version": "1.4",
                    "style": "emphasis",
                    "backgroundColor": color,
                    "body": body,
                },
            }
        ],
    }


def sanitize_log_message(message: str) -> str:
    """Mask webhook URLs, signed query parameters and database passwords."""
    if not message:
        return message

    sanitized = WEBHOOK_URL_PATTERN.sub("[WEBHOOK_URL_REDACTED]", message)

    def mask(match: re.Match) -> str:
        kept_suffix = match.group(2) if match.lastindex and match.lastindex >= 2 else ""
        return f"{match.group(1)}[REDACTED]{kept_suffix}"

    for pattern in REDACTION_PATTERNS.values():
        sanitized = pattern.sub(mask, sanitized)
    return sanitized


def safe_log(level: str, message: str, *args, **kwargs) -> None:
    """Log a message with automatic sanitization of sensitive data."""
    log_func = getattr(logger, level.lower(), logger.info)
    log_func(sanitize_log_message(message), *args, **kwargs)


async def _post_json(url: str, payload: dict[str, Any], channel: NotificationChannel, title: str) -> dict[str, Any]:
    try:
        async with httpx.AsyncClient(timeout=30.0) as client:
            response = await client.post(
                url,
                json=payload,
                headers={"Content-Type": "application/json"},
            )
            response.raise_for_status()

        safe_log("info", f"{channel.value} notification sent: {title}")
        return {
            "success": True,
            "status_code": response.status_code,
            "channel": channel,
        }

    except httpx.HTTPStatusError as e:
        error_msg = sanitize_log_message(f"HTTP {e.response.status_code}: {e.response.text}")
        safe_log("error", f"{channel.value} webhook returned error: {error_msg}")
        return {
            "success": False,
            "error": f"{channel.value} webhook request failed",
            "channel": channel,
        }
    except httpx.HTTPError as e:
        safe_log("error", f"Failed to send {channel.value} notification: {e}")
        return {
            "success": False,
            "error": "Failed to send notification",
            "channel": channel,
        }


async def send_teams_notification(notification: Notification) -> dict[str, Any]:
    """Send notification to Microsoft Teams via webhook.

    SECURITY: Webhook URLs are never logged.
    """
    settings = get_settings()

    if not settings.teams_webhook_url:
        safe_log("warning", "Teams webhook URL not configured")
        return {
            "success": False,
            "error": "Teams webhook URL not configured",
            "channel": NotificationChannel.TEAMS,
        }

    safe_log("debug", "Sending Teams notification to configured webhook")
    return await _post_json(
        settings.teams_webhook_url,
        format_posture_alert(notification),
        NotificationChannel.TEAMS,
        notification.title,
    )


async def send_webhook_notification(notification: Notification, webhook_url: str) -> dict[str, Any]:
    """Send notification to a generic webhook endpoint as plain JSON."""
    safe_log("debug", "Sending webhook notification to configured endpoint")
    payload = {
        "title": notification.title,
        "message": notification.message,
        "severity": notification.severity.value,
        "timestamp": datetime.now(UTC).isoformat(),
        "facts": notification.facts,
        "highlights": notification.highlights,
        "metadata": notification.metadata,
    }
    return await _post_json(webhook_url, payload, NotificationChannel.WEBHOOK, notification.title)


async def send_notification(
    notification: Notification,
    webhook_url: str | None = None,
) -> dict[str, Any]:
    """Route a notification to its channel if enabled and severe enough.

    Args:
        notification: The notification to send
        webhook_url: Endpoint for the webhook channel

    Returns:
        Dict with success status and response details
    """
    settings = get_settings()

    if not settings.notification_enabled:
        logger.debug("Notifications disabled in settings")
        return {
            "success": False,
            "error": "Notifications disabled",
            "channel": notification.channel,
        }

    if not severity_meets_threshold(notification.severity, settings.notification_min_severity):
        logger.debug(
            f"Notification severity {notification.severity.value} below threshold "
            f"{settings.notification_min_severity}"
        )
        return {
            "success": False,
            "error": f"Severity {notification.severity.value} below threshold",
            "channel": notification.channel,
        }

    if notification.channel == NotificationChannel.TEAMS:
        return await send_teams_notification(notification)
    if notification.channel == NotificationChannel.WEBHOOK and webhook_url:
        return await send_webhook_notification(notification, webhook_url)
    return {
        "success": False,
        "error": f"No endpoint for channel: {notification.channel.value}",
        "channel": notification.channel,
    }


async def notify_assessment(bundle: AssessmentBundle) -> dict[str, Any]:
    """Send the Teams summary for an assessment bundle."""
    return await send_notification(build_posture_notification(bundle))
