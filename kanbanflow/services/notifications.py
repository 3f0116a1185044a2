"""Task assignment notifications over Slack and email.

Every channel is optional and skipped when unconfigured. Delivery errors are
logged and never reach the caller.
"""
import asyncio
import smtplib
import ssl
from datetime import datetime, timezone
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional

import httpx

from kanbanflow.config import Settings, settings
from kanbanflow.logging_config import get_logger

logger = get_logger(__name__)


def build_assignment_payload(
    task_title: str,
    assigned_to: list[str],
    assigned_by: str,
    due_date: Optional[int],
    board_name: str,
    card_name: str,
) -> dict:
    return {
        "taskTitle": task_title,
        "assignedTo": list(assigned_to),
        "assignedBy": assigned_by,
        "dueDate": due_date,
        "boardName": board_name,
        "cardName": card_name,
    }


def _format_due(due_date: Optional[int]) -> str:
    if not due_date:
        return "No due date"
    return datetime.fromtimestamp(due_date / 1000, tz=timezone.utc).strftime("%Y-%m-%d")


def _slack_message(payload: dict) -> dict:
    assignees = ", ".join(payload["assignedTo"])
    text = (
        f"*{payload['taskTitle']}* was assigned to {assignees} "
        f"by {payload['assignedBy']}"
    )
    return {
        "text": text,
        "blocks": [
            {"type": "section", "text": {"type": "mrkdwn", "text": text}},
            {
                "type": "context",
                "elements": [
                    {
                        "type": "mrkdwn",
                        "text": (
                            f"Board: {payload['boardName']} | Card: {payload['cardName']}"
                            f" | Due: {_format_due(payload['dueDate'])}"
                        ),
                    }
                ],
            },
        ],
    }


async def _notify_slack(payload: dict, cfg: Settings) -> None:
    async with httpx.AsyncClient(timeout=15.0) as client:
        resp = await client.post(cfg.slack_webhook_url, json=_slack_message(payload))
        resp.raise_for_status()


def _send_email(cfg: Settings, to_email: str, subject: str, body: str) -> None:
    """Send an email via SMTP. Raises on failure."""
    msg = MIMEMultipart("alternative")
    msg["Subject"] = subject
    msg["From"] = f"{cfg.smtp_from_name} <{cfg.smtp_from_email}>"
    msg["To"] = to_email
    msg.attach(MIMEText(body, "plain"))

    with smtplib.SMTP(cfg.smtp_host, cfg.smtp_port, timeout=15) as server:
        if cfg.smtp_use_tls:
            server.starttls(context=ssl.create_default_context())
        if cfg.smtp_username and cfg.smtp_password:
            server.login(cfg.smtp_username, cfg.smtp_password)
        server.sendmail(cfg.smtp_from_email, to_email, msg.as_string())


def _email_body(payload: dict) -> str:
    return (
        f"You have been assigned to \"{payload['taskTitle']}\" by {payload['assignedBy']}.\n\n"
        f"Board: {payload['boardName']}\n"
        f"Card: {payload['cardName']}\n"
        f"Due: {_format_due(payload['dueDate'])}\n"
    )


async def _notify_email(payload: dict, cfg: Settings) -> None:
    # User ids that are email addresses get mail; there is no user directory
    recipients = [u for u in payload["assignedTo"] if "@" in u]
    subject = f"Task assigned: {payload['taskTitle']}"
    for to_email in recipients:
        await asyncio.to_thread(_send_email, cfg, to_email, subject, _email_body(payload))


async def notify_task_assigned(payload: dict, cfg: Optional[Settings] = None) -> None:
    """Send an assignment notice on every configured channel."""
    cfg = cfg or settings
    if not payload.get("assignedTo"):
        return

    if cfg.slack_webhook_url:
        try:
            await _notify_slack(payload, cfg)
            logger.info(f"Slack assignment notice sent for '{payload['taskTitle']}'")
        except Exception as e:
            logger.error(f"Slack notification failed for '{payload['taskTitle']}': {e}")

    if cfg.email_enabled:
        try:
            await _notify_email(payload, cfg)
        except Exception as e:
            logger.error(f"Email notification failed for '{payload['taskTitle']}': {e}")
