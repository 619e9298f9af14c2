"""Contact-form delivery through the Resend HTTP API."""

from __future__ import annotations

import asyncio
import html
import logging
import re
from typing import Any, Dict

import httpx

from config import settings

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


class EmailDeliveryError(RuntimeError):
    """Raised when the email provider is unconfigured or refuses a message."""


def is_valid_email(value: str) -> bool:
    return bool(EMAIL_PATTERN.match(str(value or "")))


def _as_html(text: str) -> str:
    return html.escape(text).replace("\n", "<br />")


def build_admin_email(name: str, email: str, subject: str, message: str) -> Dict[str, Any]:
    return {
        "from": settings.CONTACT_FROM_ADDRESS,
        "to": list(settings.CONTACT_INBOX_EMAILS),
        "reply_to": email,
        "subject": f"[MOAI Contact] {subject}",
        "html": (
            "<h2>New Contact Form Submission</h2>"
            f"<p><strong>From:</strong> {html.escape(name)}</p>"
            f"<p><strong>Email:</strong> {html.escape(email)}</p>"
            f"<p><strong>Subject:</strong> {html.escape(subject)}</p>"
            "<hr />"
            "<p><strong>Message:</strong></p>"
            f"<p>{_as_html(message)}</p>"
        ),
    }


def build_confirmation_email(name: str, email: str, message: str) -> Dict[str, Any]:
    site = settings.SITE_URL.rstrip("/")
    return {
        "from": settings.CONFIRMATION_FROM_ADDRESS,
        "to": [email],
        "subject": "Thanks for reaching out to MOAI!",
        "html": (
            f"<h2>Hi {html.escape(name)}!</h2>"
            "<p>Thank you for getting in touch. We've received your message and "
            "will get back to you as soon as possible, usually within 24-48 hours.</p>"
            f"<blockquote>{_as_html(message)}</blockquote>"
            "<p>In the meantime, feel free to explore the platform:</p>"
            "<ul>"
            f'<li><a href="{site}/projects">Browse projects</a></li>'
            f'<li><a href="{site}/toolkits">Discover toolkits</a></li>'
            f'<li><a href="{site}/news">Read the latest news</a></li>'
            "</ul>"
            "<p>Best regards,<br/><strong>The MOAI Team</strong></p>"
        ),
    }


async def _deliver(client: httpx.AsyncClient, payload: Dict[str, Any]) -> str:
    response = await client.post(
        settings.RESEND_API_URL,
        json=payload,
        headers={"Authorization": f"Bearer {settings.RESEND_API_KEY}"},
    )
    if response.status_code >= 400:
        raise EmailDeliveryError(f"Email provider returned {response.status_code}: {response.text[:200]}")
    return str(response.json().get("id", ""))


async def send_contact_emails(name: str, email: str, subject: str, message: str) -> Dict[str, str]:
    """Send the inbox copy and the sender's confirmation concurrently."""
    if not settings.RESEND_API_KEY:
        raise EmailDeliveryError("RESEND_API_KEY is not configured")
    if not settings.CONTACT_INBOX_EMAILS:
        raise EmailDeliveryError("CONTACT_INBOX_EMAILS is not configured")

    async with httpx.AsyncClient(timeout=15.0) as client:
        admin_email_id, user_email_id = await asyncio.gather(
            _deliver(client, build_admin_email(name, email, subject, message)),
            _deliver(client, build_confirmation_email(name, email, message)),
        )
    logger.info("Contact form delivered admin_email_id=%s user_email_id=%s", admin_email_id, user_email_id)
    return {"admin_email_id": admin_email_id, "user_email_id": user_email_id}
