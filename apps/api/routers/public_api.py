"""
Public utility endpoints: contact form email and content translation.

Both answer with ``{"error": ...}`` bodies instead of the ``detail`` envelope,
matching what the site's forms already parse.
"""

import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from routers.rate_limit import rate_limit
from services.mailer import is_valid_email, send_contact_emails
from services.translator import translate_text

router = APIRouter()
logger = logging.getLogger(__name__)


async def _json_body(request: Request) -> Dict[str, Any]:
    try:
        body = await request.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


def _error(status_code: int, message: str, **extra: Any) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message, **extra})


@router.post("/send-email")
async def send_email(
    request: Request,
    _rate_limit: None = Depends(rate_limit("send_email", limit=5, window_seconds=600)),
):
    """Forward a contact form to the inbox and confirm receipt to the sender."""
    body = await _json_body(request)
    fields = {key: str(body.get(key) or "").strip() for key in ("name", "email", "subject", "message")}
    if not all(fields.values()):
        return _error(400, "All fields are required")
    if not is_valid_email(fields["email"]):
        return _error(400, "Invalid email address")

    try:
        result = await send_contact_emails(
            fields["name"],
            fields["email"],
            fields["subject"],
            str(body.get("message")),
        )
    except Exception:
        logger.exception("Error sending contact email from %s", fields["email"])
        return _error(500, "Failed to send email. Please try again later.")

    return {
        "message": "Email sent successfully",
        "admin_email_id": result["admin_email_id"],
        "user_email_id": result["user_email_id"],
    }


@router.post("/translate")
async def translate(
    request: Request,
    _rate_limit: None = Depends(rate_limit("translate", limit=60, window_seconds=60)),
):
    body = await _json_body(request)
    text = body.get("text")
    target_lang = body.get("target_lang") or body.get("targetLang")
    if not isinstance(text, str) or not text or not target_lang:
        return _error(400, "Missing text or target_lang parameter")

    if not text.strip():
        return {"translated_text": text}

    try:
        return await translate_text(text, str(target_lang))
    except Exception as exc:
        logger.exception("Translation error")
        return _error(500, "Translation failed", details=str(exc))
