"""
Transactional email via the Postmark template API.

Delivery failures are logged and reported as ``False``; they never raise,
so callers can fire these off without awaiting the outcome.
"""

from __future__ import annotations

import logging
from typing import Any, Dict

import httpx

from config.settings import config

logger = logging.getLogger(__name__)

_POSTMARK_TEMPLATE_URL = "https://api.postmarkapp.com/email/withTemplate"

WELCOME_TEMPLATE = "welcome"
RESET_PASSWORD_TEMPLATE = "password-reset"


async def send_templated_email(
    to: str,
    template_alias: str,
    template_model: Dict[str, Any],
    timeout: float = 15.0,
) -> bool:
    """Render ``template_alias`` with ``template_model`` and send it to ``to``."""
    if not config.postmark_server_token:
        logger.error("POSTMARK_SERVER_TOKEN not configured — dropping %s email to %s", template_alias, to)
        return False

    payload = {
        "From": config.email_from,
        "To": to,
        "TemplateAlias": template_alias,
        "TemplateModel": template_model,
        "MessageStream": config.postmark_message_stream,
    }
    headers = {
        "Accept": "application/json",
        "X-Postmark-Server-Token": config.postmark_server_token,
    }
    try:
        async with httpx.AsyncClient(timeout=timeout) as client:
            resp = await client.post(_POSTMARK_TEMPLATE_URL, json=payload, headers=headers)
    except httpx.HTTPError as exc:
        logger.error("Postmark request for %s email failed: %s", template_alias, exc)
        return False

    if resp.status_code != 200:
        logger.error("Postmark rejected %s email (%s): %s", template_alias, resp.status_code, resp.text)
        return False

    logger.info("Sent %s email to %s", template_alias, to)
    return True


async def send_welcome_email(to: str, subject: str) -> bool:
    return await send_templated_email(
        to,
        WELCOME_TEMPLATE,
        {"subject": subject, "app_url": config.app_url},
    )


async def send_reset_email(to: str, subject: str, reset_link: str) -> bool:
    return await send_templated_email(
        to,
        RESET_PASSWORD_TEMPLATE,
        {"subject": subject, "reset_link": reset_link},
    )
