"""Verification email delivery via the Resend API.

Simple HTTP POST to Resend with a plain-text body. Without an API key the
link is logged instead, which is how local development signs in.
"""

import logging
from urllib.parse import quote, urlencode

import httpx

from authn.core.config import settings

logger = logging.getLogger(__name__)

_RESEND_API_URL = "https://api.resend.com/emails"
_RESEND_TIMEOUT = 10.0


def build_verification_url(token: str) -> str:
    """Link the user clicks to verify their email address.

    Args:
        token: Verification token issued by the identity index.

    Returns:
        ``{APP_HOST}/verify?session=<token>``.
    """
    params = urlencode({"session": token}, quote_via=quote)
    return f"{settings.app_host.rstrip('/')}/verify?{params}"


async def send_verification_email(*, to_email: str, verify_url: str) -> None:
    """Send a verification link email.

    Delivery failures are logged and swallowed: the sign-in attempt stays
    pending and the user can request a new challenge.

    Args:
        to_email: Recipient email address.
        verify_url: Link built by build_verification_url().
    """
    api_key = settings.resend_api_key.get_secret_value()
    if not api_key:
        logger.info("Email delivery disabled; to %s, verify at %s", to_email, verify_url)
        return

    try:
        async with httpx.AsyncClient() as client:
            resp = await client.post(
                _RESEND_API_URL,
                headers={"Authorization": f"Bearer {api_key}"},
                json={
                    "from": settings.email_from,
                    "to": to_email,
                    "subject": settings.email_subject,
                    "text": (
                        f"Click this link to finish signing in:\n\n{verify_url}\n\n"
                        "This link expires in "
                        f"{settings.verification_token_ttl_seconds // 60} minutes. "
                        "If you didn't request this, you can safely ignore this email."
                    ),
                },
                timeout=_RESEND_TIMEOUT,
            )
            resp.raise_for_status()
    except Exception:
        logger.warning("Failed to send verification email", exc_info=True)
