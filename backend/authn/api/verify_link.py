"""Email verification link endpoint.

GET /verify?session=<token> completes the sign-in started by /register and
renders a static page. Unknown, expired and used links render a "bad link"
page with a 404 status.
"""

import html
import logging
from typing import Annotated

from fastapi import APIRouter, Query, Request
from fastapi.responses import HTMLResponse

from authn.api.deps import Orchestrator
from authn.core.config import settings
from authn.core.errors import NotFoundError
from authn.core.rate_limiting import limiter

logger = logging.getLogger(__name__)

router = APIRouter()

_PAGE = """<!doctype html>
<html lang="en">
<head>
<meta charset="utf-8">
<meta name="viewport" content="width=device-width, initial-scale=1">
<title>{title}</title>
<style>
body {{ font-family: system-ui, sans-serif; display: flex; min-height: 100vh;
  align-items: center; justify-content: center; margin: 0; }}
main {{ text-align: center; max-width: 28rem; padding: 2rem; }}
</style>
</head>
<body>
<main>
<h1>{title}</h1>
<p>{message}</p>
</main>
</body>
</html>
"""


def render_page(title: str, message: str) -> str:
    """Render the static confirmation page."""
    return _PAGE.format(title=html.escape(title), message=html.escape(message))


@router.get("/verify", response_class=HTMLResponse)
@limiter.limit(lambda: settings.rate_limit_verify_link)
async def verify_link(
    request: Request,  # noqa: ARG001
    session: Annotated[str, Query(min_length=1, max_length=256)],
    orchestrator: Orchestrator,
) -> HTMLResponse:
    """Verify the email address behind a one-shot link."""
    try:
        info = await orchestrator.verify_link(session)
    except NotFoundError:
        return HTMLResponse(
            render_page(
                "Bad link",
                "This link is invalid, expired or was already used. "
                "Start signing in again to get a new one.",
            ),
            status_code=404,
        )

    logger.info("Email verified via link")
    return HTMLResponse(
        render_page(
            "You're verified!",
            f"{info.email} is verified. You can close this tab and go back "
            "to the site you were signing in to.",
        )
    )
