"""API router aggregator.

The widget calls these paths at the service root, so no prefix is used.
"""

from fastapi import APIRouter

from authn.api import challenge, check, verify_link

router = APIRouter()

router.include_router(challenge.router, tags=["challenge"])
router.include_router(check.router, tags=["check"])
router.include_router(verify_link.router, tags=["verify"])
