"""
API Dependencies
================

Per-request services and API key verification.
"""

import hmac
from collections.abc import AsyncGenerator

from fastapi import Header, HTTPException, status

from tributary.api.config import settings
from tributary.platform.composition_root import Services, open_services


async def get_services() -> AsyncGenerator[Services, None]:
    """Adapters bound to one database session for the duration of a request."""
    async with open_services() as services:
        yield services


async def verify_api_key(x_api_key: str | None = Header(default=None)) -> None:
    """Reject requests without the shared API key, when one is configured."""
    if not settings.api_key:
        return
    if x_api_key is None or not hmac.compare_digest(x_api_key, settings.api_key):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing API key",
        )
