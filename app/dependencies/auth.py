"""
Caller identity for FastAPI routes.

Authentication (OTP, tokens) happens upstream; the frontend forwards the
authenticated user id in the X-User-Id header.
"""
from __future__ import annotations

import logging

from fastapi import Header, HTTPException, status

logger = logging.getLogger(__name__)


async def get_current_user_id(
    x_user_id: str = Header(..., alias="X-User-Id"),
) -> str:
    """Extract the authenticated user ID from the request header. Raises 401 if missing."""
    if not x_user_id.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing X-User-Id header.",
        )
    return x_user_id.strip()
