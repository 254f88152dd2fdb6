"""
Auth utilities for the Ikioi API.

Validates Clerk JWTs and extracts user_id from request context.
Falls back to X-User-Id header when ALLOW_HEADER_AUTH is enabled (dev, tests).
"""
import logging
from typing import Optional

import jwt
from fastapi import Header, Request

from ikioi.core.config import settings
from ikioi.core.errors import NotAuthenticatedError

logger = logging.getLogger(__name__)


def verify_clerk_jwt(token: str, secret: Optional[str] = None) -> Optional[str]:
    """
    Verify a Clerk JWT and extract user_id.

    Args:
        token: JWT from Authorization header (Bearer {token})
        secret: Override for CLERK_SECRET_KEY

    Returns:
        user_id from the 'sub' claim, or None when no secret is configured

    Raises:
        NotAuthenticatedError: Invalid or expired token
    """
    key = secret or settings.CLERK_SECRET_KEY
    if not key:
        logger.debug("No CLERK_SECRET_KEY configured, skipping JWT validation")
        return None

    try:
        payload = jwt.decode(
            token,
            key,
            algorithms=["HS256", "RS256"],
            options={"verify_signature": True, "verify_exp": True},
        )
    except jwt.ExpiredSignatureError:
        raise NotAuthenticatedError("Token expired")
    except jwt.InvalidTokenError as e:
        logger.debug(f"Invalid token: {e}")
        raise NotAuthenticatedError("Invalid token")

    user_id = payload.get("sub")
    if not user_id:
        raise NotAuthenticatedError("Token has no subject")
    return user_id


async def get_current_user_id(
    request: Request,
    x_user_id: Optional[str] = Header(None, description="Dev/test user ID"),
) -> str:
    """
    Extract current user ID from request context.

    Priority:
    1. Clerk JWT from Authorization header
    2. X-User-Id header (when ALLOW_HEADER_AUTH)
    3. Raise NotAuthenticatedError
    """
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        user_id = verify_clerk_jwt(auth_header[7:])
        if user_id:
            return user_id

    if x_user_id and settings.ALLOW_HEADER_AUTH:
        return x_user_id

    raise NotAuthenticatedError("Missing Authorization (Bearer JWT) or X-User-Id header")
