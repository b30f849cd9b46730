"""
Authentication dependency for billing routes.

Credentials are issued elsewhere; this module only resolves a bearer
token to the caller's identity.
"""

import logging
from typing import Optional
from fastapi import Header

from auth_utils import decode_jwt
from models.billing import AuthenticatedUser
from services.errors import Unauthorized

logger = logging.getLogger(__name__)


async def get_current_user(
    authorization: Optional[str] = Header(None, alias="Authorization"),
) -> AuthenticatedUser:
    """
    Dependency function to get current authenticated user.

    Expects "Authorization: Bearer <jwt>" carrying "sub" (user id) and
    "email" claims. Raises Unauthorized otherwise.
    """
    if not authorization:
        raise Unauthorized("Authorization header is required")

    if not authorization.startswith("Bearer "):
        raise Unauthorized("Authorization header must use the Bearer scheme")
    token = authorization.replace("Bearer ", "", 1).strip()
    if not token:
        raise Unauthorized("Missing authentication token")

    try:
        payload = decode_jwt(token)
    except ValueError as e:
        # JWT secret missing: a deployment problem, but the caller is still unauthenticated
        logger.error(f"Cannot authenticate request: {e}")
        raise Unauthorized("Authentication is not configured")

    if not payload:
        raise Unauthorized("Invalid or expired token")

    user_id = payload.get("sub")
    email = payload.get("email")
    if not user_id or not email:
        raise Unauthorized("Invalid token payload")

    return AuthenticatedUser(id=str(user_id), email=email)
