"""
Sync API authentication
Resolves the requesting user from the bearer token issued by the auth subsystem
"""

import logging
from typing import Optional
from dataclasses import dataclass
from fastapi import Request, HTTPException

from ..core.security import auth_manager

logger = logging.getLogger(__name__)


@dataclass
class AuthContext:
    """Authenticated caller; every mutation and read is scoped to ``user_id``"""
    user_id: str


def extract_bearer_token(request: Request) -> Optional[str]:
    """Return the raw bearer token or None when the header is missing/malformed"""
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        return None
    token = auth_header[7:].strip()
    return token or None


def verify_token(request: Request) -> Optional[str]:
    """
    Verify the request's bearer token

    Returns:
        The owning user id, or None if the token is missing or invalid
    """
    token = extract_bearer_token(request)
    if not token:
        return None

    payload = auth_manager.verify_token(token)
    if not payload:
        return None

    user_id = payload.get("sub")
    if not isinstance(user_id, str) or not user_id:
        return None
    return user_id


async def get_current_user(request: Request) -> AuthContext:
    """
    Get current user (FastAPI Dependency)

    Hard rules:
    - R1: Do not get user_id from query parameters or the request body
    - R2: No valid token -> 401 (no fallback user)
    """
    user_id = verify_token(request)
    if not user_id:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return AuthContext(user_id=user_id)
