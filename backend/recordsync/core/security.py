"""
Security components for the sync API
Bearer token issuing and verification (HS256 JWT)
"""

import os
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any

from jose import jwt
from jose.exceptions import JWTError

logger = logging.getLogger(__name__)


def _utc_now():
    """Return timezone-aware UTC now."""
    return datetime.now(timezone.utc)


class TokenAuthManager:
    """Issues and verifies access tokens shared with the auth subsystem"""

    def __init__(self, secret_key: Optional[str] = None):
        self.secret_key = secret_key or os.getenv("SYNC_AUTH_SECRET", "dev-secret-key-change-in-production")
        self.algorithm = "HS256"
        self.access_token_expire_minutes = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "30"))

    def create_access_token(self, data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
        """Create JWT access token"""
        to_encode = data.copy()
        if expires_delta:
            expire = _utc_now() + expires_delta
        else:
            expire = _utc_now() + timedelta(minutes=self.access_token_expire_minutes)

        to_encode.update({"exp": expire, "type": "access"})
        encoded_jwt = jwt.encode(to_encode, self.secret_key, algorithm=self.algorithm)
        return encoded_jwt

    def verify_token(self, token: str) -> Optional[Dict[str, Any]]:
        """Verify and decode JWT token"""
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except JWTError as e:
            logger.debug(f"Token rejected: {e}")
            return None
        if payload.get("type") != "access":
            return None
        return payload

    def issue_for_user(self, user_id: str, expires_delta: Optional[timedelta] = None) -> str:
        """Create an access token whose subject is ``user_id``"""
        return self.create_access_token({"sub": user_id}, expires_delta=expires_delta)


auth_manager = TokenAuthManager()
