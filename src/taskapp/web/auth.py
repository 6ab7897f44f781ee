"""
Authentication: JWT bearer tokens, cached user lookup and space membership
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import jwt
from fastapi import Depends, HTTPException, Request, status

from ..config import ConfigModel, get_config
from ..domain import Space
from ..services.auth_cache import CachedUserLookup


logger = logging.getLogger(__name__)

ACCESS_TOKEN_EXPIRE_MINUTES = 60


@dataclass
class AuthenticatedUser:
    """The caller identified by a bearer token."""
    id: str
    email: Optional[str] = None
    name: Optional[str] = None

    @property
    def display_name(self) -> str:
        return self.name or self.email or self.id


# ============================================================================
# JWT helpers
# ============================================================================

def create_access_token(data: Dict[str, Any], config: Optional[ConfigModel] = None,
                        expires_delta: Optional[timedelta] = None) -> str:
    """Create a signed JWT access token."""
    config = config or get_config()
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, config.jwt_secret, algorithm=config.jwt_algorithm)


def decode_access_token(token: str, config: Optional[ConfigModel] = None) -> Dict[str, Any]:
    """Decode and validate a JWT access token, raising 401 on failure."""
    config = config or get_config()
    try:
        return jwt.decode(token, config.jwt_secret, algorithms=[config.jwt_algorithm])
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token expired")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")


def _extract_bearer(request: Request) -> Optional[str]:
    auth_header = request.headers.get("authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    return auth_header[len("Bearer "):].strip() or None


def build_user_lookup(config: ConfigModel) -> CachedUserLookup[AuthenticatedUser]:
    """Token -> user lookup, cached for ``auth_cache_ttl_seconds``."""

    def fetch(token: str) -> AuthenticatedUser:
        payload = decode_access_token(token, config)
        user_id = payload.get("sub")
        if not user_id:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token payload")
        return AuthenticatedUser(id=str(user_id), email=payload.get("email"), name=payload.get("name"))

    return CachedUserLookup(fetch, ttl_seconds=config.auth_cache_ttl_seconds)


# Global lookup instance
_user_lookup: Optional[CachedUserLookup[AuthenticatedUser]] = None


def get_user_lookup() -> CachedUserLookup[AuthenticatedUser]:
    """Get the global cached user lookup."""
    global _user_lookup

    if _user_lookup is None:
        _user_lookup = build_user_lookup(get_config())

    return _user_lookup


def reset_user_lookup() -> None:
    """Reset the global lookup (useful for testing)."""
    global _user_lookup
    _user_lookup = None


# ============================================================================
# FastAPI dependencies
# ============================================================================

async def get_bearer_token(request: Request) -> str:
    """The raw bearer token, or 401."""
    token = _extract_bearer(request)
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return token


async def get_current_user(
    token: str = Depends(get_bearer_token),
    lookup: CachedUserLookup[AuthenticatedUser] = Depends(get_user_lookup),
) -> AuthenticatedUser:
    """FastAPI dependency that returns the current user or raises 401."""
    user = lookup.get(token)
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")
    return user


def require_space_member(user: AuthenticatedUser, space: Space) -> None:
    """Raise 403 unless the user belongs to the space."""
    if not space.has_member(user.id):
        logger.info("User %s denied access to space %s", user.id, space.id)
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not a member of this space")
