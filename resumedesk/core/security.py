# resumedesk/core/security.py
"""
Verification of identity-provider access tokens.

Supabase signs access tokens with the project JWT secret (HS256) and the
`authenticated` audience. We only verify and read claims; issuing and
refreshing tokens belongs to the provider.
"""
import time
from typing import Optional
from jose import jwt, JWTError
from pydantic import BaseModel

from resumedesk.core import errors
from resumedesk.core.config import settings

ALGORITHM = "HS256"


class TokenClaims(BaseModel):
    sub: str
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    avatar_url: Optional[str] = None


def _split_name(metadata: dict):
    full_name = (metadata.get("full_name") or metadata.get("name") or "").strip()
    first = metadata.get("first_name") or (full_name.split(" ")[0] if full_name else None)
    last = metadata.get("last_name") or (" ".join(full_name.split(" ")[1:]) if full_name else None)
    return first or None, last or None


def decode_access_token(token: str, secret: Optional[str] = None) -> TokenClaims:
    secret = secret or settings.SUPABASE_JWT_SECRET
    if not secret:
        raise errors.ServiceUnavailable("Authentication is not configured")
    try:
        payload = jwt.decode(token, secret, algorithms=[ALGORITHM], audience=settings.AUTH_AUDIENCE)
    except JWTError as exc:
        raise errors.Unauthenticated("Invalid token") from exc

    sub = payload.get("sub")
    if not sub:
        raise errors.Unauthenticated("Invalid token")
    metadata = payload.get("user_metadata") or {}
    first, last = _split_name(metadata)
    return TokenClaims(
        sub=sub,
        email=payload.get("email"),
        first_name=first,
        last_name=last,
        avatar_url=metadata.get("avatar_url") or metadata.get("picture"),
    )


def create_access_token(sub: str, secret: str, email: Optional[str] = None,
                        user_metadata: Optional[dict] = None, expires_in: int = 3600) -> str:
    """Mint a provider-shaped token. Used by tests and local tooling only."""
    now = int(time.time())
    claims = {
        "sub": sub,
        "aud": settings.AUTH_AUDIENCE,
        "role": "authenticated",
        "iat": now,
        "exp": now + expires_in,
        "user_metadata": user_metadata or {},
    }
    if email:
        claims["email"] = email
    return jwt.encode(claims, secret, algorithm=ALGORITHM)
