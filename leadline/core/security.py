"""Identity token handling for the admin surface.

Tokens are HS256 JWTs issued by the site's identity provider. This module only
verifies them and extracts the claims the authorization gate needs; login and
token issuance for real users happen outside this service.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import jwt

from leadline.schemas.identity import AdminIdentity


def create_identity_token(
    email: str,
    secret: str,
    roles: Optional[list[str]] = None,
    expires_minutes: int = 60,
) -> str:
    expire = datetime.now(timezone.utc) + timedelta(minutes=expires_minutes)
    payload = {
        "sub": email,
        "email": email,
        "app_metadata": {"roles": list(roles or [])},
        "exp": expire,
    }
    return jwt.encode(payload, secret, algorithm="HS256")


def decode_identity_token(token: str, secret: str) -> Dict[str, Any]:
    if not secret:
        raise ValueError("Identity verification is not configured")
    try:
        return jwt.decode(token, secret, algorithms=["HS256"], options={"require": ["exp"]})
    except jwt.ExpiredSignatureError as exc:
        raise ValueError("Expired token") from exc
    except jwt.InvalidTokenError as exc:
        raise ValueError("Invalid token") from exc


def identity_from_claims(claims: Dict[str, Any]) -> AdminIdentity:
    email = str(claims.get("email") or "").strip().lower()
    roles = (claims.get("app_metadata") or {}).get("roles") or (claims.get("user_metadata") or {}).get("roles") or []
    if not isinstance(roles, list):
        roles = []
    return AdminIdentity(email=email, roles=[str(role) for role in roles])
