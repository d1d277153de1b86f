"""Authentication dependencies guarding the admin surface."""

from fastapi import Depends, Header, HTTPException, status

from leadline.core.security import decode_identity_token, identity_from_claims
from leadline.core.settings import Settings, get_settings
from leadline.schemas.identity import AdminIdentity


def is_admin(identity: AdminIdentity, settings: Settings) -> bool:
    email_allowed = bool(settings.admin_emails) and identity.email in settings.admin_emails
    role_allowed = bool(settings.admin_role) and settings.admin_role in identity.roles
    return email_allowed or role_allowed


def get_current_identity(
    authorization: str | None = Header(default=None),
    settings: Settings = Depends(get_settings),
) -> AdminIdentity:
    # Expect Authorization: Bearer <token>
    if not authorization or not authorization.lower().startswith("bearer "):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    token = authorization.split(" ", 1)[1].strip()
    try:
        claims = decode_identity_token(token, settings.identity_jwt_secret)
    except ValueError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    return identity_from_claims(claims)


def get_current_admin(
    identity: AdminIdentity = Depends(get_current_identity),
    settings: Settings = Depends(get_settings),
) -> AdminIdentity:
    if not is_admin(identity, settings):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
    return identity
