"""Verified admin identity derived from a bearer token."""

from pydantic import BaseModel, ConfigDict


class AdminIdentity(BaseModel):
    email: str
    roles: list[str] = []

    model_config = ConfigDict(frozen=True)
