"""Pydantic schemas for the HTTP surface (camelCase on the wire)."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


def _to_camel(name: str) -> str:
    """Convert snake_case to camelCase for JSON serialization."""
    parts = name.split("_")
    return parts[0] + "".join(p.capitalize() for p in parts[1:])


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=_to_camel,
        populate_by_name=True,
    )


class HealthResponse(BaseModel):
    status: str = "ok"
    service: str
    timestamp: datetime


class SessionUserResponse(_CamelModel):
    """Claims of the caller's current session token."""

    sub: str
    email: str
    organization_id: str | None = None
    roles: list[str] = Field(default_factory=list)
    exp: int


class MessageResponse(BaseModel):
    message: str


class RotateResponse(_CamelModel):
    success: bool = True
    message: str
    previous_active: str | None
    new_active: str
    total_keys: int


class StageResponse(_CamelModel):
    success: bool = True
    message: str
    kid: str
    active_kid: str | None
    total_keys: int


class ActivatePayload(BaseModel):
    kid: str


class PurgePayload(_CamelModel):
    """Request body for POST /key-rotation/purge."""

    kids_to_purge: list[str] | None = None
    min_age_minutes: int = Field(default=60, ge=0)


class PurgeResponse(_CamelModel):
    success: bool = True
    message: str
    purged: list[str]
    active_kid: str | None
    remaining: list[str]


class RotationStatusResponse(_CamelModel):
    """Response for GET /key-rotation/status."""

    active_kid: str | None
    available_kids: list[str]
    key_count: int
    timestamp: datetime
