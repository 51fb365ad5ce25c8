"""Schemas for the audit trail."""

from datetime import datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field


class ActorType(StrEnum):
    """Who performed an audited action."""

    USER = "USER"
    DRIVER = "DRIVER"
    SYSTEM = "SYSTEM"
    OPERATOR = "OPERATOR"
    PARTNER = "PARTNER"
    NETWORK_ADMIN = "NETWORK_ADMIN"
    PLATFORM_ADMIN = "PLATFORM_ADMIN"


class ActorContext(BaseModel):
    """Identity of the caller, resolved once at the request boundary."""

    actor_type: ActorType = ActorType.SYSTEM
    actor_id: str | None = None
    ip_address: str | None = None
    user_agent: str | None = None

    model_config = {"frozen": True}


class AuditEntry(BaseModel):
    """One record written to the audit sink."""

    network_id: int | None = None
    wash_event_id: int | None = None
    action: str
    entity_type: str
    entity_id: int | None = None
    actor: ActorContext
    previous_data: dict[str, Any] | None = None
    new_data: dict[str, Any] | None = None
    metadata: dict[str, Any] | None = None


class AuditLogResponse(BaseModel):
    """Audit log row as returned by the API."""

    id: int
    network_id: int | None
    wash_event_id: int | None
    action: str
    actor_type: str
    actor_id: str | None
    entity_type: str
    entity_id: int | None
    previous_data: dict[str, Any] | None
    new_data: dict[str, Any] | None
    metadata: dict[str, Any] | None = Field(default=None, validation_alias="extra")
    ip_address: str | None
    user_agent: str | None
    created_at: datetime

    model_config = {"from_attributes": True, "populate_by_name": True}
