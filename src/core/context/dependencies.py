from typing import Annotated

from fastapi import Depends, Header, Request
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.audit.schemas import ActorContext, ActorType
from src.core.database import get_db
from src.core.exceptions import NotFoundError, ValidationError
from src.modules.networks.models import Network


async def get_network_id(
    x_network_id: Annotated[int | None, Header()] = None,
    db: AsyncSession = Depends(get_db),
) -> int:
    """
    Resolve the tenant of the request from the X-Network-Id header.

    The network must exist and be active. Services receive the returned id as a
    mandatory argument; nothing below the router falls back to a default network.
    """
    if x_network_id is None:
        raise ValidationError("X-Network-Id header required", field="X-Network-Id")

    result = await db.execute(
        select(Network.id).where(
            Network.id == x_network_id,
            Network.is_active == True,  # noqa: E712
        )
    )
    network_id = result.scalar_one_or_none()
    if network_id is None:
        raise NotFoundError("Network", x_network_id)
    return network_id


async def get_actor_context(
    request: Request,
    x_actor_type: Annotated[str | None, Header()] = None,
    x_actor_id: Annotated[str | None, Header()] = None,
) -> ActorContext:
    """Who is calling, for the audit trail."""
    actor_type = ActorType.SYSTEM
    if x_actor_type:
        try:
            actor_type = ActorType(x_actor_type.upper())
        except ValueError:
            raise ValidationError(f"Unknown actor type: {x_actor_type}", field="X-Actor-Type")

    return ActorContext(
        actor_type=actor_type,
        actor_id=x_actor_id,
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )


NetworkId = Annotated[int, Depends(get_network_id)]
Actor = Annotated[ActorContext, Depends(get_actor_context)]
