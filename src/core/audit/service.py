from enum import StrEnum

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.audit.models import AuditLog
from src.core.audit.schemas import AuditEntry


class AuditAction(StrEnum):
    """Standard audit actions."""

    CREATE = "CREATE"
    AUTHORIZE = "AUTHORIZE"
    START = "START"
    COMPLETE = "COMPLETE"
    REJECT = "REJECT"
    LOCK = "LOCK"
    UPDATE = "UPDATE"
    LOGIN_SUCCESS = "LOGIN_SUCCESS"
    LOGIN_FAILED = "LOGIN_FAILED"


class AuditService:
    """Service for writing and reading the audit trail."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def log(self, entry: AuditEntry, commit: bool = True) -> AuditLog:
        """
        Write an audit record.

        Callers invoke this after their own mutation has committed, so by default
        the audit row is committed on its own.
        """
        audit_log = AuditLog(
            network_id=entry.network_id,
            wash_event_id=entry.wash_event_id,
            action=str(entry.action),
            actor_type=str(entry.actor.actor_type),
            actor_id=entry.actor.actor_id,
            entity_type=entry.entity_type,
            entity_id=entry.entity_id,
            previous_data=entry.previous_data,
            new_data=entry.new_data,
            extra=entry.metadata,
            ip_address=entry.actor.ip_address,
            user_agent=entry.actor.user_agent,
        )

        self.db.add(audit_log)
        if commit:
            await self.db.commit()
        else:
            await self.db.flush()

        return audit_log

    async def list_for_wash_event(self, network_id: int, wash_event_id: int) -> list[AuditLog]:
        """Audit trail of one wash event, oldest first."""
        result = await self.db.execute(
            select(AuditLog)
            .where(
                AuditLog.network_id == network_id,
                AuditLog.wash_event_id == wash_event_id,
            )
            .order_by(AuditLog.created_at.asc(), AuditLog.id.asc())
        )
        return list(result.scalars().all())
