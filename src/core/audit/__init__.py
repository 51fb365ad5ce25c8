from src.core.audit.models import AuditLog
from src.core.audit.schemas import ActorContext, ActorType, AuditEntry
from src.core.audit.service import AuditAction, AuditService

__all__ = ["AuditLog", "ActorContext", "ActorType", "AuditEntry", "AuditAction", "AuditService"]
