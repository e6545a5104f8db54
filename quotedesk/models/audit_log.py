"""
Audit Log model for tracking state transitions and critical actions.

Rows are append-only: the ORM refuses updates and deletes.
"""
from sqlalchemy import Column, String, Text, DateTime, Enum as SQLEnum, event
from datetime import datetime, timezone
import enum

from quotedesk.database import Base, Id
from quotedesk.exceptions import AuditLogImmutableError


class AuditAction(enum.Enum):
    """Enumeration of auditable actions."""
    # Workflow
    STATUS_CHANGED = "STATUS_CHANGED"

    # Clients
    CLIENT_CREATED = "CLIENT_CREATED"
    CLIENT_UPDATED = "CLIENT_UPDATED"
    CLIENT_DELETED = "CLIENT_DELETED"

    # Quotes
    QUOTE_CREATED = "QUOTE_CREATED"
    QUOTE_UPDATED = "QUOTE_UPDATED"
    QUOTE_DELETED = "QUOTE_DELETED"

    # Invoices
    INVOICE_CREATED = "INVOICE_CREATED"
    PAYMENT_RECORDED = "PAYMENT_RECORDED"
    INVOICE_EMAILED = "INVOICE_EMAILED"

    # Settings & users
    SETTINGS_CHANGED = "SETTINGS_CHANGED"
    USER_CREATED = "USER_CREATED"
    USER_DEACTIVATED = "USER_DEACTIVATED"

    # Tax rate presets
    TAX_RATE_CREATED = "TAX_RATE_CREATED"
    TAX_RATE_UPDATED = "TAX_RATE_UPDATED"
    TAX_RATE_DELETED = "TAX_RATE_DELETED"


class AuditLog(Base):
    """Audit log entry, keyed by (entity_type, entity_id)."""
    __tablename__ = 'audit_log'

    id = Column(Id, primary_key=True, autoincrement=True)
    entity_type = Column(String(20), nullable=False, index=True)  # 'quote', 'invoice', 'client'...
    entity_id = Column(Id, nullable=True, index=True)
    action = Column(SQLEnum(AuditAction, name='audit_action'), nullable=False, index=True)
    from_state = Column(String(20), nullable=True)
    to_state = Column(String(20), nullable=True)
    actor_id = Column(Id, nullable=True)  # NULL for system jobs
    actor_role = Column(String(20), nullable=True)
    details = Column(Text, nullable=True)  # JSON
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False, index=True)

    def to_dict(self):
        return {
            'id': self.id,
            'entity_type': self.entity_type,
            'entity_id': self.entity_id,
            'action': self.action.value,
            'from_state': self.from_state,
            'to_state': self.to_state,
            'actor_id': self.actor_id,
            'actor_role': self.actor_role,
            'details': self.details,
            'created_at': self.created_at.isoformat(),
        }

    def __repr__(self):
        return f"<AuditLog {self.action.value} {self.entity_type}#{self.entity_id} by {self.actor_id} at {self.created_at}>"


@event.listens_for(AuditLog, 'before_update')
def _refuse_update(mapper, connection, target):
    raise AuditLogImmutableError(f"Audit entry {target.id} cannot be modified")


@event.listens_for(AuditLog, 'before_delete')
def _refuse_delete(mapper, connection, target):
    raise AuditLogImmutableError(f"Audit entry {target.id} cannot be deleted")
