"""
Audit logging service.

Every successful status transition and every critical mutation is written to
the append-only audit_log table inside the caller's transaction.
"""
from quotedesk.models.audit_log import AuditLog, AuditAction
from quotedesk.services.workflow_service import AuditRecord, actor_identity
from datetime import datetime, timezone
import json
import logging

logger = logging.getLogger(__name__)


def _serialize_details(details):
    if not details:
        return None
    try:
        return json.dumps(details, default=str)
    except (TypeError, ValueError) as e:
        logger.warning(f"Failed to serialize audit details: {e}")
        return str(details)


def record_transition(session, record: AuditRecord, details: dict = None) -> AuditLog:
    """
    Persist a workflow AuditRecord.

    Note: Caller is responsible for committing the session, so the entry
    lands in the same transaction as the status change.
    """
    entry = AuditLog(
        entity_type=record.entity_type,
        entity_id=record.entity_id,
        action=AuditAction.STATUS_CHANGED,
        from_state=record.from_state,
        to_state=record.to_state,
        actor_id=record.actor_id,
        actor_role=record.actor_role,
        details=_serialize_details(details),
        created_at=record.occurred_at,
    )
    session.add(entry)

    logger.info(
        f"Audit: {record.entity_type} {record.entity_id} "
        f"{record.from_state} -> {record.to_state} by {record.actor_role}:{record.actor_id}"
    )
    return entry


def log_action(
    session,
    action: AuditAction,
    actor,
    entity_type: str = None,
    entity_id: int = None,
    details: dict = None
) -> AuditLog:
    """
    Log an auditable non-transition action (creation, edit, deletion...).

    Args:
        session: Database session
        action: AuditAction enum value
        actor: User performing the action (None for system jobs)
        entity_type: Type of entity affected (e.g., 'client', 'quote')
        entity_id: ID of the affected entity
        details: Dict with additional details (will be JSON encoded)
    """
    actor_id, actor_role = actor_identity(actor)
    entry = AuditLog(
        entity_type=entity_type or 'system',
        entity_id=entity_id,
        action=action,
        actor_id=actor_id,
        actor_role=actor_role,
        details=_serialize_details(details),
        created_at=datetime.now(timezone.utc),
    )
    session.add(entry)
    # Note: Caller is responsible for committing the session

    logger.info(f"Audit log created: {action.value} by user {actor_id} on {entity_type} {entity_id}")
    return entry


def get_entity_history(session, entity_type: str, entity_id: int):
    """
    Return the audit trail for one entity in the order it was written.
    """
    return (
        session.query(AuditLog)
        .filter(AuditLog.entity_type == entity_type, AuditLog.entity_id == entity_id)
        .order_by(AuditLog.created_at.asc(), AuditLog.id.asc())
        .all()
    )


def get_audit_logs(
    session,
    limit: int = 100,
    offset: int = 0,
    action_filter: AuditAction = None,
    actor_id_filter: int = None,
    entity_type_filter: str = None
):
    """
    Retrieve audit logs with optional filters, newest first.
    """
    query = session.query(AuditLog)

    if action_filter:
        query = query.filter(AuditLog.action == action_filter)

    if actor_id_filter:
        query = query.filter(AuditLog.actor_id == actor_id_filter)

    if entity_type_filter:
        query = query.filter(AuditLog.entity_type == entity_type_filter)

    query = query.order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
    query = query.limit(limit).offset(offset)

    return query.all()
