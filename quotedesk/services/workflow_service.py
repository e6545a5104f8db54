"""
Status workflow for quotes and invoice payments.

Two independent state machines:

    quote:   draft -> sent -> approved | rejected
             approved -> invoiced
             (rejected, invoiced are terminal)

    invoice: pending -> partial | paid | overdue
             partial -> paid | overdue
             overdue -> partial | paid
             (paid is terminal)

`transition()` is pure: it validates one edge and returns the AuditRecord
describing it. Persisting the record is the caller's job
(see audit_service.record_transition).
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, FrozenSet, Optional, Type

from quotedesk.exceptions import InvalidTransitionError
from quotedesk.models.quote import QuoteStatus
from quotedesk.models.invoice import PaymentStatus

logger = logging.getLogger(__name__)

QUOTE = 'quote'
INVOICE = 'invoice'


@dataclass(frozen=True)
class Actor:
    """Identity performing a transition; User objects work as well."""
    id: Optional[int]
    role: str


SYSTEM_ACTOR = Actor(id=None, role='system')


def actor_identity(actor: Any):
    """Return (actor_id, role_label) for a User, an Actor or None."""
    if actor is None:
        actor = SYSTEM_ACTOR
    role = getattr(actor, 'role', None)
    return getattr(actor, 'id', None), getattr(role, 'value', role)


@dataclass(frozen=True)
class AuditRecord:
    """Immutable description of one successful transition."""
    entity_type: str
    entity_id: Optional[int]
    from_state: str
    to_state: str
    actor_id: Optional[int]
    actor_role: Optional[str]
    occurred_at: datetime


class StateMachine:
    """Directed graph of legal single-step status changes."""

    def __init__(self, entity_type: str, states: Type, edges: Dict[Any, FrozenSet], initial):
        self.entity_type = entity_type
        self.states = states
        self.edges = {state: frozenset(edges.get(state, ())) for state in states}
        self.initial = initial

    def coerce(self, state):
        """Turn 'sent' / QuoteStatus.SENT into a member of this machine's enum."""
        if isinstance(state, self.states):
            return state
        try:
            return self.states(getattr(state, 'value', state))
        except ValueError:
            raise InvalidTransitionError(
                self.entity_type, state, state,
                message=f"Unknown {self.entity_type} state: {getattr(state, 'value', state)!r}",
            )

    def targets(self, state) -> FrozenSet:
        return self.edges[self.coerce(state)]

    def is_terminal(self, state) -> bool:
        return not self.targets(state)

    def can_transition(self, current, target) -> bool:
        try:
            return self.coerce(target) in self.targets(current)
        except InvalidTransitionError:
            return False


QUOTE_WORKFLOW = StateMachine(QUOTE, QuoteStatus, {
    QuoteStatus.DRAFT: {QuoteStatus.SENT},
    QuoteStatus.SENT: {QuoteStatus.APPROVED, QuoteStatus.REJECTED},
    QuoteStatus.APPROVED: {QuoteStatus.INVOICED},
}, initial=QuoteStatus.DRAFT)

PAYMENT_WORKFLOW = StateMachine(INVOICE, PaymentStatus, {
    PaymentStatus.PENDING: {PaymentStatus.PARTIAL, PaymentStatus.PAID, PaymentStatus.OVERDUE},
    PaymentStatus.PARTIAL: {PaymentStatus.PAID, PaymentStatus.OVERDUE},
    PaymentStatus.OVERDUE: {PaymentStatus.PARTIAL, PaymentStatus.PAID},
}, initial=PaymentStatus.PENDING)

WORKFLOWS = {
    QUOTE: QUOTE_WORKFLOW,
    INVOICE: PAYMENT_WORKFLOW,
}

# User-facing quote actions and the state each one requests
QUOTE_ACTIONS = {
    'send': QuoteStatus.SENT,
    'approve': QuoteStatus.APPROVED,
    'reject': QuoteStatus.REJECTED,
}


def get_workflow(entity_type: str) -> StateMachine:
    try:
        return WORKFLOWS[entity_type]
    except KeyError:
        raise InvalidTransitionError(entity_type, None, None,
                                     message=f"No workflow defined for {entity_type!r}")


def quote_target_for_action(action: str) -> QuoteStatus:
    """Map 'send' / 'approve' / 'reject' onto the requested quote status."""
    try:
        return QUOTE_ACTIONS[str(action).strip().lower()]
    except KeyError:
        raise InvalidTransitionError(QUOTE, None, action,
                                     message=f"Unknown quote action {action!r}")


def transition(entity_type: str, current_state, target_state, actor,
               entity_id: Optional[int] = None, at: Optional[datetime] = None) -> AuditRecord:
    """
    Validate a single-edge status change.

    Returns:
        AuditRecord for the transition

    Raises:
        InvalidTransitionError: when target is not one edge away from current
    """
    workflow = get_workflow(entity_type)
    try:
        current = workflow.coerce(current_state)
        target = workflow.coerce(target_state)
    except InvalidTransitionError as e:
        raise InvalidTransitionError(entity_type, current_state, target_state, message=e.message) from None

    if target not in workflow.targets(current):
        logger.warning(f"Rejected {entity_type} {entity_id} transition {current.value} -> {target.value}")
        raise InvalidTransitionError(entity_type, current, target)

    actor_id, actor_role = actor_identity(actor)
    return AuditRecord(
        entity_type=entity_type,
        entity_id=entity_id,
        from_state=current.value,
        to_state=target.value,
        actor_id=actor_id,
        actor_role=actor_role,
        occurred_at=at or datetime.now(timezone.utc),
    )
