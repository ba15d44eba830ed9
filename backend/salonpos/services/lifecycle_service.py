# Overview: Central transition table for invoice status.

"""
Invoice Lifecycle

================================================================================
PURPOSE: Enforce in_service -> paid -> voided for salon invoices
================================================================================

STATE MACHINE:
    in_service -> paid
    in_service -> voided
    paid       -> voided

    in_service: Being worked on; line items, discount, tax and promotion
                may change
    paid:       Payment attached; contents frozen; may still be voided
                by an actor holding the paid-void capability
    voided:     Terminal. Nothing on the record changes again.

RULES (NON-NEGOTIABLE):
1. There is no path back to in_service.
2. voided has no outgoing transitions.
3. Every status check in the services goes through this module.

================================================================================
"""

from __future__ import annotations

from ..errors import InvalidStateError, ValidationError
from ..models import TransactionStatus
from ..permissions import VOID_PAID_TRANSACTION, VOID_UNPAID_TRANSACTION


VALID_STATUSES = {status.value for status in TransactionStatus}

_TRANSITIONS: dict[TransactionStatus, frozenset[TransactionStatus]] = {
    TransactionStatus.IN_SERVICE: frozenset({TransactionStatus.PAID, TransactionStatus.VOIDED}),
    TransactionStatus.PAID: frozenset({TransactionStatus.VOIDED}),
    TransactionStatus.VOIDED: frozenset(),
}

# Only these states accept edits to line items, discount, tax or promotion
_MUTABLE = frozenset({TransactionStatus.IN_SERVICE})


def validate_status(status: str) -> TransactionStatus:
    """
    Validate that a status value is one of the allowed states.

    Raises:
        ValidationError: If status is not in VALID_STATUSES
    """
    try:
        return TransactionStatus(status)
    except ValueError:
        raise ValidationError(
            f"Invalid status '{status}'. Must be one of: {', '.join(sorted(VALID_STATUSES))}"
        )


def can_transition(from_status: str, to_status: str) -> bool:
    """Check if a state transition is allowed by the table above."""
    source = validate_status(from_status)
    target = validate_status(to_status)
    return target in _TRANSITIONS[source]


def require_transition(from_status: str, to_status: str) -> None:
    if can_transition(from_status, to_status):
        return
    if from_status == TransactionStatus.VOIDED.value:
        raise InvalidStateError(
            "Transaction is already voided",
            details={"status": from_status, "requested": to_status},
        )
    raise InvalidStateError(
        f"Cannot move a {from_status} transaction to {to_status}",
        details={"status": from_status, "requested": to_status},
    )


def require_mutable(status: str, action: str = "edit") -> None:
    """Edits are only legal while in_service."""
    current = validate_status(status)
    if current in _MUTABLE:
        return
    raise InvalidStateError(
        f"Cannot {action} a {current.value} transaction",
        details={"status": current.value},
    )


def void_capability_for(status: str) -> str:
    """
    Capability the actor needs to void a transaction in this status.

    Voiding a paid invoice is a separate, privileged capability. Callers use
    this to run their own authorization before calling void.
    """
    current = validate_status(status)
    if current == TransactionStatus.PAID:
        return VOID_PAID_TRANSACTION
    return VOID_UNPAID_TRANSACTION


def may_void(authorization, actor_id, status: str) -> bool:
    """
    Precondition check for voiding.

    Holders of the paid-void capability may also void unpaid invoices.
    """
    required = void_capability_for(status)
    if authorization.can(actor_id, required):
        return True
    if required == VOID_UNPAID_TRANSACTION:
        return authorization.can(actor_id, VOID_PAID_TRANSACTION)
    return False
