# Overview: Capability definitions, default role grants, and the role-based authorization context.

"""
The engine never resolves permissions itself. It asks an authorization
context `can(actor_id, capability)` at the one place a capability gates a
state transition (voiding), and routes ask it before dispatching. Any
object with that method works; RoleAuthorization is the default used by
the HTTP layer.
"""

from __future__ import annotations

from typing import Iterable, Mapping, Protocol


# Each capability is defined as: (code, name, description)

CREATE_TRANSACTION = "CREATE_TRANSACTION"
PROCESS_PAYMENT = "PROCESS_PAYMENT"
VOID_UNPAID_TRANSACTION = "VOID_UNPAID_TRANSACTION"
VOID_PAID_TRANSACTION = "VOID_PAID_TRANSACTION"
MANAGE_PROMOTIONS = "MANAGE_PROMOTIONS"
SUBMIT_DEPOSIT = "SUBMIT_DEPOSIT"
REVIEW_DEPOSIT = "REVIEW_DEPOSIT"

CAPABILITY_DEFINITIONS = [
    (
        CREATE_TRANSACTION,
        "Create Invoice",
        "Ring up invoices and edit them while in service",
    ),
    (
        PROCESS_PAYMENT,
        "Process Payment",
        "Take payment for an in-service invoice",
    ),
    (
        VOID_UNPAID_TRANSACTION,
        "Void Unpaid Invoice",
        "Void an invoice that has not been paid yet",
    ),
    (
        VOID_PAID_TRANSACTION,
        "Void Paid Invoice",
        "Void a paid invoice (manager override)",
    ),
    (
        MANAGE_PROMOTIONS,
        "Manage Promotions",
        "Create and edit promotion codes",
    ),
    (
        SUBMIT_DEPOSIT,
        "Submit Deposit",
        "Submit the end-of-day cash deposit",
    ),
    (
        REVIEW_DEPOSIT,
        "Review Deposit",
        "Approve or reject submitted deposits",
    ),
]

ALL_CAPABILITIES = frozenset(code for code, _name, _description in CAPABILITY_DEFINITIONS)

_RECEPTIONIST = frozenset({
    CREATE_TRANSACTION,
    PROCESS_PAYMENT,
    VOID_UNPAID_TRANSACTION,
    SUBMIT_DEPOSIT,
})

DEFAULT_ROLE_CAPABILITIES: dict[str, frozenset[str]] = {
    "systemAdmin": ALL_CAPABILITIES,
    "operationalManager": ALL_CAPABILITIES,
    "branchAdmin": ALL_CAPABILITIES,
    "branchManager": ALL_CAPABILITIES,
    "receptionist": _RECEPTIONIST,
    "inventoryController": frozenset(),
    "stylist": frozenset(),
    "client": frozenset(),
}


class AuthorizationContext(Protocol):
    def can(self, actor_id, capability: str) -> bool:
        ...


def validate_capability_code(code):
    """Check if a capability code is valid."""
    return code in ALL_CAPABILITIES


class RoleAuthorization:
    """
    Resolves actor -> role -> capabilities.

    Unknown actors and unknown roles hold no capabilities.
    """

    def __init__(
        self,
        roles_by_actor: Mapping[str, str],
        role_capabilities: Mapping[str, Iterable[str]] | None = None,
    ):
        self.roles_by_actor = {str(k): v for k, v in roles_by_actor.items()}
        table = role_capabilities if role_capabilities is not None else DEFAULT_ROLE_CAPABILITIES
        self.role_capabilities = {role: frozenset(caps) for role, caps in table.items()}

    def role_of(self, actor_id) -> str | None:
        if actor_id is None:
            return None
        return self.roles_by_actor.get(str(actor_id))

    def can(self, actor_id, capability: str) -> bool:
        role = self.role_of(actor_id)
        if role is None:
            return False
        return capability in self.role_capabilities.get(role, frozenset())


class AllowAll:
    """Authorization context for trusted in-process callers (CLI, maintenance)."""

    def can(self, actor_id, capability: str) -> bool:
        return True
