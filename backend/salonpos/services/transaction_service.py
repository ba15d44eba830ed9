# Overview: Invoice lifecycle: create, edit, promotion selection, payment and void.

"""
Transaction Lifecycle Service

WHY: An invoice is rung up while the client is in the chair, edited as
services change, paid once, and possibly voided. This module owns that
flow; lifecycle_service owns which status changes are legal and
pricing_service owns the arithmetic.

DESIGN PRINCIPLES:
- Totals are derived. Every mutation ends in pricing_service.recompute_totals.
- One discount mechanism at a time: attaching a promotion clears the manual
  percentage; changing the manual percentage detaches the promotion.
- Selecting a promotion has no side effects. Usage is recorded in
  process_payment, inside the same database transaction as the payment,
  after re-validating the promotion under a row lock.
- Each operation is one unit of work (run_atomic). Failures leave the
  invoice in its last committed state; nothing is retried here.
"""

from __future__ import annotations

from decimal import Decimal

from flask import current_app

from ..errors import (
    InsufficientPaymentError,
    NotFoundError,
    PermissionDeniedError,
    PersistenceError,
    PromotionIneligibleError,
    ValidationError,
)
from ..extensions import db
from ..models import LineItems, PaymentMethod, Promotion, Transaction, TransactionStatus
from ..time_utils import resolve_clock
from ..validation import ZERO, optional_text, require_text, to_decimal, to_money, to_percentage
from .concurrency import lock_for_update, run_atomic
from .lifecycle_service import may_void, require_mutable, require_transition, void_capability_for
from .pricing_service import (
    compute_discount,
    discount_amount_of,
    line_subtotal,
    loyalty_points_for,
    promotion_snapshot,
    recompute_totals,
)
from .promotion_usage_service import record_usage
from .promotions_service import REASON_NOT_FOUND, check_consumable, find_by_code


VALID_PAYMENT_METHODS = [m.value for m in PaymentMethod]


# =============================================================================
# INTERNAL HELPERS
# =============================================================================

def _locked(transaction_id: int) -> Transaction:
    tx = lock_for_update(db.session.query(Transaction).filter_by(id=transaction_id)).first()
    if tx is None:
        raise NotFoundError("Transaction not found", details={"transactionId": transaction_id})
    return tx


def _check_version(tx: Transaction, expected_version: int | None) -> None:
    """Optimistic concurrency for callers that hold a version from an earlier read."""
    if expected_version is not None and tx.version_id != expected_version:
        raise PersistenceError(
            "This invoice was changed by someone else. Refresh and try again.",
            details={"transactionId": tx.id, "expectedVersion": expected_version, "currentVersion": tx.version_id, "conflict": True},
        )


def _parse_client_info(client_info: dict | None) -> dict:
    client_info = client_info or {}
    if not isinstance(client_info, dict):
        raise ValidationError("clientInfo must be an object")
    return {
        "name": optional_text(client_info.get("name")),
        "phone": optional_text(client_info.get("phone")),
        "email": optional_text(client_info.get("email")),
    }


def _require_items(items: LineItems, client_name: str | None) -> None:
    if items.is_empty:
        raise ValidationError("Please add at least one service or product")
    if items.services and not client_name:
        raise ValidationError("Client name is required for service transactions")


def _attached_promotion(tx: Transaction) -> Promotion | None:
    if not tx.applied_promotion:
        return None
    promotion = db.session.get(Promotion, tx.applied_promotion.get("id"))
    if promotion is None:
        raise PromotionIneligibleError(REASON_NOT_FOUND, "The promotion on this invoice no longer exists")
    return promotion


def _recompute(tx: Transaction) -> None:
    recompute_totals(tx, _attached_promotion(tx))


def _earned_points(tx: Transaction) -> int:
    if not current_app.config.get("LOYALTY_POINTS_ENABLED", True):
        return 0
    amount_per_point = to_decimal(
        current_app.config.get("LOYALTY_AMOUNT_PER_POINT"),
        "LOYALTY_AMOUNT_PER_POINT",
        default=Decimal("100"),
    )
    return loyalty_points_for(tx.transaction_type, tx.client_id, tx.total, amount_per_point)


# =============================================================================
# QUERIES
# =============================================================================

def get_transaction(transaction_id: int) -> Transaction:
    tx = db.session.get(Transaction, transaction_id)
    if tx is None:
        raise NotFoundError("Transaction not found", details={"transactionId": transaction_id})
    return tx


def list_transactions(
    branch_id: str,
    status: str | None = None,
    transaction_type: str | None = None,
    limit: int = 50,
) -> list[Transaction]:
    """Branch invoices, newest first."""
    q = db.session.query(Transaction).filter_by(branch_id=str(branch_id))
    if status and status != "all":
        q = q.filter_by(status=status)
    if transaction_type and transaction_type != "all":
        q = q.filter_by(transaction_type=transaction_type)
    return q.order_by(Transaction.created_at.desc(), Transaction.id.desc()).limit(limit).all()


def list_client_transactions(client_id: str) -> list[Transaction]:
    return db.session.query(Transaction).filter_by(
        client_id=str(client_id)
    ).order_by(Transaction.created_at.desc(), Transaction.id.desc()).all()


def client_loyalty_points(client_id: str, branch_id: str | None = None) -> int:
    """Points a client holds: the sum over their paid invoices (voids hold none)."""
    q = db.session.query(db.func.coalesce(db.func.sum(Transaction.loyalty_points_earned), 0)).filter(
        Transaction.client_id == str(client_id),
        Transaction.status == TransactionStatus.PAID.value,
    )
    if branch_id:
        q = q.filter(Transaction.branch_id == str(branch_id))
    return int(q.scalar() or 0)


# =============================================================================
# CREATE / EDIT
# =============================================================================

def create_transaction(
    branch_id: str,
    services: list | None = None,
    products: list | None = None,
    client_info: dict | None = None,
    *,
    client_id: str | None = None,
    discount=None,
    tax=None,
    created_by: str | None = None,
    notes: str | None = None,
    clock=None,
) -> Transaction:
    """
    Ring up a new invoice in in_service.

    A service sale needs a client name; a product-only sale may be an
    anonymous walk-in.
    """
    if not branch_id:
        raise ValidationError("branchId is required")

    items = LineItems.parse(services, products)
    info = _parse_client_info(client_info)
    _require_items(items, info["name"])

    def _op():
        now = resolve_clock(clock).now()
        tx = Transaction(
            branch_id=str(branch_id),
            client_id=optional_text(client_id),
            client_name=info["name"],
            client_phone=info["phone"],
            client_email=info["email"],
            status=TransactionStatus.IN_SERVICE.value,
            services=[s.to_dict() for s in items.services],
            products=[p.to_dict() for p in items.products],
            discount=to_percentage(discount, "discount", default=ZERO),
            tax=to_money(tax, "tax", default=ZERO),
            applied_promotion=None,
            payment_method=None,
            created_by=optional_text(created_by),
            notes=optional_text(notes),
            created_at=now,
            updated_at=now,
        )
        recompute_totals(tx)
        db.session.add(tx)
        db.session.flush()
        return tx

    tx = run_atomic(_op, description="create transaction")
    current_app.logger.info("Transaction %s created for branch %s (total=%s)", tx.id, tx.branch_id, tx.total)
    return tx


def edit_transaction(
    transaction_id: int,
    *,
    services: list | None = None,
    products: list | None = None,
    discount=None,
    tax=None,
    client_info: dict | None = None,
    notes: str | None = None,
    expected_version: int | None = None,
) -> Transaction:
    """
    Change an in_service invoice. Arguments left as None are untouched.

    A discount that differs from the stored manual percentage replaces
    any attached promotion.
    """
    def _op():
        tx = _locked(transaction_id)
        _check_version(tx, expected_version)
        require_mutable(tx.status, "edit")

        current = tx.line_items
        items = LineItems(
            services=LineItems.parse(services, None).services if services is not None else current.services,
            products=LineItems.parse(None, products).products if products is not None else current.products,
        )

        if client_info is not None:
            info = _parse_client_info(client_info)
            tx.client_name = info["name"]
            tx.client_phone = info["phone"]
            tx.client_email = info["email"]

        _require_items(items, tx.client_name)
        tx.services = [s.to_dict() for s in items.services]
        tx.products = [p.to_dict() for p in items.products]

        if tax is not None:
            tx.tax = to_money(tax, "tax")

        if discount is not None:
            pct = to_percentage(discount, "discount")
            if pct != Decimal(str(tx.discount or 0)):
                tx.applied_promotion = None
                tx.discount = pct

        if notes is not None:
            tx.notes = optional_text(notes)

        _recompute(tx)
        return tx

    return run_atomic(_op, description="edit transaction")


# =============================================================================
# PROMOTION SELECTION (side-effect free)
# =============================================================================

def apply_promotion(
    transaction_id: int,
    *,
    code: str | None = None,
    promotion_id: int | None = None,
    client_id: str | None = None,
    clock=None,
) -> Transaction:
    """
    Attach a promotion to an in_service invoice.

    Validates eligibility and stores the priced snapshot; clears the manual
    percentage. Does not record usage.
    """
    if code is None and promotion_id is None:
        raise ValidationError("Please select a promotion")

    def _op():
        tx = _locked(transaction_id)
        require_mutable(tx.status, "apply a promotion to")

        if promotion_id is not None:
            promotion = db.session.get(Promotion, promotion_id)
        else:
            promotion = find_by_code(code, tx.branch_id)
        if promotion is None or promotion.branch_id != tx.branch_id:
            raise PromotionIneligibleError(REASON_NOT_FOUND, "Invalid promotion code")

        if client_id and not tx.client_id:
            tx.client_id = str(client_id)
        check_consumable(promotion, tx.client_id, resolve_clock(clock).now())

        items = tx.line_items
        result = compute_discount(promotion, line_subtotal(items), items.services, items.products)
        tx.applied_promotion = promotion_snapshot(promotion, result)
        tx.discount = ZERO
        recompute_totals(tx, promotion)
        return tx

    return run_atomic(_op, description="apply promotion")


def remove_promotion(transaction_id: int) -> Transaction:
    def _op():
        tx = _locked(transaction_id)
        require_mutable(tx.status, "remove a promotion from")
        tx.applied_promotion = None
        tx.discount = ZERO
        recompute_totals(tx)
        return tx

    return run_atomic(_op, description="remove promotion")


# =============================================================================
# PAYMENT
# =============================================================================

def process_payment(
    transaction_id: int,
    payment_method: str | None,
    amount_received=None,
    *,
    expected_version: int | None = None,
    clock=None,
) -> Transaction:
    """
    Take payment for an in_service invoice (in_service -> paid).

    Cash requires amount_received >= total and records the change. If a
    promotion is attached it is re-validated and its usage recorded in the
    same commit as the payment.

    Raises:
        ValidationError: missing or unknown payment method
        InsufficientPaymentError: cash received below total
        InvalidStateError: invoice is not in_service
        PromotionIneligibleError: attached promotion is no longer consumable
    """
    if not payment_method:
        raise ValidationError("Please select a payment method")
    if payment_method not in VALID_PAYMENT_METHODS:
        raise ValidationError(
            f"Invalid payment method: {payment_method}. Must be one of {VALID_PAYMENT_METHODS}"
        )

    def _op():
        tx = _locked(transaction_id)
        _check_version(tx, expected_version)
        require_transition(tx.status, TransactionStatus.PAID.value)

        now = resolve_clock(clock).now()
        promotion = _attached_promotion(tx)
        recompute_totals(tx, promotion)
        total = Decimal(str(tx.total))

        if payment_method == PaymentMethod.CASH.value:
            received = to_money(amount_received, "amountReceived")
            if received < total:
                raise InsufficientPaymentError(
                    "Amount received is less than the total amount due",
                    details={
                        "total": float(total),
                        "amountReceived": float(received),
                        "shortBy": float(total - received),
                    },
                )
            tx.amount_received = received
            tx.change = received - total
        else:
            tx.amount_received = total
            tx.change = None

        if promotion is not None:
            # fresh usage state under the row lock
            db.session.expire(promotion)
            lock_for_update(db.session.query(Promotion).filter_by(id=promotion.id)).first()
            check_consumable(promotion, tx.client_id, now)
            record_usage(
                promotion.id,
                tx.client_id,
                transaction_id=tx.id,
                discount_amount=discount_amount_of(tx),
                clock=clock,
            )

        tx.payment_method = payment_method
        tx.status = TransactionStatus.PAID.value
        tx.processed_at = now
        tx.loyalty_points_earned = _earned_points(tx)
        return tx

    tx = run_atomic(_op, description="process payment")
    current_app.logger.info(
        "Transaction %s paid by %s (total=%s, change=%s, points=%s)",
        tx.id, tx.payment_method, tx.total, tx.change, tx.loyalty_points_earned,
    )
    return tx


# =============================================================================
# VOID
# =============================================================================

def void_transaction(
    transaction_id: int,
    reason: str,
    actor_id: str,
    *,
    notes: str | None = None,
    authorization=None,
    expected_version: int | None = None,
    clock=None,
) -> Transaction:
    """
    Void an in_service or paid invoice. Terminal.

    When an authorization context is given, the actor must hold the
    capability for the invoice's current status (see
    lifecycle_service.void_capability_for). Promotion usage already
    recorded for a paid invoice is not reversed; its loyalty points are.
    """
    reason = require_text(reason, "Void reason")
    actor_id = require_text(actor_id, "actorId")

    def _op():
        tx = _locked(transaction_id)
        _check_version(tx, expected_version)
        require_transition(tx.status, TransactionStatus.VOIDED.value)

        if authorization is not None and not may_void(authorization, actor_id, tx.status):
            capability = void_capability_for(tx.status)
            if tx.status == TransactionStatus.PAID.value:
                message = "Only Branch Manager or Admin can void paid transactions. Please contact your manager."
            else:
                message = "You do not have permission to void transactions."
            raise PermissionDeniedError(message, details={"requiredCapability": capability, "status": tx.status})

        previous = tx.status
        reversed_points = tx.loyalty_points_earned or 0
        tx.status = TransactionStatus.VOIDED.value
        tx.void_reason = reason
        tx.void_notes = optional_text(notes)
        tx.voided_by = actor_id
        tx.voided_at = resolve_clock(clock).now()
        tx.loyalty_points_earned = 0
        return tx, previous, reversed_points

    tx, previous, reversed_points = run_atomic(_op, description="void transaction")
    current_app.logger.info("Transaction %s voided from %s by %s: %s", tx.id, previous, actor_id, reason)
    if reversed_points:
        current_app.logger.info(
            "Reversed %s loyalty points for client %s (transaction %s)", reversed_points, tx.client_id, tx.id
        )
    return tx
