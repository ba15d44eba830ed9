# Overview: End-of-day deposit reconciliation, submission and review.

"""
Deposit Reconciler

A branch declares the cash it banked for a calendar day; the amount is
compared against what was rung up that day:

    difference = declared - daily_sales_total

    |difference| <= tolerance           -> match
    |difference| >  mismatch threshold  -> mismatch
    otherwise                           -> manual_review

classify_deposit is pure. submit_deposit freezes the classification on
the Deposit record; review_deposit is the manager's approve/reject.

Which invoices count toward the day's sales is a setting
(DEPOSIT_INCLUDE_UNPAID): by default in_service and paid both count,
voided never does.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from flask import current_app

from ..errors import InvalidStateError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Deposit, DepositStatus, Transaction, TransactionStatus, ValidationStatus
from ..time_utils import day_bounds, parse_business_date, resolve_clock
from ..validation import ZERO, money_to_json, optional_text, require_text, round_money, to_decimal, to_money
from .concurrency import lock_for_update, run_atomic
from .pricing_service import discount_amount_of


DEFAULT_TOLERANCE = Decimal("1.00")
DEFAULT_MISMATCH_THRESHOLD = Decimal("100.00")

REVIEW_ACTIONS = {
    "approve": DepositStatus.APPROVED.value,
    "reject": DepositStatus.REJECTED.value,
}


@dataclass(frozen=True)
class Classification:
    difference: Decimal
    status: str
    message: str

    @property
    def has_anomaly(self) -> bool:
        return self.status != ValidationStatus.MATCH.value

    def to_dict(self) -> dict:
        return {
            "difference": money_to_json(self.difference),
            "status": self.status,
            "message": self.message,
            "hasAnomaly": self.has_anomaly,
        }


def _peso(amount: Decimal) -> str:
    return f"₱{amount:,.2f}"


def _setting(name: str, default: Decimal) -> Decimal:
    return to_decimal(current_app.config.get(name), name, default=default)


def _coerce_day(value) -> date:
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValidationError("Please select deposit date")
    try:
        return parse_business_date(value)
    except (AttributeError, TypeError, ValueError):
        raise ValidationError("date must be YYYY-MM-DD")


def _day_query(branch_id: str, day: date, tz: str | None):
    start, end = day_bounds(day, tz or current_app.config.get("BUSINESS_TIMEZONE", "UTC"))
    return db.session.query(Transaction).filter(
        Transaction.branch_id == str(branch_id),
        Transaction.created_at >= start,
        Transaction.created_at <= end,
    )


# =============================================================================
# DAILY TOTAL + CLASSIFICATION
# =============================================================================

def compute_daily_sales_total(branch_id: str, day, include_unpaid: bool | None = None, tz: str | None = None) -> Decimal:
    """Sum of invoice totals rung up on `day` (branch calendar day), voids excluded."""
    if not branch_id:
        raise ValidationError("Branch ID is required")
    day = _coerce_day(day)
    if include_unpaid is None:
        include_unpaid = bool(current_app.config.get("DEPOSIT_INCLUDE_UNPAID", True))

    counted = [TransactionStatus.PAID.value]
    if include_unpaid:
        counted.append(TransactionStatus.IN_SERVICE.value)

    rows = _day_query(branch_id, day, tz).filter(Transaction.status.in_(counted)).with_entities(Transaction.total).all()
    return round_money(sum((Decimal(str(total or 0)) for (total,) in rows), ZERO))


def classify_deposit(declared, daily_total, tolerance=None, mismatch_threshold=None) -> Classification:
    declared = to_money(declared, "amount", allow_negative=True)
    daily_total = to_money(daily_total, "dailySalesTotal", allow_negative=True)
    tolerance = to_decimal(tolerance, "tolerance", default=DEFAULT_TOLERANCE)
    mismatch_threshold = to_decimal(mismatch_threshold, "mismatchThreshold", default=DEFAULT_MISMATCH_THRESHOLD)

    difference = round_money(declared - daily_total)
    gap = abs(difference)

    if gap <= tolerance:
        return Classification(difference, ValidationStatus.MATCH.value, "Amount matches daily sales")
    if gap > mismatch_threshold:
        return Classification(difference, ValidationStatus.MISMATCH.value, f"Significant difference: {_peso(gap)}")
    return Classification(
        difference,
        ValidationStatus.MANUAL_REVIEW.value,
        f"Minor difference: {_peso(gap)} - requires review",
    )


def describe_anomalies(declared, daily_total, classification: Classification) -> str | None:
    """Reviewer-facing explanation of a non-matching deposit; None when it matches."""
    if not classification.has_anomaly:
        return None
    declared = round_money(Decimal(str(declared)))
    daily_total = round_money(Decimal(str(daily_total)))
    gap = abs(classification.difference)

    notes = []
    if daily_total == 0:
        notes.append("No daily sales transactions found for the selected date. Cannot validate deposit amount.")
    elif classification.status == ValidationStatus.MISMATCH.value:
        notes.append(
            f"Deposit amount ({_peso(declared)}) differs significantly from daily sales total "
            f"({_peso(daily_total)}) by {_peso(gap)}"
        )
    else:
        notes.append(
            f"Deposit amount ({_peso(declared)}) differs from daily sales total "
            f"({_peso(daily_total)}) by {_peso(gap)}"
        )
    return " | ".join(notes)


def reconcile(branch_id: str, day, declared, include_unpaid: bool | None = None) -> tuple[Decimal, Classification]:
    """Daily total and classification with the configured thresholds."""
    daily_total = compute_daily_sales_total(branch_id, day, include_unpaid)
    classification = classify_deposit(
        declared,
        daily_total,
        _setting("DEPOSIT_TOLERANCE", DEFAULT_TOLERANCE),
        _setting("DEPOSIT_MISMATCH_THRESHOLD", DEFAULT_MISMATCH_THRESHOLD),
    )
    return daily_total, classification


# =============================================================================
# DEPOSIT RECORDS
# =============================================================================

def get_deposit(deposit_id: int) -> Deposit:
    deposit = db.session.get(Deposit, deposit_id)
    if deposit is None:
        raise NotFoundError("Deposit not found", details={"depositId": deposit_id})
    return deposit


def list_deposits(branch_id: str | None = None) -> list[Deposit]:
    """Newest submission first; all branches when branch_id is None."""
    q = db.session.query(Deposit)
    if branch_id:
        q = q.filter_by(branch_id=str(branch_id))
    return q.order_by(Deposit.submitted_at.desc(), Deposit.id.desc()).all()


def submit_deposit(
    branch_id: str,
    deposit_date,
    amount,
    submitted_by: str,
    *,
    bank_name: str | None = None,
    account_number: str | None = None,
    reference_number: str | None = None,
    notes: str | None = None,
    clock=None,
) -> Deposit:
    if not branch_id:
        raise ValidationError("Branch ID is required")
    day = _coerce_day(deposit_date)
    declared = to_money(amount, "amount")
    if declared <= 0:
        raise ValidationError("Please enter a valid deposit amount")
    submitted_by = require_text(submitted_by, "submittedBy")

    daily_total, classification = reconcile(branch_id, day, declared)

    def _op():
        now = resolve_clock(clock).now()
        deposit = Deposit(
            branch_id=str(branch_id),
            deposit_date=day,
            amount=declared,
            daily_sales_total=daily_total,
            difference=classification.difference,
            validation_status=classification.status,
            has_anomaly=classification.has_anomaly,
            anomaly_description=describe_anomalies(declared, daily_total, classification),
            status=DepositStatus.SUBMITTED.value,
            bank_name=optional_text(bank_name),
            account_number=optional_text(account_number),
            reference_number=optional_text(reference_number),
            notes=optional_text(notes),
            submitted_by=submitted_by,
            submitted_at=now,
            created_at=now,
            updated_at=now,
        )
        db.session.add(deposit)
        db.session.flush()
        return deposit

    deposit = run_atomic(_op, description="submit deposit")
    log = current_app.logger.warning if deposit.has_anomaly else current_app.logger.info
    log(
        "Deposit %s for branch %s on %s classified %s (declared=%s, sales=%s)",
        deposit.id, deposit.branch_id, day.isoformat(), deposit.validation_status, declared, daily_total,
    )
    return deposit


def review_deposit(deposit_id: int, action: str, reviewed_by: str, notes: str | None = None, *, clock=None) -> Deposit:
    """Approve or reject a submitted deposit. A reviewed deposit is final."""
    if action not in REVIEW_ACTIONS:
        raise ValidationError(f"Invalid review action: {action}. Must be approve or reject")
    reviewed_by = require_text(reviewed_by, "reviewedBy")

    def _op():
        deposit = lock_for_update(db.session.query(Deposit).filter_by(id=deposit_id)).first()
        if deposit is None:
            raise NotFoundError("Deposit not found", details={"depositId": deposit_id})
        if deposit.status != DepositStatus.SUBMITTED.value:
            raise InvalidStateError(
                f"Deposit has already been {deposit.status}",
                details={"status": deposit.status},
            )
        deposit.status = REVIEW_ACTIONS[action]
        deposit.reviewed_by = reviewed_by
        deposit.reviewed_at = resolve_clock(clock).now()
        deposit.review_notes = optional_text(notes)
        return deposit

    deposit = run_atomic(_op, description="review deposit")
    current_app.logger.info("Deposit %s %s by %s", deposit.id, deposit.status, reviewed_by)
    return deposit


# =============================================================================
# REPORTING
# =============================================================================

def daily_sales_summary(branch_id: str, day, tz: str | None = None) -> dict:
    """Totals over the day's paid invoices."""
    if not branch_id:
        raise ValidationError("Branch ID is required")
    day = _coerce_day(day)
    paid = _day_query(branch_id, day, tz).filter(Transaction.status == TransactionStatus.PAID.value).all()

    revenue = ZERO
    discounts = ZERO
    tax = ZERO
    by_method: dict[str, dict] = {}
    for tx in paid:
        total = Decimal(str(tx.total or 0))
        revenue += total
        discounts += discount_amount_of(tx)
        tax += Decimal(str(tx.tax or 0))
        bucket = by_method.setdefault(tx.payment_method, {"count": 0, "total": ZERO})
        bucket["count"] += 1
        bucket["total"] += total

    count = len(paid)
    return {
        "branchId": str(branch_id),
        "date": day.isoformat(),
        "transactionCount": count,
        "totalRevenue": money_to_json(revenue),
        "totalDiscounts": money_to_json(discounts),
        "totalTax": money_to_json(tax),
        "averageTicket": money_to_json(revenue / count) if count else 0.0,
        "paymentMethods": {
            method: {"count": b["count"], "total": money_to_json(b["total"])}
            for method, b in sorted(by_method.items())
        },
    }
