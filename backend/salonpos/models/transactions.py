from __future__ import annotations

from decimal import Decimal
from enum import Enum

from ..extensions import db
from salonpos.time_utils import clock_now, to_utc_z
from salonpos.validation import ZERO, money_to_json
from .line_items import LineItems, ProductLine, ServiceLine


class TransactionStatus(str, Enum):
    IN_SERVICE = "in_service"
    PAID = "paid"
    VOIDED = "voided"


class PaymentMethod(str, Enum):
    CASH = "cash"
    CARD = "card"
    DIGITAL = "digital"


class Transaction(db.Model):
    """
    One salon invoice.

    Line items and the promotion snapshot are JSON so report tooling can
    read them as-is. subtotal/total are derived columns: they are written
    only by pricing_service.recompute_totals, never set directly.
    """
    __tablename__ = "transactions"
    __table_args__ = (
        # Daily reconciliation scans by branch and creation time
        db.Index("ix_transactions_branch_created", "branch_id", "created_at"),
        db.Index("ix_transactions_branch_status", "branch_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    branch_id = db.Column(db.String(64), nullable=False, index=True)

    # Walk-ins have no client_id, only a name
    client_id = db.Column(db.String(64), nullable=True, index=True)
    client_name = db.Column(db.String(255), nullable=True)
    client_phone = db.Column(db.String(64), nullable=True)
    client_email = db.Column(db.String(255), nullable=True)

    transaction_type = db.Column(db.String(16), nullable=False, default="service")  # service, product, mixed
    status = db.Column(db.String(16), nullable=False, default=TransactionStatus.IN_SERVICE.value, index=True)

    services = db.Column(db.JSON, nullable=False, default=list)
    products = db.Column(db.JSON, nullable=False, default=list)

    # Amounts
    subtotal = db.Column(db.Numeric(12, 2), nullable=False, default=ZERO)
    discount = db.Column(db.Numeric(5, 2), nullable=False, default=ZERO)  # manual percentage, 0-100
    applied_promotion = db.Column(db.JSON, nullable=True)
    tax = db.Column(db.Numeric(12, 2), nullable=False, default=ZERO)  # flat amount
    total = db.Column(db.Numeric(12, 2), nullable=False, default=ZERO)

    # Payment (null until paid)
    payment_method = db.Column(db.String(16), nullable=True)
    amount_received = db.Column(db.Numeric(12, 2), nullable=True)
    change = db.Column(db.Numeric(12, 2), nullable=True)  # cash only
    processed_at = db.Column(db.DateTime, nullable=True)

    # Product sales to a known client earn points at payment; cleared on void
    loyalty_points_earned = db.Column(db.Integer, nullable=False, default=0)

    # Void audit trail
    void_reason = db.Column(db.String(255), nullable=True)
    void_notes = db.Column(db.Text, nullable=True)
    voided_by = db.Column(db.String(64), nullable=True)
    voided_at = db.Column(db.DateTime, nullable=True)

    created_by = db.Column(db.String(64), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=clock_now, index=True)
    updated_at = db.Column(db.DateTime, nullable=False, default=clock_now, onupdate=clock_now)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def line_items(self) -> LineItems:
        return LineItems(
            services=tuple(ServiceLine.from_dict(s) for s in self.services or ()),
            products=tuple(ProductLine.from_dict(p) for p in self.products or ()),
        )

    @property
    def client_info(self) -> dict:
        return {
            "name": self.client_name or "",
            "phone": self.client_phone or "",
            "email": self.client_email or "",
        }

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "branchId": self.branch_id,
            "clientId": self.client_id,
            "clientInfo": self.client_info,
            "transactionType": self.transaction_type,
            "status": self.status,
            "services": list(self.services or []),
            "products": list(self.products or []),
            "subtotal": money_to_json(self.subtotal),
            "discount": float(self.discount) if self.discount is not None else 0.0,
            "appliedPromotion": self.applied_promotion,
            "tax": money_to_json(self.tax),
            "total": money_to_json(self.total),
            "paymentMethod": self.payment_method,
            "amountReceived": money_to_json(self.amount_received),
            "change": money_to_json(self.change),
            "voidReason": self.void_reason,
            "voidNotes": self.void_notes,
            "voidedBy": self.voided_by,
            "voidedAt": to_utc_z(self.voided_at) if self.voided_at else None,
            "createdBy": self.created_by,
            "notes": self.notes,
            "createdAt": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at),
            "processedAt": to_utc_z(self.processed_at) if self.processed_at else None,
            "loyaltyPointsEarned": self.loyalty_points_earned or 0,
            "versionId": self.version_id,
        }

    def __repr__(self) -> str:
        return f"<Transaction {self.id} {self.status} total={self.total or Decimal('0')}>"
