from __future__ import annotations

from enum import Enum

from ..extensions import db
from salonpos.time_utils import clock_now, to_utc_z
from salonpos.validation import ZERO


class DiscountType(str, Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


class ApplicableTo(str, Enum):
    ALL = "all"
    SERVICES = "services"
    PRODUCTS = "products"
    SPECIFIC = "specific"


class UsageType(str, Enum):
    ONE_TIME = "one-time"
    REPEATING = "repeating"


class Promotion(db.Model):
    """
    A branch-scoped discount offer.

    promotion_code is stored uppercase so the (branch_id, promotion_code)
    unique constraint is case-insensitive in practice.

    Consumption state lives in two places, both only ever grown:
    - usage_count, bumped by a single conditional UPDATE (repeating)
    - promotion_client_uses rows, one per client (one-time, the usedBy set)
    """
    __tablename__ = "promotions"
    __table_args__ = (
        db.UniqueConstraint("branch_id", "promotion_code", name="uq_promotions_branch_code"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    branch_id = db.Column(db.String(64), nullable=False, index=True)

    promotion_code = db.Column(db.String(64), nullable=False)
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)

    discount_type = db.Column(db.String(16), nullable=False)  # percentage, fixed
    discount_value = db.Column(db.Numeric(12, 2), nullable=False, default=ZERO)  # percent for percentage, amount for fixed

    applicable_to = db.Column(db.String(16), nullable=False, default=ApplicableTo.ALL.value)  # all, services, products, specific
    specific_services = db.Column(db.JSON, nullable=False, default=list)
    specific_products = db.Column(db.JSON, nullable=False, default=list)

    usage_type = db.Column(db.String(16), nullable=False, default=UsageType.REPEATING.value)  # one-time, repeating
    max_uses = db.Column(db.Integer, nullable=True)  # repeating only; null means uncapped
    usage_count = db.Column(db.Integer, nullable=False, default=0)

    start_date = db.Column(db.DateTime, nullable=False)
    end_date = db.Column(db.DateTime, nullable=False)

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_by = db.Column(db.String(64), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=clock_now)
    updated_at = db.Column(db.DateTime, nullable=False, default=clock_now, onupdate=clock_now)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    client_uses = db.relationship(
        "PromotionClientUse",
        order_by="PromotionClientUse.id",
        lazy="selectin",
        cascade="all, delete-orphan",
        back_populates="promotion",
    )
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def used_by(self) -> list[str]:
        return [use.client_id for use in self.client_uses]

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "branchId": self.branch_id,
            "promotionCode": self.promotion_code,
            "title": self.title,
            "description": self.description,
            "discountType": self.discount_type,
            "discountValue": float(self.discount_value) if self.discount_value is not None else None,
            "applicableTo": self.applicable_to,
            "specificServices": list(self.specific_services or []),
            "specificProducts": list(self.specific_products or []),
            "usageType": self.usage_type,
            "usedBy": self.used_by,
            "maxUses": self.max_uses,
            "usageCount": self.usage_count,
            "startDate": to_utc_z(self.start_date),
            "endDate": to_utc_z(self.end_date),
            "isActive": self.is_active,
            "createdBy": self.created_by,
            "createdAt": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at),
        }


class PromotionClientUse(db.Model):
    """Membership row of a one-time promotion's usedBy set."""
    __tablename__ = "promotion_client_uses"
    __table_args__ = (
        db.UniqueConstraint("promotion_id", "client_id", name="uq_promotion_client_uses"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    promotion_id = db.Column(db.Integer, db.ForeignKey("promotions.id"), nullable=False, index=True)
    client_id = db.Column(db.String(64), nullable=False)
    created_at = db.Column(db.DateTime, nullable=False, default=clock_now)

    promotion = db.relationship("Promotion", back_populates="client_uses")


class PromotionRedemption(db.Model):
    """
    One row per sale that consumed a promotion.

    IMMUTABLE: the unique (promotion_id, transaction_id) pair is what
    makes recording usage for the same sale a no-op the second time.
    """
    __tablename__ = "promotion_redemptions"
    __table_args__ = (
        db.UniqueConstraint("promotion_id", "transaction_id", name="uq_promotion_redemptions_sale"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    promotion_id = db.Column(db.Integer, db.ForeignKey("promotions.id"), nullable=False, index=True)
    transaction_id = db.Column(db.Integer, db.ForeignKey("transactions.id"), nullable=False, index=True)
    client_id = db.Column(db.String(64), nullable=True)
    discount_amount = db.Column(db.Numeric(12, 2), nullable=False, default=ZERO)
    redeemed_at = db.Column(db.DateTime, nullable=False, default=clock_now)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "promotionId": self.promotion_id,
            "transactionId": self.transaction_id,
            "clientId": self.client_id,
            "discountAmount": float(self.discount_amount),
            "redeemedAt": to_utc_z(self.redeemed_at),
        }
