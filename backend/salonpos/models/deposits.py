from __future__ import annotations

from enum import Enum

from ..extensions import db
from salonpos.time_utils import clock_now, to_utc_z
from salonpos.validation import ZERO, money_to_json


class ValidationStatus(str, Enum):
    PENDING = "pending"
    MATCH = "match"
    MISMATCH = "mismatch"
    MANUAL_REVIEW = "manual_review"


class DepositStatus(str, Enum):
    SUBMITTED = "submitted"
    APPROVED = "approved"
    REJECTED = "rejected"


class Deposit(db.Model):
    """
    End-of-day cash deposit for one branch and calendar day.

    dailySalesTotal, difference and validationStatus are frozen at
    submission; only the review fields change afterwards.
    """
    __tablename__ = "deposits"
    __table_args__ = (
        db.Index("ix_deposits_branch_date", "branch_id", "deposit_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    branch_id = db.Column(db.String(64), nullable=False, index=True)
    deposit_date = db.Column(db.Date, nullable=False)

    amount = db.Column(db.Numeric(12, 2), nullable=False)
    daily_sales_total = db.Column(db.Numeric(12, 2), nullable=False, default=ZERO)
    difference = db.Column(db.Numeric(12, 2), nullable=False, default=ZERO)

    validation_status = db.Column(db.String(16), nullable=False, default=ValidationStatus.PENDING.value)
    has_anomaly = db.Column(db.Boolean, nullable=False, default=False)
    anomaly_description = db.Column(db.Text, nullable=True)

    status = db.Column(db.String(16), nullable=False, default=DepositStatus.SUBMITTED.value, index=True)

    # Bank slip details
    bank_name = db.Column(db.String(255), nullable=True)
    account_number = db.Column(db.String(64), nullable=True)
    reference_number = db.Column(db.String(128), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    submitted_by = db.Column(db.String(64), nullable=False)
    submitted_at = db.Column(db.DateTime, nullable=False, default=clock_now)

    reviewed_by = db.Column(db.String(64), nullable=True)
    reviewed_at = db.Column(db.DateTime, nullable=True)
    review_notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=clock_now)
    updated_at = db.Column(db.DateTime, nullable=False, default=clock_now, onupdate=clock_now)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "branchId": self.branch_id,
            "depositDate": self.deposit_date.isoformat() if self.deposit_date else None,
            "amount": money_to_json(self.amount),
            "dailySalesTotal": money_to_json(self.daily_sales_total),
            "difference": money_to_json(self.difference),
            "validationStatus": self.validation_status,
            "hasAnomaly": self.has_anomaly,
            "anomalyDescription": self.anomaly_description,
            "status": self.status,
            "bankName": self.bank_name,
            "accountNumber": self.account_number,
            "referenceNumber": self.reference_number,
            "notes": self.notes,
            "submittedBy": self.submitted_by,
            "submittedAt": to_utc_z(self.submitted_at),
            "reviewedBy": self.reviewed_by,
            "reviewedAt": to_utc_z(self.reviewed_at) if self.reviewed_at else None,
            "reviewNotes": self.review_notes,
            "createdAt": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at),
        }
