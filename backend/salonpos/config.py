# backend/salonpos/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/salonpos.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///salonpos.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Deposit reconciliation: |difference| <= tolerance is a match,
    # above the mismatch threshold is a mismatch, in between goes to review.
    DEPOSIT_TOLERANCE = os.environ.get("DEPOSIT_TOLERANCE", "1.00")
    DEPOSIT_MISMATCH_THRESHOLD = os.environ.get("DEPOSIT_MISMATCH_THRESHOLD", "100.00")

    # Count in_service (rung up, not yet paid) invoices toward the day's sales
    DEPOSIT_INCLUDE_UNPAID = os.environ.get("DEPOSIT_INCLUDE_UNPAID", "true").lower() == "true"

    # Loyalty: a paid product sale to a known client earns
    # floor(total / amount-per-point) points
    LOYALTY_POINTS_ENABLED = os.environ.get("LOYALTY_POINTS_ENABLED", "true").lower() == "true"
    LOYALTY_AMOUNT_PER_POINT = os.environ.get("LOYALTY_AMOUNT_PER_POINT", "100")

    # IANA zone that defines a branch's calendar day
    BUSINESS_TIMEZONE = os.environ.get("BUSINESS_TIMEZONE", "UTC")
