"""
Deposit reconciliation tests.

Verifies:
- Daily total: branch + calendar day, voided excluded, in_service per setting
- Classification boundaries (tolerance, mismatch threshold)
- Submission freezes the classification; review is one-shot
- Daily sales summary over paid invoices
"""

from datetime import date, datetime
from decimal import Decimal

import pytest

from salonpos.errors import InvalidStateError, NotFoundError, ValidationError
from salonpos.services import deposit_service, transaction_service

from conftest import BRANCH, OTHER_BRANCH, product_line, service_line


DAY = "2024-03-01"


# =============================================================================
# CLASSIFICATION (pure)
# =============================================================================


class TestClassifyDeposit:

    @pytest.mark.parametrize(
        "declared,expected_status,expected_difference",
        [
            ("100.00", "match", "0.00"),
            ("100.99", "match", "0.99"),
            ("99.00", "match", "-1.00"),
            ("101.01", "manual_review", "1.01"),
            ("102.00", "manual_review", "2.00"),
            ("200.00", "manual_review", "100.00"),
            ("200.01", "mismatch", "100.01"),
            ("250.00", "mismatch", "150.00"),
            ("0.00", "manual_review", "-100.00"),
        ],
    )
    def test_boundaries(self, declared, expected_status, expected_difference):
        result = deposit_service.classify_deposit(declared, "100.00")
        assert result.status == expected_status
        assert result.difference == Decimal(expected_difference)
        assert result.has_anomaly == (expected_status != "match")

    def test_messages(self):
        assert deposit_service.classify_deposit(100, 100).message == "Amount matches daily sales"
        assert deposit_service.classify_deposit(250, 100).message == "Significant difference: ₱150.00"
        assert deposit_service.classify_deposit(98, 100).message == "Minor difference: ₱2.00 - requires review"

    def test_custom_thresholds(self):
        result = deposit_service.classify_deposit(105, 100, tolerance=5, mismatch_threshold=10)
        assert result.status == "match"
        assert deposit_service.classify_deposit(111, 100, tolerance=5, mismatch_threshold=10).status == "mismatch"

    def test_anomaly_descriptions(self):
        match = deposit_service.classify_deposit(100, 100)
        assert deposit_service.describe_anomalies(100, 100, match) is None

        minor = deposit_service.classify_deposit(1002, 1000)
        assert deposit_service.describe_anomalies(1002, 1000, minor) == (
            "Deposit amount (₱1,002.00) differs from daily sales total (₱1,000.00) by ₱2.00"
        )

        big = deposit_service.classify_deposit(1500, 1000)
        assert "differs significantly" in deposit_service.describe_anomalies(1500, 1000, big)

        no_sales = deposit_service.classify_deposit(500, 0)
        assert deposit_service.describe_anomalies(500, 0, no_sales) == (
            "No daily sales transactions found for the selected date. Cannot validate deposit amount."
        )


# =============================================================================
# DAILY TOTAL
# =============================================================================


@pytest.fixture
def day_of_sales(make_transaction, clock):
    """
    branch-1 on 2024-03-01:
      paid 850, paid 500 (card), in_service 300, voided 1000
    plus a paid sale the day before, one the day after, and one in another branch.
    """
    paid = make_transaction()
    transaction_service.process_payment(paid.id, "cash", 1000)

    card = make_transaction(services=[service_line(base_price=500)])
    transaction_service.process_payment(card.id, "card")

    make_transaction(services=None, products=[product_line(price=300)], client_name=None)

    voided = make_transaction(services=[service_line(base_price=1000)])
    transaction_service.void_transaction(voided.id, "Mistake", "manager-1")

    make_transaction(services=[service_line(base_price=700)], branch_id=OTHER_BRANCH)

    clock.set(datetime(2024, 2, 29, 23, 59, 59))
    before = make_transaction(services=[service_line(base_price=111)])
    transaction_service.process_payment(before.id, "card")

    clock.set(datetime(2024, 3, 2, 0, 0, 0))
    after = make_transaction(services=[service_line(base_price=222)])
    transaction_service.process_payment(after.id, "card")

    clock.set(datetime(2024, 3, 1, 18, 0, 0))


class TestDailySalesTotal:

    def test_counts_paid_and_in_service_by_default(self, day_of_sales):
        assert deposit_service.compute_daily_sales_total(BRANCH, DAY) == Decimal("1650.00")

    def test_paid_only(self, day_of_sales):
        assert deposit_service.compute_daily_sales_total(BRANCH, DAY, include_unpaid=False) == Decimal("1350.00")

    def test_setting_controls_default(self, app, day_of_sales):
        app.config["DEPOSIT_INCLUDE_UNPAID"] = False
        try:
            assert deposit_service.compute_daily_sales_total(BRANCH, date(2024, 3, 1)) == Decimal("1350.00")
        finally:
            app.config["DEPOSIT_INCLUDE_UNPAID"] = True

    def test_business_timezone_shifts_day(self, day_of_sales):
        # Manila is UTC+8: its 2024-03-01 is 2024-02-29T16:00Z .. 2024-03-01T15:59:59Z
        total = deposit_service.compute_daily_sales_total(BRANCH, DAY, tz="Asia/Manila")
        assert total == Decimal("1761.00")

    def test_empty_day(self, db_session, clock):
        assert deposit_service.compute_daily_sales_total(BRANCH, "2024-01-15") == Decimal("0.00")

    def test_bad_date(self, db_session):
        with pytest.raises(ValidationError):
            deposit_service.compute_daily_sales_total(BRANCH, "March first")


# =============================================================================
# SUBMIT / REVIEW
# =============================================================================


class TestSubmitDeposit:

    def test_matching_deposit(self, day_of_sales):
        deposit = deposit_service.submit_deposit(
            BRANCH, DAY, "1650.50", "receptionist-1",
            bank_name="BDO", reference_number="REF-1",
        )
        data = deposit.to_dict()
        assert data["validationStatus"] == "match"
        assert data["hasAnomaly"] is False
        assert data["anomalyDescription"] is None
        assert data["dailySalesTotal"] == 1650.0
        assert data["difference"] == 0.5
        assert data["status"] == "submitted"
        assert data["submittedBy"] == "receptionist-1"
        assert data["submittedAt"] == "2024-03-01T18:00:00Z"
        assert data["bankName"] == "BDO"

    def test_short_deposit_flagged(self, day_of_sales):
        deposit = deposit_service.submit_deposit(BRANCH, DAY, 1600, "receptionist-1")
        assert deposit.validation_status == "manual_review"
        assert deposit.has_anomaly is True
        assert deposit.difference == Decimal("-50.00")
        assert deposit.anomaly_description == (
            "Deposit amount (₱1,600.00) differs from daily sales total (₱1,650.00) by ₱50.00"
        )

    def test_large_gap_is_mismatch(self, day_of_sales):
        deposit = deposit_service.submit_deposit(BRANCH, DAY, 1400, "receptionist-1")
        assert deposit.validation_status == "mismatch"
        assert deposit.difference == Decimal("-250.00")

    def test_no_sales_day(self, db_session, clock):
        deposit = deposit_service.submit_deposit(BRANCH, "2024-01-15", 500, "receptionist-1")
        assert deposit.validation_status == "mismatch"
        assert deposit.anomaly_description.startswith("No daily sales transactions found")

    @pytest.mark.parametrize("amount", [0, -10, None, "abc"])
    def test_invalid_amount(self, db_session, clock, amount):
        with pytest.raises(ValidationError):
            deposit_service.submit_deposit(BRANCH, DAY, amount, "receptionist-1")

    def test_date_required(self, db_session, clock):
        with pytest.raises(ValidationError):
            deposit_service.submit_deposit(BRANCH, None, 100, "receptionist-1")


class TestReviewDeposit:

    def test_approve(self, db_session, clock):
        deposit = deposit_service.submit_deposit(BRANCH, DAY, 100, "receptionist-1")
        clock.advance(hours=1)

        reviewed = deposit_service.review_deposit(deposit.id, "approve", "manager-1", "Checked slip")
        assert reviewed.status == "approved"
        assert reviewed.reviewed_by == "manager-1"
        assert reviewed.reviewed_at == datetime(2024, 3, 1, 11, 0)
        assert reviewed.review_notes == "Checked slip"

    def test_reject(self, db_session, clock):
        deposit = deposit_service.submit_deposit(BRANCH, DAY, 100, "receptionist-1")
        assert deposit_service.review_deposit(deposit.id, "reject", "manager-1").status == "rejected"

    def test_review_is_final(self, db_session, clock):
        deposit = deposit_service.submit_deposit(BRANCH, DAY, 100, "receptionist-1")
        deposit_service.review_deposit(deposit.id, "approve", "manager-1")
        with pytest.raises(InvalidStateError):
            deposit_service.review_deposit(deposit.id, "reject", "manager-1")

    def test_unknown_action(self, db_session, clock):
        deposit = deposit_service.submit_deposit(BRANCH, DAY, 100, "receptionist-1")
        with pytest.raises(ValidationError):
            deposit_service.review_deposit(deposit.id, "maybe", "manager-1")

    def test_missing_deposit(self, db_session, clock):
        with pytest.raises(NotFoundError):
            deposit_service.review_deposit(999, "approve", "manager-1")

    def test_list_newest_first(self, db_session, clock):
        first = deposit_service.submit_deposit(BRANCH, "2024-02-29", 100, "receptionist-1")
        clock.advance(days=1)
        second = deposit_service.submit_deposit(BRANCH, DAY, 100, "receptionist-1")
        deposit_service.submit_deposit(OTHER_BRANCH, DAY, 100, "receptionist-2")

        assert [d.id for d in deposit_service.list_deposits(BRANCH)] == [second.id, first.id]
        assert len(deposit_service.list_deposits()) == 3


# =============================================================================
# REPORTING
# =============================================================================


class TestDailySalesSummary:

    def test_summary_over_paid(self, day_of_sales):
        summary = deposit_service.daily_sales_summary(BRANCH, DAY)
        assert summary["transactionCount"] == 2
        assert summary["totalRevenue"] == 1350.0
        assert summary["averageTicket"] == 675.0
        assert summary["paymentMethods"] == {
            "card": {"count": 1, "total": 500.0},
            "cash": {"count": 1, "total": 850.0},
        }

    def test_summary_counts_discounts(self, make_transaction, make_promotion):
        make_promotion(discountValue=10)
        tx = make_transaction()
        transaction_service.apply_promotion(tx.id, code="SUMMER10")
        transaction_service.process_payment(tx.id, "card")

        summary = deposit_service.daily_sales_summary(BRANCH, DAY)
        assert summary["totalDiscounts"] == 85.0
        assert summary["totalRevenue"] == 765.0

    def test_empty_day(self, db_session):
        summary = deposit_service.daily_sales_summary(BRANCH, "2024-01-15")
        assert summary["transactionCount"] == 0
        assert summary["averageTicket"] == 0.0
