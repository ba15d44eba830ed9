"""
Promotion validator and CRUD tests.

Verifies:
- Checks run in order and stop at the first failure with a stable reason
- Codes are matched case-insensitively and stored uppercase
- Create/update validation
- Active listing for a client
"""

from datetime import datetime

import pytest

from salonpos.errors import NotFoundError, PromotionIneligibleError, ValidationError
from salonpos.services import promotions_service
from salonpos.services.promotion_usage_service import record_usage

from conftest import BRANCH, OTHER_BRANCH, product_line, service_line


def reason_of(excinfo):
    return excinfo.value.reason


# =============================================================================
# VALIDATION ORDER
# =============================================================================


class TestValidatePromotionCode:

    def test_valid_code_case_insensitive(self, make_promotion):
        created = make_promotion("summer10")
        assert created.promotion_code == "SUMMER10"

        found = promotions_service.validate_promotion_code("Summer10", BRANCH, "client-1")
        assert found.id == created.id

    def test_unknown_code(self, db_session, clock):
        with pytest.raises(PromotionIneligibleError) as excinfo:
            promotions_service.validate_promotion_code("NOPE", BRANCH, "client-1")
        assert reason_of(excinfo) == "not_found"
        assert str(excinfo.value) == "Invalid promotion code"

    def test_code_from_other_branch_not_found(self, make_promotion):
        make_promotion("SUMMER10", branch_id=OTHER_BRANCH)
        with pytest.raises(PromotionIneligibleError) as excinfo:
            promotions_service.validate_promotion_code("SUMMER10", BRANCH, "client-1")
        assert reason_of(excinfo) == "not_found"

    def test_inactive(self, make_promotion):
        make_promotion(isActive=False)
        with pytest.raises(PromotionIneligibleError) as excinfo:
            promotions_service.validate_promotion_code("SUMMER10", BRANCH, "client-1")
        assert reason_of(excinfo) == "inactive"

    def test_not_started(self, make_promotion):
        make_promotion(startDate="2024-06-01", endDate="2024-06-30")
        with pytest.raises(PromotionIneligibleError) as excinfo:
            promotions_service.validate_promotion_code("SUMMER10", BRANCH, "client-1")
        assert reason_of(excinfo) == "not_started"
        assert "Jun 01, 2024" in str(excinfo.value)

    def test_expired(self, make_promotion, clock):
        make_promotion(startDate="2024-01-01", endDate="2024-02-29")
        with pytest.raises(PromotionIneligibleError) as excinfo:
            promotions_service.validate_promotion_code("SUMMER10", BRANCH, "client-1")
        assert reason_of(excinfo) == "expired"

    def test_date_only_end_covers_whole_day(self, make_promotion, clock):
        make_promotion(startDate="2024-01-01", endDate="2024-03-01")
        clock.set(datetime(2024, 3, 1, 23, 59, 0))
        assert promotions_service.validate_promotion_code("SUMMER10", BRANCH, "client-1")

        clock.set(datetime(2024, 3, 2, 0, 0, 1))
        with pytest.raises(PromotionIneligibleError):
            promotions_service.validate_promotion_code("SUMMER10", BRANCH, "client-1")

    def test_inactive_reported_before_expired(self, make_promotion):
        make_promotion(isActive=False, startDate="2023-01-01", endDate="2023-12-31")
        with pytest.raises(PromotionIneligibleError) as excinfo:
            promotions_service.validate_promotion_code("SUMMER10", BRANCH, "client-1")
        assert reason_of(excinfo) == "inactive"

    def test_one_time_requires_client(self, make_promotion):
        make_promotion(usageType="one-time")
        with pytest.raises(PromotionIneligibleError) as excinfo:
            promotions_service.validate_promotion_code("SUMMER10", BRANCH, None)
        assert reason_of(excinfo) == "client_required"

    def test_one_time_already_used(self, make_promotion):
        promo = make_promotion(usageType="one-time")
        record_usage(promo.id, "client-1")
        promotions_service.validate_promotion_code("SUMMER10", BRANCH, "client-2")

        with pytest.raises(PromotionIneligibleError) as excinfo:
            promotions_service.validate_promotion_code("SUMMER10", BRANCH, "client-1")
        assert reason_of(excinfo) == "already_used"
        assert str(excinfo.value) == "You have already used this promotion"

    def test_repeating_limit_reached(self, make_promotion):
        promo = make_promotion(maxUses=2)
        record_usage(promo.id, "client-1")
        record_usage(promo.id, "client-2")

        with pytest.raises(PromotionIneligibleError) as excinfo:
            promotions_service.validate_promotion_code("SUMMER10", BRANCH, "client-3")
        assert reason_of(excinfo) == "limit_reached"

    def test_validation_has_no_side_effects(self, make_promotion):
        promo = make_promotion(usageType="one-time")
        for _ in range(3):
            promotions_service.validate_promotion_code("SUMMER10", BRANCH, "client-1")
        assert promotions_service.get_promotion(promo.id).used_by == []


class TestPreview:

    def test_preview_prices_cart(self, make_promotion):
        make_promotion(discountValue=10, applicableTo="services")
        promotion, result = promotions_service.preview_promotion(
            "summer10", BRANCH, "client-1",
            [service_line(base_price=850, adjustment=-100)],
            [product_line(price=250)],
        )
        assert promotion.promotion_code == "SUMMER10"
        assert result.to_dict()["discountAmount"] == 75.0


# =============================================================================
# CREATE / UPDATE
# =============================================================================


class TestCreatePromotion:

    def test_defaults(self, make_promotion):
        promo = make_promotion()
        data = promo.to_dict()
        assert data["usageCount"] == 0
        assert data["usedBy"] == []
        assert data["isActive"] is True
        assert data["endDate"] == "2024-12-31T23:59:59Z"

    def test_duplicate_code_in_branch_rejected(self, make_promotion):
        make_promotion("VIP")
        with pytest.raises(ValidationError):
            make_promotion("vip")

    def test_same_code_other_branch_allowed(self, make_promotion):
        make_promotion("VIP")
        other = make_promotion("VIP", branch_id=OTHER_BRANCH)
        assert other.branch_id == OTHER_BRANCH

    @pytest.mark.parametrize(
        "overrides",
        [
            {"discountValue": 0},
            {"discountValue": 150},
            {"discountType": "fixed", "discountValue": -5},
            {"discountType": "bogo"},
            {"applicableTo": "everything"},
            {"applicableTo": "specific"},
            {"usageType": "sometimes"},
            {"startDate": "2024-12-31", "endDate": "2024-01-01"},
            {"maxUses": -1},
            {"promotionCode": "TWO WORDS"},
        ],
    )
    def test_invalid_promotions_rejected(self, make_promotion, overrides):
        with pytest.raises(ValidationError):
            make_promotion(**overrides)

    def test_missing_required_field(self, db_session, clock):
        with pytest.raises(ValidationError):
            promotions_service.create_promotion(BRANCH, {"promotionCode": "X", "title": "X"})


class TestUpdatePromotion:

    def test_update_terms(self, make_promotion):
        promo = make_promotion()
        updated = promotions_service.update_promotion(promo.id, {"discountValue": 15, "title": "Better"})
        assert float(updated.discount_value) == 15.0
        assert updated.title == "Better"

    def test_usage_fields_not_editable(self, make_promotion):
        promo = make_promotion()
        updated = promotions_service.update_promotion(promo.id, {"usageCount": 99})
        assert updated.usage_count == 0

    def test_update_missing(self, db_session):
        with pytest.raises(NotFoundError):
            promotions_service.update_promotion(9999, {"title": "x"})

    def test_update_to_clashing_code(self, make_promotion):
        make_promotion("A1")
        second = make_promotion("B1")
        with pytest.raises(ValidationError):
            promotions_service.update_promotion(second.id, {"promotionCode": "a1"})


# =============================================================================
# LISTING
# =============================================================================


class TestActivePromotions:

    def test_filters_and_sorts_by_title(self, make_promotion):
        make_promotion("ZED", title="Zebra deal")
        make_promotion("ALPHA", title="alpha deal")
        make_promotion("OFF", title="Off deal", isActive=False)
        make_promotion("OLD", title="Old deal", startDate="2023-01-01", endDate="2023-02-01")

        titles = [p.title for p in promotions_service.list_active_promotions(BRANCH)]
        assert titles == ["alpha deal", "Zebra deal"]

    def test_hides_one_time_already_used_by_client(self, make_promotion):
        promo = make_promotion("ONCE", usageType="one-time")
        record_usage(promo.id, "client-1")

        assert promotions_service.list_active_promotions(BRANCH, "client-1") == []
        assert [p.id for p in promotions_service.list_active_promotions(BRANCH, "client-2")] == [promo.id]

    def test_hides_exhausted_repeating(self, make_promotion):
        promo = make_promotion("CAP", maxUses=1)
        record_usage(promo.id, "client-1")
        assert promotions_service.list_active_promotions(BRANCH) == []
