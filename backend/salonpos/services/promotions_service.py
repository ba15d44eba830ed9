# Overview: Service-layer operations for promotions; validation, lookup and previews.

"""
Promotion Validator

validate_promotion_code runs the eligibility checks in a fixed order and
stops at the first failure:

    exists for branch -> isActive -> now within [startDate, endDate]
    -> one-time not yet used by this client -> repeating under cap

Every failure is a PromotionIneligibleError whose message is written for
the end user. Nothing in this module changes consumption state; selecting
or previewing a promotion is free of side effects.
"""

from __future__ import annotations

from datetime import datetime, time
from decimal import Decimal

from flask import current_app

from ..errors import NotFoundError, PromotionIneligibleError, ValidationError
from ..extensions import db
from ..models import ApplicableTo, DiscountType, LineItems, Promotion, UsageType
from ..time_utils import normalize_instant, resolve_clock
from ..validation import optional_text, require_text, to_decimal
from .concurrency import run_atomic
from .pricing_service import DiscountResult, compute_discount, line_subtotal


# Ineligibility reason codes
REASON_NOT_FOUND = "not_found"
REASON_INACTIVE = "inactive"
REASON_NOT_STARTED = "not_started"
REASON_EXPIRED = "expired"
REASON_CLIENT_REQUIRED = "client_required"
REASON_ALREADY_USED = "already_used"
REASON_LIMIT_REACHED = "limit_reached"

_UPDATABLE_FIELDS = (
    "promotionCode", "title", "description", "discountType", "discountValue",
    "applicableTo", "specificServices", "specificProducts", "usageType",
    "maxUses", "startDate", "endDate", "isActive",
)


def normalize_code(code) -> str:
    """Canonical stored form: trimmed, uppercase."""
    if code is None or not str(code).strip():
        raise ValidationError("Promotion code is required")
    normalized = str(code).strip().upper()
    if len(normalized) > 64 or any(ch.isspace() for ch in normalized):
        raise ValidationError("Promotion code must be a single word of at most 64 characters")
    return normalized


# =============================================================================
# ELIGIBILITY
# =============================================================================

def check_consumable(promotion: Promotion, client_id: str | None, now: datetime) -> None:
    """
    Raise PromotionIneligibleError unless the promotion can be consumed now
    by this client. Lookup (existence) is the caller's job.
    """
    if not promotion.is_active:
        raise PromotionIneligibleError(REASON_INACTIVE, "This promotion is not active")

    if now < promotion.start_date:
        raise PromotionIneligibleError(
            REASON_NOT_STARTED,
            f"This promotion starts on {promotion.start_date:%b %d, %Y}",
            details={"startDate": promotion.start_date.isoformat()},
        )

    if now > promotion.end_date:
        raise PromotionIneligibleError(REASON_EXPIRED, "This promotion has expired")

    if promotion.usage_type == UsageType.ONE_TIME.value:
        if not client_id:
            raise PromotionIneligibleError(
                REASON_CLIENT_REQUIRED,
                "Client ID is required for one-time use promotions",
            )
        if str(client_id) in promotion.used_by:
            raise PromotionIneligibleError(REASON_ALREADY_USED, "You have already used this promotion")

    if promotion.usage_type == UsageType.REPEATING.value and promotion.max_uses:
        if (promotion.usage_count or 0) >= promotion.max_uses:
            raise PromotionIneligibleError(
                REASON_LIMIT_REACHED,
                "This promotion has reached its maximum usage limit",
            )


def find_by_code(code: str, branch_id: str) -> Promotion | None:
    return db.session.query(Promotion).filter_by(
        branch_id=str(branch_id),
        promotion_code=normalize_code(code),
    ).first()


def validate_promotion_code(code, branch_id, client_id=None, *, clock=None) -> Promotion:
    """Return the promotion if consumable now by client_id, else raise."""
    if not branch_id:
        raise ValidationError("Promotion code and branch ID are required")
    promotion = find_by_code(code, branch_id)
    if promotion is None:
        raise PromotionIneligibleError(REASON_NOT_FOUND, "Invalid promotion code")

    check_consumable(promotion, client_id, resolve_clock(clock).now())
    return promotion


def preview_promotion(code, branch_id, client_id, services, products, *, clock=None) -> tuple[Promotion, DiscountResult]:
    """Validate and price a promotion against a cart without attaching it anywhere."""
    promotion = validate_promotion_code(code, branch_id, client_id, clock=clock)
    items = LineItems.parse(services, products)
    result = compute_discount(promotion, line_subtotal(items), items.services, items.products)
    return promotion, result


# =============================================================================
# QUERIES
# =============================================================================

def get_promotion(promotion_id: int) -> Promotion:
    promotion = db.session.get(Promotion, promotion_id)
    if promotion is None:
        raise NotFoundError("Promotion not found", details={"promotionId": promotion_id})
    return promotion


def list_promotions(branch_id: str, active_only: bool = False) -> list[Promotion]:
    q = db.session.query(Promotion).filter_by(branch_id=str(branch_id))
    if active_only:
        q = q.filter_by(is_active=True)
    return q.order_by(Promotion.created_at.desc(), Promotion.id.desc()).all()


def list_active_promotions(branch_id: str, client_id: str | None = None, *, clock=None) -> list[Promotion]:
    """
    Promotions a cashier can offer right now, sorted by title.

    One-time promotions are filtered against client_id only when one is
    given; walk-ins still see them and get the client_required error if
    they try to use one.
    """
    now = resolve_clock(clock).now()
    offered = []
    for promotion in list_promotions(branch_id, active_only=True):
        if not (promotion.start_date <= now <= promotion.end_date):
            continue
        if promotion.usage_type == UsageType.ONE_TIME.value and client_id and str(client_id) in promotion.used_by:
            continue
        if (
            promotion.usage_type == UsageType.REPEATING.value
            and promotion.max_uses
            and (promotion.usage_count or 0) >= promotion.max_uses
        ):
            continue
        offered.append(promotion)
    return sorted(offered, key=lambda p: p.title.lower())


# =============================================================================
# CREATE / UPDATE
# =============================================================================

def _window_bound(value, field: str, *, end: bool) -> datetime:
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValidationError(f"{field} is required")
    try:
        instant = normalize_instant(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be an ISO-8601 date or datetime")
    # A bare date as the end bound covers that whole day
    if end and isinstance(value, str) and len(value.strip()) == 10:
        instant = datetime.combine(instant.date(), time.max)
    return instant


def _id_list(value, field: str) -> list[str]:
    if value is None:
        return []
    if not isinstance(value, (list, tuple)):
        raise ValidationError(f"{field} must be a list of ids")
    return [str(v) for v in value if str(v).strip()]


def _apply_fields(promotion: Promotion, data: dict) -> None:
    if "promotionCode" in data:
        promotion.promotion_code = normalize_code(data["promotionCode"])
    if "title" in data:
        promotion.title = require_text(data["title"], "title")
    if "description" in data:
        promotion.description = optional_text(data["description"])
    if "discountType" in data:
        promotion.discount_type = data["discountType"]
    if "discountValue" in data:
        promotion.discount_value = to_decimal(data["discountValue"], "discountValue")
    if "applicableTo" in data:
        promotion.applicable_to = data["applicableTo"]
    if "specificServices" in data:
        promotion.specific_services = _id_list(data["specificServices"], "specificServices")
    if "specificProducts" in data:
        promotion.specific_products = _id_list(data["specificProducts"], "specificProducts")
    if "usageType" in data:
        promotion.usage_type = data["usageType"]
    if "maxUses" in data:
        max_uses = data["maxUses"]
        if max_uses in (None, "", 0):
            promotion.max_uses = None
        elif isinstance(max_uses, bool) or not isinstance(max_uses, int) or max_uses < 0:
            raise ValidationError("maxUses must be a positive integer")
        else:
            promotion.max_uses = max_uses
    if "startDate" in data:
        promotion.start_date = _window_bound(data["startDate"], "startDate", end=False)
    if "endDate" in data:
        promotion.end_date = _window_bound(data["endDate"], "endDate", end=True)
    if "isActive" in data:
        promotion.is_active = bool(data["isActive"])


def _validate_promotion(promotion: Promotion) -> None:
    valid_types = {t.value for t in DiscountType}
    if promotion.discount_type not in valid_types:
        raise ValidationError(f"discountType must be one of: {', '.join(sorted(valid_types))}")

    value = Decimal(str(promotion.discount_value))
    if promotion.discount_type == DiscountType.PERCENTAGE.value and not (0 < value <= 100):
        raise ValidationError("Percentage discount must be greater than 0 and at most 100")
    if promotion.discount_type == DiscountType.FIXED.value and value <= 0:
        raise ValidationError("Fixed discount must be greater than 0")

    valid_scopes = {s.value for s in ApplicableTo}
    if promotion.applicable_to not in valid_scopes:
        raise ValidationError(f"applicableTo must be one of: {', '.join(sorted(valid_scopes))}")
    if promotion.applicable_to == ApplicableTo.SPECIFIC.value:
        if not promotion.specific_services and not promotion.specific_products:
            raise ValidationError("Specific promotions must list at least one service or product")

    valid_usage = {u.value for u in UsageType}
    if promotion.usage_type not in valid_usage:
        raise ValidationError(f"usageType must be one of: {', '.join(sorted(valid_usage))}")

    if promotion.start_date > promotion.end_date:
        raise ValidationError("startDate must be on or before endDate")


def _ensure_code_unique(promotion: Promotion) -> None:
    q = db.session.query(Promotion.id).filter_by(
        branch_id=promotion.branch_id,
        promotion_code=promotion.promotion_code,
    )
    if promotion.id is not None:
        q = q.filter(Promotion.id != promotion.id)
    with db.session.no_autoflush:
        clash = q.first()
    if clash:
        raise ValidationError(
            f"Promotion code '{promotion.promotion_code}' already exists for this branch",
            details={"promotionCode": promotion.promotion_code},
        )


def create_promotion(branch_id: str, data: dict, created_by: str | None = None) -> Promotion:
    if not branch_id:
        raise ValidationError("branchId is required")
    for required in ("promotionCode", "title", "discountType", "discountValue", "startDate", "endDate"):
        if required not in data:
            raise ValidationError(f"{required} is required")

    def _op():
        promotion = Promotion(
            branch_id=str(branch_id),
            applicable_to=ApplicableTo.ALL.value,
            usage_type=UsageType.REPEATING.value,
            specific_services=[],
            specific_products=[],
            usage_count=0,
            is_active=True,
            created_by=created_by,
        )
        _apply_fields(promotion, data)
        _validate_promotion(promotion)
        _ensure_code_unique(promotion)
        db.session.add(promotion)
        db.session.flush()
        return promotion

    promotion = run_atomic(_op, description="create promotion")
    current_app.logger.info("Promotion %s (%s) created for branch %s", promotion.id, promotion.promotion_code, branch_id)
    return promotion


def update_promotion(promotion_id: int, data: dict) -> Promotion:
    """Edit offer terms. Usage state (usedBy, usageCount) is not editable here."""
    def _op():
        promotion = get_promotion(promotion_id)
        _apply_fields(promotion, {k: v for k, v in data.items() if k in _UPDATABLE_FIELDS})
        _validate_promotion(promotion)
        _ensure_code_unique(promotion)
        return promotion

    return run_atomic(_op, description="update promotion")
