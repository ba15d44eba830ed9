# Overview: Pure pricing rules: subtotals, promotion discounts, invoice totals.

"""
Discount Calculator

Everything here is a pure function of its inputs; nothing touches the
session. transaction_service calls recompute_totals after every change to
line items, discount, tax or promotion, so stored totals always agree with
their inputs:

    subtotal = sum(service.adjusted_price) + sum(product.price * quantity)
    total    = max(0, subtotal - discount_amount + tax)

discount_amount comes from exactly one DiscountSource: a manual percentage
or an attached promotion snapshot.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Union

from ..models import ApplicableTo, DiscountType, LineItems, ProductLine, ServiceLine, Transaction
from ..validation import ZERO, money_to_json, round_money


HUNDRED = Decimal("100")


@dataclass(frozen=True)
class DiscountResult:
    discount_amount: Decimal
    discount_type: str
    discount_value: Decimal

    def to_dict(self) -> dict:
        return {
            "discountAmount": money_to_json(self.discount_amount),
            "discountType": self.discount_type,
            "discountValue": float(self.discount_value),
        }


@dataclass(frozen=True)
class ManualDiscount:
    percentage: Decimal = ZERO

    def amount_for(self, subtotal: Decimal) -> Decimal:
        return round_money(subtotal * self.percentage / HUNDRED)


@dataclass(frozen=True)
class PromotionDiscount:
    snapshot: dict

    @property
    def promotion_id(self):
        return self.snapshot.get("id")

    def amount_for(self, subtotal: Decimal) -> Decimal:
        return round_money(Decimal(str(self.snapshot.get("discountAmount") or 0)))


DiscountSource = Union[ManualDiscount, PromotionDiscount]


@dataclass(frozen=True)
class Totals:
    subtotal: Decimal
    discount_amount: Decimal
    tax: Decimal
    total: Decimal


# =============================================================================
# SUBTOTALS
# =============================================================================

def services_subtotal(services: Iterable[ServiceLine]) -> Decimal:
    return round_money(sum((s.adjusted_price for s in services), ZERO))


def products_subtotal(products: Iterable[ProductLine]) -> Decimal:
    return round_money(sum((p.line_total for p in products), ZERO))


def line_subtotal(items: LineItems) -> Decimal:
    return round_money(services_subtotal(items.services) + products_subtotal(items.products))


def scope_subtotal(promotion, subtotal: Decimal, services: Iterable[ServiceLine], products: Iterable[ProductLine]) -> Decimal:
    """
    The part of the cart a promotion discounts.

    - all:      the full subtotal
    - services: sum of service adjusted prices
    - products: sum of product price * quantity
    - specific: only the services/products whose ids the promotion lists
    """
    applicable_to = promotion.applicable_to
    services = list(services)
    products = list(products)

    if applicable_to == ApplicableTo.ALL.value:
        return round_money(subtotal)
    if applicable_to == ApplicableTo.SERVICES.value:
        return services_subtotal(services)
    if applicable_to == ApplicableTo.PRODUCTS.value:
        return products_subtotal(products)
    if applicable_to == ApplicableTo.SPECIFIC.value:
        wanted_services = {str(x) for x in promotion.specific_services or ()}
        wanted_products = {str(x) for x in promotion.specific_products or ()}
        return round_money(
            services_subtotal(s for s in services if s.service_id in wanted_services)
            + products_subtotal(p for p in products if p.product_id in wanted_products)
        )
    raise ValueError(f"Unknown applicableTo '{applicable_to}'")


# =============================================================================
# DISCOUNTS
# =============================================================================

def compute_discount(promotion, subtotal: Decimal, services: Iterable[ServiceLine], products: Iterable[ProductLine]) -> DiscountResult:
    """
    Discount a promotion grants on this cart.

    Percentage discounts apply to the scope subtotal; fixed discounts are
    capped at it, so a discount never exceeds what it discounts.
    """
    base = scope_subtotal(promotion, subtotal, services, products)
    value = Decimal(str(promotion.discount_value))

    if promotion.discount_type == DiscountType.PERCENTAGE.value:
        amount = base * value / HUNDRED
    elif promotion.discount_type == DiscountType.FIXED.value:
        amount = min(value, base)
    else:
        raise ValueError(f"Unknown discountType '{promotion.discount_type}'")

    return DiscountResult(
        discount_amount=round_money(max(amount, ZERO)),
        discount_type=promotion.discount_type,
        discount_value=value,
    )


def promotion_snapshot(promotion, result: DiscountResult) -> dict:
    """The appliedPromotion record stored on the invoice."""
    return {
        "id": promotion.id,
        "code": promotion.promotion_code,
        "title": promotion.title,
        "discountType": result.discount_type,
        "discountValue": float(result.discount_value),
        "discountAmount": money_to_json(result.discount_amount),
    }


def discount_source_of(transaction: Transaction) -> DiscountSource:
    if transaction.applied_promotion:
        return PromotionDiscount(snapshot=dict(transaction.applied_promotion))
    return ManualDiscount(percentage=Decimal(str(transaction.discount or 0)))


# =============================================================================
# TOTALS
# =============================================================================

def compute_totals(items: LineItems, source: DiscountSource, tax: Decimal) -> Totals:
    subtotal = line_subtotal(items)
    discount_amount = source.amount_for(subtotal)
    tax = round_money(tax)
    total = max(ZERO, round_money(subtotal - discount_amount + tax))
    return Totals(subtotal=subtotal, discount_amount=discount_amount, tax=tax, total=total)


def discount_amount_of(transaction: Transaction) -> Decimal:
    subtotal = Decimal(str(transaction.subtotal or 0))
    return discount_source_of(transaction).amount_for(subtotal)


def recompute_totals(transaction: Transaction, promotion=None) -> Totals:
    """
    Re-derive transaction_type, subtotal and total from the stored inputs.

    When a promotion is attached its discount depends on the cart, so the
    promotion record must be passed in and the snapshot amount is
    recalculated against the current line items.
    """
    items = transaction.line_items

    if transaction.applied_promotion:
        if promotion is None or promotion.id != transaction.applied_promotion.get("id"):
            raise ValueError("Attached promotion record is required to recompute totals")
        result = compute_discount(promotion, line_subtotal(items), items.services, items.products)
        transaction.applied_promotion = promotion_snapshot(promotion, result)

    totals = compute_totals(items, discount_source_of(transaction), Decimal(str(transaction.tax or 0)))
    transaction.transaction_type = items.transaction_type
    transaction.subtotal = totals.subtotal
    transaction.tax = totals.tax
    transaction.total = totals.total
    return totals


# =============================================================================
# LOYALTY
# =============================================================================

def loyalty_points_for(transaction_type: str, client_id, total: Decimal, amount_per_point: Decimal) -> int:
    """
    Points a paid invoice earns: floor(total / amount_per_point).

    Only product sales to a known client earn points; services never do.
    """
    if transaction_type != "product" or not client_id:
        return 0
    if amount_per_point is None or amount_per_point <= 0:
        return 0
    return int(Decimal(str(total)) // amount_per_point)
