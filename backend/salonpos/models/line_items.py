from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from salonpos.validation import (
    ZERO,
    money_to_json,
    optional_text,
    require_text,
    round_money,
    to_money,
    to_quantity,
)
from salonpos.errors import ValidationError


@dataclass(frozen=True)
class ServiceLine:
    """
    One service on an invoice.

    adjusted_price is always derived: base_price + price_adjustment. The
    adjustment may be negative but the result may not.
    """
    service_id: str
    base_price: Decimal
    price_adjustment: Decimal = ZERO
    adjustment_reason: str = ""
    stylist_id: str | None = None
    stylist_name: str | None = None
    client_type: str = "X"
    service_name: str | None = None

    @property
    def adjusted_price(self) -> Decimal:
        return round_money(self.base_price + self.price_adjustment)

    @classmethod
    def from_dict(cls, data: dict) -> "ServiceLine":
        if not isinstance(data, dict):
            raise ValidationError("Each service must be an object")
        service_id = require_text(data.get("serviceId") or data.get("id"), "serviceId")
        base_price = to_money(data.get("basePrice", data.get("price")), "basePrice")
        adjustment = to_money(data.get("priceAdjustment"), "priceAdjustment", default=ZERO, allow_negative=True)
        line = cls(
            service_id=service_id,
            base_price=base_price,
            price_adjustment=adjustment,
            adjustment_reason=optional_text(data.get("adjustmentReason")) or "",
            stylist_id=optional_text(data.get("stylistId")),
            stylist_name=optional_text(data.get("stylistName")),
            client_type=optional_text(data.get("clientType")) or "X",
            service_name=optional_text(data.get("serviceName") or data.get("name")),
        )
        if line.adjusted_price < 0:
            raise ValidationError(
                f"Price adjustment for service {service_id} makes the price negative",
                details={"serviceId": service_id},
            )
        return line

    def to_dict(self) -> dict:
        return {
            "serviceId": self.service_id,
            "serviceName": self.service_name,
            "basePrice": money_to_json(self.base_price),
            "adjustedPrice": money_to_json(self.adjusted_price),
            "priceAdjustment": money_to_json(self.price_adjustment),
            "adjustmentReason": self.adjustment_reason,
            "stylistId": self.stylist_id,
            "stylistName": self.stylist_name,
            "clientType": self.client_type,
        }


@dataclass(frozen=True)
class ProductLine:
    """One retail product on an invoice."""
    product_id: str
    price: Decimal
    quantity: int = 1
    product_name: str | None = None

    @property
    def line_total(self) -> Decimal:
        return round_money(self.price * self.quantity)

    @classmethod
    def from_dict(cls, data: dict) -> "ProductLine":
        if not isinstance(data, dict):
            raise ValidationError("Each product must be an object")
        return cls(
            product_id=require_text(data.get("productId") or data.get("id"), "productId"),
            price=to_money(data.get("price"), "price"),
            quantity=to_quantity(data.get("quantity", 1)),
            product_name=optional_text(data.get("productName") or data.get("name")),
        )

    def to_dict(self) -> dict:
        return {
            "productId": self.product_id,
            "productName": self.product_name,
            "price": money_to_json(self.price),
            "quantity": self.quantity,
        }


@dataclass(frozen=True)
class LineItems:
    services: tuple[ServiceLine, ...] = field(default_factory=tuple)
    products: tuple[ProductLine, ...] = field(default_factory=tuple)

    @classmethod
    def parse(cls, services, products) -> "LineItems":
        if services is not None and not isinstance(services, (list, tuple)):
            raise ValidationError("services must be a list")
        if products is not None and not isinstance(products, (list, tuple)):
            raise ValidationError("products must be a list")
        return cls(
            services=tuple(s if isinstance(s, ServiceLine) else ServiceLine.from_dict(s) for s in services or ()),
            products=tuple(p if isinstance(p, ProductLine) else ProductLine.from_dict(p) for p in products or ()),
        )

    @property
    def is_empty(self) -> bool:
        return not self.services and not self.products

    @property
    def transaction_type(self) -> str:
        if self.services and self.products:
            return "mixed"
        if self.services:
            return "service"
        return "product"
