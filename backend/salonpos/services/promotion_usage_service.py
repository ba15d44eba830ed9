# Overview: Records promotion consumption after a sale completes.

"""
Promotion Usage Tracker

WHY: Consumption must be recorded exactly once per paid invoice and must
not race when two registers redeem the same promotion at once.

DESIGN:
- one-time: the client is added to the usedBy set, a row in
  promotion_client_uses. The (promotion_id, client_id) unique constraint
  is the set; adding a member twice is a no-op.
- repeating: usage_count is bumped by one conditional UPDATE executed by
  the database (usage_count = usage_count + 1 WHERE usage_count < max_uses),
  never read-modify-write in Python. Zero affected rows means the cap was
  reached by someone else first.
- per sale: a promotion_redemptions row keyed by (promotion_id,
  transaction_id) makes a second call for the same sale a no-op.

record_usage joins the caller's unit of work (process_payment commits it
together with the payment). track_promotion_usage is the standalone form.
"""

from __future__ import annotations

from decimal import Decimal

from flask import current_app

from ..errors import NotFoundError, PromotionIneligibleError
from ..extensions import db
from ..models import Promotion, PromotionClientUse, PromotionRedemption, UsageType
from ..time_utils import resolve_clock
from ..validation import ZERO
from .concurrency import lock_for_update, run_atomic
from .promotions_service import REASON_LIMIT_REACHED


def has_redemption(promotion_id: int, transaction_id: int) -> bool:
    return db.session.query(PromotionRedemption.id).filter_by(
        promotion_id=promotion_id,
        transaction_id=transaction_id,
    ).first() is not None


def _add_client_use(promotion_id: int, client_id: str, now) -> bool:
    exists = db.session.query(PromotionClientUse.id).filter_by(
        promotion_id=promotion_id,
        client_id=client_id,
    ).first()
    if exists:
        return False
    db.session.add(PromotionClientUse(promotion_id=promotion_id, client_id=client_id, created_at=now))
    db.session.flush()
    return True


def _increment_usage(promotion: Promotion) -> None:
    q = db.session.query(Promotion).filter(Promotion.id == promotion.id)
    if promotion.max_uses:
        q = q.filter(Promotion.usage_count < Promotion.max_uses)
    updated = q.update(
        {Promotion.usage_count: Promotion.usage_count + 1},
        synchronize_session=False,
    )
    if updated == 0:
        raise PromotionIneligibleError(
            REASON_LIMIT_REACHED,
            "This promotion has reached its maximum usage limit",
            details={"promotionId": promotion.id},
        )


def record_usage(
    promotion_id: int,
    client_id: str | None = None,
    *,
    transaction_id: int | None = None,
    discount_amount: Decimal | None = None,
    clock=None,
) -> bool:
    """
    Record one consumption of a promotion. Does not commit.

    Returns True if usage was recorded, False if this sale (or, for
    one-time promotions, this client) was already recorded.

    Raises:
        NotFoundError: promotion does not exist
        PromotionIneligibleError: repeating cap reached by a concurrent sale
    """
    if transaction_id is not None and has_redemption(promotion_id, transaction_id):
        return False

    promotion = lock_for_update(db.session.query(Promotion).filter_by(id=promotion_id)).first()
    if promotion is None:
        raise NotFoundError("Promotion not found", details={"promotionId": promotion_id})

    now = resolve_clock(clock).now()
    recorded = False

    if promotion.usage_type == UsageType.ONE_TIME.value:
        if client_id:
            recorded = _add_client_use(promotion.id, str(client_id), now)
    elif promotion.usage_type == UsageType.REPEATING.value:
        _increment_usage(promotion)
        recorded = True

    if transaction_id is not None:
        db.session.add(PromotionRedemption(
            promotion_id=promotion.id,
            transaction_id=transaction_id,
            client_id=str(client_id) if client_id else None,
            discount_amount=discount_amount if discount_amount is not None else ZERO,
            redeemed_at=now,
        ))
        db.session.flush()
        recorded = True

    # usage_count / client_uses were changed behind the ORM's back
    db.session.expire(promotion)
    return recorded


def track_promotion_usage(promotion_id: int, client_id: str | None = None, *, transaction_id: int | None = None, clock=None) -> bool:
    """Standalone, committed form of record_usage."""
    recorded = run_atomic(
        lambda: record_usage(promotion_id, client_id, transaction_id=transaction_id, clock=clock),
        description="record promotion usage",
    )
    if recorded:
        current_app.logger.info("Promotion %s usage recorded (client=%s, transaction=%s)", promotion_id, client_id, transaction_id)
    return recorded


def list_redemptions(promotion_id: int) -> list[PromotionRedemption]:
    return db.session.query(PromotionRedemption).filter_by(
        promotion_id=promotion_id
    ).order_by(PromotionRedemption.redeemed_at, PromotionRedemption.id).all()
