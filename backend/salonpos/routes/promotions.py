from __future__ import annotations

from flask import Blueprint, jsonify, request, g, current_app

from ..decorators import require_actor, require_capability
from ..errors import SalonPosError
from ..permissions import MANAGE_PROMOTIONS
from ..services import promotions_service

promotions_bp = Blueprint("promotions", __name__, url_prefix="/api/promotions")


@promotions_bp.route("", methods=["GET"])
@require_actor
def list_promotions():
    branch_id = request.args.get("branch_id")
    if not branch_id:
        return jsonify({"error": "branch_id is required"}), 400
    active_only = request.args.get("active_only", "false").lower() == "true"
    result = promotions_service.list_promotions(branch_id, active_only)
    return jsonify({"promotions": [p.to_dict() for p in result]})


@promotions_bp.route("", methods=["POST"])
@require_actor
@require_capability(MANAGE_PROMOTIONS)
def create_promotion():
    data = request.get_json(silent=True) or {}
    try:
        result = promotions_service.create_promotion(data.get("branchId"), data, g.actor_id)
    except SalonPosError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to create promotion")
        return jsonify({"error": "Internal server error"}), 500
    return jsonify({"promotion": result.to_dict()}), 201


@promotions_bp.route("/<int:promo_id>", methods=["PATCH"])
@require_actor
@require_capability(MANAGE_PROMOTIONS)
def update_promotion(promo_id: int):
    data = request.get_json(silent=True) or {}
    try:
        result = promotions_service.update_promotion(promo_id, data)
    except SalonPosError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to update promotion")
        return jsonify({"error": "Internal server error"}), 500
    return jsonify({"promotion": result.to_dict()})


@promotions_bp.route("/active", methods=["GET"])
@require_actor
def get_active_promotions():
    branch_id = request.args.get("branch_id")
    if not branch_id:
        return jsonify({"error": "branch_id is required"}), 400
    result = promotions_service.list_active_promotions(branch_id, request.args.get("client_id"))
    return jsonify({"promotions": [p.to_dict() for p in result]})


@promotions_bp.route("/validate", methods=["POST"])
@require_actor
def validate_promotion():
    """
    Check a code against a cart without attaching it.

    Body: {"code", "branchId", "clientId"?, "services"?, "products"?}
    Ineligible codes answer 422 with details.reason.
    """
    data = request.get_json(silent=True) or {}
    try:
        promotion, discount = promotions_service.preview_promotion(
            data.get("code"),
            data.get("branchId"),
            data.get("clientId"),
            data.get("services"),
            data.get("products"),
        )
    except SalonPosError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to validate promotion")
        return jsonify({"error": "Internal server error"}), 500
    return jsonify({"valid": True, "promotion": promotion.to_dict(), "discount": discount.to_dict()})
