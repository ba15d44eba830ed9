# Overview: Flask API routes for deposit reconciliation and daily sales reporting.

"""
Deposit API Routes

- GET  /api/deposits/daily-total   What was rung up for a branch on a day
- POST /api/deposits/classify      Dry-run classification, nothing stored
- POST /api/deposits               Submit the day's deposit (SUBMIT_DEPOSIT)
- GET  /api/deposits               List deposits
- GET  /api/deposits/<id>          One deposit
- POST /api/deposits/<id>/review   Approve or reject (REVIEW_DEPOSIT)
- GET  /api/reports/daily-sales    Paid-invoice summary for a day
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_actor, require_capability
from ..errors import SalonPosError
from ..permissions import REVIEW_DEPOSIT, SUBMIT_DEPOSIT
from ..services import deposit_service
from ..validation import money_to_json


deposits_bp = Blueprint("deposits", __name__, url_prefix="/api/deposits")
reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@deposits_bp.get("/daily-total")
@require_actor
def daily_total_route():
    """
    Query params: branch_id (required), date (YYYY-MM-DD, required)
    """
    try:
        branch_id = request.args.get("branch_id")
        day = request.args.get("date")
        total = deposit_service.compute_daily_sales_total(branch_id, day)
        return jsonify({
            "branchId": branch_id,
            "date": day,
            "dailySalesTotal": money_to_json(total),
        }), 200

    except SalonPosError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to compute daily sales total")
        return jsonify({"error": "Internal server error"}), 500


@deposits_bp.post("/classify")
@require_actor
def classify_route():
    """
    Request body:
    {
        "amount": 100.99,
        "dailySalesTotal": 100.00,  (or branchId + date to compute it)
        "branchId": "branch-1",
        "date": "2024-03-01"
    }
    """
    try:
        data = request.get_json(silent=True) or {}

        if data.get("dailySalesTotal") is not None:
            daily_total = data.get("dailySalesTotal")
            classification = deposit_service.classify_deposit(
                data.get("amount"),
                daily_total,
                current_app.config.get("DEPOSIT_TOLERANCE"),
                current_app.config.get("DEPOSIT_MISMATCH_THRESHOLD"),
            )
        else:
            daily_total, classification = deposit_service.reconcile(
                data.get("branchId"), data.get("date"), data.get("amount")
            )

        result = classification.to_dict()
        result["dailySalesTotal"] = float(daily_total)
        result["anomalyDescription"] = deposit_service.describe_anomalies(
            data.get("amount"), daily_total, classification
        )
        return jsonify(result), 200

    except SalonPosError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to classify deposit")
        return jsonify({"error": "Internal server error"}), 500


@deposits_bp.post("")
@require_actor
@require_capability(SUBMIT_DEPOSIT)
def submit_deposit_route():
    """
    Request body:
    {
        "branchId": "branch-1",
        "depositDate": "2024-03-01",
        "amount": 675.00,
        "bankName": "...", "accountNumber": "...", "referenceNumber": "...",  (optional)
        "notes": "..."  (optional)
    }

    Returns:
        201: Deposit stored with its classification
        400: Invalid input
    """
    try:
        data = request.get_json(silent=True) or {}

        deposit = deposit_service.submit_deposit(
            data.get("branchId"),
            data.get("depositDate"),
            data.get("amount"),
            g.actor_id,
            bank_name=data.get("bankName"),
            account_number=data.get("accountNumber"),
            reference_number=data.get("referenceNumber"),
            notes=data.get("notes"),
        )
        return jsonify({"deposit": deposit.to_dict()}), 201

    except SalonPosError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to submit deposit")
        return jsonify({"error": "Internal server error"}), 500


@deposits_bp.get("")
@require_actor
def list_deposits_route():
    deposits = deposit_service.list_deposits(request.args.get("branch_id"))
    return jsonify({"deposits": [d.to_dict() for d in deposits]}), 200


@deposits_bp.get("/<int:deposit_id>")
@require_actor
def get_deposit_route(deposit_id: int):
    try:
        deposit = deposit_service.get_deposit(deposit_id)
        return jsonify({"deposit": deposit.to_dict()}), 200

    except SalonPosError as e:
        return jsonify(e.to_dict()), e.http_status


@deposits_bp.post("/<int:deposit_id>/review")
@require_actor
@require_capability(REVIEW_DEPOSIT)
def review_deposit_route(deposit_id: int):
    """
    Request body: {"action": "approve" | "reject", "notes": "..."}
    """
    try:
        data = request.get_json(silent=True) or {}

        deposit = deposit_service.review_deposit(
            deposit_id,
            data.get("action"),
            g.actor_id,
            data.get("notes"),
        )
        return jsonify({"deposit": deposit.to_dict()}), 200

    except SalonPosError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to review deposit")
        return jsonify({"error": "Internal server error"}), 500


@reports_bp.get("/daily-sales")
@require_actor
def daily_sales_route():
    try:
        summary = deposit_service.daily_sales_summary(
            request.args.get("branch_id"),
            request.args.get("date"),
        )
        return jsonify(summary), 200

    except SalonPosError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to build daily sales report")
        return jsonify({"error": "Internal server error"}), 500
