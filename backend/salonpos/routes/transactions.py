# Overview: Flask API routes for salon invoices; parses input and returns JSON responses.

# backend/salonpos/routes/transactions.py
"""
Invoice API Routes

WHY: The front desk rings up, edits, discounts, takes payment for and
voids invoices through these endpoints.

DESIGN:
- Thin adapters over transaction_service; no business rules here
- Domain errors come back as {"error", "kind", "retryable", "details"}
  with the error's HTTP status so the client can show the message verbatim
- Optional "versionId" in PATCH/payment/void bodies rejects stale edits

SECURITY:
- CREATE_TRANSACTION for create, edit and promotion selection
- PROCESS_PAYMENT for payment
- Void is checked by the service against the actor's capabilities
  (paid invoices need VOID_PAID_TRANSACTION)
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_actor, require_capability
from ..errors import SalonPosError
from ..permissions import CREATE_TRANSACTION, PROCESS_PAYMENT
from ..services import transaction_service


transactions_bp = Blueprint("transactions", __name__, url_prefix="/api/transactions")
clients_bp = Blueprint("clients", __name__, url_prefix="/api/clients")

MAX_LIST_LIMIT = 200


# =============================================================================
# CREATE / READ
# =============================================================================

@transactions_bp.post("")
@require_actor
@require_capability(CREATE_TRANSACTION)
def create_transaction_route():
    """
    Ring up a new invoice.

    Request body:
    {
        "branchId": "branch-1",
        "clientId": "client-9",  (optional)
        "clientInfo": {"name": "Ana", "phone": "...", "email": "..."},
        "services": [{"serviceId": "s1", "basePrice": 850, "priceAdjustment": -100, ...}],
        "products": [{"productId": "p1", "price": 120, "quantity": 2}],
        "discount": 10,  (optional, manual percentage)
        "tax": 0,  (optional, flat amount)
        "notes": "..."  (optional)
    }

    Returns:
        201: Invoice created (status in_service)
        400: Invalid input
    """
    try:
        data = request.get_json(silent=True) or {}

        tx = transaction_service.create_transaction(
            branch_id=data.get("branchId"),
            services=data.get("services"),
            products=data.get("products"),
            client_info=data.get("clientInfo"),
            client_id=data.get("clientId"),
            discount=data.get("discount"),
            tax=data.get("tax"),
            created_by=g.actor_id,
            notes=data.get("notes"),
        )
        return jsonify({"transaction": tx.to_dict()}), 201

    except SalonPosError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to create transaction")
        return jsonify({"error": "Internal server error"}), 500


@transactions_bp.get("")
@require_actor
def list_transactions_route():
    """
    List a branch's invoices, newest first.

    Query params: branch_id (required), status, type, limit (default 50)
    """
    branch_id = request.args.get("branch_id")
    if not branch_id:
        return jsonify({"error": "branch_id is required"}), 400

    limit = request.args.get("limit", 50, type=int)
    limit = max(1, min(limit, MAX_LIST_LIMIT))

    try:
        transactions = transaction_service.list_transactions(
            branch_id,
            status=request.args.get("status"),
            transaction_type=request.args.get("type"),
            limit=limit,
        )
        return jsonify({
            "transactions": [tx.to_dict() for tx in transactions],
            "count": len(transactions),
        }), 200

    except SalonPosError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to list transactions")
        return jsonify({"error": "Internal server error"}), 500


@transactions_bp.get("/<int:transaction_id>")
@require_actor
def get_transaction_route(transaction_id: int):
    try:
        tx = transaction_service.get_transaction(transaction_id)
        return jsonify({"transaction": tx.to_dict()}), 200

    except SalonPosError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to get transaction")
        return jsonify({"error": "Internal server error"}), 500


@clients_bp.get("/<client_id>/transactions")
@require_actor
def list_client_transactions_route(client_id: str):
    try:
        transactions = transaction_service.list_client_transactions(client_id)
        return jsonify({
            "transactions": [tx.to_dict() for tx in transactions],
            "count": len(transactions),
        }), 200

    except SalonPosError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to list client transactions")
        return jsonify({"error": "Internal server error"}), 500


@clients_bp.get("/<client_id>/loyalty")
@require_actor
def client_loyalty_route(client_id: str):
    """Query params: branch_id (optional, all branches when omitted)"""
    branch_id = request.args.get("branch_id")
    points = transaction_service.client_loyalty_points(client_id, branch_id)
    return jsonify({"clientId": client_id, "branchId": branch_id, "loyaltyPoints": points}), 200


# =============================================================================
# EDIT / PROMOTION
# =============================================================================

@transactions_bp.patch("/<int:transaction_id>")
@require_actor
@require_capability(CREATE_TRANSACTION)
def edit_transaction_route(transaction_id: int):
    """
    Edit an in_service invoice. Omitted fields are left unchanged.

    Returns:
        200: Updated invoice
        409: Invoice is paid or voided
    """
    try:
        data = request.get_json(silent=True) or {}

        tx = transaction_service.edit_transaction(
            transaction_id,
            services=data.get("services"),
            products=data.get("products"),
            discount=data.get("discount"),
            tax=data.get("tax"),
            client_info=data.get("clientInfo"),
            notes=data.get("notes"),
            expected_version=data.get("versionId"),
        )
        return jsonify({"transaction": tx.to_dict()}), 200

    except SalonPosError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to edit transaction")
        return jsonify({"error": "Internal server error"}), 500


@transactions_bp.post("/<int:transaction_id>/promotion")
@require_actor
@require_capability(CREATE_TRANSACTION)
def apply_promotion_route(transaction_id: int):
    """
    Attach a promotion by code or id. Usage is recorded at payment.

    Request body: {"code": "SUMMER10"} or {"promotionId": 3}, optional "clientId"
    """
    try:
        data = request.get_json(silent=True) or {}

        tx = transaction_service.apply_promotion(
            transaction_id,
            code=data.get("code"),
            promotion_id=data.get("promotionId"),
            client_id=data.get("clientId"),
        )
        return jsonify({"transaction": tx.to_dict()}), 200

    except SalonPosError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to apply promotion")
        return jsonify({"error": "Internal server error"}), 500


@transactions_bp.delete("/<int:transaction_id>/promotion")
@require_actor
@require_capability(CREATE_TRANSACTION)
def remove_promotion_route(transaction_id: int):
    try:
        tx = transaction_service.remove_promotion(transaction_id)
        return jsonify({"transaction": tx.to_dict()}), 200

    except SalonPosError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to remove promotion")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# PAYMENT / VOID
# =============================================================================

@transactions_bp.post("/<int:transaction_id>/payment")
@require_actor
@require_capability(PROCESS_PAYMENT)
def process_payment_route(transaction_id: int):
    """
    Take payment.

    Request body:
    {
        "paymentMethod": "cash",  (cash, card, digital)
        "amountReceived": 1000,  (required for cash)
        "versionId": 2  (optional)
    }

    Returns:
        200: Invoice paid (cash includes change)
        400: Missing method or insufficient cash
        409: Invoice is not in_service
        422: Attached promotion is no longer valid
    """
    try:
        data = request.get_json(silent=True) or {}

        tx = transaction_service.process_payment(
            transaction_id,
            data.get("paymentMethod"),
            data.get("amountReceived"),
            expected_version=data.get("versionId"),
        )
        return jsonify({"transaction": tx.to_dict()}), 200

    except SalonPosError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to process payment")
        return jsonify({"error": "Internal server error"}), 500


@transactions_bp.post("/<int:transaction_id>/void")
@require_actor
def void_transaction_route(transaction_id: int):
    """
    Void an invoice.

    Request body: {"reason": "Client left", "notes": "...", "versionId": 3}

    Returns:
        200: Invoice voided
        403: Actor may not void an invoice in this status
        409: Invoice already voided
    """
    try:
        data = request.get_json(silent=True) or {}

        tx = transaction_service.void_transaction(
            transaction_id,
            data.get("reason"),
            g.actor_id,
            notes=data.get("notes"),
            authorization=g.authorization,
            expected_version=data.get("versionId"),
        )
        return jsonify({"transaction": tx.to_dict()}), 200

    except SalonPosError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to void transaction")
        return jsonify({"error": "Internal server error"}), 500
