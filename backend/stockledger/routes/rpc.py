# backend/stockledger/routes/rpc.py
"""
RPC-style ledger endpoints.

Every call is a JSON POST to /api/rpc/<call_name>. Handlers only parse the
body, call one service function and map the error taxonomy to status codes:

    KeyError          -> 400 (missing field)
    ValidationError   -> 400
    NotFoundError     -> 404
    ConflictError     -> 409
    anything else     -> 500 (logged)

Authentication and vendor scoping happen upstream; vendor_id is taken from
the request body.
"""
from flask import Blueprint, request, jsonify, current_app
from ..extensions import db
from ..services import products_service, session_service, stock_ledger, transfer_service
from ..validation import ConflictError, NotFoundError, ValidationError


rpc_bp = Blueprint("rpc", __name__, url_prefix="/api/rpc")


def _body() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _fail(message: str, status: int):
    db.session.rollback()
    return jsonify({"error": message}), status


def _unexpected(call_name: str):
    db.session.rollback()
    current_app.logger.exception("RPC %s failed", call_name)
    return jsonify({"error": "Internal server error"}), 500


@rpc_bp.route("/atomic_create_product", methods=["POST"])
def atomic_create_product():
    """
    Create a product with its initial inventory in one transaction.

    Request body:
    {
        "vendor_id": int,
        "product_data": {...},
        "initial_stock": number (optional, simple products),
        "variants": [{..., "stock_quantity": number}] (variable products)
    }

    Returns:
        201: Product created
        400: No primary location, missing variants, invalid data
        409: SKU already used by this vendor
    """
    data = _body()

    try:
        result = products_service.create_product(
            vendor_id=data["vendor_id"],
            product_data=data["product_data"],
            initial_stock=data.get("initial_stock", 0),
            variants=data.get("variants"),
        )
        return jsonify(result), 201

    except KeyError as e:
        return _fail(f"Missing required field: {e}", 400)
    except ValidationError as e:
        return _fail(str(e), 400)
    except NotFoundError as e:
        return _fail(str(e), 404)
    except ConflictError as e:
        return _fail(str(e), 409)
    except Exception:
        return _unexpected("atomic_create_product")


@rpc_bp.route("/atomic_inventory_transfer", methods=["POST"])
def atomic_inventory_transfer():
    """
    Move stock between two locations.

    Request body:
    {
        "product_id": int,
        "from_location_id": int,
        "to_location_id": int,
        "quantity": number,
        "vendor_id": int,
        "variant_id": int (optional),
        "reason": str (optional),
        "reference_id": str (optional, makes retries idempotent)
    }

    Returns:
        200: {"success": true, ...}
        400: {"success": false, "error": ...} (e.g. insufficient stock)
        404: Product or location not found
    """
    data = _body()

    try:
        result = transfer_service.transfer_inventory(
            product_id=data["product_id"],
            from_location_id=data["from_location_id"],
            to_location_id=data["to_location_id"],
            quantity=data["quantity"],
            vendor_id=data["vendor_id"],
            reason=data.get("reason"),
            variant_id=data.get("variant_id"),
            reference_id=data.get("reference_id"),
        )
        return jsonify(result), 200

    except KeyError as e:
        db.session.rollback()
        return jsonify({"success": False, "error": f"Missing required field: {e}"}), 400
    except ValidationError as e:
        db.session.rollback()
        return jsonify({"success": False, "error": str(e)}), 400
    except NotFoundError as e:
        db.session.rollback()
        return jsonify({"success": False, "error": str(e)}), 404
    except ConflictError as e:
        db.session.rollback()
        return jsonify({"success": False, "error": str(e)}), 409
    except Exception:
        return _unexpected("atomic_inventory_transfer")


@rpc_bp.route("/get_or_create_session", methods=["POST"])
def get_or_create_session():
    """
    Join the register's open session, or open one.

    Request body:
    {
        "location_id": int,
        "register_id": str,
        "user_id": str,
        "vendor_id": int,
        "opening_cash": number (optional)
    }

    Returns:
        201: Session opened (was_created = true)
        200: Existing open session joined
    """
    data = _body()

    try:
        result = session_service.get_or_create_session(
            location_id=data["location_id"],
            register_id=data["register_id"],
            user_id=data["user_id"],
            vendor_id=data["vendor_id"],
            opening_cash=data.get("opening_cash", 0),
        )
        return jsonify(result), 201 if result["was_created"] else 200

    except KeyError as e:
        return _fail(f"Missing required field: {e}", 400)
    except ValidationError as e:
        return _fail(str(e), 400)
    except NotFoundError as e:
        return _fail(str(e), 404)
    except Exception:
        return _unexpected("get_or_create_session")


def _inventory_call(call_name: str, func):
    data = _body()

    try:
        inventory = func(
            inventory_id=data["inventory_id"],
            quantity=data["quantity"],
            reference_type=data["reference_type"],
            reference_id=data.get("reference_id"),
            reason=data.get("reason"),
        )
        return jsonify(inventory.to_dict()), 200

    except KeyError as e:
        return _fail(f"Missing required field: {e}", 400)
    except ValidationError as e:
        return _fail(str(e), 400)
    except NotFoundError as e:
        return _fail(str(e), 404)
    except ConflictError as e:
        return _fail(str(e), 409)
    except Exception:
        return _unexpected(call_name)


@rpc_bp.route("/increment_inventory", methods=["POST"])
def increment_inventory():
    """
    Request body:
    {"inventory_id": int, "quantity": number, "reference_type": str,
     "reference_id": str (optional), "reason": str (optional)}
    """
    return _inventory_call("increment_inventory", stock_ledger.increment_inventory)


@rpc_bp.route("/decrement_inventory", methods=["POST"])
def decrement_inventory():
    """Same body as increment_inventory. 400 on insufficient stock."""
    return _inventory_call("decrement_inventory", stock_ledger.decrement_inventory)


@rpc_bp.route("/adjust_inventory", methods=["POST"])
def adjust_inventory():
    """
    Signed manual correction.

    Request body:
    {"inventory_id": int, "adjustment": number, "reason": str (optional),
     "reference_id": str (optional)}
    """
    data = _body()

    try:
        result = stock_ledger.adjust_inventory(
            inventory_id=data["inventory_id"],
            adjustment=data["adjustment"],
            reason=data.get("reason"),
            reference_id=data.get("reference_id"),
        )
        return jsonify({
            "inventory": result["inventory"].to_dict(),
            "movement": result["movement"].to_dict(),
            "previous_quantity": result["previous_quantity"],
            "new_quantity": result["new_quantity"],
        }), 200

    except KeyError as e:
        return _fail(f"Missing required field: {e}", 400)
    except ValidationError as e:
        return _fail(str(e), 400)
    except NotFoundError as e:
        return _fail(str(e), 404)
    except ConflictError as e:
        return _fail(str(e), 409)
    except Exception:
        return _unexpected("adjust_inventory")


@rpc_bp.route("/verify_ledger", methods=["POST"])
def verify_ledger():
    """Request body: {"inventory_id": int}"""
    data = _body()

    try:
        return jsonify(stock_ledger.verify_ledger(data["inventory_id"])), 200

    except KeyError as e:
        return _fail(f"Missing required field: {e}", 400)
    except NotFoundError as e:
        return _fail(str(e), 404)
    except Exception:
        return _unexpected("verify_ledger")


def _session_call(call_name: str, func, **fields):
    """
    fields maps service keyword -> (body key, required).
    """
    data = _body()

    try:
        kwargs = {}
        for kwarg, (key, required) in fields.items():
            if required:
                kwargs[kwarg] = data[key]
            elif key in data:
                kwargs[kwarg] = data[key]
        session = func(session_id=data["session_id"], **kwargs)
        return jsonify(session.to_dict()), 200

    except KeyError as e:
        return _fail(f"Missing required field: {e}", 400)
    except ValidationError as e:
        return _fail(str(e), 400)
    except NotFoundError as e:
        return _fail(str(e), 404)
    except ConflictError as e:
        return _fail(str(e), 409)
    except Exception:
        return _unexpected(call_name)


@rpc_bp.route("/update_session_on_void", methods=["POST"])
def update_session_on_void():
    """Request body: {"session_id": int, "amount_to_subtract": number, "payment_method": "cash"|"card" (optional)}"""
    return _session_call(
        "update_session_on_void",
        session_service.update_session_on_void,
        amount_to_subtract=("amount_to_subtract", True),
        payment_method=("payment_method", False),
    )


@rpc_bp.route("/update_session_for_refund", methods=["POST"])
def update_session_for_refund():
    """Request body: {"session_id": int, "refund_amount": number}"""
    return _session_call(
        "update_session_for_refund",
        session_service.update_session_for_refund,
        refund_amount=("refund_amount", True),
    )


@rpc_bp.route("/record_session_sale", methods=["POST"])
def record_session_sale():
    """
    Request body:
    {"session_id": int, "amount": number, "payment_method": "cash" | "card",
     "transaction_type": "walk_in_sales" | "pickup_orders_fulfilled" (optional)}
    """
    return _session_call(
        "record_session_sale",
        session_service.record_session_sale,
        amount=("amount", True),
        payment_method=("payment_method", True),
        transaction_type=("transaction_type", False),
    )


@rpc_bp.route("/close_session", methods=["POST"])
def close_session():
    """
    Request body:
    {"session_id": int, "closing_cash": number, "notes": str (optional),
     "closed_by_user_id": str (optional)}

    Returns 409 if the session is already closed.
    """
    return _session_call(
        "close_session",
        session_service.close_session,
        closing_cash=("closing_cash", True),
        notes=("notes", False),
        closed_by_user_id=("closed_by_user_id", False),
    )
