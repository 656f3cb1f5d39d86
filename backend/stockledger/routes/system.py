# backend/stockledger/routes/system.py
"""
System health endpoint.

Checks database connectivity and reports ledger-level counters useful when
debugging a deployment (open sessions, inventory rows).
"""

import time
from flask import Blueprint, current_app
from ..extensions import db
from ..models import Inventory, PosSession, StockMovement
from ..models.sessions import SESSION_STATUS_OPEN
from ..time_utils import utcnow

system_bp = Blueprint("system", __name__, url_prefix="/api")


def check_database_health() -> dict:
    """
    Check database connectivity and basic operations.

    Returns dict with status and details.
    """
    start_time = time.time()
    try:
        inventory_rows = db.session.query(Inventory).count()
        movement_rows = db.session.query(StockMovement).count()
        open_sessions = db.session.query(PosSession).filter_by(status=SESSION_STATUS_OPEN).count()

        elapsed_ms = (time.time() - start_time) * 1000

        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "inventory_rows": inventory_rows,
                "stock_movements": movement_rows,
                "open_sessions": open_sessions,
            }
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        db.session.rollback()
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error"
        }


@system_bp.get("/health")
def health():
    """
    Returns:
    - 200: database reachable
    - 503: database unhealthy
    """
    database_health = check_database_health()
    http_status = 200 if database_health["status"] == "healthy" else 503

    return {
        "status": database_health["status"],
        "timestamp": utcnow().isoformat() + "Z",
        "checks": {
            "database": database_health,
        }
    }, http_status
