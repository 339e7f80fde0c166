# backend/stockroom/routes/system.py
"""
Health endpoint for load balancers and deployment checks.

/api/health answers 503 when the database cannot be queried. SMTP is
reported but never makes the service unhealthy: without it store credit
emails are skipped, nothing else changes.
"""

import time
from flask import Blueprint, current_app
from ..extensions import db
from ..models import Product, Order, DiscountCode
from stockroom.time_utils import utcnow, to_utc_z

system_bp = Blueprint("system", __name__, url_prefix="/api")

def check_database_health() -> dict:
    """Row counts for the main tables, with query latency."""
    started = time.perf_counter()
    try:
        counts = {
            "products": db.session.query(Product).count(),
            "orders": db.session.query(Order).count(),
            "discount_codes": db.session.query(DiscountCode).count(),
        }
    except Exception:
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round((time.perf_counter() - started) * 1000, 2),
            "error": "Database error",
        }
    return {
        "status": "healthy",
        "latency_ms": round((time.perf_counter() - started) * 1000, 2),
        "details": counts,
    }


def check_mail_config() -> dict:
    config = current_app.config
    configured = bool(config.get("SMTP_USER") and config.get("SMTP_PASS"))
    return {"status": "configured" if configured else "disabled", "host": config.get("SMTP_HOST")}


@system_bp.get("/health")
def health():
    database = check_database_health()
    healthy = database["status"] == "healthy"
    body = {
        "status": "healthy" if healthy else "unhealthy",
        "checked_at": to_utc_z(utcnow()),
        "checks": {"database": database, "mail": check_mail_config()},
    }
    return body, 200 if healthy else 503

