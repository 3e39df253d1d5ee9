# Overview: Health and version endpoints for the document database and the change-feed projection.

"""
System health and version endpoints.

Health covers the document database and the change-feed projection.
Neither endpoint requires a principal.
"""

import sys
import time
from flask import Blueprint, current_app
from sqlalchemy import func
from ..extensions import db
from ..models import Document
from ..services.document_store import COLLECTIONS
from ..services.runtime import inventory
from ..time_utils import to_utc_z, utcnow

system_bp = Blueprint("system", __name__, url_prefix="/api")


def check_database_health() -> dict:
    """
    Check database connectivity with a per-collection document count.

    Returns dict with status and details.
    """
    start_time = time.time()
    try:
        rows = (
            db.session.query(Document.collection, func.count(Document.id))
            .group_by(Document.collection)
            .all()
        )
        counts = {collection: 0 for collection in COLLECTIONS}
        counts.update({collection: count for collection, count in rows})

        elapsed_ms = (time.time() - start_time) * 1000
        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": counts,
        }
    except Exception:
        db.session.rollback()
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error",
        }


def check_projection_health() -> dict:
    """
    Check the change-feed projection (connecting it if needed). "degraded"
    when some collection has no feed subscriber.
    """
    try:
        projection = inventory.projection
        store = inventory.store
        subscribed = {c: store.subscriber_count(c) for c in COLLECTIONS}
        view = projection.snapshot()
    except Exception:
        current_app.logger.exception("Projection health check failed")
        return {"status": "unhealthy", "error": "Projection error"}

    status = "healthy" if all(subscribed.values()) else "degraded"
    return {
        "status": status,
        "details": {
            "version": view.version,
            "subscribers": subscribed,
            "categories": len(view.categories),
            "products": len(view.products),
            "suppliers": len(view.suppliers),
            "orders": len(view.orders),
        },
    }


@system_bp.get("/health")
def health():
    """
    Returns:
    - 200: healthy or degraded
    - 503: one or more checks unhealthy
    """
    start_time = time.time()

    database_health = check_database_health()
    projection_health = check_projection_health()

    all_checks = [database_health, projection_health]
    if any(check["status"] == "unhealthy" for check in all_checks):
        overall_status = "unhealthy"
        http_status = 503
    elif any(check["status"] == "degraded" for check in all_checks):
        overall_status = "degraded"
        http_status = 200  # Degraded is still operational
    else:
        overall_status = "healthy"
        http_status = 200

    total_elapsed_ms = (time.time() - start_time) * 1000

    response = {
        "status": overall_status,
        "timestamp": to_utc_z(utcnow()),
        "total_latency_ms": round(total_elapsed_ms, 2),
        "checks": {
            "database": database_health,
            "projection": projection_health,
        },
    }

    return response, http_status


@system_bp.get("/version")
def version():
    """Non-sensitive deployment information."""
    env = "production" if not current_app.debug else "development"

    return {
        "api_version": "1.0.0",
        "environment": env,
        "python_version": sys.version.split()[0],
        "server_time": to_utc_z(utcnow()),
    }
