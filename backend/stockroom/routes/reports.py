# Overview: Flask API routes for stock alerts and read-only reports; parses input and returns JSON responses.

"""
Report Routes

SECURITY:
- Stock alerts need only a principal
- Dashboard, sales and valuation reports require canViewReports
"""

from flask import Blueprint, jsonify, request

from ..decorators import require_principal, require_permission, translate_service_errors
from ..services import reporting_service
from ..services.runtime import inventory
from ..services.stock_status import stock_alert_summary


reports_bp = Blueprint("reports", __name__, url_prefix="/api")


@reports_bp.get("/alerts/stock")
@require_principal
@translate_service_errors
def stock_alerts():
    return jsonify(stock_alert_summary(inventory.view())), 200


@reports_bp.get("/reports/dashboard")
@require_principal
@require_permission("canViewReports")
@translate_service_errors
def dashboard():
    return jsonify(reporting_service.dashboard_stats(inventory.view())), 200


@reports_bp.get("/reports/sales")
@require_principal
@require_permission("canViewReports")
@translate_service_errors
def sales_report():
    try:
        report = reporting_service.sales_report(
            inventory.view(),
            start=request.args.get("start"),
            end=request.args.get("end"),
            group_by=request.args.get("group_by", "day"),
        )
        return jsonify(report), 200
    except reporting_service.ReportError as exc:
        return jsonify({"error": str(exc)}), 400


@reports_bp.get("/reports/inventory-valuation")
@require_principal
@require_permission("canViewReports")
@translate_service_errors
def inventory_valuation_report():
    return jsonify(reporting_service.inventory_valuation(inventory.view())), 200
