from flask import Blueprint, request

from lending.services.analytics_service import AnalyticsService
from lending.utils.decorators import library_errors, role_required
from lending.utils.http import json_ok

analytics_bp = Blueprint("library_analytics", __name__, url_prefix="/library-analytics")


@analytics_bp.get("/overview")
@role_required("admin", "dao")
@library_errors("analytics.overview")
def get_library_stats():
    period = request.args.get("period", "monthly")
    stats = AnalyticsService.latest_stats(period)
    return json_ok(stats.to_dict())


@analytics_bp.post("/aggregate")
@role_required("admin")
@library_errors("analytics.aggregate")
def trigger_aggregation():
    data = request.get_json(silent=True) or {}
    period = data.get("period", "daily")
    stats = AnalyticsService.aggregate_stats(period)
    return json_ok(stats.to_dict(), f"{period} aggregation completed")
