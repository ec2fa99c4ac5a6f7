from datetime import datetime

from flask import current_app

from lending.extensions import db
from lending.models.library_analytics import PERIODS
from lending.services.analytics_service import AnalyticsService


def aggregate_all_periods(reference: datetime | None = None) -> dict:
    """Runs daily, weekly and monthly aggregation; one period failing does not stop the rest."""
    results = {}
    for period in PERIODS:
        try:
            AnalyticsService.aggregate_stats(period, reference)
            results[period] = True
        except Exception as e:
            db.session.rollback()
            current_app.logger.exception(f"[analytics] {period} aggregation failed: {e}")
            results[period] = False
    return results


def run_analytics_job(app):
    with app.app_context():
        results = aggregate_all_periods()
        current_app.logger.info(f"[analytics] aggregation run {results}")
