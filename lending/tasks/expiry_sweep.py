# lending/tasks/expiry_sweep.py
from datetime import datetime

from flask import current_app

from lending.extensions import db
from lending.models.borrow import STATUS_EXPIRED
from lending.repositories.borrow_repo import BorrowRepo
from lending.services.cache_service import invalidate_user_library
from lending.services.notification_service import NotificationService
from lending.utils.clock import utcnow


def sweep_expired_borrows(now: datetime | None = None) -> dict:
    """
    Batch pass over active borrows:
    - reminder: expiry within the reminder window and not yet reminded -> one warning
    - expired: expiry already passed -> status flips to expired
    Reminders are handled first so a borrow gets its last warning before it lapses.
    Notifications go out only after the status changes are committed.
    """
    now = now or utcnow()
    window = current_app.config["REMINDER_WINDOW_HOURS"]

    to_remind = BorrowRepo.find_needing_reminder(now, window)
    reminders = []
    for b in to_remind:
        b.reminder_sent = True
        reminders.append((b.user_id, b.resource_id, b.resource_title, b.expiry_date, b.hours_remaining(now)))
    db.session.commit()

    lapsed = BorrowRepo.find_effectively_expired(now)
    expired_count = BorrowRepo.mark_expired([b.id for b in lapsed], now)
    db.session.commit()

    # committed rows reload here, so anything returned meanwhile is skipped
    expired = [(b.user_id, b.resource_id, b.resource_title) for b in lapsed if b.status == STATUS_EXPIRED]

    for user_id in {r[0] for r in reminders} | {e[0] for e in expired}:
        invalidate_user_library(user_id)

    for user_id, resource_id, title, expiry_date, hours in reminders:
        NotificationService.notify_expiry_soon(user_id, resource_id, title, expiry_date, hours)
    for user_id, resource_id, title in expired:
        NotificationService.notify_expired(user_id, resource_id, title)

    current_app.logger.info(f"[sweep] reminded={len(reminders)} expired={expired_count}")
    return {"reminded": len(reminders), "expired": expired_count}


def run_expiry_sweep_job(app):
    with app.app_context():
        try:
            sweep_expired_borrows()
        except Exception as e:
            db.session.rollback()
            current_app.logger.exception(f"[sweep] Error: {e}")
