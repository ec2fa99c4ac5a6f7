from blinker import Namespace
from flask import current_app

from lending.extensions import db
from lending.models.notification import Notification
from lending.repositories.notification_repo import NotificationRepo
from lending.services.mail_service import MailService

_signals = Namespace()

# Real-time transports (websocket gateway etc.) connect here.
notification_created = _signals.signal("notification-created")


def _fmt_date(value):
    return value.strftime("%Y-%m-%d") if value else "-"


class NotificationService:
    """Fan-out of lifecycle events to the in-app and email channels.

    Callers invoke ``notify`` only after their own commit. Delivery runs
    either inline or as a one-off job on the running scheduler; in both cases
    a failing channel is logged and never reaches the caller.
    """

    @staticmethod
    def notify(user_id, title, message, type="info", metadata=None, send_email=False, send_websocket=True):
        payload = {
            "user_id": user_id,
            "title": title,
            "message": message,
            "type": type,
            "metadata": dict(metadata or {}),
            "send_email": send_email,
            "send_websocket": send_websocket,
        }

        app = current_app._get_current_object()
        scheduler = app.extensions.get("apscheduler")
        if app.config.get("NOTIFICATIONS_ASYNC") and scheduler is not None and scheduler.running:
            scheduler.add_job(func=_deliver_in_context, args=[app, payload])
            return

        NotificationService.deliver(payload)

    @staticmethod
    def deliver(payload: dict):
        user_id = payload["user_id"]
        event_type = payload["metadata"].get("eventType", "notification")

        try:
            row = NotificationRepo.create(Notification(
                user_id=user_id,
                title=payload["title"],
                message=payload["message"],
                type=payload["type"],
                meta=payload["metadata"],
            ))
            if payload["send_websocket"]:
                notification_created.send(current_app._get_current_object(), user_id=user_id, notification=row.to_dict())
        except Exception as e:
            db.session.rollback()
            current_app.logger.warning(f"[notify] in-app notification failed user={user_id} event={event_type}: {e}")

        if payload["send_email"]:
            try:
                MailService.send_notification_email(user_id, payload["title"], payload["message"], event_type)
            except Exception as e:
                db.session.rollback()
                current_app.logger.warning(f"[notify] email notification failed user={user_id} event={event_type}: {e}")

    # Borrow event notifications

    @staticmethod
    def notify_borrow_success(user_id, resource_id, resource_title, expiry_date):
        NotificationService.notify(
            user_id,
            "Resource Borrowed Successfully",
            f'You have successfully borrowed "{resource_title}". It will expire on {_fmt_date(expiry_date)}.',
            type="success",
            metadata={
                "resourceId": resource_id,
                "resourceTitle": resource_title,
                "expiryDate": expiry_date.isoformat(),
                "eventType": "borrow_success",
            },
            send_email=True,
        )

    @staticmethod
    def notify_returned(user_id, resource_id, resource_title):
        NotificationService.notify(
            user_id,
            "Resource Returned",
            f'You have successfully returned "{resource_title}".',
            type="success",
            metadata={
                "resourceId": resource_id,
                "resourceTitle": resource_title,
                "eventType": "borrow_returned",
            },
            send_email=False,
        )

    @staticmethod
    def notify_renewed(user_id, resource_id, resource_title, new_expiry_date):
        NotificationService.notify(
            user_id,
            "Borrow Renewed",
            f'Your borrow for "{resource_title}" has been extended until {_fmt_date(new_expiry_date)}.',
            type="success",
            metadata={
                "resourceId": resource_id,
                "resourceTitle": resource_title,
                "newExpiryDate": new_expiry_date.isoformat(),
                "eventType": "borrow_renewed",
            },
            send_email=True,
        )

    @staticmethod
    def notify_expiry_soon(user_id, resource_id, resource_title, expiry_date, hours_remaining):
        NotificationService.notify(
            user_id,
            "Borrowed Resource Expiring Soon",
            f'Your borrowed resource "{resource_title}" will expire in {hours_remaining} hours. '
            f"Please return or renew it.",
            type="warning",
            metadata={
                "resourceId": resource_id,
                "resourceTitle": resource_title,
                "expiryDate": expiry_date.isoformat(),
                "hoursRemaining": hours_remaining,
                "eventType": "borrow_expiry_reminder",
            },
            send_email=True,
        )

    @staticmethod
    def notify_expired(user_id, resource_id, resource_title):
        NotificationService.notify(
            user_id,
            "Borrowed Resource Expired",
            f'Your borrowing period for "{resource_title}" has expired.',
            type="warning",
            metadata={
                "resourceId": resource_id,
                "resourceTitle": resource_title,
                "eventType": "borrow_expired",
            },
            send_email=True,
        )


def _deliver_in_context(app, payload):
    with app.app_context():
        NotificationService.deliver(payload)
