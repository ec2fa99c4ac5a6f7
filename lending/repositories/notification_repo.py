from lending.extensions import db
from lending.models.notification import Notification


class NotificationRepo:
    @staticmethod
    def list_by_user(user_id: int, unread_only: bool = False, limit: int = 50):
        q = Notification.query.filter_by(user_id=user_id)
        if unread_only:
            q = q.filter(Notification.read.is_(False))
        return q.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(limit).all()

    @staticmethod
    def create(entry: Notification):
        db.session.add(entry)
        db.session.commit()
        return entry
