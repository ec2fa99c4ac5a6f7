from lending.extensions import db
from lending.utils.clock import utcnow


class Notification(db.Model):
    """In-app notification shown to the user."""

    __tablename__ = "notifications"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    title = db.Column(db.String(200), nullable=False)
    message = db.Column(db.String(1000), nullable=False)
    type = db.Column(db.String(20), nullable=False, default="info")  # info/success/warning
    meta = db.Column("metadata", db.JSON, nullable=False, default=dict)

    read = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "title": self.title,
            "message": self.message,
            "type": self.type,
            "metadata": self.meta,
            "read": bool(self.read),
            "createdAt": self.created_at.isoformat(),
        }
