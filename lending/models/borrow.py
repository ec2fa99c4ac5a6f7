import math
from datetime import timedelta

from sqlalchemy import and_
from sqlalchemy.ext.hybrid import hybrid_method

from lending.extensions import db
from lending.utils.clock import utcnow

STATUS_ACTIVE = "active"
STATUS_RETURNED = "returned"
STATUS_EXPIRED = "expired"
# Kept in the enum for stored data; no transition produces it.
STATUS_OVERDUE = "overdue"
STATUS_COMPLETED = "completed"

BORROW_STATUSES = (STATUS_ACTIVE, STATUS_RETURNED, STATUS_EXPIRED, STATUS_OVERDUE, STATUS_COMPLETED)
TERMINAL_STATUSES = (STATUS_RETURNED, STATUS_COMPLETED)
RETURNABLE_STATUSES = (STATUS_ACTIVE, STATUS_EXPIRED)

RESOURCE_TYPES = ("course", "book", "material", "equipment")


class Borrow(db.Model):
    __tablename__ = "borrows"
    __table_args__ = (
        db.Index("ix_borrows_user_status", "user_id", "status"),
        db.Index("ix_borrows_expiry_status", "expiry_date", "status"),
        db.Index("ix_borrows_user_resource_status", "user_id", "resource_id", "status"),
    )

    id = db.Column(db.Integer, primary_key=True)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    resource_id = db.Column(db.Integer, nullable=False, index=True)
    resource_type = db.Column(db.String(20), nullable=False)  # course/book/material/equipment
    resource_title = db.Column(db.String(255), nullable=False)

    borrow_date = db.Column(db.DateTime, nullable=False, default=utcnow)
    expiry_date = db.Column(db.DateTime, nullable=False, index=True)
    return_date = db.Column(db.DateTime, nullable=True)

    status = db.Column(db.String(20), nullable=False, default=STATUS_ACTIVE, index=True)
    progress = db.Column(db.Integer, nullable=False, default=0)
    reminder_sent = db.Column(db.Boolean, nullable=False, default=False)

    # "metadata" is reserved on declarative classes
    meta = db.Column("metadata", db.JSON, nullable=False, default=dict)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    user = db.relationship("User", backref="borrows")

    @hybrid_method
    def is_effectively_expired(self, now):
        """Active but past its expiry, whether or not the sweep has run yet."""
        return self.status == STATUS_ACTIVE and self.expiry_date <= now

    @is_effectively_expired.expression
    def is_effectively_expired(cls, now):
        return and_(cls.status == STATUS_ACTIVE, cls.expiry_date <= now)

    @hybrid_method
    def needs_reminder(self, now, window_hours=24):
        limit = now + timedelta(hours=window_hours)
        return (
            self.status == STATUS_ACTIVE
            and not self.reminder_sent
            and now < self.expiry_date <= limit
        )

    @needs_reminder.expression
    def needs_reminder(cls, now, window_hours=24):
        limit = now + timedelta(hours=window_hours)
        return and_(
            cls.status == STATUS_ACTIVE,
            cls.reminder_sent.is_(False),
            cls.expiry_date > now,
            cls.expiry_date <= limit,
        )

    def remaining_seconds(self, now) -> int:
        return max(0, math.floor((self.expiry_date - now).total_seconds()))

    def hours_remaining(self, now) -> int:
        return max(0, math.ceil((self.expiry_date - now).total_seconds() / 3600))

    def to_dict(self):
        return {
            "id": self.id,
            "userId": self.user_id,
            "resourceId": self.resource_id,
            "resourceType": self.resource_type,
            "resourceTitle": self.resource_title,
            "borrowDate": self.borrow_date.isoformat() if self.borrow_date else None,
            "expiryDate": self.expiry_date.isoformat() if self.expiry_date else None,
            "returnDate": self.return_date.isoformat() if self.return_date else None,
            "status": self.status,
            "progress": self.progress,
            "reminderSent": bool(self.reminder_sent),
            "metadata": dict(self.meta or {}),
        }
