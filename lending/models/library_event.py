from lending.extensions import db
from lending.utils.clock import utcnow

ACTION_BORROW = "BORROW"
ACTION_RETURN = "RETURN"
ACTION_PROGRESS_UPDATE = "PROGRESS_UPDATE"
ACTION_COMPLETE = "COMPLETE"
ACTION_RATE = "RATE"


class LibraryEvent(db.Model):
    """Append-only feed read by the analytics aggregator."""

    __tablename__ = "library_events"
    __table_args__ = (
        db.Index("ix_library_events_action_created", "action", "created_at"),
        db.Index("ix_library_events_resource_action", "resource_id", "action"),
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, nullable=False, index=True)
    action = db.Column(db.String(20), nullable=False, index=True)

    resource_id = db.Column(db.Integer, nullable=False, index=True)
    resource_type = db.Column(db.String(20), nullable=False, default="book")
    value = db.Column(db.Float, nullable=True)

    # metadata.courseId, kept as a column so the aggregator can group on it
    course_id = db.Column(db.Integer, nullable=True, index=True)
    meta = db.Column("metadata", db.JSON, nullable=False, default=dict)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow, index=True)
