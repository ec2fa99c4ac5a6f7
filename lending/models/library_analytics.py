from lending.extensions import db
from lending.utils.clock import utcnow

PERIODS = ("daily", "weekly", "monthly")


class LibraryAnalytics(db.Model):
    __tablename__ = "library_analytics"
    __table_args__ = (
        db.UniqueConstraint("period", "bucket_start", name="uq_library_analytics_period_bucket"),
    )

    id = db.Column(db.Integer, primary_key=True)
    period = db.Column(db.String(20), nullable=False, index=True)
    bucket_start = db.Column(db.DateTime, nullable=False, index=True)

    metrics = db.Column(db.JSON, nullable=False, default=dict)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "period": self.period,
            "date": self.bucket_start.isoformat(),
            "metrics": self.metrics,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
        }
