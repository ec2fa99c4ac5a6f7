from lending.extensions import db
from lending.utils.clock import utcnow


class MailLog(db.Model):
    __tablename__ = "mail_logs"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, nullable=True, index=True)

    event_type = db.Column(db.String(50), nullable=False)  # borrow_success / borrow_expiry_reminder ...
    to_email = db.Column(db.String(255), nullable=True)
    subject = db.Column(db.String(200), nullable=True)

    success = db.Column(db.Boolean, nullable=False, default=False)
    error = db.Column(db.String(500), nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
