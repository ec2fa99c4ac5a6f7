from lending.extensions import db
from lending.utils.clock import utcnow


class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(80), unique=True, nullable=False, index=True)
    email = db.Column(db.String(255), unique=True, nullable=True, index=True)
    role = db.Column(db.String(20), nullable=False, default="user")  # user/admin/dao

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
