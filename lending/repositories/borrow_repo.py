from datetime import datetime

from sqlalchemy import func

from lending.extensions import db
from lending.models.borrow import Borrow, BORROW_STATUSES, STATUS_ACTIVE, STATUS_EXPIRED
from lending.models.course import Course


class BorrowRepo:
    @staticmethod
    def get(borrow_id: int):
        return db.session.get(Borrow, borrow_id)

    @staticmethod
    def get_owned(borrow_id: int, user_id: int):
        return Borrow.query.filter_by(id=borrow_id, user_id=user_id).first()

    @staticmethod
    def find_active(user_id: int, resource_id: int, resource_type: str | None = None):
        q = Borrow.query.filter_by(user_id=user_id, resource_id=resource_id, status=STATUS_ACTIVE)
        if resource_type:
            q = q.filter_by(resource_type=resource_type)
        return q.first()

    @staticmethod
    def list_by_user(user_id: int, status: str | None = None, page: int = 1, limit: int = 10):
        q = Borrow.query.filter_by(user_id=user_id)
        if status:
            q = q.filter_by(status=status)

        total = q.count()
        items = (
            q.order_by(Borrow.borrow_date.desc(), Borrow.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return items, total

    @staticmethod
    def count_by_status(user_id: int) -> dict:
        rows = (
            db.session.query(Borrow.status, func.count(Borrow.id))
            .filter(Borrow.user_id == user_id)
            .group_by(Borrow.status)
            .all()
        )
        counts = {s: 0 for s in BORROW_STATUSES}
        for status, count in rows:
            counts[status] = int(count)
        return counts

    @staticmethod
    def list_course_borrows(user_id: int):
        """(Borrow, Course) pairs; borrows whose course no longer exists drop out of the join."""
        return (
            db.session.query(Borrow, Course)
            .join(Course, Course.id == Borrow.resource_id)
            .filter(Borrow.user_id == user_id, Borrow.resource_type == "course")
            .order_by(Borrow.borrow_date.desc())
            .all()
        )

    @staticmethod
    def transition(borrow_id: int, user_id: int, from_statuses, values: dict) -> int:
        """Conditional update scoped to (id, owner, expected status). Returns rows changed."""
        return (
            Borrow.query.filter(
                Borrow.id == borrow_id,
                Borrow.user_id == user_id,
                Borrow.status.in_(from_statuses),
            )
            .update(values, synchronize_session=False)
        )

    @staticmethod
    def find_needing_reminder(now: datetime, window_hours: int):
        return Borrow.query.filter(Borrow.needs_reminder(now, window_hours)).all()

    @staticmethod
    def find_effectively_expired(now: datetime):
        return Borrow.query.filter(Borrow.is_effectively_expired(now)).all()

    @staticmethod
    def mark_expired(borrow_ids, now: datetime) -> int:
        if not borrow_ids:
            return 0
        return (
            Borrow.query.filter(Borrow.id.in_(borrow_ids), Borrow.is_effectively_expired(now))
            .update({"status": STATUS_EXPIRED, "updated_at": now}, synchronize_session=False)
        )

    @staticmethod
    def create(borrow: Borrow, commit: bool = True):
        db.session.add(borrow)
        if commit:
            db.session.commit()
        return borrow

    @staticmethod
    def commit():
        db.session.commit()
