from datetime import datetime, timedelta

from flask import current_app
from sqlalchemy import and_, func, or_
from sqlalchemy.exc import IntegrityError

from lending.errors import InvalidPeriod
from lending.extensions import db
from lending.models.book import Book
from lending.models.course import Course
from lending.models.library_analytics import LibraryAnalytics, PERIODS
from lending.models.library_event import (
    LibraryEvent,
    ACTION_BORROW,
    ACTION_COMPLETE,
    ACTION_PROGRESS_UPDATE,
)
from lending.repositories.course_repo import CourseRepo
from lending.utils.clock import utcnow

TOP_BOOKS_LIMIT = 10


def bucket_bounds(period: str, reference: datetime) -> tuple[datetime, datetime]:
    """Half-open [start, end) window of the bucket containing ``reference``."""
    midnight = reference.replace(hour=0, minute=0, second=0, microsecond=0)
    if period == "daily":
        return midnight, midnight + timedelta(days=1)
    if period == "weekly":
        start = midnight - timedelta(days=midnight.weekday())  # ISO week, Monday
        return start, start + timedelta(days=7)
    if period == "monthly":
        start = midnight.replace(day=1)
        if start.month == 12:
            return start, start.replace(year=start.year + 1, month=1)
        return start, start.replace(month=start.month + 1)
    raise InvalidPeriod()


class AnalyticsService:
    @staticmethod
    def track_event(user_id, action, resource_id, resource_type="book", value=None, metadata=None):
        """Best effort: a tracking failure is logged and never fails the caller."""
        metadata = dict(metadata or {})
        try:
            course_id = metadata.get("courseId")
            if resource_type == "book" and not course_id:
                course_id = AnalyticsService.find_linked_course(user_id, resource_id)
                if course_id:
                    metadata["courseId"] = course_id

            event = LibraryEvent(
                user_id=user_id,
                action=action,
                resource_id=resource_id,
                resource_type=resource_type,
                value=value,
                course_id=course_id,
                meta=metadata,
            )
            db.session.add(event)
            db.session.commit()
            return event
        except Exception as e:
            db.session.rollback()
            current_app.logger.warning(
                f"[analytics] event tracking failed user={user_id} action={action} resource={resource_id}: {e}"
            )
            return None

    @staticmethod
    def find_linked_course(user_id, book_id):
        """First enrolled course recommending the book; no ordering among several matches."""
        course_ids = CourseRepo.course_ids_recommending(book_id)
        if not course_ids:
            return None
        enrollment = CourseRepo.find_enrollment(user_id, course_ids)
        return enrollment.course_id if enrollment else None

    @staticmethod
    def aggregate_stats(period: str = "daily", reference: datetime | None = None) -> LibraryAnalytics:
        start, end = bucket_bounds(period, reference or utcnow())
        metrics = AnalyticsService._compute_metrics(start, end)

        try:
            row = AnalyticsService._upsert(period, start, metrics)
        except IntegrityError:
            # another writer created the bucket between our lookup and insert
            db.session.rollback()
            row = AnalyticsService._upsert(period, start, metrics)

        current_app.logger.info(
            f"[analytics] {period} bucket={start.isoformat()} borrows={metrics['totalBorrows']} "
            f"readers={metrics['activeReaders']}"
        )
        return row

    @staticmethod
    def latest_stats(period: str = "monthly") -> LibraryAnalytics:
        if period not in PERIODS:
            raise InvalidPeriod()
        row = (
            LibraryAnalytics.query.filter_by(period=period)
            .order_by(LibraryAnalytics.bucket_start.desc())
            .first()
        )
        if row is None:
            row = AnalyticsService.aggregate_stats(period)
        return row

    @staticmethod
    def _upsert(period, start, metrics) -> LibraryAnalytics:
        row = LibraryAnalytics.query.filter_by(period=period, bucket_start=start).first()
        if not row:
            row = LibraryAnalytics(period=period, bucket_start=start, metrics=metrics)
            db.session.add(row)
        else:
            row.metrics = metrics
            row.updated_at = utcnow()
        db.session.commit()
        return row

    @staticmethod
    def _compute_metrics(start: datetime, end: datetime) -> dict:
        in_window = and_(LibraryEvent.created_at >= start, LibraryEvent.created_at < end)
        is_completion = or_(
            LibraryEvent.action == ACTION_COMPLETE,
            and_(LibraryEvent.action == ACTION_PROGRESS_UPDATE, LibraryEvent.value == 100),
        )

        total_borrows = (
            LibraryEvent.query.filter(in_window, LibraryEvent.action == ACTION_BORROW).count()
        )

        active_readers = (
            db.session.query(func.count(func.distinct(LibraryEvent.user_id))).filter(in_window).scalar()
        ) or 0

        most_borrowed = (
            db.session.query(LibraryEvent.resource_id, Book.title, func.count(LibraryEvent.id).label("count"))
            .join(Book, Book.id == LibraryEvent.resource_id)
            .filter(in_window, LibraryEvent.action == ACTION_BORROW, LibraryEvent.resource_type == "book")
            .group_by(LibraryEvent.resource_id, Book.title)
            .order_by(func.count(LibraryEvent.id).desc(), LibraryEvent.resource_id.asc())
            .limit(TOP_BOOKS_LIMIT)
            .all()
        )

        # every COMPLETE counts, plus PROGRESS_UPDATE(100) events without a matching COMPLETE
        completion_rows = (
            db.session.query(
                LibraryEvent.user_id,
                LibraryEvent.resource_id,
                LibraryEvent.course_id,
                LibraryEvent.action,
                func.count(LibraryEvent.id),
            )
            .filter(in_window, is_completion)
            .group_by(LibraryEvent.user_id, LibraryEvent.resource_id, LibraryEvent.course_id, LibraryEvent.action)
            .all()
        )
        per_resource = {}
        for u, r, c, action, count in completion_rows:
            counts = per_resource.setdefault((u, r, c), {ACTION_COMPLETE: 0, ACTION_PROGRESS_UPDATE: 0})
            counts[action] += int(count)
        completions = {key: max(counts.values()) for key, counts in per_resource.items()}
        completed_count = sum(completions.values())

        average_progress = (
            db.session.query(func.avg(LibraryEvent.value))
            .filter(in_window, LibraryEvent.action == ACTION_PROGRESS_UPDATE)
            .scalar()
        )

        completed_by_course = {}
        for (_u, _r, c), n in completions.items():
            if c is not None:
                completed_by_course[c] = completed_by_course.get(c, 0) + n

        engagement = (
            db.session.query(LibraryEvent.course_id, Course.title, func.count(LibraryEvent.id).label("borrow_count"))
            .join(Course, Course.id == LibraryEvent.course_id)
            .filter(in_window, LibraryEvent.action == ACTION_BORROW, LibraryEvent.course_id.isnot(None))
            .group_by(LibraryEvent.course_id, Course.title)
            .order_by(func.count(LibraryEvent.id).desc(), LibraryEvent.course_id.asc())
            .all()
        )

        return {
            "totalBorrows": int(total_borrows),
            "activeReaders": int(active_readers),
            "mostBorrowedBooks": [
                {"bookId": book_id, "title": title, "count": int(count)}
                for book_id, title, count in most_borrowed
            ],
            "completionRates": {
                "completedCount": completed_count,
                "averageProgress": round(float(average_progress), 2) if average_progress is not None else 0,
            },
            "courseLinkedEngagement": [
                {
                    "courseId": course_id,
                    "courseTitle": title,
                    "borrowCount": int(count),
                    "completionRate": round(
                        min(100.0, completed_by_course.get(course_id, 0) / count * 100), 2
                    ),
                }
                for course_id, title, count in engagement
            ],
        }
