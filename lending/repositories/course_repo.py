from lending.extensions import db
from lending.models.course import Course, Enrollment, RecommendedBook


class CourseRepo:
    @staticmethod
    def get(course_id: int):
        return db.session.get(Course, course_id)

    @staticmethod
    def recommended_book_ids(course_id: int) -> set:
        """Union of course-level and per-module recommendations."""
        rows = (
            db.session.query(RecommendedBook.book_id)
            .filter(RecommendedBook.course_id == course_id)
            .all()
        )
        return {book_id for (book_id,) in rows}

    @staticmethod
    def course_ids_recommending(book_id: int) -> list:
        rows = (
            db.session.query(RecommendedBook.course_id)
            .filter(RecommendedBook.book_id == book_id)
            .distinct()
            .all()
        )
        return [course_id for (course_id,) in rows]

    @staticmethod
    def find_enrollment(user_id: int, course_ids):
        if not course_ids:
            return None
        return Enrollment.query.filter(
            Enrollment.user_id == user_id,
            Enrollment.course_id.in_(course_ids),
        ).first()
