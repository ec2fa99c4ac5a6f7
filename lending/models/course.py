from lending.extensions import db
from lending.utils.clock import utcnow


class Course(db.Model):
    __tablename__ = "courses"

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=True)
    thumbnail = db.Column(db.String(500), nullable=True)
    level = db.Column(db.String(50), nullable=True)
    duration = db.Column(db.Integer, nullable=True)  # minutes
    tutor_name = db.Column(db.String(200), nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    modules = db.relationship("CourseModule", backref="course", cascade="all, delete-orphan")

    def summary(self):
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "thumbnail": self.thumbnail,
            "level": self.level,
            "duration": self.duration,
            "tutor": self.tutor_name,
        }


class CourseModule(db.Model):
    __tablename__ = "course_modules"

    id = db.Column(db.Integer, primary_key=True)
    course_id = db.Column(db.Integer, db.ForeignKey("courses.id"), nullable=False, index=True)
    title = db.Column(db.String(200), nullable=False)
    position = db.Column(db.Integer, nullable=False, default=0)


class RecommendedBook(db.Model):
    """A book recommended by a course, either course-wide or for one module."""

    __tablename__ = "recommended_books"

    id = db.Column(db.Integer, primary_key=True)
    course_id = db.Column(db.Integer, db.ForeignKey("courses.id"), nullable=False, index=True)
    module_id = db.Column(db.Integer, db.ForeignKey("course_modules.id"), nullable=True)
    book_id = db.Column(db.Integer, db.ForeignKey("books.id"), nullable=False, index=True)

    required = db.Column(db.Boolean, nullable=False, default=False)
    priority = db.Column(db.Integer, nullable=False, default=0)


class Enrollment(db.Model):
    __tablename__ = "enrollments"
    __table_args__ = (db.UniqueConstraint("course_id", "user_id", name="uq_enrollments_course_user"),)

    id = db.Column(db.Integer, primary_key=True)
    course_id = db.Column(db.Integer, db.ForeignKey("courses.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    enrolled_at = db.Column(db.DateTime, nullable=False, default=utcnow)
