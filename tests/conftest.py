from datetime import timedelta

import pytest
from flask_jwt_extended import create_access_token

from lending import create_app
from lending.config import Config
from lending.extensions import db
from lending.models.book import Book, BookTag
from lending.models.borrow import Borrow
from lending.models.course import Course, CourseModule, Enrollment, RecommendedBook
from lending.models.user import User
from lending.utils.clock import utcnow


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    SQLALCHEMY_ENGINE_OPTIONS = {}
    JWT_SECRET_KEY = "test-secret-key-with-enough-length-for-hs256"
    CACHE_TYPE = "SimpleCache"
    MAIL_SUPPRESS_SEND = True
    SCHEDULER_ENABLED = False
    NOTIFICATIONS_ASYNC = False


@pytest.fixture
def app():
    app = create_app(TestConfig)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_user(app):
    counter = {"n": 0}

    def _make(role="user", email=True):
        counter["n"] += 1
        n = counter["n"]
        u = User(username=f"reader{n}", email=f"reader{n}@example.com" if email else None, role=role)
        db.session.add(u)
        db.session.commit()
        return u

    return _make


@pytest.fixture
def user(make_user):
    return make_user()


@pytest.fixture
def admin(make_user):
    return make_user(role="admin")


@pytest.fixture
def headers_for(app):
    def _headers(u):
        token = create_access_token(identity=str(u.id), additional_claims={"role": u.role})
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture
def make_book(app):
    def _make(title="Mastering Bitcoin", author="Andreas", category=None, tags=(), copies=2,
              is_active=True, description=None, created_at=None):
        b = Book(
            title=title,
            author=author,
            category=category,
            description=description,
            total_copies=copies,
            available_copies=copies,
            is_active=is_active,
            created_at=created_at or utcnow(),
        )
        b.tags = [BookTag(tag=t) for t in tags]
        db.session.add(b)
        db.session.commit()
        return b

    return _make


@pytest.fixture
def make_course(app):
    def _make(title="Intro to DeFi", course_books=(), module_books=()):
        c = Course(title=title, description="A course", level="beginner", tutor_name="Ada")
        db.session.add(c)
        db.session.flush()
        for book in course_books:
            db.session.add(RecommendedBook(course_id=c.id, book_id=book.id))
        if module_books:
            m = CourseModule(course_id=c.id, title="Module 1", position=1)
            db.session.add(m)
            db.session.flush()
            for book in module_books:
                db.session.add(RecommendedBook(course_id=c.id, module_id=m.id, book_id=book.id))
        db.session.commit()
        return c

    return _make


@pytest.fixture
def enroll(app):
    def _enroll(u, course):
        db.session.add(Enrollment(user_id=u.id, course_id=course.id))
        db.session.commit()

    return _enroll


@pytest.fixture
def make_borrow(app):
    """Inserts a borrow directly, bypassing lifecycle side effects."""
    def _make(u, resource_id, resource_type="course", expires_in=timedelta(days=7), status="active",
              title="Resource", reminder_sent=False, progress=0, borrowed_ago=timedelta(days=1)):
        now = utcnow()
        b = Borrow(
            user_id=u.id,
            resource_id=resource_id,
            resource_type=resource_type,
            resource_title=title,
            borrow_date=now - borrowed_ago,
            expiry_date=now + expires_in,
            status=status,
            progress=progress,
            reminder_sent=reminder_sent,
            meta={},
        )
        db.session.add(b)
        db.session.commit()
        return b

    return _make
