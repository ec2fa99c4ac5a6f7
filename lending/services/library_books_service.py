import json
import math
import re

from flask import current_app
from sqlalchemy import case, func, or_, select

from lending.errors import (
    AccessDenied,
    BookNotFound,
    BookUnavailable,
    BorrowNotFound,
    CourseNotFound,
    DuplicateActiveBorrow,
    NoCopiesAvailable,
)
from lending.extensions import db
from lending.models.book import Book, BookTag
from lending.models.borrow import Borrow
from lending.repositories.book_repo import BookRepo
from lending.repositories.borrow_repo import BorrowRepo
from lending.repositories.course_repo import CourseRepo
from lending.services.borrow_service import BorrowService, validate_days
from lending.services.cache_service import get_cache
from lending.utils.clock import utcnow

MAX_SEARCH_TERMS = 10


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _contains(column, term):
    return column.ilike(f"%{_escape_like(term)}%", escape="\\")


def _parse_csv(value):
    if not value:
        return []
    return [s.strip() for s in str(value).split(",") if s.strip()]


def popular_cache_key(params: dict) -> str:
    return "library_books:" + json.dumps(params, sort_keys=True)


class LibraryBooksService:
    @staticmethod
    def list_books(params: dict) -> dict:
        """Browse / search / filter the catalog with pagination.

        ``params`` comes from ``parse_library_books_query``. Only the popular
        sort is cached: it needs the borrow-count join, the other sorts are
        plain index scans.
        """
        sort = params["sort"]
        cache = get_cache()
        cache_key = popular_cache_key(params)
        if sort == "popular":
            cached = cache.get(cache_key)
            if cached is not None:
                return cached

        filters = []

        if params.get("courseId"):
            if not CourseRepo.get(params["courseId"]):
                raise CourseNotFound()
            filters.append(Book.id.in_(sorted(CourseRepo.recommended_book_ids(params["courseId"]))))

        if params.get("category"):
            filters.append(Book.category == params["category"])

        tag_list = _parse_csv(params.get("tags"))
        if params.get("topic"):
            tag_list.append(params["topic"])
        if tag_list:
            # any of the tags
            filters.append(Book.id.in_(select(BookTag.book_id).where(BookTag.tag.in_(tag_list))))

        terms = re.split(r"\s+", params["search"])[:MAX_SEARCH_TERMS] if params.get("search") else []
        score = None
        if terms:
            filters.append(or_(*[
                or_(_contains(Book.title, t), _contains(Book.author, t), _contains(Book.description, t))
                for t in terms
            ]))
            score = sum(
                case((_contains(Book.title, t), 3), else_=0)
                + case((_contains(Book.author, t), 2), else_=0)
                + case((_contains(Book.description, t), 1), else_=0)
                for t in terms
            )
        else:
            if params.get("title"):
                filters.append(_contains(Book.title, params["title"]))
            if params.get("author"):
                filters.append(_contains(Book.author, params["author"]))

        total = db.session.query(func.count(Book.id)).filter(*filters).scalar() or 0

        page, limit = params["page"], params["limit"]
        recent_order = (Book.created_at.desc(), Book.id.asc())

        if sort == "popular":
            counts = (
                db.session.query(Borrow.resource_id.label("book_id"), func.count(Borrow.id).label("borrow_count"))
                .filter(Borrow.resource_type == "book")
                .group_by(Borrow.resource_id)
                .subquery()
            )
            borrow_count = func.coalesce(counts.c.borrow_count, 0)
            q = (
                db.session.query(Book, borrow_count)
                .outerjoin(counts, counts.c.book_id == Book.id)
                .filter(*filters)
                .order_by(borrow_count.desc(), *recent_order)
            )
        elif sort == "relevance" and score is not None:
            q = db.session.query(Book, score).filter(*filters).order_by(score.desc(), *recent_order)
        else:
            q = db.session.query(Book).filter(*filters).order_by(*recent_order)

        rows = q.offset((page - 1) * limit).limit(limit).all()

        books = []
        for row in rows:
            if sort == "popular":
                book, count = row
                data = book.to_public_dict()
                data["borrowCount"] = int(count)
            elif sort == "relevance" and score is not None:
                data = row[0].to_public_dict()
            else:
                data = row.to_public_dict()
            books.append(data)

        response = {
            "books": books,
            "currentPage": page,
            "totalPages": math.ceil(total / limit),
            "totalBooks": int(total),
        }

        if sort == "popular":
            cache.set(cache_key, response, current_app.config["LIBRARY_BOOKS_CACHE_TTL"])
        return response

    @staticmethod
    def borrow_book(user_id: int, book_id: int, duration_days: int | None = None, course_id: int | None = None):
        """Checkout of a catalog book, holding one of its copies until return."""
        if duration_days is None:
            duration_days = current_app.config["BORROW_DEFAULT_DAYS"]
        validate_days(duration_days, "borrowDurationDays")

        book = BookRepo.get(book_id)
        if not book:
            raise BookNotFound()
        if not book.is_active:
            raise BookUnavailable()
        if BorrowRepo.find_active(user_id, book_id, "book"):
            raise DuplicateActiveBorrow("You already have an active borrow for this book")

        metadata = {
            "author": book.author,
            "isbn": book.isbn,
            "borrowDurationDays": duration_days,
            "copyHeld": True,
        }
        if course_id:
            metadata["courseId"] = course_id

        try:
            if not BookRepo.take_copy(book_id):
                raise NoCopiesAvailable()
            borrow = BorrowService.checkout(
                user_id, book_id, "book", book.title, duration_days, metadata=metadata, commit=False
            )
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

        BorrowService.after_checkout(borrow)
        return borrow

    @staticmethod
    def return_book(user_id: int, book_id: int):
        borrow = BorrowRepo.find_active(user_id, book_id, "book")
        if not borrow:
            raise BorrowNotFound("No active borrow found for this book")
        return BorrowService.return_borrow(user_id, borrow.id)

    @staticmethod
    def access_book(user_id: int, book_id: int) -> dict:
        now = utcnow()
        borrow = BorrowRepo.find_active(user_id, book_id, "book")
        if not borrow or borrow.is_effectively_expired(now):
            raise AccessDenied()

        book = BookRepo.get(book_id)
        if not book:
            raise BookNotFound()

        return {
            "book": {
                "id": book.id,
                "title": book.title,
                "author": book.author,
                "description": book.description,
                "coverImage": book.cover_image,
                "link": book.link,
            },
            "access": {
                "expiryDate": borrow.expiry_date.isoformat(),
                "daysRemaining": math.ceil(borrow.remaining_seconds(now) / 86400),
                "hoursRemaining": borrow.hours_remaining(now),
            },
        }
