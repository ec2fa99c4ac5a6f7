import time
from datetime import timedelta

import pytest

from lending.errors import (
    AccessDenied,
    BookNotFound,
    BookUnavailable,
    BorrowNotFound,
    CourseNotFound,
    DuplicateActiveBorrow,
    NoCopiesAvailable,
    ValidationFailed,
)
from lending.extensions import db
from lending.models.book import Book
from lending.services.borrow_service import BorrowService
from lending.services.library_books_service import LibraryBooksService
from lending.utils.clock import utcnow
from lending.validators.library_books import parse_library_books_query


def _params(**kwargs):
    return parse_library_books_query({k: str(v) for k, v in kwargs.items()})


def _ids(result):
    return [b["id"] for b in result["books"]]


def test_query_defaults():
    params = parse_library_books_query({})
    assert params["page"] == 1
    assert params["limit"] == 10
    assert params["sort"] == "recent"
    assert parse_library_books_query({"search": "defi"})["sort"] == "relevance"


@pytest.mark.parametrize("args, field", [
    ({"page": "0"}, "page"),
    ({"limit": "101"}, "limit"),
    ({"limit": "abc"}, "limit"),
    ({"courseId": "0"}, "courseId"),
    ({"sort": "oldest"}, "sort"),
])
def test_query_validation(args, field):
    with pytest.raises(ValidationFailed) as exc:
        parse_library_books_query(args)
    assert [e["field"] for e in exc.value.errors] == [field]


def test_course_scope_intersects_category(make_book, make_course):
    defi_course = make_book("Uniswap Deep Dive", category="defi")
    defi_module = make_book("Lending Protocols", category="defi")
    other_in_course = make_book("Bitcoin History", category="history")
    make_book("Stablecoins", category="defi")

    course = make_course(course_books=[defi_course, other_in_course], module_books=[defi_module])

    result = LibraryBooksService.list_books(_params(courseId=course.id, category="defi"))
    assert sorted(_ids(result)) == sorted([defi_course.id, defi_module.id])
    assert result["totalBooks"] == 2


def test_course_scope_unknown_course(app):
    with pytest.raises(CourseNotFound):
        LibraryBooksService.list_books(_params(courseId=12345))


def test_tags_are_ored_with_topic(make_book):
    a = make_book("A", tags=["nft"])
    b = make_book("B", tags=["dao"])
    make_book("C", tags=["l2"])

    result = LibraryBooksService.list_books(_params(tags="nft", topic="dao"))
    assert sorted(_ids(result)) == sorted([a.id, b.id])


def test_title_and_author_filters_without_search(make_book):
    hit = make_book("Mastering Ethereum", author="Antonopoulos")
    make_book("Mastering Bitcoin", author="Someone")

    result = LibraryBooksService.list_books(_params(title="master", author="ANTONO"))
    assert _ids(result) == [hit.id]


def test_relevance_ranks_title_over_author_over_description(make_book):
    in_desc = make_book("Zeta", author="Nobody", description="all about rollups")
    in_title = make_book("Rollups Explained", author="Nobody")
    in_author = make_book("Scaling", author="Rollups Team")
    make_book("Unrelated", author="Nobody")

    result = LibraryBooksService.list_books(_params(search="rollups"))
    assert _ids(result) == [in_title.id, in_author.id, in_desc.id]


def test_recent_sort_and_pagination(make_book):
    now = utcnow()
    old = make_book("Old", created_at=now - timedelta(days=3))
    mid = make_book("Mid", created_at=now - timedelta(days=2))
    new = make_book("New", created_at=now - timedelta(days=1))

    page1 = LibraryBooksService.list_books(_params(limit=2))
    page2 = LibraryBooksService.list_books(_params(limit=2, page=2))

    assert _ids(page1) == [new.id, mid.id]
    assert _ids(page2) == [old.id]
    assert page1["totalPages"] == 2
    assert page1["totalBooks"] == 3
    assert page2["currentPage"] == 2


def test_popular_sort_counts_borrows(user, make_user, make_book, make_borrow):
    quiet = make_book("Quiet")
    busy = make_book("Busy")
    make_borrow(user, busy.id, resource_type="book")
    make_borrow(make_user(), busy.id, resource_type="book", status="returned")
    make_borrow(user, quiet.id, resource_type="course")

    result = LibraryBooksService.list_books(_params(sort="popular"))
    assert _ids(result) == [busy.id, quiet.id]
    assert [b["borrowCount"] for b in result["books"]] == [2, 0]


def test_popular_results_are_cached_until_ttl(app, user, make_book, make_borrow):
    app.config["LIBRARY_BOOKS_CACHE_TTL"] = 1
    a = make_book("A")
    b = make_book("B", created_at=utcnow() - timedelta(days=1))
    make_borrow(user, a.id, resource_type="book")

    first = LibraryBooksService.list_books(_params(sort="popular"))
    assert _ids(first) == [a.id, b.id]

    make_borrow(user, b.id, resource_type="book")
    make_borrow(user, b.id, resource_type="book", status="returned")
    assert LibraryBooksService.list_books(_params(sort="popular")) == first

    time.sleep(1.1)
    refreshed = LibraryBooksService.list_books(_params(sort="popular"))
    assert _ids(refreshed) == [b.id, a.id]


def test_borrow_book_holds_a_copy_until_return(user, make_book):
    book = make_book(copies=1)

    borrow = LibraryBooksService.borrow_book(user.id, book.id, 7)
    assert borrow.resource_type == "book"
    assert borrow.meta["copyHeld"] is True
    assert borrow.meta["borrowDurationDays"] == 7
    assert db.session.get(Book, book.id, populate_existing=True).available_copies == 0

    with pytest.raises(DuplicateActiveBorrow):
        LibraryBooksService.borrow_book(user.id, book.id)

    returned = LibraryBooksService.return_book(user.id, book.id)
    assert returned.status == "returned"
    assert db.session.get(Book, book.id, populate_existing=True).available_copies == 1

    with pytest.raises(BorrowNotFound):
        LibraryBooksService.return_book(user.id, book.id)


def test_borrow_book_failures(user, make_user, make_book):
    with pytest.raises(BookNotFound):
        LibraryBooksService.borrow_book(user.id, 4040)

    hidden = make_book("Hidden", is_active=False)
    with pytest.raises(BookUnavailable):
        LibraryBooksService.borrow_book(user.id, hidden.id)

    single = make_book("Single", copies=1)
    LibraryBooksService.borrow_book(make_user().id, single.id)
    with pytest.raises(NoCopiesAvailable):
        LibraryBooksService.borrow_book(user.id, single.id)
    assert db.session.get(Book, single.id, populate_existing=True).available_copies == 0


def test_completing_a_book_releases_its_copy(user, make_book):
    book = make_book(copies=1)
    borrow = LibraryBooksService.borrow_book(user.id, book.id)
    BorrowService.update_progress(borrow.id, 100, user_id=user.id)
    assert db.session.get(Book, book.id, populate_existing=True).available_copies == 1


def test_access_requires_unexpired_active_borrow(user, make_book, make_borrow):
    book = make_book(copies=3)
    with pytest.raises(AccessDenied):
        LibraryBooksService.access_book(user.id, book.id)

    LibraryBooksService.borrow_book(user.id, book.id, 3)
    info = LibraryBooksService.access_book(user.id, book.id)
    assert info["book"]["id"] == book.id
    assert info["access"]["daysRemaining"] == 3
    assert info["access"]["hoursRemaining"] == 72

    other = make_book("Lapsed")
    make_borrow(user, other.id, resource_type="book", expires_in=timedelta(seconds=-1))
    with pytest.raises(AccessDenied):
        LibraryBooksService.access_book(user.id, other.id)
