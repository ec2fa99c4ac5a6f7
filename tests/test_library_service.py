from datetime import timedelta

from lending.services.borrow_service import BorrowService
from lending.services.cache_service import get_cache, library_key
from lending.services.library_service import LibraryService


def test_dashboard_buckets(user, make_course, make_borrow):
    running = make_course("Running")
    lapsed = make_course("Lapsed")
    swept = make_course("Swept")
    finished = make_course("Finished")

    b_active = make_borrow(user, running.id, expires_in=timedelta(days=2))
    b_lapsed = make_borrow(user, lapsed.id, expires_in=timedelta(seconds=-1))
    b_swept = make_borrow(user, swept.id, status="expired", expires_in=timedelta(days=-1))
    b_done = make_borrow(user, finished.id, status="returned")

    lib = LibraryService.get_user_library(user.id)

    assert [i["borrowId"] for i in lib["active"]] == [b_active.id]
    assert lib["active"][0]["remainingSeconds"] > 0
    assert lib["active"][0]["course"]["title"] == "Running"

    expired = {i["borrowId"]: i for i in lib["expired"]}
    assert set(expired) == {b_lapsed.id, b_swept.id}
    assert all(i["remainingSeconds"] == 0 for i in expired.values())

    assert [i["borrowId"] for i in lib["history"]] == [b_done.id]
    assert "returnedAt" in lib["history"][0]


def test_dashboard_skips_deleted_courses_and_non_course_borrows(user, make_course, make_borrow):
    course = make_course()
    make_borrow(user, course.id)
    make_borrow(user, 99999)
    make_borrow(user, course.id, resource_type="book")

    lib = LibraryService.get_user_library(user.id)
    assert len(lib["active"]) == 1
    assert lib["expired"] == [] and lib["history"] == []


def test_dashboard_is_cached_until_a_mutation(user, make_course, make_borrow):
    course = make_course()
    first = LibraryService.get_user_library(user.id)
    assert first["active"] == []

    # direct insert bypasses invalidation, so the cached payload is served
    make_borrow(user, course.id)
    assert LibraryService.get_user_library(user.id) == first
    assert get_cache().get(library_key(user.id)) is not None

    b = BorrowService.checkout(user.id, course.id + 1000, "material", "Notes")
    assert get_cache().get(library_key(user.id)) is None
    fresh = LibraryService.get_user_library(user.id)
    assert len(fresh["active"]) == 1

    LibraryService.return_borrow(user.id, b.id)
    assert get_cache().get(library_key(user.id)) is None
