from datetime import timedelta

import pytest

from lending.errors import (
    BorrowNotActive,
    BorrowNotFound,
    DuplicateActiveBorrow,
    InvalidProgress,
    ValidationFailed,
)
from lending.models.borrow import Borrow
from lending.models.library_event import LibraryEvent
from lending.models.notification import Notification
from lending.services.borrow_service import BorrowService, validate_progress
from lending.utils.clock import utcnow


def test_checkout_creates_active_borrow_and_blocks_duplicate(user):
    before = utcnow()
    b = BorrowService.checkout(user.id, 42, "book", "Title", 14)

    assert b.status == "active"
    assert b.progress == 0
    assert b.reminder_sent is False
    expected = before + timedelta(days=14)
    assert abs((b.expiry_date - expected).total_seconds()) < 5

    with pytest.raises(DuplicateActiveBorrow):
        BorrowService.checkout(user.id, 42, "book", "Title", 14)
    assert Borrow.query.filter_by(user_id=user.id, resource_id=42, status="active").count() == 1


def test_checkout_same_id_different_type_is_allowed(user):
    BorrowService.checkout(user.id, 7, "book", "A book")
    b = BorrowService.checkout(user.id, 7, "course", "A course")
    assert b.resource_type == "course"


def test_checkout_uses_default_duration(app, user):
    b = BorrowService.checkout(user.id, 1, "material", "Slides")
    days = (b.expiry_date - b.borrow_date).days
    assert days == app.config["BORROW_DEFAULT_DAYS"]


@pytest.mark.parametrize("kwargs", [
    {"resource_type": "vinyl"},
    {"resource_title": "   "},
    {"duration_days": 0},
])
def test_checkout_rejects_invalid_input(user, kwargs):
    args = {"resource_type": "book", "resource_title": "T", "duration_days": 3}
    args.update(kwargs)
    with pytest.raises(ValidationFailed):
        BorrowService.checkout(user.id, 1, args["resource_type"], args["resource_title"], args["duration_days"])


def test_checkout_side_effects(user):
    b = BorrowService.checkout(user.id, 5, "course", "DeFi 101")

    event = LibraryEvent.query.filter_by(user_id=user.id, action="BORROW").one()
    assert event.resource_id == 5
    note = Notification.query.filter_by(user_id=user.id).one()
    assert note.meta["eventType"] == "borrow_success"
    assert note.meta["resourceId"] == b.resource_id


def test_return_sets_terminal_state(user, make_borrow):
    b = make_borrow(user, 10)
    returned = BorrowService.return_borrow(user.id, b.id)
    assert returned.status == "returned"
    assert returned.return_date is not None

    with pytest.raises(BorrowNotActive):
        BorrowService.return_borrow(user.id, b.id)


def test_return_of_expired_borrow_is_allowed(user, make_borrow):
    b = make_borrow(user, 10, status="expired", expires_in=timedelta(hours=-2))
    assert BorrowService.return_borrow(user.id, b.id).status == "returned"


def test_return_someone_elses_borrow_is_not_found(user, make_user, make_borrow):
    other = make_user()
    b = make_borrow(other, 10)
    with pytest.raises(BorrowNotFound):
        BorrowService.return_borrow(user.id, b.id)
    with pytest.raises(BorrowNotFound):
        BorrowService.return_borrow(user.id, 9999)


def test_renew_extends_from_current_expiry(user, make_borrow):
    b = make_borrow(user, 3, expires_in=timedelta(hours=5), reminder_sent=True)
    old_expiry = b.expiry_date

    renewed = BorrowService.renew(user.id, b.id, 7)

    assert renewed.expiry_date == old_expiry + timedelta(days=7)
    assert renewed.reminder_sent is False


def test_renew_requires_active(user, make_borrow):
    b = make_borrow(user, 3, status="returned")
    with pytest.raises(BorrowNotActive):
        BorrowService.renew(user.id, b.id)
    with pytest.raises(ValidationFailed):
        BorrowService.renew(user.id, b.id, 0)


@pytest.mark.parametrize("value, expected", [(0, 0), (42.7, 42), (-5, 0), (99, 99)])
def test_update_progress_clamps(user, make_borrow, value, expected):
    b = make_borrow(user, 3)
    updated = BorrowService.update_progress(b.id, value)
    assert updated.progress == expected
    assert updated.status == "active"


@pytest.mark.parametrize("value", [100, 150])
def test_update_progress_to_full_completes(user, make_borrow, value):
    b = make_borrow(user, 3)
    updated = BorrowService.update_progress(b.id, value, user_id=user.id)

    assert updated.progress == 100
    assert updated.status == "completed"
    assert updated.return_date is not None
    actions = {e.action for e in LibraryEvent.query.filter_by(user_id=user.id)}
    assert actions == {"PROGRESS_UPDATE", "COMPLETE"}


def test_update_progress_rejects_inactive_and_foreign(user, make_user, make_borrow):
    done = make_borrow(user, 3, status="completed", progress=100)
    with pytest.raises(BorrowNotActive):
        BorrowService.update_progress(done.id, 50)

    other = make_borrow(make_user(), 4)
    with pytest.raises(BorrowNotFound):
        BorrowService.update_progress(other.id, 50, user_id=user.id)


@pytest.mark.parametrize("value", [-1, 101, "50", None, True])
def test_validate_progress_rejects(value):
    with pytest.raises(InvalidProgress):
        validate_progress(value)


def test_validate_progress_accepts_bounds():
    assert validate_progress(0) == 0
    assert validate_progress(100) == 100
    assert validate_progress(55.5) == 55.5


def test_list_and_stats(user, make_borrow):
    make_borrow(user, 1)
    make_borrow(user, 2)
    make_borrow(user, 3, status="returned")

    items, total = BorrowService.list_user_borrows(user.id)
    assert total == 2
    assert all(b.status == "active" for b in items)

    items, total = BorrowService.list_user_borrows(user.id, "all", page=2, limit=2)
    assert total == 3
    assert len(items) == 1

    assert BorrowService.stats(user.id) == {
        "active": 2, "returned": 1, "expired": 0, "overdue": 0, "completed": 0,
    }


def test_borrow_predicates(user, make_borrow):
    now = utcnow()
    soon = make_borrow(user, 1, expires_in=timedelta(hours=12))
    lapsed = make_borrow(user, 2, expires_in=timedelta(seconds=-1))

    assert soon.needs_reminder(now) is True
    assert soon.is_effectively_expired(now) is False
    assert lapsed.is_effectively_expired(now) is True
    assert lapsed.remaining_seconds(now) == 0

    ids = {b.id for b in Borrow.query.filter(Borrow.is_effectively_expired(now))}
    assert ids == {lapsed.id}


def test_day_counts_are_capped(app, user, make_borrow):
    limit = app.config["BORROW_MAX_DAYS"]
    assert BorrowService.checkout(user.id, 1, "course", "Long", limit).status == "active"
    with pytest.raises(ValidationFailed):
        BorrowService.checkout(user.id, 2, "course", "Too long", limit + 1)

    b = make_borrow(user, 3)
    with pytest.raises(ValidationFailed):
        BorrowService.renew(user.id, b.id, 10**7)


@pytest.mark.parametrize("value", [float("nan"), float("inf"), float("-inf")])
def test_validate_progress_rejects_non_finite(value):
    with pytest.raises(InvalidProgress):
        validate_progress(value)
