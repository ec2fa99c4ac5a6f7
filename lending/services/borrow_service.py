import math
from datetime import timedelta
from numbers import Number

from flask import current_app

from lending.errors import (
    BorrowNotActive,
    BorrowNotFound,
    DuplicateActiveBorrow,
    InvalidProgress,
    ValidationFailed,
)
from lending.extensions import db
from lending.models.borrow import (
    Borrow,
    RESOURCE_TYPES,
    RETURNABLE_STATUSES,
    STATUS_ACTIVE,
    STATUS_COMPLETED,
    STATUS_RETURNED,
)
from lending.models.library_event import (
    ACTION_BORROW,
    ACTION_COMPLETE,
    ACTION_PROGRESS_UPDATE,
    ACTION_RETURN,
)
from lending.repositories.book_repo import BookRepo
from lending.repositories.borrow_repo import BorrowRepo
from lending.services.analytics_service import AnalyticsService
from lending.services.cache_service import invalidate_user_library
from lending.services.notification_service import NotificationService
from lending.utils.clock import utcnow


def validate_progress(value):
    """Boundary check for client input; bools are rejected even though they are ints."""
    if isinstance(value, bool) or not isinstance(value, Number):
        raise InvalidProgress()
    if not math.isfinite(value) or value < 0 or value > 100:
        raise InvalidProgress()
    return value


def validate_days(value, field):
    """A day count in [1, BORROW_MAX_DAYS]; larger values would overflow the expiry date."""
    limit = current_app.config["BORROW_MAX_DAYS"]
    if value <= 0 or value > limit:
        raise ValidationFailed(f"{field} must be between 1 and {limit}")
    return value


class BorrowService:
    @staticmethod
    def checkout(
        user_id: int,
        resource_id: int,
        resource_type: str,
        resource_title: str,
        duration_days: int | None = None,
        metadata: dict | None = None,
        commit: bool = True,
    ) -> Borrow:
        """Creates an active borrow.

        With ``commit=False`` the caller owns the transaction and must call
        ``after_checkout`` once it has committed.
        """
        if duration_days is None:
            duration_days = current_app.config["BORROW_DEFAULT_DAYS"]

        if resource_type not in RESOURCE_TYPES:
            raise ValidationFailed(f"resourceType must be one of: {', '.join(RESOURCE_TYPES)}")
        if not resource_title or not str(resource_title).strip():
            raise ValidationFailed("resourceTitle is required")
        validate_days(duration_days, "borrowDurationDays")

        if BorrowRepo.find_active(user_id, resource_id, resource_type):
            raise DuplicateActiveBorrow()

        now = utcnow()
        borrow = Borrow(
            user_id=user_id,
            resource_id=resource_id,
            resource_type=resource_type,
            resource_title=str(resource_title).strip(),
            borrow_date=now,
            expiry_date=now + timedelta(days=duration_days),
            status=STATUS_ACTIVE,
            progress=0,
            reminder_sent=False,
            meta=dict(metadata or {}),
        )
        BorrowRepo.create(borrow, commit=commit)

        if commit:
            BorrowService.after_checkout(borrow)
        return borrow

    @staticmethod
    def after_checkout(borrow: Borrow):
        current_app.logger.info(
            f"[borrow] checkout id={borrow.id} user={borrow.user_id} "
            f"resource={borrow.resource_type}:{borrow.resource_id}"
        )
        invalidate_user_library(borrow.user_id)
        AnalyticsService.track_event(
            borrow.user_id, ACTION_BORROW, borrow.resource_id, borrow.resource_type, metadata=borrow.meta
        )
        NotificationService.notify_borrow_success(
            borrow.user_id, borrow.resource_id, borrow.resource_title, borrow.expiry_date
        )

    @staticmethod
    def return_borrow(user_id: int, borrow_id: int) -> Borrow:
        now = utcnow()
        changed = BorrowRepo.transition(
            borrow_id,
            user_id,
            RETURNABLE_STATUSES,
            {"status": STATUS_RETURNED, "return_date": now, "updated_at": now},
        )
        if not changed:
            db.session.rollback()
            if not BorrowRepo.get_owned(borrow_id, user_id):
                raise BorrowNotFound()
            raise BorrowNotActive()

        borrow = db.session.get(Borrow, borrow_id, populate_existing=True)
        BorrowService._release_copy(borrow)
        db.session.commit()

        current_app.logger.info(f"[borrow] returned id={borrow.id} user={user_id}")
        invalidate_user_library(user_id)
        AnalyticsService.track_event(
            user_id, ACTION_RETURN, borrow.resource_id, borrow.resource_type, metadata=borrow.meta
        )
        NotificationService.notify_returned(user_id, borrow.resource_id, borrow.resource_title)
        return borrow

    @staticmethod
    def renew(user_id: int, borrow_id: int, extension_days: int | None = None) -> Borrow:
        if extension_days is None:
            extension_days = current_app.config["BORROW_RENEW_DAYS"]
        validate_days(extension_days, "extensionDays")

        borrow = BorrowRepo.get_owned(borrow_id, user_id)
        if not borrow:
            raise BorrowNotFound()
        if borrow.status != STATUS_ACTIVE:
            raise BorrowNotActive()

        # extend from the current expiry so remaining time is kept
        borrow.expiry_date = borrow.expiry_date + timedelta(days=extension_days)
        borrow.reminder_sent = False
        BorrowRepo.commit()

        current_app.logger.info(
            f"[borrow] renewed id={borrow.id} user={user_id} expiry={borrow.expiry_date.isoformat()}"
        )
        invalidate_user_library(user_id)
        NotificationService.notify_renewed(user_id, borrow.resource_id, borrow.resource_title, borrow.expiry_date)
        return borrow

    @staticmethod
    def update_progress(borrow_id: int, progress, user_id: int | None = None) -> Borrow:
        borrow = BorrowRepo.get_owned(borrow_id, user_id) if user_id is not None else BorrowRepo.get(borrow_id)
        if not borrow:
            raise BorrowNotFound()
        if borrow.status != STATUS_ACTIVE:
            raise BorrowNotActive()

        borrow.progress = int(min(100, max(0, progress)))
        completed = borrow.progress == 100
        if completed:
            borrow.status = STATUS_COMPLETED
            borrow.return_date = utcnow()
            BorrowService._release_copy(borrow)
        BorrowRepo.commit()

        invalidate_user_library(borrow.user_id)
        AnalyticsService.track_event(
            borrow.user_id,
            ACTION_PROGRESS_UPDATE,
            borrow.resource_id,
            borrow.resource_type,
            value=borrow.progress,
            metadata=borrow.meta,
        )
        if completed:
            current_app.logger.info(f"[borrow] completed id={borrow.id} user={borrow.user_id}")
            AnalyticsService.track_event(
                borrow.user_id, ACTION_COMPLETE, borrow.resource_id, borrow.resource_type, value=100,
                metadata=borrow.meta,
            )
        return borrow

    @staticmethod
    def list_user_borrows(user_id: int, status: str | None = "active", page: int = 1, limit: int = 10):
        if status == "all":
            status = None
        return BorrowRepo.list_by_user(user_id, status=status, page=page, limit=limit)

    @staticmethod
    def stats(user_id: int) -> dict:
        return BorrowRepo.count_by_status(user_id)

    @staticmethod
    def _release_copy(borrow: Borrow):
        if borrow.resource_type == "book" and (borrow.meta or {}).get("copyHeld"):
            BookRepo.release_copy(borrow.resource_id)
