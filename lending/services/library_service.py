from flask import current_app

from lending.models.borrow import STATUS_ACTIVE, STATUS_EXPIRED, TERMINAL_STATUSES
from lending.repositories.borrow_repo import BorrowRepo
from lending.services.borrow_service import BorrowService
from lending.services.cache_service import get_cache, library_key
from lending.utils.clock import utcnow


class LibraryService:
    @staticmethod
    def get_user_library(user_id: int) -> dict:
        """The user's course library split into active / expired / history.

        Served from the cache when fresh; expiry is judged against the clock at
        build time, so an active borrow past its expiry shows up as expired
        before the sweep has flipped its status.
        """
        cache = get_cache()
        key = library_key(user_id)
        cached = cache.get(key)
        if cached is not None:
            return cached

        now = utcnow()
        active, expired, history = [], [], []

        for borrow, course in BorrowRepo.list_course_borrows(user_id):
            item = {
                "borrowId": borrow.id,
                "course": course.summary(),
                "borrowedAt": borrow.borrow_date.isoformat(),
                "expiresAt": borrow.expiry_date.isoformat(),
                "progress": borrow.progress or 0,
                "status": borrow.status,
            }

            if borrow.status == STATUS_EXPIRED or borrow.is_effectively_expired(now):
                item["remainingSeconds"] = 0
                expired.append(item)
            elif borrow.status == STATUS_ACTIVE:
                item["remainingSeconds"] = borrow.remaining_seconds(now)
                active.append(item)
            elif borrow.status in TERMINAL_STATUSES:
                item["returnedAt"] = borrow.return_date.isoformat() if borrow.return_date else None
                history.append(item)

        result = {"active": active, "expired": expired, "history": history}
        cache.set(key, result, current_app.config["LIBRARY_CACHE_TTL"])
        return result

    @staticmethod
    def return_borrow(user_id: int, borrow_id: int):
        return BorrowService.return_borrow(user_id, borrow_id)
