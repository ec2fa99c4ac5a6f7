from sqlalchemy import case

from lending.extensions import db
from lending.models.book import Book


class BookRepo:
    @staticmethod
    def get(book_id: int):
        return db.session.get(Book, book_id)

    @staticmethod
    def take_copy(book_id: int) -> bool:
        """Atomically reserve one copy; False when none is left."""
        changed = (
            Book.query.filter(Book.id == book_id, Book.available_copies > 0)
            .update({"available_copies": Book.available_copies - 1}, synchronize_session=False)
        )
        return changed == 1

    @staticmethod
    def release_copy(book_id: int):
        # min(total, available + 1)
        Book.query.filter(Book.id == book_id).update(
            {
                "available_copies": case(
                    (Book.available_copies + 1 > Book.total_copies, Book.total_copies),
                    else_=Book.available_copies + 1,
                )
            },
            synchronize_session=False,
        )
