"""Client-facing error kinds raised by the lending services.

Every error carries a stable ``code`` that API clients can branch on and the
HTTP status the controllers answer with.
"""


class LibraryError(ValueError):
    code = "LIBRARY_ERROR"
    status_code = 400
    default_message = "Request could not be processed"

    def __init__(self, message=None, errors=None):
        super().__init__(message or self.default_message)
        self.errors = errors


class ValidationFailed(LibraryError):
    code = "VALIDATION_FAILED"
    default_message = "Validation failed"


class DuplicateActiveBorrow(LibraryError):
    code = "DUPLICATE_ACTIVE_BORROW"
    default_message = "You already have an active borrow for this resource"


class BorrowNotFound(LibraryError):
    code = "BORROW_NOT_FOUND"
    status_code = 404
    default_message = "Borrow not found"


class BorrowNotActive(LibraryError):
    code = "BORROW_NOT_ACTIVE"
    default_message = "Borrow is not active"


class InvalidProgress(LibraryError):
    code = "INVALID_PROGRESS"
    default_message = "Progress must be between 0 and 100"


class CourseNotFound(LibraryError):
    code = "COURSE_NOT_FOUND"
    status_code = 404
    default_message = "Course not found"


class BookNotFound(LibraryError):
    code = "BOOK_NOT_FOUND"
    status_code = 404
    default_message = "Book not found"


class BookUnavailable(LibraryError):
    code = "BOOK_UNAVAILABLE"
    default_message = "This book is currently unavailable"


class NoCopiesAvailable(LibraryError):
    code = "NO_COPIES_AVAILABLE"
    default_message = "No copies available at the moment. Please try again later."


class AccessDenied(LibraryError):
    code = "ACCESS_DENIED"
    status_code = 403
    default_message = "You don't have active access to this book. Please borrow it first."


class InvalidPeriod(LibraryError):
    code = "INVALID_PERIOD"
    default_message = "period must be one of: daily, weekly, monthly"
