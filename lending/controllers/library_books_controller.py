from flask import Blueprint, request
from flask_jwt_extended import jwt_required, get_jwt_identity

from lending.services.library_books_service import LibraryBooksService
from lending.utils.decorators import library_errors
from lending.utils.http import json_ok, int_field
from lending.validators.library_books import parse_library_books_query

library_books_bp = Blueprint("library_books", __name__, url_prefix="/library/books")


@library_books_bp.get("")
@library_errors("library_books.list")
def list_library_books():
    # public: no token required
    params = parse_library_books_query(request.args)
    return json_ok(LibraryBooksService.list_books(params), "Books retrieved successfully")


@library_books_bp.post("/<int:book_id>/borrow")
@jwt_required()
@library_errors("library_books.borrow")
def borrow_book(book_id):
    user_id = int(get_jwt_identity())
    data = request.get_json(silent=True) or {}

    b = LibraryBooksService.borrow_book(
        user_id,
        book_id,
        int_field(data, "borrowDurationDays"),
        course_id=int_field(data, "courseId"),
    )
    return json_ok({
        "borrowId": b.id,
        "bookTitle": b.resource_title,
        "expiryDate": b.expiry_date.isoformat(),
        "daysRemaining": b.meta.get("borrowDurationDays"),
    }, "Book borrowed successfully", 201)


@library_books_bp.post("/<int:book_id>/return")
@jwt_required()
@library_errors("library_books.return")
def return_book(book_id):
    user_id = int(get_jwt_identity())
    b = LibraryBooksService.return_book(user_id, book_id)
    return json_ok({
        "borrowId": b.id,
        "bookTitle": b.resource_title,
        "borrowedOn": b.borrow_date.isoformat(),
        "returnedOn": b.return_date.isoformat() if b.return_date else None,
    }, "Book returned successfully")


@library_books_bp.get("/<int:book_id>/access")
@jwt_required()
@library_errors("library_books.access")
def access_book(book_id):
    user_id = int(get_jwt_identity())
    return json_ok(LibraryBooksService.access_book(user_id, book_id))
