from flask import Blueprint, request
from flask_jwt_extended import jwt_required, get_jwt_identity

from lending.errors import InvalidProgress
from lending.services.borrow_service import BorrowService, validate_progress
from lending.services.library_service import LibraryService
from lending.utils.decorators import library_errors
from lending.utils.http import json_ok

library_bp = Blueprint("library", __name__, url_prefix="/library")


@library_bp.get("")
@jwt_required()
@library_errors("library.get")
def get_user_library():
    user_id = int(get_jwt_identity())
    return json_ok(LibraryService.get_user_library(user_id), "Library retrieved successfully")


@library_bp.post("/return/<int:borrow_id>")
@jwt_required()
@library_errors("library.return")
def return_borrow(borrow_id):
    user_id = int(get_jwt_identity())
    b = LibraryService.return_borrow(user_id, borrow_id)
    return json_ok({
        "borrowId": b.id,
        "status": b.status,
        "returnedAt": b.return_date.isoformat() if b.return_date else None,
    }, "Course returned successfully")


@library_bp.patch("/progress/<int:borrow_id>")
@jwt_required()
@library_errors("library.progress")
def update_progress(borrow_id):
    user_id = int(get_jwt_identity())
    data = request.get_json(silent=True) or {}
    if "progress" not in data:
        raise InvalidProgress()

    b = BorrowService.update_progress(borrow_id, validate_progress(data["progress"]), user_id=user_id)
    return json_ok({
        "borrowId": b.id,
        "progress": b.progress,
        "status": b.status,
    }, "Progress updated successfully")
