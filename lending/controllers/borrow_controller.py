import math

from flask import Blueprint, request
from flask_jwt_extended import jwt_required, get_jwt_identity

from lending.errors import ValidationFailed
from lending.services.borrow_service import BorrowService
from lending.utils.decorators import library_errors
from lending.utils.http import json_ok, int_field

borrow_bp = Blueprint("borrows", __name__)


@borrow_bp.post("")
@jwt_required()
@library_errors("borrow.create")
def create_borrow():
    user_id = int(get_jwt_identity())
    data = request.get_json(silent=True) or {}

    metadata = data.get("metadata") or {}
    if not isinstance(metadata, dict):
        raise ValidationFailed("metadata must be an object")

    b = BorrowService.checkout(
        user_id,
        int_field(data, "resourceId", required=True),
        data.get("resourceType"),
        data.get("resourceTitle"),
        int_field(data, "borrowDurationDays"),
        metadata=metadata,
    )
    return json_ok(b.to_dict(), "Resource borrowed successfully", 201)


@borrow_bp.get("")
@jwt_required()
@library_errors("borrow.list")
def list_borrows():
    user_id = int(get_jwt_identity())
    status = request.args.get("status", "active")
    page = max(1, int_field(request.args, "page", 1))
    limit = min(100, max(1, int_field(request.args, "limit", 10)))

    items, total = BorrowService.list_user_borrows(user_id, status, page, limit)
    return json_ok({
        "borrows": [x.to_dict() for x in items],
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "totalPages": math.ceil(total / limit),
        },
    })


@borrow_bp.get("/stats")
@jwt_required()
@library_errors("borrow.stats")
def borrow_stats():
    user_id = int(get_jwt_identity())
    return json_ok(BorrowService.stats(user_id))


@borrow_bp.patch("/<int:borrow_id>/return")
@jwt_required()
@library_errors("borrow.return")
def return_borrow(borrow_id):
    user_id = int(get_jwt_identity())
    b = BorrowService.return_borrow(user_id, borrow_id)
    return json_ok(b.to_dict(), "Resource returned successfully")


@borrow_bp.patch("/<int:borrow_id>/renew")
@jwt_required()
@library_errors("borrow.renew")
def renew_borrow(borrow_id):
    user_id = int(get_jwt_identity())
    data = request.get_json(silent=True) or {}
    b = BorrowService.renew(user_id, borrow_id, int_field(data, "extensionDays"))
    return json_ok(b.to_dict(), "Borrow renewed successfully")
