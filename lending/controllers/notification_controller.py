from flask import Blueprint, request
from flask_jwt_extended import jwt_required, get_jwt_identity

from lending.repositories.notification_repo import NotificationRepo
from lending.tasks.expiry_sweep import sweep_expired_borrows
from lending.utils.decorators import library_errors, role_required
from lending.utils.http import json_ok

notif_bp = Blueprint("notifications", __name__, url_prefix="/notifications")


@notif_bp.get("")
@jwt_required()
@library_errors("notifications.list")
def my_notifications():
    user_id = int(get_jwt_identity())
    unread_only = request.args.get("unread", "0") == "1"
    rows = NotificationRepo.list_by_user(user_id, unread_only=unread_only)
    return json_ok([n.to_dict() for n in rows])


@notif_bp.post("/run-sweep")
@role_required("admin")
@library_errors("notifications.run_sweep")
def run_sweep():
    result = sweep_expired_borrows()
    return json_ok(result, "Expiry sweep completed")
