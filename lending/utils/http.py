from flask import jsonify

from lending.errors import ValidationFailed


def int_field(data: dict, name: str, default=None, required: bool = False):
    """Integer from a JSON body or query dict; bad or missing input is a 400."""
    raw = data.get(name)
    if raw is None or raw == "":
        if required:
            raise ValidationFailed(f"{name} is required")
        return default
    if isinstance(raw, bool):
        raise ValidationFailed(f"{name} must be an integer")
    try:
        return int(raw)
    except (TypeError, ValueError):
        raise ValidationFailed(f"{name} must be an integer")


def json_ok(data=None, message=None, status=200):
    payload = {"success": True}
    if message:
        payload["message"] = message
    payload["data"] = data
    return jsonify(payload), status


def json_error(message, status=400, code=None, errors=None):
    payload = {"success": False, "message": message}
    if code:
        payload["code"] = code
    if errors:
        payload["errors"] = errors
    return jsonify(payload), status
