from lending.errors import ValidationFailed

ALLOWED_SORTS = ("recent", "popular", "relevance")
TEXT_FIELDS = ("search", "title", "author", "category", "tags", "topic")


def _int_arg(args, name, errors, minimum=None, maximum=None, default=None):
    raw = args.get(name)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except (TypeError, ValueError):
        errors.append({"field": name, "message": f"{name} must be an integer"})
        return default
    if (minimum is not None and value < minimum) or (maximum is not None and value > maximum):
        if maximum is None:
            errors.append({"field": name, "message": f"{name} must be an integer >= {minimum}"})
        else:
            errors.append({"field": name, "message": f"{name} must be an integer between {minimum} and {maximum}"})
        return default
    return value


def parse_library_books_query(args) -> dict:
    """Validates the public book search query string into a params dict."""
    errors = []

    params = {}
    for name in TEXT_FIELDS:
        value = (args.get(name) or "").strip()
        params[name] = value or None

    params["page"] = _int_arg(args, "page", errors, minimum=1, default=1)
    params["limit"] = _int_arg(args, "limit", errors, minimum=1, maximum=100, default=10)
    params["courseId"] = _int_arg(args, "courseId", errors, minimum=1)

    sort = (args.get("sort") or "").strip()
    if sort and sort not in ALLOWED_SORTS:
        errors.append({"field": "sort", "message": "sort must be one of: recent, popular, relevance"})
    params["sort"] = sort or ("relevance" if params["search"] else "recent")

    if errors:
        raise ValidationFailed(errors=errors)
    return params
