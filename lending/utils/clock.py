from datetime import datetime, timezone


def utcnow() -> datetime:
    """Naive UTC now; every DateTime column in the schema stores naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)
