from flask import current_app


class CacheService:
    """get/set/delete with a TTL over whatever backend Flask-Caching was configured with.

    Call sites only see this interface, so swapping ``CACHE_TYPE`` from
    ``SimpleCache`` to a shared store needs no code changes. Note that the
    default backend is per process: invalidations do not reach other instances.
    """

    def __init__(self, backend):
        self.backend = backend

    def get(self, key):
        return self.backend.get(key)

    def set(self, key, value, ttl: int):
        self.backend.set(key, value, timeout=ttl)

    def delete(self, key):
        self.backend.delete(key)


def library_key(user_id) -> str:
    return f"library_{user_id}"


def get_cache() -> CacheService:
    return current_app.extensions["library_cache"]


def invalidate_user_library(user_id):
    get_cache().delete(library_key(user_id))
