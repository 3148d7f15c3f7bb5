# Overview: Request decorators for API routes.

from functools import wraps

from flask import g, request

ACTOR_HEADER = "X-User-Id"


def with_actor(f):
    """
    Record who is acting on this request.

    Sets g.actor from the X-User-Id header (None when absent). The value is
    stored as created_by on new records; it is not an authentication check.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        actor = (request.headers.get(ACTOR_HEADER) or "").strip()
        g.actor = actor[:64] or None
        return f(*args, **kwargs)

    return decorated_function


def json_body() -> dict:
    """The request's JSON object, or {} when the body is empty or not JSON."""
    data = request.get_json(silent=True)
    return data if data is not None else {}
