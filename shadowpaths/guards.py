"""Request helpers shared by the app factory and the blueprints.

The API sits behind a trusted front-end: it proves itself with ``X-API-KEY``
and names the signed-in user in ``X-User-Id``. Roles come from the stored user.
"""
from functools import wraps

from flask import current_app, g, jsonify, request

from . import review, store
from .errors import NotFound


def error(message, code=400, **details):
    payload = {"error": message}
    payload.update(details)
    return jsonify(payload), code


def json_body():
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def require_api_key():
    expected = current_app.config.get("API_KEY", "")
    if not expected:
        return error("Server API key not configured", 500)

    provided = request.headers.get("X-API-KEY", "")
    if provided != expected:
        return error("Invalid or missing API key", 401)

    return None


def _user_from_header():
    raw = request.headers.get("X-User-Id", "").strip()
    if not raw.isdigit():
        return None
    return store.find_user(int(raw))


def optional_user(view):
    """Identify the user when the caller is trusted; anonymous otherwise."""

    @wraps(view)
    def wrapped(*args, **kwargs):
        g.user = None
        expected = current_app.config.get("API_KEY", "")
        if expected and request.headers.get("X-API-KEY", "") == expected:
            g.user = _user_from_header()
        return view(*args, **kwargs)

    return wrapped


def login_required(view):
    @wraps(view)
    def wrapped(*args, **kwargs):
        block = require_api_key()
        if block:
            return block
        g.user = _user_from_header()
        if g.user is None:
            return error("Unknown or missing user", 401)
        return view(*args, **kwargs)

    return wrapped


def admin_required(view):
    @wraps(view)
    def wrapped(*args, **kwargs):
        if not g.user.is_admin:
            return error("Admin access required", 403)
        return view(*args, **kwargs)

    return login_required(wrapped)


def api_key_required(view):
    @wraps(view)
    def wrapped(*args, **kwargs):
        block = require_api_key()
        if block:
            return block
        return view(*args, **kwargs)

    return wrapped


def load_story(story_id):
    story = store.find_story(story_id)
    if story is None:
        raise NotFound("Story", story_id)
    return story


def load_visible_story(story_id, user):
    """Stories the user may not see are reported as missing."""
    story = load_story(story_id)
    if not review.is_visible_to(story, user):
        raise NotFound("Story", story_id)
    return story


def load_user(user_id):
    user = store.find_user(user_id)
    if user is None:
        raise NotFound("User", user_id)
    return user
