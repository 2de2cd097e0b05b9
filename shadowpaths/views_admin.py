from collections import Counter

from flask import Blueprint, current_app, g, jsonify, request

from . import review, store
from .accounts import Role
from .errors import NotFound, ValidationFailed
from .graph import Origin, StoryStatus
from .guards import admin_required, error, json_body, load_story, load_user
from .mutations import set_display_order
from .progress import clear_progress
from .trophies import evaluate_author_trophies
from .views import refresh_user_stats

bp = Blueprint("admin", __name__, url_prefix="/admin")

REVIEW_QUEUE = {StoryStatus.PENDING, StoryStatus.UNDER_REVIEW}


def _reward_author(story):
    """Publishing counts toward the author's trophies."""
    if story.origin is not Origin.USER or story.author_id is None:
        return
    author = store.find_user(story.author_id)
    if author is None:
        return
    awards = evaluate_author_trophies(author, store.find_stories(author_id=author.id))
    if awards:
        store.save_user(author)


@bp.get("/dashboard")
@admin_required
def dashboard():
    stories = store.find_stories()
    by_status = Counter(story.status.value for story in stories)
    return jsonify(
        {
            "stories": store.count_stories(),
            "users": store.count_users(),
            "byStatus": dict(by_status),
            "reviewQueue": [s.summary() for s in stories if s.status in REVIEW_QUEUE],
        }
    )


# STORIES


@bp.post("/stories/<int:story_id>/review")
@admin_required
def review_story(story_id):
    data = json_body()
    action = data.get("action")
    story = load_story(story_id)
    review.transition(story, action, g.user)
    store.save_story(story)
    current_app.logger.info("Admin %s applied %s to story %s", g.user.id, action, story.id)
    if story.status is StoryStatus.PUBLIC:
        _reward_author(story)
    return jsonify(story.summary())


@bp.put("/stories/<int:story_id>/status")
@admin_required
def override_status(story_id):
    data = json_body()
    story = load_story(story_id)
    review.set_status(story, data.get("status"), g.user)
    store.save_story(story)
    if story.status is StoryStatus.PUBLIC:
        _reward_author(story)
    return jsonify(story.summary())


@bp.put("/stories/order")
@admin_required
def order_stories():
    ids = json_body().get("ids")
    if not isinstance(ids, list) or not all(isinstance(i, int) for i in ids):
        return error("ids must be a list of story ids", 400)
    placed = set_display_order(store.find_stories(ids=ids), ids)
    store.save_stories(placed)
    return jsonify({"ids": [story.id for story in placed]})


# USERS


@bp.get("/users")
@admin_required
def list_users():
    query = (request.args.get("q") or "").strip()
    return jsonify([user.summary() for user in store.find_users(query or None)])


@bp.patch("/users/<int:user_id>")
@admin_required
def update_user(user_id):
    data = json_body()
    user = load_user(user_id)

    problems = []
    for key in ("username", "email"):
        if key in data:
            value = (data.get(key) or "").strip()
            if not value:
                problems.append(f"{key} cannot be empty")
            setattr(user, key, value)
    if "role" in data:
        try:
            user.role = Role(data["role"])
        except ValueError:
            problems.append(f"Unknown role '{data['role']}'")
    for key, attr in (("currency", "currency"), ("authorCurrency", "author_currency")):
        if key in data:
            value = data[key]
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                problems.append(f"{key} must be a non-negative integer")
                continue
            setattr(user, attr, value)
    if problems:
        raise ValidationFailed(problems)

    store.save_user(user)
    return jsonify(user.to_dict())


@bp.post("/users/<int:user_id>/toggle-admin")
@admin_required
def toggle_admin(user_id):
    user = load_user(user_id)
    if user.id == g.user.id:
        raise ValidationFailed(["You cannot change your own role"])
    user.role = Role.USER if user.is_admin else Role.ADMIN
    store.save_user(user)
    current_app.logger.info("Admin %s set user %s role to %s", g.user.id, user.id, user.role.value)
    return jsonify(user.summary())


@bp.delete("/users/<int:user_id>")
@admin_required
def delete_user(user_id):
    user = load_user(user_id)
    if user.id == g.user.id:
        raise ValidationFailed(["You cannot delete your own account"])
    store.delete_user(user.id)
    current_app.logger.info("Admin %s deleted user %s", g.user.id, user.id)
    return jsonify({"deleted": True})


@bp.post("/users/<int:user_id>/progress/<int:story_id>/clear")
@admin_required
def clear_story_progress(user_id, story_id):
    user = load_user(user_id)
    entry = clear_progress(user, story_id)
    if entry is None:
        raise NotFound("Progress", story_id)
    store.save_user(user)
    return jsonify(entry.to_dict())


@bp.post("/users/<int:user_id>/recompute")
@admin_required
def recompute(user_id):
    user = load_user(user_id)
    report = refresh_user_stats(user)
    store.save_user(user)
    return jsonify(report.to_dict())
