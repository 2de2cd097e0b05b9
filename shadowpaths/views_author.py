"""Story editor endpoints: whole-story saves and single-entity edits."""
from flask import Blueprint, current_app, g, jsonify, request

from . import mutations, review, store
from .errors import ConcurrentUpdate, ShadowPathsError, ValidationFailed
from .graph import Position
from .guards import error, json_body, load_visible_story, login_required
from .images import get_image_store
from .progress import rename_in_progress
from .validation import Strictness, apply_story_content, normalize_story

bp = Blueprint("author", __name__)

RENAME_RETRIES = 3


def _editable_story(story_id, data=None):
    story = load_visible_story(story_id, g.user)
    review.require_editor(story, g.user)
    # editors send back the version they loaded so a stale tab cannot overwrite newer work
    expected = (data or {}).get("version")
    if isinstance(expected, int) and expected != story.version:
        raise ConcurrentUpdate("Story", story.id)
    return story


def _field(data, key):
    """``None`` when the key is absent, so partial updates leave it alone."""
    if key not in data:
        return None
    value = data[key]
    return value if isinstance(value, str) else ""


def _flag(data, key):
    if key not in data or data[key] is None:
        return None
    if not isinstance(data[key], bool):
        raise ValidationFailed([f"{key} must be true or false"])
    return data[key]


def _saved(story):
    store.save_story(story)
    return {"id": story.id, "version": story.version, "startNodeId": story.start_node_id}


def _carry_progress(story, old_id, new_id):
    """Players keep their endings, unlocks and place across a rename."""
    if old_id == new_id:
        return
    for user in store.find_users():
        for _attempt in range(RENAME_RETRIES):
            if not rename_in_progress(user, story, old_id, new_id):
                break
            try:
                store.save_user(user)
                break
            except ConcurrentUpdate:
                user = store.find_user(user.id)
                if user is None:
                    break
        else:
            current_app.logger.error(
                "Gave up moving user %s progress from %s to %s in story %s",
                user.id,
                old_id,
                new_id,
                story.id,
            )


# WHOLE STORY


@bp.put("/stories/<int:story_id>/autosave")
@login_required
def autosave_story(story_id):
    data = json_body()
    story = _editable_story(story_id, data)
    draft = normalize_story(data, Strictness.DRAFT)
    apply_story_content(story, draft, include_notes="notes" in data)
    return jsonify(_saved(story))


@bp.put("/stories/<int:story_id>")
@login_required
def save_story(story_id):
    data = json_body()
    story = _editable_story(story_id, data)
    complete = normalize_story(data, Strictness.COMPLETE)
    apply_story_content(story, complete, include_notes="notes" in data)
    store.save_story(story)
    return jsonify(story.to_dict())


@bp.put("/stories/<int:story_id>/start")
@login_required
def set_start(story_id):
    data = json_body()
    story = _editable_story(story_id, data)
    mutations.set_start_node(story, data.get("startNodeId"))
    return jsonify(_saved(story))


# PASSAGES


@bp.post("/stories/<int:story_id>/nodes")
@login_required
def create_node(story_id):
    data = json_body()
    story = _editable_story(story_id, data)
    node = mutations.add_node(
        story,
        node_id=data.get("_id"),
        text=_field(data, "text"),
        image=_field(data, "image"),
        notes=_field(data, "notes"),
        color=data.get("color"),
        position=Position.from_dict(data.get("position")),
    )
    store.save_story(story)
    return jsonify(node.to_dict()), 201


@bp.patch("/stories/<int:story_id>/nodes/<node_id>")
@login_required
def update_node(story_id, node_id):
    data = json_body()
    story = _editable_story(story_id, data)
    node = mutations.update_node(
        story,
        node_id,
        new_id=data.get("_id"),
        text=_field(data, "text"),
        image=_field(data, "image"),
        notes=_field(data, "notes"),
        color=data.get("color"),
        position=Position.from_dict(data.get("position")),
    )
    store.save_story(story)
    _carry_progress(story, node_id, node.id)
    return jsonify(node.to_dict())


@bp.delete("/stories/<int:story_id>/nodes/<node_id>")
@login_required
def delete_node(story_id, node_id):
    story = _editable_story(story_id)
    mutations.delete_node(story, node_id)
    return jsonify({"deleted": True, **_saved(story)})


@bp.put("/stories/<int:story_id>/nodes/order")
@login_required
def order_nodes(story_id):
    data = json_body()
    story = _editable_story(story_id, data)
    ids = data.get("ids")
    if not isinstance(ids, list):
        return error("ids must be a list", 400)
    mutations.reorder_nodes(story, ids)
    store.save_story(story)
    return jsonify({"ids": [n.id for n in story.nodes]})


# ENDINGS


@bp.post("/stories/<int:story_id>/endings")
@login_required
def create_ending(story_id):
    data = json_body()
    story = _editable_story(story_id, data)
    ending = mutations.add_ending(
        story,
        ending_id=data.get("_id"),
        label=_field(data, "label"),
        type=data.get("type"),
        text=_field(data, "text"),
        image=_field(data, "image"),
        notes=_field(data, "notes"),
        position=Position.from_dict(data.get("position")),
    )
    store.save_story(story)
    return jsonify(ending.to_dict()), 201


@bp.patch("/stories/<int:story_id>/endings/<ending_id>")
@login_required
def update_ending(story_id, ending_id):
    data = json_body()
    story = _editable_story(story_id, data)
    ending = mutations.update_ending(
        story,
        ending_id,
        new_id=data.get("_id"),
        label=_field(data, "label"),
        type=data.get("type"),
        text=_field(data, "text"),
        image=_field(data, "image"),
        notes=_field(data, "notes"),
        position=Position.from_dict(data.get("position")),
    )
    store.save_story(story)
    _carry_progress(story, ending_id, ending.id)
    return jsonify(ending.to_dict())


@bp.delete("/stories/<int:story_id>/endings/<ending_id>")
@login_required
def delete_ending(story_id, ending_id):
    story = _editable_story(story_id)
    mutations.delete_ending(story, ending_id)
    return jsonify({"deleted": True, **_saved(story)})


@bp.put("/stories/<int:story_id>/endings/order")
@login_required
def order_endings(story_id):
    data = json_body()
    story = _editable_story(story_id, data)
    ids = data.get("ids")
    if not isinstance(ids, list):
        return error("ids must be a list", 400)
    mutations.reorder_endings(story, ids)
    store.save_story(story)
    return jsonify({"ids": [e.id for e in story.endings]})


# CHOICES


@bp.post("/stories/<int:story_id>/nodes/<node_id>/choices")
@login_required
def create_choice(story_id, node_id):
    data = json_body()
    story = _editable_story(story_id, data)
    node = story.get_node(node_id)
    destination = data.get("nextNodeId")
    if destination:
        mutations.check_destination(story, destination)
    choice = mutations.add_choice(
        node,
        data.get("label"),
        destination,
        locked=bool(_flag(data, "locked")),
        unlock_cost=data.get("unlockCost", 0),
    )
    store.save_story(story)
    return jsonify(choice.to_dict()), 201


@bp.patch("/stories/<int:story_id>/nodes/<node_id>/choices/<choice_id>")
@login_required
def update_choice(story_id, node_id, choice_id):
    data = json_body()
    story = _editable_story(story_id, data)
    node = story.get_node(node_id)
    destination = data.get("nextNodeId")
    if destination:
        mutations.check_destination(story, destination)
    choice = mutations.update_choice(
        node,
        choice_id,
        label=_field(data, "label"),
        next_node_id=destination,
        locked=_flag(data, "locked"),
        unlock_cost=data.get("unlockCost"),
    )
    store.save_story(story)
    return jsonify(choice.to_dict())


@bp.delete("/stories/<int:story_id>/nodes/<node_id>/choices/<choice_id>")
@login_required
def delete_choice(story_id, node_id, choice_id):
    story = _editable_story(story_id)
    mutations.delete_choice(story.get_node(node_id), choice_id)
    store.save_story(story)
    return jsonify({"deleted": True})


# IMAGE LIBRARY


@bp.get("/stories/<int:story_id>/images")
@login_required
def list_images(story_id):
    story = _editable_story(story_id)
    return jsonify([image.to_dict() for image in story.images])


@bp.post("/stories/<int:story_id>/images")
@login_required
def upload_image(story_id):
    story = _editable_story(story_id)
    file = request.files.get("image")
    if file is None:
        return error("image file is required", 400)

    images = get_image_store()
    stored = images.upload(file, namespace=f"story-{story.id}")
    image = mutations.add_image(story, stored.url, stored.storage_id, request.form.get("title", ""))
    try:
        store.save_story(story)
    except ShadowPathsError:
        images.delete(stored.storage_id)
        raise
    current_app.logger.info("Stored image %s for story %s", stored.storage_id, story.id)
    return jsonify(image.to_dict()), 201


@bp.delete("/stories/<int:story_id>/images/<path:storage_id>")
@login_required
def delete_image(story_id, storage_id):
    story = _editable_story(story_id)
    mutations.remove_image(story, storage_id)
    store.save_story(story)
    get_image_store().delete(storage_id)
    return jsonify({"deleted": True})


# REVIEW


@bp.post("/stories/<int:story_id>/submit")
@login_required
def submit_story(story_id):
    story = _editable_story(story_id)
    review.transition(story, "submit", g.user)
    store.save_story(story)
    current_app.logger.info("Story %s submitted for review by user %s", story.id, g.user.id)
    return jsonify(story.summary())


@bp.post("/stories/<int:story_id>/private")
@login_required
def make_private(story_id):
    story = _editable_story(story_id)
    review.transition(story, "make_private", g.user)
    store.save_story(story)
    return jsonify(story.summary())
