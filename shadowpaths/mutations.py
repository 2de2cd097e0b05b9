"""Structural edits on a story that keep every choice pointing somewhere real.

Each function mutates the in-memory story only after all of its checks pass;
the caller persists the whole story afterwards.
"""
from __future__ import annotations

import math
import secrets

from .errors import IdConflict, NotFound, ValidationFailed
from .graph import (
    COLOR_OPTIONS,
    DEFAULT_COLOR,
    Choice,
    Ending,
    EndingType,
    ImageRef,
    Node,
    Position,
    Story,
    coerce_unlock_cost,
    normalize_entity_id,
)

GRID_COLUMNS = 5
ENDING_COLUMNS = 4
GRID_ORIGIN = 160
SPACING_X = 240
SPACING_Y = 200


def generate_entity_id(story: Story, prefix: str) -> str:
    taken = story.entity_ids()
    while True:
        candidate = f"{prefix}-{secrets.token_hex(3)}"
        if candidate not in taken:
            return candidate


def new_choice_id() -> str:
    return secrets.token_hex(12)


def node_slot(index: int) -> Position:
    return Position(
        GRID_ORIGIN + (index % GRID_COLUMNS) * SPACING_X,
        GRID_ORIGIN + (index // GRID_COLUMNS) * SPACING_Y,
    )


def ending_slot(index: int, node_count: int) -> Position:
    """Endings are laid out in rows below the passage grid."""
    node_rows = max(1, math.ceil(node_count / GRID_COLUMNS))
    return Position(
        GRID_ORIGIN + (index % ENDING_COLUMNS) * SPACING_X,
        GRID_ORIGIN + (node_rows + 1 + index // ENDING_COLUMNS) * SPACING_Y,
    )


def _claim_id(story, requested, prefix):
    entity_id = normalize_entity_id(requested)
    if not entity_id:
        return generate_entity_id(story, prefix)
    if entity_id in story.entity_ids():
        raise IdConflict(entity_id)
    return entity_id


def _check_rename(story, old_id, new_id, kind):
    new_id = normalize_entity_id(new_id)
    if not new_id:
        raise ValidationFailed([f"{kind} id cannot be blank"])
    if new_id != old_id and new_id in story.entity_ids():
        raise IdConflict(new_id)
    return new_id


def _retarget_choices(story, old_id, new_id):
    for _node, choice in story.iter_choices():
        if choice.next_node_id == old_id:
            choice.next_node_id = new_id


def _prune_choices_to(story, target_id):
    removed = 0
    for node in story.nodes:
        kept = [c for c in node.choices if c.next_node_id != target_id]
        removed += len(node.choices) - len(kept)
        node.choices = kept
    return removed


def _color(value):
    return value if value in COLOR_OPTIONS else DEFAULT_COLOR


# nodes


def add_node(story, *, node_id=None, text="", image="", notes="", color=None, position=None) -> Node:
    node = Node(
        id=_claim_id(story, node_id, "passage"),
        text=text or "",
        image=image or "",
        notes=notes or "",
        color=_color(color),
        position=position or node_slot(len(story.nodes)),
    )
    story.nodes.insert(0, node)
    if not story.start_node_id:
        story.start_node_id = node.id
    return node


def rename_node(story, old_id, new_id) -> Node:
    node = story.get_node(old_id)
    new_id = _check_rename(story, old_id, new_id, "Passage")
    if new_id == old_id:
        return node
    node.id = new_id
    _retarget_choices(story, old_id, new_id)
    if story.start_node_id == old_id:
        story.start_node_id = new_id
    return node


def update_node(story, node_id, *, new_id=None, text=None, image=None, notes=None, color=None, position=None) -> Node:
    node = story.get_node(node_id)
    if new_id is not None:
        _check_rename(story, node_id, new_id, "Passage")
    if text is not None:
        node.text = text
    if image is not None:
        node.image = image
    if notes is not None:
        node.notes = notes
    if color is not None:
        node.color = _color(color)
    if position is not None:
        node.position = position
    if new_id is not None:
        rename_node(story, node_id, new_id)
    return node


def delete_node(story, node_id) -> Node:
    node = story.get_node(node_id)
    story.nodes.remove(node)
    _prune_choices_to(story, node_id)
    if story.start_node_id == node_id:
        story.start_node_id = None
    return node


# endings


def add_ending(story, *, ending_id=None, label="", type=EndingType.OTHER, text="", image="", notes="", position=None) -> Ending:
    new_id = _claim_id(story, ending_id, "ending")
    ending = Ending(
        id=new_id,
        label=(label or "").strip() or new_id,
        type=EndingType.coerce(type),
        text=text or "",
        image=image or "",
        notes=notes or "",
        position=position or ending_slot(len(story.endings), len(story.nodes)),
    )
    story.endings.insert(0, ending)
    return ending


def rename_ending(story, old_id, new_id) -> Ending:
    ending = story.get_ending(old_id)
    new_id = _check_rename(story, old_id, new_id, "Ending")
    if new_id == old_id:
        return ending
    ending.id = new_id
    # a label that was only mirroring the id keeps mirroring it
    if not ending.label or ending.label == old_id:
        ending.label = new_id
    _retarget_choices(story, old_id, new_id)
    return ending


def update_ending(story, ending_id, *, new_id=None, label=None, type=None, text=None, image=None, notes=None, position=None) -> Ending:
    ending = story.get_ending(ending_id)
    if new_id is not None:
        _check_rename(story, ending_id, new_id, "Ending")
    if label is not None:
        ending.label = label.strip() or ending.id
    if type is not None:
        ending.type = EndingType.coerce(type)
    if text is not None:
        ending.text = text
    if image is not None:
        ending.image = image
    if notes is not None:
        ending.notes = notes
    if position is not None:
        ending.position = position
    if new_id is not None:
        rename_ending(story, ending_id, new_id)
    return ending


def delete_ending(story, ending_id) -> Ending:
    ending = story.get_ending(ending_id)
    story.endings.remove(ending)
    _prune_choices_to(story, ending_id)
    return ending


# choices


def check_destination(story, destination):
    """Interactive edits may only point at an existing passage or ending."""
    if story.destination_kind(destination) is None:
        raise ValidationFailed([f"Destination '{destination}' does not exist in this story"])


def _choice_errors(label, next_node_id):
    errors = []
    if not label:
        errors.append("Choice label is required")
    if not next_node_id:
        errors.append("Choice destination is required")
    return errors


def add_choice(node, label, next_node_id, locked=False, unlock_cost=0) -> Choice:
    label = (label or "").strip()
    next_node_id = normalize_entity_id(next_node_id)
    errors = _choice_errors(label, next_node_id)
    if errors:
        raise ValidationFailed(errors)
    choice = Choice(
        id=new_choice_id(),
        label=label,
        next_node_id=next_node_id,
        locked=locked,
        unlock_cost=unlock_cost,
    )
    node.choices.append(choice)
    return choice


def update_choice(node, choice_id, *, label=None, next_node_id=None, locked=None, unlock_cost=None) -> Choice:
    choice = node.get_choice(choice_id)
    new_label = choice.label if label is None else label.strip()
    new_next = choice.next_node_id if next_node_id is None else normalize_entity_id(next_node_id)
    errors = _choice_errors(new_label, new_next)
    if errors:
        raise ValidationFailed(errors)
    choice.label = new_label
    choice.next_node_id = new_next
    if locked is not None:
        choice.locked = bool(locked)
    if unlock_cost is not None:
        choice.unlock_cost = unlock_cost
    choice.unlock_cost = coerce_unlock_cost(choice.locked, choice.unlock_cost)
    return choice


def delete_choice(node, choice_id) -> Choice:
    choice = node.get_choice(choice_id)
    node.choices.remove(choice)
    return choice


# ordering


def _reorder(entities, ids_in_order):
    by_id = {entity.id: entity for entity in entities}
    ordered = []
    for entity_id in ids_in_order:
        entity = by_id.pop(entity_id, None)
        if entity is not None:
            ordered.append(entity)
    # entities the caller left out keep their relative order at the end
    ordered.extend(e for e in entities if e.id in by_id)
    return ordered


def reorder_nodes(story, ids_in_order):
    story.nodes = _reorder(story.nodes, ids_in_order)
    return story.nodes


def reorder_endings(story, ids_in_order):
    story.endings = _reorder(story.endings, ids_in_order)
    return story.endings


def set_start_node(story, node_id):
    node_id = normalize_entity_id(node_id)
    if not node_id:
        story.start_node_id = None
        return None
    if story.find_node(node_id) is None:
        raise ValidationFailed([f"Start passage '{node_id}' does not exist"])
    story.start_node_id = node_id
    return node_id


def set_display_order(stories, ordered_ids):
    """Give the listed stories dense positions 0..N-1; returns the ones placed."""
    by_id = {story.id: story for story in stories}
    placed = []
    for story_id in ordered_ids:
        story = by_id.pop(story_id, None)
        if story is not None:
            story.display_order = len(placed)
            placed.append(story)
    return placed


# image library


def add_image(story, url, storage_id, title="") -> ImageRef:
    image = ImageRef(url=url, storage_id=storage_id, title=title or url)
    story.images.append(image)
    return image


def remove_image(story, storage_id) -> ImageRef:
    for image in story.images:
        if image.storage_id == storage_id:
            break
    else:
        raise NotFound("Image", storage_id)
    story.images.remove(image)
    if story.cover_image == image.url:
        story.cover_image = ""
    for entity in [*story.nodes, *story.endings]:
        if entity.image == image.url:
            entity.image = ""
    return image
