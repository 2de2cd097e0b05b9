"""Turn loosely-typed author input into a structurally valid story.

Accepts both the editor's shape (``_id``, ``nextNodeId``, positions, colors,
locks) and the bulk seed shape (``id``, ``next``). Every problem is collected
before anything is reported, and nothing is applied to a stored story unless
the whole payload passed.
"""
from __future__ import annotations

import enum

from .errors import ValidationFailed
from .graph import (
    CATEGORIES,
    COLOR_OPTIONS,
    DEFAULT_COLOR,
    Choice,
    Ending,
    EndingType,
    Node,
    Position,
    Story,
    coerce_unlock_cost,
    normalize_entity_id,
)
from .mutations import ending_slot, new_choice_id, node_slot


class Strictness(enum.IntEnum):
    DRAFT = 0  # autosave: empty stories, blank passages and dangling choices allowed
    COMPLETE = 1  # author save and seed import: needs passages, endings and text
    PUBLISH = 2  # submission: additionally no dangling destinations


def _text(value):
    return value if isinstance(value, str) else ""


def normalize_categories(values):
    if not isinstance(values, (list, tuple)):
        return []
    result = []
    for value in values:
        if not isinstance(value, str):
            continue
        value = value.strip().lower()
        if value in CATEGORIES and value not in result:
            result.append(value)
    return result


def _entity_id(raw):
    return normalize_entity_id(raw.get("_id") or raw.get("id"))


def _parse_choices(raw_choices, node_label, errors):
    if not isinstance(raw_choices, list):
        errors.append(f"Choices on passage '{node_label}' must be a list")
        return []
    choices = []
    used_ids = set()
    for index, raw in enumerate(raw_choices, start=1):
        if not isinstance(raw, dict):
            errors.append(f"Choice #{index} on passage '{node_label}' is not an object")
            continue
        label = _text(raw.get("label")).strip()
        destination = normalize_entity_id(raw.get("nextNodeId") or raw.get("next"))
        if not label:
            errors.append(f"Choice #{index} on passage '{node_label}' needs a label")
        if not destination:
            errors.append(f"Choice #{index} on passage '{node_label}' needs a destination")
        choice_id = raw.get("_id")
        choice_id = choice_id.strip() if isinstance(choice_id, str) else ""
        if not choice_id or choice_id in used_ids:
            choice_id = new_choice_id()
        used_ids.add(choice_id)
        locked = bool(raw.get("locked"))
        choices.append(
            Choice(
                id=choice_id,
                label=label,
                next_node_id=destination,
                locked=locked,
                unlock_cost=coerce_unlock_cost(locked, raw.get("unlockCost")),
            )
        )
    return choices


def _parse_nodes(raw_nodes, strictness, errors):
    nodes = []
    seen = set()
    for index, raw in enumerate(raw_nodes, start=1):
        if not isinstance(raw, dict):
            errors.append(f"Passage #{index} is not an object")
            continue
        node_id = _entity_id(raw)
        label = node_id or f"#{index}"
        if not node_id:
            errors.append(f"Passage #{index} needs an id")
        elif node_id in seen:
            errors.append(f"Passage id '{node_id}' is used more than once")
        seen.add(node_id)
        text = _text(raw.get("text"))
        if strictness >= Strictness.COMPLETE and not text.strip():
            errors.append(f"Passage '{label}' needs text")
        color = raw.get("color")
        nodes.append(
            Node(
                id=node_id,
                text=text,
                image=_text(raw.get("image")).strip(),
                notes=_text(raw.get("notes")),
                color=color if color in COLOR_OPTIONS else DEFAULT_COLOR,
                position=Position.from_dict(raw.get("position")) or node_slot(index - 1),
                choices=_parse_choices(raw.get("choices") or [], label, errors),
            )
        )
    return nodes


def _parse_endings(raw_endings, node_count, errors):
    endings = []
    seen = set()
    for index, raw in enumerate(raw_endings, start=1):
        if not isinstance(raw, dict):
            errors.append(f"Ending #{index} is not an object")
            continue
        ending_id = _entity_id(raw)
        if not ending_id:
            errors.append(f"Ending #{index} needs an id")
        elif ending_id in seen:
            errors.append(f"Ending id '{ending_id}' is used more than once")
        seen.add(ending_id)
        endings.append(
            Ending(
                id=ending_id,
                label=_text(raw.get("label")).strip() or ending_id,
                type=EndingType.coerce(raw.get("type")),
                text=_text(raw.get("text")),
                image=_text(raw.get("image")).strip(),
                notes=_text(raw.get("notes")),
                position=Position.from_dict(raw.get("position"))
                or ending_slot(index - 1, node_count),
            )
        )
    return endings


def _list_field(payload, key, errors):
    value = payload.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        errors.append(f"'{key}' must be a list")
        return []
    return value


def normalize_story(payload, strictness=Strictness.DRAFT) -> Story:
    """Build a validated story from ``payload`` or raise ValidationFailed."""
    if not isinstance(payload, dict):
        raise ValidationFailed(["Story payload must be a JSON object"])

    errors = []
    title = _text(payload.get("title")).strip()
    if not title:
        errors.append("Title is required")

    nodes = _parse_nodes(_list_field(payload, "nodes", errors), strictness, errors)
    endings = _parse_endings(_list_field(payload, "endings", errors), len(nodes), errors)

    node_ids = {n.id for n in nodes if n.id}
    ending_ids = {e.id for e in endings if e.id}
    for shared in sorted(node_ids & ending_ids):
        errors.append(f"Id '{shared}' is used by both a passage and an ending")

    if strictness >= Strictness.COMPLETE:
        if not nodes:
            errors.append("At least one passage is required")
        if not endings:
            errors.append("At least one ending is required")

    if strictness >= Strictness.PUBLISH:
        known = node_ids | ending_ids
        for node in nodes:
            for choice in node.choices:
                if choice.next_node_id and choice.next_node_id not in known:
                    errors.append(
                        f"Choice '{choice.label}' on passage '{node.id}' points to "
                        f"missing '{choice.next_node_id}'"
                    )

    start_node_id = normalize_entity_id(payload.get("startNodeId"))
    if start_node_id and start_node_id not in node_ids:
        errors.append(f"Start passage '{start_node_id}' does not exist")
    elif not start_node_id and strictness >= Strictness.PUBLISH:
        errors.append("A start passage is required")
    elif not start_node_id:
        start_node_id = nodes[0].id if nodes else None

    if errors:
        raise ValidationFailed(errors)

    return Story(
        title=title,
        description=_text(payload.get("description")),
        notes=_text(payload.get("notes")),
        cover_image=_text(payload.get("coverImage")).strip(),
        categories=normalize_categories(payload.get("categories")),
        start_node_id=start_node_id or None,
        nodes=nodes,
        endings=endings,
    )


def apply_story_content(target: Story, source: Story, include_notes=False) -> Story:
    """Replace the editable content of ``target`` with an already-validated ``source``."""
    target.title = source.title
    target.description = source.description
    target.cover_image = source.cover_image
    target.categories = list(source.categories)
    target.start_node_id = source.start_node_id
    target.nodes = source.nodes
    target.endings = source.endings
    if include_notes:
        target.notes = source.notes
    return target


def parse_seed(payload) -> Story:
    """Bulk import: the seed shape at complete strictness."""
    return normalize_story(payload, Strictness.COMPLETE)


def validate_for_publish(story: Story) -> Story:
    return normalize_story(story.to_dict(), Strictness.PUBLISH)
