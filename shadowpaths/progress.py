"""Per-user play state: where the reader is and which endings they found."""
from __future__ import annotations

from dataclasses import dataclass

from .accounts import CURRENCY_LABELS, ProgressEntry, User, unlock_key
from .graph import EndingType, Origin, Story


@dataclass
class EndingVisit:
    entry: ProgressEntry
    first_discovery: bool
    reward: int = 0


def visit_node(user: User, story: Story, node_id) -> ProgressEntry:
    story.get_node(node_id)
    entry = user.ensure_progress(story.id)
    entry.last_node_id = node_id
    return entry


def visit_ending(user: User, story: Story, ending_id, read_reward=0) -> EndingVisit:
    """Record reaching an ending; side effects happen on the first discovery only."""
    ending = story.get_ending(ending_id)
    entry = user.ensure_progress(story.id)
    entry.last_node_id = None
    if entry.has_found(ending.id):
        return EndingVisit(entry, first_discovery=False)

    entry.add_ending(ending.id)
    user.total_endings_found += 1
    if ending.type is EndingType.TRUE:
        entry.true_ending_found = True
    elif ending.type is EndingType.DEATH:
        entry.death_ending_count += 1

    reward = 0
    if story.origin is Origin.USER and read_reward > 0:
        reward = read_reward
        user.credit("author_currency", reward)
        user.notify(
            f"You discovered '{ending.label}' in {story.title}!",
            amount=reward,
            currency_label=CURRENCY_LABELS["author_currency"],
        )
    return EndingVisit(entry, first_discovery=True, reward=reward)


def resume_point(user: User, story: Story) -> str | None:
    """The passage to continue from, if it still exists."""
    entry = user.find_progress(story.id)
    if entry is None or not entry.last_node_id:
        return None
    if story.find_node(entry.last_node_id) is None:
        return None
    return entry.last_node_id


def clear_progress(user: User, story_id) -> ProgressEntry | None:
    """Administrative reset; purchased unlocks survive it."""
    entry = user.find_progress(story_id)
    if entry is None:
        return None
    user.total_endings_found = max(0, user.total_endings_found - len(entry.endings_found))
    entry.endings_found = []
    entry.last_node_id = None
    entry.true_ending_found = False
    entry.death_ending_count = 0
    return entry


def rename_in_progress(user: User, story: Story, old_id, new_id) -> bool:
    """Move ``user``'s play state from ``old_id`` to ``new_id`` after a rename.

    ``story`` is the already-renamed story. Found endings, the resume point
    and unlock keys of the renamed passage's choices all follow the new id.
    Returns whether anything changed.
    """
    entry = user.find_progress(story.id)
    if entry is None or old_id == new_id:
        return False

    changed = False
    if entry.has_found(old_id):
        entry.endings_found = [new_id if eid == old_id else eid for eid in entry.endings_found]
        entry.endings_found = list(dict.fromkeys(entry.endings_found))
        changed = True
    if entry.last_node_id == old_id:
        entry.last_node_id = new_id
        changed = True

    node = story.find_node(new_id)
    if node is not None:
        moved = {unlock_key(old_id, c.id): unlock_key(new_id, c.id) for c in node.choices}
        if any(key in moved for key in entry.unlocked_choices):
            entry.unlocked_choices = list(
                dict.fromkeys(moved.get(key, key) for key in entry.unlocked_choices)
            )
            changed = True
    return changed
