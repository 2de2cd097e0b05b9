"""Story lifecycle: who may see, play and move a story between statuses."""
from __future__ import annotations

from .errors import InvalidTransition, PermissionDenied, ValidationFailed
from .graph import Origin, Story, StoryStatus
from .validation import validate_for_publish

LISTED_STATUSES = {StoryStatus.PUBLIC, StoryStatus.COMING_SOON}

# action -> (statuses it may start from, resulting status, admin only)
TRANSITIONS = {
    "submit": ({StoryStatus.PRIVATE}, StoryStatus.PENDING, False),
    "start_review": ({StoryStatus.PENDING}, StoryStatus.UNDER_REVIEW, True),
    "approve": ({StoryStatus.PENDING, StoryStatus.UNDER_REVIEW}, StoryStatus.PUBLIC, True),
    "reject": ({StoryStatus.PENDING, StoryStatus.UNDER_REVIEW}, StoryStatus.PRIVATE, True),
    "make_private": (
        {StoryStatus.PUBLIC, StoryStatus.PENDING, StoryStatus.UNDER_REVIEW},
        StoryStatus.PRIVATE,
        False,
    ),
}


def is_owner(story: Story, user) -> bool:
    return user is not None and story.author_id is not None and story.author_id == user.id


def can_edit(story: Story, user) -> bool:
    if user is None:
        return False
    return user.is_admin or is_owner(story, user)


def is_visible_to(story: Story, user) -> bool:
    if story.status in LISTED_STATUSES:
        return True
    return can_edit(story, user)


def can_play(story: Story, user) -> bool:
    if story.status is StoryStatus.PUBLIC:
        return True
    return can_edit(story, user)


def require_editor(story: Story, user):
    if not can_edit(story, user):
        raise PermissionDenied("You do not have permission to edit this story")


def transition(story: Story, action, actor) -> Story:
    """Apply a review action for ``actor``, enforcing who may do what and when."""
    try:
        allowed_from, target, admin_only = TRANSITIONS[action]
    except KeyError:
        raise InvalidTransition(story.status.value, action) from None

    if admin_only and not (actor is not None and actor.is_admin):
        raise PermissionDenied("Admin access required")
    if not admin_only:
        if story.origin is not Origin.USER:
            raise InvalidTransition(story.status.value, action)
        require_editor(story, actor)
    if story.status not in allowed_from:
        raise InvalidTransition(story.status.value, action)
    if action == "submit":
        validate_for_publish(story)

    story.status = target
    return story


def set_status(story: Story, status, actor) -> Story:
    """Administrative override, any status to any status."""
    if actor is None or not actor.is_admin:
        raise PermissionDenied("Admin access required")
    try:
        story.status = StoryStatus(status)
    except ValueError:
        raise ValidationFailed([f"Unknown status '{status}'"]) from None
    return story
