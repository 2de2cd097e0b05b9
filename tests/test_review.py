import pytest

from shadowpaths.accounts import Role, User
from shadowpaths.errors import InvalidTransition, PermissionDenied, ValidationFailed
from shadowpaths.graph import Choice, Origin, StoryStatus
from shadowpaths.review import can_play, is_visible_to, set_status, transition

from tests.helpers import build_story

AUTHOR = User(id=1)
STRANGER = User(id=2)
ADMIN = User(id=3, role=Role.ADMIN)


def user_story(status=StoryStatus.PRIVATE):
    return build_story(origin=Origin.USER, status=status, author_id=AUTHOR.id)


def test_full_review_cycle():
    story = user_story()
    transition(story, "submit", AUTHOR)
    assert story.status is StoryStatus.PENDING
    transition(story, "start_review", ADMIN)
    assert story.status is StoryStatus.UNDER_REVIEW
    transition(story, "approve", ADMIN)
    assert story.status is StoryStatus.PUBLIC
    transition(story, "make_private", AUTHOR)
    assert story.status is StoryStatus.PRIVATE


def test_reject_returns_to_private():
    story = user_story(StoryStatus.PENDING)
    transition(story, "reject", ADMIN)
    assert story.status is StoryStatus.PRIVATE


def test_only_admins_review():
    story = user_story(StoryStatus.PENDING)
    with pytest.raises(PermissionDenied):
        transition(story, "approve", AUTHOR)
    assert story.status is StoryStatus.PENDING


def test_only_the_author_submits():
    with pytest.raises(PermissionDenied):
        transition(user_story(), "submit", STRANGER)


def test_system_stories_skip_the_author_workflow():
    story = build_story(status=StoryStatus.PRIVATE)
    with pytest.raises(InvalidTransition):
        transition(story, "submit", ADMIN)


def test_transitions_respect_the_current_status():
    with pytest.raises(InvalidTransition):
        transition(user_story(StoryStatus.PUBLIC), "submit", AUTHOR)
    with pytest.raises(InvalidTransition):
        transition(user_story(), "approve", ADMIN)
    with pytest.raises(InvalidTransition):
        transition(user_story(), "publish", ADMIN)


def test_incomplete_stories_cannot_be_submitted():
    story = user_story()
    story.get_node("start").choices.append(Choice("c9", "Dig", "tunnel"))
    with pytest.raises(ValidationFailed):
        transition(story, "submit", AUTHOR)
    assert story.status is StoryStatus.PRIVATE


def test_stories_without_a_start_cannot_be_submitted():
    story = user_story()
    story.start_node_id = None
    with pytest.raises(ValidationFailed) as info:
        transition(story, "submit", AUTHOR)
    assert info.value.errors == ["A start passage is required"]
    assert story.status is StoryStatus.PRIVATE


def test_visibility():
    pending = user_story(StoryStatus.PENDING)
    assert is_visible_to(pending, AUTHOR)
    assert is_visible_to(pending, ADMIN)
    assert not is_visible_to(pending, STRANGER)
    assert not is_visible_to(pending, None)

    soon = build_story(status=StoryStatus.COMING_SOON)
    assert is_visible_to(soon, None)
    assert not can_play(soon, STRANGER)
    assert can_play(soon, ADMIN)
    assert can_play(pending, AUTHOR)


def test_admin_status_override():
    story = build_story(status=StoryStatus.PRIVATE)
    set_status(story, "invisible", ADMIN)
    assert story.status is StoryStatus.INVISIBLE

    with pytest.raises(ValidationFailed):
        set_status(story, "archived", ADMIN)
    with pytest.raises(PermissionDenied):
        set_status(story, "public", AUTHOR)
