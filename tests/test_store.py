import pytest
from sqlalchemy import update

from shadowpaths import store
from shadowpaths.accounts import User
from shadowpaths.economy import unlock_choice
from shadowpaths.errors import ConcurrentUpdate, ValidationFailed
from shadowpaths.extensions import db
from shadowpaths.graph import Origin, StoryStatus
from shadowpaths.models import StoryRecord

from tests.helpers import build_story, locked_choice


def test_story_round_trip(app, make_story):
    created = make_story(origin=Origin.SYSTEM, status=StoryStatus.PUBLIC)
    assert created.id is not None
    assert created.version == 1

    with app.app_context():
        loaded = store.find_story(created.id)
        record = db.session.get(StoryRecord, created.id)

    assert loaded.to_dict() == created.to_dict()
    assert record.title == "The Lighthouse"
    assert "nodes" in record.document
    assert "title" not in record.document


def test_save_bumps_the_version(app, make_story):
    story = make_story()
    with app.app_context():
        story.title = "Renamed"
        store.save_story(story)
        assert story.version == 2
        assert store.find_story(story.id).title == "Renamed"


def test_stale_story_write_is_rejected(app, make_story):
    story = make_story()
    with app.app_context():
        first = store.find_story(story.id)
        second = store.find_story(story.id)
        first.title = "First"
        store.save_story(first)

        second.title = "Second"
        with pytest.raises(ConcurrentUpdate):
            store.save_story(second)
        assert store.find_story(story.id).title == "First"


def test_version_changed_underneath(app, make_story):
    story = make_story()
    with app.app_context():
        db.session.execute(update(StoryRecord).where(StoryRecord.id == story.id).values(version=5))
        db.session.commit()
        with pytest.raises(ConcurrentUpdate):
            store.save_story(story)


def test_double_unlock_cannot_charge_twice(app, make_user, make_story):
    reader = make_user(currency=10)
    story = make_story()
    choice = locked_choice(story)

    with app.app_context():
        tab_one = store.find_user(reader.id)
        tab_two = store.find_user(reader.id)
        unlock_choice(tab_one, story, "hall", choice.id)
        unlock_choice(tab_two, story, "hall", choice.id)

        store.save_user(tab_one)
        with pytest.raises(ConcurrentUpdate):
            store.save_user(tab_two)
        assert store.find_user(reader.id).currency == 0


def test_listing_sorts_by_display_order_then_newest(app):
    with app.app_context():
        ids = []
        for order in (1, 0, 0):
            story = build_story(story_id=None)
            story.display_order = order
            ids.append(store.create_story(story).id)
        listed = [s.id for s in store.find_stories()]
    assert listed == [ids[2], ids[1], ids[0]]


def test_listing_filters(app, make_story, author):
    public = make_story()
    make_story(status=StoryStatus.PRIVATE)
    mine = make_story(origin=Origin.USER, status=StoryStatus.PENDING, author_id=author.id)

    with app.app_context():
        assert [s.id for s in store.find_stories(status="public")] == [public.id]
        assert [s.id for s in store.find_stories(origin=Origin.USER)] == [mine.id]
        assert [s.id for s in store.find_stories(author_id=author.id)] == [mine.id]
        assert [s.id for s in store.find_stories(ids=[public.id, 999])] == [public.id]
        assert store.find_stories(ids=[]) == []
        assert len(store.find_stories(status=[StoryStatus.PUBLIC, StoryStatus.PENDING])) == 2
        assert store.count_stories() == 3


def test_delete_story(app, make_story):
    story = make_story()
    with app.app_context():
        assert store.delete_story(story.id)
        assert store.find_story(story.id) is None
        assert not store.delete_story(story.id)


def test_deleting_a_user_detaches_their_stories(app, make_user, make_story):
    writer = make_user("writer")
    story = make_story(origin=Origin.USER, status=StoryStatus.PUBLIC, author_id=writer.id)
    with app.app_context():
        assert store.delete_user(writer.id)
        assert store.find_user(writer.id) is None
        kept = store.find_story(story.id)
        assert kept.author_id is None
        assert kept.version == story.version + 1
        assert not store.delete_user(writer.id)


def test_usernames_are_unique(app, make_user):
    make_user("sam")
    with app.app_context():
        with pytest.raises(ValidationFailed):
            store.create_user(User(username="sam", email="other@example.com"))
        assert store.count_users() == 1


def test_user_documents_keep_progress(app, make_user, make_story):
    user = make_user(currency=50)
    story = make_story()
    with app.app_context():
        loaded = store.find_user(user.id)
        unlock_choice(loaded, story, "hall", locked_choice(story).id)
        loaded.trophies["pathsUnlocked"] = "bronze"
        store.save_user(loaded)

        again = store.find_user(user.id)
    assert again.currency == 40
    assert again.trophies == {"pathsUnlocked": "bronze"}
    assert again.find_progress(story.id).unlocked_choices == loaded.find_progress(story.id).unlocked_choices


def test_user_search(app, make_user):
    make_user("marlow")
    make_user("quint")
    with app.app_context():
        assert [u.username for u in store.find_users("MAR")] == ["marlow"]
        assert len(store.find_users()) == 2
        assert store.find_user_by_username("quint").email == "quint@example.com"
        assert store.find_user_by_username("nobody") is None
