from shadowpaths.accounts import ProgressEntry, User
from shadowpaths.graph import Origin, StoryStatus
from shadowpaths.progress import visit_ending
from shadowpaths.trophies import (
    compute_tier,
    derive_stats,
    evaluate_author_trophies,
    recompute_user,
)

from tests.helpers import build_story


def test_tiers_follow_thresholds():
    assert compute_tier(0, (1, 3, 5, 10)) == "none"
    assert compute_tier(1, (1, 3, 5, 10)) == "bronze"
    assert compute_tier(4, (1, 3, 5, 10)) == "silver"
    assert compute_tier(50, (1, 3, 5, 10)) == "platinum"


def test_first_death_earns_bronze_and_pays_out():
    user, story = User(id=1), build_story()
    visit_ending(user, story, "fall")

    report = recompute_user(user, {story.id: story})
    assert [a.to_dict() for a in report.awards] == [
        {"trophy": "death", "tier": "bronze", "reward": 10, "currency": "coins"}
    ]
    assert user.trophies["death"] == "bronze"
    assert user.currency == 10
    assert user.notifications[-1].amount == 10


def test_recompute_is_a_fixed_point():
    user, story = User(id=1), build_story()
    for ending_id in ("fall", "home", "crown"):
        visit_ending(user, story, ending_id)

    first = recompute_user(user, {story.id: story})
    snapshot = user.to_dict()
    second = recompute_user(user, {story.id: story})

    assert first.stats.stories_completed == 1
    assert second.awards == []
    assert user.to_dict() == snapshot


def test_trophies_never_regress():
    user = User(id=1, trophies={"death": "gold"})
    report = recompute_user(user, {})
    assert report.awards == []
    assert user.trophies["death"] == "gold"


def test_orphaned_entries_and_vanished_endings_are_dropped():
    story = build_story()
    user = User(
        id=1,
        total_endings_found=9,
        progress=[
            ProgressEntry(story_id=story.id, endings_found=["crown", "deleted-ending"], last_node_id="gone"),
            ProgressEntry(story_id=404, endings_found=["x"]),
        ],
    )
    recompute_user(user, {story.id: story})

    assert [e.story_id for e in user.progress] == [story.id]
    entry = user.progress[0]
    assert entry.endings_found == ["crown"]
    assert entry.true_ending_found
    assert entry.last_node_id is None
    assert user.total_endings_found == 1


def test_duplicate_entries_are_merged():
    story = build_story()
    user = User(
        id=1,
        progress=[
            ProgressEntry(story_id=story.id, endings_found=["fall"]),
            ProgressEntry(story_id=story.id, endings_found=["home"], unlocked_choices=["hall:x"]),
        ],
    )
    stats = derive_stats(user, {story.id: story})
    assert len(stats.progress) == 1
    assert stats.progress[0].endings_found == ["fall", "home"]
    assert stats.counts["pathsUnlocked"] == 1
    assert user.progress[0].endings_found == ["fall"]


def test_reading_other_authors_counts_toward_community_reader():
    stories = {
        i: build_story(story_id=i, origin=Origin.USER, author_id=2 if i < 4 else 1)
        for i in range(1, 5)
    }
    user = User(id=1, progress=[ProgressEntry(story_id=i) for i in stories])
    stats = derive_stats(user, stories)
    assert stats.counts["communityReader"] == 3


def test_author_trophies_are_paid_in_author_currency():
    user = User(id=5)
    authored = [
        build_story(story_id=1, origin=Origin.USER, status=StoryStatus.PRIVATE, author_id=5),
        build_story(story_id=2, origin=Origin.USER, status=StoryStatus.PUBLIC, author_id=5),
        build_story(story_id=3, origin=Origin.SYSTEM, status=StoryStatus.PUBLIC, author_id=None),
    ]
    awards = evaluate_author_trophies(user, authored)
    assert {a.key: a.tier for a in awards} == {"storyBuilder": "bronze", "publishedAuthor": "bronze"}
    assert user.author_currency == 25 + 40
    assert user.currency == 0
    assert evaluate_author_trophies(user, authored) == []
