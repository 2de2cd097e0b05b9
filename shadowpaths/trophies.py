"""Rebuild a user's derived statistics and advance their trophies.

Everything here is recomputed from the authoritative progress entries and
story documents, so running it again on unchanged data changes nothing.
Trophy tiers only ever move up.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Mapping

from .accounts import CURRENCY_LABELS, TIERS, ProgressEntry, User
from .graph import EndingType, Origin, Story, StoryStatus


@dataclass(frozen=True)
class Trophy:
    key: str
    title: str
    thresholds: tuple[int, int, int, int]
    rewards: tuple[int, int, int, int]
    currency_field: str = "currency"


READER_TROPHIES = (
    Trophy("storiesCompleted", "Completionist", (1, 3, 5, 10), (10, 20, 40, 80)),
    Trophy("trueEnding", "True Ending", (1, 3, 5, 10), (10, 20, 40, 80)),
    Trophy("death", "Many Deaths", (1, 5, 10, 20), (10, 20, 40, 80)),
    Trophy("secretEnding", "Secret Seeker", (1, 3, 5, 10), (10, 20, 40, 80)),
    Trophy("pathsUnlocked", "Pathfinder", (1, 5, 10, 25), (10, 20, 40, 80)),
)

AUTHOR_TROPHIES = (
    Trophy("storyBuilder", "Story Builder", (1, 3, 5, 10), (25, 50, 100, 200), "author_currency"),
    Trophy("publishedAuthor", "Published Author", (1, 3, 5, 10), (40, 80, 160, 300), "author_currency"),
    Trophy("communityReader", "Community Reader", (3, 6, 10, 20), (15, 30, 75, 150), "author_currency"),
)

TROPHIES = {trophy.key: trophy for trophy in READER_TROPHIES + AUTHOR_TROPHIES}


def compute_tier(value, thresholds) -> str:
    tier = "none"
    for name, threshold in zip(TIERS[1:], thresholds):
        if value >= threshold:
            tier = name
    return tier


@dataclass
class TrophyAward:
    key: str
    tier: str
    reward: int
    currency: str

    def to_dict(self):
        return {"trophy": self.key, "tier": self.tier, "reward": self.reward, "currency": self.currency}


@dataclass
class DerivedStats:
    progress: list[ProgressEntry]
    total_endings_found: int
    stories_completed: int
    counts: dict[str, int] = field(default_factory=dict)


@dataclass
class RecomputeReport:
    stats: DerivedStats
    awards: list[TrophyAward]

    def to_dict(self):
        return {
            "totalEndingsFound": self.stats.total_endings_found,
            "storiesCompleted": self.stats.stories_completed,
            "counts": dict(self.stats.counts),
            "awards": [award.to_dict() for award in self.awards],
        }


def _merge_entries(entries):
    """One entry per story; duplicates are folded into the first."""
    merged: dict[int, ProgressEntry] = {}
    for entry in entries:
        current = merged.get(entry.story_id)
        if current is None:
            merged[entry.story_id] = ProgressEntry(
                story_id=entry.story_id,
                endings_found=list(entry.endings_found),
                last_node_id=entry.last_node_id,
                unlocked_choices=list(entry.unlocked_choices),
            )
            continue
        for ending_id in entry.endings_found:
            current.add_ending(ending_id)
        for key in entry.unlocked_choices:
            current.add_unlock(key)
        current.last_node_id = current.last_node_id or entry.last_node_id
    return list(merged.values())


def author_counts(user: User, authored: Iterable[Story]) -> dict[str, int]:
    own = [s for s in authored if s.origin is Origin.USER and s.author_id == user.id]
    return {
        "storyBuilder": len(own),
        "publishedAuthor": sum(1 for s in own if s.status is StoryStatus.PUBLIC),
    }


def derive_stats(user: User, stories: Mapping[int, Story], authored: Iterable[Story] = ()) -> DerivedStats:
    """Compute the derived fields without touching ``user``.

    Entries for stories that no longer exist are dropped; found endings the
    story no longer defines are forgotten.
    """
    progress = []
    completed = true_count = death_count = secret_count = community = 0
    for entry in _merge_entries(user.progress):
        story = stories.get(entry.story_id)
        if story is None:
            continue
        endings = {ending.id: ending for ending in story.endings}
        entry.endings_found = [eid for eid in entry.endings_found if eid in endings]
        types = [endings[eid].type for eid in entry.endings_found]
        entry.true_ending_found = EndingType.TRUE in types
        entry.death_ending_count = types.count(EndingType.DEATH)
        if entry.last_node_id and story.find_node(entry.last_node_id) is None:
            entry.last_node_id = None
        progress.append(entry)

        if endings and len(entry.endings_found) >= len(endings):
            completed += 1
        true_count += int(entry.true_ending_found)
        death_count += entry.death_ending_count
        secret_count += types.count(EndingType.SECRET)
        if story.origin is Origin.USER and story.author_id != user.id:
            community += 1

    counts = {
        "storiesCompleted": completed,
        "trueEnding": true_count,
        "death": death_count,
        "secretEnding": secret_count,
        "pathsUnlocked": sum(len(e.unlocked_choices) for e in progress),
        "communityReader": community,
    }
    counts.update(author_counts(user, authored))
    return DerivedStats(
        progress=progress,
        total_endings_found=sum(len(e.endings_found) for e in progress),
        stories_completed=completed,
        counts=counts,
    )


def advance_trophies(user: User, counts: Mapping[str, int]) -> list[TrophyAward]:
    awards = []
    for key, value in counts.items():
        trophy = TROPHIES.get(key)
        if trophy is None:
            continue
        new_tier = compute_tier(value, trophy.thresholds)
        if TIERS.index(new_tier) <= TIERS.index(user.trophy(key)):
            continue
        user.trophies[key] = new_tier
        reward = trophy.rewards[TIERS.index(new_tier) - 1]
        label = CURRENCY_LABELS[trophy.currency_field]
        user.credit(trophy.currency_field, reward)
        user.notify(f"{trophy.title} trophy reached {new_tier.title()}!", amount=reward, currency_label=label)
        awards.append(TrophyAward(key, new_tier, reward, label))
    return awards


def recompute_user(user: User, stories: Mapping[int, Story], authored: Iterable[Story] = ()) -> RecomputeReport:
    stats = derive_stats(user, stories, authored)
    user.progress = stats.progress
    user.total_endings_found = stats.total_endings_found
    user.stories_read = stats.stories_completed
    return RecomputeReport(stats, advance_trophies(user, stats.counts))


def evaluate_author_trophies(user: User, authored: Iterable[Story]) -> list[TrophyAward]:
    return advance_trophies(user, author_counts(user, authored))
