"""User accounts and their per-story play state."""
from __future__ import annotations

import enum
from dataclasses import dataclass, field

TIERS = ("none", "bronze", "silver", "gold", "platinum")

# Python attribute -> key used in documents and API payloads.
CURRENCY_KEYS = {"currency": "currency", "author_currency": "authorCurrency"}
CURRENCY_LABELS = {"currency": "coins", "author_currency": "author gems"}


class Role(str, enum.Enum):
    USER = "user"
    ADMIN = "admin"


def unlock_key(node_id, choice_id) -> str:
    return f"{node_id}:{choice_id}"


def _unique(values):
    seen = set()
    result = []
    for value in values:
        if value not in seen:
            seen.add(value)
            result.append(value)
    return result


@dataclass
class ProgressEntry:
    story_id: int
    endings_found: list[str] = field(default_factory=list)
    last_node_id: str | None = None
    true_ending_found: bool = False
    death_ending_count: int = 0
    unlocked_choices: list[str] = field(default_factory=list)

    def has_found(self, ending_id) -> bool:
        return ending_id in self.endings_found

    def add_ending(self, ending_id):
        self.endings_found = _unique([*self.endings_found, ending_id])

    def has_unlocked(self, key) -> bool:
        return key in self.unlocked_choices

    def add_unlock(self, key):
        self.unlocked_choices = _unique([*self.unlocked_choices, key])

    def to_dict(self):
        return {
            "story": self.story_id,
            "endingsFound": list(self.endings_found),
            "lastNodeId": self.last_node_id,
            "trueEndingFound": self.true_ending_found,
            "deathEndingCount": self.death_ending_count,
            "unlockedChoices": list(self.unlocked_choices),
        }

    @classmethod
    def from_dict(cls, data):
        return cls(
            story_id=int(data["story"]),
            endings_found=_unique(data.get("endingsFound") or []),
            last_node_id=data.get("lastNodeId") or None,
            true_ending_found=bool(data.get("trueEndingFound")),
            death_ending_count=int(data.get("deathEndingCount") or 0),
            unlocked_choices=_unique(data.get("unlockedChoices") or []),
        )


@dataclass
class Notification:
    message: str
    amount: int = 0
    currency_label: str = "coins"

    def to_dict(self):
        return {"message": self.message, "amount": self.amount, "currencyLabel": self.currency_label}

    @classmethod
    def from_dict(cls, data):
        return cls(
            message=data.get("message") or "",
            amount=int(data.get("amount") or 0),
            currency_label=data.get("currencyLabel") or "coins",
        )


# Keys kept in their own table columns rather than in the JSON document.
COLUMN_FIELDS = ("id", "username", "email", "role")


@dataclass
class User:
    id: int | None = None
    username: str = ""
    email: str = ""
    role: Role = Role.USER
    currency: int = 0
    author_currency: int = 0
    total_endings_found: int = 0
    stories_read: int = 0
    trophies: dict[str, str] = field(default_factory=dict)
    progress: list[ProgressEntry] = field(default_factory=list)
    notifications: list[Notification] = field(default_factory=list)
    version: int = 0

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN

    def find_progress(self, story_id) -> ProgressEntry | None:
        for entry in self.progress:
            if entry.story_id == story_id:
                return entry
        return None

    def ensure_progress(self, story_id) -> ProgressEntry:
        entry = self.find_progress(story_id)
        if entry is None:
            entry = ProgressEntry(story_id=story_id)
            self.progress.append(entry)
        return entry

    def balance(self, currency_field) -> int:
        return getattr(self, currency_field)

    def credit(self, currency_field, amount):
        setattr(self, currency_field, self.balance(currency_field) + amount)

    def trophy(self, key) -> str:
        return self.trophies.get(key, "none")

    def notify(self, message, amount=0, currency_label="coins"):
        self.notifications.append(Notification(message, amount, currency_label))

    def pop_notifications(self) -> list[Notification]:
        pending, self.notifications = self.notifications, []
        return pending

    def to_dict(self):
        return {
            "id": self.id,
            "username": self.username,
            "email": self.email,
            "role": self.role.value,
            "currency": self.currency,
            "authorCurrency": self.author_currency,
            "totalEndingsFound": self.total_endings_found,
            "storiesRead": self.stories_read,
            "trophies": dict(self.trophies),
            "progress": [entry.to_dict() for entry in self.progress],
            "notifications": [n.to_dict() for n in self.notifications],
        }

    def to_document(self):
        data = self.to_dict()
        for key in COLUMN_FIELDS:
            data.pop(key, None)
        return data

    def summary(self):
        return {
            "id": self.id,
            "username": self.username,
            "email": self.email,
            "role": self.role.value,
            "currency": self.currency,
            "authorCurrency": self.author_currency,
        }

    @classmethod
    def from_dict(cls, data):
        return cls(
            id=data.get("id"),
            username=data.get("username") or "",
            email=data.get("email") or "",
            role=Role(data.get("role") or Role.USER.value),
            currency=int(data.get("currency") or 0),
            author_currency=int(data.get("authorCurrency") or 0),
            total_endings_found=int(data.get("totalEndingsFound") or 0),
            stories_read=int(data.get("storiesRead") or 0),
            trophies={k: v for k, v in (data.get("trophies") or {}).items() if v in TIERS},
            progress=[ProgressEntry.from_dict(p) for p in data.get("progress") or []],
            notifications=[Notification.from_dict(n) for n in data.get("notifications") or []],
            version=int(data.get("version") or 0),
        )
