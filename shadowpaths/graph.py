"""Story graph entities and read-only structural queries.

A story is one document: passages ("nodes") carry outgoing choices, endings
are terminal. Choices point at either kind by id, so ids are unique across
both collections of a story.
"""
from __future__ import annotations

import enum
import re
from collections import deque
from dataclasses import dataclass, field

from .errors import NotFound

COLOR_OPTIONS = ("twilight", "ember", "moss", "dusk", "rose", "slate")
DEFAULT_COLOR = "twilight"

CATEGORIES = (
    "adventure",
    "comedy",
    "drama",
    "fantasy",
    "historical",
    "horror",
    "mystery",
    "romance",
    "sci-fi",
    "thriller",
)

_WHITESPACE_RUN = re.compile(r"\s{2,}")


class StoryStatus(str, enum.Enum):
    PUBLIC = "public"
    COMING_SOON = "coming_soon"
    PRIVATE = "private"
    PENDING = "pending"
    UNDER_REVIEW = "under_review"
    INVISIBLE = "invisible"


class Origin(str, enum.Enum):
    SYSTEM = "system"
    USER = "user"


class EndingType(str, enum.Enum):
    TRUE = "true"
    DEATH = "death"
    SECRET = "secret"
    OTHER = "other"

    @classmethod
    def coerce(cls, value) -> "EndingType":
        try:
            return cls(value)
        except ValueError:
            return cls.OTHER


def currency_field_for(origin: Origin) -> str:
    """User attribute that pays for unlocks in stories of this origin."""
    if origin is Origin.USER:
        return "author_currency"
    return "currency"


def normalize_entity_id(value) -> str:
    if not isinstance(value, str):
        return ""
    value = value.replace("\u00a0", " ")
    return _WHITESPACE_RUN.sub(" ", value).strip()


def coerce_unlock_cost(locked, value) -> int:
    if not locked:
        return 0
    try:
        cost = int(float(value))
    except (TypeError, ValueError):
        return 0
    return max(0, cost)


@dataclass
class Position:
    x: float = 0.0
    y: float = 0.0

    def to_dict(self):
        return {"x": self.x, "y": self.y}

    @classmethod
    def from_dict(cls, data) -> "Position | None":
        if not isinstance(data, dict):
            return None
        x, y = data.get("x"), data.get("y")
        if isinstance(x, bool) or isinstance(y, bool):
            return None
        if not isinstance(x, (int, float)) or not isinstance(y, (int, float)):
            return None
        return cls(float(x), float(y))


@dataclass
class Choice:
    id: str
    label: str
    next_node_id: str
    locked: bool = False
    unlock_cost: int = 0

    def __post_init__(self):
        self.locked = bool(self.locked)
        self.unlock_cost = coerce_unlock_cost(self.locked, self.unlock_cost)

    def to_dict(self):
        return {
            "_id": self.id,
            "label": self.label,
            "nextNodeId": self.next_node_id,
            "locked": self.locked,
            "unlockCost": self.unlock_cost,
        }

    @classmethod
    def from_dict(cls, data):
        return cls(
            id=str(data.get("_id") or ""),
            label=data.get("label") or "",
            next_node_id=data.get("nextNodeId") or "",
            locked=data.get("locked", False),
            unlock_cost=data.get("unlockCost", 0),
        )


@dataclass
class Node:
    id: str
    text: str = ""
    image: str = ""
    notes: str = ""
    color: str = DEFAULT_COLOR
    position: Position = field(default_factory=Position)
    choices: list[Choice] = field(default_factory=list)

    def find_choice(self, choice_id) -> Choice | None:
        for choice in self.choices:
            if choice.id == choice_id:
                return choice
        return None

    def get_choice(self, choice_id) -> Choice:
        choice = self.find_choice(choice_id)
        if choice is None:
            raise NotFound("Choice", choice_id)
        return choice

    def to_dict(self, include_notes=True):
        data = {
            "_id": self.id,
            "text": self.text,
            "image": self.image,
            "color": self.color,
            "position": self.position.to_dict(),
            "choices": [choice.to_dict() for choice in self.choices],
        }
        if include_notes:
            data["notes"] = self.notes
        return data

    @classmethod
    def from_dict(cls, data):
        color = data.get("color")
        return cls(
            id=data.get("_id") or "",
            text=data.get("text") or "",
            image=data.get("image") or "",
            notes=data.get("notes") or "",
            color=color if color in COLOR_OPTIONS else DEFAULT_COLOR,
            position=Position.from_dict(data.get("position")) or Position(),
            choices=[Choice.from_dict(c) for c in data.get("choices") or []],
        )


@dataclass
class Ending:
    id: str
    label: str = ""
    type: EndingType = EndingType.OTHER
    text: str = ""
    image: str = ""
    notes: str = ""
    position: Position = field(default_factory=Position)

    def to_dict(self, include_notes=True):
        data = {
            "_id": self.id,
            "label": self.label,
            "type": self.type.value,
            "text": self.text,
            "image": self.image,
            "position": self.position.to_dict(),
        }
        if include_notes:
            data["notes"] = self.notes
        return data

    @classmethod
    def from_dict(cls, data):
        ending_id = data.get("_id") or ""
        return cls(
            id=ending_id,
            label=data.get("label") or ending_id,
            type=EndingType.coerce(data.get("type")),
            text=data.get("text") or "",
            image=data.get("image") or "",
            notes=data.get("notes") or "",
            position=Position.from_dict(data.get("position")) or Position(),
        )


@dataclass
class ImageRef:
    url: str
    storage_id: str
    title: str = ""

    def to_dict(self):
        return {"url": self.url, "storageId": self.storage_id, "title": self.title}

    @classmethod
    def from_dict(cls, data):
        if isinstance(data, str):
            return cls(url=data, storage_id="", title=data)
        url = data.get("url") or ""
        return cls(
            url=url,
            storage_id=data.get("storageId") or data.get("publicId") or "",
            title=data.get("title") or url,
        )


# Keys kept in their own table columns rather than in the JSON document.
COLUMN_FIELDS = ("id", "title", "status", "origin", "authorId", "displayOrder")


@dataclass
class Story:
    id: int | None = None
    title: str = ""
    description: str = ""
    notes: str = ""
    cover_image: str = ""
    status: StoryStatus = StoryStatus.PRIVATE
    origin: Origin = Origin.SYSTEM
    author_id: int | None = None
    categories: list[str] = field(default_factory=list)
    start_node_id: str | None = None
    display_order: int = 0
    images: list[ImageRef] = field(default_factory=list)
    nodes: list[Node] = field(default_factory=list)
    endings: list[Ending] = field(default_factory=list)
    version: int = 0

    # lookups

    def find_node(self, node_id) -> Node | None:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def find_ending(self, ending_id) -> Ending | None:
        for ending in self.endings:
            if ending.id == ending_id:
                return ending
        return None

    def get_node(self, node_id) -> Node:
        node = self.find_node(node_id)
        if node is None:
            raise NotFound("Node", node_id)
        return node

    def get_ending(self, ending_id) -> Ending:
        ending = self.find_ending(ending_id)
        if ending is None:
            raise NotFound("Ending", ending_id)
        return ending

    def entity_ids(self) -> set[str]:
        return {n.id for n in self.nodes} | {e.id for e in self.endings}

    def destination_kind(self, destination) -> str | None:
        if self.find_node(destination) is not None:
            return "node"
        if self.find_ending(destination) is not None:
            return "ending"
        return None

    def iter_choices(self):
        for node in self.nodes:
            for choice in node.choices:
                yield node, choice

    def dangling_choices(self) -> list[tuple[Node, Choice]]:
        ids = self.entity_ids()
        return [(n, c) for n, c in self.iter_choices() if c.next_node_id not in ids]

    # traversal

    def reachable_ids(self, start=None) -> set[str]:
        """Ids of every node and ending reachable from ``start`` (default: the start node)."""
        start = start if start is not None else self.start_node_id
        if not start or self.destination_kind(start) is None:
            return set()
        seen = {start}
        queue = deque([start])
        while queue:
            node = self.find_node(queue.popleft())
            if node is None:
                continue
            for choice in node.choices:
                target = choice.next_node_id
                if target not in seen and self.destination_kind(target) is not None:
                    seen.add(target)
                    queue.append(target)
        return seen

    def has_path_to_ending(self, ending_type=EndingType.TRUE, start=None) -> bool:
        reachable = self.reachable_ids(start)
        return any(e.type is ending_type and e.id in reachable for e in self.endings)

    def unreachable_ids(self) -> list[str]:
        reachable = self.reachable_ids()
        ordered = [n.id for n in self.nodes] + [e.id for e in self.endings]
        return [entity_id for entity_id in ordered if entity_id not in reachable]

    def count_endings(self, ending_type=None) -> int:
        if ending_type is None:
            return len(self.endings)
        return sum(1 for e in self.endings if e.type is ending_type)

    def story_map(self):
        """Vertices and edges for the visual editor's map view."""
        vertices = []
        edges = []
        for node in self.nodes:
            preview = node.text.strip()
            if len(preview) > 60:
                preview = preview[:57] + "..."
            vertices.append(
                {
                    "id": node.id,
                    "kind": "node",
                    "text": preview,
                    "color": node.color,
                    "position": node.position.to_dict(),
                    "isStart": node.id == self.start_node_id,
                }
            )
            for choice in node.choices:
                edges.append(
                    {
                        "from": node.id,
                        "to": choice.next_node_id,
                        "label": choice.label,
                        "locked": choice.locked,
                    }
                )
        for ending in self.endings:
            vertices.append(
                {
                    "id": ending.id,
                    "kind": "ending",
                    "text": ending.label,
                    "type": ending.type.value,
                    "position": ending.position.to_dict(),
                    "isStart": False,
                }
            )
        return {"nodes": vertices, "edges": edges, "unreachable": self.unreachable_ids()}

    # serialization

    def to_dict(self, include_notes=True):
        data = {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "coverImage": self.cover_image,
            "status": self.status.value,
            "origin": self.origin.value,
            "authorId": self.author_id,
            "categories": list(self.categories),
            "startNodeId": self.start_node_id,
            "displayOrder": self.display_order,
            "images": [image.to_dict() for image in self.images],
            "nodes": [node.to_dict(include_notes) for node in self.nodes],
            "endings": [ending.to_dict(include_notes) for ending in self.endings],
        }
        if include_notes:
            data["notes"] = self.notes
        return data

    def to_document(self):
        data = self.to_dict()
        for key in COLUMN_FIELDS:
            data.pop(key, None)
        return data

    def summary(self):
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "coverImage": self.cover_image,
            "status": self.status.value,
            "origin": self.origin.value,
            "authorId": self.author_id,
            "categories": list(self.categories),
            "displayOrder": self.display_order,
            "totalEndings": len(self.endings),
        }

    @classmethod
    def from_dict(cls, data):
        return cls(
            id=data.get("id"),
            title=data.get("title") or "",
            description=data.get("description") or "",
            notes=data.get("notes") or "",
            cover_image=data.get("coverImage") or "",
            status=StoryStatus(data.get("status") or StoryStatus.PRIVATE.value),
            origin=Origin(data.get("origin") or Origin.SYSTEM.value),
            author_id=data.get("authorId"),
            categories=list(data.get("categories") or []),
            start_node_id=data.get("startNodeId") or None,
            display_order=int(data.get("displayOrder") or 0),
            images=[ImageRef.from_dict(i) for i in data.get("images") or []],
            nodes=[Node.from_dict(n) for n in data.get("nodes") or []],
            endings=[Ending.from_dict(e) for e in data.get("endings") or []],
            version=int(data.get("version") or 0),
        )
