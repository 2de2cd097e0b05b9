"""Small stories shared by the domain and API tests."""
from shadowpaths.graph import Origin, StoryStatus
from shadowpaths.validation import parse_seed


def story_payload():
    return {
        "title": "The Lighthouse",
        "description": "A short climb with three ways out.",
        "categories": ["mystery"],
        "nodes": [
            {
                "id": "start",
                "text": "You stand at the foot of the lighthouse.",
                "choices": [
                    {"label": "Open the door", "next": "hall"},
                    {"label": "Run along the cliff", "next": "fall"},
                ],
            },
            {
                "id": "hall",
                "text": "A keeper's hall, and a locked stair.",
                "choices": [
                    {"label": "Pay the keeper", "next": "vault", "locked": True, "unlockCost": 10},
                    {"label": "Walk home", "next": "home"},
                ],
            },
            {
                "id": "vault",
                "text": "The lamp room, and the lamp is a crown.",
                "choices": [{"label": "Take the crown", "next": "crown"}],
            },
        ],
        "endings": [
            {"id": "fall", "label": "Over the Edge", "type": "death", "text": "The wind wins."},
            {"id": "home", "type": "other", "text": "Supper is cold but welcome."},
            {"id": "crown", "label": "Keeper of the Light", "type": "true", "text": "The light is yours."},
        ],
    }


def build_story(story_id=1, origin=Origin.SYSTEM, status=StoryStatus.PUBLIC, author_id=None):
    story = parse_seed(story_payload())
    story.id = story_id
    story.origin = origin
    story.status = status
    story.author_id = author_id
    return story


def locked_choice(story):
    return story.get_node("hall").choices[0]
