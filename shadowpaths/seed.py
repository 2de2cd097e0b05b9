"""Bulk-load stories in the seed format.

Run with ``flask --app shadowpaths seed`` (built-in sample) or
``flask --app shadowpaths seed --file stories.json``. The file holds one
story object or a list of them::

    {"title": "...", "nodes": [{"id": "start", "text": "...",
      "choices": [{"label": "...", "next": "cellar"}]}],
     "endings": [{"id": "cellar", "label": "...", "type": "death"}]}
"""
import json
import logging

import click
from flask.cli import with_appcontext

from . import store
from .errors import ValidationFailed
from .graph import Origin, StoryStatus
from .validation import parse_seed

logger = logging.getLogger(__name__)

SAMPLE_STORIES = [
    {
        "title": "The Drowned Bell",
        "description": "Every night at low tide a bell rings under the harbour. Tonight you go looking for it.",
        "categories": ["mystery", "fantasy"],
        "nodes": [
            {
                "id": "quay",
                "text": "The tide has pulled back further than anyone remembers. Below the quay, "
                "a path of wet stones leads out toward the sound of a bell.",
                "choices": [
                    {"label": "Follow the stones", "next": "flats"},
                    {"label": "Ask the harbourmaster first", "next": "harbourmaster"},
                ],
            },
            {
                "id": "harbourmaster",
                "text": "The harbourmaster pours you tea and will not look at the window. "
                "'The bell belongs to the chapel that went under in the great storm,' she says.",
                "choices": [
                    {"label": "Borrow her lantern and go", "next": "flats"},
                    {"label": "Stay until morning", "next": "morning"},
                ],
            },
            {
                "id": "flats",
                "text": "Halfway out, the stones give way to a drowned street. A chapel door "
                "stands open in the mud, and the ringing comes from inside.",
                "choices": [
                    {"label": "Step inside the chapel", "next": "chapel"},
                    {"label": "Climb the bell tower", "next": "tower", "locked": True, "unlockCost": 15},
                    {"label": "Turn back before the tide", "next": "tide"},
                ],
            },
            {
                "id": "chapel",
                "text": "Pews rot under a skin of weed. On the altar lies a rope, still swinging, "
                "tied to nothing you can see.",
                "choices": [
                    {"label": "Pull the rope", "next": "tide"},
                    {"label": "Cut the rope", "next": "silence"},
                ],
            },
            {
                "id": "tower",
                "text": "From the top of the tower you can see the whole drowned town laid out "
                "beneath the water, every window lit.",
                "choices": [{"label": "Ring the bell yourself", "next": "keeper"}],
            },
        ],
        "endings": [
            {
                "id": "morning",
                "label": "A Quiet Morning",
                "type": "other",
                "text": "By dawn the tide is high again and the bell is silent. You never learn what rang it.",
            },
            {
                "id": "tide",
                "label": "The Tide Returns",
                "type": "death",
                "text": "The water comes back faster than it left.",
            },
            {
                "id": "silence",
                "label": "Silence",
                "type": "true",
                "text": "The ringing stops. Far out in the bay, lights go out one by one, and the town sleeps.",
            },
            {
                "id": "keeper",
                "label": "The New Keeper",
                "type": "secret",
                "text": "The bell answers you. From now on it will ring only when you ask it to.",
            },
        ],
    }
]


def import_story(payload, status=StoryStatus.PUBLIC.value):
    """Validate one seed story and store it as a system story."""
    story = parse_seed(payload)
    try:
        story.status = StoryStatus(status)
    except ValueError:
        raise ValidationFailed([f"Unknown status '{status}'"]) from None
    story.origin = Origin.SYSTEM
    story.author_id = None
    store.create_story(story)
    logger.info(
        "Imported story %s '%s' (%d passages, %d endings)",
        story.id,
        story.title,
        len(story.nodes),
        len(story.endings),
    )
    return story


def load_seed_file(path):
    with open(path, encoding="utf-8") as handle:
        data = json.load(handle)
    return data if isinstance(data, list) else [data]


@click.command("seed")
@click.option("--file", "path", type=click.Path(exists=True, dir_okay=False), help="JSON file with one story or a list.")
@click.option(
    "--status",
    default=StoryStatus.PUBLIC.value,
    type=click.Choice([s.value for s in StoryStatus]),
    show_default=True,
)
@with_appcontext
def seed_command(path, status):
    """Import seed stories into the database."""
    payloads = load_seed_file(path) if path else SAMPLE_STORIES
    imported = 0
    for index, payload in enumerate(payloads, start=1):
        try:
            import_story(payload, status=status)
        except ValidationFailed as exc:
            click.echo(f"Story #{index} skipped:", err=True)
            for problem in exc.errors:
                click.echo(f"  - {problem}", err=True)
            continue
        imported += 1
    click.echo(f"Imported {imported} of {len(payloads)} stories.")
