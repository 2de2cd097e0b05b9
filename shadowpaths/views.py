from flask import Blueprint, current_app, g, jsonify

from . import store
from .economy import is_choice_open, unlock_choice
from .errors import PermissionDenied
from .guards import load_visible_story, login_required
from .progress import resume_point, visit_ending, visit_node
from .review import can_play, is_visible_to
from .trophies import recompute_user

bp = Blueprint("play", __name__)


def _playable_story(story_id):
    story = load_visible_story(story_id, g.user)
    if not can_play(story, g.user):
        raise PermissionDenied("This story is not open for reading yet")
    return story


def refresh_user_stats(user):
    """Rebuild ``user``'s counters and trophies from the stored stories."""
    stories = store.find_stories(ids=[entry.story_id for entry in user.progress])
    authored = store.find_stories(author_id=user.id)
    report = recompute_user(user, {story.id: story for story in stories}, authored)
    for award in report.awards:
        current_app.logger.info("User %s reached %s on %s", user.id, award.tier, award.key)
    return report


def _choice_view(user, story, node, choice):
    data = choice.to_dict()
    data["available"] = is_choice_open(user, story, node.id, choice)
    data["destination"] = story.destination_kind(choice.next_node_id)
    return data


@bp.get("/play/<int:story_id>")
@login_required
def story_landing(story_id):
    story = _playable_story(story_id)
    entry = g.user.find_progress(story.id)
    return jsonify(
        {
            "story": story.summary(),
            "startNodeId": story.start_node_id,
            "resumeNodeId": resume_point(g.user, story),
            "endingsFound": list(entry.endings_found) if entry else [],
        }
    )


@bp.get("/play/<int:story_id>/nodes/<node_id>")
@login_required
def play_node(story_id, node_id):
    story = _playable_story(story_id)
    node = story.get_node(node_id)
    visit_node(g.user, story, node.id)
    store.save_user(g.user)

    data = node.to_dict(include_notes=False)
    data["choices"] = [_choice_view(g.user, story, node, c) for c in node.choices]
    data["isStart"] = node.id == story.start_node_id
    return jsonify(data)


@bp.get("/play/<int:story_id>/endings/<ending_id>")
@login_required
def play_ending(story_id, ending_id):
    story = _playable_story(story_id)
    ending = story.get_ending(ending_id)
    visit = visit_ending(g.user, story, ending.id, read_reward=current_app.config.get("READ_REWARD", 0))

    awards = []
    if visit.first_discovery:
        awards = refresh_user_stats(g.user).awards
    store.save_user(g.user)

    entry = g.user.find_progress(story.id)
    return jsonify(
        {
            "status": "discovered" if visit.first_discovery else "revisited",
            "ending": ending.to_dict(include_notes=False),
            "reward": visit.reward,
            "awards": [award.to_dict() for award in awards],
            "endingsFound": len(entry.endings_found) if entry else 0,
            "totalEndings": len(story.endings),
        }
    )


@bp.post("/play/<int:story_id>/nodes/<node_id>/choices/<choice_id>/unlock")
@login_required
def unlock(story_id, node_id, choice_id):
    story = _playable_story(story_id)
    result = unlock_choice(g.user, story, node_id, choice_id)
    if not result.charged_now:
        return jsonify(result.to_dict())

    awards = refresh_user_stats(g.user).awards
    store.save_user(g.user)
    current_app.logger.info(
        "User %s unlocked %s in story %s for %s %s",
        g.user.id,
        result.key,
        story.id,
        result.charged,
        result.currency,
    )
    return jsonify({**result.to_dict(), "awards": [award.to_dict() for award in awards]})


# ME


@bp.get("/me/library")
@login_required
def library():
    shelf = []
    for story in store.find_stories():
        if not is_visible_to(story, g.user):
            continue
        entry = g.user.find_progress(story.id)
        shelf.append(
            {
                **story.summary(),
                "started": entry is not None,
                "endingsFound": len(entry.endings_found) if entry else 0,
                "resumeNodeId": resume_point(g.user, story),
                "mine": story.author_id == g.user.id,
            }
        )
    return jsonify(shelf)


@bp.get("/me/stats")
@login_required
def stats():
    report = refresh_user_stats(g.user)
    store.save_user(g.user)
    return jsonify(
        {
            **report.to_dict(),
            "currency": g.user.currency,
            "authorCurrency": g.user.author_currency,
            "trophies": dict(g.user.trophies),
        }
    )


@bp.get("/me/notifications")
@login_required
def notifications():
    pending = g.user.pop_notifications()
    if pending:
        store.save_user(g.user)
    return jsonify([n.to_dict() for n in pending])
