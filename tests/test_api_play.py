import pytest

from shadowpaths.graph import Origin, StoryStatus

from tests.helpers import locked_choice


@pytest.fixture
def story(make_story):
    return make_story()


def test_catalog_lists_only_listed_stories(client, make_story, author):
    public = make_story()
    soon = make_story(status=StoryStatus.COMING_SOON)
    make_story(status=StoryStatus.PRIVATE)
    make_story(origin=Origin.USER, status=StoryStatus.PENDING, author_id=author.id)

    listed = client.get("/stories").get_json()
    assert sorted(s["id"] for s in listed) == sorted([public.id, soon.id])
    assert client.get("/stories?category=horror").get_json() == []
    assert len(client.get("/stories?status=coming_soon").get_json()) == 1


def test_authors_see_their_own_drafts(client, auth, make_story, author):
    draft = make_story(origin=Origin.USER, status=StoryStatus.PENDING, author_id=author.id)
    listed = client.get("/stories?origin=user", headers=auth(author)).get_json()
    assert [s["id"] for s in listed] == [draft.id]


def test_landing_and_resume(client, auth, reader, story):
    landing = client.get(f"/play/{story.id}", headers=auth(reader)).get_json()
    assert landing["startNodeId"] == "start"
    assert landing["resumeNodeId"] is None

    client.get(f"/play/{story.id}/nodes/hall", headers=auth(reader))
    landing = client.get(f"/play/{story.id}", headers=auth(reader)).get_json()
    assert landing["resumeNodeId"] == "hall"


def test_node_view_annotates_choices(client, auth, reader, story):
    node = client.get(f"/play/{story.id}/nodes/hall", headers=auth(reader)).get_json()
    assert "notes" not in node
    locked, open_ = node["choices"]
    assert locked["available"] is False
    assert locked["destination"] == "node"
    assert open_["available"] is True
    assert open_["destination"] == "ending"

    missing = client.get(f"/play/{story.id}/nodes/attic", headers=auth(reader))
    assert missing.status_code == 404


def test_unplayable_stories_fail_closed(client, auth, reader, make_story):
    soon = make_story(status=StoryStatus.COMING_SOON)
    hidden = make_story(status=StoryStatus.PRIVATE)
    assert client.get(f"/play/{soon.id}/nodes/start", headers=auth(reader)).status_code == 403
    assert client.get(f"/play/{hidden.id}/nodes/start", headers=auth(reader)).status_code == 404


def test_unlock_flow(client, auth, make_user, story, load_user):
    reader = make_user(currency=15)
    url = f"/play/{story.id}/nodes/hall/choices/{locked_choice(story).id}/unlock"

    bought = client.post(url, headers=auth(reader))
    assert bought.status_code == 200
    body = bought.get_json()
    assert body["status"] == "unlocked"
    assert body["charged"] == 10
    assert body["awards"][0]["trophy"] == "pathsUnlocked"

    again = client.post(url, headers=auth(reader)).get_json()
    assert again["status"] == "already_unlocked"

    # 15 - 10 for the unlock + 10 for the bronze pathfinder trophy
    assert load_user(reader.id).currency == 15

    node = client.get(f"/play/{story.id}/nodes/hall", headers=auth(reader)).get_json()
    assert node["choices"][0]["available"] is True


def test_unlock_without_funds(client, auth, reader, story, load_user):
    url = f"/play/{story.id}/nodes/hall/choices/{locked_choice(story).id}/unlock"
    response = client.post(url, headers=auth(reader))
    assert response.status_code == 402
    assert response.get_json() == {
        "error": "Unlock costs 10 but only 0 is available",
        "cost": 10,
        "balance": 0,
        "currency": "currency",
    }
    assert load_user(reader.id).progress == []


def test_open_choice_needs_no_unlock(client, auth, reader, story):
    choice = story.get_node("hall").choices[1]
    url = f"/play/{story.id}/nodes/hall/choices/{choice.id}/unlock"
    assert client.post(url, headers=auth(reader)).get_json()["status"] == "already_available"


def test_endings_are_discovered_once(client, auth, reader, story, load_user):
    first = client.get(f"/play/{story.id}/endings/fall", headers=auth(reader)).get_json()
    assert first["status"] == "discovered"
    assert first["endingsFound"] == 1
    assert first["totalEndings"] == 3
    assert [a["trophy"] for a in first["awards"]] == ["death"]

    again = client.get(f"/play/{story.id}/endings/fall", headers=auth(reader)).get_json()
    assert again["status"] == "revisited"
    assert again["awards"] == []

    user = load_user(reader.id)
    assert user.total_endings_found == 1
    assert user.currency == 10


def test_user_story_endings_pay_author_currency(client, auth, reader, author, make_story, load_user):
    story = make_story(origin=Origin.USER, author_id=author.id)
    response = client.get(f"/play/{story.id}/endings/home", headers=auth(reader)).get_json()
    assert response["reward"] == 5
    assert load_user(reader.id).author_currency == 5


def test_notifications_are_delivered_once(client, auth, reader, story):
    client.get(f"/play/{story.id}/endings/crown", headers=auth(reader))
    pending = client.get("/me/notifications", headers=auth(reader)).get_json()
    assert pending == [{"message": "True Ending trophy reached Bronze!", "amount": 10, "currencyLabel": "coins"}]
    assert client.get("/me/notifications", headers=auth(reader)).get_json() == []


def test_library_and_stats(client, auth, reader, story):
    client.get(f"/play/{story.id}/nodes/start", headers=auth(reader))
    client.get(f"/play/{story.id}/endings/home", headers=auth(reader))

    [entry] = client.get("/me/library", headers=auth(reader)).get_json()
    assert entry["started"] is True
    assert entry["endingsFound"] == 1
    assert entry["resumeNodeId"] is None

    stats = client.get("/me/stats", headers=auth(reader)).get_json()
    assert stats["totalEndingsFound"] == 1
    assert stats["storiesCompleted"] == 0
    assert stats["awards"] == []


def test_profiles(client, auth, reader, author):
    own = client.get(f"/users/{reader.id}", headers=auth(reader)).get_json()
    assert own["email"] == "reader@example.com"
    other = client.get(f"/users/{reader.id}", headers=auth(author)).get_json()
    assert "email" not in other
    assert client.get("/users/999", headers=auth(author)).status_code == 404


def test_registration(client, auth):
    headers = {"X-API-KEY": "test-api-key"}
    created = client.post("/users", json={"username": "ada", "email": "ADA@example.com"}, headers=headers)
    assert created.status_code == 201
    assert created.get_json()["email"] == "ada@example.com"

    duplicate = client.post("/users", json={"username": "ada", "email": "x@example.com"}, headers=headers)
    assert duplicate.status_code == 400
    invalid = client.post("/users", json={"username": "", "email": "nope"}, headers=headers)
    assert len(invalid.get_json()["errors"]) == 2


def test_health(client):
    assert client.get("/health").get_json() == {"status": "ok"}
