import pytest

from shadowpaths import create_app, store
from shadowpaths.accounts import Role, User
from shadowpaths.config import Config
from shadowpaths.extensions import db
from shadowpaths.graph import Origin, StoryStatus

from tests.helpers import build_story

API_KEY = "test-api-key"


class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    API_KEY = API_KEY
    READ_REWARD = 5


@pytest.fixture
def app(tmp_path):
    class _Config(TestingConfig):
        UPLOAD_FOLDER = str(tmp_path / "uploads")

    app = create_app(_Config)
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_user(app):
    counter = iter(range(1, 1000))

    def _make(username=None, role=Role.USER, currency=0, author_currency=0):
        n = next(counter)
        username = username or f"user{n}"
        user = User(
            username=username,
            email=f"{username}@example.com",
            role=role,
            currency=currency,
            author_currency=author_currency,
        )
        with app.app_context():
            return store.create_user(user)

    return _make


@pytest.fixture
def make_story(app):
    def _make(origin=Origin.SYSTEM, status=StoryStatus.PUBLIC, author_id=None):
        story = build_story(story_id=None, origin=origin, status=status, author_id=author_id)
        with app.app_context():
            return store.create_story(story)

    return _make


@pytest.fixture
def reader(make_user):
    return make_user("reader")


@pytest.fixture
def author(make_user):
    return make_user("author")


@pytest.fixture
def admin(make_user):
    return make_user("admin", role=Role.ADMIN)


def headers_for(user):
    return {"X-API-KEY": API_KEY, "X-User-Id": str(user.id)}


@pytest.fixture
def auth():
    return headers_for


@pytest.fixture
def load_user(app):
    def _load(user_id):
        with app.app_context():
            return store.find_user(user_id)

    return _load


@pytest.fixture
def load_story(app):
    def _load(story_id):
        with app.app_context():
            return store.find_story(story_id)

    return _load
