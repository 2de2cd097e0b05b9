"""Load and save whole Story and User aggregates.

Writes are conditional on the version that was read, so two requests that
loaded the same document cannot both commit: the second one fails with
ConcurrentUpdate instead of silently overwriting the first.
"""
import logging
from contextlib import contextmanager

from sqlalchemy import func, or_, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from .accounts import User
from .errors import ConcurrentUpdate, StorageFailure, ValidationFailed
from .extensions import db
from .graph import Story
from .models import StoryRecord, UserRecord, utcnow

logger = logging.getLogger(__name__)


@contextmanager
def _storage(action):
    try:
        yield
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.error("Storage failure while %s: %s", action, exc)
        raise StorageFailure(f"Storage failure while {action}") from exc


def _story_from_record(record):
    data = dict(record.document or {})
    data.update(
        id=record.id,
        title=record.title,
        status=record.status,
        origin=record.origin,
        authorId=record.author_id,
        displayOrder=record.display_order,
        version=record.version,
    )
    return Story.from_dict(data)


def _story_columns(story):
    return {
        "title": story.title,
        "status": story.status.value,
        "origin": story.origin.value,
        "author_id": story.author_id,
        "display_order": story.display_order,
        "document": story.to_document(),
    }


def _user_from_record(record):
    data = dict(record.document or {})
    data.update(
        id=record.id,
        username=record.username,
        email=record.email,
        role=record.role,
        version=record.version,
    )
    return User.from_dict(data)


def _user_columns(user):
    return {
        "username": user.username,
        "email": user.email,
        "role": user.role.value,
        "document": user.to_document(),
    }


def _conditional_update(model, entity, values, kind):
    stmt = (
        update(model)
        .where(model.id == entity.id, model.version == entity.version)
        .values(version=entity.version + 1, **values)
        .execution_options(synchronize_session=False)
    )
    result = db.session.execute(stmt)
    if result.rowcount != 1:
        db.session.rollback()
        logger.warning("Rejected stale write to %s %s at version %s", kind, entity.id, entity.version)
        raise ConcurrentUpdate(kind, entity.id)


# stories


def find_story(story_id):
    with _storage("loading a story"):
        record = db.session.get(StoryRecord, story_id)
    return _story_from_record(record) if record else None


def find_stories(ids=None, status=None, origin=None, author_id=None):
    query = select(StoryRecord)
    if ids is not None:
        ids = list(ids)
        if not ids:
            return []
        query = query.where(StoryRecord.id.in_(ids))
    if status is not None:
        if isinstance(status, (list, tuple, set, frozenset)):
            query = query.where(StoryRecord.status.in_([getattr(s, "value", s) for s in status]))
        else:
            query = query.where(StoryRecord.status == getattr(status, "value", status))
    if origin is not None:
        query = query.where(StoryRecord.origin == getattr(origin, "value", origin))
    if author_id is not None:
        query = query.where(StoryRecord.author_id == author_id)
    query = query.order_by(StoryRecord.display_order.asc(), StoryRecord.id.desc())
    with _storage("listing stories"):
        records = db.session.scalars(query).all()
    return [_story_from_record(r) for r in records]


def create_story(story):
    record = StoryRecord(version=1, **_story_columns(story))
    with _storage("creating a story"):
        db.session.add(record)
        db.session.commit()
        story.id = record.id
        story.version = record.version
    return story


def save_story(story):
    with _storage("saving a story"):
        _conditional_update(StoryRecord, story, {**_story_columns(story), "updated_at": utcnow()}, "Story")
        db.session.commit()
    story.version += 1
    return story


def save_stories(stories):
    """Save several stories in one transaction; all or nothing."""
    with _storage("saving stories"):
        for story in stories:
            _conditional_update(StoryRecord, story, {**_story_columns(story), "updated_at": utcnow()}, "Story")
        db.session.commit()
    for story in stories:
        story.version += 1
    return stories


def delete_story(story_id):
    with _storage("deleting a story"):
        record = db.session.get(StoryRecord, story_id)
        if record is None:
            return False
        db.session.delete(record)
        db.session.commit()
    return True


def count_stories():
    with _storage("counting stories"):
        return db.session.scalar(select(func.count()).select_from(StoryRecord))


# users


def find_user(user_id):
    with _storage("loading a user"):
        record = db.session.get(UserRecord, user_id)
    return _user_from_record(record) if record else None


def find_user_by_username(username):
    with _storage("loading a user"):
        record = db.session.scalars(
            select(UserRecord).where(UserRecord.username == username)
        ).first()
    return _user_from_record(record) if record else None


def find_users(query=None):
    stmt = select(UserRecord).order_by(UserRecord.id.asc())
    if query:
        pattern = f"%{query}%"
        stmt = stmt.where(or_(UserRecord.username.ilike(pattern), UserRecord.email.ilike(pattern)))
    with _storage("listing users"):
        records = db.session.scalars(stmt).all()
    return [_user_from_record(r) for r in records]


def create_user(user):
    record = UserRecord(version=1, **_user_columns(user))
    with _storage("creating a user"):
        try:
            db.session.add(record)
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            raise ValidationFailed(["Username or email already exists"]) from None
        user.id = record.id
        user.version = record.version
    return user


def save_user(user):
    with _storage("saving a user"):
        try:
            _conditional_update(UserRecord, user, _user_columns(user), "User")
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            raise ValidationFailed(["Username or email already exists"]) from None
    user.version += 1
    return user


def delete_user(user_id):
    """Remove a user; their stories stay, without an author."""
    with _storage("deleting a user"):
        record = db.session.get(UserRecord, user_id)
        if record is None:
            return False
        db.session.execute(
            update(StoryRecord)
            .where(StoryRecord.author_id == user_id)
            .values(author_id=None, version=StoryRecord.version + 1)
            .execution_options(synchronize_session=False)
        )
        db.session.delete(record)
        db.session.commit()
    return True


def count_users():
    with _storage("counting users"):
        return db.session.scalar(select(func.count()).select_from(UserRecord))
