from datetime import datetime, timezone

from .extensions import db


def utcnow():
    return datetime.now(timezone.utc)


class StoryRecord(db.Model):
    __tablename__ = "stories"
    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(255), nullable=False)
    status = db.Column(db.String(20), nullable=False, default="private")
    origin = db.Column(db.String(10), nullable=False, default="system")
    author_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)
    display_order = db.Column(db.Integer, nullable=False, default=0)
    document = db.Column(db.JSON, nullable=False, default=dict)  # nodes, endings, images, ...
    version = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)


class UserRecord(db.Model):
    __tablename__ = "users"
    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(80), nullable=False, unique=True)
    email = db.Column(db.String(255), nullable=False, unique=True)
    role = db.Column(db.String(10), nullable=False, default="user")
    document = db.Column(db.JSON, nullable=False, default=dict)  # balances, progress, trophies
    version = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
