import os

from flask import Flask, g, jsonify, request, send_from_directory

from . import store
from .accounts import User
from .config import Config
from .errors import ShadowPathsError, ValidationFailed
from .extensions import db
from .graph import Origin, StoryStatus
from .guards import (
    admin_required,
    api_key_required,
    error,
    json_body,
    load_user,
    load_visible_story,
    login_required,
    optional_user,
)
from .images import LocalImageStore, get_image_store
from .review import can_edit, is_visible_to, require_editor
from .seed import import_story, seed_command
from .trophies import evaluate_author_trophies
from .validation import Strictness, normalize_story


def create_app(config_object=Config):
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(config_object)
    db.init_app(app)

    upload_folder = app.config.get("UPLOAD_FOLDER") or os.path.join(app.instance_path, "uploads")
    app.extensions["image_store"] = LocalImageStore(
        upload_folder,
        url_prefix=app.config.get("UPLOAD_URL_PREFIX", "/uploads"),
        allowed_extensions=app.config.get("ALLOWED_IMAGE_EXTENSIONS"),
    )

    # Create tables
    with app.app_context():
        db.create_all()

    from .views import bp as play_bp
    from .views_admin import bp as admin_bp
    from .views_author import bp as author_bp

    app.register_blueprint(play_bp)
    app.register_blueprint(author_bp)
    app.register_blueprint(admin_bp)
    app.cli.add_command(seed_command)

    @app.errorhandler(ShadowPathsError)
    def handle_domain_error(exc):
        if exc.status_code >= 500:
            app.logger.error("%s %s failed: %s", request.method, request.path, exc.message)
        return error(exc.message, exc.status_code, **exc.details())

    # READ ENDPOINTS

    @app.get("/stories")
    @optional_user
    def list_stories():
        status = request.args.get("status")
        origin = request.args.get("origin")
        category = (request.args.get("category") or "").strip().lower()

        stories = store.find_stories(status=status or None, origin=origin or None)
        stories = [s for s in stories if is_visible_to(s, g.user)]
        if category:
            stories = [s for s in stories if category in s.categories]
        return jsonify([s.summary() for s in stories])

    @app.get("/stories/<int:story_id>")
    @optional_user
    def get_story(story_id):
        story = load_visible_story(story_id, g.user)
        return jsonify(story.to_dict(include_notes=can_edit(story, g.user)))

    @app.get("/stories/<int:story_id>/map")
    @login_required
    def get_story_map(story_id):
        story = load_visible_story(story_id, g.user)
        require_editor(story, g.user)
        return jsonify(story.story_map())

    # WRITE ENDPOINTS (PROTECTED)

    @app.post("/stories")
    @login_required
    def create_story():
        data = json_body()
        story = normalize_story(data, Strictness.DRAFT)
        if g.user.is_admin and data.get("origin") == Origin.SYSTEM.value:
            story.origin = Origin.SYSTEM
        else:
            story.origin = Origin.USER
            story.author_id = g.user.id
        story.status = StoryStatus.PRIVATE
        store.create_story(story)
        app.logger.info("User %s created story %s", g.user.id, story.id)

        if story.origin is Origin.USER:
            awards = evaluate_author_trophies(g.user, store.find_stories(author_id=g.user.id))
            if awards:
                store.save_user(g.user)
        return jsonify(story.to_dict()), 201

    @app.post("/stories/import")
    @admin_required
    def import_seed():
        data = json_body()
        story = import_story(data, status=data.get("status") or StoryStatus.PUBLIC.value)
        return jsonify(story.summary()), 201

    @app.delete("/stories/<int:story_id>")
    @login_required
    def delete_story(story_id):
        story = load_visible_story(story_id, g.user)
        require_editor(story, g.user)
        store.delete_story(story.id)

        images = get_image_store()
        for image in story.images:
            if image.storage_id:
                images.delete(image.storage_id)
        app.logger.info("User %s deleted story %s", g.user.id, story.id)
        return jsonify({"deleted": True})

    # USERS

    @app.post("/users")
    @api_key_required
    def create_user():
        data = json_body()
        username = (data.get("username") or "").strip()
        email = (data.get("email") or "").strip().lower()

        problems = []
        if not username:
            problems.append("username is required")
        if "@" not in email:
            problems.append("a valid email is required")
        if problems:
            raise ValidationFailed(problems)

        user = store.create_user(User(username=username, email=email))
        return jsonify(user.to_dict()), 201

    @app.get("/users/<int:user_id>")
    @login_required
    def get_user(user_id):
        user = load_user(user_id)
        if g.user.is_admin or g.user.id == user.id:
            return jsonify(user.to_dict())
        return jsonify(
            {
                "id": user.id,
                "username": user.username,
                "trophies": dict(user.trophies),
                "storiesRead": user.stories_read,
                "totalEndingsFound": user.total_endings_found,
            }
        )

    @app.get("/uploads/<path:filename>")
    def uploaded_file(filename):
        return send_from_directory(get_image_store().folder, filename)

    @app.get("/health")
    def health():
        return jsonify({"status": "ok"})

    return app


if __name__ == "__main__":
    create_app().run(debug=True)
