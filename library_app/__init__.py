from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException

from library_app.config import Config
from library_app.extensions import db, jwt, mail
from library_app.db_objects import ensure_db_objects


def _register_error_handlers(app):
    @app.errorhandler(Exception)
    def _unexpected(e):
        if isinstance(e, HTTPException):
            return e
        app.logger.exception(f"[app] Unhandled error: {e}")
        return jsonify({"success": False, "error": "internal_error", "message": "Internal server error"}), 500


def create_app(overrides=None):
    app = Flask(__name__)
    app.config.from_object(Config)
    if overrides:
        app.config.update(overrides)

    # 1) db first; the locking hooks need the engine
    db.init_app(app)

    # 2) sqlite locking hooks + tables
    ensure_db_objects(app)

    # 3) other extensions
    jwt.init_app(app)
    mail.init_app(app)

    from library_app.controllers.auth_controller import auth_bp
    from library_app.controllers.borrow_controller import borrow_bp
    from library_app.controllers.notification_controller import notif_bp
    app.register_blueprint(auth_bp, url_prefix="/auth")
    app.register_blueprint(borrow_bp, url_prefix="/borrow")
    app.register_blueprint(notif_bp, url_prefix="/notifications")

    _register_error_handlers(app)

    from library_app.cli import register_cli
    register_cli(app)

    @app.get("/health")
    def health():
        return jsonify({"ok": True})

    if app.config.get("SCHEDULER_ENABLED"):
        from library_app.tasks.scheduler import start_scheduler
        start_scheduler(app)

    return app
