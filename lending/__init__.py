from flask import Flask, jsonify

from lending.config import Config
from lending.extensions import db, migrate, jwt, mail, cache
from lending.services.cache_service import CacheService


def create_app(config_class=Config):
    app = Flask(__name__)
    app.config.from_object(config_class)

    # 1) Extensions
    db.init_app(app)
    migrate.init_app(app, db)
    jwt.init_app(app)
    mail.init_app(app)
    cache.init_app(app)
    app.extensions["library_cache"] = CacheService(cache)

    # 2) Models, so relationships resolve and migrations see every table
    from lending.models import book, borrow, course, library_analytics, library_event, mail_log, notification, user  # noqa: F401

    # 3) API blueprints
    from lending.controllers.borrow_controller import borrow_bp
    from lending.controllers.library_controller import library_bp
    from lending.controllers.library_books_controller import library_books_bp
    from lending.controllers.analytics_controller import analytics_bp
    from lending.controllers.notification_controller import notif_bp
    app.register_blueprint(borrow_bp, url_prefix="/borrows")
    app.register_blueprint(library_bp)
    app.register_blueprint(library_books_bp)
    app.register_blueprint(analytics_bp)
    app.register_blueprint(notif_bp)

    @app.get("/health")
    def health():
        return jsonify({"ok": True})

    @app.cli.command("init-db")
    def init_db():
        """Create missing tables (use `flask db upgrade` once migrations exist)."""
        db.create_all()

    # 4) Scheduler (expiry sweep + analytics)
    if app.config.get("SCHEDULER_ENABLED"):
        from lending.tasks.scheduler import start_scheduler
        start_scheduler(app)

    return app
