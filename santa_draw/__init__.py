from __future__ import annotations

import os
from typing import Any, Mapping

from flask import Flask

from .extensions import db, login_manager, migrate, csrf
from .policies import is_admin_user
from .security import hash_admin_password
from .views.admin import admin_bp
from .views.game import game_bp


def create_app(config: Mapping[str, Any] | None = None) -> Flask:
    app = Flask(__name__)

    app.config["SECRET_KEY"] = os.environ.get("SECRET_KEY", "dev-secret-change-me")
    app.config["SQLALCHEMY_DATABASE_URI"] = os.environ.get("DATABASE_URL", "sqlite:///santa_draw.db")
    app.config["SQLALCHEMY_TRACK_MODIFICATIONS"] = False

    # Shared organizer secret for the admin panel
    app.config["ADMIN_PASSWORD"] = os.environ.get("ADMIN_PASSWORD", "")

    app.config["EVENT_TITLE"] = os.environ.get("EVENT_TITLE", "Secret Santa 2025")
    app.config["SHUFFLE_STEPS"] = int(os.environ.get("SHUFFLE_STEPS", "8"))
    app.config["SHUFFLE_INTERVAL_MS"] = int(os.environ.get("SHUFFLE_INTERVAL_MS", "350"))
    app.config["COMMIT_RETRIES"] = int(os.environ.get("COMMIT_RETRIES", "3"))
    app.config["TICKET_TTL_SECONDS"] = int(os.environ.get("TICKET_TTL_SECONDS", "900"))
    app.config["TICKET_ENC_KEY"] = os.environ.get("TICKET_ENC_KEY", "")
    app.config["LOG_LEVEL"] = os.environ.get("LOG_LEVEL", "INFO")

    if config:
        app.config.update(config)

    # Only the hash is kept around once the app is configured
    password = app.config.pop("ADMIN_PASSWORD", "")
    app.config["ADMIN_PASSWORD_HASH"] = hash_admin_password(password) if password else None
    app.logger.setLevel(app.config["LOG_LEVEL"])
    if not password:
        app.logger.warning("ADMIN_PASSWORD is not set; the admin panel cannot be unlocked")

    db.init_app(app)
    login_manager.init_app(app)
    migrate.init_app(app, db)
    csrf.init_app(app)

    app.register_blueprint(game_bp)
    app.register_blueprint(admin_bp)

    @app.context_processor
    def inject_global_state():
        return {
            "event_title": app.config["EVENT_TITLE"],
            "is_admin": is_admin_user(),
        }

    with app.app_context():
        db.create_all()

    return app
