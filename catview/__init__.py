import os
from pathlib import Path

from flask import Flask, jsonify

from .constants import (
    DEFAULT_CACHE_MAXSIZE,
    DEFAULT_CATEGORIES_PER_PAGE,
    DEFAULT_MAX_CATEGORY_DEPTH,
)
from .errors import CategoryError
from .extensions import child_cache, db, login_manager, migrate
from .models import User


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def create_app(test_config=None):
    app = Flask(__name__, instance_relative_config=True)

    default_sqlite_path = Path(app.instance_path) / "catview.sqlite"

    database_uri = os.environ.get("DATABASE_URI", "")
    if not database_uri.strip():
        database_uri = f"sqlite:///{default_sqlite_path}"

    secret_key = os.environ.get("SECRET_KEY")
    if not secret_key or not secret_key.strip():
        secret_key = "dev-secret-key"

    app.config.from_mapping(
        SECRET_KEY=secret_key,
        SQLALCHEMY_DATABASE_URI=database_uri,
        SQLALCHEMY_TRACK_MODIFICATIONS=False,
        CATEGORY_CACHE_MAXSIZE=_env_int("CATEGORY_CACHE_MAXSIZE", DEFAULT_CACHE_MAXSIZE),
        CATEGORY_CACHE_TTL=_env_int("CATEGORY_CACHE_TTL", 0),
        MAX_CATEGORY_DEPTH=_env_int("MAX_CATEGORY_DEPTH", DEFAULT_MAX_CATEGORY_DEPTH),
        CATEGORIES_PER_PAGE=_env_int("CATEGORIES_PER_PAGE", DEFAULT_CATEGORIES_PER_PAGE),
        LOG_LEVEL=os.environ.get("LOG_LEVEL", "INFO").upper(),
    )

    # Ensure the instance folder exists so SQLite can create the database file.
    default_sqlite_path.parent.mkdir(parents=True, exist_ok=True)

    if test_config:
        app.config.update(test_config)

    app.logger.setLevel(app.config["LOG_LEVEL"])

    register_extensions(app)
    register_blueprints(app)
    register_error_handlers(app)
    register_commands(app)

    @login_manager.user_loader
    def load_user(user_id):
        return db.session.get(User, int(user_id))

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({"success": False, "message": "Authentication required"}), 401

    return app


def register_extensions(app: Flask) -> None:
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    child_cache.init_app(app)


def register_blueprints(app: Flask) -> None:
    from .views import api, auth, categories

    app.register_blueprint(auth.bp)
    app.register_blueprint(categories.bp)
    app.register_blueprint(api.bp)


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(CategoryError)
    def handle_category_error(error: CategoryError):
        app.logger.info("Category request rejected: %s", error.message)
        return jsonify(error.to_dict()), error.status_code


def register_commands(app: Flask) -> None:
    from .models import ensure_demo_categories, ensure_seed_data

    @app.cli.command("seed")
    def seed() -> None:
        """Seed the database with an administrator and a demo category tree."""
        ensure_seed_data()
        if ensure_demo_categories():
            child_cache.clear()
        print("Seed data ensured.")

    @app.cli.command("init-db")
    def init_db() -> None:
        """Create database tables based on the current models."""
        db.create_all()
        print("Database tables created.")

    @app.cli.command("clear-category-cache")
    def clear_category_cache() -> None:
        """Drop every memoized child id list."""
        child_cache.clear()
        print("Category cache cleared.")
