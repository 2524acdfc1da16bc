"""Application-wide Flask extensions."""

from __future__ import annotations

from flask_login import LoginManager
from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy

from .services.child_cache import ChildIdCache


db = SQLAlchemy()
migrate = Migrate()
login_manager = LoginManager()
child_cache = ChildIdCache()
