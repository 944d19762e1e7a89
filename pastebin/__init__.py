from __future__ import annotations

import os

from flask import Flask
from flask_cors import CORS

from .config import get_config
from .db import init_db
from .observability import init_observability
from .api.pastes import api_bp
from .api.pages import pages_bp


def create_app(env_name: str | None = None) -> Flask:
    """
    Application factory for the pastebin service.

    The configuration is selected based on the provided ``env_name`` or,
    if not given, the ``APP_ENV`` environment variable (falling back to
    ``development``).
    """
    if env_name is None:
        env_name = os.getenv("APP_ENV", "development")

    app = Flask(__name__)
    app_config = get_config(env_name)
    app.config.from_object(app_config)

    CORS(app)

    # Initialize infrastructure layers
    init_db(app)
    init_observability(app)

    app.register_blueprint(api_bp)
    app.register_blueprint(pages_bp)

    return app
