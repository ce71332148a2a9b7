# ABOUTME: Flask application factory for the Alaya web UI.
# ABOUTME: Migrates the database before serving and wires blueprints, teardown, and template globals.

import logging
from typing import Any

from flask import Flask, g

from alaya.config import Settings
from alaya.db.connection import open_database
from alaya.gpt import GptClient, GptConfig
from alaya.web import auth, books
from alaya.web.db import close_db

logger = logging.getLogger(__name__)


def create_app(settings: Settings | None = None, gpt_client: GptClient | None = None) -> Flask:
    """Build the web application.

    The schema is brought up to date here, so a MigrationError stops the
    process before any request is served.
    """
    settings = settings or Settings.from_env()

    conn = open_database(settings.db_path)
    conn.close()
    logger.info("Database ready at %s", settings.db_path)

    app = Flask(__name__)
    app.config["ALAYA_SETTINGS"] = settings
    app.extensions["alaya_gpt"] = gpt_client or GptClient(
        GptConfig(api_key=settings.openai_api_key)
    )

    app.teardown_appcontext(close_db)
    app.register_blueprint(auth.bp)
    app.register_blueprint(books.bp)

    @app.context_processor
    def inject_account() -> dict[str, Any]:
        user = g.get("user")
        return {
            "is_authenticated": user is not None,
            "username": user.username if user else "",
            "signups_disabled": settings.signups_disabled,
        }

    return app
