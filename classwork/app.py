#!/usr/bin/env python3
"""
Classwork - Classroom Assignment Platform
=========================================
Run: python3 -m classwork.app
Then open: http://localhost:3000
"""
import logging

from flask import Flask
from flask_cors import CORS

from classwork.config import config, HOST, PORT, DEBUG
from classwork.auth import init_auth
from classwork.routes import register_routes

logger = logging.getLogger(__name__)


def create_app(overrides=None):
    """Build the Flask app. `overrides` are applied to the global config."""
    if overrides:
        config.update(overrides)

    app = Flask(__name__)
    CORS(app)

    # Auth hook must be registered before the blueprints
    init_auth(app)
    register_routes(app)
    return app


if __name__ == '__main__':
    logging.basicConfig(
        level=logging.DEBUG if DEBUG else logging.INFO,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )
    if config.auth_disabled:
        logger.warning("Authentication is disabled (CLASSWORK_AUTH_DISABLED)")
    create_app().run(host=HOST, port=PORT, debug=DEBUG)
