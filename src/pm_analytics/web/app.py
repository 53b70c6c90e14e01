"""Flask application factory for the PM analytics web interface."""

from flask import Flask


def create_app() -> Flask:
    """Create and configure the Flask application."""
    app = Flask(__name__)

    app.config["SECRET_KEY"] = "pm-analytics-local-dev"

    from pm_analytics.web.routes import bp
    app.register_blueprint(bp)

    return app
