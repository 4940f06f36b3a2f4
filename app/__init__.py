import os
import logging

import click
from flask import Flask, jsonify
from flask_login import current_user

from app.config import config_by_name
from app.extensions import db, migrate, login_manager, csrf, limiter


def create_app(config_name=None):
    """Application factory."""

    if config_name is None:
        config_name = os.environ.get("FLASK_ENV", "development")

    app = Flask(__name__)
    app.config.from_object(config_by_name[config_name])

    # --- Validate required env vars (skip in testing) ---
    if config_name != "testing":
        try:
            config_by_name[config_name].validate()
        except RuntimeError as e:
            app.logger.warning(f"Config validation: {e}")

    # --- Init extensions ---
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    csrf.init_app(app)
    limiter.init_app(app)

    # --- Import models so Alembic can discover them ---
    with app.app_context():
        from app import models  # noqa: F401

    # --- Permission resolver (evaluators read once from config) ---
    from app.services.allowance_service import init_permissions
    init_permissions(app)

    # --- Project middleware ---
    from app.middleware.project_context import init_project_middleware
    init_project_middleware(app)

    # --- Register blueprints ---
    from app.blueprints.auth import auth_bp
    from app.blueprints.watchers import watchers_bp
    from app.blueprints.timelog import timelog_bp
    from app.blueprints.reports import reports_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(watchers_bp)
    app.register_blueprint(timelog_bp)
    app.register_blueprint(reports_bp)

    # --- Root route ---
    @app.route("/")
    def index():
        """Projects visible to the current user."""
        from app.models.project import Project

        projects = Project.visible(current_user).order_by(Project.name).all()
        return jsonify({
            "projects": [
                {"id": p.id, "identifier": p.identifier, "name": p.name}
                for p in projects
            ],
        })

    # --- Error handlers ---
    @app.errorhandler(401)
    def unauthorized(e):
        return jsonify({"error": "Login required"}), 401

    @app.errorhandler(403)
    def forbidden(e):
        return jsonify({"error": "Forbidden"}), 403

    @app.errorhandler(404)
    def not_found(e):
        return jsonify({"error": "Not found"}), 404

    @app.errorhandler(500)
    def server_error(e):
        return jsonify({"error": "Internal server error"}), 500

    # --- CLI commands ---
    register_cli(app)

    # --- Security headers ---
    @app.after_request
    def add_security_headers(response):
        """Add security headers to every response."""
        # Prevent MIME type sniffing
        response.headers["X-Content-Type-Options"] = "nosniff"
        # Prevent clickjacking
        response.headers["X-Frame-Options"] = "DENY"
        # Control referrer information
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        # Content Security Policy
        response.headers["Content-Security-Policy"] = (
            "default-src 'self'; base-uri 'self'; frame-ancestors 'none';"
        )
        # Strict Transport Security (only in production)
        if not app.debug:
            response.headers["Strict-Transport-Security"] = (
                "max-age=31536000; includeSubDomains"
            )
        return response

    # --- Logging ---
    if not app.debug:
        logging.basicConfig(level=logging.INFO)

    return app


def register_cli(app):
    """Register custom CLI commands with the Flask app."""

    @app.cli.command("load-default-data")
    def load_default_data():
        """Create default roles, trackers, statuses, priorities, activities
        and the built-in users.

        Usage:
            flask load-default-data
        """
        from app.services import default_data_service

        try:
            default_data_service.load_default_data()
        except ValueError as e:
            click.echo(f"Skipped: {e}")
            return
        db.session.commit()
        click.echo("Default configuration data loaded.")

    @app.cli.command("prune-watchers")
    @click.option("--user", "login", default=None, help="Only this user's watches (login)")
    @click.option("--project", "identifier", default=None, help="Only objects of this project")
    def prune_watchers(login, identifier):
        """Remove watchers of objects their users can no longer see.

        Usage:
            flask prune-watchers
            flask prune-watchers --user jsmith --project ecookbook
        """
        from app.models.project import Project
        from app.models.user import User
        from app.models.watcher import Watcher

        user = project = None
        if login:
            user = User.find_by_login(login)
            if user is None:
                raise click.BadParameter(f"Unknown user '{login}'", param_hint="--user")
        if identifier:
            project = Project.query.filter_by(identifier=identifier).first()
            if project is None:
                raise click.BadParameter(f"Unknown project '{identifier}'", param_hint="--project")

        pruned = Watcher.prune(user=user, project=project)
        db.session.commit()
        click.echo(f"Pruned {pruned} watcher(s).")

    @app.cli.command("force-user-language")
    def force_user_language():
        """Reset user languages that are no longer available to the default.

        Usage:
            flask force-user-language
        """
        from app.services import user_service

        count = user_service.force_user_language()
        db.session.commit()
        click.echo(f"Updated {count} user(s).")

    @app.cli.command("test-email")
    @click.argument("login")
    def test_email(login):
        """Send a test email to a user, synchronously.

        Usage:
            flask test-email jsmith
        """
        from app.models.user import User
        from app.services.email_service import send_email_sync

        user = User.find_by_login(login)
        if user is None or not user.mail:
            raise click.BadParameter(f"No user with a mail address for '{login}'")
        send_email_sync(
            to=user.mail,
            subject="Tracker test email",
            template="emails/test_mail.html",
            context={"user": user, "base_url": app.config["APP_BASE_URL"]},
        )
        click.echo(f"Test email sent to {user.mail}.")
