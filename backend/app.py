"""Flask application factory for the Inspect360 backend."""
from flask import Flask
import os
import logging
from pathlib import Path
from pydantic import ValidationError as PydanticValidationError
from shared.validation import InspectionError
from .config import Settings
from .models import db
from .blueprints import auth, templates, inspections, assignments, dashboard
from .cli import init_db_command, seed_templates_command, create_admin_command, list_overdue_command, seed_prebuilt
from .logging_config import setup_logging
from .utils import handle_api_exception

logger = logging.getLogger(__name__)


def _ensure_sqlite_dir(uri):
    """Create the parent directory of a file-backed SQLite database."""
    prefix = 'sqlite:///'
    if not uri.startswith(prefix) or uri == 'sqlite:///:memory:':
        return
    path = uri[len(prefix):]
    if path and path != ':memory:':
        Path(os.path.dirname(os.path.abspath(path))).mkdir(parents=True, exist_ok=True)


def create_app(test_config=None):
    """Flask application factory for the Inspect360 backend.

    Creates and configures a Flask application instance with:
    - Settings from INSPECT360_* environment variables
    - SQLAlchemy database integration
    - Blueprint registration for API endpoints
    - Domain error to HTTP status mapping
    - CLI command registration

    Args:
        test_config (dict, optional): Configuration overrides for testing

    Returns:
        Flask: Configured Flask application instance
    """
    settings = Settings()
    config = settings.to_flask_config()
    if test_config:
        config.update(test_config)

    setup_logging(config.get('LOG_LEVEL'), config.get('LOG_DIR') or None, config.get('LOG_TO_FILE', True))
    logger.info("Starting Flask application initialization")

    app = Flask(__name__, instance_relative_config=True)
    app.config.from_mapping(config)
    app.config['SQLALCHEMY_TRACK_MODIFICATIONS'] = False
    if test_config is None:
        if app.config.from_pyfile('config.py', silent=True):
            logger.info("Loaded configuration from instance/config.py")

    _ensure_sqlite_dir(app.config['SQLALCHEMY_DATABASE_URI'])
    logger.info(f"Configured database URI: {app.config['SQLALCHEMY_DATABASE_URI']}")
    db.init_app(app)

    logger.info("Registering API blueprints")
    app.register_blueprint(auth.bp)
    app.register_blueprint(templates.bp)
    app.register_blueprint(inspections.bp)
    app.register_blueprint(assignments.bp)
    app.register_blueprint(dashboard.bp)
    auth.init_auth(app)

    @app.errorhandler(InspectionError)
    def handle_domain_error(e):
        return handle_api_exception(e, "complete request")

    @app.errorhandler(PydanticValidationError)
    def handle_schema_error(e):
        return handle_api_exception(e, "validate request")

    app.cli.add_command(init_db_command)
    app.cli.add_command(seed_templates_command)
    app.cli.add_command(create_admin_command)
    app.cli.add_command(list_overdue_command)
    logger.info("CLI commands registered: init-db, seed-templates, create-admin, list-overdue")

    if app.config.get('SEED_PREBUILT_ON_STARTUP'):
        with app.app_context():
            db.create_all()
            seed_prebuilt(app.config.get('TEMPLATES_DATA_DIR'))

    logger.info("Flask application initialization completed successfully")
    return app


if __name__ == '__main__':
    app = create_app()
    app.run(debug=True)
