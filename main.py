# main.py
"""
School Results & Rankings Service
JSON API for exam results, role-scoped views and school/class rankings
"""

import os
import sys
import logging
from flask import Flask, jsonify
from flask_login import LoginManager
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException

# Ensure project root is on sys.path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

# --- local modules ---
from config import config as config_by_name
from db_single import init_database
from errors import AppError, AuthenticationError, DatabaseError
from auth_helpers import load_user_from_request
from cli_commands import register_cli_commands
from result_routes import create_results_blueprint


def create_app(config_object=None) -> Flask:
    """Create the results application"""
    if config_object is None:
        config_object = config_by_name[os.environ.get('FLASK_CONFIG', 'default')]
    if isinstance(config_object, type):
        config_object = config_object()

    app = Flask(__name__)
    app.config.from_object(config_object)

    # Logging
    logging.basicConfig(level=logging.DEBUG if app.config.get('DEBUG') else logging.INFO)
    logger = logging.getLogger(__name__)

    # DB init
    engine, session_factory = init_database(config_object)

    if app.config.get('INIT_DB_ON_STARTUP'):
        from init_db import run_on_startup
        if not run_on_startup(engine):
            logger.warning("Database initialization had issues! Application will continue with existing state.")

    # Flask-Login: bearer tokens on every request, no sessions
    login_manager = LoginManager()
    login_manager.init_app(app)
    login_manager.request_loader(load_user_from_request)

    @login_manager.unauthorized_handler
    def unauthorized():
        raise AuthenticationError('No token provided')

    # CLI
    register_cli_commands(app)

    # Results blueprint
    app.register_blueprint(create_results_blueprint())
    logger.info("Results blueprint registered")

    @app.route("/health")
    def health():
        return jsonify({'status': 'ok'})

    @app.errorhandler(AppError)
    def handle_app_error(e):
        if e.status_code >= 500:
            logger.error(f"{e.__class__.__name__}: {e.message}")
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(SQLAlchemyError)
    def handle_db_error(e):
        logger.exception(f"Database error: {e}")
        error = DatabaseError()
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(404)
    def nf(_):
        return jsonify({'success': False, 'error': 'Not found', 'code': 'NOT_FOUND_ERROR'}), 404

    @app.errorhandler(405)
    def method_not_allowed(_):
        return jsonify({'success': False, 'error': 'Method not allowed', 'code': 'METHOD_NOT_ALLOWED'}), 405

    @app.errorhandler(Exception)
    def ie(e):
        if isinstance(e, HTTPException):
            return e
        logger.exception(f"Unhandled error: {e}")
        return jsonify({'success': False, 'error': 'Internal server error', 'code': 'INTERNAL_ERROR'}), 500

    return app


if __name__ == "__main__":
    app = create_app()
    app.run(debug=True, host="0.0.0.0", port=5000)
