"""Flask application factory."""
import logging
import traceback

from flask import Flask, jsonify


def create_app(config_object='config.Config', backend=None, receipt_hook=None):
    """
    Create and configure the Flask application.

    Args:
        config_object: import path or class passed to app.config.from_object
        backend: BackendClient to use instead of one built from config (tests)
        receipt_hook: callable receiving the Receipt of every committed order
    """
    app = Flask(__name__)
    app.config.from_object(config_object)

    logging.basicConfig(
        level=app.config.get('LOG_LEVEL', 'INFO'),
        format='%(asctime)s %(levelname)s %(name)s: %(message)s'
    )
    app.logger.setLevel(app.config.get('LOG_LEVEL', 'INFO'))

    # Initialize Redis Cache (shared catalog snapshot)
    from order_entry.services.cache_service import init_cache
    init_cache(app)

    # Backend REST client and catalog snapshot
    from order_entry.services.backend_client import init_backend
    from order_entry.services.catalog_service import init_catalog
    init_backend(app, backend)
    init_catalog(app)

    # One draft per terminal session
    from order_entry.services.draft_service import DraftRegistry
    app.extensions['drafts'] = DraftRegistry(
        idle_timeout=app.config.get('DRAFT_IDLE_TIMEOUT'),
        max_drafts=app.config.get('MAX_OPEN_DRAFTS'),
    )
    app.extensions['receipt_hook'] = receipt_hook

    # Error Handlers
    from order_entry.exceptions import PosError

    @app.errorhandler(PosError)
    def handle_pos_error(error):
        """Handle custom application exceptions."""
        if error.status_code >= 500:
            app.logger.error(f"PosError [{error.status_code}]: {error.message}")
        else:
            app.logger.info(f"PosError [{error.status_code}]: {error.message}")
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(404)
    def not_found_error(error):
        return jsonify({'status': 'error', 'message': 'Not Found'}), 404

    @app.errorhandler(405)
    def method_not_allowed(error):
        return jsonify({'status': 'error', 'message': 'Method Not Allowed'}), 405

    @app.errorhandler(500)
    @app.errorhandler(Exception)
    def internal_error(error):
        app.logger.error(f"Unhandled Exception: {error}")
        app.logger.error(f"Traceback: {traceback.format_exc()}")
        return jsonify({'status': 'error', 'message': 'Internal Server Error'}), 500

    # Register blueprints
    from order_entry.blueprints.main import main_bp
    from order_entry.blueprints.pos import pos_bp

    app.register_blueprint(main_bp)
    app.register_blueprint(pos_bp)

    return app
