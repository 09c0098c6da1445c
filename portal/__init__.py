from datetime import timedelta

from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException

from .config import Config


def create_app(config_object=None):
    app = Flask(__name__)
    app.config.from_object(config_object or Config)
    # app.logger is the "portal" logger, parent of every module logger in the package
    app.logger.setLevel(app.config.get("LOG_LEVEL", "INFO"))
    app.permanent_session_lifetime = timedelta(minutes=app.config.get("SESSION_LIFETIME_MINUTES", 20))

    from .api_client import close_client
    from .services.cache import TransactionCache

    app.extensions["transaction_cache"] = TransactionCache(ttl=app.config.get("EZITT_CACHE_TTL", 300))
    app.teardown_appcontext(close_client)

    # Register blueprints
    from .auth import auth_bp
    from .admin import admin_bp
    from .client import client_bp
    from .employer import employer_bp
    from .merchant import merchant_bp
    from .underwriter import underwriter_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(client_bp)
    app.register_blueprint(employer_bp)
    app.register_blueprint(merchant_bp)
    app.register_blueprint(underwriter_bp)

    from .cli import register_cli
    register_cli(app)

    @app.errorhandler(HTTPException)
    def http_error(e):
        return jsonify({'status': 'error', 'message': e.description}), e.code

    @app.route('/health')
    def health():
        return jsonify({'status': 'success', 'api': app.config["EZITT_API_BASE_URL"]}), 200

    return app
