"""Flask application factory."""
from flask import Flask, request, jsonify
from werkzeug.exceptions import HTTPException
from storefront.database import init_db
import os


def create_app(config_object='config.Config'):
    """Create and configure the Flask application."""
    app = Flask(__name__)
    app.config.from_object(config_object)

    # Sentry error tracking in production
    if os.getenv('SENTRY_DSN') and app.config.get('ENV') == 'production':
        import sentry_sdk
        from sentry_sdk.integrations.flask import FlaskIntegration

        sentry_sdk.init(
            dsn=os.getenv('SENTRY_DSN'),
            integrations=[FlaskIntegration()],
            traces_sample_rate=0.1,
            environment=app.config.get('ENV'),
            release=os.getenv('GIT_COMMIT', 'unknown')
        )

    # Flask-Mail for password reset emails
    from storefront.services.email_service import init_mail
    init_mail(app)

    # Redis: catalog cache and device-local state
    from storefront.services.cache_service import init_cache
    init_cache(app)

    # Production: trust the reverse proxy's forwarded headers
    if app.config.get('ENV') == 'production':
        from werkzeug.middleware.proxy_fix import ProxyFix
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_port=1, x_prefix=0)

    init_db(app)

    # Session context for each request
    from storefront.middleware import load_session_context, close_session_context

    @app.before_request
    def before_request_handler():
        load_session_context()

    app.teardown_request(close_session_context)

    # Error Handlers
    from storefront.exceptions import StorefrontError

    @app.errorhandler(StorefrontError)
    def handle_storefront_error(error):
        app.logger.warning(f"StorefrontError [{error.status_code}]: {error.message}")
        return jsonify({'success': False, 'error': error.to_dict()}), error.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        return jsonify({
            'success': False,
            'error': {'message': error.description, 'code': error.name.lower().replace(' ', '_'), 'status': 'error'}
        }), error.code

    @app.errorhandler(Exception)
    def internal_error(error):
        app.logger.exception(f"Unhandled Exception on {request.path}: {error}")
        return jsonify({
            'success': False,
            'error': {'message': 'Internal Server Error', 'code': 'internal_error', 'status': 'error'}
        }), 500

    # Register blueprints
    from storefront.blueprints.auth import auth_bp
    from storefront.blueprints.catalog import catalog_bp
    from storefront.blueprints.cart import cart_bp
    from storefront.blueprints.wishlist import wishlist_bp
    from storefront.blueprints.orders import orders_bp
    from storefront.blueprints.addresses import addresses_bp
    from storefront.blueprints.admin import admin_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(catalog_bp)
    app.register_blueprint(cart_bp)
    app.register_blueprint(wishlist_bp)
    app.register_blueprint(orders_bp)
    app.register_blueprint(addresses_bp)
    app.register_blueprint(admin_bp)

    from storefront.cli_commands import init_cli_commands
    init_cli_commands(app)

    app.logger.info(f"MAIL_SERVER={app.config.get('MAIL_SERVER')}")
    app.logger.info(f"REDIS_URL={app.config.get('REDIS_URL')}")

    return app
