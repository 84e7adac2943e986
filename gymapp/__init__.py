"""Flask application factory."""
from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException
from gymapp.database import init_db
import os


def create_app(config_object='config.Config'):
    """Create and configure the Flask application."""
    app = Flask(__name__)
    app.config.from_object(config_object)

    # Initialize Sentry for error tracking in production
    sentry_dsn = app.config.get('SENTRY_DSN')
    if sentry_dsn and app.config.get('ENV') == 'production':
        import sentry_sdk
        from sentry_sdk.integrations.flask import FlaskIntegration

        sentry_sdk.init(
            dsn=sentry_dsn,
            integrations=[FlaskIntegration()],
            traces_sample_rate=0.1,  # 10% of transactions for performance monitoring
            environment=app.config.get('ENV'),
            release=os.getenv('GIT_COMMIT', 'unknown')
        )

    # Prometheus metrics instrumentation
    from gymapp.blueprints.metrics import setup_metrics_instrumentation
    setup_metrics_instrumentation(app)

    # Production: trust one reverse proxy for client address and scheme
    if app.config.get('ENV') == 'production':
        from werkzeug.middleware.proxy_fix import ProxyFix
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_port=1)

    # Initialize database
    init_db(app)

    # Load user, gym and role for each request
    from gymapp.middleware import load_identity

    @app.before_request
    def before_request_handler():
        load_identity()

    # Error Handlers
    from gymapp.exceptions import GymError

    @app.errorhandler(GymError)
    def handle_gym_error(error):
        """Handle custom application exceptions."""
        if error.status_code >= 500:
            app.logger.error(f"GymError [{error.status_code}]: {error.message}")
        else:
            app.logger.info(f"GymError [{error.status_code}]: {error.message}")
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        return jsonify({'status': 'error', 'message': error.name}), error.code

    @app.errorhandler(Exception)
    def internal_error(error):
        app.logger.exception(f"Unhandled Exception: {error}")
        return jsonify({'status': 'error', 'message': 'Internal Server Error'}), 500

    # Register blueprints
    from gymapp.blueprints.auth import auth_bp
    from gymapp.blueprints.roles import roles_bp
    from gymapp.blueprints.users import users_bp
    from gymapp.blueprints.trainer_matches import trainer_matches_bp
    from gymapp.blueprints.catalog import catalog_bp
    from gymapp.blueprints.orders import orders_bp
    from gymapp.blueprints.metrics import metrics_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(roles_bp)
    app.register_blueprint(users_bp)
    app.register_blueprint(trainer_matches_bp)
    app.register_blueprint(catalog_bp)
    app.register_blueprint(orders_bp)
    app.register_blueprint(metrics_bp)

    # Register CLI commands
    from gymapp.cli_commands import init_cli_commands
    init_cli_commands(app)

    return app
