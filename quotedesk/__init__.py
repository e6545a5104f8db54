"""Flask application factory."""
from flask import Flask, request, jsonify
from flask_wtf.csrf import CSRFProtect, CSRFError
from werkzeug.exceptions import HTTPException
from quotedesk.database import init_db
import os


def create_app(config_object='config.Config'):
    """Create and configure the Flask application."""
    app = Flask(__name__)
    app.config.from_object(config_object)

    # Initialize CSRF protection
    csrf = CSRFProtect(app)

    @app.errorhandler(CSRFError)
    def handle_csrf_error(e):
        app.logger.warning(f"CSRF Error: {e.description}")
        return jsonify({'status': 'error', 'message': 'Missing or invalid CSRF token'}), 400

    # Sentry error tracking in production
    if app.config.get('SENTRY_DSN') and (app.config.get('ENV') == 'production' or os.getenv('FLASK_ENV') == 'production'):
        import sentry_sdk
        from sentry_sdk.integrations.flask import FlaskIntegration

        sentry_sdk.init(
            dsn=app.config['SENTRY_DSN'],
            integrations=[FlaskIntegration()],
            traces_sample_rate=0.1,
            environment=os.getenv('FLASK_ENV', 'production'),
            release=os.getenv('GIT_COMMIT', 'unknown')
        )

    # Flask-Mail for document delivery
    from quotedesk.services.email_service import init_mail
    init_mail(app)

    # Prometheus metrics instrumentation
    from quotedesk.blueprints.metrics import setup_metrics_instrumentation
    setup_metrics_instrumentation(app)

    # Production: Enable ProxyFix for HTTPS behind a reverse proxy
    if app.config.get('ENV') == 'production':
        from werkzeug.middleware.proxy_fix import ProxyFix
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_port=1, x_prefix=0)

    # Initialize database
    init_db(app)

    # Load user context before each request
    from quotedesk.middleware import load_user

    @app.before_request
    def before_request_handler():
        load_user()

    # Error Handlers
    from quotedesk.exceptions import QuoteDeskError

    @app.errorhandler(QuoteDeskError)
    def handle_quotedesk_error(error):
        """Handle custom application exceptions."""
        if error.status_code >= 500:
            app.logger.error(f"QuoteDeskError [{error.status_code}]: {error.message}")
        else:
            app.logger.warning(f"Rejected {request.method} {request.path} [{error.status_code}]: {error.message}")
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        return jsonify({'status': 'error', 'message': error.description}), error.code

    @app.errorhandler(Exception)
    def internal_error(error):
        app.logger.exception(f"Unhandled Exception: {error}")
        return jsonify({'status': 'error', 'message': 'Internal Server Error'}), 500

    # Register blueprints
    from quotedesk.blueprints.auth import auth_bp
    from quotedesk.blueprints.clients import clients_bp
    from quotedesk.blueprints.quotes import quotes_bp
    from quotedesk.blueprints.invoices import invoices_bp
    from quotedesk.blueprints.settings import settings_bp
    from quotedesk.blueprints.tax_rates import tax_rates_bp
    from quotedesk.blueprints.users import users_bp
    from quotedesk.blueprints.analytics import analytics_bp
    from quotedesk.blueprints.metrics import metrics_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(clients_bp)
    app.register_blueprint(quotes_bp)
    app.register_blueprint(invoices_bp)
    app.register_blueprint(settings_bp)
    app.register_blueprint(tax_rates_bp)
    app.register_blueprint(users_bp)
    app.register_blueprint(analytics_bp)
    app.register_blueprint(metrics_bp)

    # Scrapes carry no session or form
    csrf.exempt(metrics_bp)

    from quotedesk.cli_commands import init_cli_commands
    init_cli_commands(app)

    app.logger.info(f"MAIL_SERVER={app.config.get('MAIL_SERVER')}")

    return app
