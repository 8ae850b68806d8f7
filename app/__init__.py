"""
Premium community billing application factory.
Creates and configures the Flask application instance.
"""
import os
import json
import logging
import uuid
from datetime import datetime, timezone

import click
from flask import Flask, request, g, jsonify

from app.config import config
from app.extensions import init_extensions, db


def _init_sentry(app):
    """Initialize Sentry error tracking for production."""
    dsn = app.config.get('SENTRY_DSN') or os.environ.get('SENTRY_DSN')
    if not dsn:
        app.logger.info('SENTRY_DSN not set — error tracking disabled.')
        return

    try:
        import sentry_sdk
        from sentry_sdk.integrations.flask import FlaskIntegration
        from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

        sentry_sdk.init(
            dsn=dsn,
            integrations=[FlaskIntegration(), SqlalchemyIntegration()],
            traces_sample_rate=float(os.environ.get('SENTRY_TRACES_RATE', '0.1')),
            environment=os.environ.get('FLASK_ENV', 'production'),
            send_default_pii=False,
        )
        app.logger.info('Sentry error tracking initialized.')
    except ImportError:
        app.logger.warning('sentry-sdk not installed — error tracking disabled.')


def create_app(config_name=None):
    """
    Application factory for creating Flask app instances.

    Args:
        config_name: Configuration to use (development, testing, production)

    Returns:
        Configured Flask application instance

    Raises:
        MissingSecret: If the Stripe webhook signing secret is not configured
    """
    if config_name is None:
        config_name = os.environ.get('FLASK_ENV', 'development')

    app = Flask(__name__)

    # Load configuration
    config_class = config[config_name]
    app.config.from_object(config_class)

    # Initialize Sentry (production only)
    if config_name == 'production':
        _init_sentry(app)

    # Call init_app if available (production validation happens here)
    if hasattr(config_class, 'init_app'):
        config_class.init_app(app)

    # Initialize extensions
    init_extensions(app)

    # Build the webhook pipeline (fails fast without a signing secret)
    init_billing(app)

    register_blueprints(app)
    register_error_handlers(app)
    register_cli_commands(app)
    configure_logging(app)
    register_security_headers(app)

    # Create database tables (development only)
    if config_name == 'development':
        with app.app_context():
            db.create_all()

    return app


def init_billing(app):
    """Construct the webhook clients once per process and attach them to the app."""
    from app.services.role_grants import build_role_grant_service
    from app.services.stripe_events import WebhookVerifier
    from app.services.subscription_service import SubscriptionReconciler
    from app.services.user_directory import UserDirectory
    from app.services.webhook_router import WebhookRouter

    verifier = WebhookVerifier(
        app.config.get('STRIPE_WEBHOOK_SECRET'),
        tolerance=app.config.get('STRIPE_WEBHOOK_TOLERANCE', 300),
    )
    directory = UserDirectory(db.session)
    role_grants = build_role_grant_service(app.config)
    reconciler = SubscriptionReconciler(db.session, directory, role_grants)

    app.extensions['user_directory'] = directory
    app.extensions['subscription_reconciler'] = reconciler
    app.extensions['webhook_router'] = WebhookRouter(verifier, reconciler)


def register_blueprints(app):
    """Register all application blueprints."""
    from app.blueprints.billing import billing_bp
    from app.blueprints.api import api_bp

    # Stripe webhooks: signature verified, no session auth
    app.register_blueprint(billing_bp, url_prefix='/api/webhook')
    # Session profile lookup: Supabase JWT auth
    app.register_blueprint(api_bp, url_prefix='/api/v1')


def register_error_handlers(app):
    """Register JSON error handlers for common HTTP errors."""

    @app.errorhandler(404)
    def not_found(error):
        return jsonify({'error': {'code': 'not_found', 'message': 'Resource not found.'}}), 404

    @app.errorhandler(405)
    def method_not_allowed(error):
        return jsonify({'error': {'code': 'method_not_allowed', 'message': 'Method not allowed.'}}), 405

    @app.errorhandler(413)
    def payload_too_large(error):
        return jsonify({'error': {'code': 'payload_too_large', 'message': 'Request body too large.'}}), 413

    @app.errorhandler(429)
    def ratelimit_error(error):
        return jsonify({'error': {'code': 'rate_limit_exceeded', 'message': 'Too many requests. Try again later.'}}), 429

    @app.errorhandler(500)
    def internal_error(error):
        db.session.rollback()
        request_id = g.get('request_id', '-')
        app.logger.error('500 Internal Server Error: %s (request_id=%s)', type(error).__name__, request_id, exc_info=True)
        return jsonify({'error': {'code': 'internal_error', 'message': 'Internal server error.', 'request_id': request_id}}), 500


def register_cli_commands(app):
    """Register custom CLI commands."""

    @app.cli.command('init-db')
    def init_db():
        """Create the profiles and subscription tables."""
        db.create_all()
        print("Database initialized.")

    @app.cli.command('sync-roles')
    @click.option('--email', default=None, help='Only sync this identity')
    @click.option('--dry-run', is_flag=True, help='Preview without calling Discord')
    def sync_roles(email, dry_run):
        """Re-apply premium roles from subscription records.

        Replays grants for current subscriptions and revokes for lapsed ones,
        for role updates that failed during webhook processing.
        """
        reconciler = app.extensions['subscription_reconciler']
        directory = app.extensions['user_directory']

        if reconciler.role_grants is None and not dry_run:
            print("Discord is not configured (DISCORD_BOT_TOKEN, DISCORD_GUILD_ID, DISCORD_PREMIUM_ROLE_ID).")
            return

        if email:
            subscription = directory.find_subscription(email)
            subscriptions = [subscription] if subscription else []
        else:
            subscriptions = directory.iter_subscriptions()

        if not subscriptions:
            print("No subscription records to sync.")
            return

        stats = {'granted': 0, 'revoked': 0, 'unchanged': 0}
        for subscription in subscriptions:
            should_grant = subscription.is_current
            action = 'grant' if should_grant else 'revoke'
            if dry_run:
                print(f"  [DRY RUN] Would {action} role for {subscription.email}")
                continue

            if reconciler.sync_role(subscription.email, should_grant):
                stats['granted' if should_grant else 'revoked'] += 1
                print(f"  [OK] {action} {subscription.email}")
            else:
                stats['unchanged'] += 1

        if not dry_run:
            print(f"Granted: {stats['granted']}, revoked: {stats['revoked']}, unchanged or failed: {stats['unchanged']}")


class JSONFormatter(logging.Formatter):
    """JSON log formatter for production (cloud log aggregation)."""

    def format(self, record):
        log_entry = {
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'level': record.levelname,
            'message': record.getMessage(),
            'module': record.module,
            'line': record.lineno,
        }
        # Add request_id if available
        try:
            log_entry['request_id'] = g.get('request_id', '-')
        except RuntimeError:
            pass  # Outside request context
        if record.exc_info and record.exc_info[0]:
            log_entry['exception'] = self.formatException(record.exc_info)
        return json.dumps(log_entry, ensure_ascii=False)


def configure_logging(app):
    """Configure application logging.

    Production: JSON to stdout.
    Development: plain text.
    Service modules log under the ``app`` logger and share its handlers.
    """
    @app.before_request
    def assign_request_id():
        g.request_id = request.headers.get('X-Request-ID', str(uuid.uuid4())[:8])

    if app.testing:
        return

    @app.after_request
    def log_request(response):
        app.logger.info('%s %s %s', request.method, request.path, response.status_code)
        return response

    level = getattr(logging, os.environ.get('LOG_LEVEL', 'INFO').upper(), logging.INFO)

    if not app.debug:
        stream_handler = logging.StreamHandler()
        stream_handler.setFormatter(JSONFormatter())
        stream_handler.setLevel(level)

        # Clear existing handlers to avoid duplicates
        app.logger.handlers.clear()
        app.logger.addHandler(stream_handler)
        app.logger.setLevel(level)
        app.logger.info('Billing service startup (JSON logging)')
    else:
        app.logger.setLevel(logging.DEBUG)
        app.logger.info('Billing service startup (development)')


def register_security_headers(app):
    """Register security headers for all responses."""

    @app.after_request
    def add_security_headers(response):
        response.headers['X-Content-Type-Options'] = 'nosniff'
        response.headers['X-Frame-Options'] = 'DENY'
        response.headers['Referrer-Policy'] = 'strict-origin-when-cross-origin'
        response.headers['Cache-Control'] = 'no-store'
        if not app.debug:
            response.headers['Strict-Transport-Security'] = 'max-age=31536000; includeSubDomains'
        request_id = g.get('request_id')
        if request_id:
            response.headers['X-Request-ID'] = request_id
        return response
