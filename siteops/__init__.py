"""
Flask application factory.

Creates and configures the Flask app, registers all blueprints.
"""
import logging
import os
from flask import Flask, jsonify, request
from werkzeug.exceptions import HTTPException

logger = logging.getLogger('siteops.app')

CORS_HEADERS = {
    'Access-Control-Allow-Origin': '*',
    'Access-Control-Allow-Methods': 'GET, POST, OPTIONS',
    'Access-Control-Allow-Headers': 'authorization, content-type, calendly-webhook-signature, x-site-secret',
}

MODEL_MODULES = (
    'siteops.models.lead',
    'siteops.models.site_audit',
    'siteops.models.email_draft',
    'siteops.models.queue_item',
    'siteops.models.suppression',
    'siteops.models.email_event',
    'siteops.models.monitored_site',
    'siteops.models.health',
    'siteops.models.incident',
    'siteops.models.monthly_report',
)


def create_app():
    """Create and configure the Flask application."""
    from siteops.logging_config import configure_logging
    from siteops.errors import SiteOpsError
    from siteops.services.circuit_breaker import CircuitOpenError

    app = Flask(__name__)

    configure_logging(app)

    app.secret_key = os.getenv('SECRET_KEY', 'dev-secret-change-me')

    # ── CORS ────────────────────────────────────────────────────────────
    @app.before_request
    def answer_preflight():
        if request.method == 'OPTIONS':
            return '', 204

    @app.after_request
    def add_cors_headers(response):
        for header, value in CORS_HEADERS.items():
            response.headers[header] = value
        return response

    # ── Error handlers ──────────────────────────────────────────────────
    @app.errorhandler(SiteOpsError)
    def handle_pipeline_error(e):
        if e.http_status >= 500:
            logger.error("%s: %s", type(e).__name__, e.message)
        return jsonify(e.to_dict()), e.http_status

    @app.errorhandler(CircuitOpenError)
    def handle_circuit_open(e):
        body = {'error': 'Service temporarily unavailable', 'details': str(e)}
        if e.retry_after is not None:
            body['retry_after'] = e.retry_after
        return jsonify(body), 503

    @app.errorhandler(Exception)
    def handle_unexpected(e):
        if isinstance(e, HTTPException):
            return jsonify({'error': e.description}), e.code
        logger.error("Unhandled error on %s %s", request.method, request.path, exc_info=True)
        return jsonify({'error': 'Internal server error', 'details': str(e)}), 500

    # Register blueprints
    from siteops.routes.health import bp as health_bp
    from siteops.routes.pipeline import bp as pipeline_bp
    from siteops.routes.monitoring import bp as monitoring_bp
    from siteops.routes.webhooks import bp as webhooks_bp
    from siteops.routes.unsubscribe import bp as unsubscribe_bp

    app.register_blueprint(health_bp)
    app.register_blueprint(pipeline_bp)
    app.register_blueprint(monitoring_bp)
    app.register_blueprint(webhooks_bp)
    app.register_blueprint(unsubscribe_bp)

    # Initialize circuit breakers for external API services
    from siteops.extensions import redis_client
    from siteops.services.circuit_breaker import init_breakers
    init_breakers(redis_client)

    # Import models so Base.metadata knows about them.
    # Schema is managed by Alembic; there is no create_all() call.
    import importlib
    for module in MODEL_MODULES:
        importlib.import_module(module)

    return app
