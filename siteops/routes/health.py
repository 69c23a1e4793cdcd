"""
Health routes — liveness probe and circuit breaker status.
"""
import logging
from flask import Blueprint, jsonify

from siteops.services.circuit_breaker import get_all_breakers

logger = logging.getLogger('siteops.routes.health')

bp = Blueprint('health', __name__)


@bp.route('/health')
def health_check():
    """Health check endpoint."""
    return jsonify({"status": "healthy"}), 200


@bp.route('/api/health')
def api_health():
    """Circuit breaker state and counters per external service."""
    services = {name: breaker.get_health() for name, breaker in get_all_breakers().items()}
    return jsonify({'services': services}), 200


@bp.route('/api/health/<service>/reset', methods=['POST'])
def reset_circuit(service):
    breaker = get_all_breakers().get(service)
    if breaker is None:
        return jsonify({'error': f'Unknown service: {service}'}), 404
    breaker.reset()
    logger.info("Circuit '%s' reset via API", service)
    return jsonify({'ok': True, 'service': service, 'state': breaker.state}), 200
