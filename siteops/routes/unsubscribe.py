"""
Unsubscribe routes — one-click unsubscribe link and the suppression API.
"""
import logging
from flask import Blueprint, request, jsonify

from siteops.services.suppression import suppress_email, verify_unsubscribe_token

logger = logging.getLogger('siteops.routes.unsubscribe')

bp = Blueprint('unsubscribe', __name__)


def _suppress(email, token, reason, source):
    if token and not verify_unsubscribe_token(email, token):
        logger.warning("Unsubscribe token mismatch for %s", email)
        return jsonify({'error': 'Invalid unsubscribe token'}), 401
    return jsonify(suppress_email(email, reason=reason, source=source)), 200


@bp.route('/unsubscribe', methods=['GET'])
def unsubscribe():
    """Link target from email footers: /unsubscribe?email=...&token=..."""
    args = request.args
    return _suppress(args.get('email'), args.get('token'), args.get('reason'), 'unsubscribe_link')


@bp.route('/api/suppress', methods=['POST'])
def suppress():
    data = request.get_json(silent=True) or {}
    return _suppress(data.get('email'), data.get('token'), data.get('reason'), data.get('source') or 'unsubscribe_page')
