"""
Inbound webhooks — Calendly bookings and email provider delivery events.
"""
import logging
from flask import Blueprint, request, jsonify

from siteops.config import CALENDLY_WEBHOOK_SIGNING_KEY
from siteops.errors import ValidationError
from siteops.services.calendly import verify_signature, handle_booking
from siteops.services.email_events import record_email_event

logger = logging.getLogger('siteops.routes.webhooks')

bp = Blueprint('webhooks', __name__)

SIGNATURE_HEADER = 'Calendly-Webhook-Signature'


@bp.route('/webhooks/calendly', methods=['POST'])
def calendly_webhook():
    """Handle a Calendly booking; signed when a signing key is configured."""
    body = request.get_data(as_text=True)
    if CALENDLY_WEBHOOK_SIGNING_KEY:
        header = request.headers.get(SIGNATURE_HEADER)
        if not verify_signature(body, header, CALENDLY_WEBHOOK_SIGNING_KEY):
            logger.warning("Rejected Calendly webhook with invalid signature")
            return jsonify({'error': 'Invalid webhook signature'}), 401

    payload = request.get_json(silent=True)
    if payload is None:
        raise ValidationError('Invalid JSON body')
    return jsonify(handle_booking(payload)), 200


@bp.route('/webhooks/resend', methods=['POST'])
def resend_webhook():
    """Record a delivery event; bounces and complaints suppress the address."""
    event = request.get_json(silent=True)
    if not isinstance(event, dict):
        raise ValidationError('Invalid JSON body')
    return jsonify(record_email_event(event)), 200
