"""
Pipeline routes — audit, insights, drafting, sending, lead orchestration, queue.

Stage errors propagate as SiteOpsError and are rendered by the app's error
handlers; these views only parse input and shape the success response.
"""
import logging
from flask import Blueprint, request, jsonify

from siteops.errors import ValidationError
from siteops.pipeline.audit import run_audit
from siteops.pipeline.insights import generate_insights
from siteops.pipeline.drafter import draft_email
from siteops.pipeline.sender import send_draft
from siteops.pipeline.orchestrator import process_lead
from siteops.pipeline.queue import enqueue_lead, process_next

logger = logging.getLogger('siteops.routes.pipeline')

bp = Blueprint('pipeline', __name__)


def _payload():
    return request.get_json(silent=True) or {}


def _required_id(data, key, message=None):
    value = data.get(key)
    if value in (None, ''):
        raise ValidationError(message or f'{key} is required')
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f'{key} must be an integer')


# ── Stages ───────────────────────────────────────────────────────────────────

@bp.route('/api/audits', methods=['POST'])
def create_audit():
    """Run a PageSpeed audit for a lead's site."""
    data = _payload()
    if not data.get('url') or data.get('lead_id') in (None, ''):
        raise ValidationError('Missing required fields: url and lead_id')
    return jsonify(run_audit(data['url'], _required_id(data, 'lead_id'))), 200


@bp.route('/api/audits/<int:audit_id>/insights', methods=['POST'])
def create_insights(audit_id):
    """Generate (or reuse) plain-language insights for an audit."""
    outcome = generate_insights(audit_id)
    if outcome.is_ok:
        return jsonify({
            'success': True,
            'audit_id': audit_id,
            'insights': outcome.insights,
            'cached': outcome.cached,
        }), 200
    return jsonify({
        'success': False,
        'audit_id': audit_id,
        'skipped': True,
        'reason': outcome.skipped_reason,
    }), 200


@bp.route('/api/email-drafts', methods=['POST'])
def create_draft():
    """Draft the outreach email for a lead."""
    lead_id = _required_id(_payload(), 'lead_id', 'Missing lead_id')
    return jsonify(draft_email(lead_id)), 200


@bp.route('/api/email-drafts/<int:email_draft_id>/send', methods=['POST'])
def send_draft_by_path(email_draft_id):
    return jsonify(send_draft(email_draft_id)), 200


@bp.route('/api/emails/send', methods=['POST'])
def send_draft_by_body():
    """Send a draft named in the request body."""
    email_draft_id = _required_id(_payload(), 'email_draft_id', 'Missing email_draft_id')
    return jsonify(send_draft(email_draft_id)), 200


# ── Orchestration ────────────────────────────────────────────────────────────

@bp.route('/api/leads/process', methods=['POST'])
def process_lead_route():
    """Run audit → insights → draft → send for one lead."""
    lead_id = _required_id(_payload(), 'lead_id', 'Missing lead_id')
    result = process_lead(lead_id)
    return jsonify(result.to_dict()), result.http_status


@bp.route('/api/leads/enqueue', methods=['POST'])
def enqueue_lead_route():
    lead_id = _required_id(_payload(), 'lead_id', 'Missing lead_id')
    return jsonify(enqueue_lead(lead_id)), 200


@bp.route('/api/queue/process', methods=['POST'])
def process_queue():
    """Process at most one due queue item."""
    result = process_next()
    return jsonify(result), 200 if result.get('success') else 500
