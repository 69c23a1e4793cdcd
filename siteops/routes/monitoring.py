"""
Monitoring routes — health polling, deploy and error ingestion, severity
classification, incidents, notifications and monthly reports.
"""
import logging
from datetime import date
from flask import Blueprint, request, jsonify

from siteops.errors import ValidationError
from siteops.monitoring.checks import run_health_checks
from siteops.monitoring.ingest import record_deploy, record_site_error
from siteops.monitoring.notifications import dispatch_incident_notifications
from siteops.monitoring.reports import generate_monthly_reports, enqueue_monthly_reports
from siteops.monitoring.severity import classify_failure, resolve_incident

logger = logging.getLogger('siteops.routes.monitoring')

bp = Blueprint('monitoring', __name__)


def _payload():
    return request.get_json(silent=True) or {}


def _flag(data, name):
    value = data.get(name, False)
    if not isinstance(value, bool):
        raise ValidationError(f'{name} must be a boolean')
    return value


@bp.route('/api/monitoring/poll', methods=['POST'])
def poll_health_checks():
    """Run every enabled health check once."""
    return jsonify(run_health_checks()), 200


@bp.route('/api/monitoring/deploys', methods=['POST'])
def ingest_deploy():
    """A site announces a deploy; opens its incident quiet window."""
    return jsonify(record_deploy(_payload(), request.headers.get('X-Site-Secret'))), 200


@bp.route('/api/monitoring/errors', methods=['POST'])
def ingest_error():
    return jsonify(record_site_error(_payload(), request.headers.get('X-Site-Secret'))), 200


@bp.route('/api/monitoring/classify', methods=['POST'])
def classify():
    data = _payload()
    return jsonify(classify_failure(data.get('site_id'), data.get('check_type'), data.get('event_id'))), 200


@bp.route('/api/incidents/<int:incident_id>/resolve', methods=['POST'])
def resolve(incident_id):
    return jsonify(resolve_incident(incident_id)), 200


@bp.route('/api/notifications/dispatch', methods=['POST'])
def dispatch_notifications():
    """Send the tier-appropriate notifications for an incident change."""
    data = _payload()
    result = dispatch_incident_notifications(
        data.get('incident_id'),
        data.get('site_id'),
        data.get('severity'),
        is_new=_flag(data, 'is_new'),
        is_resolved=_flag(data, 'is_resolved'),
    )
    return jsonify(result), 200


@bp.route('/api/reports/monthly', methods=['POST'])
def monthly_reports():
    """Generate last month's reports inline, or enqueue them with {"async": true}."""
    data = _payload()
    today = None
    if data.get('today'):
        try:
            today = date.fromisoformat(data['today'])
        except (TypeError, ValueError):
            raise ValidationError('today must be an ISO date (YYYY-MM-DD)')

    if data.get('async'):
        job_id = enqueue_monthly_reports(today)
        return jsonify({'success': True, 'status': 'queued', 'job_id': job_id}), 202

    return jsonify(generate_monthly_reports(today)), 200
