"""
Push ingestion from monitored sites — deploy notices and runtime errors.

Sites call these with their own ``X-Site-Secret``. Only sites with a secret
configured may push. A deploy stamps ``last_deploy_at``, which opens the
site's quiet window for severity classification. An error lands in the
health event log as a failing ``health_api`` event; sev-1 and sev-2 errors
also open or extend the site's open ``health_api`` incident.
"""
import hmac
import logging

from sqlalchemy import select

from siteops.config import SEVERITIES
from siteops.database import get_session, utcnow
from siteops.errors import NotFoundError, Unauthorized, ValidationError
from siteops.models.health import HealthEvent
from siteops.models.monitored_site import MonitoredSite
from siteops.monitoring.severity import open_or_extend_incident, notify_new_incident

logger = logging.getLogger('siteops.monitoring.ingest')

ERROR_CHECK_TYPE = 'health_api'
INCIDENT_SEVERITIES = ('sev-1', 'sev-2')


def _require(data, fields):
    missing = [f for f in fields if not data.get(f)]
    if missing:
        raise ValidationError('Missing required fields: ' + ', '.join(fields))


def authenticate_site(session, site_key, secret):
    """Load the active site for site_key and check the caller's secret."""
    site = session.execute(
        select(MonitoredSite).where(MonitoredSite.site_key == site_key)
    ).scalar_one_or_none()
    if site is None:
        raise NotFoundError('Site not found')
    if not site.secret or not hmac.compare_digest(site.secret.encode(), (secret or '').encode()):
        logger.warning("Rejected push for %s: bad site secret", site_key, extra={'site_id': site.id})
        raise Unauthorized('Unauthorized')
    if site.status != 'active':
        raise ValidationError('Site is not active')
    return site


def record_deploy(data, secret, now=None):
    """Stamp the site's last deploy time. Returns the quiet window it opened."""
    _require(data, ('site_key', 'deploy_id', 'environment'))
    now = now or utcnow()

    session = get_session()
    try:
        site = authenticate_site(session, data['site_key'], secret)
        site.last_deploy_at = now
        session.commit()
        site_id = site.id
        minutes = site.deploy_suppression_minutes or 0
    except (ValidationError, NotFoundError, Unauthorized):
        session.rollback()
        raise
    except Exception:
        session.rollback()
        logger.error("Failed to record deploy for %s", data.get('site_key'), exc_info=True)
        raise
    finally:
        session.close()

    logger.info("Deploy %s recorded for %s (%s)", data['deploy_id'], data['site_key'], data['environment'],
                extra={'site_id': site_id})
    return {
        'success': True,
        'message': 'Deploy event recorded',
        'site_id': site_id,
        'deploy_id': data['deploy_id'],
        'suppression_minutes': minutes,
        'suppression_active': minutes > 0,
    }


def record_site_error(data, secret, now=None):
    """Log a site-reported error and escalate sev-1/sev-2 into an incident."""
    _require(data, ('site_key', 'severity', 'type', 'message'))
    severity = data['severity']
    if severity not in SEVERITIES:
        raise ValidationError('Invalid severity. Must be: ' + ', '.join(SEVERITIES))
    now = now or utcnow()

    session = get_session()
    try:
        site = authenticate_site(session, data['site_key'], secret)
        event = HealthEvent(
            site_id=site.id,
            check_type=ERROR_CHECK_TYPE,
            result='fail',
            error_message=data['message'],
            raw_payload={
                'severity': severity,
                'type': data['type'],
                'path': data.get('path'),
                'metadata': data.get('metadata') or {},
            },
            created_at=now,
        )
        session.add(event)
        session.flush()

        incident = None
        created = False
        if severity in INCIDENT_SEVERITIES:
            incident, created = open_or_extend_incident(
                session, site, ERROR_CHECK_TYPE, severity, event.id, now,
                title=f"{severity.upper()}: {data['type']}",
                description=data['message'],
            )
        session.commit()
        site_id = site.id
        event_id = event.id
        incident_id = incident.id if incident is not None else None
    except (ValidationError, NotFoundError, Unauthorized):
        session.rollback()
        raise
    except Exception:
        session.rollback()
        logger.error("Failed to record error for %s", data.get('site_key'), exc_info=True)
        raise
    finally:
        session.close()

    logger.info("Error logged for %s: %s %s", data['site_key'], severity, data['type'],
                extra={'site_id': site_id})
    if created:
        logger.warning("Opened %s incident %s from a reported error", severity, incident_id,
                       extra={'incident_id': incident_id, 'site_id': site_id})
        notify_new_incident(incident_id, site_id, severity)

    return {
        'success': True,
        'message': 'Error logged',
        'event_id': event_id,
        'incident_created': created,
        'incident_id': incident_id,
    }
