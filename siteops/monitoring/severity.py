"""
Severity classification — turns repeated health-check failures into incidents.

A failing check opens an incident only after INCIDENT_FAILURE_THRESHOLD
consecutive failures, and never inside a site's post-deploy quiet window.
Further failures of the same check type attach to the open incident.
"""
import logging
from datetime import timedelta

from sqlalchemy import select

from siteops.config import INCIDENT_FAILURE_THRESHOLD, HEALTH_CHECK_LOOKBACK
from siteops.database import get_session, utcnow, as_utc
from siteops.errors import NotFoundError, ValidationError
from siteops.models.health import HealthEvent
from siteops.models.incident import Incident
from siteops.models.monitored_site import MonitoredSite
from siteops.monitoring.policy import severity_for

logger = logging.getLogger('siteops.monitoring.severity')

INCIDENT_TITLES = {
    'uptime': 'Site Unreachable',
    'health_api': 'Health API Failing',
    'ssl': 'SSL Certificate Issue',
    'cms': 'CMS Health Degraded',
    'form': 'Form Submission Failing',
    'seo': 'SEO Issue Detected',
}


def incident_title(check_type, severity):
    return f"{severity.upper()}: {INCIDENT_TITLES.get(check_type, 'Health Check Failing')}"


def incident_description(check_type, site_name, failures):
    descriptions = {
        'uptime': f'{site_name} is not responding to requests.',
        'health_api': 'The /api/health endpoint is returning errors.',
        'ssl': 'SSL certificate validation failed.',
        'cms': 'The CMS health check is failing. Content may not be loading.',
        'form': 'Form submission test is failing. Lead capture may be broken.',
        'seo': 'SEO-related issues detected (robots.txt, sitemap, etc).',
    }
    return f"{descriptions.get(check_type, 'A health check is failing.')} ({failures} consecutive failures)"


def in_deploy_window(site, now):
    if site.last_deploy_at is None:
        return False
    quiet_until = as_utc(site.last_deploy_at) + timedelta(minutes=site.deploy_suppression_minutes or 0)
    return now < quiet_until


def consecutive_failures(session, site_id, check_type):
    """Count 'fail' results at the head of the most recent events for this check type."""
    results = session.execute(
        select(HealthEvent.result)
        .where(HealthEvent.site_id == site_id, HealthEvent.check_type == check_type)
        .order_by(HealthEvent.created_at.desc(), HealthEvent.id.desc())
        .limit(HEALTH_CHECK_LOOKBACK)
    ).scalars().all()
    count = 0
    for result in results:
        if result != 'fail':
            break
        count += 1
    return count


def open_or_extend_incident(session, site, check_type, severity, event_id, now, title, description):
    """Attach event_id to the site's open incident for check_type, or open one.

    Returns (incident, created). The caller commits.
    """
    incident = session.execute(
        select(Incident)
        .where(Incident.site_id == site.id, Incident.status == 'open',
               Incident.trigger_check_type == check_type)
        .order_by(Incident.opened_at.desc())
        .limit(1)
    ).scalar_one_or_none()

    if incident is None:
        incident = Incident(
            site_id=site.id,
            severity=severity,
            status='open',
            title=title,
            description=description,
            trigger_check_type=check_type,
            trigger_event_ids=[event_id],
            opened_at=now,
        )
        session.add(incident)
        return incident, True

    # reassign so the JSON column is flagged dirty
    incident.trigger_event_ids = list(incident.trigger_event_ids or []) + [event_id]
    return incident, False


def notify_new_incident(incident_id, site_id, severity):
    """Best-effort first notification for a freshly opened incident."""
    from siteops.monitoring.notifications import dispatch_incident_notifications

    try:
        dispatch_incident_notifications(incident_id, site_id, severity, is_new=True)
    except Exception:
        logger.error("Notification dispatch failed for incident %s", incident_id, exc_info=True,
                     extra={'incident_id': incident_id})


def classify_failure(site_id, check_type, event_id, now=None):
    """Open or extend an incident for a failing check. Returns a summary dict."""
    if not site_id or not check_type or not event_id:
        raise ValidationError('Missing required fields: site_id, check_type, event_id')
    now = now or utcnow()

    session = get_session()
    try:
        site = session.get(MonitoredSite, site_id)
        if site is None:
            raise NotFoundError('Site not found')

        if in_deploy_window(site, now):
            logger.info("%s is in its deploy quiet window, no incident", site.site_name,
                        extra={'site_id': site_id})
            return {'success': True, 'incident_created': False, 'suppressed': True,
                    'reason': 'Deploy suppression window active'}

        failures = consecutive_failures(session, site_id, check_type)
        if failures < INCIDENT_FAILURE_THRESHOLD:
            return {
                'success': True,
                'incident_created': False,
                'reason': f'Only {failures} consecutive failures (threshold: {INCIDENT_FAILURE_THRESHOLD})',
            }

        severity = severity_for(check_type)
        incident, created = open_or_extend_incident(
            session, site, check_type, severity, event_id, now,
            title=incident_title(check_type, severity),
            description=incident_description(check_type, site.site_name, failures),
        )
        severity = incident.severity
        session.commit()
        incident_id = incident.id
        site_name = site.site_name
    except (ValidationError, NotFoundError):
        session.rollback()
        raise
    except Exception:
        session.rollback()
        logger.error("Failed to classify %s failure for site %s", check_type, site_id, exc_info=True,
                     extra={'site_id': site_id})
        raise
    finally:
        session.close()

    if created:
        logger.warning("Opened %s incident %s for %s (%s)", severity, incident_id, site_name, check_type,
                       extra={'incident_id': incident_id, 'site_id': site_id})
        notify_new_incident(incident_id, site_id, severity)

    return {
        'success': True,
        'incident_created': created,
        'incident_id': incident_id,
        'severity': severity,
        'consecutive_failures': failures,
    }


def resolve_incident(incident_id, now=None):
    """Mark an incident resolved and send the resolution notifications."""
    from siteops.monitoring.notifications import dispatch_incident_notifications

    now = now or utcnow()
    session = get_session()
    try:
        incident = session.get(Incident, incident_id)
        if incident is None:
            raise NotFoundError('Incident not found')
        if incident.status == 'resolved':
            return {'success': True, 'incident_id': incident_id, 'already_resolved': True}
        incident.status = 'resolved'
        incident.resolved_at = now
        session.commit()
        site_id = incident.site_id
        severity = incident.severity
    except NotFoundError:
        session.rollback()
        raise
    except Exception:
        session.rollback()
        logger.error("Failed to resolve incident %s", incident_id, exc_info=True,
                     extra={'incident_id': incident_id})
        raise
    finally:
        session.close()

    logger.info("Incident %s resolved", incident_id, extra={'incident_id': incident_id})
    notified = dispatch_incident_notifications(incident_id, site_id, severity, is_resolved=True)
    return {'success': True, 'incident_id': incident_id, 'notifications_sent': notified['notifications_sent']}
