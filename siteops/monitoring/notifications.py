"""
Incident notification dispatcher — tier-gated emails to the team and the client.

Who hears about a new, unresolved incident:

    tier         sev-1  sev-2  sev-3
    internal      yes    yes    yes
    care          yes    yes    no
    essentials    yes    no     no
    none          no     no     no

On resolution the team is always told; the client only on the care tier.
The client rules come from alert_policy.yaml (siteops.monitoring.policy).
Every attempt is written to ``notifications``, delivered or not.
"""
import logging
from dataclasses import dataclass
from html import escape
from typing import List

from siteops.config import INTERNAL_EMAIL, AGENCY_NAME, SEVERITIES
from siteops.database import get_session, as_utc
from siteops.errors import NotFoundError, ValidationError
from siteops.models.incident import Incident, Notification
from siteops.models.monitored_site import MonitoredSite
from siteops.monitoring.policy import client_alert_severities, client_gets_resolution
from siteops.services import email_client

logger = logging.getLogger('siteops.monitoring.notifications')

SEVERITY_COLORS = {'sev-1': '#dc2626', 'sev-2': '#f59e0b', 'sev-3': '#3b82f6'}


@dataclass(frozen=True)
class PlannedNotification:
    recipient: str   # internal / client
    kind: str        # alert / resolution
    channel: str = 'email'


def plan_notifications(tier, severity, is_new, is_resolved, has_client_email=True) -> List[PlannedNotification]:
    """Pure tier-gating policy. Returns the notifications an incident change should produce."""
    planned = []
    if is_resolved:
        planned.append(PlannedNotification('internal', 'resolution'))
        if client_gets_resolution(tier) and has_client_email:
            planned.append(PlannedNotification('client', 'resolution'))
    elif is_new:
        planned.append(PlannedNotification('internal', 'alert'))
        if severity in client_alert_severities(tier) and has_client_email:
            planned.append(PlannedNotification('client', 'alert'))
    return planned


# ── Email bodies ─────────────────────────────────────────────────────────────

def _site_url(site):
    domain = site.primary_domain or ''
    return domain if domain.startswith(('http://', 'https://')) else f'https://{domain}'


def _opened(incident):
    opened = as_utc(incident.opened_at)
    return opened.strftime('%Y-%m-%d %H:%M UTC') if opened else 'unknown'


def render_internal_alert(incident, site):
    color = SEVERITY_COLORS.get(incident.severity, '#6b7280')
    subject = f'🚨 {incident.severity.upper()}: {site.site_name} - {incident.title}'
    html = f"""<!DOCTYPE html>
<html><body style="font-family: -apple-system, 'Segoe UI', Roboto, sans-serif;">
<h1 style="background-color: {color}; color: #ffffff; padding: 16px;">{incident.severity.upper()} Incident</h1>
<h2>{escape(incident.title)}</h2>
<table>
<tr><td><strong>Site:</strong></td><td><a href="{escape(_site_url(site))}">{escape(site.site_name)}</a></td></tr>
<tr><td><strong>Severity:</strong></td><td>{incident.severity.upper()}</td></tr>
<tr><td><strong>Status:</strong></td><td>{incident.status}</td></tr>
<tr><td><strong>Opened:</strong></td><td>{_opened(incident)}</td></tr>
<tr><td><strong>Tier:</strong></td><td>{site.subscription_tier}</td></tr>
</table>
<p style="border-left: 4px solid {color}; padding: 12px;">{escape(incident.description or '')}</p>
<p style="font-size: 12px; color: #6b7280;">{escape(AGENCY_NAME)} Monitoring</p>
</body></html>"""
    return subject, html


def render_client_alert(incident, site):
    subject = f'Website Issue Detected - {site.site_name}'
    html = f"""<!DOCTYPE html>
<html><body style="font-family: -apple-system, 'Segoe UI', Roboto, sans-serif; background-color: #faf8f5;">
<h1>We detected an issue with your website</h1>
<p>Our monitoring system detected a potential issue with <strong>{escape(site.site_name)}</strong>. Our team has been notified and is looking into it.</p>
<p><strong>What we found:</strong> {escape(incident.title)}</p>
<p>No action is needed from you right now. We'll follow up as soon as it's resolved.</p>
<p>{escape(AGENCY_NAME)}</p>
</body></html>"""
    return subject, html


def render_internal_resolution(incident, site):
    subject = f'✅ RESOLVED: {site.site_name} - {incident.title}'
    resolved = as_utc(incident.resolved_at)
    html = f"""<!DOCTYPE html>
<html><body style="font-family: -apple-system, 'Segoe UI', Roboto, sans-serif;">
<h1 style="background-color: #16a34a; color: #ffffff; padding: 16px;">Incident Resolved</h1>
<h2>{escape(incident.title)}</h2>
<p><strong>Site:</strong> {escape(site.site_name)}<br>
<strong>Severity:</strong> {incident.severity.upper()}<br>
<strong>Opened:</strong> {_opened(incident)}<br>
<strong>Resolved:</strong> {resolved.strftime('%Y-%m-%d %H:%M UTC') if resolved else 'now'}</p>
</body></html>"""
    return subject, html


def render_client_resolution(incident, site):
    subject = f'Issue Resolved - {site.site_name}'
    html = f"""<!DOCTYPE html>
<html><body style="font-family: -apple-system, 'Segoe UI', Roboto, sans-serif; background-color: #faf8f5;">
<h1>The issue with your website has been resolved</h1>
<p>The issue we detected with <strong>{escape(site.site_name)}</strong> has been resolved and everything is running normally again.</p>
<p>We'll keep monitoring around the clock.</p>
<p>{escape(AGENCY_NAME)}</p>
</body></html>"""
    return subject, html


_RENDERERS = {
    ('internal', 'alert'): render_internal_alert,
    ('client', 'alert'): render_client_alert,
    ('internal', 'resolution'): render_internal_resolution,
    ('client', 'resolution'): render_client_resolution,
}


# ── Dispatch ─────────────────────────────────────────────────────────────────

def dispatch_incident_notifications(incident_id, site_id, severity, is_new=False, is_resolved=False):
    """
    Send and record the notifications for an incident change.

    Returns {success, notifications_sent, notifications:[{recipient, channel, success}]}.
    """
    if not incident_id or not site_id or not severity:
        raise ValidationError('Missing required fields: incident_id, site_id, severity')
    if severity not in SEVERITIES:
        raise ValidationError(f'Invalid severity: {severity}')

    session = get_session()
    try:
        site = session.get(MonitoredSite, site_id)
        if site is None:
            raise NotFoundError('Site not found')
        incident = session.get(Incident, incident_id)
        if incident is None or incident.site_id != site.id:
            raise NotFoundError('Incident not found')

        planned = plan_notifications(
            site.subscription_tier, severity, bool(is_new), bool(is_resolved),
            has_client_email=bool(site.client_email),
        )

        sent = []
        for note in planned:
            address = site.client_email if note.recipient == 'client' else (site.internal_email or INTERNAL_EMAIL)
            subject, html = _RENDERERS[(note.recipient, note.kind)](incident, site)
            result = email_client.send_email(address, subject, html)
            session.add(Notification(
                incident_id=incident.id,
                site_id=site.id,
                recipient=note.recipient,
                channel=note.channel,
                recipient_address=address,
                subject=subject,
                body=html,
                delivered=result.success,
                delivery_error=None if result.success else result.error,
            ))
            sent.append({'recipient': note.recipient, 'channel': note.channel, 'success': result.success})
            if not result.success:
                logger.warning("%s %s notification for incident %s failed: %s",
                               note.recipient, note.kind, incident_id, result.error,
                               extra={'incident_id': incident_id, 'site_id': site_id})

        session.commit()
    except (ValidationError, NotFoundError):
        session.rollback()
        raise
    except Exception:
        session.rollback()
        logger.error("Failed to dispatch notifications for incident %s", incident_id, exc_info=True,
                     extra={'incident_id': incident_id})
        raise
    finally:
        session.close()

    logger.info("Incident %s: %d notification(s) dispatched", incident_id, len(sent),
                extra={'incident_id': incident_id, 'site_id': site_id})
    return {'success': True, 'notifications_sent': len(sent), 'notifications': sent}
