"""
Calendly webhook handling — signature verification and Discovery call bookings.

Calendly signs deliveries with ``Calendly-Webhook-Signature: t=<ts>,v1=<hex>``
where v1 is HMAC-SHA256 over ``"<ts>.<raw body>"``.
"""
import hashlib
import hmac
import logging
import re
import time
from datetime import datetime
from html import escape

from sqlalchemy import select

from siteops.config import (
    CALENDLY_DISCOVERY_CALL_SLUG, CALENDLY_SIGNATURE_TOLERANCE,
    AGENCY_NAME, AGENCY_URL, INTERNAL_EMAIL,
)
from siteops.database import get_session, utcnow
from siteops.errors import ConfigurationError, ValidationError, UpstreamError
from siteops.models.lead import Lead
from siteops.services import email_client
from siteops.services.suppression import normalize_email

logger = logging.getLogger('siteops.calendly')

PREP_SUBJECT = 'Your Discovery session is booked — DoneWell'

_TS_RE = re.compile(r'^t=(\d+)$')
_SIG_RE = re.compile(r'^v1=([a-f0-9]+)$')


def verify_signature(body, header, secret, now=None):
    """True if header carries a fresh, valid signature of body."""
    if not secret or not header:
        return False

    parts = [p.strip() for p in header.split(',')]
    if len(parts) != 2:
        logger.warning("Malformed Calendly signature header (%d parts)", len(parts))
        return False
    ts_match = _TS_RE.match(parts[0])
    sig_match = _SIG_RE.match(parts[1])
    if not ts_match or not sig_match:
        logger.warning("Could not parse Calendly signature header")
        return False

    timestamp = int(ts_match.group(1))
    now = time.time() if now is None else now
    if abs(now - timestamp) > CALENDLY_SIGNATURE_TOLERANCE:
        logger.warning("Calendly webhook timestamp outside tolerance (%ds)", abs(now - timestamp))
        return False

    if isinstance(body, bytes):
        body = body.decode('utf-8')
    expected = hmac.new(
        secret.encode('utf-8'),
        f'{timestamp}.{body}'.encode('utf-8'),
        hashlib.sha256,
    ).hexdigest()
    return hmac.compare_digest(expected, sig_match.group(1))


def parse_name(full_name):
    """'Ada King Lovelace' → ('Ada King', 'Lovelace')."""
    parts = (full_name or '').split()
    if not parts:
        return '', ''
    if len(parts) == 1:
        return parts[0], ''
    return ' '.join(parts[:-1]), parts[-1]


def is_discovery_call(scheduled_event):
    event_type = scheduled_event.get('event_type') or ''
    event_name = scheduled_event.get('name') or ''
    return CALENDLY_DISCOVERY_CALL_SLUG in event_type or 'discovery' in event_name.lower()


def format_start_time(start_time):
    if not start_time:
        return 'your scheduled time'
    try:
        dt = datetime.fromisoformat(start_time.replace('Z', '+00:00'))
    except ValueError:
        return start_time
    return dt.strftime('%A, %B %d, %Y at %I:%M %p %Z').replace(' 0', ' ')


def render_prep_email(first_name, start_time):
    when = format_start_time(start_time)
    questions = [
        'In one sentence, what is this website for?',
        'Who is this site primarily for?',
        'When someone lands on your site, what should they understand in the first 5 seconds?',
        'What is the single most important action you want visitors to take?',
        'Are there any websites you like, inside or outside your industry?',
        'What should people <em>not</em> feel when they visit your site?',
        'Do you already have anything we should work from or build around?',
        "Is there anything you already know you <em>don't</em> want?",
    ]
    items = '\n'.join(f'<li><strong>{q}</strong></li>' for q in questions)
    return f"""<!DOCTYPE html>
<html lang="en">
<head><meta charset="UTF-8"><title>{PREP_SUBJECT}</title></head>
<body style="font-family: -apple-system, 'Segoe UI', Roboto, Arial, sans-serif; background-color: #faf8f5; line-height: 1.6;">
<h1>Your Discovery session is booked</h1>
<p>Hi {escape(first_name or 'there')}, we're looking forward to talking with you on <b>{escape(when)}</b>. You'll receive a calendar invite shortly.</p>
<h2>A few questions to help us make the most of our time</h2>
<p>Short, gut-reaction answers are more than enough.</p>
<ol>
{items}
</ol>
<h2>What happens next</h2>
<p>After the call you'll receive a clear written roadmap, a recommended approach and a final quote, usually within 24 hours.</p>
<p><a href="{AGENCY_URL}">{escape(AGENCY_NAME)}</a></p>
</body>
</html>"""


def handle_booking(payload):
    """
    Process one Calendly webhook payload.

    Only ``invitee.created`` events for the Discovery call create or update a
    lead. Replays of the same scheduled event are detected by event URI and do
    not send a second prep email once one has gone out.
    """
    if not email_client.is_configured():
        raise ConfigurationError(email_client.NOT_CONFIGURED)

    if not isinstance(payload, dict) or payload.get('event') != 'invitee.created':
        logger.info("Ignoring Calendly event %s", payload.get('event') if isinstance(payload, dict) else None)
        return {'success': True, 'message': 'Event ignored'}

    invitee = payload.get('payload') or {}
    if not invitee.get('email') or not invitee.get('name'):
        raise ValidationError('Missing required invitee data')

    scheduled = invitee.get('scheduled_event') or {}
    if not is_discovery_call(scheduled):
        logger.info("Ignoring non-Discovery booking '%s'", scheduled.get('name', ''))
        return {
            'success': True,
            'message': 'Event ignored - not a Discovery call',
            'event_name': scheduled.get('name', ''),
            'event_type_uri': scheduled.get('event_type'),
        }

    first_name, last_name = parse_name(invitee['name'])
    email = normalize_email(invitee['email'])
    event_uri = scheduled.get('uri') or invitee.get('event')

    session = get_session()
    try:
        lead = None
        if event_uri:
            lead = session.execute(
                select(Lead).where(Lead.calendly_event_uri == event_uri)
            ).scalar_one_or_none()
            if lead is not None and lead.prep_email_sent_at is not None:
                logger.info("Calendly event %s already processed (lead %s)", event_uri, lead.id)
                return {'success': True, 'message': 'Already processed', 'lead_id': lead.id}

        if lead is None:
            lead = session.execute(
                select(Lead).where(Lead.email == email).order_by(Lead.id).limit(1)
            ).scalar_one_or_none()
        if lead is None:
            lead = Lead(first_name=first_name, last_name=last_name, email=email, message='')
            session.add(lead)
            logger.info("Creating lead for Discovery booking %s", email)
        lead.booked_consult = True
        lead.calendly_event_uri = event_uri
        session.commit()
        lead_id = lead.id
    except Exception:
        session.rollback()
        logger.error("Failed to record Calendly booking for %s", email, exc_info=True)
        raise
    finally:
        session.close()

    result = email_client.send_email(
        email, PREP_SUBJECT, render_prep_email(first_name, scheduled.get('start_time')),
        bcc=[INTERNAL_EMAIL],
    )
    if not result.success:
        # prep_email_sent_at stays empty so a webhook retry sends again
        raise UpstreamError('Failed to send prep email', status_code=500,
                            details={'lead_id': lead_id, 'provider': result.payload or result.error})

    session = get_session()
    try:
        lead = session.get(Lead, lead_id)
        lead.prep_email_sent_at = utcnow()
        session.commit()
    except Exception:
        session.rollback()
        logger.error("Failed to stamp prep email for lead %s", lead_id, exc_info=True)
        raise
    finally:
        session.close()

    return {'success': True, 'lead_id': lead_id, 'email_sent': True, 'message_id': result.message_id}
