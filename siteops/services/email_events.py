"""
Delivery events posted back by the email provider.

Every event is stored. Bounces and spam complaints add the recipient to the
suppression list so no later stage emails them again.
"""
import logging

from sqlalchemy import select

from siteops.database import get_session
from siteops.errors import ValidationError
from siteops.models.email_draft import EmailDraft
from siteops.models.email_event import EmailEvent
from siteops.models.lead import Lead
from siteops.services.suppression import add_suppression, normalize_email

logger = logging.getLogger('siteops.email_events')

SUPPRESSING_EVENTS = ('email.bounced', 'email.complained')


def _recipient(data):
    to = data.get('to')
    if isinstance(to, list):
        to = to[0] if to else None
    return normalize_email(to) or None


def _int_or_none(value):
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _tags(data):
    """Tags arrive either as a mapping or as a list of {name, value}."""
    tags = data.get('tags') or {}
    if isinstance(tags, list):
        return {t.get('name'): t.get('value') for t in tags if isinstance(t, dict)}
    return tags


def suppression_reason(event_type, data):
    if event_type == 'email.bounced':
        bounce = data.get('bounce') or {}
        return f"Bounced: {bounce.get('message') or 'Unknown reason'}"
    return 'Spam complaint'


def record_email_event(event):
    """Store one provider event; suppress the recipient on bounce/complaint."""
    data = (event or {}).get('data') or {}
    event_type = (event or {}).get('type')
    message_id = data.get('id') or data.get('email_id')
    if not message_id:
        raise ValidationError('Missing message ID in webhook payload')

    tags = _tags(data)
    lead_id = _int_or_none(tags.get('lead_id'))
    draft_id = _int_or_none(tags.get('email_draft_id'))
    recipient = _recipient(data)

    session = get_session()
    try:
        if draft_id is None:
            draft = session.execute(
                select(EmailDraft).where(EmailDraft.provider_message_id == message_id)
            ).scalar_one_or_none()
            if draft is not None:
                draft_id = draft.id
                lead_id = lead_id or draft.lead_id

        suppressed = False
        if event_type in SUPPRESSING_EVENTS and recipient:
            reason = suppression_reason(event_type, data)
            _, suppressed = add_suppression(session, recipient, reason=reason, source='provider_webhook')
            if suppressed:
                logger.info("Suppressed %s after %s: %s", recipient, event_type, reason)
                if lead_id is not None:
                    lead = session.get(Lead, lead_id)
                    if lead is not None:
                        lead.status = 'suppressed'

        record = EmailEvent(
            provider_message_id=message_id,
            email_draft_id=draft_id,
            lead_id=lead_id,
            event_type=event_type or 'unknown',
            recipient=recipient,
            payload=event,
        )
        session.add(record)
        session.commit()
        event_id = record.id
    except Exception:
        session.rollback()
        logger.error("Failed to store email event %s", message_id, exc_info=True)
        raise
    finally:
        session.close()

    logger.info("Stored %s event for %s", event_type, message_id, extra={'email_draft_id': draft_id})
    return {'success': True, 'event_id': event_id, 'event_type': event_type, 'suppressed': suppressed}
