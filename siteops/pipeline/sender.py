"""
Email sender — delivers a stored draft through Resend.

Suppression is re-checked at send time; a lead may have unsubscribed after
the draft was written. No retries here: a failed send leaves the draft in
``draft`` status for the queue or a human to try again.
"""
import logging

from siteops.config import INTERNAL_EMAIL, OUTREACH_CAMPAIGN
from siteops.database import get_session, utcnow
from siteops.errors import (
    SiteOpsError, NotFoundError, AlreadySent, ValidationError, ConfigurationError, UpstreamError,
)
from siteops.models.email_draft import EmailDraft
from siteops.models.lead import Lead
from siteops.services import email_client
from siteops.services.suppression import find_suppression, suppressed_result

logger = logging.getLogger('siteops.pipeline.sender')


def send_draft(email_draft_id):
    """
    Send draft email_draft_id to its lead.

    Returns {success, message_id, email_draft_id, sent_to, sent_at}, or the
    suppressed result.
    """
    session = get_session()
    try:
        draft = session.get(EmailDraft, email_draft_id)
        if draft is None:
            raise NotFoundError('Email draft not found')
        if draft.status == 'sent':
            raise AlreadySent(email_draft_id)

        lead = session.get(Lead, draft.lead_id)
        if lead is None or not lead.email:
            raise ValidationError('Lead email not found')

        suppression = find_suppression(session, lead.email)
        if suppression is not None:
            lead.status = 'suppressed'
            session.commit()
            logger.info("Not sending draft %s: %s is suppressed", email_draft_id, lead.email,
                        extra={'email_draft_id': email_draft_id, 'lead_id': lead.id})
            return suppressed_result(
                email_draft_id=email_draft_id,
                suppressed_at=suppression.suppressed_at.isoformat() if suppression.suppressed_at else None,
                suppression_reason=suppression.reason,
            )

        if not email_client.is_configured():
            raise ConfigurationError(email_client.NOT_CONFIGURED)

        to = lead.email
        result = email_client.send_email(
            to,
            draft.subject,
            draft.edited_body or draft.body,
            bcc=[INTERNAL_EMAIL],
            tags={
                'lead_id': lead.id,
                'email_draft_id': draft.id,
                'campaign': OUTREACH_CAMPAIGN,
            },
        )
        if not result.success:
            raise UpstreamError(
                'Failed to send email',
                status_code=result.status_code or 502,
                details=result.payload if result.payload is not None else result.error,
            )

        sent_at = utcnow()
        draft.status = 'sent'
        draft.sent_at = sent_at
        draft.provider_message_id = result.message_id
        session.commit()
    except SiteOpsError:
        session.rollback()
        raise
    except Exception:
        session.rollback()
        logger.error("Failed to send draft %s", email_draft_id, exc_info=True,
                     extra={'email_draft_id': email_draft_id})
        raise
    finally:
        session.close()

    logger.info("Draft %s sent to %s (message %s)", email_draft_id, to, result.message_id,
                extra={'email_draft_id': email_draft_id})
    return {
        'success': True,
        'message_id': result.message_id,
        'email_draft_id': email_draft_id,
        'sent_to': to,
        'sent_at': sent_at.isoformat(),
    }
