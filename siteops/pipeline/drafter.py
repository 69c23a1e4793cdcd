"""
Email drafter — picks a template for the lead's latest audit and stores a draft.

Order of checks: suppression, audit presence, then template choice. A
suppressed lead gets a non-error result and no draft is written.
"""
import logging

from siteops.database import get_session, utcnow
from siteops.errors import NotFoundError, AuditMissing, ConfigurationError, GenerationFailed
from siteops.models.email_draft import EmailDraft
from siteops.models.lead import Lead
from siteops.pipeline.audit import latest_audit
from siteops.pipeline.templates import (
    HighScore, Simplified, Generated, IMPROVEMENT_SUBJECT,
    select_template, render_high_score, render_simplified, restrict_html, ensure_footer,
)
from siteops.services.suppression import is_suppressed, suppressed_result, unsubscribe_url

logger = logging.getLogger('siteops.pipeline.drafter')


def _write_generated(choice, lead_ctx, scores, link):
    from siteops.services import openai_client

    if openai_client.client is None:
        raise ConfigurationError('OPENAI_API_KEY not configured')

    prompt = openai_client.build_outreach_prompt(
        lead_ctx['first_name'], lead_ctx['company_name'], lead_ctx['website_url'],
        scores, choice.lowest, choice.insights, link,
    )
    try:
        email = openai_client.generate_outreach_email(prompt)
    except Exception as e:
        logger.error("Email generation failed for lead %s: %s", lead_ctx['id'], e,
                     extra={'lead_id': lead_ctx['id']})
        raise GenerationFailed('Failed to generate email', details=str(e)) from e

    body = ensure_footer(restrict_html(email['body']), link)
    return IMPROVEMENT_SUBJECT, body


def render_draft(choice, lead_ctx, scores):
    """Subject and HTML body for the chosen template variant."""
    link = unsubscribe_url(lead_ctx['email'])
    if isinstance(choice, HighScore):
        return render_high_score(lead_ctx['first_name'], lead_ctx['company_name'], scores, link)
    if isinstance(choice, Simplified):
        return render_simplified(lead_ctx['first_name'], lead_ctx['company_name'], scores, choice.lowest, link)
    if isinstance(choice, Generated):
        return _write_generated(choice, lead_ctx, scores, link)
    raise TypeError(f'Unknown template choice: {choice!r}')


def draft_email(lead_id):
    """
    Draft an outreach email for lead_id.

    Returns {success, email_draft_id, subject, body, lead_id, template}, or the
    suppressed result. Raises NotFoundError, AuditMissing, ConfigurationError
    or GenerationFailed.
    """
    session = get_session()
    try:
        lead = session.get(Lead, lead_id)
        if lead is None:
            raise NotFoundError('Lead not found')
        if is_suppressed(session, lead.email):
            logger.info("Skipping draft for lead %s: email is suppressed", lead_id, extra={'lead_id': lead_id})
            return suppressed_result(lead_id=lead_id)

        audit = latest_audit(session, lead_id)
        if audit is None:
            raise AuditMissing(lead_id)

        lead_ctx = {
            'id': lead.id,
            'email': lead.email,
            'first_name': lead.first_name or 'there',
            'company_name': lead.company_name,
            'website_url': lead.website_url,
        }
        scores = audit.scores
        choice = select_template(scores, audit.insights)
    finally:
        session.close()

    subject, body = render_draft(choice, lead_ctx, scores)

    session = get_session()
    try:
        draft = EmailDraft(
            lead_id=lead_id,
            template=choice.name,
            subject=subject,
            body=body,
            status='draft',
            generated_at=utcnow(),
        )
        session.add(draft)
        lead = session.get(Lead, lead_id)
        if lead is not None:
            lead.status = 'emailed'
        session.commit()
        draft_id = draft.id
    except Exception:
        session.rollback()
        logger.error("Failed to store email draft for lead %s", lead_id, exc_info=True, extra={'lead_id': lead_id})
        raise
    finally:
        session.close()

    logger.info("Stored %s draft %s for lead %s", choice.name, draft_id, lead_id,
                extra={'lead_id': lead_id, 'email_draft_id': draft_id})
    return {
        'success': True,
        'email_draft_id': draft_id,
        'subject': subject,
        'body': body,
        'lead_id': lead_id,
        'template': choice.name,
    }
