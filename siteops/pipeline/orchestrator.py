"""
Synchronous lead pipeline: Audit → Insights → Draft → Send in one call.

Audit and Draft are critical: if either fails the run stops and the overall
result fails (HTTP 500). Insights and Send may fail without failing the run;
a failed send makes the response a partial success (HTTP 207). A suppressed address
stops the run before any step executes.
"""
import logging
from dataclasses import dataclass, field
from typing import Dict

from siteops.database import get_session
from siteops.errors import NotFoundError, SiteOpsError
from siteops.models.lead import Lead
from siteops.pipeline.audit import normalize_url, run_audit
from siteops.pipeline.base import StepResult
from siteops.pipeline.drafter import draft_email
from siteops.pipeline.insights import generate_insights
from siteops.pipeline.sender import send_draft
from siteops.services.suppression import is_suppressed, SUPPRESSED_ERROR

logger = logging.getLogger('siteops.pipeline.orchestrator')

STEPS = ('audit', 'insights', 'email', 'send')


@dataclass
class PipelineResult:
    lead_id: int
    steps: Dict[str, StepResult] = field(default_factory=dict)
    success: bool = False
    error: str = None
    message: str = ''
    http_status: int = 200

    def to_dict(self):
        out = {
            'success': self.success,
            'lead_id': self.lead_id,
            'steps': {name: self.steps.get(name, StepResult.skip()).to_dict() for name in STEPS},
            'message': self.message,
        }
        if self.error:
            out['error'] = self.error
        return out


def _error_text(exc):
    return exc.message if isinstance(exc, SiteOpsError) else str(exc)


def _error_data(exc):
    return exc.to_dict() if isinstance(exc, SiteOpsError) else None


def _abort(result, step, exc):
    logger.error("Pipeline for lead %s failed at %s: %s", result.lead_id, step, exc,
                 exc_info=not isinstance(exc, SiteOpsError), extra={'lead_id': result.lead_id})
    result.steps[step] = StepResult.failed(_error_text(exc), data=_error_data(exc))
    result.success = False
    result.error = f'{step} step failed'
    result.message = f'Pipeline stopped: {step} step failed'
    result.http_status = 500
    return result


def process_lead(lead_id) -> PipelineResult:
    """Run the full outreach pipeline for one lead."""
    session = get_session()
    try:
        lead = session.get(Lead, lead_id)
        if lead is None:
            raise NotFoundError('Lead not found')
        suppressed = is_suppressed(session, lead.email)
        website = lead.website_url
    finally:
        session.close()

    result = PipelineResult(lead_id=lead_id)

    if suppressed:
        logger.info("Lead %s is suppressed, pipeline skipped", lead_id, extra={'lead_id': lead_id})
        result.steps = {name: StepResult.skip(SUPPRESSED_ERROR) for name in STEPS}
        result.error = SUPPRESSED_ERROR
        result.message = 'This email address has been unsubscribed and will not receive emails'
        return result

    # 1. Audit
    try:
        audit = run_audit(normalize_url(website), lead_id)
    except Exception as e:
        return _abort(result, 'audit', e)
    result.steps['audit'] = StepResult.ok(audit)

    # 2. Insights (best-effort)
    outcome = generate_insights(audit['audit_id'])
    result.steps['insights'] = outcome.to_step()
    if not outcome.is_ok:
        logger.info("Continuing without insights for lead %s: %s", lead_id, outcome.skipped_reason,
                    extra={'lead_id': lead_id})

    # 3. Draft
    try:
        draft = draft_email(lead_id)
    except Exception as e:
        return _abort(result, 'email', e)
    if draft.get('suppressed'):
        result.steps['email'] = StepResult.skip(SUPPRESSED_ERROR)
        result.steps['send'] = StepResult.skip(SUPPRESSED_ERROR)
        result.error = SUPPRESSED_ERROR
        result.message = 'Lead was suppressed during processing'
        return result
    result.steps['email'] = StepResult.ok(draft)

    # 4. Send (failure tolerated; the draft stays available for a manual resend)
    try:
        sent = send_draft(draft['email_draft_id'])
    except Exception as e:
        logger.warning("Send failed for lead %s, draft %s kept: %s", lead_id, draft['email_draft_id'], e,
                       extra={'lead_id': lead_id})
        result.steps['send'] = StepResult.failed(_error_text(e), data=_error_data(e))
    else:
        if sent.get('suppressed'):
            logger.info("Lead %s was suppressed before send", lead_id, extra={'lead_id': lead_id})
            result.steps['send'] = StepResult.skip(SUPPRESSED_ERROR)
            result.error = SUPPRESSED_ERROR
            result.message = 'Lead was suppressed during processing'
            return result
        result.steps['send'] = StepResult.ok(sent)

    # Skipped insights are reported but do not make the run partial
    result.success = True
    if result.steps['send'].success:
        result.message = 'Lead processed successfully'
        result.http_status = 200
    else:
        result.message = 'Draft created but the email was not sent'
        result.http_status = 207
    logger.info("Pipeline for lead %s finished (%s)", lead_id, result.http_status, extra={'lead_id': lead_id})
    return result
