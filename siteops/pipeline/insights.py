"""
Insight generator — optional plain-language observations for an audit.

Never raises for provider or parsing problems; callers get
InsightsOutcome.skipped(reason) and carry on.
"""
import logging

from siteops.database import get_session
from siteops.models.site_audit import SiteAudit
from siteops.pipeline.base import InsightsOutcome

logger = logging.getLogger('siteops.pipeline.insights')


def generate_insights(audit_id) -> InsightsOutcome:
    """Return cached insights for the audit, or ask the LLM for 2–3 new ones."""
    from siteops.services import openai_client

    session = get_session()
    try:
        audit = session.get(SiteAudit, audit_id)
        if audit is None:
            return InsightsOutcome.skipped('Audit not found')
        if audit.insights:
            return InsightsOutcome.ok(audit.insights, cached=True)
        if openai_client.client is None:
            return InsightsOutcome.skipped('OPENAI_API_KEY not configured')

        try:
            insights = openai_client.generate_audit_insights(audit.scores, audit.core_web_vitals)
        except Exception as e:
            logger.warning("Insight generation failed for audit %s: %s", audit_id, e,
                           extra={'audit_id': audit_id})
            return InsightsOutcome.skipped(f'Insight generation failed: {e}')

        audit.insights = insights
        session.commit()
        logger.info("Stored %d insights for audit %s", len(insights), audit_id, extra={'audit_id': audit_id})
        return InsightsOutcome.ok(insights)
    except Exception as e:
        session.rollback()
        logger.error("Failed to store insights for audit %s", audit_id, exc_info=True)
        return InsightsOutcome.skipped(f'Failed to store insights: {e}')
    finally:
        session.close()
