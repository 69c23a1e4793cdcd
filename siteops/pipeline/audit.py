"""
Audit runner — PageSpeed scan of a lead's homepage, persisted as a SiteAudit.

The new audit becomes the lead's only ``is_latest`` audit in the same
transaction that clears the previous flag.
"""
import logging
from datetime import timedelta
from urllib.parse import urlparse

from sqlalchemy import select, update, func

from siteops.config import (
    AUDIT_RATE_LIMIT_PER_URL, AUDIT_RATE_LIMIT_WINDOW_HOURS, AUDIT_GLOBAL_HOURLY_LIMIT,
    PAGESPEED_API_KEY,
)
from siteops.database import get_session, utcnow
from siteops.errors import ValidationError, NotFoundError, RateLimitExceeded, ConfigurationError
from siteops.models.lead import Lead
from siteops.models.site_audit import SiteAudit
from siteops.services import pagespeed

logger = logging.getLogger('siteops.pipeline.audit')


def normalize_url(url):
    """Add https:// to bare domains ('example.com' → 'https://example.com')."""
    url = (url or '').strip()
    if url and not url.lower().startswith(('http://', 'https://')):
        url = f'https://{url}'
    return url


def validate_url(url):
    parsed = urlparse(url or '')
    if parsed.scheme not in ('http', 'https') or not parsed.netloc:
        raise ValidationError('Invalid URL format')
    return url


def check_rate_limit(session, url, now=None):
    """Refuse the audit if url (or the whole account) has been audited too often."""
    now = now or utcnow()

    per_url = session.execute(
        select(func.count(SiteAudit.id)).where(
            SiteAudit.url == url,
            SiteAudit.audit_run_at >= now - timedelta(hours=AUDIT_RATE_LIMIT_WINDOW_HOURS),
        )
    ).scalar_one()
    if per_url >= AUDIT_RATE_LIMIT_PER_URL:
        raise RateLimitExceeded(
            f'{url} was already audited {per_url} times in the last {AUDIT_RATE_LIMIT_WINDOW_HOURS}h'
        )

    last_hour = session.execute(
        select(func.count(SiteAudit.id)).where(SiteAudit.audit_run_at >= now - timedelta(hours=1))
    ).scalar_one()
    if last_hour >= AUDIT_GLOBAL_HOURLY_LIMIT:
        raise RateLimitExceeded(f'Hourly audit limit of {AUDIT_GLOBAL_HOURLY_LIMIT} reached')


def latest_audit(session, lead_id):
    return session.execute(
        select(SiteAudit)
        .where(SiteAudit.lead_id == lead_id, SiteAudit.is_latest.is_(True))
        .order_by(SiteAudit.audit_run_at.desc(), SiteAudit.id.desc())
        .limit(1)
    ).scalar_one_or_none()


def run_audit(url, lead_id):
    """
    Audit url for lead_id.

    Returns {success, audit_id, scores, core_web_vitals}. Raises ValidationError,
    ConfigurationError, RateLimitExceeded, NotFoundError or UpstreamError.
    """
    if not url or not lead_id:
        raise ValidationError('url and lead_id are required')
    validate_url(url)
    if not PAGESPEED_API_KEY:
        raise ConfigurationError('PAGESPEED_API_KEY not configured')

    session = get_session()
    try:
        check_rate_limit(session, url)
        if session.get(Lead, lead_id) is None:
            raise NotFoundError('Lead not found')
    finally:
        session.close()

    payload = pagespeed.fetch_report(url)
    scores = pagespeed.extract_scores(payload)
    vitals = pagespeed.extract_core_web_vitals(payload)

    session = get_session()
    try:
        lead = session.get(Lead, lead_id)
        if lead is None:
            raise NotFoundError('Lead not found')

        session.execute(
            update(SiteAudit)
            .where(SiteAudit.lead_id == lead_id, SiteAudit.is_latest.is_(True))
            .values(is_latest=False)
        )
        audit = SiteAudit(
            lead_id=lead_id,
            url=url,
            raw_json=payload,
            is_latest=True,
            audit_run_at=utcnow(),
            **scores,
            **vitals,
        )
        session.add(audit)
        lead.status = 'audited'
        session.commit()
        audit_id = audit.id
    except NotFoundError:
        session.rollback()
        raise
    except Exception:
        session.rollback()
        logger.error("Failed to store audit for lead %s", lead_id, exc_info=True, extra={'lead_id': lead_id})
        raise
    finally:
        session.close()

    logger.info("Audit %s stored for lead %s: %s", audit_id, lead_id, scores,
                extra={'lead_id': lead_id, 'audit_id': audit_id})
    return {
        'success': True,
        'audit_id': audit_id,
        'scores': scores,
        'core_web_vitals': vitals,
    }
