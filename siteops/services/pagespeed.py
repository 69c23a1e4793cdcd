"""
PageSpeed Insights client — mobile Lighthouse run plus score/vitals extraction.

Extraction never raises: anything missing or malformed in the provider payload
comes back as None rather than zero.
"""
import logging
import requests

from siteops.config import PAGESPEED_API_KEY, PAGESPEED_API_URL, PAGESPEED_TIMEOUT
from siteops.errors import ConfigurationError, UpstreamError
from siteops.services.circuit_breaker import get_breaker

logger = logging.getLogger('siteops.pagespeed')

CATEGORIES = ['performance', 'accessibility', 'seo', 'best-practices']

# Lighthouse category id → our column name
_CATEGORY_FIELDS = {
    'performance': 'performance',
    'accessibility': 'accessibility',
    'seo': 'seo',
    'best-practices': 'best_practices',
}


def fetch_report(url):
    """Run a mobile PageSpeed analysis for url and return the decoded payload."""
    if not PAGESPEED_API_KEY:
        raise ConfigurationError('PAGESPEED_API_KEY not configured')

    params = [('url', url), ('key', PAGESPEED_API_KEY), ('strategy', 'mobile')]
    params += [('category', c) for c in CATEGORIES]

    logger.info("Running PageSpeed audit for %s", url)
    resp = get_breaker('pagespeed').call(
        requests.get, PAGESPEED_API_URL, params=params, timeout=PAGESPEED_TIMEOUT,
    )
    if not resp.ok:
        logger.error("PageSpeed API error %s for %s: %s", resp.status_code, url, resp.text[:300])
        raise UpstreamError('PageSpeed Insights API error', status_code=resp.status_code, details=resp.text)

    try:
        return resp.json()
    except ValueError:
        logger.warning("PageSpeed returned a non-JSON body for %s", url)
        return {}


def _lighthouse(payload):
    if not isinstance(payload, dict):
        return {}
    result = payload.get('lighthouseResult')
    return result if isinstance(result, dict) else {}


def extract_scores(payload):
    """Map Lighthouse category scores (0–1) to 0–100 ints; absent → None."""
    categories = _lighthouse(payload).get('categories') or {}
    scores = {}
    for category_id, field in _CATEGORY_FIELDS.items():
        score = None
        category = categories.get(category_id)
        if isinstance(category, dict):
            raw = category.get('score')
            if isinstance(raw, (int, float)) and not isinstance(raw, bool):
                score = round(raw * 100)
        scores[field] = score
    return scores


def _numeric(audits, key):
    audit = audits.get(key)
    if not isinstance(audit, dict):
        return None
    value = audit.get('numericValue')
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return value
    return None


def extract_core_web_vitals(payload):
    """LCP in seconds, CLS unitless, INP in milliseconds; absent → None."""
    audits = _lighthouse(payload).get('audits') or {}
    lcp_ms = _numeric(audits, 'largest-contentful-paint')
    return {
        'lcp': lcp_ms / 1000 if lcp_ms is not None else None,
        'cls': _numeric(audits, 'cumulative-layout-shift'),
        'inp': _numeric(audits, 'interaction-to-next-paint'),
    }
