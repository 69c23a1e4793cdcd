"""
Health check poller — probes every enabled check of every active site.

Probes run in a small thread pool; results are written as HealthEvents and
each failure is handed to the severity classifier.
"""
import logging
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Any, Optional

import requests
from sqlalchemy import select

from siteops.config import HEALTH_CHECK_DEFAULT_TIMEOUT_MS
from siteops.database import get_session
from siteops.models.health import HealthCheck, HealthEvent
from siteops.models.monitored_site import MonitoredSite

logger = logging.getLogger('siteops.monitoring.checks')

JSON_STATUS_CHECKS = {'health_api', 'cms'}
MAX_WORKERS = 8

FORM_PROBE_PAYLOAD = {
    'first_name': 'Site',
    'last_name': 'Monitor',
    'email': 'monitor@example.com',
    'message': 'Automated health check',
}


@dataclass
class ProbeResult:
    result: str  # ok / warn / fail
    latency_ms: int
    http_status: Optional[int] = None
    error_message: Optional[str] = None
    raw_payload: Any = None


def check_url(target, primary_domain):
    """Absolute targets are used as-is; paths are joined onto the site's domain."""
    if target.startswith('http'):
        return target
    base = primary_domain if primary_domain.startswith('http') else f'https://{primary_domain}'
    return f"{base.rstrip('/')}/{target.lstrip('/')}"


def evaluate_response(check_type, status_code, payload=None, expected_status=None):
    """Classify one HTTP response as ok / warn / fail."""
    ok = 200 <= status_code < 300
    result = 'ok'
    if check_type in JSON_STATUS_CHECKS:
        if isinstance(payload, dict):
            status = payload.get('status')
            if status == 'error':
                result = 'fail'
            elif status == 'degraded':
                result = 'warn'
        elif not ok:
            result = 'fail'
    else:
        if not ok:
            result = 'fail'
        elif expected_status and status_code != expected_status:
            result = 'warn'

    if status_code >= 500:
        result = 'fail'
    elif status_code >= 400:
        result = 'warn'
    return result


def probe(check_type, url, timeout_ms=None, expected_status=None):
    """Run one HTTP probe. Network errors and timeouts are failures."""
    timeout = (timeout_ms or HEALTH_CHECK_DEFAULT_TIMEOUT_MS) / 1000
    started = time.monotonic()
    try:
        if check_type == 'form':
            resp = requests.post(url, json=FORM_PROBE_PAYLOAD, timeout=timeout)
        else:
            resp = requests.get(url, timeout=timeout)
    except requests.RequestException as e:
        return ProbeResult('fail', int((time.monotonic() - started) * 1000), error_message=str(e))
    latency = int((time.monotonic() - started) * 1000)

    payload = None
    if check_type in JSON_STATUS_CHECKS:
        try:
            payload = resp.json()
        except ValueError:
            payload = None
    result = evaluate_response(check_type, resp.status_code, payload, expected_status)
    return ProbeResult(result, latency, http_status=resp.status_code, raw_payload=payload)


def run_health_checks():
    """Poll all enabled checks of active sites. Returns a summary dict."""
    from siteops.monitoring.severity import classify_failure

    session = get_session()
    try:
        rows = session.execute(
            select(HealthCheck, MonitoredSite)
            .join(MonitoredSite, HealthCheck.site_id == MonitoredSite.id)
            .where(HealthCheck.enabled.is_(True), MonitoredSite.status == 'active')
        ).all()
        checks = [
            {
                'check_id': check.id,
                'site_id': site.id,
                'site_name': site.site_name,
                'check_type': check.check_type,
                'url': check_url(check.target, site.primary_domain),
                'timeout_ms': check.timeout_ms,
                'expected_status': check.expected_status,
            }
            for check, site in rows
        ]
    finally:
        session.close()

    if not checks:
        return {'success': True, 'message': 'No health checks configured', 'checks_run': 0}

    logger.info("Running %d health checks", len(checks))
    probes = {}
    with ThreadPoolExecutor(max_workers=min(MAX_WORKERS, len(checks))) as executor:
        futures = {
            executor.submit(probe, c['check_type'], c['url'], c['timeout_ms'], c['expected_status']): c
            for c in checks
        }
        for future in as_completed(futures):
            c = futures[future]
            try:
                probes[c['check_id']] = future.result()
            except Exception as e:
                logger.error("Probe crashed for %s [%s]: %s", c['site_name'], c['check_type'], e)
                probes[c['check_id']] = ProbeResult('fail', 0, error_message=str(e))

    results = []
    for c in checks:
        outcome = probes[c['check_id']]
        session = get_session()
        try:
            event = HealthEvent(
                site_id=c['site_id'],
                check_id=c['check_id'],
                check_type=c['check_type'],
                result=outcome.result,
                latency_ms=outcome.latency_ms,
                http_status=outcome.http_status,
                error_message=outcome.error_message,
                raw_payload=outcome.raw_payload if isinstance(outcome.raw_payload, (dict, list)) else None,
            )
            session.add(event)
            session.commit()
            event_id = event.id
        except Exception:
            session.rollback()
            logger.error("Failed to record event for %s", c['site_name'], exc_info=True)
            event_id = None
        finally:
            session.close()

        if outcome.result == 'fail' and event_id is not None:
            try:
                classify_failure(c['site_id'], c['check_type'], event_id)
            except Exception:
                logger.error("Severity classification failed for %s [%s]", c['site_name'], c['check_type'],
                             exc_info=True, extra={'site_id': c['site_id']})

        logger.info("%s [%s]: %s (%dms)", c['site_name'], c['check_type'], outcome.result, outcome.latency_ms)
        results.append({'check_id': c['check_id'], 'site_name': c['site_name'], 'result': outcome.result})

    summary = {r: sum(1 for x in results if x['result'] == r) for r in ('ok', 'warn', 'fail')}
    logger.info("Polling complete: %(ok)d ok, %(warn)d warn, %(fail)d fail", summary)
    return {'success': True, 'checks_run': len(results), 'summary': summary, 'results': results}
