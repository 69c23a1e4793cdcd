"""
Resend email client.

send_email() never raises for delivery problems; it returns an EmailResult so
callers that must record every attempt (notifications, reports) can do so.
Callers that need hard failures (the outreach sender) inspect the result and
raise themselves.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import requests

from siteops.config import RESEND_API_KEY, RESEND_API_URL, RESEND_FROM_EMAIL, RESEND_TIMEOUT
from siteops.services.circuit_breaker import get_breaker, CircuitOpenError

logger = logging.getLogger('siteops.email')

NOT_CONFIGURED = 'Email service not configured'


@dataclass
class EmailResult:
    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None
    status_code: Optional[int] = None
    payload: Any = None
    configured: bool = True


def is_configured():
    return bool(RESEND_API_KEY)


def send_email(to: str, subject: str, html: str, bcc: Optional[List[str]] = None,
               tags: Optional[Dict[str, Any]] = None) -> EmailResult:
    """POST one message to Resend."""
    if not RESEND_API_KEY:
        logger.warning("RESEND_API_KEY not set, not sending '%s' to %s", subject, to)
        return EmailResult(success=False, error=NOT_CONFIGURED, configured=False)

    body = {
        'from': RESEND_FROM_EMAIL,
        'to': [to],
        'subject': subject,
        'html': html,
    }
    if bcc:
        body['bcc'] = bcc
    if tags:
        body['tags'] = [{'name': k, 'value': str(v)} for k, v in tags.items()]

    try:
        resp = get_breaker('resend').call(
            requests.post,
            RESEND_API_URL,
            headers={
                'Authorization': f'Bearer {RESEND_API_KEY}',
                'Content-Type': 'application/json',
            },
            json=body,
            timeout=RESEND_TIMEOUT,
        )
    except CircuitOpenError as e:
        return EmailResult(success=False, error=str(e), status_code=503)
    except requests.RequestException as e:
        logger.error("Resend request failed for %s: %s", to, e)
        return EmailResult(success=False, error=str(e))

    try:
        payload = resp.json()
    except ValueError:
        payload = resp.text

    if not resp.ok:
        message = payload.get('message') if isinstance(payload, dict) else None
        logger.error("Resend rejected message to %s (%s): %s", to, resp.status_code, payload)
        return EmailResult(
            success=False,
            error=message or f'Resend returned {resp.status_code}',
            status_code=resp.status_code,
            payload=payload,
        )

    message_id = payload.get('id') if isinstance(payload, dict) else None
    logger.info("Sent '%s' to %s (message %s)", subject, to, message_id)
    return EmailResult(success=True, message_id=message_id, status_code=resp.status_code, payload=payload)
