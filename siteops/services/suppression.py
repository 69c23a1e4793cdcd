"""
Email suppression list — permanent opt-outs consulted before every send.

Addresses are compared lowercased and stripped. Unsubscribe links carry an
HMAC token when UNSUBSCRIBE_SECRET is configured.
"""
import hashlib
import hmac
import logging
from urllib.parse import urlencode

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from siteops.config import UNSUBSCRIBE_BASE_URL, UNSUBSCRIBE_SECRET
from siteops.database import get_session
from siteops.errors import ValidationError
from siteops.models.suppression import EmailSuppression

logger = logging.getLogger('siteops.suppression')

SUPPRESSED_ERROR = 'Email is suppressed'
SUPPRESSED_MESSAGE = 'This email address has been unsubscribed and will not receive emails'


def normalize_email(email):
    return (email or '').strip().lower()


def find_suppression(session, email):
    """Return the EmailSuppression row for email, or None."""
    normalized = normalize_email(email)
    if not normalized:
        return None
    return session.execute(
        select(EmailSuppression).where(EmailSuppression.email == normalized)
    ).scalar_one_or_none()


def is_suppressed(session, email):
    return find_suppression(session, email) is not None


def suppressed_result(**extra):
    """The non-error result every stage returns for a suppressed address."""
    result = {
        'success': False,
        'suppressed': True,
        'error': SUPPRESSED_ERROR,
        'message': SUPPRESSED_MESSAGE,
    }
    result.update(extra)
    return result


def add_suppression(session, email, reason=None, source=None):
    """
    Insert email into the suppression list within the caller's session.

    Returns (record, created). Call it before adding anything else to the
    session: a concurrent insert of the same address rolls the session back.
    """
    normalized = normalize_email(email)
    if not normalized or '@' not in normalized:
        raise ValidationError('Valid email address is required')

    existing = find_suppression(session, normalized)
    if existing is not None:
        return existing, False

    record = EmailSuppression(email=normalized, reason=reason, source=source)
    session.add(record)
    try:
        session.flush()
    except IntegrityError:
        session.rollback()
        return find_suppression(session, normalized), False
    return record, True


def suppress_email(email, reason=None, source='unsubscribe_page'):
    """Suppress an address (idempotent). Used by the unsubscribe endpoints."""
    session = get_session()
    try:
        record, created = add_suppression(session, email, reason=reason, source=source)
        session.commit()
        result = {
            'success': True,
            'message': 'Email suppressed successfully' if created else 'Email already suppressed',
            'email': record.email,
            'suppressed_at': record.suppressed_at.isoformat() if record.suppressed_at else None,
            'already_suppressed': not created,
        }
    except ValidationError:
        session.rollback()
        raise
    except Exception:
        session.rollback()
        logger.error("Failed to suppress %s", email, exc_info=True)
        raise
    finally:
        session.close()

    if created:
        logger.info("Suppressed %s (source=%s, reason=%s)", result['email'], source, reason)
    return result


# ── Unsubscribe links ────────────────────────────────────────────────────────

def unsubscribe_token(email):
    """HMAC-SHA256 of the normalized address, or None when no secret is set."""
    if not UNSUBSCRIBE_SECRET:
        return None
    return hmac.new(
        UNSUBSCRIBE_SECRET.encode('utf-8'),
        normalize_email(email).encode('utf-8'),
        hashlib.sha256,
    ).hexdigest()


def verify_unsubscribe_token(email, token):
    expected = unsubscribe_token(email)
    if expected is None:
        return True
    return bool(token) and hmac.compare_digest(expected, token)


def unsubscribe_url(email):
    """Per-recipient unsubscribe link for email footers."""
    params = {'email': normalize_email(email)}
    token = unsubscribe_token(email)
    if token:
        params['token'] = token
    return f'{UNSUBSCRIBE_BASE_URL}?{urlencode(params)}'
