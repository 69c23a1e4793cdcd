"""
Outreach queue — scheduled leads drained one at a time by a cron-driven processor.

Item lifecycle: scheduled → processing → completed | failed. Items are claimed
with a conditional UPDATE (``WHERE status = 'scheduled'``) so two processors
running at once can never both work the same item.
"""
import logging
from datetime import timedelta
from zoneinfo import ZoneInfo

from sqlalchemy import select, update, func
from sqlalchemy.exc import IntegrityError

from siteops.config import (
    BUSINESS_TIMEZONE, BUSINESS_HOURS_START, BUSINESS_HOURS_END, BUSINESS_DAYS,
    DAILY_SEND_CAP, QUEUE_SPACING_MINUTES, QUEUE_CLAIM_ATTEMPTS,
)
from siteops.database import get_session, utcnow, as_utc
from siteops.errors import NotFoundError, ValidationError
from siteops.models.lead import Lead
from siteops.models.queue_item import LeadProcessingQueueItem as QueueItem
from siteops.models.suppression import DailySendStats
from siteops.pipeline.audit import latest_audit, normalize_url, run_audit
from siteops.pipeline.drafter import draft_email
from siteops.pipeline.sender import send_draft
from siteops.services.suppression import is_suppressed, suppressed_result

logger = logging.getLogger('siteops.pipeline.queue')

ACTIVE_STATUSES = ('scheduled', 'processing')

# Every legal status change; anything else is refused
TRANSITIONS = {
    ('scheduled', 'processing'),
    ('processing', 'completed'),
    ('processing', 'failed'),
}


class IllegalTransition(Exception):
    pass


def _local_now(now):
    return now.astimezone(ZoneInfo(BUSINESS_TIMEZONE))


# ── Enqueue ──────────────────────────────────────────────────────────────────

def enqueue_lead(lead_id, now=None):
    """
    Schedule lead_id for automated outreach.

    Items are spaced QUEUE_SPACING_MINUTES apart after the last active item.
    A lead that already has an active item is not queued twice.
    """
    now = now or utcnow()
    session = get_session()
    try:
        lead = session.get(Lead, lead_id)
        if lead is None:
            raise NotFoundError('Lead not found')
        if is_suppressed(session, lead.email):
            return suppressed_result(lead_id=lead_id)

        existing = session.execute(
            select(QueueItem)
            .where(QueueItem.lead_id == lead_id, QueueItem.status.in_(ACTIVE_STATUSES))
            .limit(1)
        ).scalar_one_or_none()
        if existing is not None:
            return {
                'success': True,
                'message': 'Lead already in queue',
                'already_queued': True,
                'queue_id': existing.id,
                'scheduled_send_at': as_utc(existing.scheduled_send_at).isoformat(),
            }

        last = session.execute(
            select(func.max(QueueItem.scheduled_send_at)).where(QueueItem.status.in_(ACTIVE_STATUSES))
        ).scalar_one_or_none()
        scheduled_at = now
        if last is not None:
            scheduled_at = max(now, as_utc(last) + timedelta(minutes=QUEUE_SPACING_MINUTES))

        item = QueueItem(lead_id=lead_id, status='scheduled', scheduled_send_at=scheduled_at)
        session.add(item)
        session.commit()
        queue_id = item.id
    except NotFoundError:
        session.rollback()
        raise
    except Exception:
        session.rollback()
        logger.error("Failed to enqueue lead %s", lead_id, exc_info=True, extra={'lead_id': lead_id})
        raise
    finally:
        session.close()

    logger.info("Lead %s queued as %s for %s", lead_id, queue_id, scheduled_at.isoformat(),
                extra={'lead_id': lead_id, 'queue_id': queue_id})
    return {
        'success': True,
        'queue_id': queue_id,
        'lead_id': lead_id,
        'scheduled_send_at': scheduled_at.isoformat(),
        'status': 'scheduled',
    }


# ── Gates ────────────────────────────────────────────────────────────────────

def within_business_hours(now):
    local = _local_now(now)
    return local.weekday() in BUSINESS_DAYS and BUSINESS_HOURS_START <= local.hour < BUSINESS_HOURS_END


def sent_today(session, now):
    count = session.execute(
        select(DailySendStats.emails_sent).where(DailySendStats.day == _local_now(now).date())
    ).scalar_one_or_none()
    return count or 0


def can_process(now=None):
    """(allowed, reason) for the business-hours AND daily-cap gate."""
    now = now or utcnow()
    if not within_business_hours(now):
        return False, 'outside business hours'
    session = get_session()
    try:
        sent = sent_today(session, now)
    finally:
        session.close()
    if sent >= DAILY_SEND_CAP:
        return False, f'daily limit of {DAILY_SEND_CAP} reached'
    return True, None


def record_send(now=None):
    """Increment today's send counter."""
    now = now or utcnow()
    day = _local_now(now).date()
    session = get_session()
    try:
        bumped = session.execute(
            update(DailySendStats)
            .where(DailySendStats.day == day)
            .values(emails_sent=DailySendStats.emails_sent + 1)
        ).rowcount
        if not bumped:
            session.add(DailySendStats(day=day, emails_sent=1))
        try:
            session.commit()
        except IntegrityError:
            session.rollback()
            session.execute(
                update(DailySendStats)
                .where(DailySendStats.day == day)
                .values(emails_sent=DailySendStats.emails_sent + 1)
            )
            session.commit()
    finally:
        session.close()


# ── State transitions ────────────────────────────────────────────────────────

def transition(session, queue_id, from_status, to_status, **values):
    """
    Move an item from from_status to to_status with a conditional UPDATE.

    Returns True if this caller made the change, False if the item was no
    longer in from_status.
    """
    if (from_status, to_status) not in TRANSITIONS:
        raise IllegalTransition(f'{from_status} → {to_status}')
    result = session.execute(
        update(QueueItem)
        .where(QueueItem.id == queue_id, QueueItem.status == from_status)
        .values(status=to_status, **values)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def claim_next_item(now=None):
    """Claim the oldest due scheduled item; returns its id, or None if nothing is due."""
    now = now or utcnow()
    session = get_session()
    try:
        for _ in range(QUEUE_CLAIM_ATTEMPTS):
            queue_id = session.execute(
                select(QueueItem.id)
                .where(QueueItem.status == 'scheduled', QueueItem.scheduled_send_at <= now)
                .order_by(QueueItem.scheduled_send_at, QueueItem.id)
                .limit(1)
            ).scalar_one_or_none()
            if queue_id is None:
                return None
            claimed = transition(session, queue_id, 'scheduled', 'processing')
            session.commit()
            if claimed:
                return queue_id
            logger.info("Queue item %s was claimed by another processor", queue_id)
        return None
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def _finish(queue_id, to_status, **values):
    session = get_session()
    try:
        if not transition(session, queue_id, 'processing', to_status, processed_at=utcnow(), **values):
            logger.warning("Queue item %s was not processing when marked %s", queue_id, to_status,
                           extra={'queue_id': queue_id})
        session.commit()
    except Exception:
        session.rollback()
        logger.error("Failed to mark queue item %s %s", queue_id, to_status, exc_info=True,
                     extra={'queue_id': queue_id})
        raise
    finally:
        session.close()


# ── Processor ────────────────────────────────────────────────────────────────

def _run_item(queue_id):
    """Audit (if needed) → draft → send for one claimed item."""
    session = get_session()
    try:
        item = session.get(QueueItem, queue_id)
        lead = session.get(Lead, item.lead_id) if item else None
        if lead is None:
            raise NotFoundError('Lead not found')
        lead_id = lead.id
        website = lead.website_url
        needs_audit = latest_audit(session, lead_id) is None
    finally:
        session.close()

    if needs_audit:
        if not website:
            raise ValidationError('Lead has no website to audit')
        run_audit(normalize_url(website), lead_id)

    draft = draft_email(lead_id)
    if draft.get('suppressed'):
        return lead_id, None, draft
    sent = send_draft(draft['email_draft_id'])
    return lead_id, draft['email_draft_id'], sent


def process_next(now=None):
    """
    Process at most one due queue item.

    Never raises: a failing item is marked failed and the error is returned
    with ``success: False``.
    """
    now = now or utcnow()

    allowed, reason = can_process(now)
    if not allowed:
        logger.info("Queue processing skipped: %s", reason)
        return {
            'success': True,
            'message': 'Cannot process: outside business hours or daily limit reached',
            'reason': reason,
            'processed': False,
        }

    queue_id = claim_next_item(now)
    if queue_id is None:
        return {'success': True, 'message': 'No queue items ready to process', 'processed': False}

    logger.info("Processing queue item %s", queue_id, extra={'queue_id': queue_id})
    try:
        lead_id, draft_id, outcome = _run_item(queue_id)

        if outcome.get('suppressed'):
            _finish(queue_id, 'completed', suppressed=True, email_draft_id=draft_id)
            return {
                'success': True,
                'message': 'Email suppressed',
                'processed': True,
                'suppressed': True,
                'queue_id': queue_id,
                'lead_id': lead_id,
            }

        try:
            record_send(now)
        except Exception as e:
            logger.warning("Could not update daily send stats: %s", e)

        _finish(queue_id, 'completed', email_draft_id=draft_id)
        return {
            'success': True,
            'processed': True,
            'queue_id': queue_id,
            'lead_id': lead_id,
            'email_draft_id': draft_id,
            'message_id': outcome.get('message_id'),
        }
    except Exception as e:
        logger.error("Queue item %s failed: %s", queue_id, e, exc_info=True, extra={'queue_id': queue_id})
        try:
            _finish(queue_id, 'failed', error_message=str(e)[:1000])
        except Exception:
            logger.error("Queue item %s could not be marked failed", queue_id)
        return {
            'success': False,
            'error': 'Failed to process queue item',
            'details': str(e),
            'queue_id': queue_id,
            'processed': False,
        }
