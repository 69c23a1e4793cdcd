"""
Monthly report generator — one uptime/incident summary per subscribed site.

Covers the previous calendar month. Reports are upserted on (site, month), so
re-running a month refreshes the numbers instead of duplicating rows. The
whole batch can also be pushed onto the RQ queue from the HTTP endpoint.
"""
import logging
from datetime import date, datetime, time, timezone
from html import escape

from sqlalchemy import select, func

from siteops.config import REPORT_TIERS, INTERNAL_EMAIL, AGENCY_NAME
from siteops.database import get_session, utcnow
from siteops.models.health import HealthEvent
from siteops.models.incident import Incident
from siteops.models.monitored_site import MonitoredSite
from siteops.models.monthly_report import MonthlyReport
from siteops.services import email_client

logger = logging.getLogger('siteops.monitoring.reports')

STATUS_LABELS = {
    'all_clear': 'All Clear',
    'attention': 'Needs Attention',
    'action_needed': 'Action Needed',
}
STATUS_COLORS = {
    'all_clear': '#16a34a',
    'attention': '#f59e0b',
    'action_needed': '#dc2626',
}

_queue = None


def _get_queue():
    global _queue
    if _queue is None:
        from siteops.extensions import redis_client
        from rq import Queue
        _queue = Queue(connection=redis_client)
    return _queue


def previous_month(today):
    """(first day of last month, first day of this month)."""
    this_month = today.replace(day=1)
    if this_month.month == 1:
        return date(this_month.year - 1, 12, 1), this_month
    return date(this_month.year, this_month.month - 1, 1), this_month


def uptime_percentage(total, failed):
    if not total:
        return 100.0
    return (total - failed) / total * 100


def classify_report_status(uptime, sev1, sev2):
    if sev1 > 0 or uptime < 95:
        return 'action_needed'
    if sev2 > 0 or uptime < 99:
        return 'attention'
    return 'all_clear'


def summary_bullets(uptime, sev1, sev2, total_incidents):
    bullets = []
    if uptime >= 99.9:
        bullets.append('Your website maintained excellent uptime this month.')
    elif uptime >= 99:
        bullets.append(f'Your website was available {uptime:.1f}% of the time.')
    else:
        bullets.append(f'Uptime was {uptime:.1f}% - below our target of 99.9%.')

    if total_incidents == 0:
        bullets.append('No incidents were detected.')
    elif total_incidents == 1:
        bullets.append('1 incident was detected and resolved.')
    else:
        bullets.append(f'{total_incidents} incidents were detected and resolved.')

    if sev1 > 0:
        bullets.append(f"{sev1} critical issue{'s' if sev1 > 1 else ''} required immediate attention.")
    if sev2 > 0:
        bullets.append(f"{sev2} minor issue{'s' if sev2 > 1 else ''} affected site performance.")

    bullets.append("Monitoring continues 24/7. We'll alert you if anything needs attention.")
    return bullets


def render_report_email(site_name, month_name, status, uptime, bullets):
    subject = f'{month_name} Website Report - {site_name}'
    items = '\n'.join(f'<li>{escape(b)}</li>' for b in bullets)
    html = f"""<!DOCTYPE html>
<html><body style="font-family: -apple-system, 'Segoe UI', Roboto, sans-serif; background-color: #faf8f5;">
<h1>{escape(month_name)} Website Report</h1>
<p><strong>{escape(site_name)}</strong></p>
<p style="color: {STATUS_COLORS[status]}; font-weight: 600;">{STATUS_LABELS[status]}</p>
<p>Uptime: <strong>{uptime:.2f}%</strong></p>
<ul>
{items}
</ul>
<p>{escape(AGENCY_NAME)}</p>
</body></html>"""
    return subject, html


def _month_bounds(month_start, next_month):
    start = datetime.combine(month_start, time.min, tzinfo=timezone.utc)
    end = datetime.combine(next_month, time.min, tzinfo=timezone.utc)
    return start, end


def _site_metrics(session, site_id, start, end):
    total, failed = session.execute(
        select(
            func.count(HealthEvent.id),
            func.count(HealthEvent.id).filter(HealthEvent.result == 'fail'),
        ).where(HealthEvent.site_id == site_id, HealthEvent.created_at >= start, HealthEvent.created_at < end)
    ).one()
    severities = session.execute(
        select(Incident.severity, func.count(Incident.id))
        .where(Incident.site_id == site_id, Incident.opened_at >= start, Incident.opened_at < end)
        .group_by(Incident.severity)
    ).all()
    counts = {sev: n for sev, n in severities}
    return total or 0, failed or 0, counts


def _upsert_report(session, site_id, month_start, **values):
    report = session.execute(
        select(MonthlyReport).where(MonthlyReport.site_id == site_id, MonthlyReport.report_month == month_start)
    ).scalar_one_or_none()
    if report is None:
        report = MonthlyReport(site_id=site_id, report_month=month_start)
        session.add(report)
    for key, value in values.items():
        setattr(report, key, value)
    return report


def generate_monthly_reports(today=None):
    """Build, store and email last month's report for every subscribed site."""
    today = today or utcnow().date()
    month_start, next_month = previous_month(today)
    start, end = _month_bounds(month_start, next_month)
    month_name = month_start.strftime('%B %Y')

    session = get_session()
    try:
        sites = session.execute(
            select(MonitoredSite)
            .where(MonitoredSite.status == 'active', MonitoredSite.subscription_tier.in_(REPORT_TIERS))
            .order_by(MonitoredSite.id)
        ).scalars().all()

        if not sites:
            return {'success': True, 'month': month_name, 'message': 'No subscribed sites',
                    'reports_generated': 0, 'reports': []}

        reports = []
        for site in sites:
            total, failed, counts = _site_metrics(session, site.id, start, end)
            sev1, sev2, sev3 = counts.get('sev-1', 0), counts.get('sev-2', 0), counts.get('sev-3', 0)
            uptime = uptime_percentage(total, failed)
            status = classify_report_status(uptime, sev1, sev2)
            bullets = summary_bullets(uptime, sev1, sev2, sum(counts.values()))

            report = _upsert_report(
                session, site.id, month_start,
                uptime_percentage=round(uptime, 2),
                total_checks=total,
                incidents_sev1=sev1,
                incidents_sev2=sev2,
                incidents_sev3=sev3,
                status=status,
                summary_bullets=bullets,
            )
            session.commit()

            recipient = site.client_email or site.internal_email or INTERNAL_EMAIL
            subject, html = render_report_email(site.site_name, month_name, status, uptime, bullets)
            result = email_client.send_email(recipient, subject, html)
            if result.success:
                report.sent_at = utcnow()
                report.recipient_email = recipient
                session.commit()
            else:
                logger.warning("Report email for %s failed: %s", site.site_name, result.error,
                               extra={'site_id': site.id})

            logger.info("%s report for %s: %s (%.2f%% uptime)", month_name, site.site_name, status, uptime,
                        extra={'site_id': site.id})
            reports.append({'site_name': site.site_name, 'status': status, 'sent': result.success})
    except Exception:
        session.rollback()
        logger.error("Monthly report generation failed", exc_info=True)
        raise
    finally:
        session.close()

    return {'success': True, 'month': month_name, 'reports_generated': len(reports), 'reports': reports}


def enqueue_monthly_reports(today=None):
    """Push generate_monthly_reports onto the RQ queue; returns the job id."""
    job = _get_queue().enqueue(generate_monthly_reports, today, job_timeout=1800)
    logger.info("Enqueued monthly report job %s", job.id)
    return job.id
