"""Tests for siteops.monitoring.notifications — tier gating and dispatch."""
import pytest
from unittest.mock import patch

from siteops.errors import NotFoundError, ValidationError
from siteops.models.incident import Notification
from siteops.monitoring.notifications import dispatch_incident_notifications, plan_notifications
from siteops.services.email_client import EmailResult


def _recipients(planned):
    return [(p.recipient, p.kind) for p in planned]


class TestPlanNotifications:
    """Who is told about a new or resolved incident."""

    @pytest.mark.parametrize('tier,severity,client_told', [
        ('care', 'sev-1', True),
        ('care', 'sev-2', True),
        ('care', 'sev-3', False),
        ('essentials', 'sev-1', True),
        ('essentials', 'sev-2', False),
        ('none', 'sev-1', False),
    ])
    def test_new_incident_matrix(self, tier, severity, client_told):
        planned = _recipients(plan_notifications(tier, severity, is_new=True, is_resolved=False))
        assert ('internal', 'alert') in planned
        assert (('client', 'alert') in planned) is client_told

    def test_resolution_reaches_care_clients_only(self):
        assert _recipients(plan_notifications('care', 'sev-1', False, True)) == [
            ('internal', 'resolution'), ('client', 'resolution')]
        assert _recipients(plan_notifications('essentials', 'sev-1', False, True)) == [
            ('internal', 'resolution')]

    def test_no_client_email(self):
        planned = plan_notifications('care', 'sev-1', True, False, has_client_email=False)
        assert _recipients(planned) == [('internal', 'alert')]

    def test_neither_new_nor_resolved(self):
        assert plan_notifications('care', 'sev-1', False, False) == []


class TestDispatch:
    """dispatch_incident_notifications() sends and records every attempt."""

    def test_validation(self):
        with pytest.raises(ValidationError):
            dispatch_incident_notifications(1, 1, None, is_new=True)
        with pytest.raises(ValidationError):
            dispatch_incident_notifications(1, 1, 'sev-9', is_new=True)

    def test_unknown_site(self):
        with pytest.raises(NotFoundError):
            dispatch_incident_notifications(1, 999, 'sev-1', is_new=True)

    def test_incident_of_other_site(self, make_site, make_incident):
        site = make_site()
        other = make_site()
        incident = make_incident(other)
        with pytest.raises(NotFoundError):
            dispatch_incident_notifications(incident.id, site.id, 'sev-1', is_new=True)

    def test_care_sev1_alerts_both(self, make_site, make_incident, db_session, resend_ok):
        site = make_site(subscription_tier='care')
        incident = make_incident(site)

        result = dispatch_incident_notifications(incident.id, site.id, 'sev-1', is_new=True)
        assert result['notifications_sent'] == 2
        addresses = [c.args[0] for c in resend_ok.call_args_list]
        assert addresses == ['ops@donewellco.com', 'owner@acmebakery.com']
        assert resend_ok.call_args_list[0].args[1].startswith('🚨 SEV-1: Acme Bakery')
        assert resend_ok.call_args_list[1].args[1] == 'Website Issue Detected - Acme Bakery'

        rows = db_session.query(Notification).order_by(Notification.id).all()
        assert [r.recipient for r in rows] == ['internal', 'client']
        assert all(r.delivered for r in rows)

    def test_none_tier_alerts_internal_only(self, make_site, make_incident, db_session, resend_ok):
        site = make_site(subscription_tier='none')
        incident = make_incident(site)

        result = dispatch_incident_notifications(incident.id, site.id, 'sev-1', is_new=True)
        assert result['notifications_sent'] == 1
        resend_ok.assert_called_once()
        assert resend_ok.call_args.args[0] == 'ops@donewellco.com'

        db_session.expire_all()
        row = db_session.query(Notification).one()
        assert row.recipient == 'internal'
        assert row.recipient_address == 'ops@donewellco.com'
        assert row.delivered is True

    def test_failed_send_is_recorded(self, make_site, make_incident, db_session):
        site = make_site(subscription_tier='none')
        incident = make_incident(site)
        failure = EmailResult(success=False, error='Email service not configured', configured=False)
        with patch('siteops.services.email_client.send_email', return_value=failure):
            result = dispatch_incident_notifications(incident.id, site.id, 'sev-1', is_new=True)

        assert result['notifications'] == [{'recipient': 'internal', 'channel': 'email', 'success': False}]
        row = db_session.query(Notification).one()
        assert row.delivered is False
        assert row.delivery_error == 'Email service not configured'
