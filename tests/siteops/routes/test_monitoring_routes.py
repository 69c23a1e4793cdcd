"""Tests for the monitoring blueprint."""
from datetime import date

from unittest.mock import patch


class TestMonitoringRoutes:
    def test_poll(self, client):
        resp = client.post('/api/monitoring/poll')
        assert resp.status_code == 200
        assert resp.get_json()['checks_run'] == 0

    def test_classify_missing_fields(self, client):
        resp = client.post('/api/monitoring/classify', json={'site_id': 1})
        assert resp.status_code == 400
        assert resp.get_json() == {'error': 'Missing required fields: site_id, check_type, event_id'}

    def test_resolve_unknown_incident(self, client):
        resp = client.post('/api/incidents/999/resolve')
        assert resp.status_code == 404
        assert resp.get_json() == {'error': 'Incident not found'}

    def test_dispatch(self, client, make_site, make_incident, resend_ok):
        site = make_site(subscription_tier='essentials')
        incident = make_incident(site, severity='sev-2')
        resp = client.post('/api/notifications/dispatch', json={
            'incident_id': incident.id, 'site_id': site.id, 'severity': 'sev-2', 'is_new': True})
        assert resp.status_code == 200
        assert resp.get_json()['notifications'] == [{'recipient': 'internal', 'channel': 'email', 'success': True}]

    def test_dispatch_invalid_severity(self, client):
        resp = client.post('/api/notifications/dispatch', json={
            'incident_id': 1, 'site_id': 1, 'severity': 'sev-0'})
        assert resp.status_code == 400
        assert resp.get_json() == {'error': 'Invalid severity: sev-0'}


    def test_dispatch_rejects_non_boolean_flags(self, client, make_site, make_incident, resend_ok):
        site = make_site()
        incident = make_incident(site)
        resp = client.post('/api/notifications/dispatch', json={
            'incident_id': incident.id, 'site_id': site.id, 'severity': 'sev-1', 'is_new': 'false'})
        assert resp.status_code == 400
        assert resp.get_json() == {'error': 'is_new must be a boolean'}
        resend_ok.assert_not_called()

    def test_dispatch_flags_default_to_false(self, client, make_site, make_incident, resend_ok):
        site = make_site()
        incident = make_incident(site)
        resp = client.post('/api/notifications/dispatch', json={
            'incident_id': incident.id, 'site_id': site.id, 'severity': 'sev-1'})
        assert resp.status_code == 200
        assert resp.get_json()['notifications_sent'] == 0


class TestIngestRoutes:
    """Site-pushed deploys and errors authenticate with X-Site-Secret."""

    def test_deploy(self, client, make_site):
        make_site(site_key='acme', secret='s3cret')
        resp = client.post('/api/monitoring/deploys', headers={'X-Site-Secret': 's3cret'},
                           json={'site_key': 'acme', 'deploy_id': 'dpl_1', 'environment': 'production'})
        assert resp.status_code == 200
        assert resp.get_json()['message'] == 'Deploy event recorded'

    def test_deploy_bad_secret(self, client, make_site):
        make_site(site_key='acme', secret='s3cret')
        resp = client.post('/api/monitoring/deploys', headers={'X-Site-Secret': 'nope'},
                           json={'site_key': 'acme', 'deploy_id': 'dpl_1', 'environment': 'production'})
        assert resp.status_code == 401
        assert resp.get_json() == {'error': 'Unauthorized'}

    def test_error_opens_incident(self, client, make_site, resend_ok):
        make_site(site_key='acme', secret='s3cret')
        resp = client.post('/api/monitoring/errors', headers={'X-Site-Secret': 's3cret'},
                           json={'site_key': 'acme', 'severity': 'sev-2', 'type': 'Form Error',
                                 'message': 'Contact form 500'})
        assert resp.status_code == 200
        body = resp.get_json()
        assert body['message'] == 'Error logged'
        assert body['incident_created'] is True

    def test_error_missing_fields(self, client):
        resp = client.post('/api/monitoring/errors', json={'site_key': 'acme'})
        assert resp.status_code == 400
        assert resp.get_json() == {'error': 'Missing required fields: site_key, severity, type, message'}


class TestMonthlyReportRoute:
    def test_inline(self, client):
        with patch('siteops.routes.monitoring.generate_monthly_reports',
                   return_value={'success': True, 'reports_generated': 0}) as mock_generate:
            resp = client.post('/api/reports/monthly', json={'today': '2026-10-05'})
        assert resp.status_code == 200
        mock_generate.assert_called_once_with(date(2026, 10, 5))

    def test_async(self, client):
        with patch('siteops.routes.monitoring.enqueue_monthly_reports', return_value='job-1') as mock_enqueue:
            resp = client.post('/api/reports/monthly', json={'async': True})
        assert resp.status_code == 202
        assert resp.get_json() == {'success': True, 'status': 'queued', 'job_id': 'job-1'}
        mock_enqueue.assert_called_once_with(None)

    def test_bad_date(self, client):
        resp = client.post('/api/reports/monthly', json={'today': '05/10/2026'})
        assert resp.status_code == 400
        assert resp.get_json() == {'error': 'today must be an ISO date (YYYY-MM-DD)'}
