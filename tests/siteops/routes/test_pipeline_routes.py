"""Tests for the pipeline blueprint."""
from unittest.mock import patch

from siteops.models.queue_item import LeadProcessingQueueItem as QueueItem
from siteops.pipeline.base import InsightsOutcome, StepResult
from siteops.pipeline.orchestrator import PipelineResult


class TestAuditRoute:
    def test_missing_fields(self, client):
        resp = client.post('/api/audits', json={'url': 'https://example.com'})
        assert resp.status_code == 400
        assert resp.get_json() == {'error': 'Missing required fields: url and lead_id'}

    def test_non_integer_lead(self, client):
        resp = client.post('/api/audits', json={'url': 'https://example.com', 'lead_id': 'abc'})
        assert resp.status_code == 400
        assert resp.get_json()['error'] == 'lead_id must be an integer'

    def test_runs_audit(self, client):
        with patch('siteops.routes.pipeline.run_audit',
                   return_value={'success': True, 'audit_id': 4}) as mock_audit:
            resp = client.post('/api/audits', json={'url': 'example.com', 'lead_id': '12'})
        assert resp.status_code == 200
        assert resp.get_json()['audit_id'] == 4
        mock_audit.assert_called_once_with('example.com', 12)

    def test_unknown_lead_is_404(self, client):
        with patch('siteops.pipeline.audit.PAGESPEED_API_KEY', 'key'):
            resp = client.post('/api/audits', json={'url': 'https://example.com', 'lead_id': 999})
        assert resp.status_code == 404


class TestInsightsRoute:
    def test_ok(self, client):
        with patch('siteops.routes.pipeline.generate_insights',
                   return_value=InsightsOutcome.ok(['Fast.'], cached=True)):
            resp = client.post('/api/audits/3/insights')
        assert resp.get_json() == {'success': True, 'audit_id': 3, 'insights': ['Fast.'], 'cached': True}

    def test_skipped_is_not_an_error(self, client):
        resp = client.post('/api/audits/999/insights')
        assert resp.status_code == 200
        assert resp.get_json() == {'success': False, 'audit_id': 999, 'skipped': True, 'reason': 'Audit not found'}


class TestDraftAndSendRoutes:
    def test_draft_needs_lead(self, client):
        resp = client.post('/api/email-drafts', json={})
        assert resp.status_code == 400
        assert resp.get_json() == {'error': 'Missing lead_id'}

    def test_draft_without_audit(self, client, make_lead):
        lead = make_lead()
        resp = client.post('/api/email-drafts', json={'lead_id': lead.id})
        assert resp.status_code == 404
        assert resp.get_json()['error'] == 'No audit found for this lead. Run audit first.'

    def test_draft_created(self, client, make_lead, make_audit):
        lead = make_lead()
        make_audit(lead, performance=95, accessibility=95, seo=95, best_practices=95)
        resp = client.post('/api/email-drafts', json={'lead_id': lead.id})
        assert resp.status_code == 200
        assert resp.get_json()['template'] == 'high_score'

    def test_send_by_path(self, client):
        with patch('siteops.routes.pipeline.send_draft', return_value={'success': True}) as mock_send:
            resp = client.post('/api/email-drafts/8/send')
        assert resp.status_code == 200
        mock_send.assert_called_once_with(8)

    def test_send_by_body_missing_id(self, client):
        resp = client.post('/api/emails/send', json={})
        assert resp.status_code == 400
        assert resp.get_json() == {'error': 'Missing email_draft_id'}

    def test_send_unknown_draft(self, client):
        resp = client.post('/api/emails/send', json={'email_draft_id': 404})
        assert resp.status_code == 404
        assert resp.get_json() == {'error': 'Email draft not found'}


class TestLeadRoutes:
    def test_process_partial(self, client):
        result = PipelineResult(lead_id=5, success=True, message='Draft created but the email was not sent',
                                http_status=207)
        result.steps['send'] = StepResult.failed('Failed to send email')
        with patch('siteops.routes.pipeline.process_lead', return_value=result):
            resp = client.post('/api/leads/process', json={'lead_id': 5})
        assert resp.status_code == 207
        body = resp.get_json()
        assert body['steps']['send'] == {'success': False, 'error': 'Failed to send email'}
        assert set(body['steps']) == {'audit', 'insights', 'email', 'send'}

    def test_process_unknown_lead(self, client):
        resp = client.post('/api/leads/process', json={'lead_id': 999})
        assert resp.status_code == 404
        assert resp.get_json() == {'error': 'Lead not found'}

    def test_enqueue(self, client, make_lead, db_session):
        lead = make_lead()
        resp = client.post('/api/leads/enqueue', json={'lead_id': lead.id})
        assert resp.status_code == 200
        assert resp.get_json()['status'] == 'scheduled'
        assert db_session.query(QueueItem).count() == 1

    def test_queue_process_status(self, client):
        with patch('siteops.routes.pipeline.process_next',
                   return_value={'success': False, 'error': 'Failed to process queue item'}):
            assert client.post('/api/queue/process').status_code == 500
        with patch('siteops.routes.pipeline.process_next',
                   return_value={'success': True, 'processed': False}):
            assert client.post('/api/queue/process').status_code == 200
