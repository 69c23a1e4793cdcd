"""Tests for siteops.monitoring.checks — probing and polling."""
import pytest
import requests
from unittest.mock import patch

from siteops.models.health import HealthCheck, HealthEvent
from siteops.monitoring.checks import check_url, evaluate_response, probe, run_health_checks


class TestCheckUrl:
    def test_absolute_target(self):
        assert check_url('https://status.example.com/ping', 'acmebakery.com') == 'https://status.example.com/ping'

    def test_path_joined_to_domain(self):
        assert check_url('/api/health', 'acmebakery.com') == 'https://acmebakery.com/api/health'
        assert check_url('api/health', 'https://acmebakery.com/') == 'https://acmebakery.com/api/health'


class TestEvaluateResponse:
    """ok / warn / fail classification."""

    @pytest.mark.parametrize('check_type,status,payload,expected', [
        ('uptime', 200, None, 'ok'),
        ('uptime', 404, None, 'warn'),
        ('uptime', 503, None, 'fail'),
        ('health_api', 200, {'status': 'ok'}, 'ok'),
        ('health_api', 200, {'status': 'degraded'}, 'warn'),
        ('health_api', 200, {'status': 'error'}, 'fail'),
        ('cms', 500, {'status': 'ok'}, 'fail'),
    ])
    def test_classification(self, check_type, status, payload, expected):
        assert evaluate_response(check_type, status, payload) == expected

    def test_unexpected_status_warns(self):
        assert evaluate_response('seo', 204, expected_status=200) == 'warn'


class TestProbe:
    """probe() never raises for network trouble."""

    def test_network_error_is_failure(self):
        with patch('siteops.monitoring.checks.requests.get',
                   side_effect=requests.ConnectionError('refused')):
            result = probe('uptime', 'https://acmebakery.com')
        assert result.result == 'fail'
        assert 'refused' in result.error_message
        assert result.http_status is None

    def test_form_probe_posts(self, mock_response):
        with patch('siteops.monitoring.checks.requests.post', return_value=mock_response(200)) as mock_post:
            result = probe('form', 'https://acmebakery.com/api/contact', timeout_ms=5000)
        assert result.result == 'ok'
        assert mock_post.call_args.kwargs['timeout'] == 5
        assert mock_post.call_args.kwargs['json']['email'] == 'monitor@example.com'

    def test_json_payload_kept(self, mock_response):
        resp = mock_response(200, {'status': 'degraded'})
        with patch('siteops.monitoring.checks.requests.get', return_value=resp):
            result = probe('health_api', 'https://acmebakery.com/api/health')
        assert result.result == 'warn'
        assert result.raw_payload == {'status': 'degraded'}


class TestRunHealthChecks:
    """Polling writes events and classifies failures."""

    def test_nothing_configured(self):
        assert run_health_checks() == {'success': True, 'message': 'No health checks configured', 'checks_run': 0}

    def test_paused_sites_skipped(self, make_site, db_session):
        site = make_site(status='paused')
        db_session.add(HealthCheck(site_id=site.id, check_type='uptime', target='/'))
        db_session.commit()
        assert run_health_checks()['checks_run'] == 0

    def test_records_events_and_classifies_failures(self, make_site, db_session, mock_response):
        site = make_site()
        db_session.add_all([
            HealthCheck(site_id=site.id, check_type='uptime', target='/'),
            HealthCheck(site_id=site.id, check_type='seo', target='/robots.txt', enabled=False),
        ])
        db_session.commit()

        with patch('siteops.monitoring.checks.requests.get', return_value=mock_response(503)), \
             patch('siteops.monitoring.severity.classify_failure') as mock_classify:
            result = run_health_checks()

        assert result['checks_run'] == 1
        assert result['summary'] == {'ok': 0, 'warn': 0, 'fail': 1}
        db_session.expire_all()
        event = db_session.query(HealthEvent).one()
        assert event.result == 'fail'
        assert event.http_status == 503
        mock_classify.assert_called_once_with(site.id, 'uptime', event.id)
