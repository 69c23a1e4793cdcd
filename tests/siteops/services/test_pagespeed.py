"""Tests for siteops.services.pagespeed — fetch and score/vitals extraction."""
import pytest
from unittest.mock import patch

from siteops.errors import ConfigurationError, UpstreamError
from siteops.services.pagespeed import fetch_report, extract_scores, extract_core_web_vitals


LIGHTHOUSE = {
    'lighthouseResult': {
        'categories': {
            'performance': {'score': 0.45},
            'accessibility': {'score': 0.876},
            'seo': {'score': 1},
            'best-practices': {'score': 0.83},
        },
        'audits': {
            'largest-contentful-paint': {'numericValue': 4200},
            'cumulative-layout-shift': {'numericValue': 0.12},
            'interaction-to-next-paint': {'numericValue': 310},
        },
    }
}


class TestExtractScores:
    """Category scores become 0–100 ints; anything missing is None."""

    def test_full_payload(self):
        assert extract_scores(LIGHTHOUSE) == {
            'performance': 45, 'accessibility': 88, 'seo': 100, 'best_practices': 83,
        }

    def test_missing_category_is_none(self):
        payload = {'lighthouseResult': {'categories': {'performance': {'score': 0.5}}}}
        scores = extract_scores(payload)
        assert scores['performance'] == 50
        assert scores['seo'] is None

    def test_null_score_is_none_not_zero(self):
        payload = {'lighthouseResult': {'categories': {'performance': {'score': None}}}}
        assert extract_scores(payload)['performance'] is None

    @pytest.mark.parametrize('payload', [None, {}, [], 'garbage', {'lighthouseResult': 'x'}])
    def test_malformed_payload(self, payload):
        assert extract_scores(payload) == {
            'performance': None, 'accessibility': None, 'seo': None, 'best_practices': None,
        }


class TestExtractCoreWebVitals:
    """LCP converts to seconds; CLS and INP pass through."""

    def test_full_payload(self):
        assert extract_core_web_vitals(LIGHTHOUSE) == {'lcp': 4.2, 'cls': 0.12, 'inp': 310}

    def test_missing_audits(self):
        assert extract_core_web_vitals({}) == {'lcp': None, 'cls': None, 'inp': None}


class TestFetchReport:
    """fetch_report() calls the API with a timeout through the breaker."""

    def test_missing_key(self):
        with patch('siteops.services.pagespeed.PAGESPEED_API_KEY', None):
            with pytest.raises(ConfigurationError):
                fetch_report('https://example.com')

    @patch('siteops.services.pagespeed.requests.get')
    def test_success(self, mock_get, mock_response):
        mock_get.return_value = mock_response(200, LIGHTHOUSE)
        with patch('siteops.services.pagespeed.PAGESPEED_API_KEY', 'psi-key'):
            assert fetch_report('https://example.com') == LIGHTHOUSE
        kwargs = mock_get.call_args.kwargs
        assert kwargs['timeout'] > 0
        assert ('strategy', 'mobile') in kwargs['params']
        assert ('category', 'best-practices') in kwargs['params']

    @patch('siteops.services.pagespeed.requests.get')
    def test_provider_error_keeps_status(self, mock_get, mock_response):
        mock_get.return_value = mock_response(429, text='quota exceeded')
        with patch('siteops.services.pagespeed.PAGESPEED_API_KEY', 'psi-key'):
            with pytest.raises(UpstreamError) as exc_info:
                fetch_report('https://example.com')
        assert exc_info.value.http_status == 429
        assert exc_info.value.details == 'quota exceeded'
