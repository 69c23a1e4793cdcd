"""Tests for siteops.pipeline.insights — Ok/Skipped outcomes."""
from unittest.mock import patch, MagicMock

from siteops.models.site_audit import SiteAudit
from siteops.pipeline.insights import generate_insights


class TestGenerateInsights:
    """generate_insights() never raises; failures become Skipped."""

    def test_unknown_audit(self):
        outcome = generate_insights(999)
        assert not outcome.is_ok
        assert outcome.skipped_reason == 'Audit not found'

    def test_cached_insights_reused(self, make_lead, make_audit):
        audit = make_audit(make_lead(), insights=['Already here.'])
        with patch('siteops.services.openai_client.generate_audit_insights') as mock_gen:
            outcome = generate_insights(audit.id)
        assert outcome.is_ok
        assert outcome.cached is True
        assert outcome.insights == ['Already here.']
        mock_gen.assert_not_called()

    def test_no_client_is_skipped(self, make_lead, make_audit):
        audit = make_audit(make_lead())
        with patch('siteops.services.openai_client.client', None):
            outcome = generate_insights(audit.id)
        assert outcome.skipped_reason == 'OPENAI_API_KEY not configured'

    def test_generation_failure_is_skipped(self, make_lead, make_audit):
        audit = make_audit(make_lead())
        with patch('siteops.services.openai_client.client', MagicMock()), \
             patch('siteops.services.openai_client.generate_audit_insights', side_effect=ValueError('bad json')):
            outcome = generate_insights(audit.id)
        assert not outcome.is_ok
        assert 'bad json' in outcome.skipped_reason
        step = outcome.to_step().to_dict()
        assert step['skipped'] is True
        assert step['success'] is False

    def test_stores_new_insights(self, make_lead, make_audit, db_session):
        audit = make_audit(make_lead())
        with patch('siteops.services.openai_client.client', MagicMock()), \
             patch('siteops.services.openai_client.generate_audit_insights',
                   return_value=['Loads slowly on phones.', 'Easy to find in search.']) as mock_gen:
            outcome = generate_insights(audit.id)

        assert outcome.is_ok
        assert outcome.cached is False
        scores, vitals = mock_gen.call_args.args
        assert scores['performance'] == 45
        assert vitals['lcp'] == 4.2

        db_session.expire_all()
        assert db_session.get(SiteAudit, audit.id).insights == ['Loads slowly on phones.', 'Easy to find in search.']
