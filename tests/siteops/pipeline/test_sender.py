"""Tests for siteops.pipeline.sender — send_draft()."""
import pytest
from unittest.mock import patch

from siteops.errors import NotFoundError, AlreadySent, ValidationError, ConfigurationError, UpstreamError
from siteops.models.email_draft import EmailDraft
from siteops.models.lead import Lead
from siteops.models.suppression import EmailSuppression
from siteops.services.email_client import EmailResult


@pytest.fixture
def make_draft(db_session):
    def _make(lead, **overrides):
        defaults = dict(lead_id=lead.id, template='simplified', subject='Hello',
                        body='<p>Hi</p>', status='draft')
        defaults.update(overrides)
        draft = EmailDraft(**defaults)
        db_session.add(draft)
        db_session.commit()
        return draft
    return _make


class TestSendDraft:
    """send_draft() guards, suppression recheck, and provider outcome."""

    def test_unknown_draft(self):
        from siteops.pipeline.sender import send_draft
        with pytest.raises(NotFoundError):
            send_draft(999)

    def test_already_sent(self, make_lead, make_draft):
        from siteops.pipeline.sender import send_draft
        draft = make_draft(make_lead(), status='sent')
        with pytest.raises(AlreadySent) as exc_info:
            send_draft(draft.id)
        assert exc_info.value.http_status == 400

    def test_lead_without_email(self, make_lead, make_draft):
        from siteops.pipeline.sender import send_draft
        draft = make_draft(make_lead(email=''))
        with pytest.raises(ValidationError):
            send_draft(draft.id)

    def test_suppressed_at_send_time(self, make_lead, make_draft, db_session, resend_ok):
        from siteops.pipeline.sender import send_draft
        lead = make_lead()
        draft = make_draft(lead)
        db_session.add(EmailSuppression(email='ada@example.com', reason='Spam complaint'))
        db_session.commit()

        result = send_draft(draft.id)
        assert result['suppressed'] is True
        assert result['email_draft_id'] == draft.id
        assert result['suppression_reason'] == 'Spam complaint'
        resend_ok.assert_not_called()

        db_session.expire_all()
        assert db_session.get(Lead, lead.id).status == 'suppressed'
        assert db_session.get(EmailDraft, draft.id).status == 'draft'

    def test_not_configured(self, make_lead, make_draft):
        from siteops.pipeline.sender import send_draft
        draft = make_draft(make_lead())
        with patch('siteops.services.email_client.RESEND_API_KEY', None):
            with pytest.raises(ConfigurationError):
                send_draft(draft.id)

    def test_sends_edited_body(self, make_lead, make_draft, db_session, resend_ok):
        from siteops.pipeline.sender import send_draft
        lead = make_lead()
        draft = make_draft(lead, edited_body='<p>Edited</p>')

        result = send_draft(draft.id)
        assert result['success'] is True
        assert result['message_id'] == 'msg_123'
        assert result['sent_to'] == 'ada@example.com'

        args, kwargs = resend_ok.call_args
        assert args == ('ada@example.com', 'Hello', '<p>Edited</p>')
        assert kwargs['tags']['email_draft_id'] == draft.id
        assert kwargs['tags']['campaign'] == 'audit-outreach'

        db_session.expire_all()
        stored = db_session.get(EmailDraft, draft.id)
        assert stored.status == 'sent'
        assert stored.provider_message_id == 'msg_123'
        assert stored.sent_at is not None

    def test_provider_error_keeps_draft(self, make_lead, make_draft, db_session):
        from siteops.pipeline.sender import send_draft
        draft = make_draft(make_lead())
        failure = EmailResult(success=False, error='invalid from', status_code=422,
                              payload={'message': 'invalid from'})
        with patch('siteops.services.email_client.RESEND_API_KEY', 're_test'), \
             patch('siteops.services.email_client.send_email', return_value=failure):
            with pytest.raises(UpstreamError) as exc_info:
                send_draft(draft.id)

        assert exc_info.value.http_status == 422
        assert exc_info.value.details == {'message': 'invalid from'}
        db_session.expire_all()
        assert db_session.get(EmailDraft, draft.id).status == 'draft'
