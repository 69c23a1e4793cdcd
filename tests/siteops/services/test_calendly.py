"""Tests for siteops.services.calendly — signature verification and booking handling."""
import hashlib
import hmac
import pytest
from unittest.mock import patch

from siteops.errors import ConfigurationError, ValidationError, UpstreamError
from siteops.models.lead import Lead
from siteops.services.email_client import EmailResult
from siteops.services.calendly import (
    verify_signature, parse_name, is_discovery_call, handle_booking, PREP_SUBJECT,
)

SECRET = 'whsec'


def _sign(body, ts, secret=SECRET):
    digest = hmac.new(secret.encode(), f'{ts}.{body}'.encode(), hashlib.sha256).hexdigest()
    return f't={ts},v1={digest}'


def _booking(email='grace@example.com', name='Grace Brewster Hopper',
             uri='https://api.calendly.com/scheduled_events/EV1',
             event_type='https://api.calendly.com/event_types/discovery-call'):
    return {
        'event': 'invitee.created',
        'payload': {
            'email': email,
            'name': name,
            'scheduled_event': {
                'uri': uri,
                'name': 'Discovery Call',
                'event_type': event_type,
                'start_time': '2026-11-02T15:00:00Z',
            },
        },
    }


class TestVerifySignature:
    """t=<ts>,v1=<hex> over "{t}.{body}" within five minutes."""

    def test_valid(self):
        assert verify_signature('{"a":1}', _sign('{"a":1}', 1000), SECRET, now=1100) is True

    def test_bytes_body(self):
        assert verify_signature(b'{"a":1}', _sign('{"a":1}', 1000), SECRET, now=1000) is True

    def test_stale_timestamp(self):
        assert verify_signature('{}', _sign('{}', 1000), SECRET, now=1000 + 301) is False

    def test_tampered_body(self):
        assert verify_signature('{"a":2}', _sign('{"a":1}', 1000), SECRET, now=1000) is False

    def test_wrong_secret(self):
        assert verify_signature('{}', _sign('{}', 1000, 'other'), SECRET, now=1000) is False

    @pytest.mark.parametrize('header', [None, '', 'garbage', 't=1000', 't=abc,v1=00', 't=1000,v1=XYZ,extra=1'])
    def test_malformed_header(self, header):
        assert verify_signature('{}', header, SECRET, now=1000) is False


class TestHelpers:

    def test_parse_name(self):
        assert parse_name('Grace Brewster Hopper') == ('Grace Brewster', 'Hopper')
        assert parse_name('Cher') == ('Cher', '')
        assert parse_name('') == ('', '')

    def test_is_discovery_call(self):
        assert is_discovery_call({'event_type': 'https://x/event_types/discovery-call'})
        assert is_discovery_call({'name': 'Quick Discovery chat'})
        assert not is_discovery_call({'event_type': 'https://x/event_types/support', 'name': 'Support'})


class TestHandleBooking:
    """Discovery bookings upsert a lead and send one prep email."""

    def test_email_not_configured(self):
        with patch('siteops.services.email_client.RESEND_API_KEY', None):
            with pytest.raises(ConfigurationError):
                handle_booking(_booking())

    def test_ignores_other_events(self, resend_ok):
        result = handle_booking({'event': 'invitee.canceled', 'payload': {}})
        assert result['message'] == 'Event ignored'
        resend_ok.assert_not_called()

    def test_missing_invitee_data(self, resend_ok):
        with pytest.raises(ValidationError):
            handle_booking(_booking(email=''))

    def test_ignores_non_discovery(self, resend_ok, db_session):
        payload = _booking(event_type='https://api.calendly.com/event_types/support')
        payload['payload']['scheduled_event']['name'] = 'Support'
        result = handle_booking(payload)
        assert result['message'] == 'Event ignored - not a Discovery call'
        assert db_session.query(Lead).count() == 0

    def test_creates_lead_and_sends_prep_email(self, resend_ok, db_session):
        result = handle_booking(_booking(email='Grace@Example.com'))
        assert result['success'] is True
        assert result['email_sent'] is True
        assert result['message_id'] == 'msg_123'

        lead = db_session.get(Lead, result['lead_id'])
        assert lead.email == 'grace@example.com'
        assert lead.first_name == 'Grace Brewster'
        assert lead.last_name == 'Hopper'
        assert lead.booked_consult is True
        assert lead.prep_email_sent_at is not None

        to, subject, html = resend_ok.call_args.args
        assert to == 'grace@example.com'
        assert subject == PREP_SUBJECT
        assert 'Grace Brewster' in html

    def test_updates_existing_lead(self, resend_ok, make_lead, db_session):
        lead = make_lead(email='grace@example.com', first_name='Grace')
        result = handle_booking(_booking())
        assert result['lead_id'] == lead.id
        db_session.expire_all()
        assert db_session.query(Lead).count() == 1
        assert db_session.get(Lead, lead.id).booked_consult is True

    def test_replay_is_idempotent(self, resend_ok, db_session):
        first = handle_booking(_booking())
        second = handle_booking(_booking())
        assert second['message'] == 'Already processed'
        assert second['lead_id'] == first['lead_id']
        assert resend_ok.call_count == 1
        assert db_session.query(Lead).count() == 1

    def test_send_failure(self, db_session):
        failed = EmailResult(success=False, error='rejected', status_code=422, payload={'message': 'rejected'})
        with patch('siteops.services.email_client.RESEND_API_KEY', 're_test'), \
             patch('siteops.services.email_client.send_email', return_value=failed):
            with pytest.raises(UpstreamError) as exc_info:
                handle_booking(_booking())
        assert exc_info.value.message == 'Failed to send prep email'
        assert exc_info.value.http_status == 500

    def test_retry_after_failed_send_resends(self, db_session):
        failed = EmailResult(success=False, error='rejected', status_code=422, payload={'message': 'rejected'})
        ok = EmailResult(success=True, message_id='msg_456', status_code=200)
        with patch('siteops.services.email_client.RESEND_API_KEY', 're_test'), \
             patch('siteops.services.email_client.send_email', side_effect=[failed, ok]) as mock_send:
            with pytest.raises(UpstreamError):
                handle_booking(_booking())
            db_session.expire_all()
            assert db_session.query(Lead).one().prep_email_sent_at is None

            retry = handle_booking(_booking())

        assert retry['email_sent'] is True
        assert retry['message_id'] == 'msg_456'
        assert mock_send.call_count == 2
        db_session.expire_all()
        lead = db_session.query(Lead).one()
        assert lead.id == retry['lead_id']
        assert lead.prep_email_sent_at is not None
