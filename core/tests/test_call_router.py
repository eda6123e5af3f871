"""
Tests for inbound call routing, the unavailable keypad menu and the
voicemail greeting fallback.
"""
from unittest import mock

from django.conf import settings
from django.test import TestCase, override_settings

from core.models import User
from core.telephony.services.call_router import (
    UNAVAILABLE_FLOW_STATE, CallRoutingError, handle_incoming_call, handle_unavailable_dtmf,
)
from core.telephony.services.telnyx_client import TelnyxError
from core.telephony.services.voicemail_recorder import (
    RECORDING_OPTIONS, default_greeting_url, greeting_url_for, send_to_voicemail,
)

CALL_ID = 'v3:call-abc'


def make_client():
    client = mock.MagicMock(name='TelnyxClient')
    client.config.webhook_url = 'http://testserver/api/webhooks/telnyx/'
    return client


class IncomingCallRoutingTests(TestCase):

    def setUp(self):
        self.user = User.objects.create_user(
            email='jane@test.com', password='pw', name='Jane Doe',
            phone_number='+15557654321', telnyx_phone_number='+15550001000',
        )
        self.client_mock = make_client()
        patcher = mock.patch('core.telephony.services.call_router.is_available')
        self.is_available = patcher.start()
        self.addCleanup(patcher.stop)

    def test_available_user_gets_call_forwarded(self):
        self.is_available.return_value = True

        result = handle_incoming_call(self.user, CALL_ID, client=self.client_mock)

        self.assertEqual(result.action, 'forwarded')
        self.assertEqual(result.detail['to'], '+15557654321')
        self.client_mock.answer.assert_called_once_with(CALL_ID, client_state='awaiting-transfer')
        self.client_mock.transfer.assert_called_once_with(
            CALL_ID,
            to='+15557654321',
            timeout_secs=settings.RING_TIMEOUT_SECONDS,
            webhook_url='http://testserver/api/webhooks/telnyx/',
        )
        self.client_mock.gather.assert_not_called()

    def test_unavailable_user_with_live_agent(self):
        self.is_available.return_value = False
        self.user.route_to_live_agent = True
        self.user.live_agent_number = '+15550002000'

        result = handle_incoming_call(self.user, CALL_ID, client=self.client_mock)

        self.assertEqual(result.action, 'routed_to_agent')
        self.assertEqual(self.client_mock.transfer.call_args.kwargs['to'], '+15550002000')

    def test_live_agent_flag_without_number_plays_prompt(self):
        self.is_available.return_value = False
        self.user.route_to_live_agent = True
        self.user.live_agent_number = None

        result = handle_incoming_call(self.user, CALL_ID, client=self.client_mock)

        self.assertEqual(result.action, 'unavailable_prompt')
        self.client_mock.transfer.assert_not_called()

    def test_unavailable_user_hears_prompt_and_gather_starts(self):
        self.is_available.return_value = False

        result = handle_incoming_call(self.user, CALL_ID, client=self.client_mock)

        self.assertEqual(result.action, 'unavailable_prompt')
        self.assertIn('1 for voicemail', result.detail['message'])
        self.client_mock.answer.assert_called_once_with(CALL_ID)
        self.client_mock.play_audio.assert_called_once_with(
            CALL_ID, settings.UNAVAILABLE_PROMPT_URL, client_state='gathering-input'
        )
        self.client_mock.gather.assert_called_once_with(
            CALL_ID, max_digits=1, timeout_secs=settings.DTMF_TIMEOUT_SECONDS, client_state=UNAVAILABLE_FLOW_STATE,
        )

    def test_telnyx_failure_raises_routing_error(self):
        self.is_available.return_value = True
        self.client_mock.answer.side_effect = TelnyxError('Telnyx API error (422): bad call', 422)

        with self.assertRaises(CallRoutingError) as ctx:
            handle_incoming_call(self.user, CALL_ID, client=self.client_mock)
        self.assertIn('Failed to handle call', str(ctx.exception))


@mock.patch('core.tasks.start_voicemail_recording')
class UnavailableMenuTests(TestCase):

    def setUp(self):
        self.user = User.objects.create_user(email='jane@test.com', password='pw', name='Jane Doe')
        self.client_mock = make_client()

    def test_digit_two_forwards_to_central_number(self, start_recording):
        result = handle_unavailable_dtmf(CALL_ID, '2', self.user, client=self.client_mock)

        self.assertEqual(result.action, 'forwarded_to_central')
        self.client_mock.transfer.assert_called_once_with(
            CALL_ID, to=settings.CENTRAL_FORWARDING_NUMBER, webhook_url='http://testserver/api/webhooks/telnyx/'
        )
        self.client_mock.play_audio.assert_not_called()

    def test_digit_one_goes_to_voicemail(self, start_recording):
        result = handle_unavailable_dtmf(CALL_ID, '1', self.user, client=self.client_mock)

        self.assertEqual(result.action, 'voicemail')
        self.client_mock.play_audio.assert_called_once()
        start_recording.apply_async.assert_called_once()

    def test_timeout_and_other_digits_go_to_voicemail(self, start_recording):
        for digit in (None, '', '9', '#'):
            result = handle_unavailable_dtmf(CALL_ID, digit, self.user, client=self.client_mock)
            self.assertEqual(result.action, 'voicemail')
        self.client_mock.transfer.assert_not_called()

    def test_transfer_failure_raises_routing_error(self, start_recording):
        self.client_mock.transfer.side_effect = TelnyxError('Telnyx request failed: timeout')

        with self.assertRaises(CallRoutingError):
            handle_unavailable_dtmf(CALL_ID, '2', self.user, client=self.client_mock)


@override_settings(VOICEMAIL_GREETING_BASE_URL='https://audio.example.com/')
@mock.patch('core.tasks.start_voicemail_recording')
class VoicemailRecorderTests(TestCase):

    def setUp(self):
        self.user = User.objects.create_user(
            email='jane@test.com', password='pw', name='Jane Doe', voicemail_greeting='Leave a message please',
        )
        self.client_mock = make_client()

    def test_default_greeting_uses_first_name(self, start_recording):
        self.assertEqual(default_greeting_url(self.user), 'https://audio.example.com/Jane%20Voicemail.mp3')
        self.assertEqual(greeting_url_for(self.user), default_greeting_url(self.user))

    def test_custom_greeting_url_wins(self, start_recording):
        self.user.voicemail_greeting_url = 'https://cdn.example.com/jane.mp3'
        self.assertEqual(greeting_url_for(self.user), 'https://cdn.example.com/jane.mp3')

    def test_audio_greeting_then_deferred_recording(self, start_recording):
        result = send_to_voicemail(CALL_ID, self.user, client=self.client_mock)

        self.assertEqual(result, {'action': 'voicemail'})
        self.client_mock.play_audio.assert_called_once_with(CALL_ID, 'https://audio.example.com/Jane%20Voicemail.mp3')
        self.client_mock.speak.assert_not_called()
        self.client_mock.start_recording.assert_not_called()
        start_recording.apply_async.assert_called_once_with(
            args=[CALL_ID], countdown=settings.VOICEMAIL_RECORDING_DELAY_SECONDS,
        )

    def test_playback_failure_falls_back_to_speech(self, start_recording):
        self.client_mock.play_audio.side_effect = TelnyxError('Telnyx API error (404): audio not found', 404)

        result = send_to_voicemail(CALL_ID, self.user, client=self.client_mock)

        self.assertEqual(result, {'action': 'voicemail'})
        self.client_mock.speak.assert_called_once_with(
            CALL_ID, 'Leave a message please', voice='female', language='en-US'
        )
        self.client_mock.start_recording.assert_called_once_with(CALL_ID, **RECORDING_OPTIONS)
        start_recording.apply_async.assert_not_called()
