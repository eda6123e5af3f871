"""
End-to-end tests for the Telnyx webhook endpoint.

Celery runs eagerly in tests, so automations and notifications triggered by
a webhook execute inside the request.
"""
from unittest import mock

from django.conf import settings
from django.core import mail
from rest_framework import status

from core.models import Call, CallDirection, CallStatus, SmsMessage, SmsStatus, Voicemail
from core.telephony.events import encode_client_state
from core.telephony.services.telnyx_client import TelnyxError
from core.tests.base import BaseAPITestCase, CALLER, TELNYX_NUMBER, TelnyxMockMixin, webhook_envelope

CALL_ID = 'v3:inbound-1'


class TelnyxWebhookTestCase(TelnyxMockMixin, BaseAPITestCase):

    def setUp(self):
        super().setUp()
        self.webhook_url = f"{self.base_url}/webhooks/telnyx/"
        self.start_telnyx_mock()
        patcher = mock.patch('core.telephony.services.call_router.is_available', return_value=False)
        self.is_available = patcher.start()
        self.addCleanup(patcher.stop)

    def post_event(self, event_type, **payload):
        response = self.client.post(self.webhook_url, webhook_envelope(event_type, **payload), format='json')
        self.assert_response_success(response)
        self.assertTrue(response.data['received'])
        return response

    def incoming_call(self, call_control_id=CALL_ID):
        return self.post_event(
            'call.initiated',
            call_control_id=call_control_id,
            direction='incoming',
            to=TELNYX_NUMBER,
            **{'from': CALLER}
        )

    def gather(self, digits, call_control_id=CALL_ID):
        return self.post_event(
            'call.gather.ended',
            call_control_id=call_control_id,
            digits=digits,
            to=TELNYX_NUMBER,
            client_state=encode_client_state('unavailable-flow'),
            **{'from': CALLER}
        )

    def recording_saved(self, call_control_id=CALL_ID, duration=25):
        return self.post_event(
            'call.recording.saved',
            call_control_id=call_control_id,
            recording_urls={'mp3': 'https://rec.example.com/vm.mp3'},
            recording_duration_sec=duration,
            to=TELNYX_NUMBER,
            **{'from': CALLER}
        )


class WebhookEnvelopeTests(TelnyxWebhookTestCase):

    def test_no_authentication_required(self):
        response = self.client.post(self.webhook_url, webhook_envelope('call.bridged'), format='json')
        self.assert_response_success(response)
        self.assertEqual(response.data, {'received': True})

    def test_malformed_body_is_acknowledged(self):
        response = self.client.post(self.webhook_url, {'foo': 'bar'}, format='json')
        self.assert_response_success(response)
        self.assertTrue(response.data['received'])
        self.assertIn('error', response.data)

    def test_handler_exception_is_acknowledged(self):
        with mock.patch(
            'core.management_api.webhook_api.views.dispatch_event', side_effect=RuntimeError('database is gone')
        ):
            response = self.client.post(self.webhook_url, webhook_envelope('call.answered'), format='json')
        self.assert_response_success(response)
        self.assertEqual(response.data['error'], 'database is gone')

    def test_alias_paths(self):
        for path in ('calls/', 'sms/'):
            response = self.client.post(f"{self.webhook_url}{path}", webhook_envelope('call.bridged'), format='json')
            self.assertEqual(response.status_code, status.HTTP_200_OK)


class InboundCallFlowTests(TelnyxWebhookTestCase):

    def test_available_user_call_is_forwarded(self):
        self.is_available.return_value = True

        response = self.incoming_call()

        self.assertEqual(response.data['action'], 'forwarded')
        call = Call.objects.get(external_call_id=CALL_ID)
        self.assertEqual(call.user, self.regular_user)
        self.assertEqual(call.status, CallStatus.FORWARDED)
        self.assertEqual(call.metadata['routing']['to'], self.regular_user.phone_number)
        self.telnyx.transfer.assert_called_once()

    def test_duplicate_initiated_event_creates_one_call(self):
        self.incoming_call()
        self.incoming_call()
        self.assertEqual(Call.objects.filter(external_call_id=CALL_ID).count(), 1)

    def test_unknown_number_is_ignored(self):
        response = self.post_event(
            'call.initiated', call_control_id=CALL_ID, direction='incoming', to='+15559990000', **{'from': CALLER}
        )
        self.assertNotIn('action', response.data)
        self.assertFalse(Call.objects.exists())

    def test_outbound_leg_is_not_routed(self):
        self.post_event('call.initiated', call_control_id=CALL_ID, direction='outgoing', to=TELNYX_NUMBER)
        self.telnyx.answer.assert_not_called()

    def test_routing_failure_marks_call_failed(self):
        self.telnyx.answer.side_effect = TelnyxError('Telnyx API error (422): call not active', 422)

        response = self.incoming_call()

        self.assertIn('Failed to handle call', response.data['error'])
        self.assertEqual(Call.objects.get(external_call_id=CALL_ID).status, CallStatus.FAILED)

    def test_unavailable_then_voicemail_then_recording(self):
        response = self.incoming_call()
        self.assertEqual(response.data['action'], 'unavailable_prompt')
        self.assertEqual(Call.objects.get(external_call_id=CALL_ID).status, CallStatus.ANSWERED)
        self.telnyx.gather.assert_called_once()

        response = self.gather('1')
        self.assertEqual(response.data['action'], 'voicemail')
        self.assertEqual(Call.objects.get(external_call_id=CALL_ID).status, CallStatus.VOICEMAIL)
        self.telnyx.play_audio.assert_called()
        self.telnyx.start_recording.assert_called_once()

        response = self.recording_saved()
        voicemail = Voicemail.objects.get()
        self.assertEqual(response.data['voicemail_id'], str(voicemail.id))
        self.assertEqual(voicemail.user, self.regular_user)
        self.assertEqual(voicemail.duration, 25)
        self.assertEqual(voicemail.from_number, CALLER)
        self.assertTrue(voicemail.is_new)
        call = Call.objects.get(external_call_id=CALL_ID)
        self.assertEqual(call.voicemail_url, 'https://rec.example.com/vm.mp3')
        self.assertEqual([m.subject for m in mail.outbox], ['New Voicemail'])

    def test_redelivered_recording_creates_one_voicemail(self):
        self.incoming_call()
        self.gather('1')
        self.recording_saved()
        response = self.recording_saved()

        self.assertNotIn('voicemail_id', response.data)
        self.assertEqual(Voicemail.objects.count(), 1)

    def test_digit_two_forwards_to_central_number(self):
        self.incoming_call()

        response = self.gather('2')

        self.assertEqual(response.data['action'], 'forwarded_to_central')
        self.assertEqual(self.telnyx.transfer.call_args.kwargs['to'], settings.CENTRAL_FORWARDING_NUMBER)
        self.assertEqual(Call.objects.get(external_call_id=CALL_ID).status, CallStatus.FORWARDED)

    def test_gather_from_other_flow_is_ignored(self):
        self.incoming_call()
        response = self.post_event(
            'call.gather.ended', call_control_id=CALL_ID, digits='2',
            client_state=encode_client_state('something-else'),
        )
        self.assertNotIn('action', response.data)
        self.telnyx.transfer.assert_not_called()

    def test_recording_of_non_voicemail_call_completes_it(self):
        self.is_available.return_value = True
        self.incoming_call()
        Call.objects.filter(external_call_id=CALL_ID).update(status=CallStatus.ANSWERED)

        self.recording_saved()

        self.assertFalse(Voicemail.objects.exists())
        call = Call.objects.get(external_call_id=CALL_ID)
        self.assertEqual(call.status, CallStatus.COMPLETED)
        self.assertEqual(call.recording_url, 'https://rec.example.com/vm.mp3')

    def test_unanswered_hangup_notifies_missed_call(self):
        self.incoming_call()

        self.post_event(
            'call.hangup', call_control_id=CALL_ID, hangup_cause='unanswered',
            to=TELNYX_NUMBER, **{'from': CALLER}
        )

        call = Call.objects.get(external_call_id=CALL_ID)
        self.assertEqual(call.status, CallStatus.NO_ANSWER)
        self.assertIsNotNone(call.end_time)
        self.assertIn('Missed Call', [m.subject for m in mail.outbox])

    def test_unanswered_outbound_call_is_not_a_missed_call(self):
        self.create_call(
            self.regular_user, external_call_id='v3:outbound-1', direction=CallDirection.OUTBOUND,
            from_number=TELNYX_NUMBER, to_number=CALLER,
        )

        self.post_event(
            'call.hangup', call_control_id='v3:outbound-1', hangup_cause='unanswered',
            to=CALLER, **{'from': TELNYX_NUMBER}
        )

        self.assertEqual(Call.objects.get(external_call_id='v3:outbound-1').status, CallStatus.NO_ANSWER)
        self.assertEqual(mail.outbox, [])

    def test_unanswered_hangup_without_call_record_notifies_number_owner(self):
        self.post_event(
            'call.hangup', call_control_id='v3:unknown', hangup_cause='unanswered',
            to=TELNYX_NUMBER, **{'from': CALLER}
        )
        self.assertEqual([m.subject for m in mail.outbox], ['Missed Call'])
        self.assertEqual(mail.outbox[0].to, [self.regular_user.email])

    def test_normal_hangup_keeps_settled_status(self):
        self.is_available.return_value = True
        self.incoming_call()

        self.post_event(
            'call.hangup', call_control_id=CALL_ID, hangup_cause='normal_clearing', duration_seconds=64,
            to=TELNYX_NUMBER, **{'from': CALLER}
        )

        call = Call.objects.get(external_call_id=CALL_ID)
        self.assertEqual(call.status, CallStatus.FORWARDED)
        self.assertEqual(call.duration, 64)
        self.assertEqual(mail.outbox, [])

    def test_missed_call_automation_runs(self):
        template = self.create_template(self.regular_user, 'Sorry we missed you, {{user.firstName}} will call back')
        self.create_automation(
            self.regular_user, [{'type': 'missedCall', 'parameters': {}}], [
                {'type': 'sendSms', 'parameters': {'template': str(template.id)}}
            ],
        )
        self.incoming_call()

        self.post_event(
            'call.hangup', call_control_id=CALL_ID, hangup_cause='unanswered',
            to=TELNYX_NUMBER, **{'from': CALLER}
        )

        self.telnyx.send_message.assert_called_once_with(
            TELNYX_NUMBER, CALLER, 'Sorry we missed you, Jane will call back'
        )


class InboundMessageFlowTests(TelnyxWebhookTestCase):

    def message_received(self, text, message_id='msg-in-1'):
        return self.post_event(
            'message.received',
            id=message_id,
            text=text,
            to=[{'phone_number': TELNYX_NUMBER}],
            **{'from': {'phone_number': CALLER}}
        )

    def test_inbound_sms_is_logged_and_notified(self):
        self.message_received('Hello!')

        sms = SmsMessage.objects.get(telnyx_message_id='msg-in-1')
        self.assertEqual(sms.user, self.regular_user)
        self.assertEqual(sms.status, SmsStatus.RECEIVED)
        self.assertEqual(sms.body, 'Hello!')
        self.assertEqual(mail.outbox[0].subject, 'New SMS Message')
        self.assertIn('Hello!', mail.outbox[0].body)

    def test_duplicate_delivery_is_logged_once(self):
        self.message_received('Hello!')
        self.message_received('Hello!')
        self.assertEqual(SmsMessage.objects.filter(telnyx_message_id='msg-in-1').count(), 1)
        self.assertEqual(len(mail.outbox), 1)

    def test_stop_keyword_auto_reply(self):
        template = self.create_template(self.regular_user, 'You have been unsubscribed.')
        self.create_automation(
            self.regular_user,
            [{'type': 'keywordSms', 'parameters': {'keywords': ['STOP']}}],
            [{'type': 'sendSms', 'parameters': {'template': str(template.id)}}],
        )

        self.message_received('stop')

        self.telnyx.send_message.assert_called_once_with(TELNYX_NUMBER, CALLER, 'You have been unsubscribed.')
        reply = SmsMessage.objects.get(telnyx_message_id='msg-out-1')
        self.assertEqual(reply.direction, 'outbound')
        self.assertEqual(reply.to_number, CALLER)

    def test_delivery_receipt_updates_status(self):
        outbound = SmsMessage.objects.create(
            user=self.regular_user, telnyx_message_id='msg-out-9', direction='outbound',
            from_number=TELNYX_NUMBER, to_number=CALLER, body='hi',
        )

        self.post_event('message.finalized', id='msg-out-9', to=[{'phone_number': CALLER, 'status': 'delivered'}])
        outbound.refresh_from_db()
        self.assertEqual(outbound.status, SmsStatus.DELIVERED)
        self.assertIsNotNone(outbound.delivered_at)

        self.post_event('message.finalized', id='msg-out-9', to=[{'phone_number': CALLER, 'status': 'delivery_failed'}])
        outbound.refresh_from_db()
        self.assertEqual(outbound.status, SmsStatus.FAILED)
