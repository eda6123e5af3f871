"""
Tests for Celery tasks: notifications, singleton locking, delayed action
re-arming and calendar sync scheduling.
"""
from datetime import timedelta
from unittest import mock

from django.core import mail
from django.test import TestCase
from django.utils import timezone

from core import tasks
from core.models import CalendarIntegration, ScheduledAction, ScheduledActionStatus, SmsAutomation, User
from core.services.calendar_provider import CalendarSyncError
from core.services.notification_service import NotificationService
from core.telephony.services.telnyx_client import TelnyxError


class NotificationTaskTests(TestCase):

    def setUp(self):
        self.user = User.objects.create_user(
            email='jane@test.com', password='pw', name='Jane Doe',
            phone_number='+15557654321', telnyx_phone_number='+15550001000',
        )

    def test_voicemail_notification_email(self):
        result = tasks.send_notification(str(self.user.id), 'voicemail', {'from': '+15551234567', 'duration': 42})

        self.assertTrue(result['success'])
        self.assertEqual(result['results'], {'email': True, 'push': False})
        self.assertEqual(mail.outbox[0].subject, 'New Voicemail')
        self.assertIn('Duration: 42 seconds', mail.outbox[0].body)

    def test_push_needs_device_token(self):
        self.user.device_token = 'device-token-123456'
        self.user.save()
        result = tasks.send_notification(str(self.user.id), 'missed_call', {'from': '+15551234567'})
        self.assertTrue(result['results']['push'])

    def test_unknown_kind(self):
        result = tasks.send_notification(str(self.user.id), 'fax', {})
        self.assertEqual(result, {'success': False, 'error': 'unknown_kind'})

    def test_missing_user(self):
        result = tasks.send_notification('00000000-0000-0000-0000-000000000000', 'sms', {})
        self.assertEqual(result['error'], 'user_not_found')

    def test_sms_channel_failure_is_reported_not_raised(self):
        client = mock.MagicMock()
        client.send_message.side_effect = TelnyxError('Telnyx API error (400): bad number', 400)
        self.assertFalse(NotificationService(client=client).notify(self.user, 'sms', 'Heads up'))

        client.send_message.side_effect = None
        self.assertTrue(NotificationService(client=client).notify(self.user, 'sms', 'Heads up'))
        client.send_message.assert_called_with('+15550001000', '+15557654321', 'Heads up')


@mock.patch('core.tasks.redis_client')
@mock.patch('core.services.sms_automation.SmsAutomationService')
class SingletonTaskTests(TestCase):

    def test_runs_when_lock_acquired(self, service_cls, redis_client):
        redis_client.set.return_value = True
        service_cls.return_value.process_scheduled_automations.return_value = {'processed': True, 'total': 1}

        result = tasks.process_scheduled_automations()

        self.assertEqual(result, {'processed': True, 'total': 1})
        redis_client.set.assert_called_once_with(
            'lock:core.tasks.process_scheduled_automations', '1', nx=True, ex=tasks.SingletonTask.lock_ttl
        )
        redis_client.delete.assert_called_once_with('lock:core.tasks.process_scheduled_automations')

    def test_skips_when_lock_busy(self, service_cls, redis_client):
        redis_client.set.return_value = False

        result = tasks.process_scheduled_automations()

        self.assertEqual(result['error'], 'singleton_lock_busy')
        service_cls.return_value.process_scheduled_automations.assert_not_called()
        redis_client.delete.assert_not_called()

    def test_lock_released_after_run_and_on_error(self, service_cls, redis_client):
        redis_client.set.return_value = True
        service_cls.return_value.process_scheduled_automations.side_effect = [{'processed': False}, RuntimeError('boom')]

        tasks.process_scheduled_automations()
        with self.assertRaises(RuntimeError):
            tasks.process_scheduled_automations()

        # only overlapping runs are excluded; back-to-back runs both execute
        self.assertEqual(service_cls.return_value.process_scheduled_automations.call_count, 2)
        self.assertEqual(redis_client.delete.call_count, 2)


class ScheduledActionDispatchTests(TestCase):

    def setUp(self):
        user = User.objects.create_user(email='jane@test.com', password='pw', name='Jane Doe')
        self.automation = SmsAutomation.objects.create(
            user=user, name='Follow up', phone_number='+15550001000', conditions=[], actions=[],
        )

    def schedule(self, due_at, status=ScheduledActionStatus.PENDING):
        return ScheduledAction.objects.create(
            automation=self.automation,
            action={'type': 'sendSms', 'parameters': {'message': 'later'}},
            due_at=due_at,
            status=status,
        )

    @mock.patch('core.tasks.run_scheduled_action')
    def test_only_due_pending_actions_are_rearmed(self, run_action):
        now = timezone.now()
        due = self.schedule(now - timedelta(minutes=1))
        self.schedule(now + timedelta(hours=1))
        self.schedule(now - timedelta(minutes=5), status=ScheduledActionStatus.COMPLETED)

        result = tasks.dispatch_due_scheduled_actions()

        self.assertEqual(result, {'dispatched': 1})
        run_action.delay.assert_called_once_with(str(due.id))

    def test_missing_action(self):
        result = tasks.run_scheduled_action('00000000-0000-0000-0000-000000000000')
        self.assertEqual(result['status'], 'missing')


class CalendarTaskTests(TestCase):

    def setUp(self):
        self.user = User.objects.create_user(email='jane@test.com', password='pw', name='Jane Doe')

    def configure(self, **fields):
        CalendarIntegration.objects.filter(user=self.user).update(**fields)

    @mock.patch('core.tasks.sync_user_calendar')
    def test_sync_due_calendars(self, sync_task):
        other = User.objects.create_user(email='other@test.com', password='pw', name='Other')
        self.configure(enabled=True, provider='ical', last_sync_time=timezone.now() - timedelta(hours=2))
        CalendarIntegration.objects.filter(user=other).update(
            enabled=True, provider='ical', last_sync_time=timezone.now(), sync_frequency=60,
        )

        result = tasks.sync_due_calendars()

        self.assertEqual(result, {'queued': 1})
        sync_task.delay.assert_called_once_with(str(self.user.id))

    def test_sync_task_reports_disabled_integration(self):
        result = tasks.sync_user_calendar(str(self.user.id))
        self.assertFalse(result['success'])
        self.assertIn('not enabled', result['error'])

    @mock.patch('core.tasks.process_availability_change')
    @mock.patch('core.services.calendar_sync.CalendarSyncService.sync_user_calendar')
    def test_sync_task_fires_availability_change(self, sync, process_change):
        sync.return_value = {'synced': 1, 'excluded': 0, 'availability_changed': True, 'is_available': False}

        result = tasks.sync_user_calendar(str(self.user.id))

        self.assertTrue(result['success'])
        process_change.delay.assert_called_once_with(str(self.user.id), False)

    @mock.patch('core.services.google_calendar.GoogleCalendarService.refresh')
    def test_google_refresh_failure_is_recorded(self, refresh):
        refresh.side_effect = CalendarSyncError('Failed to refresh Google token: invalid_grant')
        self.configure(
            enabled=True, provider='google', refresh_token='refresh',
            token_expires_at=timezone.now() + timedelta(hours=2),
        )

        result = tasks.refresh_google_calendar_tokens()

        self.assertEqual(result, {'refreshed': 0, 'failed': 1})
        integration = CalendarIntegration.objects.get(user=self.user)
        self.assertIn('invalid_grant', integration.last_sync_error)

    @mock.patch('core.services.google_calendar.GoogleCalendarService.refresh')
    def test_google_tokens_far_from_expiry_are_left_alone(self, refresh):
        self.configure(
            enabled=True, provider='google', refresh_token='refresh',
            token_expires_at=timezone.now() + timedelta(days=3),
        )
        self.assertEqual(tasks.refresh_google_calendar_tokens(), {'refreshed': 0, 'failed': 0})
        refresh.assert_not_called()


@mock.patch('core.telephony.services.telnyx_client.TelnyxClient')
class VoicemailRecordingTaskTests(TestCase):

    def test_starts_recording(self, client_cls):
        result = tasks.start_voicemail_recording('v3:call-1')
        self.assertTrue(result['success'])
        client_cls.return_value.start_recording.assert_called_once()

    def test_failure_is_reported(self, client_cls):
        client_cls.return_value.start_recording.side_effect = TelnyxError('Telnyx API error (422): call ended', 422)
        result = tasks.start_voicemail_recording('v3:call-1')
        self.assertFalse(result['success'])
