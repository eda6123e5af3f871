"""
Tests for the Calendar API: integration settings, provider connection,
cached events and manual sync.
"""
from datetime import timedelta
from unittest import mock

from django.utils import timezone
from rest_framework import status

from core.models import CalendarEvent, CalendarIntegration
from core.services.calendar_provider import CalendarEventData, CalendarSyncError
from core.tests.base import BaseAPITestCase


class CalendarAPITestCase(BaseAPITestCase):

    def setUp(self):
        super().setUp()
        self.calendar_url = f"{self.base_url}/calendar/"
        patcher = mock.patch('core.tasks.sync_user_calendar')
        self.sync_task = patcher.start()
        self.addCleanup(patcher.stop)

    def enable_ical(self):
        CalendarIntegration.objects.filter(user=self.regular_user).update(
            enabled=True, provider='ical', ical_url='https://example.com/cal.ics'
        )


class IntegrationSettingsTests(CalendarAPITestCase):

    def test_new_user_has_disabled_integration(self):
        response = self.user_client.get(f"{self.calendar_url}integration/")

        self.assert_response_success(response)
        self.assertFalse(response.data['enabled'])
        self.assertIsNone(response.data['provider'])
        self.assertFalse(response.data['has_credentials'])

    def test_cannot_enable_before_connecting(self):
        response = self.user_client.put(f"{self.calendar_url}integration/", {'enabled': True}, format='json')
        self.assert_validation_error(response, 'enabled')

    def test_update_settings(self):
        response = self.user_client.put(f"{self.calendar_url}integration/", {
            'exclude_event_types': ['Lunch', 'Focus'],
            'make_unavailable_during_events': False,
            'sync_frequency': 30,
        }, format='json')

        self.assert_response_success(response)
        integration = CalendarIntegration.objects.get(user=self.regular_user)
        self.assertEqual(integration.exclude_event_types, ['Lunch', 'Focus'])
        self.assertFalse(integration.make_unavailable_during_events)
        self.assertEqual(integration.sync_frequency, 30)

    def test_requires_authentication(self):
        response = self.client.get(f"{self.calendar_url}integration/")
        self.assert_response_error(response, status.HTTP_401_UNAUTHORIZED)


class ConnectTests(CalendarAPITestCase):

    def test_connect_ical_queues_sync(self):
        response = self.user_client.post(
            f"{self.calendar_url}ical/connect/", {'ical_url': 'https://example.com/jane.ics'}, format='json'
        )

        self.assert_response_success(response)
        self.assertTrue(response.data['enabled'])
        self.assertEqual(response.data['provider'], 'ical')
        self.sync_task.delay.assert_called_once_with(str(self.regular_user.id))

    def test_connect_caldav_hides_password(self):
        response = self.user_client.post(f"{self.calendar_url}caldav/connect/", {
            'caldav_url': 'https://caldav.icloud.com/',
            'username': 'jane@icloud.com',
            'password': 'app-specific-password',
            'provider': 'apple',
        }, format='json')

        self.assert_response_success(response)
        self.assertEqual(response.data['provider'], 'apple')
        self.assertTrue(response.data['has_credentials'])
        self.assertNotIn('password', response.data)
        self.assertNotIn('caldav_password', response.data)
        self.assertEqual(
            CalendarIntegration.objects.get(user=self.regular_user).caldav_password, 'app-specific-password'
        )

    @mock.patch('core.management_api.calendar_api.views.GoogleOAuthService.get_authorization_url')
    def test_google_auth_url(self, get_url):
        get_url.return_value = 'https://accounts.google.com/o/oauth2/auth?state=abc'

        response = self.user_client.get(f"{self.calendar_url}google/auth-url/")

        self.assert_response_success(response)
        self.assertEqual(response.data['authorization_url'], 'https://accounts.google.com/o/oauth2/auth?state=abc')
        get_url.assert_called_once_with(state=response.data['state'])

    @mock.patch('core.services.calendar_sync.GoogleOAuthService.exchange_code_for_tokens')
    def test_google_connect(self, exchange):
        exchange.return_value = {
            'access_token': 'ya29.token',
            'refresh_token': 'refresh',
            'expires_at': timezone.now() + timedelta(hours=1),
        }

        response = self.user_client.post(f"{self.calendar_url}google/connect/", {'code': 'auth-code'}, format='json')

        self.assert_response_success(response)
        self.assertEqual(response.data['provider'], 'google')
        self.assertEqual(CalendarIntegration.objects.get(user=self.regular_user).refresh_token, 'refresh')
        self.sync_task.delay.assert_called_once()

    @mock.patch('core.services.calendar_sync.GoogleOAuthService.exchange_code_for_tokens')
    def test_google_connect_bad_code(self, exchange):
        exchange.side_effect = ValueError('invalid_grant')

        response = self.user_client.post(f"{self.calendar_url}google/connect/", {'code': 'stale'}, format='json')

        self.assert_response_error(response, status.HTTP_400_BAD_REQUEST)
        self.assertIn('invalid_grant', response.data['error'])
        self.sync_task.delay.assert_not_called()

    @mock.patch('core.services.calendar_sync.calendly_user_uri')
    def test_calendly_invalid_key(self, user_uri):
        user_uri.side_effect = CalendarSyncError('Invalid Calendly API key: 401')
        response = self.user_client.post(f"{self.calendar_url}calendly/connect/", {'api_key': 'nope'}, format='json')
        self.assert_response_error(response, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(CalendarIntegration.objects.get(user=self.regular_user).enabled)

    def test_disconnect_clears_credentials_and_events(self):
        self.enable_ical()
        now = timezone.now()
        self.create_calendar_event(self.regular_user, now, now + timedelta(hours=1), enable_integration=False)

        response = self.user_client.post(f"{self.calendar_url}disconnect/")

        self.assert_response_success(response)
        self.assertFalse(response.data['enabled'])
        self.assertIsNone(response.data['provider'])
        self.assertFalse(CalendarEvent.objects.filter(user=self.regular_user).exists())


class EventsTests(CalendarAPITestCase):

    def setUp(self):
        super().setUp()
        now = timezone.now()
        self.upcoming = self.create_calendar_event(
            self.regular_user, now + timedelta(hours=1), now + timedelta(hours=2), event_id='upcoming', title='Review',
        )
        self.past = self.create_calendar_event(
            self.regular_user, now - timedelta(days=1), now - timedelta(days=1) + timedelta(hours=1), event_id='past',
        )

    def test_lists_upcoming_events_by_default(self):
        response = self.user_client.get(f"{self.calendar_url}events/")
        self.assert_response_success(response)
        self.assertEqual([e['event_id'] for e in response.data], ['upcoming'])

    def test_start_after_filter_includes_past_events(self):
        start = (timezone.now() - timedelta(days=2)).isoformat()
        response = self.user_client.get(f"{self.calendar_url}events/", {'start_after': start})
        self.assertEqual([e['event_id'] for e in response.data], ['past', 'upcoming'])

    def test_other_users_events_hidden(self):
        response = self.staff_client.get(f"{self.calendar_url}events/")
        self.assertEqual(response.data, [])

    def test_update_event_override(self):
        response = self.user_client.patch(
            f"{self.calendar_url}events/upcoming/", {'make_unavailable': False}, format='json'
        )

        self.assert_response_success(response)
        self.upcoming.refresh_from_db()
        self.assertFalse(self.upcoming.make_unavailable)

    def test_update_unknown_event(self):
        response = self.user_client.patch(
            f"{self.calendar_url}events/missing/", {'make_unavailable': False}, format='json'
        )
        self.assert_response_error(response, status.HTTP_404_NOT_FOUND)


class ManualSyncTests(CalendarAPITestCase):

    def test_sync_requires_enabled_integration(self):
        response = self.user_client.post(f"{self.calendar_url}sync/")
        self.assert_response_error(response, status.HTTP_400_BAD_REQUEST)

    @mock.patch('core.tasks.process_availability_change')
    @mock.patch('core.services.calendar_sync.is_available', side_effect=[True, False])
    @mock.patch('core.services.calendar_sync.fetch_events')
    def test_sync_stores_events_and_fires_availability_change(self, fetch_events, is_available, process_change):
        self.enable_ical()
        now = timezone.now()
        fetch_events.return_value = [
            CalendarEventData('a', 'Client call', now - timedelta(minutes=5), now + timedelta(minutes=25)),
            CalendarEventData('b', 'Lunch', now + timedelta(hours=2), now + timedelta(hours=3)),
        ]

        response = self.user_client.post(f"{self.calendar_url}sync/")

        self.assert_response_success(response)
        self.assertEqual(response.data, {
            'synced': 2, 'excluded': 0, 'availability_changed': True, 'is_available': False,
        })
        self.assertEqual(CalendarEvent.objects.filter(user=self.regular_user).count(), 2)
        process_change.delay.assert_called_once_with(str(self.regular_user.id), False)

    @mock.patch('core.services.calendar_sync.fetch_events')
    def test_provider_failure_is_bad_gateway(self, fetch_events):
        self.enable_ical()
        fetch_events.side_effect = CalendarSyncError('Failed to fetch iCal events: 500 Server Error')

        response = self.user_client.post(f"{self.calendar_url}sync/")

        self.assert_response_error(response, status.HTTP_502_BAD_GATEWAY)
        integration = CalendarIntegration.objects.get(user=self.regular_user)
        self.assertIn('500 Server Error', integration.last_sync_error)
