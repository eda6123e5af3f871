"""
Tests for User Management API endpoints.
Covers profile CRUD, weekly availability, live status, voicemail greeting
and number assignment.
"""
from unittest import mock

from django.test import override_settings
from rest_framework import status

from core.models import AvailabilityDay, User
from core.telephony.services.telnyx_client import TelnyxError
from core.tests.base import BaseAPITestCase, TELNYX_NUMBER


class UserAPITestCase(BaseAPITestCase):
    """Test cases for User API endpoints"""

    def setUp(self):
        super().setUp()
        self.users_url = f"{self.base_url}/users/"
        self.user_url = f"{self.users_url}{self.regular_user.id}/"

    # ========== LIST / RETRIEVE ==========

    def test_list_users_as_staff(self):
        response = self.staff_client.get(self.users_url)
        self.assert_response_success(response)
        self.assert_pagination_response(response)
        self.assertEqual(response.data['count'], 2)

    def test_list_users_as_regular_user_only_self(self):
        response = self.user_client.get(self.users_url)
        self.assert_response_success(response)
        self.assertEqual(response.data['count'], 1)
        self.assertEqual(response.data['results'][0]['email'], 'test@test.com')

    def test_list_users_unauthenticated(self):
        response = self.client.get(self.users_url)
        self.assert_response_error(response, status.HTTP_401_UNAUTHORIZED)

    def test_regular_user_cannot_see_other_user(self):
        response = self.user_client.get(f"{self.users_url}{self.staff_user.id}/")
        self.assert_response_error(response, status.HTTP_404_NOT_FOUND)

    def test_me(self):
        response = self.user_client.get(f"{self.users_url}me/")
        self.assert_response_success(response)
        self.assertEqual(response.data['telnyx_phone_number'], TELNYX_NUMBER)
        self.assertIsNone(response.data['calendar_provider'])

    # ========== CREATE / UPDATE / DELETE ==========

    def test_create_user_as_staff(self):
        response = self.staff_client.post(self.users_url, {
            'email': 'new@test.com',
            'password': 'newpass123',
            'name': 'New Person',
            'phone_number': '+15550007777',
        }, format='json')
        self.assert_response_success(response, status.HTTP_201_CREATED)
        user = User.objects.get(email='new@test.com')
        self.assertTrue(user.check_password('newpass123'))
        self.assertNotIn('password', response.data)

    def test_create_user_as_regular_user_forbidden(self):
        response = self.user_client.post(self.users_url, {
            'email': 'new@test.com', 'password': 'newpass123', 'name': 'New Person',
        }, format='json')
        self.assert_response_error(response, status.HTTP_403_FORBIDDEN)

    def test_live_agent_requires_number(self):
        response = self.user_client.patch(self.user_url, {'route_to_live_agent': True}, format='json')
        self.assert_validation_error(response, 'live_agent_number')

        response = self.user_client.patch(
            self.user_url, {'route_to_live_agent': True, 'live_agent_number': '+15550002000'}, format='json'
        )
        self.assert_response_success(response)
        self.assertTrue(response.data['route_to_live_agent'])

    def test_telnyx_binding_not_editable_by_profile_update(self):
        response = self.user_client.patch(self.user_url, {'telnyx_phone_number': '+15550000000'}, format='json')
        self.assert_response_success(response)
        self.regular_user.refresh_from_db()
        self.assertEqual(self.regular_user.telnyx_phone_number, TELNYX_NUMBER)

    def test_only_staff_delete(self):
        response = self.user_client.delete(self.user_url)
        self.assert_response_error(response, status.HTTP_403_FORBIDDEN)

        response = self.staff_client.delete(self.user_url)
        self.assert_response_success(response, status.HTTP_204_NO_CONTENT)
        self.assertFalse(User.objects.filter(pk=self.regular_user.pk).exists())


class AvailabilityAPITestCase(BaseAPITestCase):

    def setUp(self):
        super().setUp()
        self.url = f"{self.base_url}/users/{self.regular_user.id}/availability/"

    def test_get_schedule(self):
        self.set_schedule(self.regular_user)
        response = self.user_client.get(self.url)
        self.assert_response_success(response)
        self.assertEqual(len(response.data), 7)

    @mock.patch('core.tasks.process_availability_change')
    def test_put_schedule_updates_days(self, process_change):
        response = self.user_client.put(self.url, {'availability': [
            {'day': 'monday', 'is_available': True, 'start_time': '08:00', 'end_time': '12:00'},
            {'day': 'sunday', 'is_available': False, 'start_time': '09:00', 'end_time': '17:00'},
        ]}, format='json')

        self.assert_response_success(response)
        monday = AvailabilityDay.objects.get(user=self.regular_user, day='monday')
        self.assertEqual((monday.start_time, monday.end_time), ('08:00', '12:00'))
        sunday = AvailabilityDay.objects.get(user=self.regular_user, day='sunday')
        self.assertFalse(sunday.is_available)
        self.assertEqual(AvailabilityDay.objects.filter(user=self.regular_user).count(), 7)

    def test_invalid_time_format(self):
        response = self.user_client.put(self.url, {'availability': [
            {'day': 'monday', 'is_available': True, 'start_time': '8am', 'end_time': '17:00'},
        ]}, format='json')
        self.assert_validation_error(response, 'availability')

    def test_duplicate_days_rejected(self):
        entry = {'day': 'monday', 'is_available': True, 'start_time': '09:00', 'end_time': '17:00'}
        response = self.user_client.put(self.url, {'availability': [entry, entry]}, format='json')
        self.assert_validation_error(response, 'availability')

    @mock.patch('core.tasks.process_availability_change')
    @mock.patch('core.management_api.user_api.views.is_available', side_effect=[True, False])
    def test_flip_enqueues_availability_automations(self, is_available, process_change):
        response = self.user_client.put(self.url, {'availability': [
            {'day': 'monday', 'is_available': False, 'start_time': '09:00', 'end_time': '17:00'},
        ]}, format='json')

        self.assert_response_success(response)
        process_change.delay.assert_called_once_with(str(self.regular_user.id), False)

    @mock.patch('core.tasks.process_availability_change')
    @mock.patch('core.management_api.user_api.views.is_available', return_value=True)
    def test_no_flip_no_automations(self, is_available, process_change):
        self.user_client.put(self.url, {'availability': [
            {'day': 'monday', 'is_available': True, 'start_time': '09:00', 'end_time': '17:00'},
        ]}, format='json')
        process_change.delay.assert_not_called()

    @mock.patch('core.management_api.user_api.views.is_available', return_value=False)
    def test_live_status(self, is_available):
        response = self.user_client.get(f"{self.base_url}/users/{self.regular_user.id}/status/")
        self.assert_response_success(response)
        self.assertFalse(response.data['is_available'])
        self.assertIn('checked_at', response.data)


@override_settings(VOICEMAIL_GREETING_BASE_URL='https://audio.example.com/')
class GreetingAPITestCase(BaseAPITestCase):

    def setUp(self):
        super().setUp()
        self.user_url = f"{self.base_url}/users/{self.regular_user.id}/"

    def test_update_greeting_text(self):
        response = self.user_client.put(
            f"{self.user_url}voicemail-greeting/", {'greeting': 'Jane here, leave a message'}, format='json'
        )
        self.assert_response_success(response)
        self.assertEqual(response.data['voicemail_greeting'], 'Jane here, leave a message')

    def test_greeting_url_default_and_custom(self):
        url = f"{self.user_url}greeting-url/"

        response = self.user_client.get(url)
        self.assert_response_success(response)
        self.assertTrue(response.data['is_default'])
        self.assertEqual(response.data['greeting_url'], 'https://audio.example.com/Jane%20Voicemail.mp3')

        response = self.user_client.put(url, {'greeting_url': 'https://cdn.example.com/jane.mp3'}, format='json')
        self.assert_response_success(response)
        self.assertFalse(response.data['is_default'])
        self.assertEqual(response.data['greeting_url'], 'https://cdn.example.com/jane.mp3')

        response = self.user_client.put(url, {'use_default': True}, format='json')
        self.assertTrue(response.data['is_default'])

    def test_greeting_url_requires_value(self):
        response = self.user_client.put(f"{self.user_url}greeting-url/", {}, format='json')
        self.assert_response_error(response, status.HTTP_400_BAD_REQUEST)


class AssignNumberAPITestCase(BaseAPITestCase):

    def setUp(self):
        super().setUp()
        self.other = self.create_user('other@test.com', name='Other Person')
        self.url = f"{self.base_url}/users/{self.other.id}/assign-number/"

    def test_assign_owned_number(self):
        response = self.staff_client.post(self.url, {'phone_number': '+15550005000', 'phone_id': 'pn-5'}, format='json')
        self.assert_response_success(response)
        self.other.refresh_from_db()
        self.assertEqual(self.other.telnyx_phone_number, '+15550005000')
        self.assertEqual(self.other.telnyx_phone_id, 'pn-5')

    @mock.patch('core.services.phone_assignment.TelnyxClient')
    def test_assign_without_id_purchases_first(self, client_cls):
        client_cls.return_value.purchase_number.return_value = {
            'order_id': 'order-1', 'id': 'pn-new', 'phone_number': '+15550006000', 'status': 'pending',
        }

        response = self.staff_client.post(self.url, {'phone_number': '+15550006000'}, format='json')

        self.assert_response_success(response)
        client_cls.return_value.purchase_number.assert_called_once_with('+15550006000')
        self.assertEqual(response.data['telnyx_phone_id'], 'pn-new')

    @mock.patch('core.services.phone_assignment.TelnyxClient')
    def test_purchase_failure_is_bad_gateway(self, client_cls):
        client_cls.return_value.purchase_number.side_effect = TelnyxError('Telnyx API error (422): not available', 422)
        response = self.staff_client.post(self.url, {'phone_number': '+15550006000'}, format='json')
        self.assert_response_error(response, status.HTTP_502_BAD_GATEWAY)

    def test_number_taken_by_other_user(self):
        response = self.staff_client.post(self.url, {'phone_number': TELNYX_NUMBER, 'phone_id': 'pn-1'}, format='json')
        self.assert_response_error(response, status.HTTP_400_BAD_REQUEST)
        self.assertIn('already assigned', response.data['error'])

    def test_regular_user_cannot_assign(self):
        own_url = f"{self.base_url}/users/{self.regular_user.id}/assign-number/"
        response = self.user_client.post(own_url, {'phone_number': '+15550005000', 'phone_id': 'pn-5'}, format='json')
        self.assert_response_error(response, status.HTTP_403_FORBIDDEN)
