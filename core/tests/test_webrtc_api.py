"""
Tests for the WebRTC API: SIP credential lifecycle, connection tokens,
status and push device tokens.
"""
from unittest import mock

from django.test import SimpleTestCase, override_settings
from rest_framework import status

from core.models import User
from core.telephony.services.telnyx_client import TelnyxClient, TelnyxConfig, TelnyxError
from core.tests.base import BaseAPITestCase, TelnyxMockMixin

NEW_CREDENTIAL = {
    'id': 'cred-1',
    'sip_username': 'gencred-jane',
    'sip_password': 's3cret-pass',
    'connection_id': 'test-connection',
}


@override_settings(TELNYX_SIP_CONNECTION_ID='sip-conn-1', TELNYX_SIP_URI='sip.telnyx.com', TELNYX_WS_URI='wss://rtc.telnyx.com')
class WebRTCAPITestCase(TelnyxMockMixin, BaseAPITestCase):

    def setUp(self):
        super().setUp()
        self.url = f"{self.base_url}/webrtc/"
        self.start_telnyx_mock()
        self.telnyx.create_telephony_credential.return_value = dict(NEW_CREDENTIAL)

    def give_credentials(self, user, credential_id='cred-old', username='gencred-old'):
        User.objects.filter(pk=user.pk).update(
            sip_credential_id=credential_id, sip_username=username, webrtc_enabled=True,
        )

    def reload(self, user):
        return User.objects.get(pk=user.pk)


class CredentialsTests(WebRTCAPITestCase):

    def test_generate_new_credentials(self):
        response = self.user_client.post(f"{self.url}credentials/", {}, format='json')

        self.assert_response_success(response)
        self.assertEqual(response.data, {
            'credential_id': 'cred-1',
            'username': 'gencred-jane',
            'password': 's3cret-pass',
            'sip_uri': 'sip.telnyx.com',
            'ws_uri': 'wss://rtc.telnyx.com',
        })
        self.telnyx.create_telephony_credential.assert_called_once_with(
            'sip-conn-1',
            name=f"User-{self.regular_user.id}-Credentials",
            tag=f"user-{self.regular_user.id}",
        )
        user = self.reload(self.regular_user)
        self.assertEqual(user.sip_credential_id, 'cred-1')
        self.assertEqual(user.sip_username, 'gencred-jane')
        self.assertTrue(user.webrtc_enabled)

    def test_existing_credentials_are_described_without_password(self):
        self.give_credentials(self.regular_user)
        self.telnyx.get_telephony_credential.return_value = {'id': 'cred-old', 'sip_username': 'gencred-old'}

        response = self.user_client.post(f"{self.url}credentials/", {}, format='json')

        self.assert_response_success(response)
        self.assertEqual(response.data['credential_id'], 'cred-old')
        self.assertNotIn('password', response.data)
        self.telnyx.create_telephony_credential.assert_not_called()

    def test_staff_can_issue_for_another_user(self):
        response = self.staff_client.post(
            f"{self.url}credentials/", {'user_id': str(self.regular_user.id)}, format='json'
        )
        self.assert_response_success(response)
        self.assertEqual(self.reload(self.regular_user).sip_credential_id, 'cred-1')
        self.assertIsNone(self.reload(self.staff_user).sip_credential_id)

    def test_regular_user_cannot_act_for_someone_else(self):
        response = self.user_client.post(
            f"{self.url}credentials/", {'user_id': str(self.staff_user.id)}, format='json'
        )
        self.assert_response_error(response, status.HTTP_403_FORBIDDEN)
        self.telnyx.create_telephony_credential.assert_not_called()

    def test_unknown_user(self):
        response = self.staff_client.post(
            f"{self.url}credentials/", {'user_id': '00000000-0000-0000-0000-000000000000'}, format='json'
        )
        self.assert_response_error(response, status.HTTP_404_NOT_FOUND)

    def test_invalid_user_id(self):
        response = self.staff_client.post(f"{self.url}credentials/", {'user_id': 'nope'}, format='json')
        self.assert_validation_error(response, 'user_id')

    def test_unauthenticated(self):
        response = self.client.post(f"{self.url}credentials/", {}, format='json')
        self.assert_response_error(response, status.HTTP_401_UNAUTHORIZED)

    def test_telnyx_failure_is_bad_gateway(self):
        self.telnyx.create_telephony_credential.side_effect = TelnyxError('Telnyx API error (422): bad connection', 422)

        response = self.user_client.post(f"{self.url}credentials/", {}, format='json')

        self.assert_response_error(response, status.HTTP_502_BAD_GATEWAY)
        self.assertFalse(self.reload(self.regular_user).webrtc_enabled)

    def test_delete_credentials(self):
        self.give_credentials(self.regular_user)

        response = self.user_client.delete(f"{self.url}credentials/")

        self.assert_response_success(response, status.HTTP_204_NO_CONTENT)
        self.telnyx.delete_telephony_credential.assert_called_once_with('cred-old')
        user = self.reload(self.regular_user)
        self.assertIsNone(user.sip_credential_id)
        self.assertIsNone(user.sip_username)
        self.assertFalse(user.webrtc_enabled)

    def test_delete_without_credentials(self):
        response = self.user_client.delete(f"{self.url}credentials/")
        self.assert_response_error(response, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'User does not have SIP credentials')

    def test_delete_credential_already_gone_at_telnyx(self):
        self.give_credentials(self.regular_user)
        self.telnyx.delete_telephony_credential.side_effect = TelnyxError('Telnyx API error (404): not found', 404)

        response = self.user_client.delete(f"{self.url}credentials/")

        self.assert_response_success(response, status.HTTP_204_NO_CONTENT)
        self.assertIsNone(self.reload(self.regular_user).sip_credential_id)


class ResetTests(WebRTCAPITestCase):

    def test_reset_replaces_credential(self):
        self.give_credentials(self.regular_user)

        response = self.user_client.post(f"{self.url}credentials/reset/", {}, format='json')

        self.assert_response_success(response)
        self.telnyx.delete_telephony_credential.assert_called_once_with('cred-old')
        self.assertEqual(response.data['password'], 's3cret-pass')
        self.assertEqual(self.reload(self.regular_user).sip_credential_id, 'cred-1')

    def test_reset_without_credentials(self):
        response = self.user_client.post(f"{self.url}credentials/reset/", {}, format='json')
        self.assert_response_error(response, status.HTTP_400_BAD_REQUEST)
        self.telnyx.create_telephony_credential.assert_not_called()

    def test_reset_keeps_old_credential_when_telnyx_fails(self):
        self.give_credentials(self.regular_user)
        self.telnyx.delete_telephony_credential.side_effect = TelnyxError('Telnyx API error (500): oops', 500)

        response = self.user_client.post(f"{self.url}credentials/reset/", {}, format='json')

        self.assert_response_error(response, status.HTTP_502_BAD_GATEWAY)
        self.assertEqual(self.reload(self.regular_user).sip_credential_id, 'cred-old')


class TokenAndStatusTests(WebRTCAPITestCase):

    def test_connection_token(self):
        self.give_credentials(self.regular_user)
        self.telnyx.create_credential_token.return_value = 'eyJhbGciOi.jwt'

        response = self.user_client.post(f"{self.url}token/", {}, format='json')

        self.assert_response_success(response)
        self.assertEqual(response.data, {'token': 'eyJhbGciOi.jwt'})
        self.telnyx.create_credential_token.assert_called_once_with('cred-old')

    def test_token_requires_credentials(self):
        response = self.user_client.post(f"{self.url}token/", {}, format='json')
        self.assert_response_error(response, status.HTTP_400_BAD_REQUEST)

    def test_status(self):
        self.give_credentials(self.regular_user)

        response = self.user_client.get(f"{self.url}status/{self.regular_user.id}/")

        self.assert_response_success(response)
        self.assertEqual(response.data, {
            'webrtc_enabled': True,
            'has_sip_credentials': True,
            'sip_username': 'gencred-old',
        })

    def test_status_of_other_user_is_staff_only(self):
        response = self.user_client.get(f"{self.url}status/{self.staff_user.id}/")
        self.assert_response_error(response, status.HTTP_403_FORBIDDEN)

        response = self.staff_client.get(f"{self.url}status/{self.regular_user.id}/")
        self.assert_response_success(response)
        self.assertFalse(response.data['has_sip_credentials'])

    def test_register_device_token(self):
        response = self.user_client.post(f"{self.url}device-token/", {'device_token': 'apns-123'}, format='json')

        self.assert_response_success(response)
        self.assertEqual(self.reload(self.regular_user).device_token, 'apns-123')

    def test_device_token_required(self):
        response = self.user_client.post(f"{self.url}device-token/", {}, format='json')
        self.assert_validation_error(response, 'device_token')


class CredentialTokenRequestTests(SimpleTestCase):
    """The token endpoint answers with a bare JWT instead of a JSON envelope"""

    def setUp(self):
        self.telnyx_client = TelnyxClient(TelnyxConfig(
            api_key='KEYTEST', webhook_url='', messaging_profile_id='', connection_id='',
        ))

    @mock.patch('core.telephony.services.telnyx_client.requests.request')
    def test_token_is_plain_text(self, request):
        request.return_value = mock.Mock(ok=True, status_code=201, text='eyJhbGciOi.jwt\n', content=b'eyJhbGciOi.jwt\n')

        token = self.telnyx_client.create_credential_token('cred-1')

        self.assertEqual(token, 'eyJhbGciOi.jwt')
        method, url = request.call_args.args
        self.assertEqual((method, url), ('POST', 'https://api.telnyx.com/v2/telephony_credentials/cred-1/token'))

    @mock.patch('core.telephony.services.telnyx_client.requests.request')
    def test_token_error(self, request):
        response = mock.Mock(ok=False, status_code=404, text='', reason='Not Found')
        response.json.return_value = {'errors': [{'detail': 'Resource not found'}]}
        request.return_value = response

        with self.assertRaises(TelnyxError) as ctx:
            self.telnyx_client.create_credential_token('cred-1')
        self.assertEqual(ctx.exception.status_code, 404)
