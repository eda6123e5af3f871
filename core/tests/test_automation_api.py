"""
Tests for SMS templates and automation rules management.
"""
from datetime import timedelta

from django.utils import timezone
from rest_framework import status

from core.models import ScheduledAction, SmsAutomation, SmsTemplate
from core.tests.base import BaseAPITestCase, CALLER, TELNYX_NUMBER


class SmsTemplateAPITestCase(BaseAPITestCase):

    def setUp(self):
        super().setUp()
        self.templates_url = f"{self.base_url}/automations/templates/"

    def test_create_template(self):
        response = self.user_client.post(self.templates_url, {
            'name': 'Away', 'content': 'Hi, {{user.firstName}} is away', 'tags': ['away'],
        }, format='json')

        self.assert_response_success(response, status.HTTP_201_CREATED)
        template = SmsTemplate.objects.get(name='Away')
        self.assertEqual(template.user, self.regular_user)
        self.assertTrue(response.data['is_owner'])

    def test_content_length_limit(self):
        response = self.user_client.post(self.templates_url, {'name': 'Long', 'content': 'x' * 1601}, format='json')
        self.assert_validation_error(response, 'content')

    def test_only_staff_create_global_templates(self):
        payload = {'name': 'Global', 'content': 'Hello from all of us', 'is_global': True}

        response = self.user_client.post(self.templates_url, payload, format='json')
        self.assert_validation_error(response, 'is_global')

        response = self.staff_client.post(self.templates_url, payload, format='json')
        self.assert_response_success(response, status.HTTP_201_CREATED)
        self.assertIsNone(SmsTemplate.objects.get(name='Global').user)

    def test_users_see_own_and_global_templates(self):
        self.create_template(self.regular_user, 'mine', name='Mine')
        self.create_template(None, 'shared', name='Shared', is_global=True)
        self.create_template(self.create_user('other@test.com'), 'theirs', name='Theirs')

        response = self.user_client.get(self.templates_url)

        self.assert_response_success(response)
        names = sorted(t['name'] for t in response.data['results'])
        self.assertEqual(names, ['Mine', 'Shared'])

    def test_global_template_is_read_only_for_users(self):
        shared = self.create_template(None, 'shared', name='Shared', is_global=True)
        response = self.user_client.patch(f"{self.templates_url}{shared.id}/", {'content': 'changed'}, format='json')
        self.assert_response_error(response, status.HTTP_403_FORBIDDEN)

    def test_preview_applies_variables_then_builtins(self):
        response = self.user_client.post(f"{self.templates_url}preview/", {
            'content': 'Hi {{ customer }}, {{user.firstName}} got your text from {{sender}}. {{unknown}}',
            'variables': {'customer': 'Alex'},
            'context': {'from': CALLER},
        }, format='json')

        self.assert_response_success(response)
        self.assertEqual(response.data['rendered'], f'Hi Alex, Jane got your text from {CALLER}. {{{{unknown}}}}')
        self.assertIn('{{ customer }}', response.data['original'])

    def test_preview_stored_template(self):
        template = self.create_template(self.regular_user, 'Thanks from {{user.name}}')
        response = self.user_client.post(f"{self.templates_url}preview/", {'template_id': str(template.id)}, format='json')
        self.assert_response_success(response)
        self.assertEqual(response.data['rendered'], 'Thanks from Jane Doe')

    def test_preview_of_invisible_template_is_not_found(self):
        template = self.create_template(self.create_user('other@test.com'), 'secret')
        response = self.user_client.post(f"{self.templates_url}preview/", {'template_id': str(template.id)}, format='json')
        self.assert_response_error(response, status.HTTP_404_NOT_FOUND)

    def test_preview_needs_content_or_template(self):
        response = self.user_client.post(f"{self.templates_url}preview/", {}, format='json')
        self.assert_response_error(response, status.HTTP_400_BAD_REQUEST)

    def test_variables_listing(self):
        response = self.user_client.get(f"{self.templates_url}variables/")
        self.assert_response_success(response)
        names = [v['name'] for v in response.data]
        self.assertIn('{{user.firstName}}', names)
        self.assertIn('{{message}}', names)


class SmsAutomationAPITestCase(BaseAPITestCase):

    def setUp(self):
        super().setUp()
        self.rules_url = f"{self.base_url}/automations/rules/"

    def rule_payload(self, conditions=None, actions=None, **fields):
        payload = {
            'name': 'Unsubscribe',
            'conditions': conditions or [{'type': 'keywordSms', 'parameters': {'keywords': ['STOP']}}],
            'actions': actions or [{'type': 'sendSms', 'parameters': {'message': 'You have been unsubscribed.'}}],
        }
        payload.update(fields)
        return payload

    def test_create_rule_defaults_to_users_number(self):
        response = self.user_client.post(self.rules_url, self.rule_payload(), format='json')

        self.assert_response_success(response, status.HTTP_201_CREATED)
        automation = SmsAutomation.objects.get()
        self.assertEqual(automation.phone_number, TELNYX_NUMBER)
        self.assertEqual(automation.user, self.regular_user)
        self.assertTrue(automation.is_active)

    def test_rule_without_any_number(self):
        response = self.staff_client.post(self.rules_url, self.rule_payload(), format='json')
        self.assert_validation_error(response, 'phone_number')

    def test_invalid_rules_are_rejected(self):
        cases = [
            ('conditions', [{'type': 'onFire', 'parameters': {}}], None),
            ('conditions', [{'type': 'keywordSms', 'parameters': {'keywords': []}}], None),
            ('conditions', [{'type': 'scheduledTime', 'parameters': {'time': '25:00', 'daysOfWeek': ['monday']}}], None),
            ('conditions', [{'type': 'scheduledTime', 'parameters': {'time': '09:00', 'daysOfWeek': ['someday']}}], None),
            ('conditions', [{'type': 'availability', 'parameters': {'availabilityStatus': 'maybe'}}], None),
            ('actions', None, [{'type': 'dance', 'parameters': {}}]),
            ('actions', None, [{'type': 'sendSms', 'parameters': {}}]),
            ('actions', None, [{'type': 'notify', 'parameters': {'notifyMethod': 'pigeon'}}]),
            ('actions', None, [{'type': 'sendSms', 'parameters': {'message': 'x', 'delay': {'value': 5, 'unit': 'weeks'}}}]),
            ('actions', None, [{'type': 'sendSms', 'parameters': {'message': 'x', 'delay': {'value': 'soon'}}}]),
        ]
        for field, conditions, actions in cases:
            with self.subTest(field=field, conditions=conditions, actions=actions):
                response = self.user_client.post(self.rules_url, self.rule_payload(conditions, actions), format='json')
                self.assert_validation_error(response, field)
        self.assertFalse(SmsAutomation.objects.exists())

    def test_send_sms_template_must_be_visible(self):
        foreign = self.create_template(self.create_user('other@test.com'), 'theirs')
        own = self.create_template(self.regular_user, 'mine')

        response = self.user_client.post(self.rules_url, self.rule_payload(
            actions=[{'type': 'sendSms', 'parameters': {'template': str(foreign.id)}}]
        ), format='json')
        self.assert_validation_error(response, 'actions')

        response = self.user_client.post(self.rules_url, self.rule_payload(
            actions=[{'type': 'sendSms', 'parameters': {'template': str(own.id)}}]
        ), format='json')
        self.assert_response_success(response, status.HTTP_201_CREATED)

    def test_users_only_see_their_rules(self):
        self.create_automation(self.regular_user, [], [], name='Mine')
        self.create_automation(self.staff_user, [], [], name='Staff rule', phone_number='+15550009999')

        response = self.user_client.get(self.rules_url)
        self.assertEqual([r['name'] for r in response.data['results']], ['Mine'])

        response = self.staff_client.get(self.rules_url)
        self.assertEqual(response.data['count'], 2)

    def test_toggle(self):
        automation = self.create_automation(self.regular_user, [], [])

        response = self.user_client.post(f"{self.rules_url}{automation.id}/toggle/")
        self.assert_response_success(response)
        self.assertFalse(response.data['is_active'])

        response = self.user_client.post(f"{self.rules_url}{automation.id}/toggle/")
        self.assertTrue(response.data['is_active'])

    def test_stats(self):
        automation = self.create_automation(
            self.regular_user, [], [], times_triggered=4, success_count=3, error_count=1,
        )
        ScheduledAction.objects.create(
            automation=automation, action={'type': 'sendSms', 'parameters': {'message': 'later'}},
            due_at=timezone.now() + timedelta(hours=1),
        )

        response = self.user_client.get(f"{self.rules_url}{automation.id}/stats/")

        self.assert_response_success(response)
        self.assertEqual(response.data['times_triggered'], 4)
        self.assertEqual(response.data['success_rate'], 75.0)
        self.assertEqual(response.data['pending_actions'], 1)

    def test_stats_without_outcomes(self):
        automation = self.create_automation(self.regular_user, [], [])
        response = self.user_client.get(f"{self.rules_url}{automation.id}/stats/")
        self.assertEqual(response.data['success_rate'], 0.0)

    def test_dry_run(self):
        template = self.create_template(self.regular_user, '{{user.firstName}} got {{message}}')
        automation = self.create_automation(
            self.regular_user,
            [{'type': 'keywordSms', 'parameters': {'keywords': ['stop']}}],
            [{'type': 'sendSms', 'parameters': {
                'template': str(template.id), 'delay': {'value': 2, 'unit': 'minutes'},
            }}],
        )

        response = self.user_client.post(
            f"{self.rules_url}{automation.id}/test/", {'type': 'keywordSms', 'text': 'Please STOP', 'from': CALLER},
            format='json',
        )

        self.assert_response_success(response)
        self.assertTrue(response.data['matched'])
        self.assertEqual(response.data['actions'], [
            {'type': 'sendSms', 'delay_seconds': 120, 'message': 'Jane got Please STOP'},
        ])
        automation.refresh_from_db()
        self.assertEqual(automation.times_triggered, 0)

    def test_dry_run_no_match(self):
        automation = self.create_automation(
            self.regular_user, [{'type': 'missedCall', 'parameters': {}}],
            [{'type': 'sendSms', 'parameters': {'message': 'Sorry'}}],
        )
        response = self.user_client.post(
            f"{self.rules_url}{automation.id}/test/", {'type': 'incomingCall'}, format='json'
        )
        self.assertFalse(response.data['matched'])

    def test_other_users_rule_is_hidden(self):
        automation = self.create_automation(self.staff_user, [], [], phone_number='+15550009999')
        response = self.user_client.delete(f"{self.rules_url}{automation.id}/")
        self.assert_response_error(response, status.HTTP_404_NOT_FOUND)
