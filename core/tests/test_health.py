from django.test import TestCase


class HealthCheckTests(TestCase):

    def test_health_ok(self):
        response = self.client.get('/health/')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {'status': 'ok', 'database': 'ok'})

    def test_health_rejects_post(self):
        response = self.client.post('/health/')
        self.assertEqual(response.status_code, 405)

    def test_api_root_is_public(self):
        response = self.client.get('/api/')
        self.assertEqual(response.status_code, 200)
        self.assertIn('webhooks', response.json()['endpoints'])
