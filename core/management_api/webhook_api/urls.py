from django.urls import path
from .views import TelnyxWebhookView

# Mounted at /api/webhooks/
urlpatterns = [
    path('telnyx/', TelnyxWebhookView.as_view(), name='telnyx-webhook'),
    path('telnyx/calls/', TelnyxWebhookView.as_view(), name='telnyx-webhook-calls'),
    path('telnyx/sms/', TelnyxWebhookView.as_view(), name='telnyx-webhook-sms'),
]
