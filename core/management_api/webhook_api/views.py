import logging

from django.utils.decorators import method_decorator
from django.views.decorators.csrf import csrf_exempt
from drf_spectacular.utils import extend_schema, OpenApiResponse, OpenApiExample
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from core.telephony.events import MalformedEventError, parse_event
from core.telephony.services.webhook_dispatcher import dispatch_event
from .serializers import TelnyxWebhookEnvelopeSerializer, WebhookAckSerializer

logger = logging.getLogger(__name__)


@method_decorator(csrf_exempt, name='dispatch')
class TelnyxWebhookView(APIView):
    """
    Public endpoint for Telnyx call-control and messaging webhooks.

    Telnyx retries anything that is not a 2xx, so the acknowledgement is
    always 200. Problems are logged and echoed as ``error`` instead.
    """
    authentication_classes: list = []
    permission_classes: list = []

    @extend_schema(
        summary="📨 Telnyx webhook",
        description="""
        Receives Telnyx events and acts on them:

        • `call.initiated`: route the incoming call (forward, live agent, voicemail or keypad menu)
        • `call.answered` / `call.hangup`: update the call log, notify on missed calls
        • `call.recording.saved`: store the voicemail and notify the owner
        • `call.gather.ended`: apply the caller's keypad choice
        • `message.received` / `message.finalized`: log the SMS and run automations

        **🔐 Authentication**: none, called by Telnyx.
        """,
        request=TelnyxWebhookEnvelopeSerializer,
        responses={
            200: OpenApiResponse(
                response=WebhookAckSerializer,
                description="✅ Event acknowledged",
                examples=[
                    OpenApiExample('Routed call', value={'received': True, 'action': 'forwarded'}),
                    OpenApiExample('Voicemail saved', value={'received': True, 'voicemail_id': '7b0c3c1e-...'}),
                    OpenApiExample('Malformed body', value={'received': True, 'error': "Webhook body has no 'data' object"}),
                ]
            ),
        },
        tags=["Webhooks"],
        auth=None,
    )
    def post(self, request, *args, **kwargs):
        try:
            event = parse_event(request.data)
        except MalformedEventError as e:
            logger.warning(f"⚠️ Malformed Telnyx webhook: {e}")
            return Response({'received': True, 'error': str(e)}, status=status.HTTP_200_OK)

        try:
            extra = dispatch_event(event)
        except Exception as e:
            logger.exception(
                f"❌ Error handling Telnyx event {event.event_type}",
                extra={'event_type': event.event_type},
            )
            return Response({'received': True, 'error': str(e)}, status=status.HTTP_200_OK)

        return Response({'received': True, **(extra or {})}, status=status.HTTP_200_OK)
