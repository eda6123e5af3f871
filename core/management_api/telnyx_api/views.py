import logging

from drf_spectacular.utils import extend_schema, OpenApiResponse, OpenApiExample
from rest_framework import viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from core.models import TelnyxAccount
from core.management_api.phone_number_api.permissions import IsStaffUser
from core.telephony.services.telnyx_client import TelnyxClient, TelnyxConfig, TelnyxError
from .serializers import (
    TelnyxConfigSerializer, ApiKeySerializer, WebhookUrlSerializer, MessagingProfileSerializer,
)

logger = logging.getLogger(__name__)


def config_payload(config: TelnyxConfig):
    return {
        'api_key_set': bool(config.api_key),
        'api_key_summary': config.masked_api_key,
        'webhook_url': config.webhook_url or '',
        'messaging_profile_id': config.messaging_profile_id or '',
        'connection_id': config.connection_id or '',
        'base_url': config.base_url,
    }


CONFIG_RESPONSE = OpenApiResponse(
    response=TelnyxConfigSerializer,
    description="✅ Effective configuration",
    examples=[OpenApiExample('Config', value={
        'api_key_set': True,
        'api_key_summary': 'KEY0****************1a2b',
        'webhook_url': 'https://switchboard.example.com/api/webhooks/telnyx/',
        'messaging_profile_id': '400178b1-...',
        'connection_id': '1494404757140276705',
        'base_url': 'https://api.telnyx.com/v2',
    })]
)


class TelnyxSettingsViewSet(viewsets.ViewSet):
    """
    🔧 **Telnyx account settings (staff only)**

    Values saved here override the environment. Clients built afterwards
    pick them up; a client already in use keeps its own snapshot.
    """
    permission_classes = [IsStaffUser]

    def _update(self, request, field, value):
        account = TelnyxAccount.load()
        setattr(account, field, value)
        account.save(update_fields=[field, 'updated_at'])
        logger.info(f"🔧 Telnyx {field} updated by {request.user.email}")
        return Response(config_payload(TelnyxConfig.from_settings()))

    @extend_schema(summary="🔧 Get Telnyx configuration", responses={200: CONFIG_RESPONSE}, tags=["Telnyx"])
    @action(detail=False, methods=['get'])
    def config(self, request):
        return Response(config_payload(TelnyxConfig.from_settings()))

    @extend_schema(summary="🔑 Set Telnyx API key", request=ApiKeySerializer, responses={200: CONFIG_RESPONSE}, tags=["Telnyx"])
    @action(detail=False, methods=['put'], url_path='api-key')
    def api_key(self, request):
        serializer = ApiKeySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        return self._update(request, 'api_key', serializer.validated_data['api_key'])

    @extend_schema(summary="🪝 Set webhook URL", request=WebhookUrlSerializer, responses={200: CONFIG_RESPONSE}, tags=["Telnyx"])
    @action(detail=False, methods=['put'], url_path='webhook-url')
    def webhook_url(self, request):
        serializer = WebhookUrlSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        return self._update(request, 'webhook_url', serializer.validated_data['webhook_url'])

    @extend_schema(summary="💬 Set messaging profile", request=MessagingProfileSerializer, responses={200: CONFIG_RESPONSE}, tags=["Telnyx"])
    @action(detail=False, methods=['put'], url_path='messaging-profile')
    def messaging_profile(self, request):
        serializer = MessagingProfileSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        return self._update(request, 'messaging_profile_id', serializer.validated_data['messaging_profile_id'])

    @extend_schema(
        summary="🧪 Test Telnyx connection",
        description="Performs one authenticated request (account balance) with the effective credentials.",
        responses={
            200: OpenApiResponse(
                description="✅ Result of the connection test",
                examples=[
                    OpenApiExample('Success', value={'success': True, 'message': 'Telnyx API connection successful', 'balance': '12.50', 'currency': 'USD'}),
                    OpenApiExample('Failure', value={'success': False, 'message': 'Telnyx API connection failed', 'error': 'Authentication failed', 'status_code': 401}),
                ]
            ),
        },
        tags=["Telnyx"]
    )
    @action(detail=False, methods=['get'], url_path='test-connection')
    def test_connection(self, request):
        try:
            balance = TelnyxClient().get_balance() or {}
        except TelnyxError as e:
            logger.warning(f"Telnyx connection test failed: {e}")
            return Response({
                'success': False,
                'message': 'Telnyx API connection failed',
                'error': str(e),
                'status_code': e.status_code,
            })
        return Response({
            'success': True,
            'message': 'Telnyx API connection successful',
            'balance': balance.get('balance'),
            'currency': balance.get('currency'),
        })
