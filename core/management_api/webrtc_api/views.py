import logging

from django.shortcuts import get_object_or_404
from drf_spectacular.utils import extend_schema, OpenApiResponse, OpenApiExample
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from core.models import User
from core.services import webrtc_credentials
from core.services.webrtc_credentials import WebRTCCredentialError
from core.telephony.services.telnyx_client import TelnyxError
from .permissions import CanManageWebRTCUser
from .serializers import (
    DeviceTokenSerializer, SipCredentialsSerializer, TargetUserSerializer, WebRTCStatusSerializer,
)

logger = logging.getLogger(__name__)

CREDENTIALS_RESPONSE = OpenApiResponse(
    response=SipCredentialsSerializer,
    description="✅ SIP credentials for the WebRTC client",
    examples=[OpenApiExample('New credential', value={
        'credential_id': 'c215ade3-0d39-418e-94be-c5f780760199',
        'username': 'gencrednCvHU5IYpSBPPsXI2iQsDX',
        'password': 'a92dbcfb60184a8cb330b0acb2f7617b',
        'sip_uri': 'sip.telnyx.com',
        'ws_uri': 'wss://rtc.telnyx.com',
    })]
)


class WebRTCViewSet(viewsets.GenericViewSet):
    """
    🎧 **WebRTC softphone setup**

    Every endpoint acts on the caller unless ``user_id`` names another user,
    which only staff may do.
    """
    queryset = User.objects.all()
    permission_classes = [CanManageWebRTCUser]

    def _target_user(self, request, data):
        serializer = TargetUserSerializer(data=data)
        serializer.is_valid(raise_exception=True)
        user_id = serializer.validated_data.get('user_id')
        user = get_object_or_404(User, pk=user_id or request.user.pk)
        self.check_object_permissions(request, user)
        return user

    def _credential_call(self, description, func, *args):
        try:
            return func(*args), None
        except WebRTCCredentialError as e:
            return None, Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)
        except TelnyxError as e:
            logger.error(f"Failed to {description}: {e}")
            return None, Response({'error': f'Failed to {description}: {e}'}, status=status.HTTP_502_BAD_GATEWAY)

    @extend_schema(
        summary="🎧 Issue or remove SIP credentials",
        description="""
        **POST** creates the user's telephony credential, or describes the
        existing one. The password is only returned when the credential is new.

        **DELETE** removes the credential at Telnyx and disables WebRTC.
        """,
        request=TargetUserSerializer,
        responses={
            200: CREDENTIALS_RESPONSE,
            204: OpenApiResponse(description="🗑️ Credentials deleted"),
            400: OpenApiResponse(description="❌ User has no SIP credentials"),
            403: OpenApiResponse(description="🚫 Not your account"),
            502: OpenApiResponse(description="💥 Telnyx request failed"),
        },
        tags=["WebRTC"]
    )
    @action(detail=False, methods=['post', 'delete'])
    def credentials(self, request):
        if request.method == 'DELETE':
            user = self._target_user(request, request.data or request.query_params)
            _, error = self._credential_call('delete SIP credentials', webrtc_credentials.delete_credentials, user)
            return error or Response(status=status.HTTP_204_NO_CONTENT)

        user = self._target_user(request, request.data)
        credentials, error = self._credential_call(
            'generate SIP credentials', webrtc_credentials.generate_credentials, user
        )
        return error or Response(credentials)

    @extend_schema(
        summary="🔁 Reset SIP credentials",
        description="Replaces the credential with a new one and returns the new password.",
        request=TargetUserSerializer,
        responses={200: CREDENTIALS_RESPONSE, 400: OpenApiResponse(description="❌ User has no SIP credentials")},
        tags=["WebRTC"]
    )
    @action(detail=False, methods=['post'], url_path='credentials/reset')
    def reset_credentials(self, request):
        user = self._target_user(request, request.data)
        credentials, error = self._credential_call(
            'reset SIP credentials', webrtc_credentials.reset_credentials, user
        )
        return error or Response(credentials)

    @extend_schema(
        summary="🎟️ Get a WebRTC connection token",
        request=TargetUserSerializer,
        responses={
            200: OpenApiResponse(
                description="✅ Short-lived login token for the WebRTC SDK",
                examples=[OpenApiExample('Token', value={'token': 'eyJhbGciOiJIUzUxMiIsInR5cCI6IkpXVCJ9...'})]
            ),
            400: OpenApiResponse(description="❌ User has no SIP credentials"),
        },
        tags=["WebRTC"]
    )
    @action(detail=False, methods=['post'])
    def token(self, request):
        user = self._target_user(request, request.data)
        token, error = self._credential_call('generate WebRTC token', webrtc_credentials.connection_token, user)
        return error or Response({'token': token})

    @extend_schema(
        summary="📋 WebRTC status of a user",
        responses={200: WebRTCStatusSerializer},
        tags=["WebRTC"]
    )
    @action(detail=False, methods=['get'], url_path=r'status/(?P<user_id>[^/.]+)')
    def webrtc_status(self, request, user_id=None):
        user = self._target_user(request, {'user_id': user_id})
        return Response(webrtc_credentials.webrtc_status(user))

    @extend_schema(
        summary="📱 Register push device token",
        request=DeviceTokenSerializer,
        responses={200: OpenApiResponse(description="✅ Device token registered")},
        tags=["WebRTC"]
    )
    @action(detail=False, methods=['post'], url_path='device-token')
    def device_token(self, request):
        serializer = DeviceTokenSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user = self._target_user(request, request.data)
        user.device_token = serializer.validated_data['device_token']
        user.save(update_fields=['device_token', 'updated_at'])
        return Response({'message': 'Device token registered successfully'})
