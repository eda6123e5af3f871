import logging

from django.utils import timezone
from django_filters.rest_framework import DjangoFilterBackend
from drf_spectacular.utils import extend_schema, extend_schema_view, OpenApiResponse, OpenApiExample
from rest_framework import viewsets, status, filters
from rest_framework.decorators import action
from rest_framework.response import Response

from core.models import CallDirection, SmsMessage, SmsStatus
from core.services.availability import is_available
from core.telephony.services.telnyx_client import TelnyxClient, TelnyxError
from .serializers import SmsMessageSerializer, SendSmsSerializer
from .filters import SmsMessageFilter
from .permissions import SmsMessagePermission

logger = logging.getLogger(__name__)


@extend_schema_view(
    list=extend_schema(
        summary="💬 List SMS messages",
        description="""
        Inbound and outbound messages of the current user (staff see all).

        **🔍 Filtering Options**:
        - `direction`, `status`
        - `number`: every message exchanged with one counterpart
        - `sent_after`, `sent_before`
        """,
        responses={
            200: OpenApiResponse(response=SmsMessageSerializer(many=True), description="✅ Messages retrieved"),
            401: OpenApiResponse(description="🚫 Authentication required"),
        },
        tags=["SMS"]
    ),
    retrieve=extend_schema(
        summary="🔍 Get SMS message",
        responses={
            200: OpenApiResponse(response=SmsMessageSerializer, description="✅ Message retrieved"),
            404: OpenApiResponse(description="🚫 Message not found"),
        },
        tags=["SMS"]
    ),
)
class SmsMessageViewSet(viewsets.ReadOnlyModelViewSet):
    serializer_class = SmsMessageSerializer
    permission_classes = [SmsMessagePermission]
    filter_backends = [DjangoFilterBackend, filters.SearchFilter, filters.OrderingFilter]
    filterset_class = SmsMessageFilter
    search_fields = ['body', 'from_number', 'to_number']
    ordering_fields = ['sent_at', 'status']
    ordering = ['-sent_at']

    def get_queryset(self):
        if self.request.user.is_staff:
            return SmsMessage.objects.all()
        return SmsMessage.objects.filter(user=self.request.user)

    @extend_schema(
        summary="📤 Send SMS",
        description="""
        Send an SMS/MMS from the current user's Telnyx number.

        **⚠️ Availability**:
        - Refused with 403 while the user is outside their availability
          window or in a calendar event
        """,
        request=SendSmsSerializer,
        responses={
            201: OpenApiResponse(response=SmsMessageSerializer, description="✅ Message sent"),
            400: OpenApiResponse(description="❌ No Telnyx number assigned or invalid input"),
            403: OpenApiResponse(
                description="🚫 User currently unavailable",
                examples=[OpenApiExample('Unavailable', value={
                    'error': 'User is not available to send messages at this time',
                    'is_available': False,
                })]
            ),
            502: OpenApiResponse(description="❌ Telnyx rejected the message"),
        },
        tags=["SMS"]
    )
    @action(detail=False, methods=['post'])
    def send(self, request):
        serializer = SendSmsSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        user = request.user
        if not user.telnyx_phone_number:
            return Response(
                {'error': 'User does not have a Telnyx phone number assigned'},
                status=status.HTTP_400_BAD_REQUEST
            )

        if not is_available(user):
            return Response(
                {'error': 'User is not available to send messages at this time', 'is_available': False},
                status=status.HTTP_403_FORBIDDEN
            )

        try:
            message = TelnyxClient().send_message(
                user.telnyx_phone_number, data['to'], data['body'], media_urls=data['media_urls']
            )
        except TelnyxError as e:
            logger.error(f"Failed to send SMS: {e}", extra={'user_id': str(user.id)})
            return Response({'error': f'Failed to send SMS: {e}'}, status=status.HTTP_502_BAD_GATEWAY)

        sms = SmsMessage.objects.create(
            user=user,
            telnyx_message_id=(message or {}).get('id'),
            direction=CallDirection.OUTBOUND,
            from_number=user.telnyx_phone_number,
            to_number=data['to'],
            body=data['body'],
            status=SmsStatus.SENT,
            sent_at=timezone.now(),
            media_urls=data['media_urls'],
        )
        return Response(SmsMessageSerializer(sms).data, status=status.HTTP_201_CREATED)
