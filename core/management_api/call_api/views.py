import logging

from django.utils import timezone
from django_filters.rest_framework import DjangoFilterBackend
from drf_spectacular.utils import extend_schema, extend_schema_view, OpenApiResponse, OpenApiExample
from rest_framework import mixins, viewsets, status, filters
from rest_framework.decorators import action
from rest_framework.response import Response

from core.models import Call, CallDirection, CallStatus
from core.telephony.services.telnyx_client import TelnyxClient, TelnyxError
from .serializers import CallSerializer, CallNotesSerializer, OutboundCallSerializer
from .filters import CallFilter
from .permissions import CallPermission

logger = logging.getLogger(__name__)


@extend_schema_view(
    list=extend_schema(
        summary="📱 List calls",
        description="""
        Call history for the current user (staff see every user's calls).

        **🔍 Filtering Options**:
        - `direction`, `status`
        - `start_time_after`, `start_time_before`, `date`
        - `search` across numbers and notes
        """,
        responses={
            200: OpenApiResponse(
                response=CallSerializer(many=True),
                description="✅ Calls retrieved",
                examples=[
                    OpenApiExample(
                        'Call list',
                        value={
                            'count': 1,
                            'results': [{
                                'id': 'call-uuid',
                                'direction': 'inbound',
                                'from_number': '+15551234567',
                                'to_number': '+15557654321',
                                'status': 'voicemail',
                                'duration': 42,
                                'duration_formatted': '0m 42s',
                            }]
                        }
                    )
                ]
            ),
            401: OpenApiResponse(description="🚫 Authentication required"),
        },
        tags=["Calls"]
    ),
    retrieve=extend_schema(
        summary="🔍 Get call details",
        responses={
            200: OpenApiResponse(response=CallSerializer, description="✅ Call retrieved"),
            404: OpenApiResponse(description="🚫 Call not found"),
        },
        tags=["Calls"]
    ),
    partial_update=extend_schema(
        summary="📝 Update call notes",
        request=CallNotesSerializer,
        responses={200: OpenApiResponse(response=CallSerializer, description="✅ Notes updated")},
        tags=["Calls"]
    ),
)
class CallViewSet(mixins.ListModelMixin,
                  mixins.RetrieveModelMixin,
                  mixins.UpdateModelMixin,
                  viewsets.GenericViewSet):
    """Call history; only notes are editable"""
    serializer_class = CallSerializer
    permission_classes = [CallPermission]
    filter_backends = [DjangoFilterBackend, filters.SearchFilter, filters.OrderingFilter]
    filterset_class = CallFilter
    search_fields = ['from_number', 'to_number', 'notes']
    ordering_fields = ['start_time', 'duration', 'status']
    ordering = ['-start_time']
    http_method_names = ['get', 'post', 'patch', 'head', 'options']

    def get_queryset(self):
        queryset = Call.objects.select_related('voicemail')
        if self.request.user.is_staff:
            return queryset
        return queryset.filter(user=self.request.user)

    def partial_update(self, request, *args, **kwargs):
        call = self.get_object()
        serializer = CallNotesSerializer(call, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        serializer.save()
        return Response(CallSerializer(call).data)

    @extend_schema(
        summary="📞 Make outbound call",
        description="""
        Dial `to` from the current user's Telnyx number and record an outbound call.

        **📋 Requirements**:
        - The user must have a Telnyx number assigned
        """,
        request=OutboundCallSerializer,
        responses={
            201: OpenApiResponse(response=CallSerializer, description="✅ Call initiated"),
            400: OpenApiResponse(description="❌ No Telnyx number assigned or invalid destination"),
            502: OpenApiResponse(description="❌ Telnyx rejected the call"),
        },
        tags=["Calls"]
    )
    @action(detail=False, methods=['post'])
    def outbound(self, request):
        serializer = OutboundCallSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        to = serializer.validated_data['to']

        user = request.user
        if not user.telnyx_phone_number:
            return Response(
                {'error': 'User does not have a Telnyx phone number assigned'},
                status=status.HTTP_400_BAD_REQUEST
            )

        try:
            call_data = TelnyxClient().dial(user.telnyx_phone_number, to)
        except TelnyxError as e:
            logger.error(f"Failed to initiate call: {e}", extra={'user_id': str(user.id)})
            return Response({'error': f'Failed to initiate call: {e}'}, status=status.HTTP_502_BAD_GATEWAY)

        call_control_id = (call_data or {}).get('call_control_id')
        if not call_control_id:
            return Response(
                {'error': 'Failed to initiate call: Telnyx returned no call_control_id'},
                status=status.HTTP_502_BAD_GATEWAY
            )

        call = Call.objects.create(
            user=user,
            external_call_id=call_control_id,
            direction=CallDirection.OUTBOUND,
            from_number=user.telnyx_phone_number,
            to_number=to,
            status=CallStatus.INITIATED,
            start_time=timezone.now(),
        )
        logger.info(f"📞 Outbound call to {to}", extra={'user_id': str(user.id), 'call_id': str(call.id)})
        return Response(CallSerializer(call).data, status=status.HTTP_201_CREATED)
