import logging
import secrets

from django.utils import timezone
from django_filters.rest_framework import DjangoFilterBackend
from drf_spectacular.utils import extend_schema, OpenApiResponse, OpenApiExample
from rest_framework import viewsets, status
from rest_framework.decorators import action
from rest_framework.response import Response

from core.models import CalendarEvent
from core.services.calendar_provider import CalendarSyncError
from core.services.calendar_sync import CalendarSyncService
from core.services.google_calendar import GoogleOAuthService
from core.services.microsoft_calendar import MicrosoftOAuthService
from .serializers import (
    CalendarIntegrationSerializer, CalendarEventSerializer, CalendarEventUpdateSerializer,
    AuthUrlResponseSerializer, OAuthConnectSerializer, MicrosoftConnectSerializer,
    IcalConnectSerializer, CaldavConnectSerializer, CalendlyConnectSerializer, SyncResultSerializer,
)
from .filters import CalendarEventFilter
from .permissions import CalendarPermission

logger = logging.getLogger(__name__)

CONNECT_RESPONSES = {
    200: OpenApiResponse(response=CalendarIntegrationSerializer, description="✅ Calendar connected, first sync queued"),
    400: OpenApiResponse(
        description="❌ Provider rejected the credentials",
        examples=[OpenApiExample('Bad code', value={'error': 'Failed to connect Google Calendar: invalid_grant'})]
    ),
}


class CalendarViewSet(viewsets.ViewSet):
    """
    📅 **Calendar integration of the current user**

    Events synced from the connected provider mark the user unavailable
    while they run (unless disabled per event or globally).
    """
    permission_classes = [CalendarPermission]
    filterset_class = CalendarEventFilter
    service_class = CalendarSyncService

    def _service(self):
        return self.service_class()

    def _connected(self, request, integration):
        from core.tasks import sync_user_calendar

        sync_user_calendar.delay(str(request.user.id))
        logger.info(
            f"📅 Connected {integration.provider} calendar",
            extra={'user_id': str(request.user.id), 'provider': integration.provider},
        )
        return Response(CalendarIntegrationSerializer(integration).data)

    @extend_schema(
        methods=['GET'],
        summary="📅 Get calendar integration",
        responses={200: OpenApiResponse(response=CalendarIntegrationSerializer, description="✅ Integration settings")},
        tags=["Calendar"]
    )
    @extend_schema(
        methods=['PUT'],
        summary="⚙️ Update calendar settings",
        description="""
        Adjust sync behaviour.

        **⚙️ Settings**:
        - `sync_frequency`: minutes between syncs (5-1440)
        - `make_unavailable_during_events`: master switch for event blocking
        - `exclude_event_types`: title keywords ignored during sync
        - `enabled`: pause or resume syncing
        """,
        request=CalendarIntegrationSerializer,
        responses={
            200: OpenApiResponse(response=CalendarIntegrationSerializer, description="✅ Settings updated"),
            400: OpenApiResponse(description="❌ Validation error"),
        },
        tags=["Calendar"]
    )
    @action(detail=False, methods=['get', 'put'])
    def integration(self, request):
        integration = self._service().get_integration(request.user)
        if request.method == 'GET':
            return Response(CalendarIntegrationSerializer(integration).data)

        serializer = CalendarIntegrationSerializer(integration, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        serializer.save()
        return Response(serializer.data)

    @extend_schema(
        summary="🔗 Google OAuth authorization URL",
        description="Redirect the user to `authorization_url`, then POST the returned `code` to `google/connect/`.",
        responses={200: OpenApiResponse(response=AuthUrlResponseSerializer, description="✅ Authorization URL")},
        tags=["Calendar"]
    )
    @action(detail=False, methods=['get'], url_path='google/auth-url')
    def google_auth_url(self, request):
        state = secrets.token_urlsafe(32)
        return Response({
            'authorization_url': GoogleOAuthService.get_authorization_url(state=state),
            'state': state,
        })

    @extend_schema(
        summary="🔗 Connect Google Calendar",
        request=OAuthConnectSerializer,
        responses=CONNECT_RESPONSES,
        tags=["Calendar"]
    )
    @action(detail=False, methods=['post'], url_path='google/connect')
    def google_connect(self, request):
        serializer = OAuthConnectSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            integration = self._service().connect_google(request.user, serializer.validated_data['code'])
        except CalendarSyncError as e:
            return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)
        return self._connected(request, integration)

    @extend_schema(
        summary="🔗 Microsoft OAuth authorization URL",
        responses={200: OpenApiResponse(response=AuthUrlResponseSerializer, description="✅ Authorization URL")},
        tags=["Calendar"]
    )
    @action(detail=False, methods=['get'], url_path='microsoft/auth-url')
    def microsoft_auth_url(self, request):
        state = secrets.token_urlsafe(32)
        return Response({
            'authorization_url': MicrosoftOAuthService.build_authorize_url(state=state),
            'state': state,
        })

    @extend_schema(
        summary="🔗 Connect Microsoft 365 / Outlook",
        request=MicrosoftConnectSerializer,
        responses=CONNECT_RESPONSES,
        tags=["Calendar"]
    )
    @action(detail=False, methods=['post'], url_path='microsoft/connect')
    def microsoft_connect(self, request):
        serializer = MicrosoftConnectSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            integration = self._service().connect_microsoft(
                request.user, serializer.validated_data['code'], provider=serializer.validated_data['provider']
            )
        except CalendarSyncError as e:
            return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)
        return self._connected(request, integration)

    @extend_schema(
        summary="🔗 Connect iCal feed",
        request=IcalConnectSerializer,
        responses=CONNECT_RESPONSES,
        tags=["Calendar"]
    )
    @action(detail=False, methods=['post'], url_path='ical/connect')
    def ical_connect(self, request):
        serializer = IcalConnectSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        integration = self._service().connect_ical(request.user, serializer.validated_data['ical_url'])
        return self._connected(request, integration)

    @extend_schema(
        summary="🔗 Connect CalDAV / Apple calendar",
        request=CaldavConnectSerializer,
        responses=CONNECT_RESPONSES,
        tags=["Calendar"]
    )
    @action(detail=False, methods=['post'], url_path='caldav/connect')
    def caldav_connect(self, request):
        serializer = CaldavConnectSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        integration = self._service().connect_caldav(
            request.user, data['caldav_url'], data['username'], data['password'], provider=data['provider']
        )
        return self._connected(request, integration)

    @extend_schema(
        summary="🔗 Connect Calendly",
        description="The personal access token is verified against Calendly before it is stored.",
        request=CalendlyConnectSerializer,
        responses=CONNECT_RESPONSES,
        tags=["Calendar"]
    )
    @action(detail=False, methods=['post'], url_path='calendly/connect')
    def calendly_connect(self, request):
        serializer = CalendlyConnectSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            integration = self._service().connect_calendly(request.user, serializer.validated_data['api_key'])
        except CalendarSyncError as e:
            return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)
        return self._connected(request, integration)

    @extend_schema(
        summary="🗓️ List synced events",
        description="Cached events from the last sync; filter with `start_after` / `end_before`.",
        responses={200: OpenApiResponse(response=CalendarEventSerializer(many=True), description="✅ Events")},
        tags=["Calendar"]
    )
    @action(detail=False, methods=['get'])
    def events(self, request):
        queryset = CalendarEvent.objects.filter(user=request.user)
        if 'start_after' not in request.query_params:
            queryset = queryset.filter(end_time__gte=timezone.now())
        queryset = DjangoFilterBackend().filter_queryset(request, queryset, self)
        return Response(CalendarEventSerializer(queryset, many=True).data)

    @extend_schema(
        summary="✏️ Update event settings",
        description="Override one synced event, e.g. `make_unavailable=false` to stay reachable during it. Overrides survive re-syncs.",
        request=CalendarEventUpdateSerializer,
        responses={
            200: OpenApiResponse(response=CalendarEventSerializer, description="✅ Event updated"),
            404: OpenApiResponse(description="🚫 Event not found"),
        },
        tags=["Calendar"]
    )
    @action(detail=False, methods=['patch'], url_path=r'events/(?P<event_id>[^/]+)')
    def update_event(self, request, event_id=None):
        serializer = CalendarEventUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        event = self._service().update_event_settings(request.user, event_id, **serializer.validated_data)
        if event is None:
            return Response({'error': 'Event not found'}, status=status.HTTP_404_NOT_FOUND)
        return Response(CalendarEventSerializer(event).data)

    @extend_schema(
        summary="🔄 Sync calendar now",
        request=None,
        responses={
            200: OpenApiResponse(response=SyncResultSerializer, description="✅ Sync finished"),
            400: OpenApiResponse(description="❌ No calendar connected"),
            502: OpenApiResponse(description="❌ Provider request failed"),
        },
        tags=["Calendar"]
    )
    @action(detail=False, methods=['post'])
    def sync(self, request):
        from core.tasks import process_availability_change

        service = self._service()
        integration = service.get_integration(request.user)
        if not integration.enabled or not integration.provider:
            return Response(
                {'error': 'Calendar integration not enabled for this user'},
                status=status.HTTP_400_BAD_REQUEST
            )

        try:
            result = service.sync_user_calendar(request.user)
        except CalendarSyncError as e:
            return Response({'error': str(e)}, status=status.HTTP_502_BAD_GATEWAY)

        if result['availability_changed']:
            process_availability_change.delay(str(request.user.id), result['is_available'])
        return Response(result)

    @extend_schema(
        summary="🔌 Disconnect calendar",
        description="Remove stored credentials and all cached events.",
        request=None,
        responses={200: OpenApiResponse(response=CalendarIntegrationSerializer, description="✅ Disconnected")},
        tags=["Calendar"]
    )
    @action(detail=False, methods=['post', 'delete'])
    def disconnect(self, request):
        integration = self._service().disconnect_calendar(request.user)
        logger.info("🔌 Calendar disconnected", extra={'user_id': str(request.user.id)})
        return Response(CalendarIntegrationSerializer(integration).data)
