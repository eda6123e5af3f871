import logging

from django.db import transaction
from django.utils import timezone
from django_filters.rest_framework import DjangoFilterBackend
from drf_spectacular.utils import extend_schema, extend_schema_view, OpenApiResponse, OpenApiExample
from rest_framework import viewsets, status, filters
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from core.models import AvailabilityDay, User
from core.services.availability import is_available
from core.services.phone_assignment import PhoneAssignmentError, assign_number_to_user
from core.telephony.services.telnyx_client import TelnyxError
from core.telephony.services.voicemail_recorder import default_greeting_url, greeting_url_for
from .serializers import (
    UserSerializer, UserCreateSerializer, UserUpdateSerializer,
    AvailabilityDaySerializer, AvailabilityUpdateSerializer, UserStatusSerializer,
    VoicemailGreetingSerializer, GreetingUrlSerializer, AssignNumberSerializer,
)
from .filters import UserFilter
from .permissions import UserPermission

logger = logging.getLogger(__name__)


@extend_schema_view(
    list=extend_schema(
        summary="👤 List users",
        description="""
        Retrieve users based on your permission level.

        **🔐 Permission Requirements**:
        - **Regular Users**: Only their own profile is returned
        - **Staff Members**: All users in the system
        """,
        responses={
            200: OpenApiResponse(response=UserSerializer(many=True), description="✅ Users retrieved"),
            401: OpenApiResponse(description="🚫 Authentication required"),
        },
        tags=["User Management"]
    ),
    create=extend_schema(
        summary="➕ Create user",
        description="""
        Create a new account (staff only). A Mon-Fri 09:00-17:00 availability
        schedule and an empty calendar integration are created with it.
        """,
        request=UserCreateSerializer,
        responses={
            201: OpenApiResponse(response=UserSerializer, description="✅ User created"),
            400: OpenApiResponse(description="❌ Validation error"),
            403: OpenApiResponse(description="🚫 Staff access required"),
        },
        tags=["User Management"]
    ),
    retrieve=extend_schema(
        summary="🔍 Get user details",
        responses={
            200: OpenApiResponse(response=UserSerializer, description="✅ User retrieved"),
            404: OpenApiResponse(description="🚫 User not found or access denied"),
        },
        tags=["User Management"]
    ),
    update=extend_schema(
        summary="✏️ Update user",
        request=UserUpdateSerializer,
        responses={200: OpenApiResponse(response=UserSerializer, description="✅ User updated")},
        tags=["User Management"]
    ),
    partial_update=extend_schema(
        summary="✏️ Partially update user",
        request=UserUpdateSerializer,
        responses={200: OpenApiResponse(response=UserSerializer, description="✅ User updated")},
        tags=["User Management"]
    ),
    destroy=extend_schema(
        summary="🗑️ Delete user",
        description="Delete an account together with its calls, messages, voicemails and automations (staff only).",
        responses={
            204: OpenApiResponse(description="✅ User deleted"),
            403: OpenApiResponse(description="🚫 Staff access required"),
        },
        tags=["User Management"]
    ),
)
class UserViewSet(viewsets.ModelViewSet):
    """
    📞 **User Management ViewSet**

    Profiles, weekly availability, voicemail greeting and Telnyx number binding.
    - **👤 Regular Users**: Self-management only
    - **👔 Staff**: Full user administration
    """
    queryset = User.objects.all()
    permission_classes = [UserPermission]
    filter_backends = [DjangoFilterBackend, filters.SearchFilter, filters.OrderingFilter]
    filterset_class = UserFilter
    search_fields = ['email', 'name', 'telnyx_phone_number']
    ordering_fields = ['email', 'name', 'date_joined']
    ordering = ['-date_joined']

    def get_serializer_class(self):
        """Return appropriate serializer based on action"""
        if self.action == 'create':
            return UserCreateSerializer
        elif self.action in ['update', 'partial_update']:
            return UserUpdateSerializer
        return UserSerializer

    def get_queryset(self):
        """Filter queryset based on user permissions"""
        user = self.request.user
        queryset = User.objects.prefetch_related('availability').select_related('calendar_integration')
        if user.is_staff:
            return queryset
        return queryset.filter(id=user.id)

    def create(self, request, *args, **kwargs):
        serializer = UserCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user = serializer.save()
        return Response(UserSerializer(user).data, status=status.HTTP_201_CREATED)

    def update(self, request, *args, **kwargs):
        partial = kwargs.pop('partial', False)
        user = self.get_object()
        serializer = UserUpdateSerializer(user, data=request.data, partial=partial)
        serializer.is_valid(raise_exception=True)
        serializer.save()
        return Response(UserSerializer(user).data)

    @extend_schema(
        summary="👤 Get current user profile",
        responses={200: OpenApiResponse(response=UserSerializer, description="✅ Current user profile")},
        tags=["User Management"]
    )
    @action(detail=False, methods=['get'], permission_classes=[IsAuthenticated])
    def me(self, request):
        """Get current user's profile"""
        return Response(UserSerializer(request.user).data)

    @extend_schema(
        methods=['GET'],
        summary="📅 Get weekly availability",
        responses={200: OpenApiResponse(response=AvailabilityDaySerializer(many=True), description="✅ Schedule")},
        tags=["User Management"]
    )
    @extend_schema(
        methods=['PUT'],
        summary="📅 Update weekly availability",
        description="""
        Replace days of the weekly schedule.

        **⚡ Side effects**:
        - When the user's live availability flips because of the change,
          availability automations on their Telnyx number are fired
        - Windows are HH:MM (24h) and cannot cross midnight
        """,
        request=AvailabilityUpdateSerializer,
        responses={
            200: OpenApiResponse(response=AvailabilityDaySerializer(many=True), description="✅ Schedule updated"),
            400: OpenApiResponse(
                description="❌ Invalid schedule",
                examples=[OpenApiExample('Bad time', value={'availability': [{'start_time': ['Time must be in 24-hour HH:MM format']}]})]
            ),
        },
        tags=["User Management"]
    )
    @action(detail=True, methods=['get', 'put'])
    def availability(self, request, pk=None):
        user = self.get_object()
        if request.method == 'GET':
            days = AvailabilityDay.objects.filter(user=user)
            return Response(AvailabilityDaySerializer(days, many=True).data)

        serializer = AvailabilityUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        was_available = is_available(user)
        with transaction.atomic():
            for entry in serializer.validated_data['availability']:
                AvailabilityDay.objects.update_or_create(
                    user=user,
                    day=entry['day'],
                    defaults={
                        'is_available': entry['is_available'],
                        'start_time': entry['start_time'],
                        'end_time': entry['end_time'],
                    },
                )
        user.refresh_from_db()
        now_available = is_available(user)

        if was_available != now_available:
            from core.tasks import process_availability_change
            process_availability_change.delay(str(user.id), now_available)
            logger.info(
                f"🔄 Availability changed to {'available' if now_available else 'unavailable'}",
                extra={'user_id': str(user.id)},
            )

        days = AvailabilityDay.objects.filter(user=user)
        return Response(AvailabilityDaySerializer(days, many=True).data)

    @extend_schema(
        summary="🟢 Live availability",
        description="Whether calls to this user are forwarded right now (schedule plus calendar events).",
        responses={200: OpenApiResponse(response=UserStatusSerializer, description="✅ Current availability")},
        tags=["User Management"]
    )
    @action(detail=True, methods=['get'], url_path='status')
    def live_status(self, request, pk=None):
        user = self.get_object()
        now = timezone.now()
        return Response({'is_available': is_available(user, now), 'checked_at': now})

    @extend_schema(
        summary="🎙️ Update voicemail greeting text",
        description="Text spoken to callers when the greeting audio cannot be played.",
        request=VoicemailGreetingSerializer,
        responses={200: OpenApiResponse(response=UserSerializer, description="✅ Greeting updated")},
        tags=["User Management"]
    )
    @action(detail=True, methods=['put'], url_path='voicemail-greeting')
    def voicemail_greeting(self, request, pk=None):
        user = self.get_object()
        serializer = VoicemailGreetingSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user.voicemail_greeting = serializer.validated_data['greeting']
        user.save(update_fields=['voicemail_greeting', 'updated_at'])
        return Response(UserSerializer(user).data)

    @extend_schema(
        methods=['GET'],
        summary="🔊 Get voicemail greeting URL",
        responses={200: OpenApiResponse(description="✅ Effective greeting URL and whether it is the default")},
        tags=["User Management"]
    )
    @extend_schema(
        methods=['PUT'],
        summary="🔊 Set voicemail greeting URL",
        description="Set a custom greeting audio URL, or `use_default=true` to go back to the name-based greeting.",
        request=GreetingUrlSerializer,
        responses={
            200: OpenApiResponse(
                description="✅ Greeting URL updated",
                examples=[OpenApiExample('Default greeting', value={
                    'greeting_url': 'https://example.com/greetings/Jane%20Voicemail.mp3',
                    'is_default': True,
                })]
            ),
            400: OpenApiResponse(description="❌ Neither greeting_url nor use_default given"),
        },
        tags=["User Management"]
    )
    @action(detail=True, methods=['get', 'put'], url_path='greeting-url')
    def greeting_url(self, request, pk=None):
        user = self.get_object()
        if request.method == 'PUT':
            serializer = GreetingUrlSerializer(data=request.data)
            serializer.is_valid(raise_exception=True)
            if serializer.validated_data.get('use_default'):
                user.voicemail_greeting_url = None
            else:
                user.voicemail_greeting_url = serializer.validated_data['greeting_url']
            user.save(update_fields=['voicemail_greeting_url', 'updated_at'])

        return Response({
            'greeting_url': greeting_url_for(user),
            'default_greeting_url': default_greeting_url(user),
            'is_default': not user.voicemail_greeting_url,
        })

    @extend_schema(
        summary="📲 Assign Telnyx number",
        description="""
        Bind a Telnyx number to this user (staff only).

        Without `phone_id` the number is purchased from Telnyx first.
        """,
        request=AssignNumberSerializer,
        responses={
            200: OpenApiResponse(response=UserSerializer, description="✅ Number assigned"),
            400: OpenApiResponse(description="❌ Number already assigned to another user"),
            502: OpenApiResponse(description="❌ Telnyx rejected the order"),
        },
        tags=["User Management"]
    )
    @action(detail=True, methods=['post'], url_path='assign-number')
    def assign_number(self, request, pk=None):
        user = self.get_object()
        serializer = AssignNumberSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            user = assign_number_to_user(
                user,
                serializer.validated_data['phone_number'],
                phone_id=serializer.validated_data.get('phone_id'),
            )
        except PhoneAssignmentError as e:
            return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)
        except TelnyxError as e:
            logger.error(f"Failed to assign phone number: {e}", extra={'user_id': str(user.id)})
            return Response({'error': f'Failed to assign phone number: {e}'}, status=status.HTTP_502_BAD_GATEWAY)
        return Response(UserSerializer(user).data)
