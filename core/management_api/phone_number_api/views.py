import logging

from drf_spectacular.utils import extend_schema, OpenApiResponse, OpenApiExample, OpenApiParameter
from rest_framework import viewsets, status
from rest_framework.decorators import action
from rest_framework.response import Response

from core.models import User
from core.services.phone_assignment import PhoneAssignmentError, assign_number_to_user, unassign_number
from core.telephony.services.telnyx_client import TelnyxClient, TelnyxError
from core.management_api.user_api.serializers import UserSerializer
from .serializers import (
    AvailableNumberQuerySerializer, PhoneNumberListQuerySerializer, PurchaseNumberSerializer,
    AssignNumberSerializer, UpdateNumberSerializer,
)
from .permissions import IsStaffUser

logger = logging.getLogger(__name__)


def telnyx_error_response(message, error):
    """Map a Telnyx failure onto an API response; 404 passes through, the rest is a bad gateway."""
    code = status.HTTP_404_NOT_FOUND if error.status_code == 404 else status.HTTP_502_BAD_GATEWAY
    return Response({'error': f'{message}: {error}', 'telnyx_status': error.status_code}, status=code)


class PhoneNumberViewSet(viewsets.ViewSet):
    """
    ☎️ **Telnyx number inventory (staff only)**

    Thin wrapper over the Telnyx number APIs plus binding numbers to users.
    """
    permission_classes = [IsStaffUser]
    lookup_field = 'phone_id'
    lookup_value_regex = '[^/]+'

    def _client(self):
        return TelnyxClient()

    @extend_schema(
        summary="🔎 Search available numbers",
        parameters=[
            OpenApiParameter('country_code', str, description="ISO country code (default US)"),
            OpenApiParameter('area_code', str, description="National destination code"),
            OpenApiParameter('limit', int, description="Maximum results (1-100)"),
        ],
        responses={200: OpenApiResponse(description="✅ Numbers that can be ordered")},
        tags=["Phone Numbers"]
    )
    @action(detail=False, methods=['get'])
    def available(self, request):
        query = AvailableNumberQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        try:
            numbers = self._client().search_available_numbers(
                country_code=query.validated_data['country_code'],
                area_code=query.validated_data.get('area_code'),
                limit=query.validated_data['limit'],
            )
        except TelnyxError as e:
            return telnyx_error_response('Failed to search phone numbers', e)
        return Response({'count': len(numbers), 'results': numbers})

    @extend_schema(
        summary="📋 List account numbers",
        parameters=[
            OpenApiParameter('page', int),
            OpenApiParameter('page_size', int),
            OpenApiParameter('status', str, description="Telnyx number status filter (default active)"),
        ],
        responses={200: OpenApiResponse(description="✅ Numbers owned by the Telnyx account, with their assigned user")},
        tags=["Phone Numbers"]
    )
    def list(self, request):
        query = PhoneNumberListQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        try:
            numbers = self._client().list_numbers(
                page=query.validated_data['page'],
                page_size=query.validated_data['page_size'],
                status=query.validated_data['status'] or None,
            )
        except TelnyxError as e:
            return telnyx_error_response('Failed to list phone numbers', e)

        owners = dict(
            User.objects.filter(telnyx_phone_id__in=[n.get('id') for n in numbers])
            .values_list('telnyx_phone_id', 'email')
        )
        for number in numbers:
            number['assigned_to'] = owners.get(number.get('id'))
        return Response({'count': len(numbers), 'results': numbers})

    @extend_schema(
        summary="🔍 Get number details",
        responses={
            200: OpenApiResponse(description="✅ Telnyx number resource"),
            404: OpenApiResponse(description="🚫 Unknown number ID"),
        },
        tags=["Phone Numbers"]
    )
    def retrieve(self, request, phone_id=None):
        try:
            number = self._client().get_number(phone_id)
        except TelnyxError as e:
            return telnyx_error_response('Failed to get phone number', e)
        owner = User.objects.filter(telnyx_phone_id=phone_id).values_list('email', flat=True).first()
        return Response({**(number or {}), 'assigned_to': owner})

    @extend_schema(
        summary="🛒 Purchase number",
        request=PurchaseNumberSerializer,
        responses={
            201: OpenApiResponse(
                description="✅ Number ordered",
                examples=[OpenApiExample('Order', value={
                    'order_id': 'order-uuid', 'id': 'number-id', 'phone_number': '+15551234567', 'status': 'pending',
                })]
            ),
            502: OpenApiResponse(description="❌ Telnyx rejected the order"),
        },
        tags=["Phone Numbers"]
    )
    def create(self, request):
        serializer = PurchaseNumberSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            ordered = self._client().purchase_number(serializer.validated_data['phone_number'])
        except TelnyxError as e:
            return telnyx_error_response('Failed to purchase phone number', e)
        logger.info(f"🛒 Ordered {ordered.get('phone_number')}", extra={'order_id': ordered.get('order_id')})
        return Response(ordered, status=status.HTTP_201_CREATED)

    @extend_schema(
        summary="📲 Assign number to user",
        description="Without `phone_id` the number is purchased first.",
        request=AssignNumberSerializer,
        responses={
            200: OpenApiResponse(response=UserSerializer, description="✅ Number assigned"),
            400: OpenApiResponse(description="❌ Number already assigned"),
            404: OpenApiResponse(description="🚫 User not found"),
        },
        tags=["Phone Numbers"]
    )
    @action(detail=False, methods=['post'])
    def assign(self, request):
        serializer = AssignNumberSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        user = User.objects.filter(pk=data['user_id']).first()
        if user is None:
            return Response({'error': f"User not found with ID: {data['user_id']}"}, status=status.HTTP_404_NOT_FOUND)

        try:
            user = assign_number_to_user(user, data['phone_number'], phone_id=data.get('phone_id'), client=self._client())
        except PhoneAssignmentError as e:
            return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)
        except TelnyxError as e:
            return telnyx_error_response('Failed to assign phone number', e)
        return Response(UserSerializer(user).data)

    @extend_schema(
        summary="⚙️ Update number settings",
        request=UpdateNumberSerializer,
        responses={200: OpenApiResponse(description="✅ Updated Telnyx number resource")},
        tags=["Phone Numbers"]
    )
    def partial_update(self, request, phone_id=None):
        serializer = UpdateNumberSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            number = self._client().update_number(phone_id, **serializer.validated_data)
        except TelnyxError as e:
            return telnyx_error_response('Failed to update phone number', e)
        return Response(number)

    def update(self, request, phone_id=None):
        return self.partial_update(request, phone_id=phone_id)

    @extend_schema(
        summary="🗑️ Release number",
        description="Release the number back to Telnyx and clear it from its user.",
        responses={
            200: OpenApiResponse(description="✅ Number released"),
            502: OpenApiResponse(description="❌ Telnyx refused the release"),
        },
        tags=["Phone Numbers"]
    )
    def destroy(self, request, phone_id=None):
        try:
            self._client().release_number(phone_id)
        except TelnyxError as e:
            return telnyx_error_response('Failed to release phone number', e)

        previous_owner = unassign_number(phone_id)
        logger.info(f"🗑️ Released number {phone_id}", extra={'phone_id': phone_id})
        return Response({
            'released': phone_id,
            'unassigned_from': previous_owner.email if previous_owner else None,
        })
