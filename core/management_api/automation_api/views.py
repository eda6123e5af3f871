import logging
import re

from django.db.models import Q
from django_filters.rest_framework import DjangoFilterBackend
from drf_spectacular.utils import extend_schema, extend_schema_view, OpenApiResponse, OpenApiExample
from rest_framework import viewsets, status, filters
from rest_framework.decorators import action
from rest_framework.response import Response

from core.models import ScheduledActionStatus, SmsAutomation, SmsTemplate
from core.services.sms_automation import SmsAutomationService
from core.services.sms_template_service import TEMPLATE_VARIABLES, sms_template_service
from .serializers import (
    SmsTemplateSerializer, TemplatePreviewSerializer, TemplateVariableSerializer,
    SmsAutomationSerializer, SmsAutomationStatsSerializer, AutomationTestSerializer,
)
from .filters import SmsTemplateFilter, SmsAutomationFilter
from .permissions import SmsTemplatePermission, SmsAutomationPermission

logger = logging.getLogger(__name__)


def _apply_variables(content, variables):
    """Substitute caller-supplied {{ name }} values, tolerating inner whitespace."""
    for name, value in (variables or {}).items():
        pattern = r'\{\{\s*' + re.escape(name) + r'\s*\}\}'
        content = re.sub(pattern, lambda _: value, content)
    return content


@extend_schema_view(
    list=extend_schema(
        summary="📝 List SMS templates",
        description="Your own templates plus the global ones. Staff see every template.",
        responses={200: OpenApiResponse(response=SmsTemplateSerializer(many=True), description="✅ Templates retrieved")},
        tags=["SMS Automation"]
    ),
    create=extend_schema(
        summary="➕ Create SMS template",
        description="""
        Create a template with `{{variable}}` placeholders (see `variables/`).

        **📝 Limits**:
        - `content` up to 1600 characters
        - Only staff can set `is_global`
        """,
        responses={
            201: OpenApiResponse(response=SmsTemplateSerializer, description="✅ Template created"),
            400: OpenApiResponse(description="❌ Validation error"),
        },
        tags=["SMS Automation"]
    ),
    retrieve=extend_schema(summary="🔍 Get SMS template", tags=["SMS Automation"]),
    update=extend_schema(summary="✏️ Update SMS template", tags=["SMS Automation"]),
    partial_update=extend_schema(summary="✏️ Partially update SMS template", tags=["SMS Automation"]),
    destroy=extend_schema(summary="🗑️ Delete SMS template", tags=["SMS Automation"]),
)
class SmsTemplateViewSet(viewsets.ModelViewSet):
    serializer_class = SmsTemplateSerializer
    permission_classes = [SmsTemplatePermission]
    filter_backends = [DjangoFilterBackend, filters.SearchFilter, filters.OrderingFilter]
    filterset_class = SmsTemplateFilter
    search_fields = ['name', 'content']
    ordering_fields = ['name', 'updated_at', 'created_at']
    ordering = ['-updated_at']

    def get_queryset(self):
        user = self.request.user
        if user.is_staff:
            return SmsTemplate.objects.all()
        return SmsTemplate.objects.filter(Q(user=user) | Q(is_global=True))

    def perform_create(self, serializer):
        if serializer.validated_data.get('is_global'):
            serializer.save(user=None)
        else:
            serializer.save(user=self.request.user)

    @extend_schema(
        summary="👁️ Preview template",
        description="""
        Render a stored template (`template_id`) or ad-hoc `content`.

        Built-in variables are filled from the current user and the optional
        sample `context`; `variables` overrides individual placeholders.
        Unknown placeholders are left as they are.
        """,
        request=TemplatePreviewSerializer,
        responses={
            200: OpenApiResponse(
                description="✅ Rendered preview",
                examples=[OpenApiExample('Preview', value={
                    'original': 'Hi, {{user.firstName}} will call you back at {{time}}',
                    'rendered': 'Hi, Jane will call you back at 2:15:00 PM',
                })]
            ),
            404: OpenApiResponse(description="🚫 Template not found"),
        },
        tags=["SMS Automation"]
    )
    @action(detail=False, methods=['post'])
    def preview(self, request):
        serializer = TemplatePreviewSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        if data.get('template_id'):
            template = self.get_queryset().filter(pk=data['template_id']).first()
            if template is None:
                return Response({'error': 'Template not found'}, status=status.HTTP_404_NOT_FOUND)
            content = template.content
        else:
            content = data['content']

        rendered = _apply_variables(content, data['variables'])
        rendered = sms_template_service.render(rendered, request.user, data['context'])
        return Response({'original': content, 'rendered': rendered})

    @extend_schema(
        summary="📚 List template variables",
        responses={200: OpenApiResponse(response=TemplateVariableSerializer(many=True), description="✅ Supported placeholders")},
        tags=["SMS Automation"]
    )
    @action(detail=False, methods=['get'])
    def variables(self, request):
        return Response(TEMPLATE_VARIABLES)


@extend_schema_view(
    list=extend_schema(
        summary="🤖 List automation rules",
        responses={200: OpenApiResponse(response=SmsAutomationSerializer(many=True), description="✅ Rules retrieved")},
        tags=["SMS Automation"]
    ),
    create=extend_schema(
        summary="➕ Create automation rule",
        description="""
        Create a rule listening on `phone_number` (defaults to your Telnyx number).

        **🎯 Conditions** (any one matching triggers the rule):
        - `incomingCall`, `missedCall`, `voicemail`, `incomingSms`
        - `keywordSms` with `keywords`
        - `scheduledTime` with `time` (HH:MM) and `daysOfWeek`
        - `availability` with `availabilityStatus` (available / unavailable / any)

        **⚡ Actions** (run in order, optionally delayed with `delay: {value, unit}`):
        - `sendSms` with `template` or `message`
        - `notify` with `notifyMethod` (email / app / sms) and `notifyUsers`
        """,
        responses={
            201: OpenApiResponse(response=SmsAutomationSerializer, description="✅ Rule created"),
            400: OpenApiResponse(description="❌ Invalid conditions or actions"),
        },
        tags=["SMS Automation"]
    ),
    retrieve=extend_schema(summary="🔍 Get automation rule", tags=["SMS Automation"]),
    update=extend_schema(summary="✏️ Update automation rule", tags=["SMS Automation"]),
    partial_update=extend_schema(summary="✏️ Partially update automation rule", tags=["SMS Automation"]),
    destroy=extend_schema(summary="🗑️ Delete automation rule", tags=["SMS Automation"]),
)
class SmsAutomationViewSet(viewsets.ModelViewSet):
    serializer_class = SmsAutomationSerializer
    permission_classes = [SmsAutomationPermission]
    filter_backends = [DjangoFilterBackend, filters.SearchFilter, filters.OrderingFilter]
    filterset_class = SmsAutomationFilter
    search_fields = ['name', 'description']
    ordering_fields = ['name', 'updated_at', 'times_triggered', 'last_triggered']
    ordering = ['-updated_at']

    def get_queryset(self):
        queryset = SmsAutomation.objects.select_related('user')
        if self.request.user.is_staff:
            return queryset
        return queryset.filter(user=self.request.user)

    def perform_create(self, serializer):
        serializer.save(user=self.request.user)

    @extend_schema(
        summary="⏯️ Toggle automation rule",
        description="Flip `is_active`. Delayed actions of a deactivated rule are skipped when they come due.",
        request=None,
        responses={200: OpenApiResponse(response=SmsAutomationSerializer, description="✅ Rule toggled")},
        tags=["SMS Automation"]
    )
    @action(detail=True, methods=['post'])
    def toggle(self, request, pk=None):
        automation = self.get_object()
        automation.is_active = not automation.is_active
        automation.save(update_fields=['is_active', 'updated_at'])
        logger.info(
            f"🤖 Automation {'activated' if automation.is_active else 'deactivated'}",
            extra={'automation_id': str(automation.id)},
        )
        return Response(SmsAutomationSerializer(automation, context={'request': request}).data)

    @extend_schema(
        summary="📊 Automation statistics",
        description="Trigger count and per-action outcome counts. A trigger may run several actions.",
        responses={200: OpenApiResponse(response=SmsAutomationStatsSerializer, description="✅ Statistics")},
        tags=["SMS Automation"]
    )
    @action(detail=True, methods=['get'])
    def stats(self, request, pk=None):
        automation = self.get_object()
        outcomes = automation.success_count + automation.error_count
        return Response({
            'times_triggered': automation.times_triggered,
            'last_triggered': automation.last_triggered,
            'success_count': automation.success_count,
            'error_count': automation.error_count,
            'success_rate': round(automation.success_count / outcomes * 100, 1) if outcomes else 0.0,
            'pending_actions': automation.scheduled_actions.filter(status=ScheduledActionStatus.PENDING).count(),
        })

    @extend_schema(
        summary="🧪 Test automation rule",
        description="""
        Evaluate the rule against a sample event. Nothing is sent and the
        statistics are not touched.
        """,
        request=AutomationTestSerializer,
        responses={
            200: OpenApiResponse(
                description="✅ Dry run result",
                examples=[OpenApiExample('Keyword match', value={
                    'matched': True,
                    'actions': [{'type': 'sendSms', 'message': 'You have been unsubscribed.'}],
                })]
            ),
        },
        tags=["SMS Automation"]
    )
    @action(detail=True, methods=['post'])
    def test(self, request, pk=None):
        automation = self.get_object()
        serializer = AutomationTestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        event = dict(serializer.validated_data)
        event['from'] = event.pop('from_number', '')
        return Response(SmsAutomationService().dry_run(automation, event))
