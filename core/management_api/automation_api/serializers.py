import uuid

from django.db.models import Q
from rest_framework import serializers
from drf_spectacular.utils import extend_schema_field

from core.models import (
    ActionType, ConditionType, SmsAutomation, SmsTemplate, hhmm_validator,
)
from core.services.sms_automation import DELAY_UNITS

AVAILABILITY_STATUSES = ['available', 'unavailable', 'any']
NOTIFY_METHODS = ['email', 'app', 'sms']
WEEKDAYS = ['monday', 'tuesday', 'wednesday', 'thursday', 'friday', 'saturday', 'sunday']


class SmsTemplateSerializer(serializers.ModelSerializer):
    """Serializer for SmsTemplate model"""
    is_owner = serializers.SerializerMethodField()

    class Meta:
        model = SmsTemplate
        fields = ['id', 'user', 'name', 'content', 'tags', 'is_global', 'is_owner', 'created_at', 'updated_at']
        read_only_fields = ['id', 'user', 'is_owner', 'created_at', 'updated_at']

    @extend_schema_field(serializers.BooleanField)
    def get_is_owner(self, obj) -> bool:
        request = self.context.get('request')
        return bool(request and obj.user_id == request.user.id)

    def validate_is_global(self, value):
        request = self.context.get('request')
        if value and not (request and request.user.is_staff):
            raise serializers.ValidationError("Only staff can create global templates")
        return value

    def validate_tags(self, value):
        if not isinstance(value, list) or not all(isinstance(t, str) for t in value):
            raise serializers.ValidationError("Tags must be a list of strings")
        return value


class TemplatePreviewSerializer(serializers.Serializer):
    template_id = serializers.UUIDField(required=False)
    content = serializers.CharField(required=False, max_length=1600)
    variables = serializers.DictField(child=serializers.CharField(allow_blank=True), required=False, default=dict)
    context = serializers.DictField(required=False, default=dict, help_text="Sample trigger context, e.g. {\"from\": \"+1555...\"}")

    def validate(self, attrs):
        if not attrs.get('template_id') and not attrs.get('content'):
            raise serializers.ValidationError("Either template_id or content is required")
        return attrs


class TemplateVariableSerializer(serializers.Serializer):
    name = serializers.CharField()
    description = serializers.CharField()


def _validate_condition(condition):
    if not isinstance(condition, dict):
        raise serializers.ValidationError("Each condition must be an object")
    condition_type = condition.get('type')
    if condition_type not in ConditionType.values:
        raise serializers.ValidationError(f"Unknown condition type: {condition_type}")
    params = condition.get('parameters') or {}
    if not isinstance(params, dict):
        raise serializers.ValidationError("Condition parameters must be an object")

    if condition_type == ConditionType.KEYWORD_SMS:
        keywords = params.get('keywords')
        if not isinstance(keywords, list) or not [k for k in keywords if k]:
            raise serializers.ValidationError("keywordSms conditions need at least one keyword")
    elif condition_type == ConditionType.SCHEDULED_TIME:
        hhmm_validator(params.get('time') or '')
        days = params.get('daysOfWeek')
        if not isinstance(days, list) or not days:
            raise serializers.ValidationError("scheduledTime conditions need daysOfWeek")
        unknown = [d for d in days if str(d).lower() not in WEEKDAYS]
        if unknown:
            raise serializers.ValidationError(f"Unknown weekday(s): {', '.join(map(str, unknown))}")
    elif condition_type == ConditionType.AVAILABILITY:
        if params.get('availabilityStatus') not in AVAILABILITY_STATUSES:
            raise serializers.ValidationError(
                f"availabilityStatus must be one of {', '.join(AVAILABILITY_STATUSES)}"
            )
    return {'type': condition_type, 'parameters': params}


def _validate_action(action, user):
    if not isinstance(action, dict):
        raise serializers.ValidationError("Each action must be an object")
    action_type = action.get('type')
    if action_type not in ActionType.values:
        raise serializers.ValidationError(f"Unknown action type: {action_type}")
    params = action.get('parameters') or {}
    if not isinstance(params, dict):
        raise serializers.ValidationError("Action parameters must be an object")

    if action_type == ActionType.SEND_SMS:
        if not params.get('template') and not params.get('message'):
            raise serializers.ValidationError("sendSms actions need a template or a message")
        template_id = params.get('template')
        if template_id:
            try:
                template_id = uuid.UUID(str(template_id))
            except ValueError:
                raise serializers.ValidationError("SMS template not found")
            visible = SmsTemplate.objects.filter(pk=template_id)
            if user is not None and not user.is_staff:
                visible = visible.filter(Q(user=user) | Q(is_global=True))
            if not visible.exists():
                raise serializers.ValidationError("SMS template not found")
            params['template'] = str(template_id)
    elif action_type == ActionType.NOTIFY:
        method = params.get('notifyMethod')
        if method and method not in NOTIFY_METHODS:
            raise serializers.ValidationError(f"notifyMethod must be one of {', '.join(NOTIFY_METHODS)}")

    delay = params.get('delay')
    if delay:
        if not isinstance(delay, dict):
            raise serializers.ValidationError("delay must be an object with value and unit")
        if (delay.get('unit') or 'minutes') not in DELAY_UNITS:
            raise serializers.ValidationError(f"delay unit must be one of {', '.join(DELAY_UNITS)}")
        try:
            if float(delay.get('value') or 0) < 0:
                raise serializers.ValidationError("delay value cannot be negative")
        except (TypeError, ValueError):
            raise serializers.ValidationError("delay value must be a number")
    return {'type': action_type, 'parameters': params}


class SmsAutomationSerializer(serializers.ModelSerializer):
    """Serializer for SmsAutomation model"""
    phone_number = serializers.CharField(
        max_length=32,
        required=False,
        help_text="Defaults to the owner's Telnyx number"
    )

    class Meta:
        model = SmsAutomation
        fields = [
            'id', 'user', 'name', 'description', 'is_active', 'phone_number',
            'conditions', 'actions',
            'times_triggered', 'last_triggered', 'success_count', 'error_count',
            'created_at', 'updated_at',
        ]
        read_only_fields = [
            'id', 'user', 'times_triggered', 'last_triggered', 'success_count', 'error_count',
            'created_at', 'updated_at',
        ]

    def _user(self):
        request = self.context.get('request')
        return request.user if request else None

    def validate_conditions(self, value):
        if not isinstance(value, list):
            raise serializers.ValidationError("Conditions must be a list")
        return [_validate_condition(c) for c in value]

    def validate_actions(self, value):
        if not isinstance(value, list):
            raise serializers.ValidationError("Actions must be a list")
        user = self._user()
        return [_validate_action(a, user) for a in value]

    def validate(self, attrs):
        if not attrs.get('phone_number') and self.instance is None:
            user = self._user()
            if user is None or not user.telnyx_phone_number:
                raise serializers.ValidationError({
                    'phone_number': 'Required when the user has no Telnyx number assigned'
                })
            attrs['phone_number'] = user.telnyx_phone_number
        return attrs


class SmsAutomationStatsSerializer(serializers.Serializer):
    times_triggered = serializers.IntegerField()
    last_triggered = serializers.DateTimeField(allow_null=True)
    success_count = serializers.IntegerField()
    error_count = serializers.IntegerField()
    success_rate = serializers.FloatField()
    pending_actions = serializers.IntegerField()


class AutomationTestSerializer(serializers.Serializer):
    """Sample event evaluated against a rule without sending anything"""
    type = serializers.ChoiceField(choices=ConditionType.choices)
    text = serializers.CharField(required=False, allow_blank=True, default='')
    # "from" is a keyword; exposed under its JSON name
    from_number = serializers.CharField(required=False, allow_blank=True, default='')
    time = serializers.CharField(required=False, validators=[hhmm_validator])
    day = serializers.ChoiceField(choices=WEEKDAYS, required=False)
    availabilityStatus = serializers.ChoiceField(choices=AVAILABILITY_STATUSES, required=False)
    duration = serializers.IntegerField(required=False, min_value=0)

    def to_internal_value(self, data):
        if hasattr(data, 'copy'):
            data = data.copy()
            if 'from' in data and 'from_number' not in data:
                data['from_number'] = data.pop('from')
        return super().to_internal_value(data)
