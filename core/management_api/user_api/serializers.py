from rest_framework import serializers
from drf_spectacular.utils import extend_schema_field

from core.models import AvailabilityDay, User, Weekday, hhmm_validator


class AvailabilityDaySerializer(serializers.ModelSerializer):
    """One weekday of the availability schedule"""
    start_time = serializers.CharField(validators=[hhmm_validator])
    end_time = serializers.CharField(validators=[hhmm_validator])

    class Meta:
        model = AvailabilityDay
        fields = ['day', 'is_available', 'start_time', 'end_time']


class UserSerializer(serializers.ModelSerializer):
    """Serializer for User model"""
    availability = AvailabilityDaySerializer(many=True, read_only=True)
    calendar_provider = serializers.SerializerMethodField()

    class Meta:
        model = User
        fields = [
            'id', 'email', 'name', 'phone_number',
            'telnyx_phone_id', 'telnyx_phone_number',
            'voicemail_greeting', 'voicemail_greeting_url',
            'route_to_live_agent', 'live_agent_number',
            'availability', 'calendar_provider',
            'is_active', 'is_staff', 'date_joined', 'updated_at',
        ]
        read_only_fields = [
            'id', 'telnyx_phone_id', 'telnyx_phone_number', 'is_staff', 'date_joined', 'updated_at',
        ]

    @extend_schema_field(serializers.CharField(allow_null=True))
    def get_calendar_provider(self, obj):
        integration = getattr(obj, 'calendar_integration', None)
        if integration is None or not integration.enabled:
            return None
        return integration.provider


class UserCreateSerializer(serializers.ModelSerializer):
    """Serializer for user creation"""
    password = serializers.CharField(write_only=True, min_length=8)

    class Meta:
        model = User
        fields = [
            'email', 'password', 'name', 'phone_number',
            'route_to_live_agent', 'live_agent_number',
        ]

    def validate(self, attrs):
        if attrs.get('route_to_live_agent') and not attrs.get('live_agent_number'):
            raise serializers.ValidationError({
                'live_agent_number': 'Required when routing to a live agent'
            })
        return attrs

    def create(self, validated_data):
        password = validated_data.pop('password')
        return User.objects.create_user(password=password, **validated_data)


class UserUpdateSerializer(serializers.ModelSerializer):
    """Serializer for user profile updates (email and Telnyx binding are not editable here)"""

    class Meta:
        model = User
        fields = [
            'name', 'phone_number', 'device_token',
            'route_to_live_agent', 'live_agent_number', 'is_active',
        ]

    def validate(self, attrs):
        route = attrs.get('route_to_live_agent', getattr(self.instance, 'route_to_live_agent', False))
        agent = attrs.get('live_agent_number', getattr(self.instance, 'live_agent_number', None))
        if route and not agent:
            raise serializers.ValidationError({
                'live_agent_number': 'Required when routing to a live agent'
            })
        return attrs


class AvailabilityUpdateSerializer(serializers.Serializer):
    """Replacement weekly schedule; days not listed keep their current settings"""
    availability = AvailabilityDaySerializer(many=True)

    def validate_availability(self, value):
        days = [d['day'] for d in value]
        if len(days) != len(set(days)):
            raise serializers.ValidationError("Each weekday may appear only once")
        for entry in value:
            if entry['day'] not in Weekday.values:
                raise serializers.ValidationError(f"Unknown weekday: {entry['day']}")
        return value


class UserStatusSerializer(serializers.Serializer):
    is_available = serializers.BooleanField()
    checked_at = serializers.DateTimeField()


class VoicemailGreetingSerializer(serializers.Serializer):
    greeting = serializers.CharField(max_length=1000)


class GreetingUrlSerializer(serializers.Serializer):
    greeting_url = serializers.URLField(required=False, max_length=500)
    use_default = serializers.BooleanField(required=False, default=False)

    def validate(self, attrs):
        if not attrs.get('use_default') and not attrs.get('greeting_url'):
            raise serializers.ValidationError("Provide greeting_url or set use_default")
        return attrs


class AssignNumberSerializer(serializers.Serializer):
    phone_number = serializers.CharField(max_length=32)
    phone_id = serializers.CharField(max_length=64, required=False, help_text="Telnyx ID of a number the account already owns")
