from rest_framework import serializers

from core.models import CalendarEvent, CalendarEventStatus, CalendarIntegration, CalendarProvider


class CalendarIntegrationSerializer(serializers.ModelSerializer):
    """Calendar integration settings; credentials are never returned"""
    has_credentials = serializers.SerializerMethodField()

    class Meta:
        model = CalendarIntegration
        fields = [
            'enabled', 'provider', 'calendar_id', 'ical_url', 'caldav_url', 'caldav_username',
            'sync_frequency', 'make_unavailable_during_events', 'exclude_event_types',
            'last_sync_time', 'last_sync_error', 'has_credentials', 'updated_at',
        ]
        read_only_fields = [
            'provider', 'ical_url', 'caldav_url', 'caldav_username',
            'last_sync_time', 'last_sync_error', 'has_credentials', 'updated_at',
        ]

    def get_has_credentials(self, obj) -> bool:
        return bool(obj.access_token or obj.api_key or obj.caldav_password or obj.ical_url)

    def validate_exclude_event_types(self, value):
        if not isinstance(value, list) or not all(isinstance(k, str) for k in value):
            raise serializers.ValidationError("Must be a list of keywords")
        return value

    def validate_enabled(self, value):
        if value and self.instance is not None and not self.instance.provider:
            raise serializers.ValidationError("Connect a calendar before enabling sync")
        return value


class CalendarEventSerializer(serializers.ModelSerializer):
    class Meta:
        model = CalendarEvent
        fields = [
            'id', 'event_id', 'title', 'start_time', 'end_time', 'all_day',
            'recurrence', 'status', 'make_unavailable',
        ]
        read_only_fields = ['id', 'event_id', 'start_time', 'end_time', 'all_day', 'recurrence']


class CalendarEventUpdateSerializer(serializers.Serializer):
    make_unavailable = serializers.BooleanField(required=False)
    title = serializers.CharField(required=False, max_length=500, allow_blank=True)
    status = serializers.ChoiceField(choices=CalendarEventStatus.choices, required=False)


class AuthUrlResponseSerializer(serializers.Serializer):
    authorization_url = serializers.URLField()
    state = serializers.CharField()


class OAuthConnectSerializer(serializers.Serializer):
    code = serializers.CharField()


class MicrosoftConnectSerializer(OAuthConnectSerializer):
    provider = serializers.ChoiceField(
        choices=[CalendarProvider.MICROSOFT, CalendarProvider.OFFICE365],
        default=CalendarProvider.MICROSOFT,
    )


class IcalConnectSerializer(serializers.Serializer):
    ical_url = serializers.URLField(max_length=1000)


class CaldavConnectSerializer(serializers.Serializer):
    caldav_url = serializers.URLField(max_length=1000)
    username = serializers.CharField(max_length=255)
    password = serializers.CharField(max_length=255, write_only=True)
    provider = serializers.ChoiceField(
        choices=[CalendarProvider.CALDAV, CalendarProvider.APPLE],
        default=CalendarProvider.CALDAV,
    )


class CalendlyConnectSerializer(serializers.Serializer):
    api_key = serializers.CharField(max_length=500, write_only=True)


class SyncResultSerializer(serializers.Serializer):
    synced = serializers.IntegerField()
    excluded = serializers.IntegerField()
    availability_changed = serializers.BooleanField()
    is_available = serializers.BooleanField()
