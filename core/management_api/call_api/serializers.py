from rest_framework import serializers
from drf_spectacular.utils import extend_schema_field

from core.models import Call


class CallSerializer(serializers.ModelSerializer):
    """Serializer for Call model"""
    duration_formatted = serializers.SerializerMethodField()
    voicemail_id = serializers.SerializerMethodField()

    class Meta:
        model = Call
        fields = [
            'id', 'user', 'external_call_id', 'direction', 'from_number', 'to_number',
            'status', 'duration', 'duration_formatted', 'start_time', 'end_time',
            'recording_url', 'voicemail_url', 'voicemail_id', 'notes', 'metadata',
            'created_at', 'updated_at',
        ]
        read_only_fields = fields

    @extend_schema_field(serializers.CharField)
    def get_duration_formatted(self, obj) -> str:
        """Format duration in minutes and seconds"""
        minutes = obj.duration // 60
        seconds = obj.duration % 60
        return f"{minutes}m {seconds}s"

    @extend_schema_field(serializers.UUIDField(allow_null=True))
    def get_voicemail_id(self, obj):
        voicemail = getattr(obj, 'voicemail', None)
        return str(voicemail.id) if voicemail else None


class CallNotesSerializer(serializers.ModelSerializer):
    class Meta:
        model = Call
        fields = ['notes']


class OutboundCallSerializer(serializers.Serializer):
    """Serializer for placing an outbound call from the user's Telnyx number"""
    to = serializers.RegexField(
        regex=r'^\+?[1-9]\d{6,14}$',
        help_text="Destination number in E.164 format",
        error_messages={'invalid': 'Enter a valid E.164 phone number'},
    )
