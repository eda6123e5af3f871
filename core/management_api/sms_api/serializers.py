from rest_framework import serializers

from core.models import SmsMessage


class SmsMessageSerializer(serializers.ModelSerializer):
    """Serializer for SmsMessage model"""

    class Meta:
        model = SmsMessage
        fields = [
            'id', 'user', 'telnyx_message_id', 'direction', 'from_number', 'to_number',
            'body', 'status', 'sent_at', 'delivered_at', 'media_urls',
        ]
        read_only_fields = fields


class SendSmsSerializer(serializers.Serializer):
    """Serializer for sending an SMS/MMS from the user's Telnyx number"""
    to = serializers.RegexField(
        regex=r'^\+?[1-9]\d{6,14}$',
        help_text="Destination number in E.164 format",
        error_messages={'invalid': 'Enter a valid E.164 phone number'},
    )
    body = serializers.CharField(max_length=1600)
    media_urls = serializers.ListField(child=serializers.URLField(), required=False, default=list)
