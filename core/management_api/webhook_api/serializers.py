from rest_framework import serializers


class TelnyxWebhookPayloadSerializer(serializers.Serializer):
    """Inner ``data.payload`` of a Telnyx webhook; only the fields we read are listed"""
    call_control_id = serializers.CharField(required=False)
    direction = serializers.CharField(required=False)
    hangup_cause = serializers.CharField(required=False)
    digits = serializers.CharField(required=False)
    client_state = serializers.CharField(required=False)
    text = serializers.CharField(required=False)


class TelnyxWebhookDataSerializer(serializers.Serializer):
    event_type = serializers.CharField(help_text="e.g. call.initiated, message.received")
    id = serializers.CharField(required=False)
    occurred_at = serializers.DateTimeField(required=False)
    payload = TelnyxWebhookPayloadSerializer(required=False)


class TelnyxWebhookEnvelopeSerializer(serializers.Serializer):
    """Schema-only description of the envelope Telnyx posts"""
    data = TelnyxWebhookDataSerializer()


class WebhookAckSerializer(serializers.Serializer):
    received = serializers.BooleanField()
    action = serializers.CharField(required=False)
    voicemail_id = serializers.UUIDField(required=False)
    error = serializers.CharField(required=False)
