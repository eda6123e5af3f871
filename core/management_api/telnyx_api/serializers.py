from rest_framework import serializers


class TelnyxConfigSerializer(serializers.Serializer):
    """Effective Telnyx configuration; the API key is masked"""
    api_key_set = serializers.BooleanField()
    api_key_summary = serializers.CharField()
    webhook_url = serializers.CharField(allow_blank=True)
    messaging_profile_id = serializers.CharField(allow_blank=True)
    connection_id = serializers.CharField(allow_blank=True)
    base_url = serializers.CharField()


class ApiKeySerializer(serializers.Serializer):
    api_key = serializers.CharField(max_length=255, write_only=True)


class WebhookUrlSerializer(serializers.Serializer):
    webhook_url = serializers.URLField(max_length=500)


class MessagingProfileSerializer(serializers.Serializer):
    messaging_profile_id = serializers.CharField(max_length=255)
