from rest_framework import serializers


class TargetUserSerializer(serializers.Serializer):
    """Which user the request acts on; defaults to the caller"""
    user_id = serializers.UUIDField(required=False)


class DeviceTokenSerializer(TargetUserSerializer):
    device_token = serializers.CharField(max_length=255)


class SipCredentialsSerializer(serializers.Serializer):
    """SIP credential details; ``password`` is only present when just issued"""
    credential_id = serializers.CharField()
    username = serializers.CharField()
    password = serializers.CharField(required=False)
    sip_uri = serializers.CharField()
    ws_uri = serializers.CharField()


class WebRTCStatusSerializer(serializers.Serializer):
    webrtc_enabled = serializers.BooleanField()
    has_sip_credentials = serializers.BooleanField()
    sip_username = serializers.CharField(allow_null=True)
