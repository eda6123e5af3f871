from rest_framework import serializers


class AvailableNumberQuerySerializer(serializers.Serializer):
    country_code = serializers.CharField(max_length=2, default='US')
    area_code = serializers.CharField(max_length=6, required=False)
    limit = serializers.IntegerField(min_value=1, max_value=100, default=10)


class PhoneNumberListQuerySerializer(serializers.Serializer):
    page = serializers.IntegerField(min_value=1, default=1)
    page_size = serializers.IntegerField(min_value=1, max_value=250, default=25)
    status = serializers.CharField(required=False, default='active')


class PurchaseNumberSerializer(serializers.Serializer):
    phone_number = serializers.CharField(max_length=32)


class AssignNumberSerializer(serializers.Serializer):
    user_id = serializers.UUIDField()
    phone_number = serializers.CharField(max_length=32)
    phone_id = serializers.CharField(max_length=64, required=False)


class UpdateNumberSerializer(serializers.Serializer):
    """Fields forwarded to Telnyx' phone number update"""
    connection_id = serializers.CharField(required=False)
    messaging_profile_id = serializers.CharField(required=False)
    tags = serializers.ListField(child=serializers.CharField(), required=False)
    customer_reference = serializers.CharField(required=False)

    def validate(self, attrs):
        if not attrs:
            raise serializers.ValidationError("Nothing to update")
        return attrs
