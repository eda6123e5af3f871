from rest_framework import serializers

from core.models import Voicemail


class VoicemailSerializer(serializers.ModelSerializer):
    """Serializer for Voicemail model"""

    class Meta:
        model = Voicemail
        fields = [
            'id', 'user', 'call', 'from_number', 'to_number', 'duration',
            'recording_url', 'transcription', 'is_new', 'notes', 'created_at',
        ]
        read_only_fields = [
            'id', 'user', 'call', 'from_number', 'to_number', 'duration',
            'recording_url', 'transcription', 'is_new', 'created_at',
        ]


class VoicemailNotesSerializer(serializers.ModelSerializer):
    class Meta:
        model = Voicemail
        fields = ['notes']
