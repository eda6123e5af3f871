import django_filters

from core.models import Voicemail


class VoicemailFilter(django_filters.FilterSet):
    """Filter for Voicemail model"""
    is_new = django_filters.BooleanFilter(help_text="Only unread (true) or read (false) voicemails")
    from_number = django_filters.CharFilter(lookup_expr='icontains')
    created_after = django_filters.DateTimeFilter(field_name='created_at', lookup_expr='gte')
    created_before = django_filters.DateTimeFilter(field_name='created_at', lookup_expr='lte')

    class Meta:
        model = Voicemail
        fields = ['is_new', 'from_number']
