import django_filters
from django.db import models

from core.models import Call, CallDirection, CallStatus


class CallFilter(django_filters.FilterSet):
    """Filter for Call model"""

    search = django_filters.CharFilter(method='filter_search', label='Search')
    from_number = django_filters.CharFilter(lookup_expr='icontains')
    to_number = django_filters.CharFilter(lookup_expr='icontains')

    direction = django_filters.ChoiceFilter(choices=CallDirection.choices)
    status = django_filters.ChoiceFilter(choices=CallStatus.choices)

    duration_min = django_filters.NumberFilter(field_name='duration', lookup_expr='gte')
    duration_max = django_filters.NumberFilter(field_name='duration', lookup_expr='lte')

    start_time_after = django_filters.DateTimeFilter(field_name='start_time', lookup_expr='gte')
    start_time_before = django_filters.DateTimeFilter(field_name='start_time', lookup_expr='lte')
    date = django_filters.DateFilter(field_name='start_time', lookup_expr='date')

    has_voicemail = django_filters.BooleanFilter(method='filter_has_voicemail')

    class Meta:
        model = Call
        fields = ['direction', 'status', 'from_number', 'to_number']

    def filter_search(self, queryset, name, value):
        """Search across numbers and notes"""
        return queryset.filter(
            models.Q(from_number__icontains=value) |
            models.Q(to_number__icontains=value) |
            models.Q(notes__icontains=value)
        )

    def filter_has_voicemail(self, queryset, name, value):
        if value is True:
            return queryset.filter(voicemail__isnull=False)
        if value is False:
            return queryset.filter(voicemail__isnull=True)
        return queryset
