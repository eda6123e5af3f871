import django_filters
from django.db import models

from core.models import CallDirection, SmsMessage, SmsStatus


class SmsMessageFilter(django_filters.FilterSet):
    """Filter for SmsMessage model"""
    search = django_filters.CharFilter(method='filter_search', label='Search')
    direction = django_filters.ChoiceFilter(choices=CallDirection.choices)
    status = django_filters.ChoiceFilter(choices=SmsStatus.choices)
    number = django_filters.CharFilter(method='filter_number', help_text="Conversation partner number")
    sent_after = django_filters.DateTimeFilter(field_name='sent_at', lookup_expr='gte')
    sent_before = django_filters.DateTimeFilter(field_name='sent_at', lookup_expr='lte')

    class Meta:
        model = SmsMessage
        fields = ['direction', 'status']

    def filter_search(self, queryset, name, value):
        return queryset.filter(
            models.Q(body__icontains=value) |
            models.Q(from_number__icontains=value) |
            models.Q(to_number__icontains=value)
        )

    def filter_number(self, queryset, name, value):
        return queryset.filter(models.Q(from_number=value) | models.Q(to_number=value))
