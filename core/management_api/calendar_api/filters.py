import django_filters

from core.models import CalendarEvent, CalendarEventStatus


class CalendarEventFilter(django_filters.FilterSet):
    """Filter for cached calendar events"""
    start_after = django_filters.DateTimeFilter(field_name='end_time', lookup_expr='gte', help_text="Events ending after this time")
    end_before = django_filters.DateTimeFilter(field_name='start_time', lookup_expr='lte', help_text="Events starting before this time")
    status = django_filters.ChoiceFilter(choices=CalendarEventStatus.choices)
    make_unavailable = django_filters.BooleanFilter()
    title = django_filters.CharFilter(lookup_expr='icontains')

    class Meta:
        model = CalendarEvent
        fields = ['status', 'make_unavailable', 'all_day']
