import django_filters

from core.models import User


class UserFilter(django_filters.FilterSet):
    """Filters for User model"""
    email = django_filters.CharFilter(lookup_expr='icontains', help_text="Filter by email address")
    name = django_filters.CharFilter(lookup_expr='icontains', help_text="Filter by name")
    telnyx_phone_number = django_filters.CharFilter(lookup_expr='icontains', help_text="Filter by Telnyx number")
    has_number = django_filters.BooleanFilter(method='filter_has_number', help_text="Users with a Telnyx number")
    is_active = django_filters.BooleanFilter()
    is_staff = django_filters.BooleanFilter()
    date_joined_after = django_filters.DateTimeFilter(field_name='date_joined', lookup_expr='gte')
    date_joined_before = django_filters.DateTimeFilter(field_name='date_joined', lookup_expr='lte')

    class Meta:
        model = User
        fields = ['email', 'name', 'is_active', 'is_staff']

    def filter_has_number(self, queryset, name, value):
        if value is True:
            return queryset.filter(telnyx_phone_number__isnull=False)
        if value is False:
            return queryset.filter(telnyx_phone_number__isnull=True)
        return queryset
