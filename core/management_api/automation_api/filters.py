import django_filters
from django.db import models

from core.models import ConditionType, SmsAutomation, SmsTemplate


class SmsTemplateFilter(django_filters.FilterSet):
    """Filter for SmsTemplate model"""
    search = django_filters.CharFilter(method='filter_search', label='Search')
    tag = django_filters.CharFilter(method='filter_tag', help_text="Templates carrying this tag")
    is_global = django_filters.BooleanFilter()

    class Meta:
        model = SmsTemplate
        fields = ['is_global']

    def filter_search(self, queryset, name, value):
        return queryset.filter(
            models.Q(name__icontains=value) |
            models.Q(content__icontains=value)
        )

    def filter_tag(self, queryset, name, value):
        # JSON containment is not available on every backend
        ids = [t.id for t in queryset if value in (t.tags or [])]
        return queryset.filter(id__in=ids)


class SmsAutomationFilter(django_filters.FilterSet):
    """Filter for SmsAutomation model"""
    search = django_filters.CharFilter(method='filter_search', label='Search')
    is_active = django_filters.BooleanFilter()
    phone_number = django_filters.CharFilter()
    condition_type = django_filters.ChoiceFilter(
        choices=ConditionType.choices,
        method='filter_condition_type',
        help_text="Automations having at least one condition of this type",
    )

    class Meta:
        model = SmsAutomation
        fields = ['is_active', 'phone_number']

    def filter_search(self, queryset, name, value):
        return queryset.filter(
            models.Q(name__icontains=value) |
            models.Q(description__icontains=value)
        )

    def filter_condition_type(self, queryset, name, value):
        ids = [a.id for a in queryset if value in a.condition_types()]
        return queryset.filter(id__in=ids)
