from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin

from .models import (
    User, AvailabilityDay, CalendarIntegration, CalendarEvent, Call, SmsMessage,
    Voicemail, SmsTemplate, SmsAutomation, ScheduledAction, TelnyxAccount,
)


class ShowPkMixin:
    """Mixin to show the object's primary key on the change form."""

    def display_id(self, obj):
        return str(obj.pk) if obj else "-"
    display_id.short_description = 'ID'

    def get_readonly_fields(self, request, obj=None):
        base = super().get_readonly_fields(request, obj)
        readonly = list(base) if isinstance(base, (list, tuple)) else list(self.readonly_fields)
        if obj and 'display_id' not in readonly:
            readonly = ['display_id'] + readonly
        return readonly


class AvailabilityDayInline(admin.TabularInline):
    model = AvailabilityDay
    extra = 0
    max_num = 7
    fields = ('day', 'is_available', 'start_time', 'end_time')


@admin.register(User)
class CustomUserAdmin(ShowPkMixin, BaseUserAdmin):
    """Custom admin for email-based User model"""

    list_display = ('email', 'name', 'telnyx_phone_number', 'route_to_live_agent', 'is_staff', 'date_joined')
    list_filter = ('is_staff', 'is_superuser', 'is_active', 'route_to_live_agent', 'date_joined')
    search_fields = ('email', 'name', 'phone_number', 'telnyx_phone_number')
    ordering = ('-date_joined',)
    inlines = [AvailabilityDayInline]

    fieldsets = (
        (None, {
            'fields': ('email', 'password')
        }),
        ('Personal info', {
            'fields': ('name', 'phone_number', 'device_token')
        }),
        ('Telnyx', {
            'fields': ('telnyx_phone_number', 'telnyx_phone_id')
        }),
        ('WebRTC', {
            'fields': ('webrtc_enabled', 'sip_username', 'sip_credential_id')
        }),
        ('Voicemail & routing', {
            'fields': ('voicemail_greeting', 'voicemail_greeting_url', 'route_to_live_agent', 'live_agent_number')
        }),
        ('Permissions', {
            'fields': ('is_active', 'is_staff', 'is_superuser', 'groups', 'user_permissions'),
            'classes': ('collapse',)
        }),
        ('Important dates', {
            'fields': ('last_login', 'date_joined'),
            'classes': ('collapse',)
        }),
    )

    add_fieldsets = (
        (None, {
            'classes': ('wide',),
            'fields': ('email', 'name', 'password1', 'password2'),
        }),
    )


@admin.register(CalendarIntegration)
class CalendarIntegrationAdmin(ShowPkMixin, admin.ModelAdmin):
    list_display = ('user', 'provider', 'enabled', 'sync_frequency', 'last_sync_time')
    list_filter = ('provider', 'enabled', 'make_unavailable_during_events')
    search_fields = ('user__email',)
    readonly_fields = ('last_sync_time', 'last_sync_error', 'token_expires_at', 'created_at', 'updated_at')


@admin.register(CalendarEvent)
class CalendarEventAdmin(admin.ModelAdmin):
    list_display = ('title', 'user', 'start_time', 'end_time', 'status', 'make_unavailable')
    list_filter = ('status', 'make_unavailable', 'all_day')
    search_fields = ('title', 'event_id', 'user__email')
    date_hierarchy = 'start_time'


@admin.register(Call)
class CallAdmin(ShowPkMixin, admin.ModelAdmin):
    list_display = ('from_number', 'to_number', 'user', 'direction', 'status', 'duration', 'start_time')
    list_filter = ('direction', 'status', 'start_time')
    search_fields = ('from_number', 'to_number', 'external_call_id', 'user__email')
    readonly_fields = ('external_call_id', 'created_at', 'updated_at')
    date_hierarchy = 'start_time'


@admin.register(SmsMessage)
class SmsMessageAdmin(admin.ModelAdmin):
    list_display = ('from_number', 'to_number', 'user', 'direction', 'status', 'sent_at')
    list_filter = ('direction', 'status')
    search_fields = ('from_number', 'to_number', 'body', 'telnyx_message_id')
    date_hierarchy = 'sent_at'


@admin.register(Voicemail)
class VoicemailAdmin(admin.ModelAdmin):
    list_display = ('from_number', 'user', 'duration', 'is_new', 'created_at')
    list_filter = ('is_new',)
    search_fields = ('from_number', 'user__email', 'transcription')


@admin.register(SmsTemplate)
class SmsTemplateAdmin(admin.ModelAdmin):
    list_display = ('name', 'user', 'is_global', 'updated_at')
    list_filter = ('is_global',)
    search_fields = ('name', 'content')


class ScheduledActionInline(admin.TabularInline):
    model = ScheduledAction
    extra = 0
    fields = ('due_at', 'status', 'executed_at', 'error')
    readonly_fields = fields
    can_delete = False


@admin.register(SmsAutomation)
class SmsAutomationAdmin(ShowPkMixin, admin.ModelAdmin):
    list_display = ('name', 'user', 'phone_number', 'is_active', 'times_triggered', 'success_count', 'error_count', 'last_triggered')
    list_filter = ('is_active',)
    search_fields = ('name', 'phone_number', 'user__email')
    readonly_fields = ('times_triggered', 'last_triggered', 'success_count', 'error_count', 'created_at', 'updated_at')
    inlines = [ScheduledActionInline]


@admin.register(ScheduledAction)
class ScheduledActionAdmin(admin.ModelAdmin):
    list_display = ('automation', 'due_at', 'status', 'executed_at')
    list_filter = ('status',)
    readonly_fields = ('automation', 'action', 'context', 'result', 'error', 'executed_at', 'created_at')


@admin.register(TelnyxAccount)
class TelnyxAccountAdmin(admin.ModelAdmin):
    list_display = ('__str__', 'webhook_url', 'messaging_profile_id', 'connection_id', 'updated_at')

    def has_add_permission(self, request):
        return not TelnyxAccount.objects.exists()
