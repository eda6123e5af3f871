import django.core.validators
import django.db.models.deletion
import django.utils.timezone
import uuid
from django.conf import settings
from django.db import migrations, models


HHMM_VALIDATOR = django.core.validators.RegexValidator(
    message='Time must be in 24-hour HH:MM format',
    regex='^([01]\\d|2[0-3]):[0-5]\\d$',
)
DEFAULT_VOICEMAIL_GREETING = 'Hello, you have reached my voicemail. Please leave a message after the tone.'


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('auth', '0012_alter_user_first_name_max_length'),
    ]

    operations = [
        migrations.CreateModel(
            name='User',
            fields=[
                ('password', models.CharField(max_length=128, verbose_name='password')),
                ('last_login', models.DateTimeField(blank=True, null=True, verbose_name='last login')),
                ('is_superuser', models.BooleanField(default=False, help_text='Designates that this user has all permissions without explicitly assigning them.', verbose_name='superuser status')),
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('email', models.EmailField(help_text='Email address used for login and notifications', max_length=254, unique=True)),
                ('name', models.CharField(help_text='Full name; the first word is used for the default voicemail greeting', max_length=255)),
                ('phone_number', models.CharField(blank=True, default='', help_text="User's own phone in E.164 format; available calls are forwarded here", max_length=32)),
                ('telnyx_phone_id', models.CharField(blank=True, help_text='Telnyx phone number resource ID', max_length=64, null=True)),
                ('telnyx_phone_number', models.CharField(blank=True, help_text='Telnyx number that routes calls and SMS to this user', max_length=32, null=True, unique=True)),
                ('device_token', models.CharField(blank=True, help_text='Push notification device token', max_length=255, null=True)),
                ('voicemail_greeting', models.TextField(default=DEFAULT_VOICEMAIL_GREETING, help_text='Text spoken when the greeting audio cannot be played')),
                ('voicemail_greeting_url', models.URLField(blank=True, help_text='Custom greeting audio; a name-based default is used when empty', max_length=500, null=True)),
                ('route_to_live_agent', models.BooleanField(default=False, help_text='Forward calls to the live agent when the user is unavailable')),
                ('live_agent_number', models.CharField(blank=True, help_text='Live agent phone number in E.164 format', max_length=32, null=True)),
                ('is_active', models.BooleanField(default=True)),
                ('is_staff', models.BooleanField(default=False, help_text='Whether this user can manage numbers, Telnyx settings and other users')),
                ('date_joined', models.DateTimeField(default=django.utils.timezone.now)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('groups', models.ManyToManyField(blank=True, help_text='The groups this user belongs to. A user will get all permissions granted to each of their groups.', related_name='user_set', related_query_name='user', to='auth.group', verbose_name='groups')),
                ('user_permissions', models.ManyToManyField(blank=True, help_text='Specific permissions for this user.', related_name='user_set', related_query_name='user', to='auth.permission', verbose_name='user permissions')),
            ],
            options={
                'verbose_name': 'User',
                'verbose_name_plural': 'Users',
                'ordering': ['-date_joined'],
            },
        ),
        migrations.CreateModel(
            name='TelnyxAccount',
            fields=[
                ('id', models.PositiveSmallIntegerField(default=1, editable=False, primary_key=True, serialize=False)),
                ('api_key', models.CharField(blank=True, editable=False, max_length=255, null=True)),
                ('webhook_url', models.URLField(blank=True, max_length=500, null=True)),
                ('messaging_profile_id', models.CharField(blank=True, max_length=255, null=True)),
                ('connection_id', models.CharField(blank=True, max_length=255, null=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'verbose_name': 'Telnyx account',
            },
        ),
        migrations.CreateModel(
            name='AvailabilityDay',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('day', models.CharField(choices=[('monday', 'Monday'), ('tuesday', 'Tuesday'), ('wednesday', 'Wednesday'), ('thursday', 'Thursday'), ('friday', 'Friday'), ('saturday', 'Saturday'), ('sunday', 'Sunday')], max_length=10)),
                ('is_available', models.BooleanField(default=True)),
                ('start_time', models.CharField(default='09:00', help_text='Start of the available window, HH:MM (24h)', max_length=5, validators=[HHMM_VALIDATOR])),
                ('end_time', models.CharField(default='17:00', help_text='End of the available window, HH:MM (24h). Windows cannot cross midnight', max_length=5, validators=[HHMM_VALIDATOR])),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='availability', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'constraints': [models.UniqueConstraint(fields=('user', 'day'), name='unique_availability_day_per_user')],
            },
        ),
        migrations.CreateModel(
            name='CalendarIntegration',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('enabled', models.BooleanField(default=False)),
                ('provider', models.CharField(blank=True, choices=[('google', 'Google'), ('microsoft', 'Microsoft'), ('office365', 'Office 365'), ('apple', 'Apple'), ('ical', 'iCal Feed'), ('caldav', 'CalDAV'), ('calendly', 'Calendly'), ('exchange', 'Exchange')], max_length=20, null=True)),
                ('access_token', models.TextField(blank=True, editable=False, null=True)),
                ('refresh_token', models.TextField(blank=True, editable=False, null=True)),
                ('token_expires_at', models.DateTimeField(blank=True, null=True)),
                ('calendar_id', models.CharField(default='primary', max_length=255)),
                ('ical_url', models.URLField(blank=True, max_length=1000, null=True)),
                ('caldav_url', models.URLField(blank=True, max_length=1000, null=True)),
                ('caldav_username', models.CharField(blank=True, max_length=255, null=True)),
                ('caldav_password', models.CharField(blank=True, editable=False, max_length=255, null=True)),
                ('api_key', models.CharField(blank=True, editable=False, help_text='Personal access token for Calendly', max_length=500, null=True)),
                ('sync_frequency', models.PositiveIntegerField(default=15, help_text='Minutes between automatic syncs', validators=[django.core.validators.MinValueValidator(5), django.core.validators.MaxValueValidator(1440)])),
                ('make_unavailable_during_events', models.BooleanField(default=True, help_text='Treat the user as unavailable while a synced event is running')),
                ('exclude_event_types', models.JSONField(blank=True, default=list, help_text='Event title keywords that are ignored during sync')),
                ('last_sync_time', models.DateTimeField(blank=True, null=True)),
                ('last_sync_error', models.TextField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('user', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name='calendar_integration', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'indexes': [models.Index(fields=['enabled', 'last_sync_time'], name='core_calend_enabled_5a1f0c_idx')],
            },
        ),
        migrations.CreateModel(
            name='CalendarEvent',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('event_id', models.CharField(help_text='Provider event identifier', max_length=512)),
                ('title', models.CharField(blank=True, default='', max_length=500)),
                ('start_time', models.DateTimeField()),
                ('end_time', models.DateTimeField()),
                ('all_day', models.BooleanField(default=False)),
                ('recurrence', models.TextField(blank=True, null=True)),
                ('status', models.CharField(choices=[('confirmed', 'Confirmed'), ('tentative', 'Tentative'), ('cancelled', 'Cancelled')], default='confirmed', max_length=20)),
                ('make_unavailable', models.BooleanField(default=True, help_text='Whether this event blocks availability')),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='calendar_events', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'ordering': ['start_time'],
                'indexes': [models.Index(fields=['user', 'start_time', 'end_time'], name='core_calend_user_id_8d2e41_idx')],
                'constraints': [models.UniqueConstraint(fields=('user', 'event_id'), name='unique_calendar_event_per_user')],
            },
        ),
        migrations.CreateModel(
            name='Call',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('external_call_id', models.CharField(help_text='Telnyx call_control_id', max_length=255, unique=True)),
                ('direction', models.CharField(choices=[('inbound', 'Inbound'), ('outbound', 'Outbound')], max_length=10)),
                ('from_number', models.CharField(max_length=32)),
                ('to_number', models.CharField(max_length=32)),
                ('status', models.CharField(choices=[('initiated', 'Initiated'), ('ringing', 'Ringing'), ('answered', 'Answered'), ('completed', 'Completed'), ('failed', 'Failed'), ('busy', 'Busy'), ('no-answer', 'No Answer'), ('forwarded', 'Forwarded'), ('voicemail', 'Voicemail')], default='initiated', max_length=20)),
                ('duration', models.PositiveIntegerField(default=0, help_text='Call duration in seconds')),
                ('start_time', models.DateTimeField(default=django.utils.timezone.now)),
                ('end_time', models.DateTimeField(blank=True, null=True)),
                ('recording_url', models.URLField(blank=True, max_length=1000, null=True)),
                ('voicemail_url', models.URLField(blank=True, max_length=1000, null=True)),
                ('notes', models.TextField(blank=True, default='')),
                ('metadata', models.JSONField(blank=True, default=dict)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='calls', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'ordering': ['-start_time'],
                'indexes': [models.Index(fields=['user', '-start_time'], name='core_call_user_id_3b7c90_idx')],
            },
        ),
        migrations.CreateModel(
            name='SmsMessage',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('telnyx_message_id', models.CharField(blank=True, max_length=255, null=True, unique=True)),
                ('direction', models.CharField(choices=[('inbound', 'Inbound'), ('outbound', 'Outbound')], max_length=10)),
                ('from_number', models.CharField(max_length=32)),
                ('to_number', models.CharField(max_length=32)),
                ('body', models.TextField(blank=True, default='')),
                ('status', models.CharField(choices=[('sent', 'Sent'), ('delivered', 'Delivered'), ('failed', 'Failed'), ('received', 'Received')], default='sent', max_length=20)),
                ('sent_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('delivered_at', models.DateTimeField(blank=True, null=True)),
                ('media_urls', models.JSONField(blank=True, default=list)),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='sms_messages', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'ordering': ['-sent_at'],
                'indexes': [models.Index(fields=['user', '-sent_at'], name='core_smsmes_user_id_6e0f52_idx')],
            },
        ),
        migrations.CreateModel(
            name='Voicemail',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('from_number', models.CharField(max_length=32)),
                ('to_number', models.CharField(max_length=32)),
                ('duration', models.PositiveIntegerField(default=0, help_text='Recording length in seconds')),
                ('recording_url', models.URLField(max_length=1000)),
                ('transcription', models.TextField(blank=True, null=True)),
                ('is_new', models.BooleanField(default=True)),
                ('notes', models.TextField(blank=True, default='')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('call', models.OneToOneField(blank=True, help_text='Originating call; kept as a weak reference', null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='voicemail', to='core.call')),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='voicemails', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'ordering': ['-created_at'],
            },
        ),
        migrations.CreateModel(
            name='SmsTemplate',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('name', models.CharField(max_length=255)),
                ('content', models.CharField(help_text='Up to ten concatenated SMS segments', max_length=1600)),
                ('tags', models.JSONField(blank=True, default=list)),
                ('is_global', models.BooleanField(default=False)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('user', models.ForeignKey(blank=True, help_text='Owner; empty for system-wide templates', null=True, on_delete=django.db.models.deletion.CASCADE, related_name='sms_templates', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'ordering': ['-updated_at'],
            },
        ),
        migrations.CreateModel(
            name='SmsAutomation',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('name', models.CharField(max_length=255)),
                ('description', models.TextField(blank=True, default='')),
                ('is_active', models.BooleanField(default=True)),
                ('phone_number', models.CharField(db_index=True, help_text='Telnyx number this automation listens on and sends from', max_length=32)),
                ('conditions', models.JSONField(blank=True, default=list, help_text='List of {type, parameters}; any matching condition triggers the automation')),
                ('actions', models.JSONField(blank=True, default=list, help_text='List of {type, parameters} executed in order')),
                ('times_triggered', models.PositiveIntegerField(default=0)),
                ('last_triggered', models.DateTimeField(blank=True, null=True)),
                ('success_count', models.PositiveIntegerField(default=0)),
                ('error_count', models.PositiveIntegerField(default=0)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='sms_automations', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'ordering': ['-updated_at'],
                'indexes': [models.Index(fields=['is_active', 'phone_number'], name='core_smsaut_is_acti_9c4d17_idx')],
            },
        ),
        migrations.CreateModel(
            name='ScheduledAction',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('action', models.JSONField(help_text='Action definition copied at trigger time')),
                ('context', models.JSONField(default=dict, help_text='Serializable trigger context')),
                ('due_at', models.DateTimeField(db_index=True)),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('completed', 'Completed'), ('failed', 'Failed'), ('skipped', 'Skipped')], default='pending', max_length=20)),
                ('executed_at', models.DateTimeField(blank=True, null=True)),
                ('result', models.JSONField(blank=True, default=dict)),
                ('error', models.TextField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('automation', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='scheduled_actions', to='core.smsautomation')),
            ],
            options={
                'ordering': ['due_at'],
                'indexes': [models.Index(fields=['status', 'due_at'], name='core_schedu_status_0e8b3a_idx')],
            },
        ),
    ]
