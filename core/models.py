from django.db import models
from django.contrib.auth.models import AbstractBaseUser, BaseUserManager, PermissionsMixin
from django.core.validators import MaxValueValidator, MinValueValidator, RegexValidator
from django.utils import timezone
import uuid


DEFAULT_VOICEMAIL_GREETING = (
    "Hello, you have reached my voicemail. Please leave a message after the tone."
)

hhmm_validator = RegexValidator(
    regex=r"^([01]\d|2[0-3]):[0-5]\d$",
    message="Time must be in 24-hour HH:MM format",
)


class Weekday(models.TextChoices):
    MONDAY = 'monday', 'Monday'
    TUESDAY = 'tuesday', 'Tuesday'
    WEDNESDAY = 'wednesday', 'Wednesday'
    THURSDAY = 'thursday', 'Thursday'
    FRIDAY = 'friday', 'Friday'
    SATURDAY = 'saturday', 'Saturday'
    SUNDAY = 'sunday', 'Sunday'


# Python's date.weekday() index -> Weekday value
WEEKDAY_ORDER = [
    Weekday.MONDAY, Weekday.TUESDAY, Weekday.WEDNESDAY, Weekday.THURSDAY,
    Weekday.FRIDAY, Weekday.SATURDAY, Weekday.SUNDAY,
]


class CallDirection(models.TextChoices):
    INBOUND = 'inbound', 'Inbound'
    OUTBOUND = 'outbound', 'Outbound'


class CallStatus(models.TextChoices):
    INITIATED = 'initiated', 'Initiated'
    RINGING = 'ringing', 'Ringing'
    ANSWERED = 'answered', 'Answered'
    COMPLETED = 'completed', 'Completed'
    FAILED = 'failed', 'Failed'
    BUSY = 'busy', 'Busy'
    NO_ANSWER = 'no-answer', 'No Answer'
    FORWARDED = 'forwarded', 'Forwarded'
    VOICEMAIL = 'voicemail', 'Voicemail'


class SmsStatus(models.TextChoices):
    SENT = 'sent', 'Sent'
    DELIVERED = 'delivered', 'Delivered'
    FAILED = 'failed', 'Failed'
    RECEIVED = 'received', 'Received'


class CalendarProvider(models.TextChoices):
    GOOGLE = 'google', 'Google'
    MICROSOFT = 'microsoft', 'Microsoft'
    OFFICE365 = 'office365', 'Office 365'
    APPLE = 'apple', 'Apple'
    ICAL = 'ical', 'iCal Feed'
    CALDAV = 'caldav', 'CalDAV'
    CALENDLY = 'calendly', 'Calendly'
    EXCHANGE = 'exchange', 'Exchange'


class CalendarEventStatus(models.TextChoices):
    CONFIRMED = 'confirmed', 'Confirmed'
    TENTATIVE = 'tentative', 'Tentative'
    CANCELLED = 'cancelled', 'Cancelled'


class ConditionType(models.TextChoices):
    INCOMING_CALL = 'incomingCall', 'Incoming Call'
    MISSED_CALL = 'missedCall', 'Missed Call'
    VOICEMAIL = 'voicemail', 'Voicemail'
    SCHEDULED_TIME = 'scheduledTime', 'Scheduled Time'
    INCOMING_SMS = 'incomingSms', 'Incoming SMS'
    KEYWORD_SMS = 'keywordSms', 'Keyword SMS'
    AVAILABILITY = 'availability', 'Availability'


class ActionType(models.TextChoices):
    SEND_SMS = 'sendSms', 'Send SMS'
    NOTIFY = 'notify', 'Notify'
    TAG = 'tag', 'Tag'
    ADD_TO_GROUP = 'addToGroup', 'Add To Group'


class ScheduledActionStatus(models.TextChoices):
    PENDING = 'pending', 'Pending'
    COMPLETED = 'completed', 'Completed'
    FAILED = 'failed', 'Failed'
    SKIPPED = 'skipped', 'Skipped'


class CustomUserManager(BaseUserManager):
    """Custom manager for User model with email-based authentication"""

    def create_user(self, email, password=None, **extra_fields):
        """Create and return a regular user with an email and password"""
        if not email:
            raise ValueError('The Email field must be set')

        email = self.normalize_email(email)
        extra_fields.setdefault('is_active', True)

        user = self.model(email=email, **extra_fields)
        user.set_password(password)
        user.save(using=self._db)
        return user

    def create_superuser(self, email, password=None, **extra_fields):
        """Create and return a superuser with an email and password"""
        extra_fields.setdefault('is_staff', True)
        extra_fields.setdefault('is_superuser', True)

        if extra_fields.get('is_staff') is not True:
            raise ValueError('Superuser must have is_staff=True.')
        if extra_fields.get('is_superuser') is not True:
            raise ValueError('Superuser must have is_superuser=True.')

        return self.create_user(email, password, **extra_fields)


class User(AbstractBaseUser, PermissionsMixin):
    """Account owner of a Telnyx number, its calls, messages and automations"""
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    email = models.EmailField(
        unique=True,
        help_text="Email address used for login and notifications"
    )
    name = models.CharField(
        max_length=255,
        help_text="Full name; the first word is used for the default voicemail greeting"
    )
    phone_number = models.CharField(
        max_length=32,
        blank=True,
        default='',
        help_text="User's own phone in E.164 format; available calls are forwarded here"
    )

    # Telnyx assignment
    telnyx_phone_id = models.CharField(
        max_length=64,
        null=True,
        blank=True,
        help_text="Telnyx phone number resource ID"
    )
    telnyx_phone_number = models.CharField(
        max_length=32,
        null=True,
        blank=True,
        unique=True,
        help_text="Telnyx number that routes calls and SMS to this user"
    )
    device_token = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        help_text="Push notification device token"
    )

    # WebRTC softphone
    sip_credential_id = models.CharField(
        max_length=64,
        null=True,
        blank=True,
        help_text="Telnyx telephony credential used by the WebRTC client"
    )
    sip_username = models.CharField(
        max_length=128,
        null=True,
        blank=True,
        help_text="SIP username of the telephony credential"
    )
    webrtc_enabled = models.BooleanField(
        default=False,
        help_text="Whether the user has WebRTC calling set up"
    )

    # Voicemail and routing
    voicemail_greeting = models.TextField(
        default=DEFAULT_VOICEMAIL_GREETING,
        help_text="Text spoken when the greeting audio cannot be played"
    )
    voicemail_greeting_url = models.URLField(
        max_length=500,
        null=True,
        blank=True,
        help_text="Custom greeting audio; a name-based default is used when empty"
    )
    route_to_live_agent = models.BooleanField(
        default=False,
        help_text="Forward calls to the live agent when the user is unavailable"
    )
    live_agent_number = models.CharField(
        max_length=32,
        null=True,
        blank=True,
        help_text="Live agent phone number in E.164 format"
    )

    # System fields
    is_active = models.BooleanField(default=True)
    is_staff = models.BooleanField(
        default=False,
        help_text="Whether this user can manage numbers, Telnyx settings and other users"
    )
    date_joined = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)

    USERNAME_FIELD = 'email'
    REQUIRED_FIELDS = ['name']

    objects = CustomUserManager()

    class Meta:
        verbose_name = 'User'
        verbose_name_plural = 'Users'
        ordering = ['-date_joined']

    def __str__(self):
        return f"{self.email} ({self.name})"

    @property
    def first_name(self):
        return self.name.split(' ')[0] if self.name else ''

    def get_full_name(self):
        return self.name

    def get_short_name(self):
        return self.first_name


class AvailabilityDay(models.Model):
    """One weekday of a user's weekly availability schedule"""
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='availability',
    )
    day = models.CharField(max_length=10, choices=Weekday.choices)
    is_available = models.BooleanField(default=True)
    start_time = models.CharField(
        max_length=5,
        default='09:00',
        validators=[hhmm_validator],
        help_text="Start of the available window, HH:MM (24h)"
    )
    end_time = models.CharField(
        max_length=5,
        default='17:00',
        validators=[hhmm_validator],
        help_text="End of the available window, HH:MM (24h). Windows cannot cross midnight"
    )

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=['user', 'day'], name='unique_availability_day_per_user'),
        ]

    def __str__(self):
        state = f"{self.start_time}-{self.end_time}" if self.is_available else "unavailable"
        return f"{self.user.email} {self.day}: {state}"

    @classmethod
    def default_week(cls, user):
        """Unsaved Mon-Fri 09:00-17:00 schedule with weekends off"""
        weekend = {Weekday.SATURDAY, Weekday.SUNDAY}
        return [
            cls(
                user=user,
                day=day,
                is_available=day not in weekend,
                start_time='09:00',
                end_time='17:00',
            )
            for day in WEEKDAY_ORDER
        ]


class CalendarIntegration(models.Model):
    """External calendar connection used to mark a user busy during meetings"""
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.OneToOneField(
        User,
        on_delete=models.CASCADE,
        related_name='calendar_integration',
    )
    enabled = models.BooleanField(default=False)
    provider = models.CharField(
        max_length=20,
        choices=CalendarProvider.choices,
        null=True,
        blank=True,
    )

    # Provider credentials
    access_token = models.TextField(null=True, blank=True, editable=False)
    refresh_token = models.TextField(null=True, blank=True, editable=False)
    token_expires_at = models.DateTimeField(null=True, blank=True)
    calendar_id = models.CharField(max_length=255, default='primary')
    ical_url = models.URLField(max_length=1000, null=True, blank=True)
    caldav_url = models.URLField(max_length=1000, null=True, blank=True)
    caldav_username = models.CharField(max_length=255, null=True, blank=True)
    caldav_password = models.CharField(max_length=255, null=True, blank=True, editable=False)
    api_key = models.CharField(
        max_length=500,
        null=True,
        blank=True,
        editable=False,
        help_text="Personal access token for Calendly"
    )

    # Settings
    sync_frequency = models.PositiveIntegerField(
        default=15,
        validators=[MinValueValidator(5), MaxValueValidator(1440)],
        help_text="Minutes between automatic syncs"
    )
    make_unavailable_during_events = models.BooleanField(
        default=True,
        help_text="Treat the user as unavailable while a synced event is running"
    )
    exclude_event_types = models.JSONField(
        default=list,
        blank=True,
        help_text="Event title keywords that are ignored during sync"
    )
    last_sync_time = models.DateTimeField(null=True, blank=True)
    last_sync_error = models.TextField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [
            models.Index(fields=['enabled', 'last_sync_time'], name='core_calend_enabled_5a1f0c_idx'),
        ]

    def __str__(self):
        return f"{self.user.email} - {self.provider or 'none'} ({'on' if self.enabled else 'off'})"

    def is_sync_due(self, now=None):
        if not self.enabled or not self.provider:
            return False
        if not self.last_sync_time:
            return True
        now = now or timezone.now()
        return (now - self.last_sync_time).total_seconds() >= self.sync_frequency * 60


class CalendarEvent(models.Model):
    """Cached copy of an upcoming provider event; replaced wholesale on every sync"""
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='calendar_events',
    )
    event_id = models.CharField(max_length=512, help_text="Provider event identifier")
    title = models.CharField(max_length=500, blank=True, default='')
    start_time = models.DateTimeField()
    end_time = models.DateTimeField()
    all_day = models.BooleanField(default=False)
    recurrence = models.TextField(null=True, blank=True)
    status = models.CharField(
        max_length=20,
        choices=CalendarEventStatus.choices,
        default=CalendarEventStatus.CONFIRMED,
    )
    make_unavailable = models.BooleanField(
        default=True,
        help_text="Whether this event blocks availability"
    )

    class Meta:
        ordering = ['start_time']
        constraints = [
            models.UniqueConstraint(fields=['user', 'event_id'], name='unique_calendar_event_per_user'),
        ]
        indexes = [
            models.Index(fields=['user', 'start_time', 'end_time'], name='core_calend_user_id_8d2e41_idx'),
        ]

    def __str__(self):
        return f"{self.title} ({self.start_time:%Y-%m-%d %H:%M} - {self.end_time:%H:%M})"


class Call(models.Model):
    """A call leg handled through Telnyx call control"""
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='calls',
    )
    external_call_id = models.CharField(
        max_length=255,
        unique=True,
        help_text="Telnyx call_control_id"
    )
    direction = models.CharField(max_length=10, choices=CallDirection.choices)
    from_number = models.CharField(max_length=32)
    to_number = models.CharField(max_length=32)
    status = models.CharField(
        max_length=20,
        choices=CallStatus.choices,
        default=CallStatus.INITIATED,
    )
    duration = models.PositiveIntegerField(default=0, help_text="Call duration in seconds")
    start_time = models.DateTimeField(default=timezone.now)
    end_time = models.DateTimeField(null=True, blank=True)
    recording_url = models.URLField(max_length=1000, null=True, blank=True)
    voicemail_url = models.URLField(max_length=1000, null=True, blank=True)
    notes = models.TextField(blank=True, default='')
    metadata = models.JSONField(default=dict, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-start_time']
        indexes = [
            models.Index(fields=['user', '-start_time'], name='core_call_user_id_3b7c90_idx'),
        ]

    def __str__(self):
        return f"Call: {self.from_number} → {self.to_number} ({self.status})"


class SmsMessage(models.Model):
    """Inbound or outbound SMS/MMS"""
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='sms_messages',
    )
    telnyx_message_id = models.CharField(max_length=255, null=True, blank=True, unique=True)
    direction = models.CharField(max_length=10, choices=CallDirection.choices)
    from_number = models.CharField(max_length=32)
    to_number = models.CharField(max_length=32)
    body = models.TextField(blank=True, default='')
    status = models.CharField(max_length=20, choices=SmsStatus.choices, default=SmsStatus.SENT)
    sent_at = models.DateTimeField(default=timezone.now)
    delivered_at = models.DateTimeField(null=True, blank=True)
    media_urls = models.JSONField(default=list, blank=True)

    class Meta:
        ordering = ['-sent_at']
        indexes = [
            models.Index(fields=['user', '-sent_at'], name='core_smsmes_user_id_6e0f52_idx'),
        ]

    def __str__(self):
        return f"SMS {self.direction}: {self.from_number} → {self.to_number}"


class Voicemail(models.Model):
    """Recorded message left after the greeting"""
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='voicemails',
    )
    call = models.OneToOneField(
        Call,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='voicemail',
        help_text="Originating call; kept as a weak reference"
    )
    from_number = models.CharField(max_length=32)
    to_number = models.CharField(max_length=32)
    duration = models.PositiveIntegerField(default=0, help_text="Recording length in seconds")
    recording_url = models.URLField(max_length=1000)
    transcription = models.TextField(null=True, blank=True)
    is_new = models.BooleanField(default=True)
    notes = models.TextField(blank=True, default='')
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return f"Voicemail from {self.from_number} ({'new' if self.is_new else 'read'})"


class SmsTemplate(models.Model):
    """Reusable SMS body with {{variable}} placeholders"""
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='sms_templates',
        null=True,
        blank=True,
        help_text="Owner; empty for system-wide templates"
    )
    name = models.CharField(max_length=255)
    content = models.CharField(max_length=1600, help_text="Up to ten concatenated SMS segments")
    tags = models.JSONField(default=list, blank=True)
    is_global = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-updated_at']

    def __str__(self):
        return self.name


class SmsAutomation(models.Model):
    """Trigger conditions and actions evaluated against call, SMS, time and availability events"""
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='sms_automations',
    )
    name = models.CharField(max_length=255)
    description = models.TextField(blank=True, default='')
    is_active = models.BooleanField(default=True)
    phone_number = models.CharField(
        max_length=32,
        db_index=True,
        help_text="Telnyx number this automation listens on and sends from"
    )
    conditions = models.JSONField(
        default=list,
        blank=True,
        help_text="List of {type, parameters}; any matching condition triggers the automation"
    )
    actions = models.JSONField(
        default=list,
        blank=True,
        help_text="List of {type, parameters} executed in order"
    )

    # Trigger statistics: counted when conditions match
    times_triggered = models.PositiveIntegerField(default=0)
    last_triggered = models.DateTimeField(null=True, blank=True)
    # Outcome statistics: counted per executed action
    success_count = models.PositiveIntegerField(default=0)
    error_count = models.PositiveIntegerField(default=0)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-updated_at']
        indexes = [
            models.Index(fields=['is_active', 'phone_number'], name='core_smsaut_is_acti_9c4d17_idx'),
        ]

    def __str__(self):
        return f"{self.name} ({'active' if self.is_active else 'inactive'})"

    def condition_types(self):
        return {c.get('type') for c in (self.conditions or []) if isinstance(c, dict)}


class ScheduledAction(models.Model):
    """Delayed automation action persisted until it is due"""
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    automation = models.ForeignKey(
        SmsAutomation,
        on_delete=models.CASCADE,
        related_name='scheduled_actions',
    )
    action = models.JSONField(help_text="Action definition copied at trigger time")
    context = models.JSONField(default=dict, help_text="Serializable trigger context")
    due_at = models.DateTimeField(db_index=True)
    status = models.CharField(
        max_length=20,
        choices=ScheduledActionStatus.choices,
        default=ScheduledActionStatus.PENDING,
    )
    executed_at = models.DateTimeField(null=True, blank=True)
    result = models.JSONField(default=dict, blank=True)
    error = models.TextField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['due_at']
        indexes = [
            models.Index(fields=['status', 'due_at'], name='core_schedu_status_0e8b3a_idx'),
        ]

    def __str__(self):
        return f"{self.action.get('type')} for {self.automation_id} at {self.due_at} ({self.status})"


class TelnyxAccount(models.Model):
    """
    Runtime overrides for the Telnyx credentials in settings.

    A single row is kept. Capability clients read it into an immutable
    TelnyxConfig per use, so updating it never mutates a live client.
    """
    id = models.PositiveSmallIntegerField(primary_key=True, default=1, editable=False)
    api_key = models.CharField(max_length=255, null=True, blank=True, editable=False)
    webhook_url = models.URLField(max_length=500, null=True, blank=True)
    messaging_profile_id = models.CharField(max_length=255, null=True, blank=True)
    connection_id = models.CharField(max_length=255, null=True, blank=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = 'Telnyx account'

    def __str__(self):
        return "Telnyx account overrides"

    @classmethod
    def load(cls):
        account, _ = cls.objects.get_or_create(pk=1)
        return account
