from .availability import is_available
from .calendar_sync import CalendarSyncService
from .google_calendar import GoogleCalendarService
from .microsoft_calendar import MicrosoftCalendarService
from .notification_service import NotificationService
from .sms_automation import SmsAutomationService
