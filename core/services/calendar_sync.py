"""
Calendar synchronisation: pulls upcoming events from the user's provider,
replaces the cached ``CalendarEvent`` rows and reports availability changes
so availability automations can fire.
"""
import logging
from datetime import timedelta
from typing import Any, Dict, List, Optional

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from core.models import CalendarEvent, CalendarIntegration, CalendarProvider
from core.services.availability import is_available
from core.services.calendar_provider import (
    CalendarEventData, CalendarSyncError, calendly_user_uri, fetch_events,
)
from core.services.google_calendar import GoogleOAuthService
from core.services.microsoft_calendar import MicrosoftOAuthService, store_tokens

logger = logging.getLogger(__name__)

EVENT_SETTINGS_FIELDS = {'make_unavailable', 'title', 'status'}


def _excluded(event: CalendarEventData, keywords: List[str]) -> bool:
    title = (event.title or '').lower()
    return any(str(k).lower() in title for k in keywords if k)


class CalendarSyncService:

    def get_integration(self, user) -> CalendarIntegration:
        integration, _ = CalendarIntegration.objects.get_or_create(user=user)
        return integration

    # ------------------------------------------------------------------
    # Sync
    # ------------------------------------------------------------------
    def sync_user_calendar(self, user) -> Dict[str, Any]:
        """
        Fetch the next week of events and replace the user's cached events.

        Raises ``CalendarSyncError`` when the integration is disabled or the
        provider fails; the error is also stored on the integration.
        """
        integration = self.get_integration(user)
        if not integration.enabled or not integration.provider:
            raise CalendarSyncError('Calendar integration not enabled for this user')

        was_available = is_available(user)
        now = timezone.now()
        window_end = now + timedelta(days=settings.CALENDAR_SYNC_WINDOW_DAYS)

        try:
            fetched = fetch_events(integration, now, window_end)
        except CalendarSyncError as e:
            integration.last_sync_error = str(e)
            integration.save(update_fields=['last_sync_error', 'updated_at'])
            logger.error(
                f"Calendar sync failed: {e}",
                extra={'user_id': str(user.id), 'provider': integration.provider},
            )
            raise

        keywords = integration.exclude_event_types or []
        events = [e for e in fetched if not _excluded(e, keywords)]
        stored = self._replace_events(user, events)

        integration.last_sync_time = timezone.now()
        integration.last_sync_error = None
        integration.save(update_fields=['last_sync_time', 'last_sync_error', 'updated_at'])

        now_available = is_available(user)
        logger.info(
            f"📅 Synced {stored} calendar events",
            extra={'user_id': str(user.id), 'provider': integration.provider, 'excluded': len(fetched) - len(events)},
        )
        return {
            'synced': stored,
            'excluded': len(fetched) - len(events),
            'availability_changed': was_available != now_available,
            'is_available': now_available,
        }

    @transaction.atomic
    def _replace_events(self, user, events: List[CalendarEventData]) -> int:
        # Keep per-event overrides made through update_event_settings
        overrides = dict(
            CalendarEvent.objects.filter(user=user, make_unavailable=False).values_list('event_id', 'make_unavailable')
        )
        CalendarEvent.objects.filter(user=user).delete()

        seen = set()
        rows = []
        for event in events:
            if event.event_id in seen:
                continue
            seen.add(event.event_id)
            rows.append(CalendarEvent(
                user=user,
                event_id=event.event_id,
                title=event.title[:500],
                start_time=event.start_time,
                end_time=event.end_time,
                all_day=event.all_day,
                recurrence=event.recurrence,
                status=event.status,
                make_unavailable=overrides.get(event.event_id, event.make_unavailable),
            ))
        CalendarEvent.objects.bulk_create(rows)
        return len(rows)

    # ------------------------------------------------------------------
    # Connect / disconnect
    # ------------------------------------------------------------------
    def _enable(self, integration: CalendarIntegration, provider: str, **fields) -> CalendarIntegration:
        integration.enabled = True
        integration.provider = provider
        integration.last_sync_error = None
        for name, value in fields.items():
            setattr(integration, name, value)
        integration.save()
        return integration

    def connect_google(self, user, code: str) -> CalendarIntegration:
        try:
            tokens = GoogleOAuthService.exchange_code_for_tokens(code)
        except Exception as e:
            # oauthlib raises a wide range of error classes for bad codes
            logger.error(f"Google code exchange failed: {e}")
            raise CalendarSyncError(f"Failed to connect Google Calendar: {e}") from e
        return self._enable(
            self.get_integration(user),
            CalendarProvider.GOOGLE,
            access_token=tokens['access_token'],
            refresh_token=tokens['refresh_token'],
            token_expires_at=tokens['expires_at'],
        )

    def connect_microsoft(self, user, code: str, provider: str = CalendarProvider.MICROSOFT) -> CalendarIntegration:
        token = MicrosoftOAuthService.exchange_code_for_tokens(code)
        integration = self.get_integration(user)
        store_tokens(integration, token)
        return self._enable(integration, provider)

    def connect_ical(self, user, ical_url: str) -> CalendarIntegration:
        return self._enable(self.get_integration(user), CalendarProvider.ICAL, ical_url=ical_url)

    def connect_caldav(self, user, caldav_url: str, username: str, password: str,
                       provider: str = CalendarProvider.CALDAV) -> CalendarIntegration:
        return self._enable(
            self.get_integration(user),
            provider,
            caldav_url=caldav_url,
            caldav_username=username,
            caldav_password=password,
        )

    def connect_calendly(self, user, api_key: str) -> CalendarIntegration:
        calendly_user_uri(api_key)
        return self._enable(self.get_integration(user), CalendarProvider.CALENDLY, api_key=api_key)

    @transaction.atomic
    def disconnect_calendar(self, user) -> CalendarIntegration:
        integration = self.get_integration(user)
        integration.enabled = False
        integration.provider = None
        integration.access_token = None
        integration.refresh_token = None
        integration.token_expires_at = None
        integration.api_key = None
        integration.caldav_password = None
        integration.save()
        CalendarEvent.objects.filter(user=user).delete()
        return integration

    def update_event_settings(self, user, event_id: str, **changes) -> Optional[CalendarEvent]:
        """Adjust one cached event; returns None when the user has no such event."""
        event = CalendarEvent.objects.filter(user=user, event_id=event_id).first()
        if event is None:
            return None
        fields = [name for name in changes if name in EVENT_SETTINGS_FIELDS]
        for name in fields:
            setattr(event, name, changes[name])
        if fields:
            event.save(update_fields=fields)
        return event
