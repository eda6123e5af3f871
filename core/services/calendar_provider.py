"""
Provider-agnostic calendar event fetching.

Each provider returns a list of ``CalendarEventData`` for a time window so
the sync service can store them uniformly. Google and Microsoft live in
their own modules because they also handle OAuth; the simpler feed and
API-key providers are implemented here.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import List, Optional

import caldav
import requests
from django.utils import timezone as dj_timezone
from icalendar import Calendar as iCalendar

logger = logging.getLogger(__name__)

CALENDLY_API_URL = 'https://api.calendly.com'


class CalendarSyncError(Exception):
    """A provider could not be reached or returned unusable data."""


@dataclass
class CalendarEventData:
    event_id: str
    title: str
    start_time: datetime
    end_time: datetime
    all_day: bool = False
    recurrence: Optional[str] = None
    status: str = 'confirmed'
    make_unavailable: bool = True


def normalize_status(value: Optional[str]) -> str:
    value = (value or '').lower()
    if value in ('tentative', 'cancelled'):
        return value
    if value == 'canceled':
        return 'cancelled'
    return 'confirmed'


def _parse_iso_datetime(value: str) -> datetime:
    """Parse ISO8601 strings returned by providers into aware datetimes.
    Handles trailing 'Z', date-only values and naive strings (assumed local time).
    """
    if not value:
        raise ValueError("Empty datetime string")
    if len(value) == 10 and value[4] == '-' and value[7] == '-':
        return dj_timezone.make_aware(datetime.strptime(value, "%Y-%m-%d"))
    if value.endswith('Z'):
        value = value[:-1] + '+00:00'
    # Graph returns seven fractional digits
    if '.' in value:
        head, _, tail = value.partition('.')
        digits = ''.join(c for c in tail if c.isdigit())
        offset = tail[len(digits):]
        value = f"{head}.{digits[:6]}{offset}"
    dt = datetime.fromisoformat(value)
    if dt.tzinfo is None:
        return dj_timezone.make_aware(dt)
    return dt


def _as_datetime(value) -> datetime:
    """icalendar returns either date or datetime objects."""
    if isinstance(value, datetime):
        return value if value.tzinfo else dj_timezone.make_aware(value)
    if isinstance(value, date):
        return dj_timezone.make_aware(datetime.combine(value, time.min))
    raise ValueError(f"Unsupported date value: {value!r}")


def events_from_ical(data, start: datetime, end: datetime) -> List[CalendarEventData]:
    """VEVENTs of an iCalendar document that overlap ``[start, end]``; ended events are skipped."""
    calendar = iCalendar.from_ical(data)
    events: List[CalendarEventData] = []
    for component in calendar.walk('VEVENT'):
        dtstart = component.get('dtstart')
        if dtstart is None:
            continue
        all_day = not isinstance(dtstart.dt, datetime)
        event_start = _as_datetime(dtstart.dt)
        dtend = component.get('dtend')
        if dtend is not None:
            event_end = _as_datetime(dtend.dt)
        else:
            event_end = event_start + (timedelta(days=1) if all_day else timedelta(0))

        if event_end < start or event_start > end:
            continue

        rrule = component.get('rrule')
        events.append(CalendarEventData(
            event_id=str(component.get('uid') or f"{event_start.isoformat()}-{component.get('summary', '')}"),
            title=str(component.get('summary', '')),
            start_time=event_start,
            end_time=event_end,
            all_day=all_day,
            recurrence=rrule.to_ical().decode('utf-8') if rrule is not None else None,
            status=normalize_status(str(component.get('status', ''))),
        ))
    return events


def fetch_ical_events(integration, start: datetime, end: datetime) -> List[CalendarEventData]:
    if not integration.ical_url:
        raise CalendarSyncError('No iCal URL provided')
    try:
        resp = requests.get(integration.ical_url, timeout=30)
        resp.raise_for_status()
        return events_from_ical(resp.content, start, end)
    except requests.RequestException as e:
        raise CalendarSyncError(f"Failed to fetch iCal events: {e}") from e
    except ValueError as e:
        raise CalendarSyncError(f"Invalid iCal feed: {e}") from e


def fetch_caldav_events(integration, start: datetime, end: datetime) -> List[CalendarEventData]:
    if not integration.caldav_url:
        raise CalendarSyncError('No CalDAV URL provided')
    try:
        client = caldav.DAVClient(
            url=integration.caldav_url,
            username=integration.caldav_username,
            password=integration.caldav_password,
        )
        calendars = client.principal().calendars()
        if not calendars:
            raise CalendarSyncError('No calendars found on the CalDAV server.')

        events: List[CalendarEventData] = []
        for cal in calendars:
            for item in cal.search(start=start, end=end, event=True, expand=True):
                events.extend(events_from_ical(item.data, start, end))
        return events
    except CalendarSyncError:
        raise
    except Exception as e:
        logger.error(f"CalDAV error (fetch events): {e}")
        raise CalendarSyncError(f"Failed to fetch CalDAV events: {e}") from e


def _calendly_headers(api_key: str) -> dict:
    return {
        'Authorization': f'Bearer {api_key}',
        'Content-Type': 'application/json',
    }


def calendly_user_uri(api_key: str) -> str:
    """Validate a Calendly token and return the user URI it belongs to."""
    try:
        resp = requests.get(f"{CALENDLY_API_URL}/users/me", headers=_calendly_headers(api_key), timeout=30)
        resp.raise_for_status()
        return resp.json()['resource']['uri']
    except (requests.RequestException, KeyError, ValueError) as e:
        raise CalendarSyncError(f"Invalid Calendly API key: {e}") from e


def fetch_calendly_events(integration, start: datetime, end: datetime) -> List[CalendarEventData]:
    if not integration.api_key:
        raise CalendarSyncError('No Calendly API key configured')
    user_uri = calendly_user_uri(integration.api_key)
    params = {
        'user': user_uri,
        'min_start_time': start.isoformat(),
        'max_start_time': end.isoformat(),
    }
    try:
        resp = requests.get(
            f"{CALENDLY_API_URL}/scheduled_events",
            headers=_calendly_headers(integration.api_key),
            params=params,
            timeout=30,
        )
        resp.raise_for_status()
        collection = resp.json().get('collection', [])
    except (requests.RequestException, ValueError) as e:
        raise CalendarSyncError(f"Failed to fetch Calendly events: {e}") from e

    return [
        CalendarEventData(
            event_id=item['uri'].rstrip('/').split('/')[-1],
            title=item.get('name', ''),
            start_time=_parse_iso_datetime(item['start_time']),
            end_time=_parse_iso_datetime(item['end_time']),
            status='cancelled' if item.get('status') == 'canceled' else 'confirmed',
        )
        for item in collection
    ]


def fetch_events(integration, start: datetime, end: datetime) -> List[CalendarEventData]:
    """Route to the fetcher for ``integration.provider``."""
    provider = (integration.provider or '').lower()

    if provider == 'google':
        from core.services.google_calendar import GoogleCalendarService
        return GoogleCalendarService(integration).list_events(start, end)

    if provider in ('microsoft', 'office365'):
        from core.services.microsoft_calendar import MicrosoftCalendarService
        return MicrosoftCalendarService(integration).list_events(start, end)

    if provider == 'ical':
        return fetch_ical_events(integration, start, end)

    if provider == 'caldav' or (provider == 'apple' and integration.caldav_url):
        return fetch_caldav_events(integration, start, end)

    if provider == 'calendly':
        return fetch_calendly_events(integration, start, end)

    if provider in ('apple', 'exchange'):
        # Apple without a CalDAV URL and Exchange have no fetcher
        logger.info(f"Calendar provider '{provider}' has no event fetcher; nothing synced")
        return []

    raise CalendarSyncError(f"Unsupported calendar provider: {provider or 'none'}")
