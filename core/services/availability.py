"""
Availability oracle: weekly schedule plus cached calendar events decide
whether a user can take a call right now.
"""
import logging
from datetime import datetime
from typing import Iterable, Optional

from django.utils import timezone

from core.models import CalendarEventStatus, CalendarIntegration, WEEKDAY_ORDER

logger = logging.getLogger(__name__)


def weekday_name(now: datetime) -> str:
    return WEEKDAY_ORDER[now.weekday()].value


def in_meeting(events: Iterable, now: datetime) -> bool:
    """True when a blocking, non-cancelled event covers ``now`` (inclusive)."""
    for event in events:
        if event.status == CalendarEventStatus.CANCELLED or not event.make_unavailable:
            continue
        if event.start_time <= now <= event.end_time:
            return True
    return False


def evaluate_availability(schedule: Iterable, events: Iterable, honour_events: bool, now: datetime) -> bool:
    """
    Pure availability decision.

    ``schedule`` holds objects with ``day``, ``is_available``, ``start_time``
    and ``end_time`` ("HH:MM"). ``now`` must already be in the local time zone.
    Times compare as strings, so a window such as 22:00-02:00 never matches.
    """
    if honour_events and in_meeting(events, now):
        return False

    today = weekday_name(now)
    day = next((d for d in schedule if d.day == today), None)
    if day is None or not day.is_available:
        return False

    current = now.strftime('%H:%M')
    return day.start_time <= current <= day.end_time


def is_available(user, now: Optional[datetime] = None) -> bool:
    """Availability of ``user`` at ``now`` (defaults to the current time)."""
    now = timezone.localtime(now or timezone.now())

    honour_events = False
    events = []
    # Not user.calendar_integration: the cached relation can be stale
    integration = CalendarIntegration.objects.filter(user_id=user.id).first()
    if integration and integration.enabled and integration.make_unavailable_during_events:
        honour_events = True
        events = list(
            user.calendar_events.filter(start_time__lte=now, end_time__gte=now)
        )

    schedule = list(user.availability.all())
    available = evaluate_availability(schedule, events, honour_events, now)
    logger.debug(
        "Availability evaluated",
        extra={'user_id': str(user.id), 'available': available, 'at': now.isoformat()},
    )
    return available
