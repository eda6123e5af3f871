from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator, Optional

from django.db import transaction

from core.models import Call, ScheduledAction


@contextmanager
def lock_call(external_call_id: str) -> Iterator[Optional[Call]]:
    """
    Row lock on the Call for a Telnyx call_control_id so that duplicate
    webhook deliveries do not create a second voicemail. Yields None when
    the call is unknown.
    """
    with transaction.atomic():
        call = Call.objects.select_for_update().filter(external_call_id=external_call_id).first()
        yield call


@contextmanager
def lock_scheduled_action(scheduled_action_id: str) -> Iterator[Optional[ScheduledAction]]:
    """
    Row lock on a ScheduledAction; the ETA task and the beat sweep may both
    pick up the same row.
    """
    with transaction.atomic():
        scheduled = ScheduledAction.objects.select_for_update().filter(id=scheduled_action_id).first()
        yield scheduled
