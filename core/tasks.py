"""
Celery tasks for Switchboard.

Periodic work (wired in ``switchboard/celery.py``):
1.  ``process_scheduled_automations`` fires scheduledTime automations once a
    minute. It runs as a ``SingletonTask``: a Redis lock held for the length
    of the run makes a tick that overlaps a still-running one skip. The lock
    is released when the run ends, so it does not deduplicate minutes.
2.  ``dispatch_due_scheduled_actions`` re-arms delayed automation actions that
    are due but were never executed (worker restart, lost message).
3.  ``sync_due_calendars`` and ``refresh_google_calendar_tokens`` keep the
    calendar cache fresh.

Everything else is enqueued by webhook handling and the API.
"""
import logging
from datetime import timedelta

import redis
from celery import Task, shared_task
from django.conf import settings
from django.utils import timezone

from core.models import (
    CalendarIntegration, CalendarProvider, ScheduledAction, ScheduledActionStatus, User,
)

# ─────────────────────────────
# Redis client for locking
# ─────────────────────────────
redis_client = redis.StrictRedis.from_url(settings.REDIS_URL)

# ─────────────────────────────
# Logging
# ─────────────────────────────
logger = logging.getLogger(__name__)


# ─────────────────────────────
# Singleton (distributed‑lock) Celery base class
# ─────────────────────────────
class SingletonTask(Task):
    """
    Ensures that only **one** instance of the task executes cluster‑wide.

    • Acquires a Redis lock `<lock:<task‑name>>` with TTL = `lock_ttl` seconds.
    • If the lock cannot be acquired, the task aborts immediately.
    • The lock is released in `finally`; a crashed worker frees it after the TTL.
    """

    # seconds – must be >= the worst‑case runtime of the task body
    lock_ttl = 55

    def __call__(self, *args, **kwargs):
        lock_key = f"lock:{self.name}"
        have_lock = redis_client.set(lock_key, "1", nx=True, ex=self.lock_ttl)
        if not have_lock:
            logger.warning(
                f"🛑 {self.name}: another instance already holds the Redis lock; skipping."
            )
            return {
                "success": False,
                "error": "singleton_lock_busy",
                "message": "Another task instance is still running.",
            }

        try:
            return self.run(*args, **kwargs)
        finally:
            try:
                redis_client.delete(lock_key)
            except redis.RedisError as lock_release_err:
                logger.error(
                    f"🔓 {self.name}: failed to release Redis lock – {lock_release_err}"
                )


# ─────────────────────────────
# 1) SMS automation engine
# ─────────────────────────────
@shared_task(bind=True, base=SingletonTask, name="core.tasks.process_scheduled_automations")
def process_scheduled_automations(self):
    """Fire scheduledTime automations for the current minute."""
    from core.services.sms_automation import SmsAutomationService

    result = SmsAutomationService().process_scheduled_automations()
    if result.get("processed"):
        logger.info(f"⏰ Scheduled automations triggered: {result['total']}")
    return result


@shared_task(bind=True, name="core.tasks.process_sms_automations")
def process_sms_automations(self, to, from_, text):
    from core.services.sms_automation import SmsAutomationService

    result = SmsAutomationService().process_incoming_sms(to, from_, text)
    if result.get("processed"):
        logger.info(f"Processed SMS automations: {result['total']} triggered", extra={"to": to})
    return result


@shared_task(bind=True, name="core.tasks.process_call_automations")
def process_call_automations(self, to, from_, event_type, hangup_cause=None, is_voicemail=False, duration=None):
    from core.services.sms_automation import SmsAutomationService

    result = SmsAutomationService().process_call_event(
        to, from_, event_type,
        hangup_cause=hangup_cause, is_voicemail=is_voicemail, duration=duration,
    )
    if result.get("processed"):
        logger.info(f"Processed call automations: {result['total']} triggered", extra={"event_type": event_type})
    return result


@shared_task(bind=True, name="core.tasks.process_availability_change")
def process_availability_change(self, user_id, is_available):
    from core.services.sms_automation import SmsAutomationService

    result = SmsAutomationService().process_availability_change(user_id, is_available)
    if result.get("processed"):
        logger.info(f"Processed availability automations: {result['total']} triggered", extra={"user_id": user_id})
    return result


# ─────────────────────────────
# 2) Delayed automation actions
# ─────────────────────────────
@shared_task(bind=True, name="core.tasks.run_scheduled_action")
def run_scheduled_action(self, scheduled_action_id):
    """
    Execute one delayed automation action.

    Armed with ``eta=due_at`` when the action is scheduled and re-armed by
    ``dispatch_due_scheduled_actions``. The row lock plus the status check
    make a second delivery a no-op; an early delivery leaves the row pending.
    """
    from core.services.sms_automation import SmsAutomationService
    from core.telephony.repositories.call_repo import lock_scheduled_action

    with lock_scheduled_action(scheduled_action_id) as scheduled:
        if scheduled is None:
            logger.warning(f"Scheduled action {scheduled_action_id} no longer exists")
            return {"status": "missing", "scheduled_action_id": scheduled_action_id}

        result = SmsAutomationService().run_scheduled_action(scheduled)

    logger.info(
        f"⏱️ Scheduled action {scheduled_action_id}: {result.get('status')}",
        extra={"scheduled_action_id": scheduled_action_id, "automation_id": str(scheduled.automation_id)},
    )
    return result


@shared_task(bind=True, name="core.tasks.dispatch_due_scheduled_actions")
def dispatch_due_scheduled_actions(self, batch_size=500):
    """Re-arm pending actions whose due time has passed."""
    due_ids = list(
        ScheduledAction.objects.filter(
            status=ScheduledActionStatus.PENDING,
            due_at__lte=timezone.now(),
        ).order_by("due_at").values_list("id", flat=True)[:batch_size]
    )
    for scheduled_id in due_ids:
        run_scheduled_action.delay(str(scheduled_id))

    if due_ids:
        logger.info(f"🔁 Re-armed {len(due_ids)} due scheduled actions")
    return {"dispatched": len(due_ids)}


# ─────────────────────────────
# 3) Telephony side channels
# ─────────────────────────────
@shared_task(bind=True, name="core.tasks.start_voicemail_recording")
def start_voicemail_recording(self, call_control_id):
    """Start the voicemail recording once the greeting is playing."""
    from core.telephony.services.telnyx_client import TelnyxClient, TelnyxError
    from core.telephony.services.voicemail_recorder import RECORDING_OPTIONS

    try:
        TelnyxClient().start_recording(call_control_id, **RECORDING_OPTIONS)
    except TelnyxError as e:
        logger.error(f"❌ Failed to start voicemail recording: {e}", extra={"call_control_id": call_control_id})
        return {"success": False, "error": str(e)}
    return {"success": True, "call_control_id": call_control_id}


@shared_task(bind=True, name="core.tasks.send_notification")
def send_notification(self, user_id, kind, data):
    """Best-effort voicemail / SMS / missed-call notification."""
    from core.services.notification_service import NotificationService

    user = User.objects.filter(pk=user_id).first()
    if user is None:
        return {"success": False, "error": "user_not_found"}

    service = NotificationService()
    if kind == "voicemail":
        results = service.notify_new_voicemail(user, data)
    elif kind == "sms":
        results = service.notify_new_sms(user, data)
    elif kind == "missed_call":
        results = service.notify_missed_call(user, data)
    else:
        logger.warning(f"Unknown notification kind: {kind}")
        return {"success": False, "error": "unknown_kind"}

    logger.info(f"🔔 {kind} notification results: {results}", extra={"user_id": user_id})
    return {"success": True, "results": results}


# ─────────────────────────────
# 4) Calendar sync
# ─────────────────────────────
@shared_task(bind=True, name="core.tasks.sync_user_calendar")
def sync_user_calendar(self, user_id):
    """Sync one user's calendar and fire availability automations when the result flips."""
    from core.services.calendar_provider import CalendarSyncError
    from core.services.calendar_sync import CalendarSyncService

    user = User.objects.filter(pk=user_id).first()
    if user is None:
        return {"success": False, "error": "user_not_found"}

    try:
        result = CalendarSyncService().sync_user_calendar(user)
    except CalendarSyncError as e:
        return {"success": False, "error": str(e)}

    if result["availability_changed"]:
        process_availability_change.delay(str(user.id), result["is_available"])
    return {"success": True, **result}


@shared_task(bind=True, name="core.tasks.sync_due_calendars")
def sync_due_calendars(self):
    """Queue a sync for every enabled integration whose sync_frequency has elapsed."""
    now = timezone.now()
    queued = 0
    integrations = CalendarIntegration.objects.filter(enabled=True).exclude(provider__isnull=True)
    for integration in integrations:
        if integration.is_sync_due(now):
            sync_user_calendar.delay(str(integration.user_id))
            queued += 1

    if queued:
        logger.info(f"📅 Queued {queued} calendar syncs")
    return {"queued": queued}


@shared_task(bind=True, name="core.tasks.refresh_google_calendar_tokens")
def refresh_google_calendar_tokens(self):
    """Refresh Google tokens that expire within the next day."""
    from core.services.calendar_provider import CalendarSyncError
    from core.services.google_calendar import GoogleCalendarService

    horizon = timezone.now() + timedelta(days=1)
    integrations = CalendarIntegration.objects.filter(
        enabled=True,
        provider=CalendarProvider.GOOGLE,
        refresh_token__isnull=False,
        token_expires_at__lte=horizon,
    )

    refreshed, failed = 0, 0
    for integration in integrations:
        try:
            GoogleCalendarService(integration).refresh()
            refreshed += 1
        except CalendarSyncError as e:
            failed += 1
            integration.last_sync_error = str(e)
            integration.save(update_fields=["last_sync_error", "updated_at"])
            logger.error(f"❌ Google token refresh failed for user {integration.user_id}: {e}")

    return {"refreshed": refreshed, "failed": failed}
