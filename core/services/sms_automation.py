"""
SMS automation engine.

Automations listen on a Telnyx number and fire on inbound SMS, call events,
a scheduled time of day or a change in the owner's availability. A fired
automation runs its actions in order; actions with a delay are persisted as
``ScheduledAction`` rows and executed later by Celery.

Statistics are kept in two groups: ``times_triggered``/``last_triggered``
move when the conditions match, ``success_count``/``error_count`` move once
per action that actually succeeded or failed (inline or deferred).
"""
import logging
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional

from django.db.models import F
from django.utils import timezone

from core.models import (
    ActionType, CallDirection, ConditionType, ScheduledAction, ScheduledActionStatus,
    SmsAutomation, SmsMessage, SmsStatus, SmsTemplate, User,
)
from core.services.availability import weekday_name
from core.services.notification_service import NotificationService
from core.services.sms_template_service import sms_template_service
from core.telephony.services.telnyx_client import TelnyxClient

logger = logging.getLogger(__name__)

CALL_EVENT_CONDITIONS = {
    'call.initiated': ConditionType.INCOMING_CALL.value,
    'call.hangup': ConditionType.MISSED_CALL.value,
    'call.recording.saved': ConditionType.VOICEMAIL.value,
}

DELAY_UNITS = {
    'minutes': timedelta(minutes=1),
    'hours': timedelta(hours=1),
    'days': timedelta(days=1),
}


class ActionError(Exception):
    pass


def delay_for(action: Dict[str, Any]) -> Optional[timedelta]:
    """Delay configured on an action, or None when it runs immediately."""
    delay = (action.get('parameters') or {}).get('delay') or {}
    try:
        value = float(delay.get('value') or 0)
    except (TypeError, ValueError):
        return None
    if value <= 0:
        return None
    return DELAY_UNITS.get(delay.get('unit') or 'minutes', DELAY_UNITS['minutes']) * value


def _conditions(automation: SmsAutomation) -> List[Dict[str, Any]]:
    return [c for c in (automation.conditions or []) if isinstance(c, dict)]


def matches_sms(automation: SmsAutomation, text: str) -> bool:
    """incomingSms always matches; keywordSms needs a case-insensitive substring hit."""
    lowered = (text or '').lower()
    for condition in _conditions(automation):
        if condition.get('type') == ConditionType.INCOMING_SMS:
            return True
        if condition.get('type') == ConditionType.KEYWORD_SMS:
            keywords = (condition.get('parameters') or {}).get('keywords') or []
            if any(str(k).lower() in lowered for k in keywords if k):
                return True
    return False


def matches_condition_type(automation: SmsAutomation, condition_type: str) -> bool:
    return any(c.get('type') == condition_type for c in _conditions(automation))


def matches_schedule(automation: SmsAutomation, time_now: str, day: str) -> bool:
    for condition in _conditions(automation):
        if condition.get('type') != ConditionType.SCHEDULED_TIME:
            continue
        params = condition.get('parameters') or {}
        days = [str(d).lower() for d in params.get('daysOfWeek') or []]
        if params.get('time') == time_now and day in days:
            return True
    return False


def matches_availability(automation: SmsAutomation, status: str) -> bool:
    for condition in _conditions(automation):
        if condition.get('type') != ConditionType.AVAILABILITY:
            continue
        wanted = (condition.get('parameters') or {}).get('availabilityStatus')
        if wanted in (status, 'any'):
            return True
    return False


class SmsAutomationService:
    def __init__(self, client: Optional[TelnyxClient] = None, notifier: Optional[NotificationService] = None):
        self._client = client
        self._notifier = notifier

    @property
    def client(self) -> TelnyxClient:
        if self._client is None:
            self._client = TelnyxClient()
        return self._client

    @property
    def notifier(self) -> NotificationService:
        if self._notifier is None:
            self._notifier = NotificationService(client=self._client)
        return self._notifier

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------
    def process_incoming_sms(self, to: str, from_: str, text: str) -> Dict[str, Any]:
        automations = self._active_for_number(to)
        candidates = [
            a for a in automations
            if a.condition_types() & {ConditionType.INCOMING_SMS, ConditionType.KEYWORD_SMS}
        ]
        if not candidates:
            return {'processed': False, 'reason': 'No automations configured for this number'}

        matched = [a for a in candidates if matches_sms(a, text)]
        context = {'from': from_, 'to': to, 'message_text': text}
        return self._trigger(matched, context)

    def process_call_event(self, to: str, from_: str, event_type: str, hangup_cause: Optional[str] = None,
                           is_voicemail: bool = False, duration: Optional[int] = None) -> Dict[str, Any]:
        condition_type = CALL_EVENT_CONDITIONS.get(event_type)
        if condition_type == ConditionType.MISSED_CALL and hangup_cause != 'unanswered':
            condition_type = None
        if condition_type == ConditionType.VOICEMAIL and not is_voicemail:
            condition_type = None
        if condition_type is None:
            return {'processed': False, 'reason': 'Event type does not match any automation conditions'}

        matched = [a for a in self._active_for_number(to) if matches_condition_type(a, condition_type)]
        if not matched:
            return {'processed': False, 'reason': f'No automations configured for {condition_type}'}

        context = {
            'from': from_,
            'to': to,
            'call_event_type': condition_type,
            'call_duration': duration,
        }
        return self._trigger(matched, context)

    def process_scheduled_automations(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Fire scheduledTime automations for the current minute; missed minutes are not replayed."""
        now = timezone.localtime(now or timezone.now())
        time_now = now.strftime('%H:%M')
        day = weekday_name(now)

        automations = SmsAutomation.objects.filter(is_active=True).select_related('user')
        matched = [a for a in automations if matches_schedule(a, time_now, day)]
        if not matched:
            return {'processed': False, 'reason': 'No scheduled automations for this time'}

        context = {'scheduled_time': time_now, 'day_of_week': day}
        return self._trigger(matched, context, now=now)

    def process_availability_change(self, user_id, is_available: bool) -> Dict[str, Any]:
        user = User.objects.filter(pk=user_id).first()
        if not user or not user.telnyx_phone_number:
            return {'processed': False, 'reason': 'User not found or has no phone number'}

        status = 'available' if is_available else 'unavailable'
        matched = [
            a for a in self._active_for_number(user.telnyx_phone_number)
            if matches_availability(a, status)
        ]
        if not matched:
            return {'processed': False, 'reason': f'No automations configured for {status} status'}

        context = {'availability_status': status, 'user_id': str(user.id)}
        return self._trigger(matched, context)

    # ------------------------------------------------------------------
    # Dry run
    # ------------------------------------------------------------------
    def dry_run(self, automation: SmsAutomation, event: Dict[str, Any]) -> Dict[str, Any]:
        """Evaluate ``automation`` against a sample event without sending anything."""
        event_type = event.get('type')
        text = event.get('text') or ''
        if event_type in (ConditionType.INCOMING_SMS, ConditionType.KEYWORD_SMS):
            matched = matches_sms(automation, text)
        elif event_type == ConditionType.SCHEDULED_TIME:
            now = timezone.localtime()
            matched = matches_schedule(
                automation, event.get('time') or now.strftime('%H:%M'), (event.get('day') or weekday_name(now)).lower()
            )
        elif event_type == ConditionType.AVAILABILITY:
            matched = matches_availability(automation, event.get('availabilityStatus') or 'available')
        else:
            matched = matches_condition_type(automation, event_type)

        context = {
            'from': event.get('from') or '',
            'to': automation.phone_number,
            'message_text': text,
            'call_event_type': event_type if event_type in CALL_EVENT_CONDITIONS.values() else '',
            'call_duration': event.get('duration'),
            'availability_status': event.get('availabilityStatus') or '',
        }
        actions = []
        for action in automation.actions or []:
            preview = {'type': action.get('type')}
            delay = delay_for(action)
            if delay:
                preview['delay_seconds'] = int(delay.total_seconds())
            if action.get('type') == ActionType.SEND_SMS:
                try:
                    preview['message'] = self._message_for(action, automation.user, context)
                except ActionError as e:
                    preview['error'] = str(e)
            actions.append(preview)
        return {'matched': matched, 'actions': actions}

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------
    def _active_for_number(self, phone_number: str) -> List[SmsAutomation]:
        return list(
            SmsAutomation.objects.filter(is_active=True, phone_number=phone_number).select_related('user')
        )

    def _trigger(self, automations: Iterable[SmsAutomation], context: Dict[str, Any],
                 now: Optional[datetime] = None) -> Dict[str, Any]:
        triggered = []
        for automation in automations:
            SmsAutomation.objects.filter(pk=automation.pk).update(
                times_triggered=F('times_triggered') + 1,
                last_triggered=now or timezone.now(),
            )
            run_context = {**context, 'automation_id': str(automation.id), 'automation_name': automation.name}
            results = self.execute_actions(automation, run_context)
            self._count_outcomes(automation, results)
            triggered.append(automation.name)
            logger.info(
                f"🤖 Automation '{automation.name}' triggered",
                extra={'automation_id': str(automation.id), 'results': results},
            )

        return {
            'processed': len(triggered) > 0,
            'triggered_automations': triggered,
            'total': len(triggered),
        }

    def execute_actions(self, automation: SmsAutomation, context: Dict[str, Any]) -> List[Dict[str, Any]]:
        results = []
        for action in automation.actions or []:
            if not isinstance(action, dict):
                continue
            delay = delay_for(action)
            if delay:
                results.append(self.schedule_action(automation, action, context, delay))
            else:
                results.append(self.execute_action(automation, action, context))
        return results

    def schedule_action(self, automation: SmsAutomation, action: Dict[str, Any],
                        context: Dict[str, Any], delay: timedelta) -> Dict[str, Any]:
        from core.tasks import run_scheduled_action

        scheduled = ScheduledAction.objects.create(
            automation=automation,
            action=action,
            context=context,
            due_at=timezone.now() + delay,
        )
        run_scheduled_action.apply_async(args=[str(scheduled.id)], eta=scheduled.due_at)

        delay_conf = (action.get('parameters') or {}).get('delay') or {}
        return {
            'type': action.get('type'),
            'status': 'scheduled',
            'delay': f"{delay_conf.get('value')} {delay_conf.get('unit') or 'minutes'}",
            'scheduled_action_id': str(scheduled.id),
        }

    def execute_action(self, automation: SmsAutomation, action: Dict[str, Any],
                       context: Dict[str, Any]) -> Dict[str, Any]:
        action_type = action.get('type')
        try:
            if action_type == ActionType.SEND_SMS:
                return self._send_sms(automation, action, context)
            if action_type == ActionType.NOTIFY:
                return self._notify(automation, action, context)
        except Exception as e:
            logger.error(
                f"Error executing {action_type} action: {e}",
                extra={'automation_id': str(automation.id), 'action_type': action_type},
            )
            return {'type': action_type, 'status': 'error', 'error': str(e)}

        return {'type': action_type, 'status': 'skipped', 'reason': 'Action type not implemented'}

    def _message_for(self, action: Dict[str, Any], user, context: Dict[str, Any]) -> str:
        params = action.get('parameters') or {}
        if params.get('template'):
            template = SmsTemplate.objects.filter(pk=params['template']).first()
            if template is None:
                raise ActionError('SMS template not found')
            return sms_template_service.render(template.content, user, context)
        if params.get('message'):
            # Literal messages are sent verbatim; only templates are rendered
            return params['message']
        raise ActionError('No template or message provided for SMS action')

    def _send_sms(self, automation: SmsAutomation, action: Dict[str, Any], context: Dict[str, Any]) -> Dict[str, Any]:
        user = automation.user
        text = self._message_for(action, user, context)
        from_number = context.get('to') or user.telnyx_phone_number
        to_number = context.get('from') or (action.get('parameters') or {}).get('to')
        if not from_number or not to_number:
            raise ActionError('Missing required to/from phone numbers')

        message = self.client.send_message(from_number, to_number, text)
        self._record_outbound(user, message, from_number, to_number, text)
        return {
            'type': ActionType.SEND_SMS.value,
            'status': 'success',
            'message_id': message.get('id'),
            'to': to_number,
            'from': from_number,
        }

    def _record_outbound(self, user, message: Dict[str, Any], from_number: str, to_number: str, text: str) -> None:
        SmsMessage.objects.create(
            user=user,
            telnyx_message_id=message.get('id') or None,
            direction=CallDirection.OUTBOUND,
            from_number=from_number,
            to_number=to_number,
            body=text,
            status=SmsStatus.SENT,
        )

    def _notify(self, automation: SmsAutomation, action: Dict[str, Any], context: Dict[str, Any]) -> Dict[str, Any]:
        params = action.get('parameters') or {}
        method = params.get('notifyMethod') or 'app'
        message = params.get('message') or f'Automation "{automation.name}" was triggered'
        message = sms_template_service.render(message, automation.user, context)

        recipients = [automation.user]
        notify_users = params.get('notifyUsers') or []
        if notify_users:
            recipients += list(User.objects.filter(pk__in=notify_users).exclude(pk=automation.user_id))

        delivered = [self.notifier.notify(user, method, message) for user in recipients]
        return {
            'type': ActionType.NOTIFY.value,
            'status': 'success',
            'notify_method': method,
            'delivered': sum(1 for d in delivered if d),
        }

    def _count_outcomes(self, automation: SmsAutomation, results: List[Dict[str, Any]]) -> None:
        successes = sum(1 for r in results if r.get('status') == 'success')
        errors = sum(1 for r in results if r.get('status') == 'error')
        if successes or errors:
            SmsAutomation.objects.filter(pk=automation.pk).update(
                success_count=F('success_count') + successes,
                error_count=F('error_count') + errors,
            )

    # ------------------------------------------------------------------
    # Deferred actions
    # ------------------------------------------------------------------
    def run_scheduled_action(self, scheduled: ScheduledAction, now: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Execute a due, pending ``ScheduledAction``. The caller holds the row lock.

        The owning automation is re-read so that one deactivated during the
        delay window does not send anything.
        """
        now = now or timezone.now()
        if scheduled.status != ScheduledActionStatus.PENDING:
            return {'status': 'ignored', 'reason': f'Scheduled action already {scheduled.status}'}
        if scheduled.due_at > now:
            return {'status': 'not_due', 'due_at': scheduled.due_at.isoformat()}

        automation = SmsAutomation.objects.select_related('user').filter(pk=scheduled.automation_id).first()
        if automation is None or not automation.is_active:
            scheduled.status = ScheduledActionStatus.SKIPPED
            scheduled.executed_at = now
            scheduled.result = {'reason': 'Automation is no longer active'}
            scheduled.save(update_fields=['status', 'executed_at', 'result'])
            logger.info(
                "Automation is no longer active, skipping delayed action",
                extra={'automation_id': str(scheduled.automation_id), 'scheduled_action_id': str(scheduled.id)},
            )
            return {'status': 'skipped', 'reason': 'Automation is no longer active'}

        result = self.execute_action(automation, scheduled.action, scheduled.context or {})
        outcome = result.get('status')
        if outcome == 'success':
            scheduled.status = ScheduledActionStatus.COMPLETED
        elif outcome == 'error':
            scheduled.status = ScheduledActionStatus.FAILED
            scheduled.error = result.get('error')
        else:
            scheduled.status = ScheduledActionStatus.SKIPPED
        scheduled.executed_at = now
        scheduled.result = result
        scheduled.save(update_fields=['status', 'executed_at', 'result', 'error'])
        self._count_outcomes(automation, [result])
        return result
