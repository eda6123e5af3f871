"""
Dispatch of parsed Telnyx webhook events.

Call routing runs inline because Telnyx waits for call-control commands;
automations and notifications are handed to Celery. Every handler returns a
dict that is merged into the webhook acknowledgement.
"""
import logging
from typing import Any, Dict, Optional

from django.utils import timezone

from core.models import (
    Call, CallDirection, CallStatus, SmsMessage, SmsStatus, User, Voicemail,
)
from core.telephony.events import (
    CallAnswered, CallHangup, CallInitiated, GatherEnded, MessageFinalized,
    MessageReceived, RecordingSaved, TelnyxEvent,
)
from core.telephony.repositories.call_repo import lock_call
from core.telephony.services.call_router import (
    UNAVAILABLE_FLOW_STATE, CallRoutingError, handle_incoming_call, handle_unavailable_dtmf,
)

logger = logging.getLogger(__name__)

SETTLED_STATUSES = {CallStatus.FORWARDED, CallStatus.VOICEMAIL}


def _enqueue(task, *args, **kwargs) -> None:
    """Queue a side-channel task; a broker problem must not fail the webhook."""
    try:
        task.delay(*args, **kwargs)
    except Exception as e:
        logger.error(f"Failed to enqueue {task.name}: {e}", extra={'task': task.name})


def _user_for_number(number: str) -> Optional[User]:
    if not number:
        return None
    return User.objects.filter(telnyx_phone_number=number).first()


def handle_call_initiated(event: CallInitiated) -> Dict[str, Any]:
    from core.tasks import process_call_automations

    if not event.is_incoming:
        return {}

    user = _user_for_number(event.to_number)
    if user is None:
        logger.error(f"No user found for Telnyx number: {event.to_number}")
        return {}

    call, _ = Call.objects.get_or_create(
        external_call_id=event.call_control_id,
        defaults={
            'user': user,
            'direction': CallDirection.INBOUND,
            'from_number': event.from_number,
            'to_number': event.to_number,
            'status': CallStatus.INITIATED,
            'start_time': timezone.now(),
        },
    )

    response: Dict[str, Any] = {}
    try:
        result = handle_incoming_call(user, event.call_control_id)
    except CallRoutingError as e:
        logger.error(str(e), extra={'call_control_id': event.call_control_id})
        call.status = CallStatus.FAILED
        call.save(update_fields=['status', 'updated_at'])
        response['error'] = str(e)
    else:
        if result.action == 'voicemail':
            call.status = CallStatus.VOICEMAIL
        elif result.action in ('forwarded', 'routed_to_agent'):
            call.status = CallStatus.FORWARDED
        else:
            call.status = CallStatus.ANSWERED
        call.metadata = {**(call.metadata or {}), 'routing': result.as_dict()}
        call.save(update_fields=['status', 'metadata', 'updated_at'])
        response['action'] = result.action

    _enqueue(process_call_automations, event.to_number, event.from_number, event.event_type)
    return response


def handle_call_answered(event: CallAnswered) -> Dict[str, Any]:
    call = Call.objects.filter(external_call_id=event.call_control_id).first()
    if call is None:
        return {}
    if call.status not in SETTLED_STATUSES:
        call.status = CallStatus.ANSWERED
        call.save(update_fields=['status', 'updated_at'])
    return {}


def handle_call_hangup(event: CallHangup) -> Dict[str, Any]:
    from core.tasks import process_call_automations, send_notification

    now = timezone.now()
    call = Call.objects.select_related('user').filter(external_call_id=event.call_control_id).first()
    # Only the callee of an inbound call has missed anything
    if call is not None:
        missed_by = call.user if call.direction == CallDirection.INBOUND else None
    else:
        missed_by = _user_for_number(event.to_number)
    duration = event.duration_seconds

    if call is not None:
        if duration is None:
            duration = max(int((now - call.start_time).total_seconds()), 0)
        call.end_time = now
        call.duration = duration
        if event.unanswered:
            call.status = CallStatus.NO_ANSWER
        elif call.status not in SETTLED_STATUSES:
            call.status = CallStatus.COMPLETED
        call.save(update_fields=['end_time', 'duration', 'status', 'updated_at'])

    _enqueue(
        process_call_automations,
        event.to_number, event.from_number, event.event_type,
        hangup_cause=event.hangup_cause, duration=duration,
    )

    if event.unanswered and missed_by is not None:
        _enqueue(send_notification, str(missed_by.id), 'missed_call', {
            'from': event.from_number,
            'timestamp': now.isoformat(),
            'call_id': event.call_control_id,
        })
    return {}


def handle_recording_saved(event: RecordingSaved) -> Dict[str, Any]:
    from core.tasks import process_call_automations, send_notification

    if not event.recording_url:
        logger.error('No recording URL found in event payload', extra={'call_control_id': event.call_control_id})
        return {}

    with lock_call(event.call_control_id) as call:
        if call is None:
            logger.error(f"No call found for call control ID: {event.call_control_id}")
            return {}

        voicemail = None
        call.recording_url = event.recording_url
        if call.status == CallStatus.VOICEMAIL:
            if not Voicemail.objects.filter(call=call).exists():
                voicemail = Voicemail.objects.create(
                    user_id=call.user_id,
                    call=call,
                    from_number=call.from_number,
                    to_number=call.to_number,
                    duration=event.duration_seconds,
                    recording_url=event.recording_url,
                )
                call.voicemail_url = event.recording_url
        else:
            call.status = CallStatus.COMPLETED
        call.save(update_fields=['recording_url', 'voicemail_url', 'status', 'updated_at'])

    if voicemail is None:
        return {}

    _enqueue(
        process_call_automations,
        call.to_number, call.from_number, event.event_type,
        is_voicemail=True, duration=event.duration_seconds,
    )
    _enqueue(send_notification, str(call.user_id), 'voicemail', {
        'from': call.from_number,
        'duration': event.duration_seconds,
        'recording_url': event.recording_url,
        'timestamp': timezone.now().isoformat(),
    })
    return {'voicemail_id': str(voicemail.id)}


def handle_gather_ended(event: GatherEnded) -> Dict[str, Any]:
    if event.client_state != UNAVAILABLE_FLOW_STATE:
        return {}

    call = Call.objects.select_related('user').filter(external_call_id=event.call_control_id).first()
    user = call.user if call else _user_for_number(event.to_number)
    if user is None:
        logger.error(f"No user found for Telnyx number: {event.to_number}")
        return {}

    try:
        result = handle_unavailable_dtmf(event.call_control_id, event.digits or None, user)
    except CallRoutingError as e:
        logger.error(str(e), extra={'call_control_id': event.call_control_id})
        return {'error': str(e)}

    if call is not None:
        call.status = CallStatus.VOICEMAIL if result.action == 'voicemail' else CallStatus.FORWARDED
        call.save(update_fields=['status', 'updated_at'])
    return {'action': result.action}


def handle_message_received(event: MessageReceived) -> Dict[str, Any]:
    from core.tasks import process_sms_automations, send_notification

    user = _user_for_number(event.to_number)
    if user is None:
        logger.error(f"No user found for Telnyx number: {event.to_number}")
        return {}

    defaults = {
        'user': user,
        'direction': CallDirection.INBOUND,
        'from_number': event.from_number,
        'to_number': event.to_number,
        'body': event.text,
        'status': SmsStatus.RECEIVED,
        'media_urls': list(event.media_urls),
    }
    if event.message_id:
        sms, created = SmsMessage.objects.get_or_create(telnyx_message_id=event.message_id, defaults=defaults)
    else:
        sms, created = SmsMessage.objects.create(**defaults), True

    if not created:
        # Redelivered webhook
        return {}

    _enqueue(process_sms_automations, event.to_number, event.from_number, event.text)
    _enqueue(send_notification, str(user.id), 'sms', {
        'from': event.from_number,
        'text': event.text,
        'timestamp': sms.sent_at.isoformat(),
    })
    return {}


def handle_message_finalized(event: MessageFinalized) -> Dict[str, Any]:
    if event.status == 'delivered':
        status = SmsStatus.DELIVERED
    elif event.status in ('failed', 'rejected', 'delivery_failed', 'sending_failed'):
        status = SmsStatus.FAILED
    else:
        status = SmsStatus.SENT

    sms = SmsMessage.objects.filter(telnyx_message_id=event.message_id).first()
    if sms is None:
        logger.error(f"No SMS found for message ID: {event.message_id}")
        return {}

    sms.status = status
    if status == SmsStatus.DELIVERED:
        sms.delivered_at = timezone.now()
    sms.save(update_fields=['status', 'delivered_at'])
    return {}


HANDLERS = {
    CallInitiated: handle_call_initiated,
    CallAnswered: handle_call_answered,
    CallHangup: handle_call_hangup,
    RecordingSaved: handle_recording_saved,
    GatherEnded: handle_gather_ended,
    MessageReceived: handle_message_received,
    MessageFinalized: handle_message_finalized,
}


def dispatch_event(event: TelnyxEvent) -> Dict[str, Any]:
    handler = HANDLERS.get(type(event))
    if handler is None:
        logger.info(f"Unhandled event type: {event.event_type}")
        return {}

    logger.info(
        f"📨 Telnyx event {event.event_type}",
        extra={'event_type': event.event_type, 'call_control_id': getattr(event, 'call_control_id', None)},
    )
    return handler(event)
