"""
Best-effort user notifications for voicemail, SMS and missed calls.

Every channel reports ``True``/``False``; failures are logged and never
raised so a notification problem cannot break webhook handling.
"""
import logging
from typing import Any, Dict, Optional

from django.conf import settings
from django.core.mail import send_mail
from django.utils import timezone

from core.telephony.services.telnyx_client import TelnyxClient, TelnyxError

logger = logging.getLogger(__name__)


def _when(data: Dict[str, Any]) -> str:
    timestamp = data.get('timestamp') or timezone.now()
    if isinstance(timestamp, str):
        return timestamp
    return timezone.localtime(timestamp).strftime('%Y-%m-%d %H:%M')


def _compose(kind: str, data: Dict[str, Any]):
    sender = data.get('from') or 'unknown'
    if kind == 'voicemail':
        return (
            'New Voicemail',
            f"You have a new voicemail from {sender}. Duration: {data.get('duration') or 'unknown'} seconds.",
        )
    if kind == 'sms':
        text = f"You have a new SMS message from {sender}."
        if data.get('text'):
            text += f"\n\nMessage: {data['text']}"
        return 'New SMS Message', text
    if kind == 'missed_call':
        return 'Missed Call', f"You missed a call from {sender} at {_when(data)}."
    if kind == 'automation':
        return 'Automation Notification', data.get('message') or 'An automation was triggered.'
    return f'New {kind} Notification', f"You have a new notification related to {kind}."


class NotificationService:
    def __init__(self, client: Optional[TelnyxClient] = None):
        self._client = client

    @property
    def client(self) -> TelnyxClient:
        if self._client is None:
            self._client = TelnyxClient()
        return self._client

    # Channels
    def send_email(self, user, kind: str, data: Dict[str, Any]) -> bool:
        if not user.email:
            logger.info("User has no email for notification", extra={'user_id': str(user.id)})
            return False
        subject, message = _compose(kind, data)
        try:
            sent = send_mail(
                subject=subject,
                message=message,
                from_email=settings.DEFAULT_FROM_EMAIL,
                recipient_list=[user.email],
                fail_silently=False,
            )
        except Exception as e:
            logger.error(f"Error sending {kind} email to {user.email}: {e}")
            return False
        return bool(sent)

    def send_push(self, user, kind: str, data: Dict[str, Any]) -> bool:
        if not user.device_token:
            logger.info("User has no device token for push notification", extra={'user_id': str(user.id)})
            return False
        title, _ = _compose(kind, data)
        # No push gateway is wired in; the payload is logged for the mobile team
        logger.info(
            f"🔔 Push notification '{title}' for device {user.device_token[:10]}...",
            extra={'user_id': str(user.id), 'kind': kind, 'from': data.get('from')},
        )
        return True

    def send_sms(self, user, kind: str, data: Dict[str, Any]) -> bool:
        if not user.phone_number or not user.telnyx_phone_number:
            logger.info("User has no handset or Telnyx number for SMS notification", extra={'user_id': str(user.id)})
            return False
        _, message = _compose(kind, data)
        try:
            self.client.send_message(user.telnyx_phone_number, user.phone_number, message)
        except TelnyxError as e:
            logger.error(f"Error sending {kind} SMS notification: {e}", extra={'user_id': str(user.id)})
            return False
        return True

    # Events
    def notify_new_voicemail(self, user, voicemail: Dict[str, Any]) -> Dict[str, bool]:
        return {
            'email': self.send_email(user, 'voicemail', voicemail),
            'push': self.send_push(user, 'voicemail', voicemail),
        }

    def notify_new_sms(self, user, message: Dict[str, Any]) -> Dict[str, bool]:
        return {
            'email': self.send_email(user, 'sms', message),
            'push': self.send_push(user, 'sms', message),
        }

    def notify_missed_call(self, user, call: Dict[str, Any]) -> Dict[str, bool]:
        return {
            'email': self.send_email(user, 'missed_call', call),
            'push': self.send_push(user, 'missed_call', call),
        }

    def notify(self, user, method: str, message: str) -> bool:
        """Single-channel notification used by automation ``notify`` actions."""
        data = {'message': message}
        if method == 'email':
            return self.send_email(user, 'automation', data)
        if method == 'sms':
            return self.send_sms(user, 'automation', data)
        return self.send_push(user, 'automation', data)
