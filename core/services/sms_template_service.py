"""
SMS Template Rendering Service

Automation messages use a fixed table of ``{{variable}}`` placeholders that
are replaced literally. Anything that is not in the table, such as
``{{not.a.variable}}``, is left untouched.
"""
import logging
from datetime import datetime
from typing import Any, Dict, Optional

from django.utils import timezone

logger = logging.getLogger(__name__)


TEMPLATE_VARIABLES = [
    {'name': '{{user.name}}', 'description': "User's full name"},
    {'name': '{{user.firstName}}', 'description': "User's first name"},
    {'name': '{{user.email}}', 'description': "User's email address"},
    {'name': '{{user.phone}}', 'description': "User's phone number"},
    {'name': '{{date}}', 'description': 'Current date'},
    {'name': '{{time}}', 'description': 'Current time'},
    {'name': '{{day}}', 'description': 'Current day of week'},
    {'name': '{{sender}}', 'description': 'Phone number of the sender'},
    {'name': '{{message}}', 'description': 'Content of the received message'},
    {'name': '{{callType}}', 'description': 'Type of call event (incomingCall, missedCall, voicemail)'},
    {'name': '{{callDuration}}', 'description': 'Duration of the call in seconds'},
    {'name': '{{availability}}', 'description': 'Current availability status'},
]


class SmsTemplateService:
    """
    Renders SMS templates with user and trigger context.

    Context keys understood (all optional): ``from``, ``message_text``,
    ``call_event_type``, ``call_duration`` and ``availability_status``.
    """

    def build_variables(self, user=None, context: Optional[Dict[str, Any]] = None,
                        now: Optional[datetime] = None) -> Dict[str, str]:
        context = context or {}
        now = timezone.localtime(now or timezone.now())
        name = getattr(user, 'name', '') or ''
        duration = context.get('call_duration')

        return {
            '{{user.name}}': name or 'User',
            '{{user.firstName}}': name.split(' ')[0] if name else 'User',
            '{{user.email}}': getattr(user, 'email', '') or '',
            '{{user.phone}}': getattr(user, 'phone_number', '') or '',
            '{{date}}': f"{now.month}/{now.day}/{now.year}",
            '{{time}}': now.strftime('%I:%M:%S %p').lstrip('0'),
            '{{day}}': now.strftime('%A'),
            '{{sender}}': context.get('from') or '',
            '{{message}}': context.get('message_text') or '',
            '{{callType}}': context.get('call_event_type') or '',
            '{{callDuration}}': str(duration) if duration not in (None, '') else '0',
            '{{availability}}': context.get('availability_status') or '',
        }

    def render(self, content: str, user=None, context: Optional[Dict[str, Any]] = None,
               now: Optional[datetime] = None) -> str:
        """Return ``content`` with known placeholders replaced, or unchanged on error."""
        if not content or not isinstance(content, str):
            return content or ""

        try:
            rendered = content
            for placeholder, value in self.build_variables(user, context, now).items():
                rendered = rendered.replace(placeholder, value)
        except Exception as e:
            logger.error(
                f"Error rendering SMS template: {e}",
                extra={'template_length': len(content)},
            )
            return content

        return rendered


# Global service instance
sms_template_service = SmsTemplateService()


def render_sms_template(content: str, user=None, context: Optional[Dict[str, Any]] = None) -> str:
    return sms_template_service.render(content, user, context)
