"""
Inbound call routing.

An incoming call is forwarded to the user when they are available, to their
live agent when that is configured, and otherwise answered with a prompt
offering voicemail (1) or the central office number (2).
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from django.conf import settings

from core.services.availability import is_available
from core.telephony.services.telnyx_client import TelnyxClient, TelnyxError
from core.telephony.services.voicemail_recorder import send_to_voicemail

logger = logging.getLogger(__name__)

UNAVAILABLE_FLOW_STATE = 'unavailable-flow'
UNAVAILABLE_PROMPT_MESSAGE = 'Playing unavailable prompt with options: 1 for voicemail, 2 for central number'


class CallRoutingError(Exception):
    pass


@dataclass(frozen=True)
class RoutingResult:
    action: str
    detail: Dict[str, Any] = field(default_factory=dict)

    def as_dict(self) -> Dict[str, Any]:
        return {'action': self.action, **self.detail}


def _forward(client: TelnyxClient, call_control_id: str, to: str) -> None:
    client.answer(call_control_id, client_state='awaiting-transfer')
    client.transfer(
        call_control_id,
        to=to,
        timeout_secs=settings.RING_TIMEOUT_SECONDS,
        webhook_url=client.config.webhook_url,
    )


def handle_incoming_call(user, call_control_id: str, client: Optional[TelnyxClient] = None) -> RoutingResult:
    client = client or TelnyxClient()
    try:
        if is_available(user):
            _forward(client, call_control_id, user.phone_number)
            result = RoutingResult('forwarded', {'to': user.phone_number})
        elif user.route_to_live_agent and user.live_agent_number:
            _forward(client, call_control_id, user.live_agent_number)
            result = RoutingResult('routed_to_agent', {'to': user.live_agent_number})
        else:
            client.answer(call_control_id)
            client.play_audio(call_control_id, settings.UNAVAILABLE_PROMPT_URL, client_state='gathering-input')
            client.gather(
                call_control_id,
                max_digits=1,
                timeout_secs=settings.DTMF_TIMEOUT_SECONDS,
                client_state=UNAVAILABLE_FLOW_STATE,
            )
            result = RoutingResult('unavailable_prompt', {'message': UNAVAILABLE_PROMPT_MESSAGE})
    except TelnyxError as e:
        logger.error(f"Error handling incoming call: {e}", extra={'call_control_id': call_control_id})
        raise CallRoutingError(f"Failed to handle call: {e}") from e

    logger.info(
        f"📲 Incoming call routed: {result.action}",
        extra={'call_control_id': call_control_id, 'user_id': str(user.id), 'action': result.action},
    )
    return result


def handle_unavailable_dtmf(call_control_id: str, digit: Optional[str], user,
                            client: Optional[TelnyxClient] = None) -> RoutingResult:
    """'2' transfers to the central number; '1', no digit or anything else goes to voicemail."""
    client = client or TelnyxClient()
    try:
        if digit == '2':
            client.transfer(
                call_control_id,
                to=settings.CENTRAL_FORWARDING_NUMBER,
                webhook_url=client.config.webhook_url,
            )
            result = RoutingResult('forwarded_to_central', {'to': settings.CENTRAL_FORWARDING_NUMBER})
        else:
            outcome = send_to_voicemail(call_control_id, user, client=client)
            result = RoutingResult(outcome['action'])
    except TelnyxError as e:
        logger.error(f"Error handling DTMF input: {e}", extra={'call_control_id': call_control_id})
        raise CallRoutingError(f"Failed to handle DTMF input: {e}") from e

    logger.info(
        f"🔢 DTMF '{digit or ''}' handled: {result.action}",
        extra={'call_control_id': call_control_id, 'action': result.action},
    )
    return result
