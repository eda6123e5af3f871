import logging
from typing import Dict, Optional
from urllib.parse import quote

from django.conf import settings

from core.telephony.services.telnyx_client import TelnyxClient, TelnyxError

logger = logging.getLogger(__name__)

RECORDING_OPTIONS = {'format': 'mp3', 'channels': 'single', 'play_beep': True}


def default_greeting_url(user) -> str:
    """Name-based greeting hosted next to the unavailable prompt."""
    first_name = user.name.split(' ')[0] if user.name else ''
    return f"{settings.VOICEMAIL_GREETING_BASE_URL}{quote(f'{first_name} Voicemail.mp3')}"


def greeting_url_for(user) -> str:
    return user.voicemail_greeting_url or default_greeting_url(user)


def send_to_voicemail(call_control_id: str, user, client: Optional[TelnyxClient] = None) -> Dict[str, str]:
    """
    Play the user's greeting and start recording.

    When the audio greeting cannot be played the text greeting is spoken
    instead and recording starts right away; otherwise recording is started
    by a Celery task shortly after playback begins.
    """
    from core.tasks import start_voicemail_recording

    client = client or TelnyxClient()
    audio_url = greeting_url_for(user)

    try:
        client.play_audio(call_control_id, audio_url)
    except TelnyxError as audio_error:
        logger.warning(
            f"Error playing audio greeting, falling back to text: {audio_error}",
            extra={'call_control_id': call_control_id, 'audio_url': audio_url},
        )
        client.speak(call_control_id, user.voicemail_greeting, voice='female', language='en-US')
        client.start_recording(call_control_id, **RECORDING_OPTIONS)
        return {'action': 'voicemail'}

    start_voicemail_recording.apply_async(
        args=[call_control_id],
        countdown=settings.VOICEMAIL_RECORDING_DELAY_SECONDS,
    )
    return {'action': 'voicemail'}
