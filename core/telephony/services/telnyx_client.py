"""
Thin Telnyx v2 REST client for call control, messaging and number management.

Credentials come from an immutable ``TelnyxConfig`` resolved per use from
Django settings and the ``TelnyxAccount`` override row, so updating the
credentials through the API never mutates a client that is in use.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

import requests
from django.conf import settings

from core.models import TelnyxAccount
from core.telephony.events import encode_client_state

logger = logging.getLogger(__name__)


class TelnyxError(Exception):
    """A Telnyx request failed (network error or non-2xx response)."""

    def __init__(self, message: str, status_code: Optional[int] = None, response_body: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body


@dataclass(frozen=True)
class TelnyxConfig:
    api_key: str
    webhook_url: str
    messaging_profile_id: str
    connection_id: str
    base_url: str = "https://api.telnyx.com/v2"
    timeout: int = 30

    @classmethod
    def from_settings(cls) -> "TelnyxConfig":
        """Settings values overlaid with whatever the TelnyxAccount row overrides."""
        account = TelnyxAccount.objects.filter(pk=1).first()
        return cls(
            api_key=(account and account.api_key) or settings.TELNYX_API_KEY,
            webhook_url=(account and account.webhook_url) or settings.TELNYX_WEBHOOK_URL,
            messaging_profile_id=(account and account.messaging_profile_id) or settings.TELNYX_MESSAGING_PROFILE_ID,
            connection_id=(account and account.connection_id) or settings.TELNYX_CONNECTION_ID,
            base_url=settings.TELNYX_API_BASE_URL,
            timeout=settings.TELNYX_REQUEST_TIMEOUT,
        )

    @property
    def masked_api_key(self) -> str:
        if not self.api_key:
            return ""
        if len(self.api_key) <= 8:
            return "*" * len(self.api_key)
        return f"{self.api_key[:4]}{'*' * (len(self.api_key) - 8)}{self.api_key[-4:]}"


class TelnyxClient:
    """Capability client; every method maps to one Telnyx REST call."""

    def __init__(self, config: Optional[TelnyxConfig] = None):
        self.config = config or TelnyxConfig.from_settings()

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------
    def _headers(self) -> Dict[str, str]:
        return {
            'Authorization': f'Bearer {self.config.api_key}',
            'Content-Type': 'application/json',
            'Accept': 'application/json',
        }

    def _send(self, method: str, path: str, **kwargs) -> requests.Response:
        url = f"{self.config.base_url}{path}"
        try:
            resp = requests.request(method, url, headers=self._headers(), timeout=self.config.timeout, **kwargs)
        except requests.RequestException as e:
            logger.error(f"Telnyx {method} {path} failed: {e}")
            raise TelnyxError(f"Telnyx request failed: {e}") from e

        if not resp.ok:
            try:
                body = resp.json()
            except ValueError:
                body = resp.text
            detail = _error_detail(body) or resp.reason
            logger.error(
                f"Telnyx {method} {path} returned {resp.status_code}: {detail}",
                extra={'status_code': resp.status_code, 'path': path},
            )
            raise TelnyxError(f"Telnyx API error ({resp.status_code}): {detail}", resp.status_code, body)
        return resp

    def _request(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        resp = self._send(method, path, **kwargs)
        if resp.status_code == 204 or not resp.content:
            return {}
        return resp.json().get('data', {})

    def _command(self, call_control_id: str, command: str, **params) -> Dict[str, Any]:
        body = {k: v for k, v in params.items() if v is not None}
        if 'client_state' in body:
            body['client_state'] = encode_client_state(body['client_state'])
        logger.info(
            f"📞 Telnyx command {command}",
            extra={'call_control_id': call_control_id, 'command': command},
        )
        return self._request('POST', f"/calls/{call_control_id}/actions/{command}", json=body)

    # ------------------------------------------------------------------
    # Call control
    # ------------------------------------------------------------------
    def answer(self, call_control_id: str, client_state: Optional[str] = None) -> Dict[str, Any]:
        return self._command(call_control_id, 'answer', client_state=client_state)

    def transfer(self, call_control_id: str, to: str, timeout_secs: Optional[int] = None,
                 webhook_url: Optional[str] = None) -> Dict[str, Any]:
        return self._command(
            call_control_id,
            'transfer',
            to=to,
            timeout_secs=timeout_secs,
            webhook_url=webhook_url or self.config.webhook_url,
            webhook_url_method='POST',
        )

    def play_audio(self, call_control_id: str, audio_url: str, client_state: Optional[str] = None) -> Dict[str, Any]:
        return self._command(call_control_id, 'playback_start', audio_url=audio_url, client_state=client_state)

    def speak(self, call_control_id: str, text: str, voice: str = 'female', language: str = 'en-US') -> Dict[str, Any]:
        return self._command(call_control_id, 'speak', payload=text, voice=voice, language=language)

    def gather(self, call_control_id: str, max_digits: int = 1, timeout_secs: int = 5,
               client_state: Optional[str] = None) -> Dict[str, Any]:
        return self._command(
            call_control_id,
            'gather',
            minimum_digits=1,
            maximum_digits=max_digits,
            timeout_millis=timeout_secs * 1000,
            client_state=client_state,
        )

    def start_recording(self, call_control_id: str, format: str = 'mp3', channels: str = 'single',
                        play_beep: bool = True) -> Dict[str, Any]:
        return self._command(call_control_id, 'record_start', format=format, channels=channels, play_beep=play_beep)

    def dial(self, from_number: str, to_number: str) -> Dict[str, Any]:
        """Place an outbound call on the configured call-control connection."""
        return self._request('POST', '/calls', json={
            'connection_id': self.config.connection_id,
            'from': from_number,
            'to': to_number,
            'webhook_url': self.config.webhook_url,
        })

    # ------------------------------------------------------------------
    # Messaging
    # ------------------------------------------------------------------
    def send_message(self, from_number: str, to_number: str, text: str,
                     media_urls: Optional[Iterable[str]] = None) -> Dict[str, Any]:
        body = {
            'from': from_number,
            'to': to_number,
            'text': text,
            'messaging_profile_id': self.config.messaging_profile_id,
        }
        media = list(media_urls or [])
        if media:
            body['media_urls'] = media
        logger.info(f"✉️ Sending SMS from {from_number} to {to_number}")
        return self._request('POST', '/messages', json=body)

    # ------------------------------------------------------------------
    # Number management
    # ------------------------------------------------------------------
    def search_available_numbers(self, country_code: str = 'US', area_code: Optional[str] = None,
                                 limit: int = 10, features: Optional[List[str]] = None) -> List[Dict[str, Any]]:
        params = {
            'filter[country_code]': country_code,
            'filter[limit]': limit,
            'filter[features]': features or ['sms', 'voice'],
        }
        if area_code:
            params['filter[national_destination_code]'] = area_code
        return self._request('GET', '/available_phone_numbers', params=params) or []

    def purchase_number(self, phone_number: str) -> Dict[str, Any]:
        """Create a number order; returns the ordered number entry."""
        order = self._request('POST', '/number_orders', json={
            'phone_numbers': [{'phone_number': phone_number}],
            'connection_id': self.config.connection_id,
            'messaging_profile_id': self.config.messaging_profile_id,
        })
        numbers = order.get('phone_numbers') or []
        ordered = numbers[0] if numbers else {}
        return {
            'order_id': order.get('id'),
            'id': ordered.get('id'),
            'phone_number': ordered.get('phone_number', phone_number),
            'status': ordered.get('status') or order.get('status'),
        }

    def list_numbers(self, page: int = 1, page_size: int = 25, status: Optional[str] = 'active') -> List[Dict[str, Any]]:
        params = {'page[number]': page, 'page[size]': page_size}
        if status:
            params['filter[status]'] = status
        return self._request('GET', '/phone_numbers', params=params) or []

    def get_number(self, phone_id: str) -> Dict[str, Any]:
        return self._request('GET', f"/phone_numbers/{phone_id}")

    def update_number(self, phone_id: str, **fields) -> Dict[str, Any]:
        return self._request('PATCH', f"/phone_numbers/{phone_id}", json=fields)

    def release_number(self, phone_id: str) -> Dict[str, Any]:
        return self._request('DELETE', f"/phone_numbers/{phone_id}")

    def get_balance(self) -> Dict[str, Any]:
        """Cheap authenticated call used to test credentials."""
        return self._request('GET', '/balance')

    # ------------------------------------------------------------------
    # WebRTC telephony credentials
    # ------------------------------------------------------------------
    def create_telephony_credential(self, connection_id: str, name: str, tag: Optional[str] = None) -> Dict[str, Any]:
        """Returns the credential including ``sip_username`` and ``sip_password``."""
        body = {'connection_id': connection_id, 'name': name}
        if tag:
            body['tag'] = tag
        return self._request('POST', '/telephony_credentials', json=body)

    def get_telephony_credential(self, credential_id: str) -> Dict[str, Any]:
        return self._request('GET', f"/telephony_credentials/{credential_id}")

    def delete_telephony_credential(self, credential_id: str) -> Dict[str, Any]:
        return self._request('DELETE', f"/telephony_credentials/{credential_id}")

    def create_credential_token(self, credential_id: str) -> str:
        """On-demand JWT for the WebRTC SDK; Telnyx answers with plain text."""
        resp = self._send('POST', f"/telephony_credentials/{credential_id}/token")
        return resp.text.strip()


def _error_detail(body: Any) -> str:
    if isinstance(body, dict):
        errors = body.get('errors') or []
        if errors and isinstance(errors[0], dict):
            return errors[0].get('detail') or errors[0].get('title') or ''
    if isinstance(body, str):
        return body[:200]
    return ''
