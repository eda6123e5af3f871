"""
WebRTC softphone credentials.

Each user gets at most one Telnyx telephony credential on the SIP credential
connection. Telnyx never changes the password of an existing credential, so
a reset replaces the credential with a fresh one.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from django.conf import settings
from django.db import transaction

from core.models import User
from core.telephony.services.telnyx_client import TelnyxClient, TelnyxError

logger = logging.getLogger(__name__)


class WebRTCCredentialError(Exception):
    pass


def _payload(credential: Dict[str, Any], include_password: bool) -> Dict[str, Any]:
    data = {
        'credential_id': credential.get('id'),
        'username': credential.get('sip_username'),
        'sip_uri': settings.TELNYX_SIP_URI,
        'ws_uri': settings.TELNYX_WS_URI,
    }
    if include_password:
        data['password'] = credential.get('sip_password')
    return data


def _create(user: User, client: TelnyxClient) -> Dict[str, Any]:
    credential = client.create_telephony_credential(
        settings.TELNYX_SIP_CONNECTION_ID,
        name=f"User-{user.id}-Credentials",
        tag=f"user-{user.id}",
    )
    user.sip_credential_id = credential.get('id')
    user.sip_username = credential.get('sip_username')
    user.webrtc_enabled = True
    user.save(update_fields=['sip_credential_id', 'sip_username', 'webrtc_enabled', 'updated_at'])
    logger.info(f"🎧 SIP credential created for {user.email}", extra={'user_id': str(user.id)})
    return credential


def _delete_remote(credential_id: str, client: TelnyxClient) -> None:
    try:
        client.delete_telephony_credential(credential_id)
    except TelnyxError as e:
        if e.status_code != 404:
            raise
        logger.warning(f"SIP credential {credential_id} was already gone at Telnyx")


def _require_credential(user: User) -> str:
    if not user.sip_credential_id:
        raise WebRTCCredentialError('User does not have SIP credentials')
    return user.sip_credential_id


@transaction.atomic
def generate_credentials(user: User, client: Optional[TelnyxClient] = None) -> Dict[str, Any]:
    """
    Create the user's credential, or describe the existing one.

    The password is only part of the answer when the credential is new.
    """
    client = client or TelnyxClient()
    user = User.objects.select_for_update().get(pk=user.pk)
    if user.sip_credential_id:
        return _payload(client.get_telephony_credential(user.sip_credential_id), include_password=False)
    return _payload(_create(user, client), include_password=True)


@transaction.atomic
def reset_credentials(user: User, client: Optional[TelnyxClient] = None) -> Dict[str, Any]:
    client = client or TelnyxClient()
    user = User.objects.select_for_update().get(pk=user.pk)
    _delete_remote(_require_credential(user), client)
    return _payload(_create(user, client), include_password=True)


@transaction.atomic
def delete_credentials(user: User, client: Optional[TelnyxClient] = None) -> None:
    client = client or TelnyxClient()
    user = User.objects.select_for_update().get(pk=user.pk)
    _delete_remote(_require_credential(user), client)
    user.sip_credential_id = None
    user.sip_username = None
    user.webrtc_enabled = False
    user.save(update_fields=['sip_credential_id', 'sip_username', 'webrtc_enabled', 'updated_at'])
    logger.info(f"🎧 SIP credential removed for {user.email}", extra={'user_id': str(user.id)})


def connection_token(user: User, client: Optional[TelnyxClient] = None) -> str:
    return (client or TelnyxClient()).create_credential_token(_require_credential(user))


def webrtc_status(user: User) -> Dict[str, Any]:
    return {
        'webrtc_enabled': user.webrtc_enabled,
        'has_sip_credentials': bool(user.sip_credential_id),
        'sip_username': user.sip_username,
    }
