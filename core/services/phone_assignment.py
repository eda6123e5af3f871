from __future__ import annotations

import logging
from typing import Optional

from django.db import transaction

from core.models import User
from core.telephony.services.telnyx_client import TelnyxClient

logger = logging.getLogger(__name__)


class PhoneAssignmentError(Exception):
    pass


def _ensure_unassigned(phone_number: str, user: User) -> None:
    owner = User.objects.filter(telnyx_phone_number=phone_number).exclude(pk=user.pk).first()
    if owner is not None:
        raise PhoneAssignmentError(f"{phone_number} is already assigned to {owner.email}")


@transaction.atomic
def assign_number_to_user(user: User, phone_number: str, phone_id: Optional[str] = None,
                          client: Optional[TelnyxClient] = None) -> User:
    """
    Bind a Telnyx number to ``user``.

    Without ``phone_id`` the number is ordered from Telnyx first; with it the
    number is treated as already owned by the account and only the binding
    is stored. A number is bound to at most one user.
    """
    user = User.objects.select_for_update().get(pk=user.pk)
    _ensure_unassigned(phone_number, user)

    if phone_id is None:
        ordered = (client or TelnyxClient()).purchase_number(phone_number)
        phone_id = ordered.get('id')
        phone_number = ordered.get('phone_number') or phone_number
        _ensure_unassigned(phone_number, user)

    user.telnyx_phone_id = phone_id
    user.telnyx_phone_number = phone_number
    user.save(update_fields=['telnyx_phone_id', 'telnyx_phone_number', 'updated_at'])
    logger.info(f"📞 Assigned {phone_number} to {user.email}", extra={'user_id': str(user.id)})
    return user


@transaction.atomic
def unassign_number(phone_id: str) -> Optional[User]:
    """Clear the binding of a released number; returns the previous owner."""
    user = User.objects.select_for_update().filter(telnyx_phone_id=phone_id).first()
    if user is None:
        return None
    user.telnyx_phone_id = None
    user.telnyx_phone_number = None
    user.save(update_fields=['telnyx_phone_id', 'telnyx_phone_number', 'updated_at'])
    return user
