import logging

from django.db.models.signals import post_save
from django.dispatch import receiver

from core.models import AvailabilityDay, CalendarIntegration, User

logger = logging.getLogger(__name__)


@receiver(post_save, sender=User)
def create_default_user_records(sender, instance: User, created, **kwargs):
    """Give every new user a Mon-Fri 09:00-17:00 week and a disabled calendar integration"""
    if not created:
        return
    AvailabilityDay.objects.bulk_create(AvailabilityDay.default_week(instance))
    CalendarIntegration.objects.get_or_create(user=instance)
    logger.info(
        "Default availability created",
        extra={"user_id": str(instance.id)},
    )
