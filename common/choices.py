from django.db import models
from django.utils.translation import gettext_lazy as _


class AppointmentStatus(models.TextChoices):
    SCHEDULED = 'AGENDADA', _('Scheduled')
    RESCHEDULED = 'REAGENDADA', _('Rescheduled')
    CONFIRMED = 'CONFIRMADA', _('Confirmed')
    CANCELLED = 'CANCELADA', _('Cancelled')
    UNRECOGNIZED = 'DESCONOCIDA', _('Unrecognized')

    @classmethod
    def from_raw(cls, value):
        """Map a sheet cell to a status; unknown text becomes ``UNRECOGNIZED``."""
        if not isinstance(value, str):
            return cls.UNRECOGNIZED
        normalized = value.strip().upper()
        for member in cls:
            if member is not cls.UNRECOGNIZED and member.value == normalized:
                return member
        return cls.UNRECOGNIZED


class ReminderTier(models.TextChoices):
    DAY_BEFORE = '24h', _('24 hours before')
    SAME_DAY = '12h', _('12 hours before')
    IMMINENT = '15min', _('15 minutes before')
