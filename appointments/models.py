from django.db import models

from common.choices import ReminderTier
from common.models import BaseModel


class SentReminder(BaseModel):
    """
    Ledger of reminders already delivered, one row per (reservation, tier, slot).

    ``scheduled_for`` is part of the key so a rescheduled appointment, which keeps
    its reservation code, is reminded again for its new date.

    Channel flags only ever go from False to True, so a poll that finds both set
    skips the appointment and one that finds a single flag retries the other channel.
    """

    reservation_code = models.CharField(max_length=64)
    tier = models.CharField(max_length=10, choices=ReminderTier.choices)
    scheduled_for = models.DateTimeField()
    email_sent = models.BooleanField(default=False)
    chat_sent = models.BooleanField(default=False)

    class Meta:
        ordering = ['-created_at']
        constraints = [
            models.UniqueConstraint(
                fields=['reservation_code', 'tier', 'scheduled_for'],
                name='unique_sent_reminder_per_slot',
            ),
        ]

    def __str__(self):
        return f"{self.reservation_code} | {self.tier} | {self.scheduled_for:%Y-%m-%d %H:%M} | email: {self.email_sent} | chat: {self.chat_sent}"

    @property
    def is_complete(self) -> bool:
        return self.email_sent and self.chat_sent
