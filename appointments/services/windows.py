"""Selection of appointments that are due for a reminder tier."""

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta, tzinfo
from datetime import timezone as dt_timezone
from typing import FrozenSet, Iterable, List, Optional
from zoneinfo import ZoneInfo

from django.conf import settings
from django.utils import timezone

from appointments.records import AppointmentParseError, AppointmentRecord
from common.choices import AppointmentStatus, ReminderTier

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReminderWindow:
    """Closed lead-time interval, expressed in ``unit``, plus the tier's status rule."""

    tier: ReminderTier
    lower: float
    upper: float
    unit: timedelta
    unit_label: str
    allowed_statuses: Optional[FrozenSet[AppointmentStatus]] = None
    excluded_statuses: FrozenSet[AppointmentStatus] = frozenset()

    def accepts_status(self, status: AppointmentStatus) -> bool:
        if self.allowed_statuses is not None:
            return status in self.allowed_statuses
        return status not in self.excluded_statuses

    def lead_time(self, scheduled_for: datetime, now: datetime) -> float:
        # Compare in UTC: same-tzinfo subtraction ignores DST offsets.
        delta = scheduled_for.astimezone(dt_timezone.utc) - now.astimezone(dt_timezone.utc)
        return delta / self.unit

    def contains(self, lead_time: float) -> bool:
        return lead_time > 0 and self.lower <= lead_time <= self.upper

    def describe(self) -> str:
        return f"[{self.lower:g}, {self.upper:g}] {self.unit_label}"


WINDOWS = {
    ReminderTier.DAY_BEFORE: ReminderWindow(
        tier=ReminderTier.DAY_BEFORE,
        lower=23,
        upper=25,
        unit=timedelta(hours=1),
        unit_label="hours",
        allowed_statuses=frozenset({AppointmentStatus.SCHEDULED, AppointmentStatus.RESCHEDULED}),
    ),
    ReminderTier.SAME_DAY: ReminderWindow(
        tier=ReminderTier.SAME_DAY,
        lower=11,
        upper=13,
        unit=timedelta(hours=1),
        unit_label="hours",
        excluded_statuses=frozenset({AppointmentStatus.CANCELLED}),
    ),
    ReminderTier.IMMINENT: ReminderWindow(
        tier=ReminderTier.IMMINENT,
        lower=10,
        upper=20,
        unit=timedelta(minutes=1),
        unit_label="minutes",
        excluded_statuses=frozenset({AppointmentStatus.CANCELLED}),
    ),
}


@dataclass(frozen=True)
class EligibleReminder:
    appointment: AppointmentRecord
    tier: ReminderTier
    scheduled_for: datetime
    lead_time: float

    @property
    def rounded_lead_time(self) -> int:
        # Half-up, for display only; eligibility uses ``lead_time``.
        return int(math.floor(self.lead_time + 0.5))


def get_window(tier) -> ReminderWindow:
    try:
        return WINDOWS[ReminderTier(tier)]
    except ValueError as exc:
        raise ValueError(f"Unknown reminder tier {tier!r}") from exc


def get_business_timezone() -> tzinfo:
    return ZoneInfo(getattr(settings, "BUSINESS_TIMEZONE", "America/Bogota"))


def _resolve_now(now: Optional[datetime], tz: tzinfo) -> datetime:
    if now is None:
        return timezone.now().astimezone(tz)
    if timezone.is_naive(now):
        return now.replace(tzinfo=tz)
    return now.astimezone(tz)


def _skip_reason(window: ReminderWindow, lead_time: float) -> str:
    if lead_time <= 0:
        return "appointment is in the past"
    if lead_time < window.lower:
        return "too close, reminder window already passed"
    return "too far, reminder window not reached yet"


def select_eligible(
    tier,
    records: Iterable[AppointmentRecord],
    now: Optional[datetime] = None,
    *,
    tz: Optional[tzinfo] = None,
) -> List[EligibleReminder]:
    """
    Return the appointments inside ``tier``'s reminder window at ``now``.

    Rows failing the tier's status rule, rows without date, time or reservation
    code, and rows whose date/time does not parse are skipped; a bad row never
    stops the rest of the batch. A naive ``now`` is read in the business timezone.
    """

    window = get_window(tier)
    tz = tz or get_business_timezone()
    now = _resolve_now(now, tz)

    logger.info(
        "Looking for %s reminders at %s, window %s (%s to %s).",
        window.tier.value,
        now.strftime("%Y-%m-%d %H:%M"),
        window.describe(),
        (now + window.unit * window.lower).strftime("%Y-%m-%d %H:%M"),
        (now + window.unit * window.upper).strftime("%Y-%m-%d %H:%M"),
    )

    eligible: List[EligibleReminder] = []
    for record in records:
        label = record.reservation_code or f"row {record.row_number}"

        if not window.accepts_status(record.status):
            logger.debug(
                "Skipping %s: status %r not eligible for %s reminder.",
                label,
                record.raw_status,
                window.tier.value,
            )
            continue

        if not record.is_complete:
            logger.debug("Skipping %s: missing appointment date or time.", label)
            continue

        if not record.reservation_code:
            logger.warning("Skipping row %s: missing reservation code.", record.row_number)
            continue

        try:
            scheduled_for = record.scheduled_for(tz)
        except AppointmentParseError:
            logger.warning(
                "Skipping %s: invalid date/time %r %r.",
                label,
                record.appointment_date,
                record.appointment_time,
            )
            continue

        lead_time = window.lead_time(scheduled_for, now)
        if not window.contains(lead_time):
            logger.debug(
                "Skipping %s: %s (%.2f %s).",
                label,
                _skip_reason(window, lead_time),
                lead_time,
                window.unit_label,
            )
            continue

        logger.info(
            "Appointment %s for %s at %s is due a %s reminder (%.2f %s ahead).",
            record.reservation_code,
            record.client_name,
            scheduled_for.strftime("%Y-%m-%d %H:%M"),
            window.tier.value,
            lead_time,
            window.unit_label,
        )
        eligible.append(
            EligibleReminder(
                appointment=record,
                tier=window.tier,
                scheduled_for=scheduled_for,
                lead_time=lead_time,
            )
        )

    logger.info("Found %s appointments for the %s reminder.", len(eligible), window.tier.value)
    return eligible
