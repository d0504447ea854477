"""Plain records for appointment rows read from the bookings spreadsheet."""

from dataclasses import dataclass
from datetime import datetime, tzinfo
from typing import Optional, Sequence

from common.choices import AppointmentStatus
from common.utils import normalize_text

# Positional layout of the CLIENTES sheet. Column 0 is the booking timestamp.
COLUMN_RESERVATION_CODE = 1
COLUMN_CLIENT_NAME = 2
COLUMN_CLIENT_PHONE = 3
COLUMN_CLIENT_EMAIL = 4
COLUMN_PROFESSIONAL_NAME = 5
COLUMN_APPOINTMENT_DATE = 6
COLUMN_APPOINTMENT_TIME = 7
COLUMN_SERVICE_NAME = 8
COLUMN_STATUS = 9
ROW_WIDTH = COLUMN_STATUS + 1

DATETIME_FORMATS = ("%Y-%m-%d %H:%M", "%Y-%m-%d %H:%M:%S")


class AppointmentParseError(ValueError):
    """Raised when an appointment row carries an unparsable date or time."""


@dataclass(frozen=True)
class AppointmentRecord:
    reservation_code: str
    client_name: str
    client_phone: str
    client_email: str
    professional_name: str
    service_name: str
    appointment_date: str
    appointment_time: str
    status: AppointmentStatus
    raw_status: str = ""
    row_number: Optional[int] = None

    @classmethod
    def from_row(cls, row: Sequence, row_number: Optional[int] = None) -> "AppointmentRecord":
        """Build a record from a sheet row, padding rows the API returned short."""

        cells = [normalize_text(cell) for cell in row]
        if len(cells) < ROW_WIDTH:
            cells.extend([""] * (ROW_WIDTH - len(cells)))

        return cls(
            reservation_code=cells[COLUMN_RESERVATION_CODE],
            client_name=cells[COLUMN_CLIENT_NAME],
            client_phone=cells[COLUMN_CLIENT_PHONE],
            client_email=cells[COLUMN_CLIENT_EMAIL],
            professional_name=cells[COLUMN_PROFESSIONAL_NAME],
            service_name=cells[COLUMN_SERVICE_NAME],
            appointment_date=cells[COLUMN_APPOINTMENT_DATE],
            appointment_time=cells[COLUMN_APPOINTMENT_TIME],
            status=AppointmentStatus.from_raw(cells[COLUMN_STATUS]),
            raw_status=cells[COLUMN_STATUS],
            row_number=row_number,
        )

    @property
    def is_complete(self) -> bool:
        return bool(self.appointment_date and self.appointment_time)

    @property
    def is_confirmed(self) -> bool:
        return self.status == AppointmentStatus.CONFIRMED

    def scheduled_for(self, tz: tzinfo) -> datetime:
        """Return the appointment start as an aware datetime in ``tz``."""

        value = f"{self.appointment_date} {self.appointment_time}"
        for fmt in DATETIME_FORMATS:
            try:
                naive = datetime.strptime(value, fmt)
            except ValueError:
                continue
            return naive.replace(tzinfo=tz)
        raise AppointmentParseError(
            f"Invalid appointment date/time {self.appointment_date!r} {self.appointment_time!r}"
        )
