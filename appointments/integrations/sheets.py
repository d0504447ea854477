import logging
from typing import Any, List, Optional

from django.conf import settings
from google.auth.exceptions import GoogleAuthError
from google.oauth2 import service_account
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from appointments.records import AppointmentRecord

logger = logging.getLogger(__name__)

SCOPES = ["https://www.googleapis.com/auth/spreadsheets.readonly"]


class RepositoryError(Exception):
    """Raised when the appointments sheet cannot be read."""


class SheetsAppointmentRepository:
    """Read-only access to the appointment rows kept in Google Sheets."""

    def __init__(
        self,
        spreadsheet_id: Optional[str] = None,
        sheet_range: Optional[str] = None,
        credentials_file: Optional[str] = None,
        service: Any = None,
    ):
        self.spreadsheet_id = spreadsheet_id or getattr(settings, "APPOINTMENTS_SHEET_ID", "")
        self.sheet_range = sheet_range or getattr(settings, "APPOINTMENTS_SHEET_RANGE", "CLIENTES")
        self.credentials_file = credentials_file or getattr(
            settings, "GOOGLE_SERVICE_ACCOUNT_FILE", "credentials.json"
        )
        self._service = service

    # --- public API ---------------------------------------------------
    def fetch_all(self) -> List[AppointmentRecord]:
        rows = self._fetch_rows()
        if len(rows) <= 1:
            logger.warning("No appointment rows found in sheet range %s.", self.sheet_range)
            return []

        records: List[AppointmentRecord] = []
        seen_codes = set()
        # Row 1 is the header; sheet rows are 1-based.
        for row_number, row in enumerate(rows[1:], start=2):
            record = AppointmentRecord.from_row(row, row_number=row_number)
            code = record.reservation_code
            if code and code in seen_codes:
                logger.warning(
                    "Duplicate reservation code %s at row %s; keeping the first occurrence.",
                    code,
                    row_number,
                )
                continue
            seen_codes.add(code)
            records.append(record)

        logger.info("Fetched %s appointment rows from sheet %s.", len(records), self.sheet_range)
        return records

    # --- internal helpers ---------------------------------------------
    def _fetch_rows(self) -> List[list]:
        if not self.spreadsheet_id:
            raise RepositoryError("APPOINTMENTS_SHEET_ID is not configured.")

        try:
            response = (
                self._get_service()
                .spreadsheets()
                .values()
                .get(spreadsheetId=self.spreadsheet_id, range=self.sheet_range)
                .execute()
            )
        except HttpError as exc:
            raise RepositoryError(f"Google Sheets request failed: {exc}") from exc
        except GoogleAuthError as exc:
            raise RepositoryError(f"Google authentication failed: {exc}") from exc
        except (OSError, ValueError) as exc:
            raise RepositoryError(f"Could not read appointments sheet: {exc}") from exc

        return response.get("values", []) or []

    def _get_service(self):
        if self._service is None:
            creds = service_account.Credentials.from_service_account_file(
                self.credentials_file, scopes=SCOPES
            )
            self._service = build("sheets", "v4", credentials=creds, cache_discovery=False)
        return self._service
