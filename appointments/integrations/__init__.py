"""Integration helpers for the external appointments store."""

from .sheets import RepositoryError, SheetsAppointmentRepository

__all__ = [
    "RepositoryError",
    "SheetsAppointmentRepository",
]
