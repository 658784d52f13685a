"""Ingestion error taxonomy.

Only errors that abort a whole report are defined here. A report either
commits completely or raises one of these, with nothing written.

Missing metrics, events naming unknown services and unresolvable group
members are skipped where they occur. Races on interning a name are
resolved by re-reading the winner's row. Neither is ever raised.
"""
from typing import Optional


class IngestionError(Exception):
    """Base class for failures that abort a report."""

    def __init__(self, message: str, state: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.state = state  # ingestion state the report failed in

    def __str__(self) -> str:
        if self.state:
            return f"{self.message} (state: {self.state})"
        return self.message


class MalformedPayload(IngestionError):
    """The report is not well-formed XML or not a Monit document."""


class PayloadTooLarge(IngestionError):
    """The report exceeds the configured size bound."""


class StorageFailure(IngestionError):
    """A storage call failed or the report ran past its deadline."""
