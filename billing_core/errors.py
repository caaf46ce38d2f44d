"""
billing_core.errors
Export error taxonomy.
"""
from __future__ import annotations


class ExportError(Exception):
    """Aborts one export run; surfaced once at the top-level boundary."""

    user_message = "Error generating report."

    def __init__(self, message: str = "", kind: str = ""):
        super().__init__(message or self.user_message)
        self.kind = kind
        self.run = None


class FetchFailure(ExportError):
    user_message = "Failed to fetch data."


class EmptyResultSet(ExportError):
    user_message = "No data found for the selected period."


class AggregationFailure(ExportError):
    user_message = "Failed to process bill data."


class RenderFailure(ExportError):
    user_message = "Failed to render report."


class UnparseablePeriod(ValueError):
    """A single record's period label could not be parsed; the record is dropped."""

    def __init__(self, label):
        super().__init__(f"Unparseable period: {label!r}")
        self.label = label
