"""Errors raised by the export pipeline outside of the HTTP client."""


class ExportError(Exception):
    """Base exception for export failures."""

    status_code = 500


class ValidationError(ExportError):
    """Raised when a required export input is missing."""

    status_code = 400


class DataShapeError(ExportError):
    """Raised when an issue record lacks a structure the export relies on."""
