"""
Exception hierarchy for the collector pipeline.

AuthError and FetchError abort a single collection tick. ParseError never
leaves the field resolver. CalibrationValidationError rejects an
administrative recalibration request without touching any state.

CHANGELOG:
- 2026-10-18: Initial creation (STORY-003)

TODO:
- None
"""

from __future__ import annotations


class CollectorError(Exception):
    """Base class for all collector errors."""


class AuthError(CollectorError):
    """The Solarman credential exchange failed."""


class FetchError(CollectorError):
    """A station or device query failed or timed out."""


class ParseError(CollectorError):
    """A raw telemetry value could not be coerced to a number."""


class CalibrationValidationError(CollectorError):
    """An administrative recalibration value was rejected."""
