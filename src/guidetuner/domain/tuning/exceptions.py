"""Channel tuning exceptions."""

from __future__ import annotations


class TuningError(Exception):
    """Base class for all tuning errors.

    The message is used verbatim as the failure reason, so it should
    say what was being done when the error happened.
    """


class PageClosedError(TuningError):
    """Raised when the page was closed or navigated away mid-resolution."""


class EvaluateTimeoutError(TuningError):
    """Raised when an in-page evaluation did not return in time."""
