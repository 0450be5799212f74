from .exceptions import (
    EvaluateTimeoutError,
    PageClosedError,
    TuningError,
)

__all__ = [
    "EvaluateTimeoutError",
    "PageClosedError",
    "TuningError",
]
