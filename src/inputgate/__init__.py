"""
inputgate — input validation and canonicalization engine.

Purpose
- Single choke-point for untrusted input: canonicalize, detect encoding-based
  evasion, then apply whitelist rules and hand back a safe typed value.

Import boundary rules
- Must not have side effects at import time (no config loading, no logging init).
"""

from inputgate.errors import (
    Accepted,
    InputRejectedError,
    IntrusionDetectedError,
    Rejection,
    RejectionKind,
    ValidationError,
    ValidationOutcome,
)
from inputgate.validator import Validator

__version__ = "0.4.0"

__all__ = [
    "Accepted",
    "InputRejectedError",
    "IntrusionDetectedError",
    "Rejection",
    "RejectionKind",
    "ValidationError",
    "ValidationOutcome",
    "Validator",
    "__version__",
]
