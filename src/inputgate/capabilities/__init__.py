"""
inputgate capabilities — external collaborators consumed by the rules.

Functional requirements
- Every capability sits behind a Protocol so deployments can swap in their own.
- Calls that may block run under a caller-supplied deadline and fail closed.
"""

from inputgate.capabilities.html import (
    DEFAULT_ALLOWED_PROTOCOLS,
    DEFAULT_ALLOWED_TAGS,
    BleachSanitizer,
    HtmlSanitizer,
    UnsafeContentError,
)
from inputgate.capabilities.scanning import (
    EICAR_SIGNATURE,
    FileScanner,
    NullScanner,
    ScanVerdict,
    SignatureScanner,
)
from inputgate.capabilities.timeouts import CapabilityTimeoutError, call_with_timeout

__all__ = [
    "DEFAULT_ALLOWED_PROTOCOLS",
    "DEFAULT_ALLOWED_TAGS",
    "EICAR_SIGNATURE",
    "BleachSanitizer",
    "CapabilityTimeoutError",
    "FileScanner",
    "HtmlSanitizer",
    "NullScanner",
    "ScanVerdict",
    "SignatureScanner",
    "UnsafeContentError",
    "call_with_timeout",
]
