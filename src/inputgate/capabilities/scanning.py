"""File content scanning capability."""

from __future__ import annotations

import io
from collections.abc import Mapping
from enum import StrEnum
from typing import BinaryIO, Final, Protocol, runtime_checkable

# Standard anti-malware test file signature.
EICAR_SIGNATURE: Final[bytes] = (
    b"X5O!P%@AP[4\\PZX54(P^)7CC)7}$EICAR-STANDARD-ANTIVIRUS-TEST-FILE!$H+H*"
)
_READ_CHUNK_BYTES: Final[int] = 64 * 1024


class ScanVerdict(StrEnum):
    CLEAN = "clean"
    INFECTED = "infected"
    ERROR = "error"


@runtime_checkable
class FileScanner(Protocol):
    def scan(self, stream: BinaryIO) -> ScanVerdict: ...


class SignatureScanner:
    """Flag streams containing any configured byte signature."""

    def __init__(self, signatures: Mapping[str, bytes] | None = None) -> None:
        resolved = dict(signatures) if signatures is not None else {"eicar": EICAR_SIGNATURE}
        if any(not isinstance(sig, bytes) or not sig for sig in resolved.values()):
            raise ValueError("signatures must be non-empty bytes")
        self._signatures = resolved
        self._overlap = max((len(sig) for sig in resolved.values()), default=1) - 1

    def scan(self, stream: BinaryIO) -> ScanVerdict:
        tail = b""
        try:
            while True:
                chunk = stream.read(_READ_CHUNK_BYTES)
                if not chunk:
                    return ScanVerdict.CLEAN
                window = tail + chunk
                if any(sig in window for sig in self._signatures.values()):
                    return ScanVerdict.INFECTED
                tail = window[-self._overlap :] if self._overlap else b""
        except OSError:
            return ScanVerdict.ERROR


class NullScanner:
    """Report every stream clean. Only for deployments without a scanner."""

    def scan(self, stream: BinaryIO) -> ScanVerdict:
        return ScanVerdict.CLEAN


def scan_bytes(scanner: FileScanner, data: bytes) -> ScanVerdict:
    return scanner.scan(io.BytesIO(data))


__all__ = [
    "EICAR_SIGNATURE",
    "FileScanner",
    "NullScanner",
    "ScanVerdict",
    "SignatureScanner",
    "scan_bytes",
]
