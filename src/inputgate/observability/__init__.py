"""Observability helpers: JSON-lines logging shared by stdlib and structlog callers."""

from inputgate.observability.logging import (
    JsonLineFormatter,
    LoggingConfig,
    setup_logging,
    shutdown_logging,
)

__all__ = ["JsonLineFormatter", "LoggingConfig", "setup_logging", "shutdown_logging"]
