"""
Observability helpers (structured logging).
"""

from contact_sync.infrastructure.observability.logging import get_logger, setup_logging

__all__ = ["get_logger", "setup_logging"]
