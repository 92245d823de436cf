"""Core configuration and structured logging."""

from graphrag_engine.core.config import RetrieverSettings, get_settings
from graphrag_engine.core.logging import (
    clear_correlation_id,
    get_correlation_id,
    set_correlation_id,
    setup_structured_logging,
)

__all__ = [
    "RetrieverSettings",
    "get_settings",
    "clear_correlation_id",
    "get_correlation_id",
    "set_correlation_id",
    "setup_structured_logging",
]
