"""Process-wide configuration and logging."""

from ai_services.core.logging import configure_logging
from ai_services.core.settings import Settings, get_settings

__all__ = ["Settings", "configure_logging", "get_settings"]
