from __future__ import annotations

import logging

from ai_services.core.settings import Settings

_LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
_SDK_LOGGERS = ("openai", "httpx", "httpcore")


def configure_logging(settings: Settings | str) -> None:
    """Configure process-wide logging from settings or an explicit level name.

    The OpenAI SDK and its HTTP stack log every request at DEBUG; they are
    kept at INFO or above so local debugging shows ai-services records only.
    """

    log_level = settings if isinstance(settings, str) else settings.effective_log_level
    level = getattr(logging, log_level.upper(), logging.INFO)
    logging.basicConfig(level=level, format=_LOG_FORMAT)
    for name in _SDK_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.INFO))
