from __future__ import annotations

import logging

from paybridge.config import Settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(settings: Settings) -> None:
    """Install one stream handler on the root logger."""
    level = logging.DEBUG if settings.is_development else getattr(logging, settings.log_level)
    root = logging.getLogger()
    root.setLevel(level)
    if not any(getattr(handler, "_paybridge", False) for handler in root.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._paybridge = True  # type: ignore[attr-defined]
        root.addHandler(handler)
    # Stripe's SDK logs every request at INFO.
    logging.getLogger("stripe").setLevel(max(level, logging.WARNING))
