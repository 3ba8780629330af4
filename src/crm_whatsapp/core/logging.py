"""
Logging setup shared by the API and the CLI.
"""

import logging

from crm_whatsapp.core.settings import get_settings

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def setup_logging(level: str | None = None) -> None:
    """
    Configure the root logger once.

    If handlers are already installed (uvicorn, pytest), only the level is applied.
    """
    level_name = (level or get_settings().LOG_LEVEL or "INFO").upper()
    lvl = getattr(logging, level_name, logging.INFO)

    root = logging.getLogger()
    root.setLevel(lvl)

    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setLevel(lvl)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)

    # httpx logs every request at INFO, including the Graph API URL
    logging.getLogger("httpx").setLevel(logging.WARNING)
