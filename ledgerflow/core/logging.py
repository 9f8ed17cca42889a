"""Logging setup for the API process and scripts."""

import logging
import sys

from ledgerflow.core.config import Settings, get_settings

_HANDLER_NAME = "ledgerflow"


def configure_logging(settings: Settings | None = None) -> None:
    """Install one stream handler on the ``ledgerflow`` logger; safe to call twice."""
    settings = settings or get_settings()
    root = logging.getLogger("ledgerflow")
    root.setLevel(settings.log_level.upper())

    if any(h.get_name() == _HANDLER_NAME for h in root.handlers):
        return
    handler = logging.StreamHandler(sys.stderr)
    handler.set_name(_HANDLER_NAME)
    handler.setFormatter(logging.Formatter(settings.log_format))
    root.addHandler(handler)
    # SQL statements stay quiet unless echo is switched on explicitly.
    logging.getLogger("sqlalchemy.engine").setLevel(
        logging.INFO if settings.database_echo else logging.WARNING
    )
