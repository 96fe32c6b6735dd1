"""
Logging setup shared by the API app, the CLI and tests.

Log records carry structured context through ``extra=``; the formatter appends
those fields to the line so they are visible without a JSON collector.
"""

import logging
import sys

from inbox_core.settings import get_settings

# Attributes present on every LogRecord; anything else came from extra=
_RESERVED = set(vars(logging.makeLogRecord({}))) | {"message", "asctime"}


class ContextFormatter(logging.Formatter):
    """Formatter that renders extra= fields as key=value pairs."""

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = {
            key: value
            for key, value in vars(record).items()
            if key not in _RESERVED and not key.startswith("_")
        }
        if context:
            pairs = " ".join(f"{key}={value}" for key, value in sorted(context.items()))
            line = f"{line} | {pairs}"
        return line


def setup_logging(level: str | None = None) -> None:
    """
    Configure the root logger once.

    Safe to call multiple times; later calls only adjust the level.
    """
    level_name = (level or get_settings().LOG_LEVEL).upper()
    root = logging.getLogger()
    root.setLevel(level_name)

    if any(getattr(h, "_inbox_handler", False) for h in root.handlers):
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        ContextFormatter("%(asctime)s %(levelname)s [%(name)s] %(message)s")
    )
    handler._inbox_handler = True  # type: ignore[attr-defined]
    root.addHandler(handler)

    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
