"""Process-wide logging setup.

Logs go to STDERR: tool hosts commonly speak their protocol over STDOUT,
and a stray log line there would corrupt the message stream.
"""

import json
import logging
import sys

_HANDLER_NAME = "autotask_tools"


class JsonFormatter(logging.Formatter):
    """One JSON object per log record."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "time": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def setup_logging(level: str = "INFO", fmt: str = "simple") -> logging.Logger:
    """Attach a single STDERR handler to the package logger.

    Safe to call more than once; the handler is only added the first time,
    later calls just update the level and formatter.
    """
    logger = logging.getLogger("autotask_tools")
    logger.setLevel(level.upper())

    handler = next((h for h in logger.handlers if h.get_name() == _HANDLER_NAME), None)
    if handler is None:
        handler = logging.StreamHandler(sys.stderr)
        handler.set_name(_HANDLER_NAME)
        logger.addHandler(handler)

    if fmt == "json":
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(
            logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        )
    return logger
