import json
import logging
from datetime import datetime, timezone
from typing import Optional

from doorwin.core.config import settings

TEXT_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d - %(message)s"


class JSONFormatter(logging.Formatter):
    """Structured JSON logs for log shippers"""

    def format(self, record):
        log_record = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "logger": record.name,
            "level": record.levelname,
            "message": record.getMessage(),
            "context": {
                "module": record.module,
                "line": record.lineno,
            },
        }
        if record.exc_info:
            log_record["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_record)


def configure_logging(level: Optional[str] = None, json_output: Optional[bool] = None) -> logging.Logger:
    """Configure the ``doorwin`` logger hierarchy with a single console handler"""
    level = level or settings.LOG_LEVEL
    json_output = settings.LOG_JSON if json_output is None else json_output

    logger = logging.getLogger("doorwin")
    logger.setLevel(level)

    # Drop handlers from a previous call so reconfiguring doesn't duplicate output
    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setFormatter(JSONFormatter() if json_output else logging.Formatter(TEXT_FORMAT))
    logger.addHandler(handler)
    logger.propagate = False

    return logger
