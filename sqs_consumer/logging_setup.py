import json
import logging
import os
import sys
import time
from typing import Any, Dict

# JSON lines on stdout, ready for the CloudWatch agent or any log shipper.
# Third-party loggers (boto3, botocore, urllib3) stay at WARNING by default,
# the "sqs_consumer" namespace at INFO.

_RESERVED_ATTRS = {
    "args", "msg", "levelname", "levelno", "name", "pathname", "filename",
    "module", "exc_info", "exc_text", "stack_info", "lineno", "funcName",
    "created", "msecs", "relativeCreated", "thread", "threadName",
    "processName", "process", "taskName", "message",
}


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "ts": time.time(),
            "level": record.levelname,
            "logger": record.name,
            "thread": record.threadName,
            "msg": record.getMessage(),
        }

        for k, v in record.__dict__.items():
            if k in _RESERVED_ATTRS or k.startswith("_"):
                continue
            payload.setdefault(k, v)

        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)

        return json.dumps(payload, ensure_ascii=False, default=str)


def setup_logging(verbose: bool = False) -> None:
    """
    Setup logging with JSON formatting.

    Args:
        verbose: If True, sets the sqs_consumer logger to DEBUG and root logger to INFO.
                 If False, uses SQS_CONSUMER_ROOT_LOG_LEVEL / SQS_CONSUMER_APP_LOG_LEVEL
                 or defaults (WARNING for root, INFO for sqs_consumer).
    """
    if verbose:
        root_level = "INFO"
        app_level = "DEBUG"
    else:
        root_level = os.environ.get("SQS_CONSUMER_ROOT_LOG_LEVEL", "WARNING").upper()
        app_level = os.environ.get("SQS_CONSUMER_APP_LOG_LEVEL", "INFO").upper()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter())
    # Loggers decide what gets through
    handler.setLevel(logging.DEBUG)

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(root_level)
    root.addHandler(handler)

    app_logger = logging.getLogger("sqs_consumer")
    app_logger.setLevel(app_level)
    app_logger.propagate = True
