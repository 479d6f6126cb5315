"""
JSON log lines and redaction of credentials before they are logged.

Anything passed through ``extra=`` becomes a top-level key of the line, so
call sites log structured fields rather than formatting them into the message:

    logger.info("Sync run completed", extra={"log_type": "sync_completed", "correlation_id": run_id})
"""

import json
import logging
from datetime import datetime, timezone

# Compared lower-cased against dict keys at any depth
SENSITIVE_KEYS = frozenset({
    "password", "secret", "key", "token", "auth_token", "authorization",
    "ticket", "authticket", "account-id",
})

REDACTED = "***REDACTED***"

_STANDARD_RECORD_FIELDS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {"message", "asctime"}


def redact_sensitive_data(obj):
    """Copy of `obj` with the values of sensitive keys replaced."""
    if isinstance(obj, list):
        return [redact_sensitive_data(item) for item in obj]
    if not isinstance(obj, dict):
        return obj
    return {
        key: REDACTED if str(key).lower() in SENSITIVE_KEYS else redact_sensitive_data(value)
        for key, value in obj.items()
    }


class JSONFormatter(logging.Formatter):
    def format(self, record):
        line = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }
        if record.exc_info:
            line["exception"] = self.formatException(record.exc_info)
        extras = {k: v for k, v in vars(record).items() if k not in _STANDARD_RECORD_FIELDS}
        for key, value in extras.items():
            line.setdefault(key, value)
        return json.dumps(line, default=str)


def setup_json_logging(level=logging.INFO, output="stdout", file_path=None):
    """
    Replace the root logger's handlers with a single JSON handler.

    Args:
        level: Root log level
        output: "file" writes to `file_path`; anything else goes to stderr
        file_path: Log file used when `output` is "file"
    """
    root = logging.getLogger()
    root.setLevel(level)
    for existing in list(root.handlers):
        root.removeHandler(existing)

    use_file = output == "file" and file_path
    handler = logging.FileHandler(file_path) if use_file else logging.StreamHandler()
    handler.setFormatter(JSONFormatter())
    root.addHandler(handler)
    return root
