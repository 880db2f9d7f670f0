#!/usr/bin/env python3
"""
Logging setup for the honeypot: one compact JSON object per log line
"""

import datetime
import json
import logging
import sys
from typing import Any, Dict

from utils.errors import ConfigurationError

LOG_FORMAT_FIELDS = {
    "time": "_etime",
    "message": "output",
}


class JSONFormatter(logging.Formatter):
    """
    Render log records as JSON.

    Structured fields passed as ``extra={"fields": {...}}`` are merged into
    the top level object next to the time, level and message keys.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            LOG_FORMAT_FIELDS["time"]: datetime.datetime.fromtimestamp(
                record.created, datetime.timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
            "level": record.levelname.lower(),
            "logger": record.name,
            LOG_FORMAT_FIELDS["message"]: record.getMessage(),
        }

        fields = getattr(record, "fields", None)
        if isinstance(fields, dict):
            for key, value in fields.items():
                if key not in entry:
                    entry[key] = value

        if record.exc_info:
            entry["error"] = self.formatException(record.exc_info)

        return json.dumps(entry, separators=(",", ":"))


def setup_logging(config: Dict[str, Any]) -> logging.Logger:
    """
    Set up logging based on configuration

    Args:
        config: Global configuration dictionary

    Returns:
        The top level "credtrap" logger

    Raises:
        ConfigurationError: If the log file cannot be opened
    """
    level = getattr(logging, str(config["logging"]["level"]).upper(), logging.INFO)
    formatter = JSONFormatter()

    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    root.addHandler(console_handler)

    if config["logging"].get("file"):
        try:
            file_handler = logging.FileHandler(config["logging"]["file"])
        except OSError as e:
            raise ConfigurationError(f"failed to open log file {config['logging']['file']}: {e}") from e
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    root.setLevel(level)

    # paramiko is chatty about every failed handshake
    if level > logging.DEBUG:
        logging.getLogger("paramiko").setLevel(logging.WARNING)

    return logging.getLogger("credtrap")
