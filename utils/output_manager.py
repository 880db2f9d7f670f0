#!/usr/bin/env python3
"""
Output sinks for captured credential records
"""

import datetime
import json
import logging
import threading
from typing import Any, Dict, List, Optional

from utils.errors import ConfigurationError
from utils.webhook import send_webhook

CONSOLE_MARKER = "-"
TIME_FIELD = "_etime"

logger = logging.getLogger("credtrap.output")
credential_logger = logging.getLogger("credtrap.credential")


def now_rfc3339() -> str:
    return datetime.datetime.now(datetime.timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


class OutputSink:
    """Base class for a delivery target"""

    kind = "base"

    def deliver(self, record: Dict[str, str]) -> None:
        raise NotImplementedError("Subclasses must implement deliver")

    def cleanup(self) -> None:
        """Release any resources held by the sink (no-op by default)"""

    def __repr__(self):
        return f"{self.__class__.__name__}()"


class ConsoleSink(OutputSink):
    """Logs each record as structured fields on the console logger"""

    kind = "console"

    def deliver(self, record: Dict[str, str]) -> None:
        # The log formatter stamps its own time
        fields = {k: v for k, v in record.items() if k != TIME_FIELD}
        credential_logger.info("credential", extra={"fields": fields})


class FileSink(OutputSink):
    """Writes one JSON object per line to a file opened in truncate mode"""

    kind = "file"

    def __init__(self, path: str):
        self.path = path
        self._lock = threading.Lock()
        try:
            self.fd = open(path, "w", encoding="utf-8")
        except OSError as e:
            raise ConfigurationError(f"failed to configure output {path}: {e}") from e

    def deliver(self, record: Dict[str, str]) -> None:
        line = json.dumps(record, separators=(",", ":")) + "\n"
        with self._lock:
            if self.fd.closed:
                return
            self.fd.write(line)
            self.fd.flush()

    def cleanup(self) -> None:
        with self._lock:
            if not self.fd.closed:
                self.fd.close()

    def __repr__(self):
        return f"FileSink({self.path!r})"


class WebhookSink(OutputSink):
    """Posts each JSON-encoded record to a webhook URL"""

    kind = "webhook"

    def __init__(self, url: str):
        self.url = url

    def deliver(self, record: Dict[str, str]) -> None:
        send_webhook(self.url, json.dumps(record, separators=(",", ":")))

    def __repr__(self):
        return f"WebhookSink({self.url!r})"


class RecordWriter:
    """
    Fans captured records out to every configured sink.

    Each sink's deliver is called independently, so a failing webhook never
    keeps a record out of the file or console sinks.
    """

    def __init__(self, sinks: Optional[List[OutputSink]] = None):
        self.sinks: List[OutputSink] = list(sinks or [])
        self.stopped = False
        self._lock = threading.Lock()
        self._cleaned = False

    def record(self, rtype: str, host: str, port: int, fields: Dict[str, Any]) -> List[Exception]:
        """
        Build a record for a captured credential and deliver it

        Args:
            rtype: Record type, e.g. "ssh" or "ldap"
            host: Address the listener is bound to
            port: Port the listener is bound to
            fields: Protocol specific fields (username, password, src, ...)

        Returns:
            Delivery errors, one per failing sink
        """
        rec = {
            TIME_FIELD: now_rfc3339(),
            "_rtype": rtype,
            "_host": str(host),
            "_port": str(port),
        }
        for key, value in fields.items():
            rec[key] = "" if value is None else str(value)
        return self.write(rec)

    def write(self, rec: Dict[str, str]) -> List[Exception]:
        errors: List[Exception] = []
        # Only the stopped check and the snapshot happen under the lock;
        # webhook delivery can block for its full timeout
        with self._lock:
            if self.stopped:
                return errors
            sinks = list(self.sinks)

        for sink in sinks:
            try:
                sink.deliver(rec)
            except Exception as e:
                logger.error(f"failed to deliver record to {sink!r}: {e}")
                errors.append(e)
        return errors

    def done(self) -> None:
        """Stop accepting records"""
        with self._lock:
            self.stopped = True

    def cleanup(self) -> None:
        """Run each sink's cleanup once, in registration order"""
        with self._lock:
            if self._cleaned:
                return
            self._cleaned = True
            sinks = list(self.sinks)

        for sink in sinks:
            try:
                sink.cleanup()
            except Exception as e:
                logger.error(f"failed to clean up {sink!r}: {e}")


def build_record_writer(destinations: List[str]) -> RecordWriter:
    """
    Translate output destinations into a RecordWriter.

    "-" selects the console, http(s) URLs select a webhook and anything else
    is treated as a file path. The console sink is always present exactly once.

    Raises:
        ConfigurationError: If destinations is not a list or a file output
            cannot be opened
    """
    if isinstance(destinations, str):
        raise ConfigurationError(f"outputs must be a list, not the string {destinations!r}")

    rw = RecordWriter()
    console = False

    for output in destinations or []:
        if output == CONSOLE_MARKER:
            if not console:
                rw.sinks.append(ConsoleSink())
                console = True
            continue

        if output.startswith("http://") or output.startswith("https://"):
            rw.sinks.append(WebhookSink(output))
            continue

        try:
            rw.sinks.append(FileSink(output))
        except ConfigurationError:
            rw.cleanup()
            raise

    if not console:
        rw.sinks.append(ConsoleSink())

    return rw
