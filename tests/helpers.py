"""
Shared test fixtures
"""

import copy
import threading

from utils.config_manager import DEFAULT_CONFIG
from utils.output_manager import OutputSink


class MemorySink(OutputSink):
    """Collects delivered records in memory"""

    kind = "memory"

    def __init__(self, fail_with=None, log=None, name="memory"):
        self.records = []
        self.fail_with = fail_with
        self.log = log
        self.name = name
        self.delivered = threading.Event()

    def deliver(self, record):
        self.records.append(dict(record))
        self.delivered.set()
        if self.fail_with is not None:
            raise self.fail_with

    def cleanup(self):
        if self.log is not None:
            self.log.append(f"cleanup:{self.name}")


def make_config(**overrides):
    """Default configuration bound to loopback with optional section overrides"""
    config = copy.deepcopy(DEFAULT_CONFIG)
    config["network"]["bind_host"] = "127.0.0.1"
    for section, values in overrides.items():
        if isinstance(values, dict):
            config[section].update(values)
        else:
            config[section] = values
    return config
