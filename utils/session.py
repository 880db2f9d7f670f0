#!/usr/bin/env python3
"""
Capture session lifecycle: listener setup, signal handling and ordered shutdown.

The session moves through idle -> configuring -> running -> shutting down ->
terminated. SIGINT/SIGTERM are handed to a watcher thread. A signal that
arrives before the session is running exits the process immediately with no
cleanup. Once running, the watcher only raises a flag and the controller
performs the cleanup itself.
"""

import logging
import os
import queue
import signal
import threading
from typing import Any, Callable, Dict, List, Optional

from services import registry
from utils.errors import ConfigurationError
from utils.keys import TLSMaterial, resolve_tls_material
from utils.output_manager import RecordWriter, build_record_writer

EXIT_OK = 0
EXIT_EARLY_TERMINATION = 1
EXIT_CONFIG_ERROR = 2

IDLE = "idle"
CONFIGURING = "configuring"
RUNNING = "running"
SHUTTING_DOWN = "shutting_down"
TERMINATED = "terminated"


class Session:
    """A single honeypot run: its listeners, sinks and lifecycle state"""

    def __init__(self, config: Dict[str, Any], exit_func: Callable[[int], None] = os._exit):
        self.config = config
        self.exit_func = exit_func
        self.logger = logging.getLogger("credtrap.session")

        self.state = IDLE
        self.running = False
        self.shutdown_requested = False
        self.protocol_count = 0
        self.shutdown_handlers: List[Callable[[], None]] = []

        self.state_lock = threading.Lock()
        self._wakeup = threading.Event()
        self._signals: "queue.SimpleQueue[int]" = queue.SimpleQueue()
        self._watcher: Optional[threading.Thread] = None

        self.record_writer: Optional[RecordWriter] = None
        self.tls: Optional[TLSMaterial] = None

    # Signals

    def start_signal_watcher(self, signals=(signal.SIGINT, signal.SIGTERM)) -> None:
        """
        Route termination signals to a watcher thread.

        Must be called from the main thread. The handlers only enqueue the
        signal number; all decisions happen in handle_signal on the watcher.

        Python runs signal handlers on the main thread between bytecodes, so a
        signal that lands while the main thread is inside a long C call (RSA
        key generation in configure, for instance) is only enqueued once that
        call returns. The early exit happens then, not at delivery time.
        """
        for signum in signals:
            signal.signal(signum, self._enqueue_signal)

        self._watcher = threading.Thread(target=self._watch_signals, name="signal-watcher")
        self._watcher.daemon = True
        self._watcher.start()

    def _enqueue_signal(self, signum, frame) -> None:
        self._signals.put(signum)

    def _watch_signals(self) -> None:
        while True:
            signum = self._signals.get()
            self.handle_signal(signum)

    def handle_signal(self, signum: int) -> None:
        """
        React to a termination request.

        Before the session is running this exits the process at once without
        cleanup; afterwards it flags the controller to shut down.
        """
        with self.state_lock:
            if not self.running:
                self.logger.info("terminating early...")
                self.exit_func(EXIT_EARLY_TERMINATION)
                return
            self.shutdown_requested = True
        self._wakeup.set()

    # Setup

    def register_listener(self, conf: Any) -> None:
        """Account for a successfully spawned listener"""
        self.protocol_count += 1
        self.shutdown_handlers.append(conf.shutdown)

    def configure(self) -> None:
        """
        Build outputs, TLS material and every enabled listener.

        Raises:
            ConfigurationError: On any fatal setup problem, including no
                listener having started
        """
        self.state = CONFIGURING

        self.record_writer = build_record_writer(self.config["outputs"])

        tls_config = self.config["tls"]
        self.tls = resolve_tls_material(tls_config["cert"] or None, tls_config["key"] or None,
                                        tls_config["name"], tls_config["org"])

        wanted = registry.enabled_protocols(self.config["protocols"]["enabled"])
        for name, setup in registry.PROTOCOL_SETUP:
            if name in wanted:
                setup(self, self.record_writer, self.tls)

        if self.protocol_count == 0:
            raise ConfigurationError("at least one protocol must be enabled")

    def mark_running(self) -> None:
        with self.state_lock:
            self.running = True
            self.state = RUNNING
        self.logger.info(f"capturing credentials with {self.protocol_count} listener(s)")

    # Shutdown

    def is_shutdown_requested(self) -> bool:
        with self.state_lock:
            return self.shutdown_requested

    def wait_for_shutdown(self, poll_interval: float = 1.0) -> None:
        """Block until a termination signal has been observed"""
        while not self.is_shutdown_requested():
            self._wakeup.wait(poll_interval)

    def _run_handlers(self) -> None:
        handlers, self.shutdown_handlers = self.shutdown_handlers, []
        for handler in handlers:
            try:
                handler()
            except Exception as e:
                self.logger.error(f"error during listener shutdown: {e}")

        if self.record_writer is not None:
            self.record_writer.done()
            self.record_writer.cleanup()

    def shutdown(self) -> None:
        """Stop listeners in registration order, then clean up the sinks"""
        self.state = SHUTTING_DOWN
        self.logger.info("shutting down...")
        self._run_handlers()
        self.state = TERMINATED

    def abort(self) -> None:
        """Release whatever was set up before a fatal configuration error"""
        self._run_handlers()
        self.state = TERMINATED

    def run(self) -> int:
        """
        Configure, run until signalled and shut down.

        Returns:
            Process exit code for a graceful shutdown

        Raises:
            ConfigurationError: After releasing partial setup
        """
        try:
            self.configure()
        except ConfigurationError:
            self.abort()
            raise

        self.mark_running()
        self.wait_for_shutdown(self.config["lifecycle"]["poll_interval"])
        self.shutdown()
        return EXIT_OK
