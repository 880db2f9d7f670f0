"""
Tests for the command line entry point and its exit codes
"""

import io
import logging
import os
import sys
import unittest
from unittest.mock import patch, MagicMock

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

import credtrap
from utils.errors import ServiceError
from utils.keys import TLSMaterial
from utils.session import EXIT_CONFIG_ERROR, EXIT_OK, Session

FAKE_TLS = TLSMaterial(b"CERT", b"KEY", generated=True)
BASE_ARGS = ["--no-banner", "-b", "127.0.0.1", "-p", "snmp", "--snmp-ports", "1161,1162"]


@patch.object(Session, "start_signal_watcher")
@patch("utils.session.resolve_tls_material", return_value=FAKE_TLS)
@patch("credtrap.setup_logging", return_value=logging.getLogger("credtrap"))
class TestMainExitCodes(unittest.TestCase):

    def test_graceful_shutdown_returns_zero(self, _logging, _tls, _watcher):
        """Listeners start, shutdown is requested, every handler runs once"""
        stopped = []

        def spawn(conf):
            conf.shutdown = lambda: stopped.append(conf.bind_port)

        with patch("services.registry.spawn_snmp", side_effect=spawn), \
                patch.object(Session, "wait_for_shutdown"):
            code = credtrap.main(BASE_ARGS)

        self.assertEqual(code, EXIT_OK)
        self.assertEqual(stopped, [1161, 1162])

    def test_no_active_protocol_returns_config_error(self, _logging, _tls, _watcher):
        """Every spawn failing under --ignore-failures is one fatal diagnostic"""
        with patch("services.registry.spawn_snmp", side_effect=ServiceError("address in use")), \
                patch.object(Session, "wait_for_shutdown") as mock_wait:
            with self.assertLogs("credtrap", level="ERROR") as logs:
                code = credtrap.main(BASE_ARGS + ["-I"])

        self.assertEqual(code, EXIT_CONFIG_ERROR)
        mock_wait.assert_not_called()
        fatal = [r for r in logs.records if "at least one protocol" in r.getMessage()]
        self.assertEqual(len(fatal), 1)

    def test_run_result_is_returned(self, _logging, _tls, _watcher):
        with patch.object(Session, "run", return_value=EXIT_OK) as mock_run:
            self.assertEqual(credtrap.main(BASE_ARGS), EXIT_OK)
        mock_run.assert_called_once()


class TestMainSetupErrors(unittest.TestCase):

    def setUp(self):
        root = logging.getLogger()
        self.saved = (list(root.handlers), root.level)

    def tearDown(self):
        root = logging.getLogger()
        for handler in list(root.handlers):
            if handler not in self.saved[0]:
                root.removeHandler(handler)
        for handler in self.saved[0]:
            if handler not in root.handlers:
                root.addHandler(handler)
        root.setLevel(self.saved[1])

    def test_unopenable_log_file(self):
        """A bad log file is reported on one line instead of a traceback"""
        stderr = io.StringIO()
        with patch("sys.stderr", stderr), patch.object(Session, "run") as mock_run:
            code = credtrap.main(BASE_ARGS + ["--log-file", "/nonexistent/dir/credtrap.log"])

        self.assertEqual(code, EXIT_CONFIG_ERROR)
        mock_run.assert_not_called()
        lines = stderr.getvalue().strip().splitlines()
        self.assertEqual(len(lines), 1)
        self.assertIn("/nonexistent/dir/credtrap.log", lines[0])

    def test_invalid_config_file(self):
        stderr = io.StringIO()
        with patch("sys.stderr", stderr), \
                patch("credtrap.load_config", side_effect=credtrap.ConfigurationError("bad config")):
            code = credtrap.main(["--no-banner"])

        self.assertEqual(code, EXIT_CONFIG_ERROR)
        self.assertIn("bad config", stderr.getvalue())


if __name__ == '__main__':
    unittest.main()
