"""
Tests for configuration loading and command line overrides
"""

import json
import os
import sys
import tempfile
import unittest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from credtrap import build_parser
from utils.config_manager import DEFAULT_CONFIG, apply_args, load_config, save_config
from utils.errors import ConfigurationError


class TestLoadConfig(unittest.TestCase):

    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        self.path = os.path.join(self.tmpdir.name, "credtrap.json")

    def tearDown(self):
        self.tmpdir.cleanup()

    def test_defaults_without_path(self):
        config = load_config(None)
        self.assertEqual(config, DEFAULT_CONFIG)
        config["tls"]["name"] = "changed"
        self.assertEqual(DEFAULT_CONFIG["tls"]["name"], "localhost")

    def test_missing_file_uses_defaults(self):
        self.assertEqual(load_config(self.path), DEFAULT_CONFIG)

    def test_partial_file_keeps_defaults(self):
        with open(self.path, "w") as f:
            json.dump({"protocols": {"ssh_ports": "2222"}, "outputs": ["-"]}, f)

        config = load_config(self.path)

        self.assertEqual(config["protocols"]["ssh_ports"], "2222")
        self.assertEqual(config["protocols"]["ldap_ports"], "389")
        self.assertEqual(config["outputs"], ["-"])

    def test_invalid_json_is_fatal(self):
        with open(self.path, "w") as f:
            f.write("{not json")
        with self.assertRaises(ConfigurationError):
            load_config(self.path)

    def test_outputs_string_is_fatal(self):
        """A bare string for outputs is rejected instead of split into characters"""
        with open(self.path, "w") as f:
            json.dump({"outputs": "out.log"}, f)
        with self.assertRaises(ConfigurationError):
            load_config(self.path)

    def test_save_round_trip(self):
        config = load_config(None)
        config["network"]["bind_host"] = "127.0.0.1"
        self.assertTrue(save_config(config, self.path))
        self.assertEqual(load_config(self.path)["network"]["bind_host"], "127.0.0.1")


class TestApplyArgs(unittest.TestCase):

    def test_cli_overrides_file(self):
        args = build_parser().parse_args([
            "-p", "ssh", "--ssh-ports", "22,2222", "-I", "-v", "-", "/tmp/creds.json",
        ])

        config = apply_args(load_config(None), args)

        self.assertEqual(config["protocols"]["enabled"], "ssh")
        self.assertEqual(config["protocols"]["ssh_ports"], "22,2222")
        self.assertTrue(config["network"]["ignore_failures"])
        self.assertEqual(config["logging"]["level"], "DEBUG")
        self.assertEqual(config["outputs"], ["-", "/tmp/creds.json"])

    def test_unset_args_keep_config(self):
        config = load_config(None)
        config["protocols"]["snmp_ports"] = "1161"

        apply_args(config, build_parser().parse_args([]))

        self.assertEqual(config["protocols"]["snmp_ports"], "1161")
        self.assertFalse(config["network"]["ignore_failures"])
        self.assertEqual(config["outputs"], [])


if __name__ == '__main__':
    unittest.main()
