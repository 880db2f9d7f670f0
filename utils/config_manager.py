#!/usr/bin/env python3
"""
Configuration manager for the credtrap honeypot
"""

import copy
import json
import os
import logging
from typing import Dict, Any, Optional

from utils.errors import ConfigurationError

# Default configuration
DEFAULT_CONFIG = {
    "network": {
        "bind_host": "0.0.0.0",
        "ignore_failures": False
    },
    "protocols": {
        "enabled": "ssh,snmp,ldap",
        "ssh_ports": "22",
        "ssh_host_key": "",
        "snmp_ports": "161",
        "ldap_ports": "389",
        "ldaps_ports": "636"
    },
    "tls": {
        "cert": "",
        "key": "",
        "name": "localhost",
        "org": "credtrap"
    },
    "outputs": [],
    "logging": {
        "level": "INFO",
        "file": ""
    },
    "lifecycle": {
        "poll_interval": 1.0  # seconds
    }
}

# argparse destination -> (section, key)
ARG_MAP = {
    "bind_host": ("network", "bind_host"),
    "protocols": ("protocols", "enabled"),
    "ssh_ports": ("protocols", "ssh_ports"),
    "ssh_host_key": ("protocols", "ssh_host_key"),
    "snmp_ports": ("protocols", "snmp_ports"),
    "ldap_ports": ("protocols", "ldap_ports"),
    "ldaps_ports": ("protocols", "ldaps_ports"),
    "tls_cert": ("tls", "cert"),
    "tls_key": ("tls", "key"),
    "tls_name": ("tls", "name"),
    "tls_org": ("tls", "org"),
    "log_file": ("logging", "file"),
}


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load configuration from a JSON file merged over the defaults.

    Args:
        config_path: Path to the configuration file, or None for defaults only

    Returns:
        Dict containing configuration

    Raises:
        ConfigurationError: If the file exists but cannot be read or parsed
    """
    config = copy.deepcopy(DEFAULT_CONFIG)

    if not config_path:
        return config

    if not os.path.exists(config_path):
        logging.getLogger("credtrap.config").info(
            f"No configuration at {config_path}, using defaults")
        return config

    try:
        with open(config_path, 'r') as f:
            loaded = json.load(f)
    except (OSError, ValueError) as e:
        raise ConfigurationError(f"failed to load config {config_path}: {e}") from e

    if not isinstance(loaded, dict):
        raise ConfigurationError(f"config {config_path} must contain a JSON object")

    config = _recursive_update(config, loaded)

    outputs = config["outputs"]
    if not isinstance(outputs, list) or not all(isinstance(o, str) for o in outputs):
        raise ConfigurationError(f"config {config_path}: \"outputs\" must be a list of strings")

    return config


def apply_args(config: Dict[str, Any], args: Any) -> Dict[str, Any]:
    """
    Layer command line arguments over a loaded configuration.

    Only arguments the user actually supplied (not None) override the file.
    """
    for dest, (section, key) in ARG_MAP.items():
        value = getattr(args, dest, None)
        if value is not None:
            config[section][key] = value

    if getattr(args, "outputs", None):
        config["outputs"] = list(args.outputs)

    if getattr(args, "ignore_failures", False):
        config["network"]["ignore_failures"] = True

    if getattr(args, "verbose", False):
        config["logging"]["level"] = "DEBUG"

    return config


def save_config(config: Dict[str, Any], config_path: str) -> bool:
    """
    Save configuration to a JSON file

    Args:
        config: Configuration dictionary
        config_path: Path to save the configuration

    Returns:
        True if successful, False otherwise
    """
    logger = logging.getLogger("credtrap.config")
    try:
        directory = os.path.dirname(config_path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        with open(config_path, 'w') as f:
            json.dump(config, f, indent=4)

        logger.info(f"Saved configuration to {config_path}")
        return True
    except OSError as e:
        logger.error(f"Error saving config to {config_path}: {e}")
        return False


def _recursive_update(d: Dict[str, Any], u: Dict[str, Any]) -> Dict[str, Any]:
    """
    Recursively update a dictionary with another dictionary

    Args:
        d: Dictionary to update
        u: Dictionary with updates

    Returns:
        Updated dictionary
    """
    for k, v in u.items():
        if isinstance(v, dict) and k in d and isinstance(d[k], dict):
            _recursive_update(d[k], v)
        else:
            d[k] = v
    return d
