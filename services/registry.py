#!/usr/bin/env python3
"""
Protocol listener setup: one listener per configured port for each protocol
"""

import logging
from typing import Any, Callable, Dict, List, Optional

from services.base_services import ListenerConfig
from services.ldap_service import spawn_ldap
from services.snmp_service import spawn_snmp
from services.ssh_service import spawn_ssh
from utils.errors import ConfigurationError
from utils.keys import TLSMaterial, generate_ssh_host_key, load_ssh_host_key
from utils.ports import parse_ports

logger = logging.getLogger("credtrap.registry")


def _parse(protocol: str, port_spec: str) -> List[int]:
    try:
        return parse_ports(port_spec)
    except ValueError as e:
        raise ConfigurationError(f"failed to process {protocol} ports {port_spec}: {e}") from e


def _spawn_listeners(session: Any, protocol: str, port_spec: str, rw: Any,
                     spawn: Callable[[ListenerConfig], None],
                     prepare: Optional[Callable[[ListenerConfig], None]] = None) -> int:
    """
    Spawn one listener per port and register each success with the session

    Args:
        session: Session owning the protocol counter and shutdown handlers
        protocol: Protocol name used in diagnostics
        port_spec: Port list such as "389,3268-3269"
        rw: Shared RecordWriter
        spawn: Engine entry point that starts a listener for a config
        prepare: Optional hook that fills protocol specific config fields

    Returns:
        Number of listeners started

    Raises:
        ConfigurationError: On a bad port list, or a spawn failure when
            failures are not tolerated
    """
    bind_host = session.config["network"]["bind_host"]
    ignore_failures = session.config["network"]["ignore_failures"]
    started = 0

    for port in _parse(protocol, port_spec):
        conf = ListenerConfig(protocol, bind_host, port, rw)
        if prepare is not None:
            prepare(conf)

        try:
            spawn(conf)
        except Exception as e:
            message = f"failed to start {protocol} server {conf.bind_host}:{conf.bind_port}: {e}"
            if not ignore_failures:
                raise ConfigurationError(message) from e
            logger.error(message)
            continue

        session.register_listener(conf)
        started += 1

    return started


def setup_ssh(session: Any, rw: Any, tls: Optional[TLSMaterial] = None) -> int:
    protocols = session.config["protocols"]
    if protocols["ssh_host_key"]:
        host_key = load_ssh_host_key(protocols["ssh_host_key"])
    else:
        try:
            host_key = generate_ssh_host_key(2048)
        except Exception as e:
            raise ConfigurationError(f"failed to create ssh host key: {e}") from e

    def prepare(conf: ListenerConfig) -> None:
        conf.private_key = host_key

    return _spawn_listeners(session, "ssh", protocols["ssh_ports"], rw, spawn_ssh, prepare)


def setup_snmp(session: Any, rw: Any, tls: Optional[TLSMaterial] = None) -> int:
    return _spawn_listeners(session, "snmp", session.config["protocols"]["snmp_ports"], rw, spawn_snmp)


def setup_ldap(session: Any, rw: Any, tls: Optional[TLSMaterial] = None) -> int:
    return _spawn_listeners(session, "ldap", session.config["protocols"]["ldap_ports"], rw, spawn_ldap)


def setup_ldaps(session: Any, rw: Any, tls: Optional[TLSMaterial] = None) -> int:
    if tls is None:
        raise ConfigurationError("ldaps requires TLS material")
    tls_name = session.config["tls"]["name"]

    def prepare(conf: ListenerConfig) -> None:
        conf.tls = True
        conf.tls_cert = tls.cert
        conf.tls_key = tls.key
        conf.tls_name = tls_name

    return _spawn_listeners(session, "ldaps", session.config["protocols"]["ldaps_ports"], rw,
                            spawn_ldap, prepare)


# Setup order is bind order: snmp, ssh, ldap, ldaps
PROTOCOL_SETUP = [
    ("snmp", setup_snmp),
    ("ssh", setup_ssh),
    ("ldap", setup_ldap),
    ("ldaps", setup_ldaps),
]

# "ldap" in the enable list turns on both plain and TLS listeners
PROTOCOL_ALIASES: Dict[str, List[str]] = {
    "ldap": ["ldap", "ldaps"],
}


def enabled_protocols(enabled: str) -> List[str]:
    """
    Expand a comma separated enable list into setup order

    Raises:
        ConfigurationError: On an unknown protocol name
    """
    known = {name for name, _ in PROTOCOL_SETUP}
    wanted = set()
    for name in (enabled or "").split(","):
        name = name.strip().lower()
        if not name:
            continue
        expanded = PROTOCOL_ALIASES.get(name, [name])
        for item in expanded:
            if item not in known:
                raise ConfigurationError(f"unknown protocol: {name}")
            wanted.add(item)

    return [name for name, _ in PROTOCOL_SETUP if name in wanted]
