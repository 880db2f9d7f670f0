#!/usr/bin/env python3
"""
SNMP community string capture service
"""

from typing import Tuple

from services.base_services import ListenerConfig, UDPService
from utils import ber

SNMP_VERSIONS = {0: "1", 1: "2c"}


def parse_community(data: bytes) -> Tuple[str, str]:
    """
    Extract the protocol version and community string from an SNMP message

    Args:
        data: Raw datagram

    Returns:
        Tuple of (version, community)

    Raises:
        ber.BERError: If the datagram is not an SNMPv1/v2c message
    """
    message, _ = ber.decode(data)
    if message.tag != ber.SEQUENCE:
        raise ber.BERError("not an SNMP message")

    fields = message.children()
    if len(fields) < 2 or fields[0].tag != ber.INTEGER or fields[1].tag != ber.OCTET_STRING:
        raise ber.BERError("missing version or community")

    version = SNMP_VERSIONS.get(fields[0].as_int())
    if version is None:
        raise ber.BERError(f"unsupported SNMP version {fields[0].as_int()}")

    return version, fields[1].as_str()


class SNMPService(UDPService):
    """Records community strings from SNMPv1/v2c requests without replying"""

    def __init__(self, conf: ListenerConfig):
        super().__init__(conf, "snmp")

    def handle_datagram(self, data: bytes, address: Tuple[str, int]) -> None:
        try:
            version, community = parse_community(data)
        except ber.BERError as e:
            self.logger.debug(f"Ignoring datagram from {address[0]}: {e}")
            return

        self.record(address, {"version": version, "community": community})


def spawn_snmp(conf: ListenerConfig) -> None:
    """Start an SNMP capture listener for conf"""
    service = SNMPService(conf)
    service.start()
    conf.service = service
