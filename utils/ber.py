#!/usr/bin/env python3
"""
Minimal BER (ASN.1 Basic Encoding Rules) support for the SNMP and LDAP services.

Only definite-length encodings are handled, which covers every SNMP and LDAP
client seen in practice.
"""

from typing import List, Optional, Tuple

# Universal tags
INTEGER = 0x02
OCTET_STRING = 0x04
ENUMERATED = 0x0A
SEQUENCE = 0x30


class BERError(ValueError):
    """Raised on truncated or malformed BER input"""


class TLV:
    """A decoded tag/length/value element"""

    def __init__(self, tag: int, value: bytes):
        self.tag = tag
        self.value = value

    @property
    def constructed(self) -> bool:
        return bool(self.tag & 0x20)

    def children(self) -> List["TLV"]:
        """Decode the value of a constructed element into its members"""
        items = []
        offset = 0
        while offset < len(self.value):
            item, offset = decode(self.value, offset)
            items.append(item)
        return items

    def as_int(self) -> int:
        return int.from_bytes(self.value, "big", signed=True) if self.value else 0

    def as_str(self) -> str:
        return self.value.decode("utf-8", errors="replace")

    def __repr__(self):
        return f"TLV(tag=0x{self.tag:02x}, len={len(self.value)})"


def decode(data: bytes, offset: int = 0) -> Tuple[TLV, int]:
    """
    Decode one element starting at offset

    Returns:
        The element and the offset just past it
    """
    if offset + 2 > len(data):
        raise BERError("truncated header")

    tag = data[offset]
    length = data[offset + 1]
    offset += 2

    if length & 0x80:
        count = length & 0x7F
        if count == 0 or count > 4:
            raise BERError("unsupported length encoding")
        if offset + count > len(data):
            raise BERError("truncated length")
        length = int.from_bytes(data[offset:offset + count], "big")
        offset += count

    end = offset + length
    if end > len(data):
        raise BERError("truncated value")

    return TLV(tag, data[offset:end]), end


def frame_length(data: bytes) -> Optional[int]:
    """
    Total size of the first element in a stream buffer, or None if the header
    has not fully arrived yet.
    """
    if len(data) < 2:
        return None
    length = data[1]
    if not length & 0x80:
        return 2 + length
    count = length & 0x7F
    if count == 0 or count > 4:
        raise BERError("unsupported length encoding")
    if len(data) < 2 + count:
        return None
    return 2 + count + int.from_bytes(data[2:2 + count], "big")


def encode(tag: int, value: bytes) -> bytes:
    length = len(value)
    if length < 0x80:
        header = bytes([tag, length])
    else:
        raw = length.to_bytes((length.bit_length() + 7) // 8, "big")
        header = bytes([tag, 0x80 | len(raw)]) + raw
    return header + value


def encode_int(value: int, tag: int = INTEGER) -> bytes:
    size = max(1, (value.bit_length() + 8) // 8)
    return encode(tag, value.to_bytes(size, "big", signed=True))
