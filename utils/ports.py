#!/usr/bin/env python3
"""
Port list parsing for listener configuration
"""

from typing import List, Set

MIN_PORT = 1
MAX_PORT = 65535


def _to_port(token: str) -> int:
    try:
        port = int(token)
    except ValueError:
        raise ValueError(f"invalid port: {token!r}")
    if port < MIN_PORT or port > MAX_PORT:
        raise ValueError(f"port out of range: {port}")
    return port


def parse_ports(spec: str) -> List[int]:
    """
    Expand a port specification such as "22,2222,8000-8010" into ports

    Args:
        spec: Comma separated ports and inclusive ranges

    Returns:
        Sorted list of unique port numbers (empty for an empty spec)

    Raises:
        ValueError: If a token is not a port or a range is reversed
    """
    ports: Set[int] = set()

    for token in (spec or "").split(","):
        token = token.strip()
        if not token:
            continue

        if "-" in token:
            start_text, _, end_text = token.partition("-")
            start = _to_port(start_text.strip())
            end = _to_port(end_text.strip())
            if end < start:
                raise ValueError(f"invalid port range: {token!r}")
            ports.update(range(start, end + 1))
        else:
            ports.add(_to_port(token))

    return sorted(ports)
