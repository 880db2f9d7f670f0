#!/usr/bin/env python3
"""
LDAP and LDAPS simple bind capture service
"""

import os
import socket
import ssl
import tempfile
from typing import Optional, Tuple

from services.base_services import BaseService, ListenerConfig
from utils import ber
from utils.errors import ServiceError

MAX_MESSAGE_SIZE = 65536

# LDAP protocol operations
BIND_REQUEST = 0x60
BIND_RESPONSE = 0x61
UNBIND_REQUEST = 0x42
SIMPLE_AUTH = 0x80

RESULT_SUCCESS = 0
RESULT_INVALID_CREDENTIALS = 49


def build_bind_response(message_id: int, result_code: int, diagnostic: str = "") -> bytes:
    body = (
        ber.encode_int(result_code, ber.ENUMERATED)
        + ber.encode(ber.OCTET_STRING, b"")
        + ber.encode(ber.OCTET_STRING, diagnostic.encode())
    )
    return ber.encode(ber.SEQUENCE, ber.encode_int(message_id) + ber.encode(BIND_RESPONSE, body))


def build_server_context(cert: bytes, key: bytes) -> ssl.SSLContext:
    """
    Create a server-side TLS context from PEM material held in memory

    Raises:
        ServiceError: If the certificate or key cannot be loaded
    """
    context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)

    # load_cert_chain only accepts paths
    cert_fd, cert_path = tempfile.mkstemp(suffix=".pem")
    key_fd, key_path = tempfile.mkstemp(suffix=".pem")
    try:
        with os.fdopen(cert_fd, "wb") as f:
            f.write(cert)
        with os.fdopen(key_fd, "wb") as f:
            f.write(key)
        context.load_cert_chain(cert_path, key_path)
    except (ssl.SSLError, OSError) as e:
        raise ServiceError(f"failed to load TLS certificate: {e}") from e
    finally:
        os.unlink(cert_path)
        os.unlink(key_path)

    return context


class LDAPService(BaseService):
    """Records simple bind credentials and answers invalidCredentials"""

    def __init__(self, conf: ListenerConfig):
        super().__init__(conf, "ldaps" if conf.tls else "ldap")
        self.tls_context: Optional[ssl.SSLContext] = None
        if conf.tls:
            self.tls_context = build_server_context(conf.tls_cert, conf.tls_key)

    def handle_client(self, client_socket: socket.socket, address: Tuple[str, int]) -> None:
        conn = client_socket
        if self.tls_context is not None:
            conn = self.tls_context.wrap_socket(client_socket, server_side=True)

        try:
            buf = b""
            while self.running:
                size = ber.frame_length(buf)
                while size is None or len(buf) < size:
                    if size is not None and size > MAX_MESSAGE_SIZE:
                        self.logger.debug(f"[{address[0]}] LDAP message too large ({size} bytes)")
                        return
                    data = conn.recv(4096)
                    if not data:
                        return
                    buf += data
                    size = ber.frame_length(buf)

                message, buf = buf[:size], buf[size:]
                if not self.handle_message(conn, message, address):
                    return
        finally:
            if conn is not client_socket:
                conn.close()

    def handle_message(self, conn: socket.socket, data: bytes, address: Tuple[str, int]) -> bool:
        """
        Process one LDAPMessage

        Returns:
            False when the connection should be closed
        """
        message, _ = ber.decode(data)
        parts = message.children()
        if message.tag != ber.SEQUENCE or len(parts) < 2 or parts[0].tag != ber.INTEGER:
            return False

        message_id = parts[0].as_int()
        op = parts[1]

        if op.tag == UNBIND_REQUEST:
            return False

        if op.tag != BIND_REQUEST:
            self.logger.debug(f"[{address[0]}] unsupported LDAP operation 0x{op.tag:02x}")
            return False

        fields = op.children()
        if len(fields) < 3:
            return False

        version, name, auth = fields[0], fields[1], fields[2]
        if auth.tag != SIMPLE_AUTH:
            conn.sendall(build_bind_response(message_id, RESULT_INVALID_CREDENTIALS))
            return True

        username = name.as_str()
        password = auth.as_str()

        # Anonymous binds carry no credential
        if not username and not password:
            conn.sendall(build_bind_response(message_id, RESULT_SUCCESS))
            return True

        self.record(address, {
            "username": username,
            "password": password,
            "version": str(version.as_int()),
        })
        conn.sendall(build_bind_response(message_id, RESULT_INVALID_CREDENTIALS))
        return True


def spawn_ldap(conf: ListenerConfig) -> None:
    """
    Start an LDAP (or, with conf.tls set, LDAPS) capture listener

    Raises:
        ServiceError: If the TLS material is unusable or the port cannot be bound
    """
    service = LDAPService(conf)
    service.start()
    conf.service = service
