#!/usr/bin/env python3
"""
SSH credential capture service for the honeypot system
"""

import io
import socket
from typing import Tuple

import paramiko

from services.base_services import BaseService, ListenerConfig
from utils.errors import ServiceError

SESSION_TIMEOUT = 60.0
DEFAULT_BANNER = "SSH-2.0-OpenSSH_7.4p1 Ubuntu-10"


class SSHService(BaseService):
    """SSH service that records every authentication attempt and rejects it"""

    def __init__(self, conf: ListenerConfig):
        super().__init__(conf, "ssh")
        try:
            self.host_key = paramiko.RSAKey(file_obj=io.StringIO(conf.private_key))
        except (paramiko.SSHException, ValueError) as e:
            raise ServiceError(f"invalid ssh host key: {e}") from e

    def handle_client(self, client_socket: socket.socket, address: Tuple[str, int]) -> None:
        """
        Run the SSH handshake until the client gives up or times out

        Args:
            client_socket: Client socket object
            address: Client address tuple (ip, port)
        """
        transport = paramiko.Transport(client_socket)
        transport.local_version = DEFAULT_BANNER
        transport.add_server_key(self.host_key)
        server_interface = CaptureServerInterface(self, transport, address)

        try:
            transport.start_server(server=server_interface)
            # Every auth attempt fails, so the transport ends when the client disconnects
            transport.join(SESSION_TIMEOUT)
        except (paramiko.SSHException, EOFError, OSError) as e:
            self.logger.debug(f"[{address[0]}] SSH session error: {e}")
        finally:
            transport.close()


class CaptureServerInterface(paramiko.ServerInterface):
    def __init__(self, service: SSHService, transport: paramiko.Transport, address: Tuple[str, int]):
        self.service = service
        self.transport = transport
        self.address = address
        self.username = ""

    def _client_version(self) -> str:
        return self.transport.remote_version or ""

    def get_allowed_auths(self, username):
        return "password,keyboard-interactive,publickey"

    def check_auth_password(self, username, password):
        self.service.record(self.address, {
            "username": username,
            "password": password,
            "version": self._client_version(),
        })
        return paramiko.AUTH_FAILED

    def check_auth_publickey(self, username, key):
        self.service.record(self.address, {
            "username": username,
            "public_key_type": key.get_name(),
            "public_key_fingerprint": key.get_fingerprint().hex(),
            "version": self._client_version(),
        })
        return paramiko.AUTH_FAILED

    def check_auth_interactive(self, username, submethods):
        self.username = username
        query = paramiko.InteractiveQuery()
        query.add_prompt("Password: ", False)
        return query

    def check_auth_interactive_response(self, responses):
        if responses:
            self.service.record(self.address, {
                "username": self.username,
                "password": responses[0],
                "version": self._client_version(),
            })
        return paramiko.AUTH_FAILED

    def check_channel_request(self, kind, chanid):
        return paramiko.OPEN_FAILED_ADMINISTRATIVELY_PROHIBITED


def spawn_ssh(conf: ListenerConfig) -> None:
    """
    Start an SSH capture listener for conf

    Raises:
        ServiceError: If the host key is invalid or the port cannot be bound
    """
    service = SSHService(conf)
    service.start()
    conf.service = service
