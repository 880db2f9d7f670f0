#!/usr/bin/env python3
"""
Base service classes for the honeypot capture listeners
"""

import socket
import threading
import logging
from typing import Dict, List, Any, Tuple, Optional

from utils.errors import ServiceError

ACCEPT_TIMEOUT = 1.0  # seconds between checks of the running flag
CLIENT_TIMEOUT = 30.0


class ListenerConfig:
    """
    Bind parameters for a single listener instance.

    One ListenerConfig is built per bound port. After a successful spawn it
    holds the running service, and shutdown() stops that listener.
    """

    def __init__(self, protocol: str, bind_host: str = "0.0.0.0", bind_port: int = 0,
                 record_writer: Any = None):
        self.protocol = protocol
        self.bind_host = bind_host
        self.bind_port = bind_port
        self.record_writer = record_writer

        # SSH
        self.private_key = ""

        # LDAPS
        self.tls = False
        self.tls_cert = b""
        self.tls_key = b""
        self.tls_name = ""

        self.service: Optional["BaseService"] = None

    def shutdown(self) -> None:
        """Stop the listener started from this config"""
        if self.service is not None:
            self.service.stop()

    def __repr__(self):
        return f"ListenerConfig({self.protocol} {self.bind_host}:{self.bind_port})"


class BaseService:
    """Base class for TCP capture services"""

    sock_type = socket.SOCK_STREAM

    def __init__(self, conf: ListenerConfig, service_name: str):
        """
        Initialize the base service

        Args:
            conf: Listener configuration (host, port, record writer)
            service_name: Name of the service (ssh, ldap, etc.)
        """
        self.conf = conf
        self.host = conf.bind_host
        self.port = conf.bind_port
        self.service_name = service_name
        self.sock: Optional[socket.socket] = None
        self.running = False
        self.thread: Optional[threading.Thread] = None
        self.logger = logging.getLogger(f"credtrap.{service_name}")

    def _family(self) -> int:
        return socket.AF_INET6 if ":" in self.host else socket.AF_INET

    def bind(self) -> None:
        """
        Bind the listening socket.

        Raises:
            ServiceError: If the address cannot be bound
        """
        sock = socket.socket(self._family(), self.sock_type)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            sock.bind((self.host, self.port))
            if self.sock_type == socket.SOCK_STREAM:
                sock.listen(128)
        except OSError as e:
            sock.close()
            raise ServiceError(f"failed to bind {self.host}:{self.port}: {e}") from e

        sock.settimeout(ACCEPT_TIMEOUT)
        self.sock = sock

        # Port 0 binds an ephemeral port; publish the real one
        self.port = sock.getsockname()[1]
        self.conf.bind_port = self.port

    def start(self) -> None:
        """Bind the socket and serve from a background thread"""
        self.bind()
        self.running = True
        self.thread = threading.Thread(target=self.serve, name=f"{self.service_name}-{self.port}")
        self.thread.daemon = True
        self.thread.start()
        self.logger.info(f"{self.service_name.upper()} listener started on {self.host}:{self.port}")

    def stop(self) -> None:
        """Stop the service"""
        if not self.running:
            return
        self.running = False
        if self.sock:
            self.sock.close()
        if self.thread and self.thread is not threading.current_thread():
            self.thread.join(ACCEPT_TIMEOUT * 2)
        self.logger.info(f"{self.service_name.upper()} listener stopped on {self.host}:{self.port}")

    def serve(self) -> None:
        while self.running:
            try:
                client, addr = self.sock.accept()
            except socket.timeout:
                continue
            except OSError as e:
                if self.running:
                    self.logger.error(f"Error accepting connection: {e}")
                break

            self.logger.debug(f"Connection from {addr[0]}:{addr[1]} to {self.service_name.upper()} service")
            client_handler = threading.Thread(
                target=self._handle_client_wrapper,
                args=(client, addr)
            )
            client_handler.daemon = True
            client_handler.start()

    def _handle_client_wrapper(self, client_socket: socket.socket, address: Tuple[str, int]) -> None:
        """
        Wrapper around handle_client to ensure the socket is always closed

        Args:
            client_socket: Client socket object
            address: Client address tuple (ip, port)
        """
        try:
            client_socket.settimeout(CLIENT_TIMEOUT)
            self.handle_client(client_socket, address)
        except Exception as e:
            self.logger.debug(f"Error handling client {address[0]}: {e}")
        finally:
            try:
                client_socket.close()
            except OSError:
                pass

    def handle_client(self, client_socket: socket.socket, address: Tuple[str, int]) -> None:
        """
        Handle a client connection - to be implemented by subclasses

        Args:
            client_socket: Client socket object
            address: Client address tuple (ip, port)
        """
        raise NotImplementedError("Subclasses must implement handle_client")

    def record(self, address: Tuple[str, int], fields: Dict[str, Any]) -> List[Exception]:
        """
        Hand a captured credential to the record writer.

        Delivery errors are logged here and not retried.
        """
        data = {"src": address[0], "src_port": address[1]}
        data.update(fields)

        rw = self.conf.record_writer
        if rw is None:
            return []

        errors = rw.record(self.service_name, self.host, self.port, data)
        for err in errors:
            self.logger.warning(f"credential from {address[0]} not delivered: {err}")
        return errors


class UDPService(BaseService):
    """Base class for datagram capture services"""

    sock_type = socket.SOCK_DGRAM
    max_datagram = 65535

    def serve(self) -> None:
        while self.running:
            try:
                data, addr = self.sock.recvfrom(self.max_datagram)
            except socket.timeout:
                continue
            except OSError as e:
                if self.running:
                    self.logger.error(f"Error receiving datagram: {e}")
                break

            try:
                self.handle_datagram(data, addr)
            except Exception as e:
                self.logger.debug(f"Error handling datagram from {addr[0]}: {e}")

    def handle_datagram(self, data: bytes, address: Tuple[str, int]) -> None:
        raise NotImplementedError("Subclasses must implement handle_datagram")
