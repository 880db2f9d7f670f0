"""
End to end tests for the capture services over loopback sockets
"""

import os
import socket
import ssl
import sys
import unittest

import paramiko

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from services.base_services import ListenerConfig
from services.ldap_service import build_bind_response, spawn_ldap
from services.snmp_service import parse_community, spawn_snmp
from services.ssh_service import spawn_ssh
from tests.helpers import MemorySink
from utils import ber
from utils.errors import ServiceError
from utils.keys import generate_ssh_host_key, generate_tls_certificate
from utils.output_manager import RecordWriter

SNMP_GET = bytes.fromhex(
    "302902010104067075626c6963a01c0204"
    "1234567802010002010030"
    "0e300c06082b060102010105000500"
)


def bind_request(message_id, dn, password):
    body = ber.encode_int(3) + ber.encode(ber.OCTET_STRING, dn.encode()) + ber.encode(0x80, password.encode())
    return ber.encode(ber.SEQUENCE, ber.encode_int(message_id) + ber.encode(0x60, body))


def read_result_code(sock):
    message, _ = ber.decode(sock.recv(4096))
    message_id, response = message.children()[:2]
    return message_id.as_int(), response.children()[0].as_int()


class ServiceTestCase(unittest.TestCase):

    def setUp(self):
        self.sink = MemorySink()
        self.rw = RecordWriter([self.sink])
        self.configs = []

    def tearDown(self):
        for conf in self.configs:
            conf.shutdown()

    def listener(self, protocol, spawn, **attrs):
        conf = ListenerConfig(protocol, "127.0.0.1", 0, self.rw)
        for key, value in attrs.items():
            setattr(conf, key, value)
        spawn(conf)
        self.configs.append(conf)
        return conf

    def wait_for_record(self):
        self.assertTrue(self.sink.delivered.wait(5), "no credential recorded")
        return self.sink.records[0]


class TestLDAPService(ServiceTestCase):

    def test_simple_bind_is_recorded_and_rejected(self):
        conf = self.listener("ldap", spawn_ldap)

        with socket.create_connection(("127.0.0.1", conf.bind_port), timeout=5) as sock:
            sock.sendall(bind_request(1, "cn=admin,dc=example,dc=com", "Winter2024!"))
            self.assertEqual(read_result_code(sock), (1, 49))

        rec = self.wait_for_record()
        self.assertEqual(rec["_rtype"], "ldap")
        self.assertEqual(rec["username"], "cn=admin,dc=example,dc=com")
        self.assertEqual(rec["password"], "Winter2024!")
        self.assertEqual(rec["src"], "127.0.0.1")

    def test_anonymous_bind_not_recorded(self):
        conf = self.listener("ldap", spawn_ldap)

        with socket.create_connection(("127.0.0.1", conf.bind_port), timeout=5) as sock:
            sock.sendall(bind_request(7, "", ""))
            self.assertEqual(read_result_code(sock), (7, 0))

        self.assertEqual(self.sink.records, [])

    def test_ldaps_bind(self):
        tls = generate_tls_certificate("localhost", "credtrap")
        conf = self.listener("ldaps", spawn_ldap, tls=True, tls_cert=tls.cert, tls_key=tls.key)

        context = ssl.create_default_context()
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
        with socket.create_connection(("127.0.0.1", conf.bind_port), timeout=5) as raw:
            with context.wrap_socket(raw, server_hostname="localhost") as sock:
                sock.sendall(bind_request(2, "svc_backup", "hunter2"))
                self.assertEqual(read_result_code(sock), (2, 49))

        rec = self.wait_for_record()
        self.assertEqual(rec["_rtype"], "ldaps")
        self.assertEqual(rec["password"], "hunter2")

    def test_bad_tls_material_fails_spawn(self):
        conf = ListenerConfig("ldaps", "127.0.0.1", 0, self.rw)
        conf.tls = True
        conf.tls_cert = b"not a cert"
        conf.tls_key = b"not a key"
        with self.assertRaises(ServiceError):
            spawn_ldap(conf)

    def test_bind_response_encoding(self):
        self.assertEqual(build_bind_response(1, 49),
                         bytes.fromhex("300c02010161070a0131040004 00".replace(" ", "")))


class TestSNMPService(ServiceTestCase):

    def test_parse_community(self):
        self.assertEqual(parse_community(SNMP_GET), ("2c", "public"))

    def test_parse_rejects_garbage(self):
        with self.assertRaises(ber.BERError):
            parse_community(b"\x01\x02\x03")

    def test_community_is_recorded(self):
        conf = self.listener("snmp", spawn_snmp)

        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
            sock.sendto(SNMP_GET, ("127.0.0.1", conf.bind_port))

        rec = self.wait_for_record()
        self.assertEqual(rec["_rtype"], "snmp")
        self.assertEqual(rec["community"], "public")
        self.assertEqual(rec["version"], "2c")


class TestSSHService(ServiceTestCase):

    @classmethod
    def setUpClass(cls):
        cls.host_key = generate_ssh_host_key(2048)

    def test_password_attempt_is_recorded(self):
        conf = self.listener("ssh", spawn_ssh, private_key=self.host_key)

        transport = paramiko.Transport(("127.0.0.1", conf.bind_port))
        try:
            with self.assertRaises(paramiko.SSHException):
                transport.connect(username="root", password="toor")
        finally:
            transport.close()

        rec = self.wait_for_record()
        self.assertEqual(rec["_rtype"], "ssh")
        self.assertEqual(rec["username"], "root")
        self.assertEqual(rec["password"], "toor")
        self.assertTrue(rec["version"].startswith("SSH-2.0-"))

    def test_invalid_host_key_fails_spawn(self):
        conf = ListenerConfig("ssh", "127.0.0.1", 0, self.rw)
        conf.private_key = "garbage"
        with self.assertRaises(ServiceError):
            spawn_ssh(conf)

    def test_port_in_use_fails_spawn(self):
        blocker = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        blocker.bind(("127.0.0.1", 0))
        blocker.listen(1)
        try:
            conf = ListenerConfig("ssh", "127.0.0.1", blocker.getsockname()[1], self.rw)
            conf.private_key = self.host_key
            with self.assertRaises(ServiceError):
                spawn_ssh(conf)
        finally:
            blocker.close()


if __name__ == '__main__':
    unittest.main()
