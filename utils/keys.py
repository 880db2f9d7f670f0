#!/usr/bin/env python3
"""
Key material for the SSH and LDAPS listeners
"""

import datetime
import io
import logging
from typing import Optional

import paramiko
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import NameOID

from utils.errors import ConfigurationError

logger = logging.getLogger("credtrap.keys")


class TLSMaterial:
    """PEM certificate and private key shared by every TLS listener"""

    def __init__(self, cert: bytes, key: bytes, generated: bool = False):
        self.cert = cert
        self.key = key
        self.generated = generated

    def __repr__(self):
        return f"TLSMaterial(cert={len(self.cert)}B, key={len(self.key)}B, generated={self.generated})"


def _read_file(path: str, what: str) -> bytes:
    try:
        with open(path, "rb") as f:
            return f.read()
    except OSError as e:
        raise ConfigurationError(f"failed to read {what} {path}: {e}") from e


def generate_tls_certificate(name: str = "localhost", org: str = "credtrap",
                             bits: int = 2048) -> TLSMaterial:
    """
    Create a self-signed certificate and key valid for one year

    Args:
        name: Common name and DNS subject alternative name
        org: Organization name placed in the subject
        bits: RSA modulus size

    Returns:
        Freshly generated TLSMaterial
    """
    key = rsa.generate_private_key(public_exponent=65537, key_size=bits)
    subject = x509.Name([
        x509.NameAttribute(NameOID.ORGANIZATION_NAME, org),
        x509.NameAttribute(NameOID.COMMON_NAME, name),
    ])

    now = datetime.datetime.now(datetime.timezone.utc)
    cert = (
        x509.CertificateBuilder()
        .subject_name(subject)
        .issuer_name(subject)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - datetime.timedelta(days=1))
        .not_valid_after(now + datetime.timedelta(days=365))
        .add_extension(x509.SubjectAlternativeName([x509.DNSName(name)]), critical=False)
        .add_extension(x509.BasicConstraints(ca=True, path_length=None), critical=True)
        .sign(key, hashes.SHA256())
    )

    cert_pem = cert.public_bytes(serialization.Encoding.PEM)
    key_pem = key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )
    return TLSMaterial(cert_pem, key_pem, generated=True)


def resolve_tls_material(cert_path: Optional[str], key_path: Optional[str],
                         name: str = "localhost", org: str = "credtrap") -> TLSMaterial:
    """
    Load TLS material from disk, or synthesize it when none is usable.

    The certificate file doubles as the key source (combined PEM) unless a
    separate key file is given.

    Raises:
        ConfigurationError: If a supplied path cannot be read
    """
    cert_data = b""
    key_data = b""

    if cert_path:
        cert_data = _read_file(cert_path, "TLS certificate")
        key_data = cert_data

        if key_path:
            key_data = _read_file(key_path, "TLS key")

    if not cert_data or not key_data:
        logger.info(f"Generating self-signed TLS certificate for {name}")
        return generate_tls_certificate(name, org)

    return TLSMaterial(cert_data, key_data)


def generate_ssh_host_key(bits: int = 2048) -> str:
    """Create an RSA host key and return it PEM encoded"""
    key = paramiko.RSAKey.generate(bits)
    buf = io.StringIO()
    key.write_private_key(buf)
    return buf.getvalue()


def load_ssh_host_key(path: str) -> str:
    """Read a PEM host key from disk"""
    return _read_file(path, "ssh host key").decode("utf-8", errors="replace")
