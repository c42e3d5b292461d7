import ssl
import asyncio
import threading
import ipaddress
import contextlib
import concurrent.futures
from collections import namedtuple
from datetime import datetime, timedelta, timezone

import pytest

from cryptography import x509
from cryptography.x509.oid import NameOID, ExtendedKeyUsageOID, AuthorityInformationAccessOID
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa

HOST = "127.0.0.1"
CA_NAME = "stelnet test CA"
SERVER_NAME = "localhost"
OCSP_URL = "http://ocsp.stelnet.test"
UNKNOWN_USAGE = "1.3.6.1.4.1.99999.1"

Certs = namedtuple("Certs", ["ca_file", "chain_file", "key_file", "ca_cert", "server_cert"])


def generate_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


def build_cert(key, subject, issuer, signing_key, extensions):
    now = datetime.now(timezone.utc)
    builder = (
        x509.CertificateBuilder()
        .subject_name(subject)
        .issuer_name(issuer)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - timedelta(minutes=5))
        .not_valid_after(now + timedelta(days=1))
    )
    for ext, critical in extensions:
        builder = builder.add_extension(ext, critical=critical)
    return builder.sign(signing_key, hashes.SHA256())


def create_ca(key):
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, CA_NAME)])
    return build_cert(key, name, name, key, [
        (x509.BasicConstraints(ca=True, path_length=0), True),
        (x509.SubjectKeyIdentifier.from_public_key(key.public_key()), False),
        (x509.KeyUsage(
            digital_signature=False, content_commitment=False, key_encipherment=False,
            data_encipherment=False, key_agreement=False, key_cert_sign=True, crl_sign=True,
            encipher_only=False, decipher_only=False), True),
    ])


def create_server_cert(key, ca_cert, ca_key):
    return build_cert(key, x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, SERVER_NAME)]), ca_cert.subject, ca_key, [
        (x509.BasicConstraints(ca=False, path_length=None), True),
        (x509.SubjectKeyIdentifier.from_public_key(key.public_key()), False),
        (x509.AuthorityKeyIdentifier.from_issuer_public_key(ca_key.public_key()), False),
        (x509.SubjectAlternativeName([
            x509.DNSName(SERVER_NAME),
            x509.DNSName("stelnet.test"),
            x509.IPAddress(ipaddress.ip_address(HOST)),
        ]), False),
        (x509.KeyUsage(
            digital_signature=True, content_commitment=False, key_encipherment=True,
            data_encipherment=False, key_agreement=False, key_cert_sign=False, crl_sign=False,
            encipher_only=False, decipher_only=False), True),
        (x509.ExtendedKeyUsage([ExtendedKeyUsageOID.SERVER_AUTH, x509.ObjectIdentifier(UNKNOWN_USAGE)]), False),
        (x509.AuthorityInformationAccess([
            x509.AccessDescription(AuthorityInformationAccessOID.OCSP, x509.UniformResourceIdentifier(OCSP_URL)),
        ]), False),
    ])


def pem(cert):
    return cert.public_bytes(serialization.Encoding.PEM)


@pytest.fixture(scope="session")
def certs(tmp_path_factory):
    path = tmp_path_factory.mktemp("certs")

    ca_key = generate_key()
    ca_cert = create_ca(ca_key)
    server_key = generate_key()
    server_cert = create_server_cert(server_key, ca_cert, ca_key)

    ca_file = path / "ca.crt"
    ca_file.write_bytes(pem(ca_cert))

    chain_file = path / "server.crt"
    chain_file.write_bytes(pem(server_cert) + pem(ca_cert))

    key_file = path / "server.key"
    key_file.write_bytes(server_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption()))

    return Certs(str(ca_file), str(chain_file), str(key_file), ca_cert, server_cert)


async def echo(reader, writer):
    while True:
        line = await reader.readline()
        if not line:
            break
        writer.write(line)
        await writer.drain()
    writer.close()


async def big_response(reader, writer):
    await reader.readline()
    writer.write(b"x" * 3000)
    await writer.drain()
    await reader.read()
    writer.close()


@pytest.fixture
def tls_server(certs):
    """
    Returns an async context manager running `handler` behind TLS on a free local port.
    """

    @contextlib.asynccontextmanager
    async def _server(handler=echo):
        context = ssl.create_default_context(ssl.Purpose.CLIENT_AUTH)
        context.load_cert_chain(certfile=certs.chain_file, keyfile=certs.key_file)

        server = await asyncio.start_server(handler, HOST, 0, ssl=context)
        port = server.sockets[0].getsockname()[1]
        async with server:
            yield port

    return _server


@pytest.fixture
def threaded_tls_server(tls_server):
    """
    Like `tls_server`, but served from its own event loop on a background thread so
    synchronous code (the command line entry point) can connect to it.
    """

    @contextlib.contextmanager
    def _server(handler=echo):
        loop = asyncio.new_event_loop()
        ready = concurrent.futures.Future()
        stop = asyncio.Event()

        async def serve():
            async with tls_server(handler) as port:
                ready.set_result(port)
                await stop.wait()

        thread = threading.Thread(target=loop.run_until_complete, args=(serve(),), daemon=True)
        thread.start()
        try:
            yield ready.result(5)
        finally:
            loop.call_soon_threadsafe(stop.set)
            thread.join(5)
            loop.close()

    return _server
