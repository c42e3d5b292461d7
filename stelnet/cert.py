import logging

from cryptography import x509
from cryptography.x509.oid import ExtendedKeyUsageOID, AuthorityInformationAccessOID

log = logging.getLogger(__name__)

# same bit order as the keyUsage BIT STRING
KEY_USAGE_BITS = [
    ("digital_signature", 1 << 0),
    ("content_commitment", 1 << 1),
    ("key_encipherment", 1 << 2),
    ("data_encipherment", 1 << 3),
    ("key_agreement", 1 << 4),
    ("key_cert_sign", 1 << 5),
    ("crl_sign", 1 << 6),
    ("encipher_only", 1 << 7),
    ("decipher_only", 1 << 8),
]

EXT_KEY_USAGE_NAMES = {
    ExtendedKeyUsageOID.SERVER_AUTH: "serverAuth",
    ExtendedKeyUsageOID.CLIENT_AUTH: "clientAuth",
    ExtendedKeyUsageOID.CODE_SIGNING: "codeSigning",
    ExtendedKeyUsageOID.EMAIL_PROTECTION: "emailProtection",
    ExtendedKeyUsageOID.TIME_STAMPING: "timeStamping",
    ExtendedKeyUsageOID.OCSP_SIGNING: "OCSPSigning",
    ExtendedKeyUsageOID.ANY_EXTENDED_KEY_USAGE: "any",
}


def get_extension(cert, ext_type):
    try:
        return cert.extensions.get_extension_for_class(ext_type).value
    except x509.ExtensionNotFound:
        return None


def peer_chain(ssl_object):
    """
    DER encoded peer certificates, leaf first.

    The full chain is only exposed by newer `ssl` modules; older ones only give us the leaf.
    """
    if ssl_object is None:
        return []

    get_chain = getattr(ssl_object, "get_unverified_chain", None)
    if get_chain is not None:
        chain = get_chain()
        if chain:
            return list(chain)

    leaf = ssl_object.getpeercert(binary_form=True)
    return [leaf] if leaf else []


def key_usage_bits(cert):
    usage = get_extension(cert, x509.KeyUsage)
    if usage is None:
        return 0

    bits = 0
    for name, bit in KEY_USAGE_BITS:
        try:
            if getattr(usage, name):
                bits |= bit
        except ValueError:
            # encipher_only/decipher_only are undefined without key_agreement
            pass
    return bits


def ext_key_usages(cert):
    usage = get_extension(cert, x509.ExtendedKeyUsage)
    if usage is None:
        return [], []

    known, unknown = [], []
    for oid in usage:
        if oid in EXT_KEY_USAGE_NAMES:
            known.append(EXT_KEY_USAGE_NAMES[oid])
        else:
            unknown.append(oid.dotted_string)
    return known, unknown


def dns_names(cert):
    san = get_extension(cert, x509.SubjectAlternativeName)
    return san.get_values_for_type(x509.DNSName) if san is not None else []


def ocsp_servers(cert):
    aia = get_extension(cert, x509.AuthorityInformationAccess)
    if aia is None:
        return []
    return [desc.access_location.value for desc in aia
            if desc.access_method == AuthorityInformationAccessOID.OCSP]


def describe_cert(cert):
    constraints = get_extension(cert, x509.BasicConstraints)
    path_length = -1
    if constraints is not None and constraints.path_length is not None:
        path_length = constraints.path_length
    names = dns_names(cert)
    known, unknown = ext_key_usages(cert)
    ocsp = ocsp_servers(cert)

    lines = [
        "  Subject: {}".format(cert.subject.rfc4514_string()),
        "  Issuer: {}".format(cert.issuer.rfc4514_string()),
        "  SerialNumber: {}".format(cert.serial_number),
        "  NotBefore: {}".format(cert.not_valid_before_utc),
        "  NotAfter: {}".format(cert.not_valid_after_utc),
        "  BasicConstraintsValid: {}".format(constraints is not None),
        "  IsCA: {}".format(constraints is not None and constraints.ca),
        "  MaxPathLen: {}".format(path_length),
        "  MaxPathLenZero: {}".format(path_length == 0),
        "  SubjectAlternateNames: {}".format(len(names)),
    ]
    lines.extend("    {}".format(name) for name in names)
    lines.extend([
        "  KeyUsage: {}".format(key_usage_bits(cert)),
        "  ExtKeyUsage: {}".format(known),
        "  UnknownExtKeyUsage: {}".format(unknown),
        "  OCSPServer: {}".format(len(ocsp)),
    ])
    lines.extend("    {}".format(server) for server in ocsp)
    return lines


def describe(ssl_object):
    """
    Human readable report of the negotiated TLS state and the peer certificate chain.
    Missing values print as empty/zero.
    """
    if ssl_object is not None:
        cipher = ssl_object.cipher()
        version = ssl_object.version()
        did_resume = ssl_object.session_reused
        alpn = ssl_object.selected_alpn_protocol()
        server_name = ssl_object.server_hostname
    else:
        cipher = version = did_resume = alpn = server_name = None

    chain = [x509.load_der_x509_certificate(der) for der in peer_chain(ssl_object)]

    lines = [
        "Version: {}".format(version or ""),
        "HandshakeComplete: {}".format(ssl_object is not None),
        "DidResume: {}".format(bool(did_resume)),
        "CipherSuite: {}".format(cipher[0] if cipher else ""),
        "NegotiatedProtocol: {}".format(alpn or ""),
        "ServerName: {}".format(server_name or ""),
        "PeerCertificates: {}".format(len(chain)),
    ]
    for cert in chain:
        lines.extend(describe_cert(cert))
    return lines


def show_certificate(connection):
    for line in describe(connection.ssl_object):
        log.info(line)
