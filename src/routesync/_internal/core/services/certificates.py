import re

from cryptography import x509
from cryptography.hazmat.primitives import hashes

from routesync._internal.core.errors import FingerprintError

_PEM_CERTIFICATE_RE = re.compile(
    r"-----BEGIN CERTIFICATE-----\s.+?\s-----END CERTIFICATE-----", flags=re.DOTALL
)


def calculate_fingerprint(certificate: bytes) -> str:
    """
    Returns the lowercase hex SHA-256 digest of the DER encoding of
    the first certificate in a PEM `certificate`.
    """
    try:
        cert = x509.load_pem_x509_certificate(certificate)
    except ValueError as e:
        raise FingerprintError() from e
    return cert.fingerprint(hashes.SHA256()).hex()


def split_certificate_chain(chain: str) -> list[str]:
    """
    >>> split_certificate_chain("")
    []
    """
    return [m.group(0) + "\n" for m in _PEM_CERTIFICATE_RE.finditer(chain)]
