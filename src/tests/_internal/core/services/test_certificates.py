import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes

from routesync._internal.core.errors import FingerprintError
from routesync._internal.core.services.certificates import (
    calculate_fingerprint,
    split_certificate_chain,
)
from routesync._internal.testing.common import make_certificate


class TestCalculateFingerprint:
    def test_sha256_of_der(self):
        cert_pem, _ = make_certificate()
        expected = x509.load_pem_x509_certificate(cert_pem.encode()).fingerprint(hashes.SHA256())
        fingerprint = calculate_fingerprint(cert_pem.encode())
        assert fingerprint == expected.hex()
        assert len(fingerprint) == 64
        assert fingerprint == fingerprint.lower()

    def test_differs_per_certificate(self):
        first, _ = make_certificate()
        second, _ = make_certificate()
        assert calculate_fingerprint(first.encode()) != calculate_fingerprint(second.encode())

    def test_invalid_certificate(self):
        with pytest.raises(FingerprintError):
            calculate_fingerprint(b"not a certificate")


class TestSplitCertificateChain:
    def test_splits(self):
        first, _ = make_certificate("first")
        second, _ = make_certificate("second")
        assert split_certificate_chain(first + "\n" + second) == [first, second]

    def test_ignores_garbage(self):
        first, _ = make_certificate("first")
        assert split_certificate_chain("# comment\n" + first + "trailing") == [first]
