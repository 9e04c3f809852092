"""Tests for acmeshell.crypto_util."""
from datetime import timedelta
import ipaddress
import sys
import unittest

from cryptography import x509
from cryptography.hazmat.primitives.serialization import Encoding
import josepy as jose
import pytest

from acmeshell import errors
from acmeshell._internal.tests import test_util


class MakeCSRTest(unittest.TestCase):
    """Tests for acmeshell.crypto_util.make_csr."""

    def setUp(self):
        self.key = test_util.ECDSA_SIGNER.private_key

    def _sans(self, csr):
        return csr.extensions.get_extension_for_class(x509.SubjectAlternativeName).value

    def test_dns_names(self):
        from acmeshell.crypto_util import make_csr
        csr = make_csr(self.key, ['example.com', 'www.example.com'])
        assert csr.is_signature_valid
        assert self._sans(csr).get_values_for_type(x509.DNSName) == [
            'example.com', 'www.example.com']
        assert not csr.subject.get_attributes_for_oid(x509.NameOID.COMMON_NAME)

    def test_ip_address(self):
        from acmeshell.crypto_util import make_csr
        csr = make_csr(self.key, ['example.com', '192.0.2.1', '2001:db8::1'])
        assert self._sans(csr).get_values_for_type(x509.IPAddress) == [
            ipaddress.ip_address('192.0.2.1'), ipaddress.ip_address('2001:db8::1')]

    def test_common_name(self):
        from acmeshell.crypto_util import make_csr
        csr = make_csr(self.key, ['example.com', 'www.example.com'],
                       common_name='www.example.com')
        cns = csr.subject.get_attributes_for_oid(x509.NameOID.COMMON_NAME)
        assert [cn.value for cn in cns] == ['www.example.com']

    def test_common_name_not_in_names(self):
        from acmeshell.crypto_util import make_csr
        with pytest.raises(errors.ConfigurationError):
            make_csr(self.key, ['example.com'], common_name='other.example.com')

    def test_no_names(self):
        from acmeshell.crypto_util import make_csr
        with pytest.raises(errors.ConfigurationError):
            make_csr(self.key, [])

    def test_rsa_key(self):
        from acmeshell.crypto_util import make_csr
        assert make_csr(test_util.RSA_SIGNER.private_key, ['example.com']).is_signature_valid


class CertificateTest(unittest.TestCase):
    """Tests for certificate helpers in acmeshell.crypto_util."""

    def setUp(self):
        from acmeshell.crypto_util import make_self_signed_cert
        self.cert = make_self_signed_cert(
            test_util.ECDSA_SIGNER.private_key, ['example.com', 'www.example.com'])

    def test_self_signed_cert(self):
        from acmeshell.crypto_util import make_self_signed_cert
        assert self.cert.issuer == self.cert.subject
        assert (self.cert.not_valid_after_utc - self.cert.not_valid_before_utc
                == timedelta(days=7))
        cert = make_self_signed_cert(test_util.ECDSA_SIGNER.private_key, ['example.com'],
                                     validity=timedelta(hours=1))
        assert cert.not_valid_after_utc - cert.not_valid_before_utc == timedelta(hours=1)

    def test_encode_b64der(self):
        from acmeshell.crypto_util import encode_b64der
        encoded = encode_b64der(self.cert)
        assert '=' not in encoded
        assert jose.b64decode(encoded) == self.cert.public_bytes(Encoding.DER)

    def test_load_certificate_pem(self):
        from acmeshell.crypto_util import load_certificate
        assert load_certificate(self.cert.public_bytes(Encoding.PEM)) == self.cert

    def test_load_certificate_der(self):
        from acmeshell.crypto_util import load_certificate
        assert load_certificate(self.cert.public_bytes(Encoding.DER)) == self.cert

    def test_load_certificate_garbage(self):
        from acmeshell.crypto_util import load_certificate
        with pytest.raises(errors.ConfigurationError):
            load_certificate(b'not a certificate')


if __name__ == '__main__':
    sys.exit(pytest.main(sys.argv[1:] + [__file__]))  # pragma: no cover
