"""Crypto utilities."""
from datetime import datetime, timedelta, timezone
import ipaddress
import logging
from typing import List
from typing import Optional
from typing import Sequence
from typing import Union

from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import types
from cryptography.hazmat.primitives.serialization import Encoding
import josepy as jose

from acmeshell import errors

logger = logging.getLogger(__name__)

PEM_CERTIFICATE_HEADER = b'-----BEGIN CERTIFICATE-----'


def _general_name(name: str) -> x509.GeneralName:
    try:
        return x509.IPAddress(ipaddress.ip_address(name))
    except ValueError:
        return x509.DNSName(name)


def make_csr(private_key: types.CertificateIssuerPrivateKeyTypes, names: Sequence[str],
             common_name: Optional[str] = None) -> x509.CertificateSigningRequest:
    """Generate a CSR containing ``names`` as subjectAltNames.

    :param private_key: Key the certificate is requested for.
    :param list names: DNS names or IP addresses.
    :param str common_name: Subject common name. Must be one of ``names``;
        left out of the subject when ``None``.

    :returns: The signed CSR.

    :raises .ConfigurationError: if ``names`` is empty or does not contain
        ``common_name``.

    """
    if not names:
        raise errors.ConfigurationError('cannot build a CSR without names')
    if common_name is not None and common_name not in names:
        raise errors.ConfigurationError(
            f'common name {common_name!r} is not one of the CSR names')

    name_attrs = []
    if common_name is not None:
        name_attrs.append(x509.NameAttribute(x509.NameOID.COMMON_NAME, common_name))

    builder = (
        x509.CertificateSigningRequestBuilder()
        .subject_name(x509.Name(name_attrs))
        .add_extension(
            x509.SubjectAlternativeName([_general_name(name) for name in names]),
            critical=False,
        )
    )
    logger.debug('Creating CSR for %s', ', '.join(names))
    return builder.sign(private_key, hashes.SHA256())


def encode_b64der(obj: Union[x509.Certificate, x509.CertificateSigningRequest]) -> str:
    """Base64url encoded DER form of a certificate or CSR, as ACME sends them."""
    return jose.b64encode(obj.public_bytes(Encoding.DER)).decode('ascii')


def load_certificate(data: bytes) -> x509.Certificate:
    """Load the first certificate in ``data``, PEM or DER.

    :raises .ConfigurationError: if ``data`` holds no certificate.

    """
    try:
        if PEM_CERTIFICATE_HEADER in data:
            return x509.load_pem_x509_certificate(data)
        return x509.load_der_x509_certificate(data)
    except ValueError as error:
        raise errors.ConfigurationError(f'invalid certificate: {error}')


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


def make_self_signed_cert(private_key: types.CertificateIssuerPrivateKeyTypes,
                          domains: List[str],
                          validity: Optional[timedelta] = None) -> x509.Certificate:
    """Generate new self-signed certificate for ``domains``.

    The first domain is used as subject CN, all of them as subjectAltNames.
    Validity defaults to one week.
    """
    assert domains, "Must provide one or more hostnames for the cert."
    name = x509.Name([x509.NameAttribute(x509.NameOID.COMMON_NAME, domains[0])])
    not_before = _now()
    if validity is None:
        validity = timedelta(days=7)
    builder = (
        x509.CertificateBuilder()
        .serial_number(x509.random_serial_number())
        .subject_name(name)
        .issuer_name(name)
        .add_extension(
            x509.SubjectAlternativeName([x509.DNSName(d) for d in domains]),
            critical=False,
        )
        .not_valid_before(not_before)
        .not_valid_after(not_before + validity)
        .public_key(private_key.public_key())
    )
    return builder.sign(private_key, hashes.SHA256())
