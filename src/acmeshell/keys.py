"""Account and certificate keys.

A `Signer` wraps an asymmetric private key together with everything the
protocol needs from it: the JWS algorithm, the JWK (private and public), the
RFC 7638 thumbprint used in key authorizations, and DER/PEM marshaling for
persistence. Two variants are supported, selected by a key type tag:

* ``"ecdsa"``: ECDSA over P-256, signing with ES256
* ``"rsa"``: RSA (2048 bits when generated), signing with RS256

"""
import logging
from typing import Any
from typing import Dict
from typing import Type
from typing import TypeVar

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric import rsa
import josepy as jose

from acmeshell import errors

logger = logging.getLogger(__name__)

KEY_TYPE_ECDSA = 'ecdsa'
KEY_TYPE_RSA = 'rsa'

RSA_KEY_SIZE = 2048

GenericSigner = TypeVar('GenericSigner', bound='Signer')


class Signer:
    """Private key able to sign ACME requests.

    :ivar josepy.JWK jwk: Private JWK wrapping the key.

    """
    TYPES: Dict[str, Type['Signer']] = {}
    key_type: str = NotImplemented
    alg: jose.JWASignature = NotImplemented
    jwk_cls: Type[jose.JWK] = NotImplemented
    thumbprint_hash_function = hashes.SHA256

    def __init__(self, key: Any) -> None:
        self.jwk = self.jwk_cls(key=key)

    @classmethod
    def register(cls, signer_cls: Type[GenericSigner]) -> Type[GenericSigner]:
        """Register signer class under its key type."""
        cls.TYPES[signer_cls.key_type] = signer_cls
        return signer_cls

    @classmethod
    def generate(cls, key_type: str = KEY_TYPE_ECDSA) -> 'Signer':
        """Generate a fresh random key of the given type."""
        return cls._lookup(key_type).generate_key()

    @classmethod
    def generate_key(cls) -> 'Signer':
        """Generate a fresh key for this signer type."""
        raise NotImplementedError()

    @classmethod
    def from_private_key(cls, key: Any) -> 'Signer':
        """Wrap a `cryptography` private key.

        :raises .UnsupportedKeyError: for key types with no ACME signature
            algorithm.

        """
        for signer_cls in cls.TYPES.values():
            if signer_cls.accepts(key):
                return signer_cls(key)
        raise errors.UnsupportedKeyError(
            'unsupported private key type: {0}'.format(type(key).__name__))

    @classmethod
    def accepts(cls, key: Any) -> bool:
        """Can this signer type wrap ``key``?"""
        raise NotImplementedError()

    @classmethod
    def from_der(cls, der: bytes, key_type: str) -> 'Signer':
        """Load a DER private key saved by `to_der`."""
        signer_cls = cls._lookup(key_type)
        try:
            key = serialization.load_der_private_key(der, password=None)
        except ValueError as error:
            raise errors.UnsupportedKeyError(
                'invalid {0} private key: {1}'.format(key_type, error))
        if not signer_cls.accepts(key):
            raise errors.UnsupportedKeyError(
                'private key is not of type {0!r}'.format(key_type))
        return signer_cls(key)

    @classmethod
    def from_pem(cls, pem: bytes) -> 'Signer':
        """Load a PEM private key of any supported type."""
        try:
            key = serialization.load_pem_private_key(pem, password=None)
        except ValueError as error:
            raise errors.UnsupportedKeyError('invalid PEM private key: {0}'.format(error))
        return cls.from_private_key(key)

    @classmethod
    def _lookup(cls, key_type: str) -> Type['Signer']:
        try:
            return cls.TYPES[key_type]
        except KeyError:
            raise errors.UnsupportedKeyError('unknown key type: {0!r}'.format(key_type))

    @property
    def private_key(self) -> Any:
        """The wrapped `cryptography` private key."""
        return self.jwk.key._wrapped  # pylint: disable=protected-access

    def public_jwk(self) -> jose.JWK:
        """Public JWK, as embedded in JWS headers."""
        return self.jwk.public_key()

    def sign(self, msg: bytes) -> bytes:
        """Sign ``msg`` with the signer's JWS algorithm."""
        return self.alg.sign(self.jwk.key, msg)

    def thumbprint(self) -> str:
        """Base64url encoded RFC 7638 SHA-256 JWK thumbprint."""
        return jose.b64encode(self.jwk.thumbprint(
            hash_function=self.thumbprint_hash_function)).decode()

    def key_authorization(self, token: str) -> str:
        """Key authorization for a challenge token (RFC 8555 section 8.1)."""
        return '{0}.{1}'.format(token, self.thumbprint())

    def to_der(self) -> bytes:
        """Traditional (PKCS#1 / SEC 1) DER encoding of the private key."""
        return self.private_key.private_bytes(
            encoding=serialization.Encoding.DER,
            format=serialization.PrivateFormat.TraditionalOpenSSL,
            encryption_algorithm=serialization.NoEncryption())

    def to_pem(self) -> bytes:
        """Traditional PEM encoding of the private key."""
        return self.private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.TraditionalOpenSSL,
            encryption_algorithm=serialization.NoEncryption())

    def __eq__(self, other: Any) -> bool:
        return isinstance(other, Signer) and self.jwk == other.jwk

    def __hash__(self) -> int:
        return hash((self.key_type, self.thumbprint()))

    def __repr__(self) -> str:
        return '{0}({1})'.format(self.__class__.__name__, self.thumbprint())


@Signer.register
class ECDSASigner(Signer):
    """ECDSA P-256 signer (ES256)."""
    key_type = KEY_TYPE_ECDSA
    alg = jose.ES256
    jwk_cls = jose.JWKEC

    @classmethod
    def generate_key(cls) -> 'ECDSASigner':
        return cls(ec.generate_private_key(ec.SECP256R1()))

    @classmethod
    def accepts(cls, key: Any) -> bool:
        return (isinstance(key, ec.EllipticCurvePrivateKey)
                and isinstance(key.curve, ec.SECP256R1))


@Signer.register
class RSASigner(Signer):
    """RSA signer (RS256)."""
    key_type = KEY_TYPE_RSA
    alg = jose.RS256
    jwk_cls = jose.JWKRSA

    @classmethod
    def generate_key(cls) -> 'RSASigner':
        return cls(rsa.generate_private_key(public_exponent=65537, key_size=RSA_KEY_SIZE))

    @classmethod
    def accepts(cls, key: Any) -> bool:
        return isinstance(key, rsa.RSAPrivateKey)


def new_signer(key_type: str = KEY_TYPE_ECDSA) -> Signer:
    """Generate a random signer of ``key_type``."""
    logger.debug('Generating new %s key', key_type)
    return Signer.generate(key_type)
