"""ACME-specific JWS.

The JWS implementation in josepy only implements the base JOSE standard. In
order to support the new header fields defined in ACME, this module defines some
ACME-specific classes that layer on top of josepy, and the signing engine
used for every authenticated request.
"""
import logging
from typing import Callable
from typing import cast
from typing import NamedTuple
from typing import Optional

import josepy as jose

from acmeshell import errors
from acmeshell import keys

logger = logging.getLogger(__name__)

NonceSource = Callable[[], Optional[str]]


class Header(jose.Header):
    """ACME-specific JOSE Header. Implements nonce, kid, and url.

    Nonces are kept as the opaque strings handed out by the server.
    """
    nonce: Optional[str] = jose.field('nonce', omitempty=True)
    kid: Optional[str] = jose.field('kid', omitempty=True)  # type: ignore[assignment]
    url: Optional[str] = jose.field('url', omitempty=True)


class Signature(jose.Signature):
    """ACME-specific Signature. Uses ACME-specific Header for customer fields."""
    __slots__ = jose.Signature._orig_slots  # type: ignore[attr-defined]  # pylint: disable=protected-access,no-member

    header_cls = Header
    header: Header = jose.field(
        'header', omitempty=True, default=header_cls(),
        decoder=header_cls.from_json)


class JWS(jose.JWS):
    """ACME-specific JWS. Includes nonce, url, and kid in protected header."""
    signature_cls = Signature
    __slots__ = jose.JWS._orig_slots  # type: ignore[attr-defined]  # pylint: disable=protected-access

    @classmethod
    # type: ignore[override]  # pylint: disable=arguments-differ
    def sign(cls, payload: bytes, key: jose.JWK, alg: jose.JWASignature, nonce: Optional[str],
             url: Optional[str] = None, kid: Optional[str] = None) -> jose.JWS:
        # jwk and kid are mutually exclusive, so only include a jwk field if
        # kid is not provided.
        include_jwk = kid is None
        return super().sign(payload, key=key, alg=alg,
                            protect=frozenset(['nonce', 'url', 'kid', 'jwk', 'alg']),
                            nonce=nonce, url=url, kid=kid,
                            include_jwk=include_jwk)


def no_nonce() -> Optional[str]:
    """Nonce source for JWS objects that must not carry a nonce.

    Used for the inner JWS of a key change request.
    """
    return None


class SigningOptions:
    """How a request is to be signed.

    Exactly one of ``embed_key`` and ``key_id`` must be set.

    :ivar bool embed_key: Put the signer's public JWK in the protected header.
    :ivar str key_id: Account URL to put in the ``kid`` header instead.
    :ivar .Signer signer: Key used to produce the signature.
    :ivar nonce_source: Callable returning the nonce to embed.

    """
    def __init__(self, embed_key: bool = False, key_id: Optional[str] = None,
                 signer: Optional[keys.Signer] = None,
                 nonce_source: Optional[NonceSource] = None) -> None:
        self.embed_key = embed_key
        self.key_id = key_id
        self.signer = signer
        self.nonce_source = nonce_source

    def validate(self) -> None:
        """Check the options are complete and consistent.

        :raises .SigningOptionsError: if they are not.

        """
        if self.embed_key and self.key_id:
            raise errors.SigningOptionsError('cannot embed key and use a key ID together')
        if not self.embed_key and not self.key_id:
            raise errors.SigningOptionsError('must either embed key or use a key ID')
        if self.nonce_source is None:
            raise errors.SigningOptionsError('no nonce source provided')
        if self.signer is None:
            raise errors.SigningOptionsError('no signer provided')

    def __repr__(self) -> str:
        return ('SigningOptions(embed_key={0!r}, key_id={1!r}, signer={2!r})'
                .format(self.embed_key, self.key_id, self.signer))


class SignResult(NamedTuple):
    """Outcome of `sign`."""
    input_url: str
    input_data: bytes
    jws: JWS
    serialized: str


def sign(url: str, data: bytes, options: SigningOptions) -> SignResult:
    """Sign ``data`` for a POST to ``url``.

    The options are validated before anything else happens, so a
    configuration error never consumes a nonce. The nonce source is called
    exactly once. The serialized JWS is parsed back and verified against
    the signer's public key before it is returned.

    :param str url: Target URL, embedded in the protected header.
    :param bytes data: Payload, ``b''`` for POST-as-GET.
    :param SigningOptions options: How to sign.

    :raises .SigningOptionsError: if ``options`` are invalid.
    :raises .Error: if the produced JWS does not verify.

    """
    options.validate()
    signer = cast(keys.Signer, options.signer)
    nonce_source = cast(NonceSource, options.nonce_source)

    nonce = nonce_source()
    kid = None if options.embed_key else options.key_id
    logger.debug('Signing %r for %s (nonce %r, kid %r)', data, url, nonce, kid)

    signed = JWS.sign(data, key=signer.jwk, alg=signer.alg,
                      nonce=nonce, url=url, kid=kid)
    serialized = signed.json_dumps(indent=2)

    parsed = JWS.json_loads(serialized)
    if not parsed.verify(signer.public_jwk()):
        raise errors.Error('produced JWS failed verification')

    return SignResult(input_url=url, input_data=data, jws=parsed, serialized=serialized)
