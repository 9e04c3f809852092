"""ACME protocol messages."""
from collections.abc import Hashable
import datetime
from typing import Any
from typing import Dict
from typing import Iterator
from typing import List
from typing import Mapping
from typing import Optional
from typing import Tuple

import josepy as jose

from acmeshell import errors
from acmeshell import fields

ERROR_PREFIX = "urn:ietf:params:acme:error:"

ERROR_CODES = {
    'accountDoesNotExist': 'The request specified an account that does not exist',
    'alreadyRevoked': 'The request specified a certificate to be revoked that has' \
    ' already been revoked',
    'badCSR': 'The CSR is unacceptable (e.g., due to a short key)',
    'badNonce': 'The client sent an unacceptable anti-replay nonce',
    'badPublicKey': 'The JWS was signed by a public key the server does not support',
    'badRevocationReason': 'The revocation reason provided is not allowed by the server',
    'badSignatureAlgorithm': 'The JWS was signed with an algorithm the server does not support',
    'caa': 'Certification Authority Authorization (CAA) records forbid the CA from issuing' \
    ' a certificate',
    'compound': 'Specific error conditions are indicated in the "subproblems" array',
    'connection': ('The server could not connect to the client to verify the'
                   ' domain'),
    'dns': 'There was a problem with a DNS query during identifier validation',
    'incorrectResponse': 'Response received didn\'t match the challenge\'s requirements',
    'invalidContact': 'The provided contact URI was invalid',
    'malformed': 'The request message was malformed',
    'orderNotReady': 'The request attempted to finalize an order that is not ready to be finalized',
    'rateLimited': 'There were too many requests of a given type',
    'rejectedIdentifier': 'The server will not issue certificates for the identifier',
    'serverInternal': 'The server experienced an internal error',
    'tls': 'The server experienced a TLS error during domain verification',
    'unauthorized': 'The client lacks sufficient authorization',
    'unsupportedContact': 'A contact URL for an account used an unsupported protocol scheme',
    'unsupportedIdentifier': 'An identifier is of an unsupported type',
}

ERROR_TYPE_DESCRIPTIONS = {
    ERROR_PREFIX + name: desc for name, desc in ERROR_CODES.items()
}

CHALLENGE_HTTP01 = 'http-01'
CHALLENGE_DNS01 = 'dns-01'
CHALLENGE_TLSALPN01 = 'tls-alpn-01'


class _Constant(jose.JSONDeSerializable, Hashable):
    """ACME constant."""
    __slots__ = ('name',)
    POSSIBLE_NAMES: Dict[str, '_Constant'] = NotImplemented

    def __init__(self, name: str) -> None:
        super().__init__()
        self.POSSIBLE_NAMES[name] = self  # pylint: disable=unsupported-assignment-operation
        self.name = name

    def to_partial_json(self) -> str:
        return self.name

    @classmethod
    def from_json(cls, jobj: str) -> '_Constant':
        if jobj not in cls.POSSIBLE_NAMES:  # pylint: disable=unsupported-membership-test
            raise jose.DeserializationError(f'{cls.__name__} not recognized')
        return cls.POSSIBLE_NAMES[jobj]

    def __repr__(self) -> str:
        return f'{self.__class__.__name__}({self.name})'

    def __eq__(self, other: Any) -> bool:
        return isinstance(other, type(self)) and other.name == self.name

    def __hash__(self) -> int:
        return hash((self.__class__, self.name))


class IdentifierType(_Constant):
    """ACME identifier type."""
    POSSIBLE_NAMES: Dict[str, _Constant] = {}


IDENTIFIER_FQDN = IdentifierType('dns')
IDENTIFIER_IP = IdentifierType('ip')


class Identifier(jose.JSONObjectWithFields):
    """ACME identifier.

    :ivar IdentifierType typ:
    :ivar str value:

    """
    typ: IdentifierType = jose.field('type', decoder=IdentifierType.from_json)
    value: str = jose.field('value')

    @classmethod
    def dns(cls, value: str) -> 'Identifier':
        """DNS identifier for ``value``."""
        return cls(typ=IDENTIFIER_FQDN, value=value)


class Error(jose.JSONObjectWithFields, errors.Error):
    """ACME error.

    https://datatracker.ietf.org/doc/html/rfc7807

    Note: Although Error inherits from JSONObjectWithFields, which is immutable,
    we add mutability for Error to comply with the Python exception API.

    :ivar str typ:
    :ivar str title:
    :ivar str detail:
    :ivar int status: HTTP status the server answered with.
    :ivar Identifier identifier:
    :ivar tuple subproblems: An array of ACME Errors which may be present when the CA
            returns multiple errors related to the same request, `tuple` of `Error`.

    """
    typ: str = jose.field('type', omitempty=True, default='about:blank')
    title: str = jose.field('title', omitempty=True)
    detail: str = jose.field('detail', omitempty=True)
    status: int = jose.field('status', omitempty=True)
    identifier: Optional['Identifier'] = jose.field(
        'identifier', decoder=Identifier.from_json, omitempty=True)
    subproblems: Optional[Tuple['Error', ...]] = jose.field('subproblems', omitempty=True)

    @subproblems.decoder  # type: ignore
    def subproblems(value: List[Dict[str, Any]]) -> Tuple['Error', ...]:  # pylint: disable=no-self-argument,missing-function-docstring
        return tuple(Error.from_json(subproblem) for subproblem in value)

    @property
    def description(self) -> Optional[str]:
        """Hardcoded error description based on its type.

        :returns: Description if standard ACME error or ``None``.
        :rtype: str

        """
        return ERROR_TYPE_DESCRIPTIONS.get(self.typ)

    @property
    def code(self) -> Optional[str]:
        """ACME error code.

        Basically self.typ without the ERROR_PREFIX.

        :returns: error code if standard ACME code or ``None``.
        :rtype: str

        """
        code = str(self.typ).rsplit(':', maxsplit=1)[-1]
        if code in ERROR_CODES:
            return code
        return None

    def __setattr__(self, name: str, value: Any) -> None:
        return object.__setattr__(self, name, value)

    def __str__(self) -> str:
        result = b' :: '.join(
            part.encode('ascii', 'backslashreplace') for part in
            (self.typ, self.description, self.detail, self.title)
            if part is not None).decode()
        if self.identifier:
            result = f'Problem for {self.identifier.value}: ' + result  # pylint: disable=no-member
        if self.subproblems:
            for subproblem in self.subproblems:
                result += f'\n{subproblem}'
        return result


class Status(_Constant):
    """ACME "status" field."""
    POSSIBLE_NAMES: Dict[str, _Constant] = {}


STATUS_PENDING = Status('pending')
STATUS_READY = Status('ready')
STATUS_PROCESSING = Status('processing')
STATUS_VALID = Status('valid')
STATUS_INVALID = Status('invalid')
STATUS_DEACTIVATED = Status('deactivated')
STATUS_EXPIRED = Status('expired')
STATUS_REVOKED = Status('revoked')

TERMINAL_STATUSES = frozenset([
    STATUS_VALID, STATUS_INVALID, STATUS_DEACTIVATED, STATUS_EXPIRED, STATUS_REVOKED,
])
"""Statuses a resource never leaves."""


class Directory(jose.JSONDeSerializable):
    """Directory.

    Directory resources must be accessed by the exact field name in RFC8555
    (section 9.7.5), e.g. ``directory['newNonce']``.
    """

    def __init__(self, jobj: Mapping[str, Any]) -> None:
        self._jobj = dict(jobj)

    def __getitem__(self, name: str) -> Any:
        try:
            return self._jobj[name]
        except KeyError:
            raise KeyError(f'Directory field "{name}" not found')

    def __contains__(self, name: Any) -> bool:
        return name in self._jobj

    def __iter__(self) -> Iterator[str]:
        return iter(self._jobj)

    def get_url(self, name: str) -> Optional[str]:
        """URL published under ``name``.

        :returns: ``None`` unless the entry exists and is a non-empty string.

        """
        value = self._jobj.get(name)
        if isinstance(value, str) and value:
            return value
        return None

    @property
    def meta(self) -> Dict[str, Any]:
        """The directory's ``meta`` object, empty if absent."""
        meta = self._jobj.get('meta')
        return meta if isinstance(meta, dict) else {}

    def to_partial_json(self) -> Dict[str, Any]:
        return dict(self._jobj)

    @classmethod
    def from_json(cls, jobj: Any) -> 'Directory':
        if not isinstance(jobj, dict):
            raise jose.DeserializationError(
                f'directory must be a JSON object, not {type(jobj).__name__}')
        return cls(jobj)


class ResourceBody(jose.JSONObjectWithFields):
    """ACME Resource Body."""


class ResourceWithURI(jose.JSONObjectWithFields):
    """ACME Resource with URI.

    :ivar str uri: Location of the resource.
    :ivar ResourceBody body: Resource body.

    """
    uri: str = jose.field('uri')
    body: ResourceBody = jose.field('body')


class AccountBody(ResourceBody):
    """Account Resource Body, as returned by the server or sent to ``newAccount``.

    :ivar tuple contact: Contact URIs, `tuple` of `str`.
    :ivar Status status:
    :ivar bool terms_of_service_agreed:
    :ivar str orders: URL of the account's order list.

    """
    contact: Tuple[str, ...] = jose.field('contact', omitempty=True, default=())
    status: Status = jose.field('status', omitempty=True, decoder=Status.from_json)
    terms_of_service_agreed: bool = jose.field('termsOfServiceAgreed', omitempty=True)
    orders: str = jose.field('orders', omitempty=True)
    key: jose.JWK = jose.field('key', omitempty=True, decoder=jose.JWK.from_json)

    email_prefix = 'mailto:'

    @contact.decoder  # type: ignore
    def contact(value: List[str]) -> Tuple[str, ...]:  # pylint: disable=no-self-argument,missing-function-docstring
        return tuple(value)

    @property
    def emails(self) -> Tuple[str, ...]:
        """All emails found in the ``contact`` field."""
        return tuple(
            detail[len(self.email_prefix):] for detail in self.contact  # pylint: disable=not-an-iterable
            if detail.startswith(self.email_prefix))


class NewAccount(AccountBody):
    """newAccount request body."""


class Challenge(ResourceBody):
    """Challenge Resource Body.

    :ivar str typ: Challenge type, e.g. ``http-01``.
    :ivar str uri: URL of the challenge (``url`` on the wire).
    :ivar str token:
    :ivar Status status:
    :ivar datetime.datetime validated:
    :ivar Error error:

    """
    typ: str = jose.field('type')
    uri: str = jose.field('url')
    token: str = jose.field('token', omitempty=True)
    status: Status = jose.field('status', decoder=Status.from_json,
                                omitempty=True, default=STATUS_PENDING)
    validated: datetime.datetime = fields.rfc3339('validated', omitempty=True)
    error: Error = jose.field('error', decoder=Error.from_json,
                              omitempty=True, default=None)


class Authorization(ResourceBody):
    """Authorization Resource Body.

    :ivar Identifier identifier:
    :ivar tuple challenges: `tuple` of `.Challenge`
    :ivar Status status:
    :ivar datetime.datetime expires:
    :ivar bool wildcard:

    """
    identifier: Identifier = jose.field('identifier', decoder=Identifier.from_json, omitempty=True)
    challenges: Tuple[Challenge, ...] = jose.field('challenges', omitempty=True, default=())
    status: Status = jose.field('status', omitempty=True, decoder=Status.from_json)
    expires: datetime.datetime = fields.rfc3339('expires', omitempty=True)
    wildcard: bool = jose.field('wildcard', omitempty=True)

    @challenges.decoder  # type: ignore
    def challenges(value: List[Dict[str, Any]]) -> Tuple[Challenge, ...]:  # pylint: disable=no-self-argument,missing-function-docstring
        return tuple(Challenge.from_json(chall) for chall in value)

    def challenge(self, typ: str) -> Optional[Challenge]:
        """First challenge of type ``typ``, if offered."""
        for chall in self.challenges:  # pylint: disable=not-an-iterable
            if chall.typ == typ:
                return chall
        return None


class AuthorizationResource(ResourceWithURI):
    """Authorization Resource.

    :ivar Authorization body:

    """
    body: Authorization = jose.field('body', decoder=Authorization.from_json)


class Order(ResourceBody):
    """Order Resource Body.

    :ivar identifiers: List of identifiers for the certificate.
    :vartype identifiers: `tuple` of `.Identifier`
    :ivar Status status:
    :ivar authorizations: URLs of authorizations.
    :vartype authorizations: `tuple` of `str`
    :ivar str certificate: URL to download certificate as a fullchain PEM.
    :ivar str finalize: URL to POST to to request issuance once all
        authorizations have "valid" status.
    :ivar datetime.datetime expires: When the order expires.
    :ivar ~.Error error: Any error that occurred during finalization, if applicable.
    """
    identifiers: Tuple[Identifier, ...] = jose.field('identifiers', omitempty=True)
    status: Status = jose.field('status', decoder=Status.from_json, omitempty=True)
    authorizations: Tuple[str, ...] = jose.field('authorizations', omitempty=True, default=())
    certificate: str = jose.field('certificate', omitempty=True)
    finalize: str = jose.field('finalize', omitempty=True)
    expires: datetime.datetime = fields.rfc3339('expires', omitempty=True)
    error: Error = jose.field('error', omitempty=True, decoder=Error.from_json)

    @identifiers.decoder  # type: ignore
    def identifiers(value: List[Dict[str, Any]]) -> Tuple[Identifier, ...]:  # pylint: disable=no-self-argument,missing-function-docstring
        return tuple(Identifier.from_json(identifier) for identifier in value)

    @authorizations.decoder  # type: ignore
    def authorizations(value: List[str]) -> Tuple[str, ...]:  # pylint: disable=no-self-argument,missing-function-docstring
        return tuple(value)


class NewOrder(Order):
    """newOrder request body."""


class OrderResource(ResourceWithURI):
    """Order Resource.

    :ivar Order body:

    """
    body: Order = jose.field('body', decoder=Order.from_json)


class CertificateRequest(jose.JSONObjectWithFields):
    """Finalization request.

    :ivar str csr: Base64url encoded DER CSR.

    """
    csr: str = jose.field('csr')


class Revocation(jose.JSONObjectWithFields):
    """Revocation message.

    :ivar str certificate: Base64url encoded DER certificate.
    :ivar int reason: RFC 5280 revocation reason code.

    """
    certificate: str = jose.field('certificate')
    reason: int = jose.field('reason')


class KeyChange(jose.JSONObjectWithFields):
    """Payload of the inner key change JWS (RFC 8555 section 7.3.5).

    :ivar str account: URL of the account whose key changes.
    :ivar jose.JWK old_key: Public JWK of the current account key.

    """
    account: str = jose.field('account')
    old_key: jose.JWK = jose.field('oldKey', decoder=jose.JWK.from_json)


class UpdateStatus(jose.JSONObjectWithFields):
    """Status change request, used for deactivation."""
    status: Status = jose.field('status', decoder=Status.from_json)
