"""ACME client errors."""
import typing
from typing import Any
from typing import Iterable
from typing import Mapping
from typing import Optional

# acmeshell.messages imports this module, so the reference is only evaluated
# while type checking.
if typing.TYPE_CHECKING:
    from acmeshell import messages  # pragma: no cover


class Error(Exception):
    """Generic acmeshell error."""


class ConfigurationError(Error):
    """Invalid or contradictory client configuration.

    Configuration errors are raised before any request is sent and are
    never retried.

    """


class SigningOptionsError(ConfigurationError):
    """Missing or mutually exclusive JWS signing options."""


class UnsupportedKeyError(ConfigurationError):
    """Private key type or curve that cannot sign ACME requests."""


class MissingEndpoint(ConfigurationError):
    """The server directory has no usable URL for an endpoint.

    :ivar str name: Directory key that was looked up.

    """
    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(name)

    def __str__(self) -> str:
        return 'missing {0!r} entry in ACME server directory'.format(self.name)


class NoActiveAccount(ConfigurationError):
    """The operation needs an active account that exists server-side."""


class AccountExistsError(ConfigurationError):
    """Account was already created with the server.

    :ivar str uri: The account's existing ID.

    """
    def __init__(self, uri: str) -> None:
        self.uri = uri
        super().__init__(uri)

    def __str__(self) -> str:
        return 'account already exists under ID {0!r}'.format(self.uri)


class ClientError(Error):
    """Network or protocol error."""


class NetworkError(ClientError):
    """The HTTP request could not be completed."""


class MalformedResponse(ClientError):
    """The server response body could not be understood."""


class UnsupportedChallengeError(ClientError):
    """Challenge type the client does not know how to respond to."""


class NonceError(ClientError):
    """Server response nonce error."""


class DuplicateNonce(NonceError):
    """The server handed out the same nonce twice.

    :ivar str nonce: The repeated value.

    """
    def __init__(self, nonce: str) -> None:
        self.nonce = nonce
        super().__init__(nonce)

    def __str__(self) -> str:
        return 'server returned the nonce {0!r} more than once'.format(self.nonce)


class MissingNonce(NonceError):
    """Missing nonce error.

    According to RFC 8555 an "ACME server MUST include a
    Replay-Nonce header field in every successful response to a POST
    request and SHOULD provide it in error responses as well".

    :ivar headers: Mapping of HTTP headers

    """
    def __init__(self, headers: Mapping, *args: Any) -> None:
        super().__init__(*args)
        self.headers = dict(headers)

    def __str__(self) -> str:
        return ('Server response did not include a replay '
                'nonce, headers: {0}'.format(self.headers))


class UnexpectedStatus(ClientError):
    """The server answered with an HTTP status the operation does not accept.

    :ivar int status: Received status code.
    :ivar tuple expected: Accepted status codes.
    :ivar problem: Problem document from the response body, if any.
    :vartype problem: `.messages.Error`

    """
    def __init__(self, status: int, expected: Iterable[int],
                 problem: Optional['messages.Error'] = None) -> None:
        self.status = status
        self.expected = tuple(expected)
        self.problem = problem
        super().__init__(status)

    def __str__(self) -> str:
        msg = 'server returned HTTP status {0}, expected {1}'.format(
            self.status, ' or '.join(str(code) for code in self.expected))
        if self.problem is not None:
            msg += ': {0}'.format(self.problem)
        return msg


class MissingLocation(ClientError):
    """Resource creation response without a ``Location`` header."""


class ConflictError(ClientError):
    """The server reports that the resource already exists.

    For ``newAccount`` this is a ``200 OK`` with a ``Location`` header
    pointing at the existing account.

    :ivar str location: URL of the existing resource.

    """
    def __init__(self, location: str) -> None:
        self.location = location
        super().__init__(location)


class AccountStorageError(Error):
    """Generic account storage error."""


class AccountNotFound(AccountStorageError):
    """Account not found error."""
