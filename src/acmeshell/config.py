"""acmeshell user-supplied configuration."""
import logging
import re
from typing import List
from typing import Optional
from typing import Union
from urllib import parse

from acmeshell import constants
from acmeshell import errors
from acmeshell import keys

logger = logging.getLogger(__name__)

EMAIL_REGEX = re.compile("[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+$")


def safe_email(email: str) -> bool:
    """Scrub email address before using it."""
    if EMAIL_REGEX.match(email) is not None:
        return not email.startswith(".") and ".." not in email
    logger.warning("Invalid email address: %s.", email)
    return False


class OutputOptions:
    """Which wire-level details are logged at INFO instead of DEBUG.

    :ivar bool print_requests: Outgoing HTTP requests.
    :ivar bool print_responses: HTTP responses.
    :ivar bool print_signed_data: JWS payloads before signing.
    :ivar bool print_jws: Serialized JWS request bodies.
    :ivar bool print_nonce_updates: Every stored nonce.

    """
    def __init__(self, print_requests: bool = False, print_responses: bool = False,
                 print_signed_data: bool = False, print_jws: bool = False,
                 print_nonce_updates: bool = False) -> None:
        self.print_requests = print_requests
        self.print_responses = print_responses
        self.print_signed_data = print_signed_data
        self.print_jws = print_jws
        self.print_nonce_updates = print_nonce_updates

    @staticmethod
    def level(flag: bool) -> int:
        """Logging level for a message governed by ``flag``."""
        return logging.INFO if flag else logging.DEBUG


class ClientConfig:
    """Settings a `.Client` session is built from.

    :ivar str directory_url: ACME server directory URL.
    :ivar str ca_cert: Path of a PEM bundle of trusted roots for the server's
        TLS certificate, system trust store when ``None``.
    :ivar str contact_email: Comma separated contact addresses for
        auto-registered accounts.
    :ivar str account_path: File to restore the account from, and to save
        auto-registered accounts to.
    :ivar bool auto_register: Register a new account when none is restored.
    :ivar bool post_as_get: Fetch resources with POST-as-GET instead of GET.
    :ivar str key_type: Key type of auto-registered accounts.
    :ivar int timeout: HTTP timeout in seconds.
    :ivar OutputOptions output:

    """
    def __init__(self, directory_url: str = constants.LE_STAGING_DIRECTORY,
                 ca_cert: Optional[str] = None, contact_email: Optional[str] = None,
                 account_path: Optional[str] = None, auto_register: bool = False,
                 post_as_get: bool = False, key_type: str = keys.KEY_TYPE_ECDSA,
                 timeout: int = constants.DEFAULT_NETWORK_TIMEOUT,
                 output: Optional[OutputOptions] = None) -> None:
        self.directory_url = directory_url
        self.ca_cert = ca_cert
        self.contact_email = contact_email
        self.account_path = account_path
        self.auto_register = auto_register
        self.post_as_get = post_as_get
        self.key_type = key_type
        self.timeout = timeout
        self.output = output if output is not None else OutputOptions()

    @property
    def emails(self) -> List[str]:
        """Contact addresses, split and trimmed."""
        if not self.contact_email:
            return []
        return [email.strip() for email in self.contact_email.split(',') if email.strip()]

    @property
    def verify_ssl(self) -> Union[bool, str]:
        """Value for the transport's ``verify_ssl``."""
        return self.ca_cert if self.ca_cert else True

    def normalize(self) -> 'ClientConfig':
        """Trim and validate the settings in place.

        :raises .ConfigurationError: on any invalid setting.

        """
        self.directory_url = (self.directory_url or '').strip()
        if not self.directory_url:
            raise errors.ConfigurationError('directory URL must not be empty')
        parsed = parse.urlparse(self.directory_url)
        if parsed.scheme not in ('http', 'https') or not parsed.netloc:
            raise errors.ConfigurationError(
                f'directory URL {self.directory_url!r} is not an http(s) URL')

        self.ca_cert = (self.ca_cert or '').strip() or None
        self.account_path = (self.account_path or '').strip() or None

        emails = self.emails
        for email in emails:
            if not safe_email(email):
                raise errors.ConfigurationError(f'invalid contact email {email!r}')
        self.contact_email = ','.join(emails) or None

        if self.key_type not in keys.Signer.TYPES:
            raise errors.ConfigurationError(f'unknown key type {self.key_type!r}')
        if self.timeout <= 0:
            raise errors.ConfigurationError(f'timeout must be positive, got {self.timeout}')
        return self
