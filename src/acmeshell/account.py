"""ACME accounts and their on-disk representation."""
import base64
import binascii
import logging
import os
from typing import Iterable
from typing import List
from typing import Optional
from typing import Tuple

import josepy as jose

from acmeshell import constants
from acmeshell import errors
from acmeshell import keys

logger = logging.getLogger(__name__)


class Account:
    """ACME account as known to the client.

    The account is the only resource the client mutates in place: it gets
    its ``uri`` once created, accumulates the URLs of the orders it creates
    and has its signer swapped by a key rollover.

    :ivar str uri: Server-assigned account URL, empty until created.
    :ivar tuple contact: Contact URIs (``mailto:...``), `tuple` of `str`.
    :ivar .Signer signer: Account key.
    :ivar list orders: URLs of orders created with this account.
    :ivar str path: File the account is persisted to, if any.

    """
    email_prefix = 'mailto:'

    def __init__(self, signer: keys.Signer, contact: Iterable[str] = (),
                 uri: str = '', orders: Optional[List[str]] = None,
                 path: Optional[str] = None) -> None:
        self.signer = signer
        self.contact = tuple(contact)
        self.uri = uri
        self.orders = list(orders) if orders is not None else []
        self.path = path

    @classmethod
    def from_emails(cls, emails: Iterable[str],
                    signer: Optional[keys.Signer] = None) -> 'Account':
        """Create a new, not yet registered account.

        A random ECDSA key is generated when no ``signer`` is given.
        """
        if signer is None:
            signer = keys.new_signer()
        contact = [cls.email_prefix + email.strip()
                   for email in emails if email.strip()]
        return cls(signer, contact=contact)

    @property
    def emails(self) -> List[str]:
        """Email addresses among the contact URIs."""
        return [detail[len(self.email_prefix):] for detail in self.contact
                if detail.startswith(self.email_prefix)]

    def order_url(self, index: int) -> str:
        """URL of the ``index``-th order created by this account."""
        try:
            return self.orders[index]
        except IndexError:
            raise errors.ConfigurationError(
                'account has no order with index {0} ({1} known)'.format(
                    index, len(self.orders)))

    def __repr__(self) -> str:
        return '<{0}({1!r}, {2!r}, {3})>'.format(
            self.__class__.__name__, self.uri, self.contact, self.signer)


class AccountFile(jose.JSONObjectWithFields):
    """Serialized form of an `Account`.

    :ivar str id: Account URL.
    :ivar tuple contact: Contact URIs.
    :ivar tuple orders: Order URLs.
    :ivar str key_type: ``ecdsa`` or ``rsa``.
    :ivar bytes private_key: DER encoded private key.

    """
    id: str = jose.field('ID', omitempty=True, default='')
    contact: Tuple[str, ...] = jose.field('Contact', omitempty=True, default=())
    orders: Tuple[str, ...] = jose.field('Orders', omitempty=True, default=())
    key_type: str = jose.field('KeyType')
    private_key: bytes = jose.field('PrivateKey')

    @contact.decoder  # type: ignore
    def contact(value: Optional[List[str]]) -> Tuple[str, ...]:  # pylint: disable=no-self-argument,missing-function-docstring
        return tuple(value or ())

    @orders.decoder  # type: ignore
    def orders(value: Optional[List[str]]) -> Tuple[str, ...]:  # pylint: disable=no-self-argument,missing-function-docstring
        return tuple(value or ())

    @private_key.encoder  # type: ignore
    def private_key(value: bytes) -> str:  # pylint: disable=no-self-argument,missing-function-docstring
        return base64.b64encode(value).decode('ascii')

    @private_key.decoder  # type: ignore
    def private_key(value: str) -> bytes:  # pylint: disable=no-self-argument,missing-function-docstring
        try:
            return base64.b64decode(value, validate=True)
        except (binascii.Error, TypeError) as error:
            raise jose.DeserializationError(error)

    @classmethod
    def from_account(cls, account: Account) -> 'AccountFile':
        """Snapshot ``account``."""
        return cls(id=account.uri, contact=tuple(account.contact),
                   orders=tuple(account.orders), key_type=account.signer.key_type,
                   private_key=account.signer.to_der())

    def to_account(self, path: Optional[str] = None) -> Account:
        """Rebuild the in-memory account."""
        signer = keys.Signer.from_der(self.private_key, self.key_type)
        return Account(signer, contact=self.contact, uri=self.id,
                       orders=list(self.orders), path=path)


def save_account(path: str, account: Account) -> None:
    """Write ``account`` to ``path``, readable by the owner only.

    :raises .AccountStorageError: if the file cannot be written.

    """
    data = AccountFile.from_account(account).json_dumps_pretty()
    try:
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, constants.ACCOUNT_FILE_MODE)
        with os.fdopen(fd, 'w') as account_file:
            # an existing file keeps its mode through os.open
            os.fchmod(fd, constants.ACCOUNT_FILE_MODE)
            account_file.write(data)
    except OSError as error:
        raise errors.AccountStorageError(error)
    account.path = path
    logger.debug('Saved account %s to %s', account.uri or '(unregistered)', path)


def restore_account(path: str) -> Account:
    """Load an account saved with `save_account`.

    :raises .AccountNotFound: if ``path`` does not exist.
    :raises .AccountStorageError: if the file cannot be read or parsed.

    """
    if not os.path.isfile(path):
        raise errors.AccountNotFound('account file {0} does not exist'.format(path))
    try:
        with open(path) as account_file:
            serialized = account_file.read()
    except OSError as error:
        raise errors.AccountStorageError(error)
    try:
        account_file_obj = AccountFile.json_loads(serialized)
    except (ValueError, jose.DeserializationError) as error:
        raise errors.AccountStorageError(
            'malformed account file {0}: {1}'.format(path, error))
    try:
        account = account_file_obj.to_account(path)
    except errors.UnsupportedKeyError as error:
        raise errors.AccountStorageError(
            'invalid key in account file {0}: {1}'.format(path, error))
    logger.debug('Restored account %s from %s', account.uri or '(unregistered)', path)
    return account