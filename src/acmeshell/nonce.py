"""Anti-replay nonce handling."""
import logging
import threading

import requests

from acmeshell import constants
from acmeshell import directory
from acmeshell import errors
from acmeshell import net

logger = logging.getLogger(__name__)


class NonceManager:
    """Holds the single nonce the next signed request will use.

    Every nonce handed out by `consume` is replaced straight away with a
    fresh one from the server's ``newNonce`` endpoint, while the lock is
    still held, so no two requests can be signed with the same value.

    :ivar .ClientNetwork net:
    :ivar .DirectoryResolver resolver:
    :ivar bool print_nonce_updates: Log nonce changes at INFO.

    """
    def __init__(self, network: net.ClientNetwork, resolver: directory.DirectoryResolver,
                 print_nonce_updates: bool = False) -> None:
        self.net = network
        self.resolver = resolver
        self.print_nonce_updates = print_nonce_updates
        self._nonce = ''
        self._lock = threading.RLock()

    @property
    def nonce(self) -> str:
        """The nonce currently held, empty before the first refresh."""
        return self._nonce

    def consume(self) -> str:
        """Hand out the held nonce and fetch its replacement.

        A nonce is fetched first if none is held yet.

        :raises .NonceError: if the server does not provide a usable nonce.

        """
        with self._lock:
            if not self._nonce:
                self.refresh()
            nonce = self._nonce
            self.refresh()
            return nonce

    def refresh(self) -> str:
        """Fetch a new nonce from ``newNonce``.

        :raises .MissingEndpoint: if the directory has no ``newNonce``.
        :raises .UnexpectedStatus: for a status other than 200 or 204.
        :raises .MissingNonce: if the response has no ``Replay-Nonce``.
        :raises .DuplicateNonce: if the server repeats the held nonce.

        """
        with self._lock:
            url = self.resolver.require(constants.NEW_NONCE_ENDPOINT)
            response = net.check_response(self.net.head(url), 200, 204)
            nonce = response.headers.get(constants.REPLAY_NONCE_HEADER)
            if not nonce:
                raise errors.MissingNonce(response.headers)
            self._store(nonce)
            return nonce

    def observe(self, response: requests.Response) -> None:
        """Keep the ``Replay-Nonce`` carried by ``response``, if any.

        :raises .DuplicateNonce: if it repeats the held nonce.

        """
        nonce = response.headers.get(constants.REPLAY_NONCE_HEADER)
        if nonce:
            with self._lock:
                self._store(nonce)

    def _store(self, nonce: str) -> None:
        if nonce == self._nonce:
            raise errors.DuplicateNonce(nonce)
        logger.log(logging.INFO if self.print_nonce_updates else logging.DEBUG,
                   'Storing nonce: %s', nonce)
        self._nonce = nonce
