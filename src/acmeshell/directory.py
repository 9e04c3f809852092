"""ACME server directory lookups."""
import logging
import threading
from typing import Optional

import josepy as jose

from acmeshell import errors
from acmeshell import messages
from acmeshell import net

logger = logging.getLogger(__name__)


class DirectoryResolver:
    """Fetches the server directory once and resolves endpoint URLs from it.

    :ivar .ClientNetwork net: Transport used for the fetch.
    :ivar str url: Directory URL.

    """
    def __init__(self, network: net.ClientNetwork, url: str) -> None:
        self.net = network
        self.url = url
        self._directory: Optional[messages.Directory] = None
        self._lock = threading.RLock()

    def directory(self) -> messages.Directory:
        """The server directory, fetched on first use.

        :raises .NetworkError: if the server cannot be reached.
        :raises .UnexpectedStatus: if the server does not answer 200.
        :raises .MalformedResponse: if the body is not a JSON object.

        """
        with self._lock:
            if self._directory is None:
                self._directory = self._fetch()
            return self._directory

    def refresh(self) -> messages.Directory:
        """Drop the cached directory and fetch it again."""
        with self._lock:
            self._directory = None
            return self.directory()

    def resolve(self, name: str) -> Optional[str]:
        """URL of endpoint ``name``, ``None`` if the directory lacks it."""
        return self.directory().get_url(name)

    def require(self, name: str) -> str:
        """URL of endpoint ``name``.

        :raises .MissingEndpoint: if the directory lacks it.

        """
        url = self.resolve(name)
        if url is None:
            raise errors.MissingEndpoint(name)
        return url

    def _fetch(self) -> messages.Directory:
        logger.debug('Fetching directory from %s', self.url)
        response = net.check_response(self.net.get(self.url), 200)
        try:
            return messages.Directory.from_json(net.response_json(response))
        except jose.DeserializationError as error:
            raise errors.MalformedResponse(f'invalid directory: {error}')
