"""acmeshell interfaces."""
from abc import ABCMeta
from abc import abstractmethod


class ChallengeResponder(metaclass=ABCMeta):
    """Server answering the CA's validation requests.

    The client hands each key authorization to a responder before telling
    the CA a challenge is ready, and removes it again on cleanup.
    """

    @abstractmethod
    def add_http01_challenge(self, token: str, key_authorization: str) -> None:  # pragma: no cover
        """Serve ``key_authorization`` at ``/.well-known/acme-challenge/<token>``."""
        raise NotImplementedError()

    @abstractmethod
    def delete_http01_challenge(self, token: str) -> None:  # pragma: no cover
        """Stop serving the HTTP-01 response for ``token``."""
        raise NotImplementedError()

    @abstractmethod
    def add_dns01_challenge(self, host: str, key_authorization: str) -> None:  # pragma: no cover
        """Publish the ``_acme-challenge`` TXT record for ``host``."""
        raise NotImplementedError()

    @abstractmethod
    def delete_dns01_challenge(self, host: str) -> None:  # pragma: no cover
        """Remove the TXT record for ``host``."""
        raise NotImplementedError()

    @abstractmethod
    def add_tls_alpn01_challenge(self, host: str,
                                 key_authorization: str) -> None:  # pragma: no cover
        """Serve an ``acme-tls/1`` validation certificate for ``host``."""
        raise NotImplementedError()

    @abstractmethod
    def delete_tls_alpn01_challenge(self, host: str) -> None:  # pragma: no cover
        """Stop serving the validation certificate for ``host``."""
        raise NotImplementedError()
