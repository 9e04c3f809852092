"""ACME protocol and client constants."""
from acmeshell import __version__

LE_STAGING_DIRECTORY = 'https://acme-staging-v02.api.letsencrypt.org/directory'
"""Default directory URL."""

NEW_NONCE_ENDPOINT = 'newNonce'
NEW_ACCOUNT_ENDPOINT = 'newAccount'
NEW_ORDER_ENDPOINT = 'newOrder'
KEY_CHANGE_ENDPOINT = 'keyChange'
REVOKE_CERT_ENDPOINT = 'revokeCert'

REPLAY_NONCE_HEADER = 'Replay-Nonce'
LOCATION_HEADER = 'Location'

JOSE_CONTENT_TYPE = 'application/jose+json'
JSON_ERROR_CONTENT_TYPE = 'application/problem+json'

USER_AGENT = 'acmeshell-python/{0}'.format(__version__)
ACCEPT_LANGUAGE = 'en-us'

DEFAULT_NETWORK_TIMEOUT = 45
"""Seconds before an HTTP request to the ACME server is abandoned."""

DEFAULT_POLL_TRIES = 5
DEFAULT_POLL_INTERVAL = 5.0

DEFAULT_REVOCATION_REASON = 1
"""keyCompromise, see RFC 5280 section 5.3.1."""

ACCOUNT_FILE_MODE = 0o600
