"""ACME client session."""
import logging
import threading
from typing import Any
from typing import Dict
from typing import Iterable
from typing import List
from typing import Optional
from typing import Tuple
from typing import Type
from typing import TypeVar
from typing import Union

from cryptography import x509
from cryptography.hazmat.primitives.serialization import Encoding
import josepy as jose
import requests

from acmeshell import account as account_lib
from acmeshell import config as config_lib
from acmeshell import constants
from acmeshell import crypto_util
from acmeshell import directory
from acmeshell import errors
from acmeshell import interfaces
from acmeshell import jws
from acmeshell import keys
from acmeshell import messages
from acmeshell import net
from acmeshell import nonce
from acmeshell import polling

logger = logging.getLogger(__name__)

PEM_CHAIN_CONTENT_TYPE = 'application/pem-certificate-chain'

GenericJSON = TypeVar('GenericJSON', bound=jose.JSONDeSerializable)


class Client:
    """ACME client session.

    A session talks to one ACME server on behalf of any number of
    accounts, one of which is active and authenticates requests by
    default. It also keeps a table of named keys, used for CSRs and key
    rollovers, and indexed by account URL for account keys.

    Every resource fetch returns a new object built only from the server's
    response; the caller's object is left untouched and should be replaced
    with the returned one.

    :ivar .ClientNetwork net: HTTP transport.
    :ivar .DirectoryResolver resolver: Server directory.
    :ivar .NonceManager nonces: Anti-replay nonces.
    :ivar list accounts: Known accounts, `list` of `.Account`.
    :ivar .Account active_account: Account used to sign by default.
    :ivar dict keys: Named signers, `dict` of `str` to `.Signer`.
    :ivar bool use_post_as_get: Fetch resources with POST-as-GET.
    :ivar .OutputOptions output:

    """
    def __init__(self, network: net.ClientNetwork, resolver: directory.DirectoryResolver,
                 nonces: nonce.NonceManager, use_post_as_get: bool = False,
                 output: Optional[config_lib.OutputOptions] = None) -> None:
        self.net = network
        self.resolver = resolver
        self.nonces = nonces
        self.use_post_as_get = use_post_as_get
        self.output = output if output is not None else config_lib.OutputOptions()
        self.accounts: List[account_lib.Account] = []
        self.active_account: Optional[account_lib.Account] = None
        self.keys: Dict[str, keys.Signer] = {}
        self._lock = threading.RLock()

    @classmethod
    def from_config(cls, config: config_lib.ClientConfig) -> 'Client':
        """Set up a session from ``config``.

        Restores the account saved at ``config.account_path`` if there is
        one, otherwise registers (and saves) a new account when
        ``config.auto_register`` is set. Finishes by fetching the directory
        and a first nonce.

        :raises .ConfigurationError: if ``config`` is invalid.
        :raises .AccountStorageError: if the account cannot be restored and
            auto-registration is disabled.

        """
        config.normalize()
        output = config.output
        network = net.ClientNetwork(
            verify_ssl=config.verify_ssl, timeout=config.timeout,
            print_requests=output.print_requests, print_responses=output.print_responses)
        resolver = directory.DirectoryResolver(network, config.directory_url)
        nonces = nonce.NonceManager(network, resolver,
                                    print_nonce_updates=output.print_nonce_updates)
        client = cls(network, resolver, nonces,
                     use_post_as_get=config.post_as_get, output=output)
        if client.use_post_as_get:
            logger.info('Using POST-as-GET requests')

        if config.account_path:
            logger.info('Trying to restore account from %s', config.account_path)
            try:
                acct = account_lib.restore_account(config.account_path)
            except errors.AccountStorageError as error:
                if not config.auto_register:
                    raise
                logger.info('No account restored: %s', error)
            else:
                client.add_account(acct)
                logger.info('Restored account with ID %r (contact %s)',
                            acct.uri, ', '.join(acct.contact))

        if config.auto_register and not client.active_account_id():
            logger.info('Auto-registering a new account')
            acct = account_lib.Account.from_emails(
                config.emails, keys.new_signer(config.key_type))
            client.add_account(acct)
            client.create_account(acct)
            if config.account_path:
                account_lib.save_account(config.account_path, acct)
                logger.info('Saved account data to %s', config.account_path)
        elif config.auto_register:
            logger.info('Skipping auto-registration, account %r is loaded',
                        client.active_account_id())

        client.resolver.directory()
        if not client.nonces.nonce:
            client.nonces.refresh()

        if client.active_account_id():
            logger.info('Active account: %r', client.active_account_id())
        return client

    # Accounts and keys

    def active_account_id(self) -> str:
        """URL of the active account, empty if there is none or it isn't created."""
        if self.active_account is None:
            return ''
        return self.active_account.uri

    def add_account(self, acct: account_lib.Account, activate: bool = True) -> int:
        """Add ``acct`` to the session.

        :returns: Index of the account, for `switch_account`.

        """
        with self._lock:
            if acct not in self.accounts:
                self.accounts.append(acct)
            if acct.uri:
                self.keys[acct.uri] = acct.signer
            if activate:
                self.active_account = acct
            return self.accounts.index(acct)

    def switch_account(self, index: int) -> account_lib.Account:
        """Make the ``index``-th account the active one."""
        with self._lock:
            if not 0 <= index < len(self.accounts):
                raise errors.ConfigurationError(
                    f'no account with index {index} ({len(self.accounts)} known)')
            self.active_account = self.accounts[index]
            logger.info('Switched to account %r', self.active_account.uri)
            return self.active_account

    def new_key(self, name: str, key_type: str = keys.KEY_TYPE_ECDSA) -> keys.Signer:
        """Generate a key and store it under ``name``."""
        signer = keys.new_signer(key_type)
        self._store_key(name, signer)
        return signer

    def load_key(self, name: str, pem: bytes) -> keys.Signer:
        """Load a PEM private key and store it under ``name``."""
        signer = keys.Signer.from_pem(pem)
        self._store_key(name, signer)
        return signer

    def get_key(self, name: str) -> Optional[keys.Signer]:
        """Key stored under ``name``, if any."""
        with self._lock:
            return self.keys.get(name)

    def _store_key(self, name: str, signer: keys.Signer) -> None:
        if not name:
            raise errors.ConfigurationError('key name must not be empty')
        with self._lock:
            if name in self.keys:
                raise errors.ConfigurationError(f'a key named {name!r} already exists')
            self.keys[name] = signer
        logger.debug('Stored %s key under %r', signer.key_type, name)

    def _require_active(self) -> account_lib.Account:
        acct = self.active_account
        if acct is None or not acct.uri:
            raise errors.NoActiveAccount(
                'active account is missing or has not been created')
        return acct

    # Directory and nonces

    def get_endpoint_url(self, name: str) -> Optional[str]:
        """URL of directory entry ``name``, ``None`` if absent."""
        return self.resolver.resolve(name)

    def refresh_nonce(self) -> str:
        """Fetch a new nonce from the server."""
        return self.nonces.refresh()

    # Signing and transport

    def sign(self, url: str, data: bytes,
             options: Optional[jws.SigningOptions] = None) -> jws.SignResult:
        """Sign ``data`` for a POST to ``url``.

        Options left unset default to the active account: its signer, its
        URL as key ID unless the key is embedded, and the session's nonces.
        ``options`` itself is not modified.

        :raises .SigningOptionsError: if a default is needed but there is no
            active account, or the options are otherwise invalid.

        """
        options = options if options is not None else jws.SigningOptions()
        with self._lock:
            acct = self.active_account
            signer = options.signer
            if signer is None:
                if acct is None:
                    raise errors.SigningOptionsError(
                        'no active account and no signer specified')
                signer = acct.signer
            key_id = options.key_id
            if not options.embed_key and not key_id:
                if acct is None:
                    raise errors.SigningOptionsError(
                        'key not embedded, no key ID specified and no active account')
                key_id = acct.uri
            resolved = jws.SigningOptions(
                embed_key=options.embed_key, key_id=key_id, signer=signer,
                nonce_source=options.nonce_source or self.nonces.consume)
            resolved.validate()

        logger.log(self.output.level(self.output.print_signed_data),
                   'Signing for %s:\n%s', url, data.decode('utf-8', 'replace'))
        result = jws.sign(url, data, resolved)
        logger.log(self.output.level(self.output.print_jws), 'JWS:\n%s', result.serialized)
        return result

    def get(self, url: str, **kwargs: Any) -> requests.Response:
        """GET ``url``; the status is not checked."""
        response = self.net.get(url, **kwargs)
        self.nonces.observe(response)
        return response

    def post(self, url: str, data: str, **kwargs: Any) -> requests.Response:
        """POST a serialized JWS to ``url``; the status is not checked."""
        response = self.net.post(url, data, **kwargs)
        self.nonces.observe(response)
        return response

    def post_as_get(self, url: str,
                    options: Optional[jws.SigningOptions] = None,
                    **kwargs: Any) -> requests.Response:
        """POST-as-GET ``url``, signing an empty payload."""
        return self.post(url, self.sign(url, b'', options).serialized, **kwargs)

    def fetch(self, url: str, **kwargs: Any) -> requests.Response:
        """Fetch ``url`` with GET, or POST-as-GET when enabled."""
        if self.use_post_as_get:
            return self.post_as_get(url, **kwargs)
        return self.get(url, **kwargs)

    def _post_obj(self, url: str, obj: Optional[jose.JSONDeSerializable],
                  options: Optional[jws.SigningOptions] = None) -> requests.Response:
        payload = obj.json_dumps(indent=2).encode() if obj is not None else b'{}'
        return self.post(url, self.sign(url, payload, options).serialized)

    @classmethod
    def _parse(cls, response: requests.Response, resource: Type[GenericJSON]) -> GenericJSON:
        jobj = net.response_json(response)
        try:
            return resource.from_json(jobj)
        except jose.DeserializationError as error:
            raise errors.MalformedResponse(
                f'invalid {resource.__name__} from {response.url}: {error}')

    @classmethod
    def _location(cls, response: requests.Response) -> str:
        location = response.headers.get(constants.LOCATION_HEADER)
        if not location:
            raise errors.MissingLocation(
                'server returned response with no Location header')
        return location

    @classmethod
    def _identifier_value(cls, authzr: messages.AuthorizationResource) -> str:
        if authzr.body.identifier is None:
            raise errors.MalformedResponse(
                f'authorization {authzr.uri} has no identifier')
        return authzr.body.identifier.value

    # Accounts

    def create_account(self, acct: Optional[account_lib.Account] = None) -> account_lib.Account:
        """Register ``acct`` (by default the active account) with the server.

        The terms of service are always agreed to. On success ``acct.uri``
        is set from the ``Location`` header.

        :raises .AccountExistsError: if ``acct`` already has a URL.
        :raises .ConflictError: if the server already knows the key.

        """
        if acct is None:
            acct = self.active_account
        if acct is None:
            raise errors.NoActiveAccount('no account to create')
        if acct.uri:
            raise errors.AccountExistsError(acct.uri)
        url = self.resolver.require(constants.NEW_ACCOUNT_ENDPOINT)
        req = messages.NewAccount(contact=acct.contact, terms_of_service_agreed=True)

        logger.debug('Sending newAccount request (contact: %s) to %s',
                     ', '.join(acct.contact), url)
        response = self._post_obj(
            url, req, jws.SigningOptions(embed_key=True, signer=acct.signer))
        if response.status_code == 200 and constants.LOCATION_HEADER in response.headers:
            raise errors.ConflictError(response.headers[constants.LOCATION_HEADER])
        net.check_response(response, 201)

        acct.uri = self._location(response)
        with self._lock:
            self.keys[acct.uri] = acct.signer
        logger.info('Created account with ID %r', acct.uri)
        return acct

    def get_account(self, acct: Optional[account_lib.Account] = None) -> messages.AccountBody:
        """Server's view of ``acct`` (by default the active account)."""
        acct = acct if acct is not None else self._require_active()
        if not acct.uri:
            raise errors.NoActiveAccount('account has not been created')
        response = self.post_as_get(
            acct.uri, jws.SigningOptions(key_id=acct.uri, signer=acct.signer))
        net.check_response(response, 200)
        return self._parse(response, messages.AccountBody)

    def deactivate_account(self, acct: Optional[account_lib.Account] = None
                           ) -> messages.AccountBody:
        """Deactivate ``acct`` (by default the active account)."""
        acct = acct if acct is not None else self._require_active()
        if not acct.uri:
            raise errors.NoActiveAccount('account has not been created')
        response = self._post_obj(
            acct.uri, messages.UpdateStatus(status=messages.STATUS_DEACTIVATED),
            jws.SigningOptions(key_id=acct.uri, signer=acct.signer))
        net.check_response(response, 200)
        logger.info('Deactivated account %r', acct.uri)
        return self._parse(response, messages.AccountBody)

    def rollover(self, new_signer: keys.Signer) -> None:
        """Replace the active account's key with ``new_signer``.

        The key change request is an inner JWS, signed by the new key with
        the key embedded and no nonce, wrapped in an outer JWS signed by
        the old key in key ID mode. Only after the server accepts it are
        the key table and the account's signer updated; on any error both
        are left as they were.

        """
        with self._lock:
            acct = self._require_active()
            url = self.resolver.require(constants.KEY_CHANGE_ENDPOINT)
            old_signer = acct.signer
            req = messages.KeyChange(account=acct.uri, old_key=old_signer.public_jwk())

            inner = self.sign(url, req.json_dumps(indent=2).encode(), jws.SigningOptions(
                embed_key=True, signer=new_signer, nonce_source=jws.no_nonce))
            outer = self.sign(url, inner.serialized.encode(), jws.SigningOptions(
                key_id=acct.uri, signer=old_signer))

            logger.debug('Rolling over account %r to use new key', acct.uri)
            response = self.post(url, outer.serialized)
            net.check_response(response, 200)

            self.keys[acct.uri] = new_signer
            acct.signer = new_signer
        logger.info('Rollover for %r completed', acct.uri)

    # Orders

    def create_order(self, identifiers: Iterable[Union[messages.Identifier, str]]
                     ) -> messages.OrderResource:
        """Create a new order for ``identifiers``.

        Plain strings are taken as DNS identifiers. The new order's URL is
        appended to the active account's orders.

        """
        acct = self._require_active()
        idents = tuple(ident if isinstance(ident, messages.Identifier)
                       else messages.Identifier.dns(ident) for ident in identifiers)
        if not idents:
            raise errors.ConfigurationError('an order needs at least one identifier')
        url = self.resolver.require(constants.NEW_ORDER_ENDPOINT)

        response = self._post_obj(url, messages.NewOrder(identifiers=idents))
        net.check_response(response, 201)
        location = self._location(response)
        body = self._parse(response, messages.Order)

        with self._lock:
            acct.orders.append(location)
        logger.info('Created new order with ID %r', location)
        return messages.OrderResource(uri=location, body=body)

    def fetch_order(self, url: str) -> messages.OrderResource:
        """Fetch the order at ``url``."""
        response = net.check_response(self.fetch(url), 200)
        return messages.OrderResource(uri=url, body=self._parse(response, messages.Order))

    def update_order(self, orderr: messages.OrderResource) -> messages.OrderResource:
        """Fetch a fresh copy of ``orderr``."""
        return self.fetch_order(orderr.uri)

    def order_by_index(self, index: int) -> messages.OrderResource:
        """Fetch the ``index``-th order of the active account."""
        return self.fetch_order(self._require_active().order_url(index))

    def csr(self, names: List[str], common_name: Optional[str] = None,
            signer: Optional[keys.Signer] = None) -> Tuple[str, str]:
        """Build a CSR for ``names``.

        Without ``signer`` a new ECDSA key is generated and stored in the
        key table under the comma joined names.

        :returns: The base64url DER CSR, as sent to the server, and its PEM.

        """
        if signer is None:
            signer = keys.new_signer(keys.KEY_TYPE_ECDSA)
            with self._lock:
                self.keys[','.join(names)] = signer
        csr = crypto_util.make_csr(signer.private_key, names, common_name)
        return crypto_util.encode_b64der(csr), csr.public_bytes(Encoding.PEM).decode('ascii')

    def finalize(self, orderr: messages.OrderResource, csr: Optional[str] = None,
                 signer: Optional[keys.Signer] = None,
                 common_name: Optional[str] = None) -> messages.OrderResource:
        """Finalize ``orderr``.

        The order is fetched again first. Unless a base64url ``csr`` is
        given, one is built over the order's identifiers. The returned order
        may still be ``processing``; use `poll_until` to wait for it.

        """
        if csr is not None and (signer is not None or common_name is not None):
            raise errors.ConfigurationError(
                'a CSR cannot be combined with a signer or common name')
        orderr = self.update_order(orderr)
        finalize_url = orderr.body.finalize
        if not finalize_url:
            raise errors.MalformedResponse(f'order {orderr.uri} has no finalize URL')
        if csr is None:
            names = [ident.value for ident in orderr.body.identifiers or ()]
            csr, _ = self.csr(names, common_name, signer)

        response = self._post_obj(finalize_url, messages.CertificateRequest(csr=csr))
        net.check_response(response, 200)
        logger.info('Finalized order %r', orderr.uri)
        return messages.OrderResource(uri=orderr.uri,
                                      body=self._parse(response, messages.Order))

    def get_certificate(self, orderr: messages.OrderResource) -> str:
        """Download the PEM certificate chain of a valid order."""
        if orderr.body.status != messages.STATUS_VALID or not orderr.body.certificate:
            raise errors.ClientError(
                f'order {orderr.uri} is not valid or has no certificate URL')
        response = self.fetch(orderr.body.certificate,
                              headers={'Accept': PEM_CHAIN_CONTENT_TYPE})
        net.check_response(response, 200)
        return response.text

    def revoke_certificate(self, cert: Union[x509.Certificate, bytes],
                           reason: int = constants.DEFAULT_REVOCATION_REASON,
                           signer: Optional[keys.Signer] = None) -> None:
        """Revoke ``cert``.

        The request is authenticated by the active account, or, when
        ``signer`` is given, by that key embedded in the request (e.g. the
        certificate's own key).

        """
        if not isinstance(cert, x509.Certificate):
            cert = crypto_util.load_certificate(cert)
        if signer is None:
            self._require_active()
            options = None
        else:
            options = jws.SigningOptions(embed_key=True, signer=signer)
        url = self.resolver.require(constants.REVOKE_CERT_ENDPOINT)
        req = messages.Revocation(certificate=crypto_util.encode_b64der(cert), reason=reason)
        net.check_response(self._post_obj(url, req, options), 200)
        logger.info('Revoked certificate with serial %x', cert.serial_number)

    # Authorizations and challenges

    def fetch_authz(self, url: str) -> messages.AuthorizationResource:
        """Fetch the authorization at ``url``."""
        response = net.check_response(self.fetch(url), 200)
        return messages.AuthorizationResource(
            uri=url, body=self._parse(response, messages.Authorization))

    def update_authz(self, authzr: messages.AuthorizationResource
                     ) -> messages.AuthorizationResource:
        """Fetch a fresh copy of ``authzr``."""
        return self.fetch_authz(authzr.uri)

    def authz_by_identifier(self, orderr: messages.OrderResource,
                            value: str) -> messages.AuthorizationResource:
        """Fetch the authorization of ``orderr`` for identifier ``value``."""
        if not orderr.body.authorizations:
            raise errors.ClientError(f'order {orderr.uri} has no authorizations')
        for url in orderr.body.authorizations:
            authzr = self.fetch_authz(url)
            if authzr.body.identifier is not None and authzr.body.identifier.value == value:
                return authzr
        raise errors.ClientError(
            f'order {orderr.uri} has no authorization for identifier {value!r}')

    def deactivate_authz(self, authzr: messages.AuthorizationResource
                         ) -> messages.AuthorizationResource:
        """Deactivate ``authzr``."""
        self._require_active()
        response = self._post_obj(
            authzr.uri, messages.UpdateStatus(status=messages.STATUS_DEACTIVATED))
        net.check_response(response, 200)
        logger.info('Deactivated authorization %r', authzr.uri)
        return messages.AuthorizationResource(
            uri=authzr.uri, body=self._parse(response, messages.Authorization))

    def update_challenge(self, chall: messages.Challenge) -> messages.Challenge:
        """Fetch a fresh copy of ``chall``."""
        response = net.check_response(self.fetch(chall.uri), 200)
        return self._parse(response, messages.Challenge)

    def solve_challenge(self, authzr: messages.AuthorizationResource,
                        chall: messages.Challenge,
                        responder: interfaces.ChallengeResponder) -> messages.Challenge:
        """Set up the response to ``chall`` and tell the server it is ready.

        :raises .UnsupportedChallengeError: for challenge types other than
            http-01, dns-01 and tls-alpn-01.

        """
        acct = self._require_active()
        key_authz = acct.signer.key_authorization(chall.token)
        host = self._identifier_value(authzr)
        if chall.typ == messages.CHALLENGE_HTTP01:
            responder.add_http01_challenge(chall.token, key_authz)
        elif chall.typ == messages.CHALLENGE_DNS01:
            responder.add_dns01_challenge(host, key_authz)
        elif chall.typ == messages.CHALLENGE_TLSALPN01:
            responder.add_tls_alpn01_challenge(host, key_authz)
        else:
            raise errors.UnsupportedChallengeError(
                f'cannot respond to {chall.typ!r} challenges')
        logger.debug('Added %s response for %s', chall.typ, host)

        response = self._post_obj(chall.uri, None)
        net.check_response(response, 200)
        logger.info('Responded to %s challenge %r', chall.typ, chall.uri)
        return self._parse(response, messages.Challenge)

    def cleanup_challenge(self, authzr: messages.AuthorizationResource,
                          chall: messages.Challenge,
                          responder: interfaces.ChallengeResponder) -> None:
        """Remove the response set up by `solve_challenge`."""
        host = self._identifier_value(authzr)
        if chall.typ == messages.CHALLENGE_HTTP01:
            responder.delete_http01_challenge(chall.token)
        elif chall.typ == messages.CHALLENGE_DNS01:
            responder.delete_dns01_challenge(host)
        elif chall.typ == messages.CHALLENGE_TLSALPN01:
            responder.delete_tls_alpn01_challenge(host)
        else:
            raise errors.UnsupportedChallengeError(
                f'cannot respond to {chall.typ!r} challenges')

    # Polling

    def poll_until(self, url: str, target_status: Union[messages.Status, str],
                   max_tries: int = constants.DEFAULT_POLL_TRIES,
                   interval: float = constants.DEFAULT_POLL_INTERVAL,
                   cancel: Optional[threading.Event] = None) -> polling.PollResult:
        """Fetch the resource at ``url`` until its status is ``target_status``.

        See `.polling.poll_until` for the retry semantics. Polling stops
        early once the resource reaches a terminal status other than
        ``target_status``.
        """
        if isinstance(target_status, messages.Status):
            target_status = target_status.name

        def fetch_status() -> str:
            response = net.check_response(self.fetch(url), 200)
            return net.response_json(response).get('status')

        final_statuses = frozenset(status.name for status in messages.TERMINAL_STATUSES)
        return polling.poll_until(fetch_status, target_status, max_tries, interval, cancel,
                                  final_statuses)
