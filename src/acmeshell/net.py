"""HTTP transport to the ACME server."""
import base64
import logging
import re
from typing import Any
from typing import Dict
from typing import Optional
from typing import Union

import josepy as jose
import requests
from requests.adapters import HTTPAdapter

from acmeshell import constants
from acmeshell import errors
from acmeshell import messages

logger = logging.getLogger(__name__)


class ClientNetwork:
    """Wrapper around requests used for all ACME traffic.

    Adds user agent and language headers, sets Content-Type on POSTs and
    logs every request and response. Signing happens before a POST reaches
    this class; the body handed to `post` is already a serialized JWS.

    :param verify_ssl: Whether to verify certificates on SSL connections, or
        the path of a CA bundle to verify them against.
    :param str user_agent: String to send as User-Agent header.
    :param int timeout: Timeout for requests.
    :param bool print_requests: Log outgoing requests at INFO instead of DEBUG.
    :param bool print_responses: Log responses at INFO instead of DEBUG.

    """
    def __init__(self, verify_ssl: Union[bool, str] = True,
                 user_agent: str = constants.USER_AGENT,
                 timeout: int = constants.DEFAULT_NETWORK_TIMEOUT,
                 print_requests: bool = False, print_responses: bool = False) -> None:
        self.verify_ssl = verify_ssl
        self.user_agent = user_agent
        self.print_requests = print_requests
        self.print_responses = print_responses
        self.session = requests.Session()
        self._default_timeout = timeout
        adapter = HTTPAdapter()

        self.session.mount("http://", adapter)
        self.session.mount("https://", adapter)

    def __del__(self) -> None:
        # Try to close the session, but don't show exceptions to the
        # user if the call to close() fails.
        try:
            self.session.close()
        except Exception:  # pylint: disable=broad-except
            pass

    def _send_request(self, method: str, url: str, *args: Any, **kwargs: Any) -> requests.Response:
        """Send HTTP request.

        Makes sure that `verify_ssl` is respected. Logs request and
        response (with headers). For allowed parameters please see
        `requests.request`.

        :param str method: method for the new `requests.Request` object
        :param str url: URL for the new `requests.Request` object

        :raises .NetworkError: in case of any problems

        :returns: HTTP Response
        :rtype: `requests.Response`

        """
        request_level = logging.INFO if self.print_requests else logging.DEBUG
        if method == "POST":
            logger.log(request_level, 'Sending POST request to %s:\n%s',
                       url, kwargs['data'])
        else:
            logger.log(request_level, 'Sending %s request to %s.', method, url)
        kwargs['verify'] = self.verify_ssl
        kwargs.setdefault('headers', {})
        kwargs['headers'].setdefault('User-Agent', self.user_agent)
        kwargs['headers'].setdefault('Accept-Language', constants.ACCEPT_LANGUAGE)
        kwargs.setdefault('timeout', self._default_timeout)
        try:
            response = self.session.request(method, url, *args, **kwargs)
        except requests.exceptions.RequestException as e:
            # pylint: disable=pointless-string-statement
            """Requests response parsing

            The requests library emits exceptions with a lot of extra text.
            We parse them with a regexp to raise a more readable exceptions.

            Example:
            HTTPSConnectionPool(host='acme-v01.api.letsencrypt.org',
            port=443): Max retries exceeded with url: /directory
            (Caused by NewConnectionError('
            <requests.packages.urllib3.connection.VerifiedHTTPSConnection
            object at 0x108356c50>: Failed to establish a new connection:
            [Errno 65] No route to host',))"""

            # pylint: disable=line-too-long
            err_regex = r".*host='(\S*)'.*Max retries exceeded with url\: (\/\w*).*(\[Errno \d+\])([A-Za-z ]*)"
            m = re.match(err_regex, str(e))
            if m is None:
                raise errors.NetworkError(f"Requesting {url}: {e}")
            host, path, _err_no, err_msg = m.groups()
            raise errors.NetworkError(f"Requesting {host}{path}:{err_msg}")

        # If an Accept header was sent in the request, the response may not be
        # UTF-8 encoded. In this case, we don't set response.encoding and log
        # the base64 response instead of raw bytes to keep binary data out of the logs.
        debug_content: Union[bytes, str]
        if "Accept" in kwargs["headers"]:
            debug_content = base64.b64encode(response.content)
        else:
            response.encoding = "utf-8"
            debug_content = response.text
        logger.log(logging.INFO if self.print_responses else logging.DEBUG,
                   'Received response:\nHTTP %d\n%s\n\n%s',
                   response.status_code,
                   "\n".join("{0}: {1}".format(k, v)
                             for k, v in response.headers.items()),
                   debug_content)
        return response

    def head(self, url: str, **kwargs: Any) -> requests.Response:
        """Send HEAD request without checking the response."""
        return self._send_request('HEAD', url, **kwargs)

    def get(self, url: str, **kwargs: Any) -> requests.Response:
        """Send GET request without checking the response."""
        return self._send_request('GET', url, **kwargs)

    def post(self, url: str, data: str,
             content_type: str = constants.JOSE_CONTENT_TYPE,
             **kwargs: Any) -> requests.Response:
        """POST an already signed JWS without checking the response."""
        kwargs.setdefault('headers', {})
        kwargs['headers'].setdefault('Content-Type', content_type)
        return self._send_request('POST', url, data=data, **kwargs)


def problem_from_response(response: requests.Response) -> Optional[messages.Error]:
    """Problem document carried by ``response``, if any.

    The ``Content-Type`` is not checked strictly: any JSON object that
    deserializes as a problem document is accepted.

    """
    response_ct = response.headers.get('Content-Type')
    # Strip parameters from the media-type (rfc2616#section-3.7)
    if response_ct:
        response_ct = response_ct.split(';')[0].strip()
    try:
        jobj = response.json()
    except ValueError:
        return None
    if not isinstance(jobj, dict):
        return None
    if response_ct != constants.JSON_ERROR_CONTENT_TYPE:
        logger.debug('Ignoring wrong Content-Type (%r) for JSON Error', response_ct)
    try:
        return messages.Error.from_json(jobj)
    except jose.DeserializationError as error:
        logger.debug('Could not parse problem document: %s', error)
        return None


def check_response(response: requests.Response, *expected: int) -> requests.Response:
    """Check that ``response`` has one of the ``expected`` status codes.

    :raises .UnexpectedStatus: otherwise, carrying the problem document
        from the body when there is one.

    """
    if response.status_code not in expected:
        raise errors.UnexpectedStatus(
            response.status_code, expected, problem_from_response(response))
    return response


def response_json(response: requests.Response) -> Dict[str, Any]:
    """JSON object in the body of ``response``.

    :raises .MalformedResponse: if the body is not a JSON object.

    """
    try:
        jobj = response.json()
    except ValueError as error:
        raise errors.MalformedResponse(
            f'response from {response.url} is not JSON: {error}')
    if not isinstance(jobj, dict):
        raise errors.MalformedResponse(
            f'response from {response.url} is not a JSON object')
    return jobj
