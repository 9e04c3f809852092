"""Tests for acmeshell.net."""
import logging
import sys
import unittest
from unittest import mock

import pytest
import requests

from acmeshell import errors
from acmeshell._internal.tests import test_util

URL = 'https://ca.example/acme/new-order'


class ClientNetworkTest(unittest.TestCase):
    """Tests for acmeshell.net.ClientNetwork."""

    def setUp(self):
        from acmeshell.net import ClientNetwork
        self.net = ClientNetwork(verify_ssl='/tmp/ca.pem', user_agent='acme-test', timeout=7)
        self.response = test_util.response(200, {'foo': 'bar'})
        self.net.session = mock.MagicMock()
        self.net.session.request.return_value = self.response

    def test_init(self):
        from acmeshell.net import ClientNetwork
        network = ClientNetwork()
        assert network.verify_ssl is True
        assert network.user_agent.startswith('acmeshell-python/')

    def test_get(self):
        assert self.net.get(URL) is self.response
        self.net.session.request.assert_called_once_with(
            'GET', URL, verify='/tmp/ca.pem', timeout=7,
            headers={'User-Agent': 'acme-test', 'Accept-Language': 'en-us'})

    def test_head(self):
        self.net.head(URL)
        assert self.net.session.request.call_args[0][0] == 'HEAD'

    def test_post(self):
        self.net.post(URL, '{"payload": ""}')
        self.net.session.request.assert_called_once_with(
            'POST', URL, data='{"payload": ""}', verify='/tmp/ca.pem', timeout=7,
            headers={'User-Agent': 'acme-test', 'Accept-Language': 'en-us',
                     'Content-Type': 'application/jose+json'})

    def test_accept_header_kept(self):
        self.response.content = b'\x00\x01'
        self.net.get(URL, headers={'Accept': 'application/pem-certificate-chain'})
        headers = self.net.session.request.call_args[1]['headers']
        assert headers['Accept'] == 'application/pem-certificate-chain'

    def test_status_not_checked(self):
        self.response.status_code = 500
        assert self.net.get(URL) is self.response

    def test_logs_at_debug(self):
        with mock.patch('acmeshell.net.logger') as mock_logger:
            self.net.post(URL, 'data')
        levels = [call[0][0] for call in mock_logger.log.call_args_list]
        assert levels == [logging.DEBUG, logging.DEBUG]

    def test_print_requests_and_responses(self):
        self.net.print_requests = True
        self.net.print_responses = True
        with mock.patch('acmeshell.net.logger') as mock_logger:
            self.net.post(URL, 'data')
        levels = [call[0][0] for call in mock_logger.log.call_args_list]
        assert levels == [logging.INFO, logging.INFO]

    def test_connection_error(self):
        self.net.session.request.side_effect = requests.exceptions.ConnectionError(
            "HTTPSConnectionPool(host='ca.example', port=443): Max retries exceeded "
            "with url: /directory (Caused by NewConnectionError('<urllib3.connection."
            "HTTPSConnection object at 0x108356c50>: Failed to establish a new "
            "connection: [Errno 65] No route to host',))")
        with pytest.raises(errors.NetworkError) as exc_info:
            self.net.get('https://ca.example/directory')
        assert str(exc_info.value) == 'Requesting ca.example/directory: No route to host'

    def test_other_request_error(self):
        self.net.session.request.side_effect = requests.exceptions.Timeout('timed out')
        with pytest.raises(errors.NetworkError) as exc_info:
            self.net.get(URL)
        assert 'timed out' in str(exc_info.value)

    def test_del_close_error(self):
        self.net.session.close.side_effect = IOError
        # The exception is ignored.
        self.net.__del__()


class CheckResponseTest(unittest.TestCase):
    """Tests for acmeshell.net.check_response."""

    def test_expected(self):
        from acmeshell.net import check_response
        response = test_util.response(201)
        assert check_response(response, 200, 201) is response

    def test_unexpected_with_problem(self):
        from acmeshell.net import check_response
        response = test_util.response(
            400, {'type': 'urn:ietf:params:acme:error:badNonce', 'detail': 'stale'},
            headers={'Content-Type': 'application/problem+json'})
        with pytest.raises(errors.UnexpectedStatus) as exc_info:
            check_response(response, 200)
        error = exc_info.value
        assert error.status == 400
        assert error.expected == (200,)
        assert error.problem.code == 'badNonce'
        assert error.problem.detail == 'stale'

    def test_unexpected_without_body(self):
        from acmeshell.net import check_response
        with pytest.raises(errors.UnexpectedStatus) as exc_info:
            check_response(test_util.response(500), 200)
        assert exc_info.value.problem is None

    def test_unexpected_with_wrong_content_type(self):
        from acmeshell.net import check_response
        response = test_util.response(
            403, {'type': 'urn:ietf:params:acme:error:unauthorized'},
            headers={'Content-Type': 'application/json; charset=utf-8'})
        with pytest.raises(errors.UnexpectedStatus) as exc_info:
            check_response(response, 200)
        assert exc_info.value.problem.code == 'unauthorized'

    def test_unexpected_with_non_object_body(self):
        from acmeshell.net import check_response
        with pytest.raises(errors.UnexpectedStatus) as exc_info:
            check_response(test_util.response(500, ['oops']), 200)
        assert exc_info.value.problem is None

    def test_unexpected_success_status(self):
        from acmeshell.net import check_response
        with pytest.raises(errors.UnexpectedStatus):
            check_response(test_util.response(200), 201)


class ResponseJSONTest(unittest.TestCase):
    """Tests for acmeshell.net.response_json."""

    def test_object(self):
        from acmeshell.net import response_json
        assert response_json(test_util.response(200, {'a': 1})) == {'a': 1}

    def test_not_json(self):
        from acmeshell.net import response_json
        with pytest.raises(errors.MalformedResponse):
            response_json(test_util.response(200))

    def test_not_object(self):
        from acmeshell.net import response_json
        with pytest.raises(errors.MalformedResponse):
            response_json(test_util.response(200, [1, 2]))


if __name__ == '__main__':
    sys.exit(pytest.main(sys.argv[1:] + [__file__]))  # pragma: no cover
