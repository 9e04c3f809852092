"""Tests for acmeshell.nonce."""
import logging
import sys
import threading
import unittest
from unittest import mock

import pytest

from acmeshell import errors
from acmeshell._internal.tests import test_util


class NonceManagerTest(unittest.TestCase):
    """Tests for acmeshell.nonce.NonceManager."""

    def setUp(self):
        from acmeshell.nonce import NonceManager
        self.net = mock.MagicMock()
        self.resolver = mock.MagicMock()
        self.resolver.require.return_value = test_util.NEW_NONCE_URL
        self.nonces = NonceManager(self.net, self.resolver)

    def test_initially_empty(self):
        assert self.nonces.nonce == ''

    def test_consume(self):
        self.net.head.side_effect = [test_util.nonce_response('aaa'),
                                     test_util.nonce_response('bbb')]
        assert self.nonces.consume() == 'aaa'
        assert self.nonces.nonce == 'bbb'
        self.net.head.assert_called_with(test_util.NEW_NONCE_URL)
        self.resolver.require.assert_called_with('newNonce')

    def test_consume_with_held_nonce(self):
        self.net.head.side_effect = [test_util.nonce_response('aaa'),
                                     test_util.nonce_response('bbb')]
        self.nonces.refresh()
        assert self.nonces.consume() == 'aaa'
        assert self.net.head.call_count == 2

    def test_refresh_no_content(self):
        self.net.head.return_value = test_util.nonce_response('aaa', status_code=204)
        assert self.nonces.refresh() == 'aaa'

    def test_refresh_unexpected_status(self):
        self.net.head.return_value = test_util.nonce_response('aaa', status_code=500)
        with pytest.raises(errors.UnexpectedStatus):
            self.nonces.refresh()
        assert self.nonces.nonce == ''

    def test_refresh_missing_header(self):
        self.net.head.return_value = test_util.response(200)
        with pytest.raises(errors.MissingNonce):
            self.nonces.refresh()

    def test_refresh_missing_endpoint(self):
        self.resolver.require.side_effect = errors.MissingEndpoint('newNonce')
        with pytest.raises(errors.MissingEndpoint):
            self.nonces.refresh()
        self.net.head.assert_not_called()

    def test_refresh_twice(self):
        self.net.head.side_effect = [test_util.nonce_response('aaa'),
                                     test_util.nonce_response('bbb')]
        assert self.nonces.refresh() == 'aaa'
        assert self.nonces.refresh() == 'bbb'

    def test_duplicate(self):
        self.net.head.return_value = test_util.nonce_response('aaa')
        self.nonces.refresh()
        with pytest.raises(errors.DuplicateNonce) as exc_info:
            self.nonces.refresh()
        assert exc_info.value.nonce == 'aaa'
        assert self.nonces.nonce == 'aaa'

    def test_observe(self):
        self.nonces.observe(test_util.nonce_response('ccc'))
        assert self.nonces.nonce == 'ccc'
        self.nonces.observe(test_util.response(200))
        assert self.nonces.nonce == 'ccc'

    def test_observe_duplicate(self):
        self.nonces.observe(test_util.nonce_response('ccc'))
        with pytest.raises(errors.DuplicateNonce):
            self.nonces.observe(test_util.nonce_response('ccc'))

    def test_print_nonce_updates(self):
        self.nonces.print_nonce_updates = True
        with mock.patch('acmeshell.nonce.logger') as mock_logger:
            self.nonces.observe(test_util.nonce_response('ccc'))
        assert mock_logger.log.call_args[0][0] == logging.INFO

    def test_concurrent_consumers_get_distinct_nonces(self):
        self.net.head.side_effect = test_util.unique_nonces()
        results = []
        lock = threading.Lock()

        def consume():
            for _ in range(10):
                nonce = self.nonces.consume()
                with lock:
                    results.append(nonce)

        threads = [threading.Thread(target=consume) for _ in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        assert len(results) == 40
        assert len(set(results)) == 40


if __name__ == '__main__':
    sys.exit(pytest.main(sys.argv[1:] + [__file__]))  # pragma: no cover
