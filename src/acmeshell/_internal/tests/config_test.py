"""Tests for acmeshell.config."""
import logging
import sys
import unittest

import pytest

from acmeshell import errors


class SafeEmailTest(unittest.TestCase):
    """Test safe_email."""
    @classmethod
    def _call(cls, addr):
        from acmeshell.config import safe_email
        return safe_email(addr)

    def test_valid_emails(self):
        addrs = [
            "admin@example.org",
            "tbd.ade@gmail.com",
            "abc_def.jdk@hotmail.museum",
        ]
        for addr in addrs:
            assert self._call(addr), "%s failed." % addr

    def test_invalid_emails(self):
        addrs = [
            "admin@example..org",
            ".tbd.ade@gmail.com",
            "~/abc_def.jdk@hotmail.museum",
        ]
        for addr in addrs:
            assert not self._call(addr), "%s failed." % addr


class OutputOptionsTest(unittest.TestCase):
    """Tests for acmeshell.config.OutputOptions."""

    def test_defaults(self):
        from acmeshell.config import OutputOptions
        output = OutputOptions()
        assert not output.print_requests
        assert not output.print_jws

    def test_level(self):
        from acmeshell.config import OutputOptions
        assert OutputOptions.level(True) == logging.INFO
        assert OutputOptions.level(False) == logging.DEBUG


class ClientConfigTest(unittest.TestCase):
    """Tests for acmeshell.config.ClientConfig."""

    def _config(self, **kwargs):
        from acmeshell.config import ClientConfig
        return ClientConfig(**kwargs)

    def test_defaults(self):
        config = self._config().normalize()
        assert config.directory_url == (
            'https://acme-staging-v02.api.letsencrypt.org/directory')
        assert config.key_type == 'ecdsa'
        assert config.timeout == 45
        assert config.verify_ssl is True
        assert config.emails == []
        assert not config.auto_register
        assert not config.post_as_get

    def test_trims(self):
        config = self._config(
            directory_url='  https://ca.example/directory ', ca_cert=' /etc/ca.pem ',
            account_path='  ', contact_email=' a@example.com , ,b@example.com ').normalize()
        assert config.directory_url == 'https://ca.example/directory'
        assert config.ca_cert == '/etc/ca.pem'
        assert config.verify_ssl == '/etc/ca.pem'
        assert config.account_path is None
        assert config.contact_email == 'a@example.com,b@example.com'
        assert config.emails == ['a@example.com', 'b@example.com']

    def test_empty_directory_url(self):
        with pytest.raises(errors.ConfigurationError):
            self._config(directory_url=' ').normalize()

    def test_bad_directory_url(self):
        for url in ('ftp://ca.example/directory', 'ca.example/directory', 'https://'):
            with pytest.raises(errors.ConfigurationError):
                self._config(directory_url=url).normalize()

    def test_http_directory_url(self):
        assert self._config(directory_url='http://localhost:14000/dir').normalize()

    def test_bad_email(self):
        with pytest.raises(errors.ConfigurationError):
            self._config(contact_email='admin@example..com').normalize()

    def test_bad_key_type(self):
        with pytest.raises(errors.ConfigurationError):
            self._config(key_type='dsa').normalize()

    def test_rsa_key_type(self):
        assert self._config(key_type='rsa').normalize().key_type == 'rsa'

    def test_bad_timeout(self):
        with pytest.raises(errors.ConfigurationError):
            self._config(timeout=0).normalize()


if __name__ == '__main__':
    sys.exit(pytest.main(sys.argv[1:] + [__file__]))  # pragma: no cover
