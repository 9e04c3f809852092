"""ACME protocol engine for developers.

This package implements the client side of the `ACME protocol`_ with an
emphasis on exposing each step of the exchange (directory lookups, nonces,
JWS construction, resource refreshes) so that an ACME server can be driven
and inspected interactively.

.. _`ACME protocol`: https://datatracker.ietf.org/doc/html/rfc8555

"""
__version__ = '0.5.0'
