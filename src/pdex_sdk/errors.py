"""Errors raised by the pDEX order protocol.

Construction problems (bad schemas, bad messages, missing keys) raise.
Signature checks never raise for a bad signature; they return a
``VerificationResult`` instead.
"""


class OrderProtocolError(Exception):
    """Base class for all pDEX SDK errors."""


class SchemaMismatch(OrderProtocolError, ValueError):
    """A message does not match its declared type schema."""


class UnknownType(OrderProtocolError, ValueError):
    """A field references a type that is neither primitive nor declared."""


class UnknownDomain(OrderProtocolError, LookupError):
    """No signing domain is registered for the requested contract."""


class KeyUnavailable(OrderProtocolError):
    """The signing key is missing or cannot be loaded."""


class PayloadSelfCheckFailed(OrderProtocolError):
    """A freshly signed payload did not verify against its seller."""
