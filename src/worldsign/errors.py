"""Exceptions raised by the worldsign signing layer."""


class WorldSignError(Exception):
    """Base class for all worldsign errors."""


class NamespaceUnavailable(WorldSignError):
    """The backend namespace could not be fetched or parsed."""


class InvalidPrivateKey(WorldSignError, ValueError):
    """The private key is missing, malformed, or the wrong length."""


class InvalidSignatureParameters(WorldSignError):
    """The ECDSA signer produced an unexpected recovery value."""


class MessageCanonicalizationAmbiguity(WorldSignError):
    """A request body lacks the fields needed to build a canonical message."""
