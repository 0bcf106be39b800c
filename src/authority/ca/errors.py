"""Error taxonomy for the certificate authority.

Every error is fatal: nothing in this package retries or recovers locally.
"""


class AuthorityError(Exception):
    """Base class for certificate authority failures."""

    pass


class KeyGenerationError(AuthorityError):
    """Raised when a key pair cannot be generated (entropy or algorithm failure)."""

    pass


class SigningError(AuthorityError):
    """Raised when a certificate template is invalid or cannot be signed."""

    pass


class ChainParseError(AuthorityError):
    """Raised when the supplied authority cannot act as a signer."""

    pass


class EncodingError(AuthorityError):
    """Raised when a key or certificate cannot be serialized or deserialized."""

    pass


class TrustValidationError(AuthorityError):
    """Raised when a certificate does not chain to a trust anchor."""

    pass
