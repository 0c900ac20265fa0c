# repguard/core/errors.py


class RepGuardError(Exception):
    """Base class for every error raised by RepGuard."""


class ConfigurationError(RepGuardError):
    """Invalid threshold/window values; the engine must not start."""


class MalformedRequestDescriptor(RepGuardError):
    """Request descriptor could not be built from the given input.

    The gateway never lets this escape: the request is evaluated as
    coming from the synthetic source ``"unknown"``.
    """


class CryptoError(RepGuardError):
    pass


class AuthenticationError(CryptoError):
    """Authentication tag did not verify (wrong key or tampered envelope)."""


class MalformedEnvelopeError(CryptoError):
    """Ciphertext envelope could not be parsed."""
