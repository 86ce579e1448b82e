"""
Error Taxonomy
==============

Every failure raised by cryptutil derives from ``CryptUtilError``.

Propagation Policy:
    - All errors surface to the caller immediately
    - The only locally absorbed condition is ``PrimitiveUnavailableError``
      during fallback probing (the candidate search moves on)
    - ``TamperDetectedError`` is fatal unless the caller passes ``fatal=False``
      to a verifying operation, in which case ``None`` is returned and the
      caller must treat the data as untrusted
"""

from __future__ import annotations

from typing import Optional


class CryptUtilError(Exception):
    """Base class for all cryptutil errors."""
    pass


class MissingParameterError(CryptUtilError, ValueError):
    """A required parameter is absent and cannot be resolved."""

    def __init__(self, param: str, message: Optional[str] = None) -> None:
        self.param = param
        super().__init__(message or f"No default value for required parameter '{param}'")


class NoUsableCandidateError(CryptUtilError, LookupError):
    """Every candidate of a fallback list was probed and none is usable."""

    def __init__(self, category: str, candidates: tuple[str, ...]) -> None:
        self.category = category
        self.candidates = candidates
        super().__init__(
            f"Couldn't load any {category} (tried: {', '.join(candidates) or 'nothing'})"
        )


class UnsupportedAlgorithmError(CryptUtilError, ValueError):
    """The named algorithm has no registered provider."""

    def __init__(self, kind: str, name: object, message: Optional[str] = None) -> None:
        self.kind = kind
        self.name = name
        super().__init__(message or f"{kind} {name!r} is unsupported")


class AuthenticatedModeRequiredError(CryptUtilError):
    """Encrypted tamper proofing was requested without an authenticated mode."""

    def __init__(self, mode: Optional[str] = None) -> None:
        self.mode = mode
        detail = f" (got {mode!r})" if mode else ""
        super().__init__(
            "To use encrypted tamper resistant strings an authenticated "
            f"encryption mode such as EAX or GCM must be selected{detail}"
        )


class IncompatibleVersionError(CryptUtilError, ValueError):
    """A packed envelope was produced by a different format version."""

    def __init__(self, expected: int, found: int) -> None:
        self.expected = expected
        self.found = found
        super().__init__(
            f"Incompatible packed string (I'm version {expected}, thawing version {found})"
        )


class MalformedEnvelopeError(CryptUtilError, ValueError):
    """Envelope bytes are truncated or carry trailing garbage."""
    pass


class TamperDetectedError(CryptUtilError):
    """
    Integrity verification failed.

    Indicates tampering, corruption, or a wrong key. Never use data
    recovered alongside this error.
    """
    pass


class DecryptionFailedError(TamperDetectedError):
    """Authenticated decryption rejected the ciphertext."""
    pass


class UnknownEnvelopeTypeError(CryptUtilError, ValueError):
    """The tamper-evident envelope carries an unknown type tag."""

    def __init__(self, type_tag: int) -> None:
        self.type_tag = type_tag
        super().__init__(f"Unknown tamper proofing method (type tag {type_tag})")


class PrimitiveUnavailableError(CryptUtilError, ImportError):
    """
    The backing primitive is not installed or not supported by the backend.

    Raised by loaders and probes. The fallback resolver absorbs it and
    moves on to the next candidate.
    """
    pass


class PrimitiveLoadError(CryptUtilError):
    """
    A primitive failed to load for a reason other than absence.

    Always fatal; never absorbed into the fallback search.
    """

    def __init__(self, category: str, candidate: str, cause: BaseException) -> None:
        self.category = category
        self.candidate = candidate
        super().__init__(f"Loading {category} {candidate!r} failed: {cause}")
