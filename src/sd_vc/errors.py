"""Exception hierarchy for sd-vc.

Structural problems (bad claim values, missing metadata, unknown versions)
are raised at build time. Verification never raises for a credential that
simply does not verify; see :class:`sd_vc.verification.FailureReason` for those
outcomes. Only infrastructure failures (missing keys, unreachable resolvers)
and malformed input are raised from verification.
"""

from typing import Optional


class SDVCError(Exception):
    """Base class for all sd-vc errors."""


class EncodingError(SDVCError, ValueError):
    """A claim value cannot be represented in the canonical encoding."""


class EmptyClaimSetError(SDVCError, ValueError):
    """A commitment was requested over a claim set with no leaves."""


class MissingNonceError(SDVCError, ValueError):
    """A supplied nonce map has no entry for a claim being committed."""


class UnsupportedVersionError(SDVCError, ValueError):
    """Unknown credential or presentation protocol version."""


class UnsupportedHashTypeError(SDVCError, ValueError):
    """Unknown hash algorithm identifier."""


class UnsupportedAlgorithmError(SDVCError, ValueError):
    """Unknown or unsupported signature algorithm / key type."""


class IncompleteCredentialError(SDVCError, ValueError):
    """Required credential metadata is missing before build."""


class SchemaMismatchError(IncompleteCredentialError):
    """The claim set does not match the referenced schema."""

    def __init__(self, message: str, problems: Optional[list[str]] = None):
        super().__init__(message)
        self.problems = list(problems or [])


class UnknownFieldError(SDVCError, ValueError):
    """A selective disclosure names a field the credential does not contain."""


class RedactionError(SDVCError, ValueError):
    """A disclosure mode cannot be applied to the given credential."""


class HolderMismatchError(SDVCError, ValueError):
    """A presentation includes a credential issued to a different holder."""


class MalformedCredentialError(SDVCError, ValueError):
    """A serialized credential or presentation has an invalid shape."""


class KeyNotFoundError(SDVCError, ValueError):
    """The verification key reference is absent from the identity document."""


class KeyRevokedError(SDVCError, ValueError):
    """The identity collaborator reports the key as revoked."""


class KeyPurposeNotFoundError(SDVCError, ValueError):
    """The signing identity has no key for the requested purpose."""


class UnresolvedCollaboratorError(SDVCError):
    """A signer or resolver failed for infrastructure reasons."""


class NotFoundError(UnresolvedCollaboratorError):
    """The resolver does not know the requested identity."""


class ResolutionError(UnresolvedCollaboratorError):
    """The resolver failed while fetching an identity document."""


class SigningError(UnresolvedCollaboratorError):
    """The signer failed while producing a signature."""
