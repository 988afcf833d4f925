"""Verification of credentials and presentations.

This module provides verifiers for sd-vc objects:
- CredentialVerifier: checks a (possibly redacted) credential against the
  issuer's published key
- PresentationVerifier: checks every included credential, then the
  presentation digest and the holder's signature

A credential or presentation that does not verify produces a
:class:`VerificationResult` naming the :class:`FailureReason`; exceptions are
raised only for malformed input and for keys the identity collaborator
cannot provide.
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from .commitment import commit, disclosed_root_hash, flatten_claims
from .credential import Credential
from .digest import (
    calc_digest,
    calc_presentation_digest,
    presentation_signed_message,
    signed_message,
)
from .errors import (
    EmptyClaimSetError,
    EncodingError,
    KeyRevokedError,
    MalformedCredentialError,
    NotFoundError,
    ResolutionError,
    SDVCError,
)
from .hashing import constant_time_compare
from .keys import key_verify
from .presentation import DisclosureMode, Presentation
from .resolvers import IdentityDocument, IdentityResolver, KeyPurpose, ResolvedKey, lookup_key
from .thumbprint import split_key_reference

logger = logging.getLogger(__name__)

# A resolver, or identity documents to use directly
KeySource = Union[IdentityResolver, IdentityDocument, Sequence[IdentityDocument]]


class FailureReason(str, Enum):
    """Why a credential or presentation did not verify."""

    DISCLOSURE_MISMATCH = "DisclosureMismatch"
    SIGNATURE_INVALID = "SignatureInvalid"
    PROOF_PURPOSE_MISMATCH = "ProofPurposeMismatch"
    ISSUER_MISMATCH = "IssuerMismatch"
    HOLDER_MISMATCH = "HolderMismatch"
    PRESENTATION_DIGEST_MISMATCH = "PresentationDigestMismatch"
    CHALLENGE_MISMATCH = "ChallengeMismatch"
    EXPIRED = "Expired"


@dataclass(frozen=True)
class VerificationResult:
    """Outcome of a verification.

    Truthy iff valid. For presentations, ``index`` is the position of the
    credential that failed, if the failure is tied to one.
    """

    valid: bool
    reason: Optional[FailureReason] = None
    detail: str = ""
    index: Optional[int] = None

    def __bool__(self) -> bool:
        return self.valid

    @classmethod
    def success(cls) -> "VerificationResult":
        return cls(valid=True)

    @classmethod
    def failure(
        cls, reason: FailureReason, detail: str, index: Optional[int] = None
    ) -> "VerificationResult":
        logger.warning("verification failed: %s (%s)", reason.value, detail)
        return cls(valid=False, reason=reason, detail=detail, index=index)


def _identity_of(reference: str) -> str:
    try:
        identity, _ = split_key_reference(reference)
    except ValueError as err:
        raise MalformedCredentialError(f"Invalid verification method: {err}") from err
    return identity


async def resolve_key(source: KeySource, reference: str) -> ResolvedKey:
    """Resolve a key reference to the key published by its identity.

    Args:
        source: Identity resolver, or one or more identity documents to use
            directly
        reference: Key reference ("<identity>#<fragment>")

    Returns:
        The resolved key

    Raises:
        MalformedCredentialError: If the reference is not a key reference
        NotFoundError: If the identity is unknown
        ResolutionError: If the resolver failed
        KeyNotFoundError: If the identity publishes no such key
        KeyRevokedError: If the key has been revoked
    """
    identity = _identity_of(reference)
    if isinstance(source, IdentityDocument):
        source = (source,)
    if isinstance(source, (list, tuple)):
        document = next((doc for doc in source if doc.id == identity), None)
        if document is None:
            known = ", ".join(doc.id for doc in source) or "none"
            raise NotFoundError(f"No identity document for {identity} (have: {known})")
    else:
        try:
            document = await source.resolve(identity)
        except SDVCError:
            raise
        except Exception as err:
            raise ResolutionError(f"Failed to resolve {identity}: {err}") from err

    key = lookup_key(document, reference)
    if key.revoked:
        raise KeyRevokedError(f"Key has been revoked: {reference}")
    return key


def _disclosed_root(credential: Credential, mode: DisclosureMode) -> Optional[bytes]:
    """Recompute the root hash from what a credential discloses.

    Returns None when the disclosed material does not fit the mode.
    """
    subject = credential.credential_subject
    hashes = credential.credential_subject_hashes
    nonce_map = credential.credential_subject_nonce_map

    if mode is DisclosureMode.DIGEST_ONLY:
        if not isinstance(subject, bytes) or hashes or nonce_map:
            return None
        return subject

    if not isinstance(subject, dict):
        return None
    try:
        if credential.is_public:
            if mode is DisclosureMode.SELECTIVE or nonce_map is not None:
                return None
            return commit(subject, credential.root_hash_type, salted=False).root_hash

        if nonce_map is None:
            return None
        if mode is DisclosureMode.FULL and len(flatten_claims(subject)) != len(hashes):
            return None
        return disclosed_root_hash(subject, hashes, nonce_map, credential.root_hash_type)
    except (EncodingError, EmptyClaimSetError) as err:
        logger.debug("disclosed claims cannot be re-committed: %s", err)
        return None


class CredentialVerifier:
    """Verifies credentials using keys from an identity collaborator."""

    def __init__(self, source: KeySource):
        """Initialize credential verifier.

        Args:
            source: Identity resolver, or a list of identity documents
        """
        self.source = source

    async def verify(
        self,
        credential: Credential,
        mode: Optional[DisclosureMode] = None,
        now: Optional[int] = None,
    ) -> VerificationResult:
        """Verify a credential.

        Args:
            credential: Credential to verify, possibly redacted
            mode: Disclosure mode the credential was redacted under; inferred
                from the credential when omitted
            now: Current time in ms; enables the expiration check

        Returns:
            VerificationResult
        """
        if mode is None:
            if isinstance(credential.credential_subject, bytes):
                mode = DisclosureMode.DIGEST_ONLY
            elif credential.is_public:
                mode = DisclosureMode.FULL
            else:
                mode = DisclosureMode.SELECTIVE
        mode = DisclosureMode(mode)
        proof = credential.proof
        key = await resolve_key(self.source, proof.verification_method)

        root_hash = _disclosed_root(credential, mode)
        if root_hash is None:
            return VerificationResult.failure(
                FailureReason.DISCLOSURE_MISMATCH,
                f"disclosed claims do not match the commitment ({mode.value})",
            )
        digest = calc_digest(
            credential.version, root_hash, credential.metadata, credential.digest_hash_type
        )
        if not constant_time_compare(digest.digest, credential.digest):
            return VerificationResult.failure(
                FailureReason.DISCLOSURE_MISMATCH, "recomputed digest does not match"
            )

        if (
            proof.proof_purpose is not KeyPurpose.ASSERTION_METHOD
            or KeyPurpose.ASSERTION_METHOD not in key.purposes
        ):
            return VerificationResult.failure(
                FailureReason.PROOF_PURPOSE_MISMATCH,
                f"{key.reference} is not an assertionMethod key",
            )
        if _identity_of(key.reference) != credential.issuer or key.controller != credential.issuer:
            return VerificationResult.failure(
                FailureReason.ISSUER_MISMATCH,
                f"{key.reference} is not controlled by {credential.issuer}",
            )

        message = signed_message(credential.version, credential.digest)
        if proof.type != key.algorithm.label or not key_verify(
            key.public_key, message, proof.proof_value
        ):
            return VerificationResult.failure(
                FailureReason.SIGNATURE_INVALID, "issuer signature does not verify"
            )

        if now is not None and credential.expiration_date is not None:
            if credential.expiration_date < now:
                return VerificationResult.failure(
                    FailureReason.EXPIRED, f"expired at {credential.expiration_date}"
                )

        return VerificationResult.success()


class PresentationVerifier:
    """Verifies presentations using keys from an identity collaborator."""

    def __init__(self, source: KeySource):
        self.source = source
        self.credential_verifier = CredentialVerifier(source)

    async def verify(
        self,
        presentation: Presentation,
        challenge: Optional[str] = None,
        now: Optional[int] = None,
    ) -> VerificationResult:
        """Verify a presentation and every credential in it.

        The presentation digest is recomputed over the credential digests in
        the order they appear; reordering the credentials breaks it.

        Args:
            presentation: Presentation to verify
            challenge: Expected verifier challenge, if one was issued
            now: Current time in ms; enables the expiration check

        Returns:
            VerificationResult; ``index`` names the failing credential
        """
        proof = presentation.proof
        holder = _identity_of(proof.verification_method)

        for index, (mode, credential) in enumerate(presentation.entries()):
            result = await self.credential_verifier.verify(credential, mode, now)
            if not result:
                return VerificationResult(
                    valid=False, reason=result.reason, detail=result.detail, index=index
                )
            if credential.holder != holder:
                return VerificationResult.failure(
                    FailureReason.HOLDER_MISMATCH,
                    f"credential holder {credential.holder} did not sign the presentation",
                    index,
                )

        digest = calc_presentation_digest(
            [credential.digest for credential in presentation.verifiable_credential],
            presentation.hasher,
            presentation.challenge,
        )
        if not constant_time_compare(digest.digest, presentation.id):
            return VerificationResult.failure(
                FailureReason.PRESENTATION_DIGEST_MISMATCH,
                "presentation digest does not match its credentials",
            )
        if challenge is not None and presentation.challenge != challenge:
            return VerificationResult.failure(
                FailureReason.CHALLENGE_MISMATCH, "presentation was made for another challenge"
            )

        key = await resolve_key(self.source, proof.verification_method)
        if (
            proof.proof_purpose is not KeyPurpose.AUTHENTICATION
            or KeyPurpose.AUTHENTICATION not in key.purposes
        ):
            return VerificationResult.failure(
                FailureReason.PROOF_PURPOSE_MISMATCH,
                f"{key.reference} is not an authentication key",
            )
        if key.controller != holder:
            return VerificationResult.failure(
                FailureReason.HOLDER_MISMATCH, f"{key.reference} is not controlled by {holder}"
            )

        message = presentation_signed_message(presentation.version, presentation.id)
        if proof.type != key.algorithm.label or not key_verify(
            key.public_key, message, proof.proof_value
        ):
            return VerificationResult.failure(
                FailureReason.SIGNATURE_INVALID, "holder signature does not verify"
            )

        logger.debug(
            "verified presentation of %d credentials", len(presentation.verifiable_credential)
        )
        return VerificationResult.success()


async def verify_credential(
    credential: Credential,
    source: KeySource,
    *,
    mode: Optional[DisclosureMode] = None,
    now: Optional[int] = None,
) -> VerificationResult:
    """Verify a single credential. See :meth:`CredentialVerifier.verify`."""
    return await CredentialVerifier(source).verify(credential, mode, now)


async def verify_presentation(
    presentation: Presentation,
    source: KeySource,
    *,
    challenge: Optional[str] = None,
    now: Optional[int] = None,
) -> VerificationResult:
    """Verify a presentation. See :meth:`PresentationVerifier.verify`."""
    return await PresentationVerifier(source).verify(presentation, challenge, now)


async def verify(
    obj: Union[Credential, Presentation],
    source: KeySource,
    *,
    challenge: Optional[str] = None,
    now: Optional[int] = None,
) -> VerificationResult:
    """Verify a credential or a presentation.

    Args:
        obj: Credential or presentation to verify
        source: Identity resolver, or a list of identity documents
        challenge: Expected verifier challenge (presentations only)
        now: Current time in ms; enables the expiration check

    Returns:
        VerificationResult, truthy iff valid

    Raises:
        MalformedCredentialError: If a proof names no valid key reference
        UnresolvedCollaboratorError: If an identity cannot be resolved
        KeyNotFoundError: If a proof names a key its identity does not publish
        KeyRevokedError: If a proof was made with a revoked key
    """
    if isinstance(obj, Presentation):
        return await verify_presentation(obj, source, challenge=challenge, now=now)
    if isinstance(obj, Credential):
        return await verify_credential(obj, source, now=now)
    raise TypeError(f"Cannot verify {type(obj).__name__}")
