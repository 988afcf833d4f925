"""Holder-side presentations.

A presentation bundles one or more credentials, each redacted under its own
disclosure mode, and is signed by the holder:

- ``FULL`` ("VP"): the credential is included unchanged.
- ``DIGEST_ONLY`` ("VP_Digest"): the claim set is replaced by the root hash;
  field hashes and nonces are dropped.
- ``SELECTIVE`` ("VP_SelectiveDisclosure"): only the selected claims and
  their nonces are kept; the full field hash list stays so the verifier can
  rebuild the root hash.

Redaction never touches a credential's digest or issuer proof.
"""

import copy
import logging
from collections.abc import Mapping
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Iterable, Optional, Union

from . import cbor_utils
from .commitment import (
    FieldSelector,
    build_claims,
    commit,
    flatten_claims,
    root_hash_from_hashes,
    select_leaves,
)
from .credential import Credential, Proof
from .defaults import (
    DEFAULT_CONTEXT,
    DEFAULT_PRESENTATION_HASH_TYPE,
    DEFAULT_PRESENTATION_VERSION,
    now_ms,
)
from .digest import (
    PresentationVersion,
    calc_presentation_digest,
    parse_presentation_version,
    presentation_signed_message,
)
from .errors import (
    HolderMismatchError,
    IncompleteCredentialError,
    MalformedCredentialError,
    RedactionError,
    SDVCError,
    UnknownFieldError,
)
from .hashing import HashType, parse_hash_type
from .resolvers import KeyPurpose
from .signers import Signer, request_signature
from .thumbprint import split_key_reference
from .validation import decode_document, presentation_validator

logger = logging.getLogger(__name__)


class DisclosureMode(str, Enum):
    """How a credential is disclosed inside a presentation."""

    FULL = "VP"
    DIGEST_ONLY = "VP_Digest"
    SELECTIVE = "VP_SelectiveDisclosure"


def _subject_root_hash(credential: Credential) -> bytes:
    subject = credential.credential_subject
    if isinstance(subject, bytes):
        return subject
    if credential.is_public:
        return commit(subject, credential.root_hash_type, salted=False).root_hash
    return root_hash_from_hashes(credential.root_hash_type, credential.credential_subject_hashes)


def redact_credential(
    credential: Credential,
    mode: Union[DisclosureMode, str],
    fields: Optional[Iterable[FieldSelector]] = None,
) -> Credential:
    """Return a copy of a credential redacted for a disclosure mode.

    Args:
        credential: Credential to redact
        mode: Disclosure mode
        fields: Claims to keep in ``SELECTIVE`` mode: top-level keys, dotted
            paths or tuples of keys; naming a nested object keeps all of it

    Returns:
        A new credential; the input is never modified

    Raises:
        UnknownFieldError: If a selected field is not in the claim set
        RedactionError: If selective disclosure is requested for a public or
            already digest-only credential
    """
    mode = DisclosureMode(mode)
    if mode is DisclosureMode.FULL:
        return replace(credential, credential_subject=copy.deepcopy(credential.credential_subject))

    if mode is DisclosureMode.DIGEST_ONLY:
        return replace(
            credential,
            credential_subject=_subject_root_hash(credential),
            credential_subject_hashes=None if credential.is_public else (),
            credential_subject_nonce_map=None if credential.is_public else {},
        )

    if credential.is_public:
        raise RedactionError("Public credentials carry no nonces to disclose selectively")
    if isinstance(credential.credential_subject, bytes):
        raise RedactionError("Credential is already reduced to its root hash")
    if fields is None:
        raise RedactionError("Selective disclosure needs the list of fields to disclose")

    selectors = list(fields)
    leaves = flatten_claims(credential.credential_subject)
    selected, unknown = select_leaves(leaves, selectors)
    if unknown:
        raise UnknownFieldError(f"Fields not in credential: {', '.join(map(str, unknown))}")

    nonce_map = credential.credential_subject_nonce_map or {}
    missing = [path for path, _ in selected if path not in nonce_map]
    if missing:
        raise RedactionError(f"No nonce for claims: {', '.join('.'.join(p) for p in missing)}")
    return replace(
        credential,
        credential_subject=copy.deepcopy(build_claims(selected)),
        credential_subject_nonce_map={path: nonce_map[path] for path, _ in selected},
    )


@dataclass(frozen=True)
class PresentationEntry:
    """A credential queued for presentation."""

    credential: Credential
    mode: DisclosureMode = DisclosureMode.FULL
    fields: Optional[tuple[FieldSelector, ...]] = None


@dataclass(frozen=True)
class Presentation:
    """A holder-signed bundle of redacted credentials."""

    context: tuple[str, ...]
    version: PresentationVersion
    types: tuple[DisclosureMode, ...]
    verifiable_credential: tuple[Credential, ...]
    id: bytes
    proof: Proof
    hasher: HashType
    challenge: Optional[str] = None

    def entries(self) -> list[tuple[DisclosureMode, Credential]]:
        return list(zip(self.types, self.verifiable_credential))

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "@context": list(self.context),
            "version": self.version.value,
            "type": [mode.value for mode in self.types],
            "verifiableCredential": [vc.to_dict() for vc in self.verifiable_credential],
            "id": self.id,
            "proof": self.proof.to_dict(),
            "hasher": self.hasher.value,
        }
        if self.challenge is not None:
            data["challenge"] = self.challenge
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Presentation":
        """Rebuild a presentation from its wire map.

        Raises:
            MalformedCredentialError: If a field is missing or has the wrong type
        """
        try:
            types = tuple(DisclosureMode(mode) for mode in data["type"])
            credentials = tuple(Credential.from_dict(vc) for vc in data["verifiableCredential"])
            if len(types) != len(credentials):
                raise MalformedCredentialError(
                    f"Presentation lists {len(types)} disclosure types "
                    f"for {len(credentials)} credentials"
                )
            return cls(
                context=tuple(data["@context"]),
                version=parse_presentation_version(data["version"]),
                types=types,
                verifiable_credential=credentials,
                id=data["id"],
                proof=Proof.from_dict(data["proof"]),
                hasher=parse_hash_type(data["hasher"]),
                challenge=data.get("challenge"),
            )
        except SDVCError:
            raise
        except (KeyError, TypeError, ValueError, AttributeError) as err:
            raise MalformedCredentialError(f"Invalid presentation: {err}") from err

    def to_cbor(self) -> bytes:
        return cbor_utils.encode(self.to_dict())

    @classmethod
    def from_cbor(cls, data: bytes) -> "Presentation":
        """Decode a presentation, validating its shape first.

        Raises:
            MalformedCredentialError: If the data is not a valid presentation
        """
        return cls.from_dict(decode_document(data, presentation_validator()))


@dataclass(frozen=True)
class PresentationBuilder:
    """Immutable builder for presentations.

    Example:
        >>> presentation = await (
        ...     PresentationBuilder()
        ...     .add(diploma, DisclosureMode.SELECTIVE, ["degree"])
        ...     .add(passport, DisclosureMode.DIGEST_ONLY)
        ...     .with_challenge("n-0S6_WzA2Mj")
        ...     .build(holder)
        ... )
    """

    entries: tuple[PresentationEntry, ...] = ()
    challenge: Optional[str] = None
    hash_type: HashType = DEFAULT_PRESENTATION_HASH_TYPE
    version: PresentationVersion = DEFAULT_PRESENTATION_VERSION
    context: tuple[str, ...] = DEFAULT_CONTEXT

    def add(
        self,
        credential: Credential,
        mode: Union[DisclosureMode, str] = DisclosureMode.FULL,
        fields: Optional[Iterable[FieldSelector]] = None,
    ) -> "PresentationBuilder":
        """Queue a credential; redaction happens in :meth:`build`."""
        entry = PresentationEntry(
            credential=credential,
            mode=DisclosureMode(mode),
            fields=None if fields is None else tuple(fields),
        )
        return replace(self, entries=self.entries + (entry,))

    def with_challenge(self, challenge: str) -> "PresentationBuilder":
        return replace(self, challenge=challenge)

    def with_hash_type(self, hash_type: Union[HashType, str]) -> "PresentationBuilder":
        return replace(self, hash_type=parse_hash_type(hash_type))

    async def build(self, holder_signer: Signer) -> Presentation:
        """Redact every queued credential and sign the presentation.

        All redaction and holder checks run before the signer is called.

        Args:
            holder_signer: Holder signer; asked once for an authentication
                signature

        Returns:
            The signed presentation

        Raises:
            IncompleteCredentialError: If no credential was added
            UnknownFieldError: If a selected field does not exist
            RedactionError: If a disclosure mode cannot be applied
            HolderMismatchError: If the credentials belong to different
                holders or the signer is not their holder
            KeyPurposeNotFoundError: If the holder has no authentication key
            SigningError: If the signer failed
        """
        if not self.entries:
            raise IncompleteCredentialError("A presentation needs at least one credential")

        holders = {entry.credential.holder for entry in self.entries}
        if len(holders) != 1:
            raise HolderMismatchError(
                f"Credentials belong to different holders: {', '.join(sorted(holders))}"
            )
        (holder,) = holders

        redacted = tuple(
            redact_credential(entry.credential, entry.mode, entry.fields) for entry in self.entries
        )
        digest = calc_presentation_digest(
            [credential.digest for credential in redacted], self.hash_type, self.challenge
        )

        result = await request_signature(
            holder_signer,
            KeyPurpose.AUTHENTICATION,
            presentation_signed_message(self.version, digest.digest),
        )
        signer_identity, _ = split_key_reference(result.key_reference)
        if signer_identity != holder:
            raise HolderMismatchError(
                f"Presentation signed by {signer_identity}, credentials belong to {holder}"
            )

        logger.debug("built presentation of %d credentials for %s", len(redacted), holder)
        return Presentation(
            context=self.context,
            version=self.version,
            types=tuple(entry.mode for entry in self.entries),
            verifiable_credential=redacted,
            id=digest.digest,
            proof=Proof(
                type=result.algorithm.label,
                created=now_ms(),
                verification_method=result.key_reference,
                proof_purpose=KeyPurpose.AUTHENTICATION,
                proof_value=result.signature,
            ),
            hasher=digest.hash_type,
            challenge=self.challenge,
        )
