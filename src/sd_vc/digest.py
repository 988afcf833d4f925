"""Credential and presentation digests.

The credential digest binds a commitment root hash to the credential
metadata. Its exact byte layout depends on the protocol version:

- Version "0": ``H(cbor([root, holder, schema, issuance(, expiration)]))``;
  the issuer signs the digest itself.
- Version "1": ``H(b"VersionedCredentialDigest1" || cbor([...]))``; the
  issuer signs ``b"CredentialVersionedDigest1" || digest``.

Expiration is appended to the field list only when it is set, so a
credential without expiration never hashes a placeholder value.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence, Union

from . import cbor_utils
from .errors import UnsupportedVersionError
from .hashing import HashType, hash_bytes, parse_hash_type

logger = logging.getLogger(__name__)

DIGEST_TAG = b"VersionedCredentialDigest"
SIGNED_MESSAGE_TAG = b"CredentialVersionedDigest"
PRESENTATION_DOMAIN = "sd-vc/presentation"


class CredentialVersion(str, Enum):
    """Credential protocol versions."""

    V0 = "0"
    V1 = "1"


class PresentationVersion(str, Enum):
    """Presentation protocol versions."""

    V0 = "0"


@dataclass(frozen=True)
class DigestMetadata:
    """Credential metadata bound into the digest."""

    holder: str
    schema_id: str
    issuance_date: int
    expiration_date: Optional[int] = None


@dataclass(frozen=True)
class DigestResult:
    """A digest together with the algorithm that produced it."""

    digest: bytes
    hash_type: HashType


def parse_credential_version(version: Union[CredentialVersion, str]) -> CredentialVersion:
    """Convert a wire identifier into a :class:`CredentialVersion`.

    Raises:
        UnsupportedVersionError: If the version is unknown
    """
    if isinstance(version, CredentialVersion):
        return version
    try:
        return CredentialVersion(version)
    except ValueError:
        raise UnsupportedVersionError(f"Unsupported credential version: {version!r}") from None


def parse_presentation_version(version: Union[PresentationVersion, str]) -> PresentationVersion:
    """Convert a wire identifier into a :class:`PresentationVersion`.

    Raises:
        UnsupportedVersionError: If the version is unknown
    """
    if isinstance(version, PresentationVersion):
        return version
    try:
        return PresentationVersion(version)
    except ValueError:
        raise UnsupportedVersionError(f"Unsupported presentation version: {version!r}") from None


def encode_digest_fields(root_hash: bytes, metadata: DigestMetadata) -> bytes:
    """Canonically encode the root hash and metadata fields."""
    fields: list[object] = [
        root_hash,
        metadata.holder,
        metadata.schema_id,
        metadata.issuance_date,
    ]
    if metadata.expiration_date is not None:
        fields.append(metadata.expiration_date)
    return cbor_utils.encode_canonical(fields)


def calc_digest(
    version: Union[CredentialVersion, str],
    root_hash: bytes,
    metadata: DigestMetadata,
    hash_type: Union[HashType, str],
) -> DigestResult:
    """Compute the credential digest for a protocol version.

    Args:
        version: Credential protocol version
        root_hash: Commitment root hash
        metadata: Holder, schema and validity window
        hash_type: Digest hash algorithm

    Returns:
        DigestResult with the digest bytes and hash type

    Raises:
        UnsupportedVersionError: If the version is unknown
    """
    version = parse_credential_version(version)
    hash_type = parse_hash_type(hash_type)
    encoded = encode_digest_fields(root_hash, metadata)

    if version is CredentialVersion.V0:
        payload = encoded
    elif version is CredentialVersion.V1:
        payload = DIGEST_TAG + version.value.encode() + encoded
    else:
        raise UnsupportedVersionError(f"Unsupported credential version: {version!r}")

    return DigestResult(digest=hash_bytes(hash_type, payload), hash_type=hash_type)


def signed_message(version: Union[CredentialVersion, str], digest: bytes) -> bytes:
    """Return the exact bytes an issuer signs for a credential digest.

    Raises:
        UnsupportedVersionError: If the version is unknown
    """
    version = parse_credential_version(version)
    if version is CredentialVersion.V0:
        return digest
    if version is CredentialVersion.V1:
        return SIGNED_MESSAGE_TAG + version.value.encode() + digest
    raise UnsupportedVersionError(f"Unsupported credential version: {version!r}")


def calc_presentation_digest(
    digests: Sequence[bytes],
    hash_type: Union[HashType, str],
    challenge: Optional[str] = None,
) -> DigestResult:
    """Hash the ordered credential digests of a presentation.

    The order of ``digests`` is significant: the same credentials in a
    different order produce a different presentation digest.

    Args:
        digests: Credential digests in presentation order
        hash_type: Presentation hash algorithm
        challenge: Optional verifier challenge bound into the digest

    Returns:
        DigestResult for the presentation
    """
    hash_type = parse_hash_type(hash_type)
    fields: list[object] = [PRESENTATION_DOMAIN, list(digests)]
    if challenge is not None:
        fields.append(challenge)
    digest = hash_bytes(hash_type, cbor_utils.encode_canonical(fields))
    logger.debug("presentation digest over %d credentials", len(digests))
    return DigestResult(digest=digest, hash_type=hash_type)


def presentation_signed_message(
    version: Union[PresentationVersion, str], digest: bytes
) -> bytes:
    """Return the exact bytes a holder signs for a presentation digest.

    Raises:
        UnsupportedVersionError: If the version is unknown
    """
    version = parse_presentation_version(version)
    if version is PresentationVersion.V0:
        return digest
    raise UnsupportedVersionError(f"Unsupported presentation version: {version!r}")
