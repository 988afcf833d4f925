"""Credentials and the issuer-side builder.

A :class:`RawCredential` is the mutable draft an issuer fills in. The
:class:`CredentialBuilder` checks it against its schema, commits to the
claims, computes the versioned digest and has the issuer sign it, producing
an immutable :class:`Credential`.

Two variants are built:

- private (default): claims are salted; the credential carries the full
  field hash list and the nonce map so the holder can later disclose any
  subset of claims.
- public: claims are committed without salts and the credential carries
  neither field hashes nor nonces; anyone can recompute the commitment from
  the claims alone.
"""

import copy
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from typing import Any, Optional, Union

from . import cbor_utils
from .commitment import ClaimPath, Commitment, NonceGenerator, commit, flatten_claims
from .defaults import (
    DEFAULT_CONTEXT,
    DEFAULT_CREDENTIAL_VERSION,
    DEFAULT_DIGEST_HASH_TYPE,
    DEFAULT_ROOT_HASH_TYPE,
    now_ms,
)
from .digest import (
    CredentialVersion,
    DigestMetadata,
    calc_digest,
    parse_credential_version,
    signed_message,
)
from .errors import (
    IncompleteCredentialError,
    MalformedCredentialError,
    SchemaMismatchError,
    SDVCError,
)
from .hashing import HashType, digest_size, parse_hash_type
from .resolvers import KeyPurpose
from .schema import Schema
from .signers import Signer, request_signature
from .thumbprint import split_key_reference
from .validation import credential_validator, decode_document

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Proof:
    """A signature over a credential or presentation digest."""

    type: str
    created: int
    verification_method: str
    proof_purpose: KeyPurpose
    proof_value: bytes

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "created": self.created,
            "verificationMethod": self.verification_method,
            "proofPurpose": self.proof_purpose.value,
            "proofValue": self.proof_value,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Proof":
        return cls(
            type=data["type"],
            created=data["created"],
            verification_method=data["verificationMethod"],
            proof_purpose=KeyPurpose(data["proofPurpose"]),
            proof_value=data["proofValue"],
        )


@dataclass
class RawCredential:
    """Draft credential, mutable until built."""

    schema_id: str
    holder: str
    claims: dict[str, Any]
    hash_type: HashType = DEFAULT_ROOT_HASH_TYPE
    issuance_date: Optional[int] = field(default_factory=now_ms)
    expiration_date: Optional[int] = None
    commitment: Optional[Commitment] = None

    def check_subject(self, schema: Schema) -> None:
        """Check the claim set against a schema.

        Raises:
            SchemaMismatchError: If the schema id or the claim set do not match
        """
        if schema.schema_id != self.schema_id:
            raise SchemaMismatchError(
                f"Schema id mismatch: credential references {self.schema_id}, "
                f"schema is {schema.schema_id}"
            )
        problems = schema.check_claims(self.claims)
        if problems:
            raise SchemaMismatchError(
                f"Claims do not match schema {schema.schema_id}: {'; '.join(problems)}",
                problems,
            )

    def calc_root_hash(
        self,
        nonce_map: Optional[Mapping[ClaimPath, bytes]] = None,
        nonce_generator: Optional[NonceGenerator] = None,
        salted: bool = True,
    ) -> Commitment:
        """Commit to the current claims and keep the result on the draft.

        Fresh nonces are drawn unless ``nonce_map`` is given; pass
        ``raw.commitment.nonce_map`` to re-derive a root after editing a value.

        Raises:
            MissingNonceError: If ``nonce_map`` lacks a nonce for some claim
        """
        self.commitment = commit(
            self.claims,
            self.hash_type,
            nonce_map,
            salted=salted,
            nonce_generator=nonce_generator,
        )
        return self.commitment


@dataclass(frozen=True)
class Credential:
    """An issued, signed credential.

    ``credential_subject`` holds the claim set, or the root hash bytes once
    the credential was redacted to digest-only form.
    """

    context: tuple[str, ...]
    version: CredentialVersion
    schema_id: str
    issuance_date: int
    expiration_date: Optional[int]
    credential_subject: Union[dict[str, Any], bytes]
    credential_subject_hashes: Optional[tuple[bytes, ...]]
    credential_subject_nonce_map: Optional[Mapping[ClaimPath, bytes]]
    issuer: str
    holder: str
    hasher: tuple[HashType, HashType]
    digest: bytes
    proof: Proof

    @property
    def is_public(self) -> bool:
        return self.credential_subject_hashes is None

    @property
    def root_hash_type(self) -> HashType:
        return self.hasher[0]

    @property
    def digest_hash_type(self) -> HashType:
        return self.hasher[1]

    @property
    def metadata(self) -> DigestMetadata:
        return DigestMetadata(
            holder=self.holder,
            schema_id=self.schema_id,
            issuance_date=self.issuance_date,
            expiration_date=self.expiration_date,
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "@context": list(self.context),
            "version": self.version.value,
            "schema": self.schema_id,
            "issuanceDate": self.issuance_date,
        }
        if self.expiration_date is not None:
            data["expirationDate"] = self.expiration_date
        data["credentialSubject"] = copy.deepcopy(self.credential_subject)
        if self.credential_subject_hashes is not None:
            data["credentialSubjectHashes"] = list(self.credential_subject_hashes)
        if self.credential_subject_nonce_map is not None:
            data["credentialSubjectNonceMap"] = [
                [list(path), nonce] for path, nonce in self.credential_subject_nonce_map.items()
            ]
        data["issuer"] = self.issuer
        data["holder"] = self.holder
        data["hasher"] = [self.hasher[0].value, self.hasher[1].value]
        data["digest"] = self.digest
        data["proof"] = self.proof.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Credential":
        """Rebuild a credential from its wire map.

        Raises:
            MalformedCredentialError: If a field is missing or has the wrong type
            UnsupportedVersionError: If the version is unknown
            UnsupportedHashTypeError: If a hash type is unknown
        """
        try:
            hashes = data.get("credentialSubjectHashes")
            nonce_entries = data.get("credentialSubjectNonceMap")
            nonce_map = None
            if nonce_entries is not None:
                nonce_map = {tuple(path): nonce for path, nonce in nonce_entries}
            root_type, digest_type = data["hasher"]
            digest_type = parse_hash_type(digest_type)
            if len(data["digest"]) != digest_size(digest_type):
                raise MalformedCredentialError(
                    f"Digest is {len(data['digest'])} bytes, {digest_type.value} needs "
                    f"{digest_size(digest_type)}"
                )
            return cls(
                context=tuple(data["@context"]),
                version=parse_credential_version(data["version"]),
                schema_id=data["schema"],
                issuance_date=data["issuanceDate"],
                expiration_date=data.get("expirationDate"),
                credential_subject=data["credentialSubject"],
                credential_subject_hashes=None if hashes is None else tuple(hashes),
                credential_subject_nonce_map=nonce_map,
                issuer=data["issuer"],
                holder=data["holder"],
                hasher=(parse_hash_type(root_type), digest_type),
                digest=data["digest"],
                proof=Proof.from_dict(data["proof"]),
            )
        except SDVCError:
            raise
        except (KeyError, TypeError, ValueError, AttributeError) as err:
            raise MalformedCredentialError(f"Invalid credential: {err}") from err

    def to_cbor(self) -> bytes:
        return cbor_utils.encode(self.to_dict())

    @classmethod
    def from_cbor(cls, data: bytes) -> "Credential":
        """Decode a credential, validating its shape first.

        Raises:
            MalformedCredentialError: If the data is not a valid credential
        """
        return cls.from_dict(decode_document(data, credential_validator()))


@dataclass(frozen=True)
class CredentialBuilder:
    """Immutable builder for credentials.

    Every ``with_*`` method returns a new builder; the draft is copied when
    the builder is created, so later edits to it do not leak in.
    """

    raw: RawCredential
    schema: Schema
    version: CredentialVersion = DEFAULT_CREDENTIAL_VERSION
    context: tuple[str, ...] = DEFAULT_CONTEXT
    digest_hash_type: HashType = DEFAULT_DIGEST_HASH_TYPE
    nonce_generator: Optional[NonceGenerator] = None

    @classmethod
    def from_raw(cls, raw: RawCredential, schema: Schema) -> "CredentialBuilder":
        return cls(raw=copy.deepcopy(raw), schema=schema)

    def with_version(self, version: Union[CredentialVersion, str]) -> "CredentialBuilder":
        return replace(self, version=parse_credential_version(version))

    def with_context(self, context: list[str]) -> "CredentialBuilder":
        return replace(self, context=tuple(context))

    def with_digest_hash_type(self, hash_type: Union[HashType, str]) -> "CredentialBuilder":
        return replace(self, digest_hash_type=parse_hash_type(hash_type))

    def with_nonce_generator(self, nonce_generator: NonceGenerator) -> "CredentialBuilder":
        return replace(self, nonce_generator=nonce_generator)

    def _check_complete(self) -> None:
        raw = self.raw
        missing = [
            name
            for name, value in (
                ("holder", raw.holder),
                ("schema_id", raw.schema_id),
                ("issuance_date", raw.issuance_date),
            )
            if value is None or value == ""
        ]
        if missing:
            raise IncompleteCredentialError(f"Credential is missing: {', '.join(missing)}")
        if raw.expiration_date is not None and raw.expiration_date < raw.issuance_date:
            raise IncompleteCredentialError("Expiration date precedes issuance date")
        if isinstance(raw.claims, Mapping):
            flatten_claims(raw.claims)
        raw.check_subject(self.schema)

    async def build(self, signer: Signer, is_public: bool = False) -> Credential:
        """Commit, digest and sign the draft.

        Args:
            signer: Issuer signer; asked once for an assertionMethod signature
            is_public: Build the public variant (no salts, hashes or nonces)

        Returns:
            The signed credential

        Raises:
            IncompleteCredentialError: If required metadata is missing
            SchemaMismatchError: If the claims do not match the schema
            EncodingError: If a claim value cannot be encoded
            EmptyClaimSetError: If there are no claims
            KeyPurposeNotFoundError: If the issuer has no assertionMethod key
            SigningError: If the signer failed
        """
        self._check_complete()
        raw = copy.deepcopy(self.raw)
        # Always fresh nonces; a commitment left on the draft is never reused
        commitment = commit(
            raw.claims,
            raw.hash_type,
            salted=not is_public,
            nonce_generator=self.nonce_generator,
        )
        metadata = DigestMetadata(
            holder=raw.holder,
            schema_id=raw.schema_id,
            issuance_date=raw.issuance_date,
            expiration_date=raw.expiration_date,
        )
        digest = calc_digest(self.version, commitment.root_hash, metadata, self.digest_hash_type)

        result = await request_signature(
            signer,
            KeyPurpose.ASSERTION_METHOD,
            signed_message(self.version, digest.digest),
        )
        issuer, _ = split_key_reference(result.key_reference)
        proof = Proof(
            type=result.algorithm.label,
            created=now_ms(),
            verification_method=result.key_reference,
            proof_purpose=KeyPurpose.ASSERTION_METHOD,
            proof_value=result.signature,
        )

        logger.debug(
            "issued %s credential for %s by %s",
            "public" if is_public else "private",
            raw.holder,
            issuer,
        )
        return Credential(
            context=self.context,
            version=self.version,
            schema_id=raw.schema_id,
            issuance_date=raw.issuance_date,
            expiration_date=raw.expiration_date,
            credential_subject=raw.claims,
            credential_subject_hashes=None if is_public else commitment.field_hashes,
            credential_subject_nonce_map=None if is_public else dict(commitment.nonce_map),
            issuer=issuer,
            holder=raw.holder,
            hasher=(commitment.hash_type, digest.hash_type),
            digest=digest.digest,
            proof=proof,
        )
