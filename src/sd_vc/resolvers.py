"""Identity documents and key resolution.

A verifier never trusts a key embedded in a credential. It resolves the
identity named by the proof's key reference (``<identity>#<fragment>``) to an
:class:`IdentityDocument` and looks the key up there.
"""

import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Iterable, Optional, Protocol

from . import cbor_utils
from .errors import (
    KeyNotFoundError,
    MalformedCredentialError,
    NotFoundError,
)
from .keys import SignatureAlgorithm, key_algorithm
from .thumbprint import split_key_reference

logger = logging.getLogger(__name__)


class KeyPurpose(str, Enum):
    """Verification relationships a key can be used for."""

    ASSERTION_METHOD = "assertionMethod"
    AUTHENTICATION = "authentication"


@dataclass(frozen=True)
class VerificationMethod:
    """A public key published by an identity."""

    id: str
    controller: str
    public_key: dict[int, Any]
    purposes: frozenset[KeyPurpose]
    revoked: bool = False


@dataclass(frozen=True)
class IdentityDocument:
    """Public keys of one identity."""

    id: str
    verification_methods: tuple[VerificationMethod, ...] = ()

    def get(self, reference: str) -> Optional[VerificationMethod]:
        """Return the verification method with the given key reference."""
        for method in self.verification_methods:
            if method.id == reference:
                return method
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "verificationMethod": [
                {
                    "id": method.id,
                    "controller": method.controller,
                    "publicKey": method.public_key,
                    "purposes": sorted(purpose.value for purpose in method.purposes),
                    "revoked": method.revoked,
                }
                for method in self.verification_methods
            ],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "IdentityDocument":
        try:
            methods = tuple(
                VerificationMethod(
                    id=item["id"],
                    controller=item["controller"],
                    public_key=dict(item["publicKey"]),
                    purposes=frozenset(KeyPurpose(p) for p in item["purposes"]),
                    revoked=bool(item.get("revoked", False)),
                )
                for item in data["verificationMethod"]
            )
            return cls(id=data["id"], verification_methods=methods)
        except (KeyError, TypeError, ValueError, AttributeError) as err:
            raise MalformedCredentialError(f"Invalid identity document: {err}") from err

    def to_cbor(self) -> bytes:
        return cbor_utils.encode(self.to_dict())

    @classmethod
    def from_cbor(cls, data: bytes) -> "IdentityDocument":
        try:
            decoded = cbor_utils.decode(data)
        except cbor_utils.CBORDecodeError as err:
            raise MalformedCredentialError(f"Invalid identity document: {err}") from err
        return cls.from_dict(decoded)


@dataclass(frozen=True)
class ResolvedKey:
    """A key looked up in an identity document."""

    reference: str
    controller: str
    public_key: dict[int, Any]
    algorithm: SignatureAlgorithm
    purposes: frozenset[KeyPurpose]
    revoked: bool


class IdentityResolver(Protocol):
    """Protocol for identity resolvers."""

    async def resolve(self, identity: str) -> IdentityDocument:
        """Resolve an identity (or key reference) to its document.

        Raises:
            NotFoundError: If the identity is unknown
            ResolutionError: If resolution failed for infrastructure reasons
        """


def lookup_key(document: IdentityDocument, reference: str) -> ResolvedKey:
    """Look a key reference up in an identity document.

    Args:
        document: Identity document to search
        reference: Key reference ("<identity>#<fragment>")

    Returns:
        ResolvedKey describing the public key and its status

    Raises:
        KeyNotFoundError: If the document has no such key
    """
    method = document.get(reference)
    if method is None:
        available = [m.id.rsplit("#", 1)[-1][:16] + "..." for m in document.verification_methods]
        raise KeyNotFoundError(
            f"Key not found: {reference} "
            f"Available keys of {document.id}: {', '.join(available) or 'none'}"
        )
    return ResolvedKey(
        reference=method.id,
        controller=method.controller,
        public_key=method.public_key,
        algorithm=key_algorithm(method.public_key),
        purposes=method.purposes,
        revoked=method.revoked,
    )


class InMemoryResolver:
    """Resolves identities from a fixed set of documents."""

    def __init__(self, documents: Iterable[IdentityDocument] = ()):
        self._documents: dict[str, IdentityDocument] = {}
        for document in documents:
            self.add(document)

    def add(self, document: IdentityDocument) -> None:
        """Register (or replace) an identity document."""
        self._documents[document.id] = document

    def revoke(self, reference: str) -> None:
        """Mark a key as revoked.

        Raises:
            NotFoundError: If the identity is unknown
            KeyNotFoundError: If the identity has no such key
        """
        identity, _ = split_key_reference(reference)
        document = self._lookup(identity)
        if document.get(reference) is None:
            raise KeyNotFoundError(f"Key not found: {reference}")
        methods = tuple(
            replace(method, revoked=True) if method.id == reference else method
            for method in document.verification_methods
        )
        self._documents[identity] = replace(document, verification_methods=methods)
        logger.debug("revoked %s", reference)

    def _lookup(self, identity: str) -> IdentityDocument:
        try:
            return self._documents[identity]
        except KeyError:
            raise NotFoundError(f"Identity not found: {identity}") from None

    async def resolve(self, identity: str) -> IdentityDocument:
        if "#" in identity:
            identity, _ = split_key_reference(identity)
        return self._lookup(identity)
