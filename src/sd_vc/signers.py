"""Signers for credentials and presentations.

A signer is the collaborator that owns an identity's private keys. The
builders only ever call :meth:`Signer.sign` with a key purpose and the bytes
to sign, and await the result once:

- credentials are signed under ``KeyPurpose.ASSERTION_METHOD``
- presentations are signed under ``KeyPurpose.AUTHENTICATION``

:class:`LocalIdentity` is an in-process signer holding COSE keys, suitable
for tests, examples and the command line tool.
"""

import logging
from dataclasses import dataclass
from typing import Any, Optional, Protocol

from . import cbor_utils
from .errors import (
    KeyPurposeNotFoundError,
    MalformedCredentialError,
    SigningError,
    UnresolvedCollaboratorError,
)
from .keys import (
    SignatureAlgorithm,
    key_algorithm,
    key_from_cbor,
    key_generate,
    key_get_public,
    key_sign,
    key_to_cbor,
)
from .resolvers import IdentityDocument, KeyPurpose, VerificationMethod
from .thumbprint import key_reference

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SignatureResult:
    """Outcome of a signing request."""

    key_reference: str
    signature: bytes
    algorithm: SignatureAlgorithm


class Signer(Protocol):
    """Protocol for credential and presentation signers."""

    async def sign(self, purpose: KeyPurpose, message: bytes) -> SignatureResult:
        """Sign a message with the key bound to ``purpose``.

        Args:
            purpose: Key purpose to sign under
            message: The message to sign

        Returns:
            SignatureResult naming the key used

        Raises:
            KeyPurposeNotFoundError: If the identity has no key for the purpose
        """


class LocalIdentity:
    """Signs with private COSE keys held in memory."""

    def __init__(self, identity: str, keys: dict[KeyPurpose, dict[int, Any]]):
        """Initialize with one private COSE key per purpose.

        Args:
            identity: Identifier of the identity (e.g. "did:example:alice")
            keys: Private COSE keys by purpose

        Raises:
            KeyError: If a key lacks its private component (-4)
        """
        for purpose, cose_key in keys.items():
            if -4 not in cose_key:
                label = KeyPurpose(purpose).value
                raise KeyError(f"Private key component (-4) missing from {label} key")
            key_algorithm(cose_key)

        self.identity = identity
        self._keys = {KeyPurpose(purpose): dict(key) for purpose, key in keys.items()}

    @classmethod
    def generate(
        cls,
        identity: str,
        algorithm: SignatureAlgorithm = SignatureAlgorithm.EDDSA,
        purposes: Optional[list[KeyPurpose]] = None,
    ) -> "LocalIdentity":
        """Create an identity with a freshly generated key per purpose.

        Args:
            identity: Identifier of the identity
            algorithm: Signature algorithm for the generated keys
            purposes: Purposes to generate keys for (all by default)
        """
        purposes = list(KeyPurpose) if purposes is None else purposes
        return cls(identity, {purpose: key_generate(algorithm) for purpose in purposes})

    def key_reference(self, purpose: KeyPurpose) -> str:
        """Return the key reference of the key bound to ``purpose``.

        Raises:
            KeyPurposeNotFoundError: If there is no key for the purpose
        """
        return key_reference(self.identity, self._key_for(purpose))

    def _key_for(self, purpose: KeyPurpose) -> dict[int, Any]:
        try:
            return self._keys[KeyPurpose(purpose)]
        except KeyError:
            raise KeyPurposeNotFoundError(
                f"{self.identity} has no key for purpose {KeyPurpose(purpose).value}"
            ) from None

    async def sign(self, purpose: KeyPurpose, message: bytes) -> SignatureResult:
        cose_key = self._key_for(purpose)
        reference = key_reference(self.identity, cose_key)
        logger.debug("signing %d bytes with %s", len(message), reference)
        return SignatureResult(
            key_reference=reference,
            signature=key_sign(cose_key, message),
            algorithm=key_algorithm(cose_key),
        )

    def document(self) -> IdentityDocument:
        """Return the public identity document for this identity."""
        methods: dict[str, VerificationMethod] = {}
        for purpose, cose_key in self._keys.items():
            reference = key_reference(self.identity, cose_key)
            if reference in methods:
                existing = methods[reference]
                methods[reference] = VerificationMethod(
                    id=reference,
                    controller=self.identity,
                    public_key=existing.public_key,
                    purposes=existing.purposes | {purpose},
                )
            else:
                methods[reference] = VerificationMethod(
                    id=reference,
                    controller=self.identity,
                    public_key=key_get_public(cose_key),
                    purposes=frozenset({purpose}),
                )
        return IdentityDocument(id=self.identity, verification_methods=tuple(methods.values()))

    def to_cbor(self) -> bytes:
        """Serialize the identity including private keys.

        Each key is stored as an encoded COSE_Key.

        NOTE: The output contains private key material. Store securely!
        """
        return cbor_utils.encode(
            {
                "id": self.identity,
                "keys": {purpose.value: key_to_cbor(key) for purpose, key in self._keys.items()},
            }
        )

    @classmethod
    def from_cbor(cls, data: bytes) -> "LocalIdentity":
        """Load an identity written by :meth:`to_cbor`.

        Raises:
            MalformedCredentialError: If the data is not a serialized identity
        """
        try:
            decoded = cbor_utils.decode(data)
            keys = {
                KeyPurpose(purpose): key_from_cbor(key)
                for purpose, key in decoded["keys"].items()
            }
            return cls(decoded["id"], keys)
        except (cbor_utils.CBORDecodeError, KeyError, TypeError, ValueError, AttributeError) as err:
            raise MalformedCredentialError(f"Invalid identity file: {err}") from err


async def request_signature(
    signer: Signer, purpose: KeyPurpose, message: bytes
) -> SignatureResult:
    """Ask a signer for one signature.

    Raises:
        KeyPurposeNotFoundError: If the signer has no key for the purpose
        SigningError: If the signer failed for any other reason
    """
    try:
        return await signer.sign(purpose, message)
    except (KeyPurposeNotFoundError, UnresolvedCollaboratorError):
        raise
    except Exception as err:
        raise SigningError(f"Signer failed: {err}") from err
