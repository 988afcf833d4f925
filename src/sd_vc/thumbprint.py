"""Key references built from COSE Key Thumbprints (RFC 9679).

A key reference names one verification method of an identity:
``<identity>#<hex thumbprint>``. The thumbprint only covers the members
that identify the public key, so the private part, ``kid`` and ``alg`` of
a key never change its reference.
"""

from typing import Any, Union

from . import cbor_utils
from .errors import UnsupportedAlgorithmError
from .hashing import HashType, hash_bytes
from .keys import COSE_KTY_EC2, COSE_KTY_OKP, CRV, KTY, X, Y


class CoseKeyThumbprint:
    """Compute COSE Key Thumbprints for the key types sd-vc signs with."""

    THUMBPRINT_MEMBERS = {
        COSE_KTY_OKP: (KTY, CRV, X),
        COSE_KTY_EC2: (KTY, CRV, X, Y),
    }

    @staticmethod
    def canonical_cbor(cose_key: dict[int, Any]) -> bytes:
        """Return the deterministic encoding the thumbprint is hashed over.

        Raises:
            UnsupportedAlgorithmError: If the key type is not OKP or EC2, or
                an identifying member is missing
        """
        members = CoseKeyThumbprint.THUMBPRINT_MEMBERS.get(cose_key.get(KTY))
        if members is None:
            raise UnsupportedAlgorithmError(f"Unsupported key type: {cose_key.get(KTY)}")
        missing = [label for label in members if label not in cose_key]
        if missing:
            raise UnsupportedAlgorithmError(f"Required field {missing[0]} missing from COSE key")
        return cbor_utils.encode_canonical({label: cose_key[label] for label in members})

    @staticmethod
    def compute(
        cose_key: dict[int, Any], hash_type: Union[HashType, str] = HashType.SHA256
    ) -> bytes:
        """Compute the thumbprint of a COSE key (public or private)."""
        return hash_bytes(hash_type, CoseKeyThumbprint.canonical_cbor(cose_key))


def key_reference(identity: str, cose_key: dict[int, Any]) -> str:
    """Build the key reference of a key controlled by ``identity``."""
    return f"{identity}#{CoseKeyThumbprint.compute(cose_key).hex()}"


def split_key_reference(reference: str) -> tuple[str, str]:
    """Split a key reference into (identity, fragment).

    Raises:
        ValueError: If the reference has no fragment
    """
    identity, sep, fragment = reference.partition("#")
    if not sep or not identity or not fragment:
        raise ValueError(f"Key reference must look like '<identity>#<fragment>': {reference!r}")
    return identity, fragment
