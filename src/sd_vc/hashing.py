"""Hash primitives selectable by :class:`HashType`.

Every member of :class:`HashType` has exactly one entry in the dispatch
table; the module refuses to import if the two ever drift apart.
"""

import hashlib
import hmac
from enum import Enum
from typing import Callable, Union

from .errors import UnsupportedHashTypeError


class HashType(str, Enum):
    """Hash algorithm identifiers recorded in credentials and presentations."""

    SHA256 = "Sha256"
    SHA384 = "Sha384"
    SHA512 = "Sha512"
    SHA3_256 = "Sha3_256"
    SHA3_512 = "Sha3_512"
    BLAKE2B_256 = "Blake2b256"
    BLAKE2B_512 = "Blake2b512"


_HASHERS: dict[HashType, Callable[[bytes], bytes]] = {
    HashType.SHA256: lambda data: hashlib.sha256(data).digest(),
    HashType.SHA384: lambda data: hashlib.sha384(data).digest(),
    HashType.SHA512: lambda data: hashlib.sha512(data).digest(),
    HashType.SHA3_256: lambda data: hashlib.sha3_256(data).digest(),
    HashType.SHA3_512: lambda data: hashlib.sha3_512(data).digest(),
    HashType.BLAKE2B_256: lambda data: hashlib.blake2b(data, digest_size=32).digest(),
    HashType.BLAKE2B_512: lambda data: hashlib.blake2b(data, digest_size=64).digest(),
}

_DIGEST_SIZES: dict[HashType, int] = {
    HashType.SHA256: 32,
    HashType.SHA384: 48,
    HashType.SHA512: 64,
    HashType.SHA3_256: 32,
    HashType.SHA3_512: 64,
    HashType.BLAKE2B_256: 32,
    HashType.BLAKE2B_512: 64,
}

if set(_HASHERS) != set(HashType) or set(_DIGEST_SIZES) != set(HashType):
    raise RuntimeError("hash dispatch table does not cover every HashType")


def parse_hash_type(value: Union[HashType, str]) -> HashType:
    """Convert a wire identifier into a :class:`HashType`.

    Args:
        value: A HashType member or its string identifier (e.g. "Sha256")

    Returns:
        The matching HashType

    Raises:
        UnsupportedHashTypeError: If the identifier is unknown
    """
    if isinstance(value, HashType):
        return value
    try:
        return HashType(value)
    except ValueError:
        raise UnsupportedHashTypeError(f"Unsupported hash type: {value!r}") from None


def hash_bytes(hash_type: Union[HashType, str], data: bytes) -> bytes:
    """Hash data with the selected algorithm.

    Args:
        hash_type: Algorithm to use
        data: Bytes to hash

    Returns:
        Hash digest bytes
    """
    return _HASHERS[parse_hash_type(hash_type)](data)


def digest_size(hash_type: Union[HashType, str]) -> int:
    """Return the output length in bytes of the selected algorithm."""
    return _DIGEST_SIZES[parse_hash_type(hash_type)]


def constant_time_compare(a: bytes, b: bytes) -> bool:
    """Compare two byte strings without leaking the position of a mismatch."""
    return hmac.compare_digest(a, b)
