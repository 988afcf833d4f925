"""Per-field hash commitments over JSON-like claim sets.

A claim set is flattened to its leaves. Each leaf ``(path, value)`` is bound
to a fresh random nonce and hashed::

    field_hash = H(cbor_canonical(["sd-vc/leaf", [path...], value, nonce]))

The root hash is the hash of the concatenated field hashes after sorting them
as raw bytes, so it does not depend on claim order, and any subset of leaves
can be disclosed later while the rest stay hidden behind their field hash.
"""

import logging
import math
import random
import secrets
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Iterable, Optional, Protocol, Union

from . import cbor_utils
from .defaults import NONCE_LENGTH
from .errors import EmptyClaimSetError, EncodingError, MissingNonceError
from .hashing import HashType, constant_time_compare, hash_bytes, parse_hash_type

logger = logging.getLogger(__name__)

LEAF_DOMAIN = "sd-vc/leaf"

ClaimPath = tuple[str, ...]
FieldSelector = Union[str, ClaimPath, list[str]]


class NonceGenerator(Protocol):
    """Protocol for generating per-claim nonces."""

    def generate_nonce(self, length: int = NONCE_LENGTH) -> bytes:
        """Generate a nonce.

        Args:
            length: Nonce length in bytes

        Returns:
            Nonce bytes
        """


class SecureNonceGenerator:
    """Cryptographically secure nonce generator using the secrets module."""

    def generate_nonce(self, length: int = NONCE_LENGTH) -> bytes:
        return secrets.token_bytes(length)


class SeededNonceGenerator:
    """Deterministic nonce generator for testing purposes.

    WARNING: This generator is NOT cryptographically secure and should
    only be used for testing and reproducible examples.
    """

    def __init__(self, seed: int = 42):
        self._random = random.Random(seed)

    def generate_nonce(self, length: int = NONCE_LENGTH) -> bytes:
        return bytes(self._random.getrandbits(8) for _ in range(length))


_default_nonce_generator = SecureNonceGenerator()


@dataclass(frozen=True)
class Commitment:
    """Result of committing to a claim set."""

    root_hash: bytes
    field_hashes: tuple[bytes, ...]
    nonce_map: Mapping[ClaimPath, bytes]
    hash_type: HashType


def _check_value(value: Any, ancestors: tuple[int, ...]) -> None:
    if value is None or isinstance(value, (bool, str, int)):
        return
    if isinstance(value, float):
        if not math.isfinite(value):
            raise EncodingError(f"Non-finite number cannot be committed: {value!r}")
        return
    if isinstance(value, (list, tuple, dict)):
        if id(value) in ancestors:
            raise EncodingError("Cyclic claim structure cannot be committed")
        inner = ancestors + (id(value),)
        if isinstance(value, dict):
            for key, item in value.items():
                if not isinstance(key, str):
                    raise EncodingError(f"Claim keys must be strings, got {type(key).__name__}")
                _check_value(item, inner)
        else:
            for item in value:
                _check_value(item, inner)
        return
    raise EncodingError(f"Unsupported claim value type: {type(value).__name__}")


def flatten_claims(claims: Mapping[str, Any]) -> list[tuple[ClaimPath, Any]]:
    """Flatten a claim set into its leaves.

    Non-empty nested objects are descended into; every other value (scalars,
    arrays, empty objects) is a leaf. Leaf order follows the claim set's
    insertion order.

    Args:
        claims: Claim set mapping claim keys to JSON values

    Returns:
        List of (path, value) tuples

    Raises:
        EncodingError: If a value cannot be represented canonically
    """
    if not isinstance(claims, Mapping):
        raise EncodingError(f"Claim set must be a mapping, got {type(claims).__name__}")
    _check_value(dict(claims), ())

    leaves: list[tuple[ClaimPath, Any]] = []

    def _walk(obj: Mapping[str, Any], prefix: ClaimPath) -> None:
        for key, value in obj.items():
            path = prefix + (key,)
            if isinstance(value, Mapping) and value:
                _walk(value, path)
            else:
                leaves.append((path, value))

    _walk(claims, ())
    return leaves


def encode_leaf(path: ClaimPath, value: Any, nonce: bytes) -> bytes:
    """Canonically encode one leaf for hashing."""
    try:
        return cbor_utils.encode_canonical([LEAF_DOMAIN, list(path), value, nonce])
    except (cbor_utils.CBOREncodeError, TypeError, ValueError) as err:
        raise EncodingError(f"Cannot encode claim {'.'.join(path)}: {err}") from err


def field_hash(hash_type: HashType, path: ClaimPath, value: Any, nonce: bytes) -> bytes:
    """Compute the field hash of a single leaf."""
    return hash_bytes(hash_type, encode_leaf(path, value, nonce))


def root_hash_from_hashes(hash_type: HashType, field_hashes: Iterable[bytes]) -> bytes:
    """Compute the root hash of a set of field hashes.

    Field hashes are sorted as raw bytes before hashing, which makes the
    root independent of the order in which they are supplied.
    """
    return hash_bytes(hash_type, b"".join(sorted(field_hashes)))


def commit(
    claims: Mapping[str, Any],
    hash_type: HashType,
    nonce_map: Optional[Mapping[ClaimPath, bytes]] = None,
    *,
    salted: bool = True,
    nonce_generator: Optional[NonceGenerator] = None,
) -> Commitment:
    """Commit to a claim set.

    Args:
        claims: Claim set to commit to
        hash_type: Hash algorithm for field and root hashes
        nonce_map: Existing nonces to reuse (re-derivation); when omitted,
            a fresh nonce is generated for every leaf
        salted: When False every leaf is committed with an empty nonce, so the
            commitment can be recomputed from the claims alone (public
            credentials)
        nonce_generator: Optional custom generator (secure default if None)

    Returns:
        Commitment with root hash, field hashes and the nonce map used

    Raises:
        EncodingError: If a claim value cannot be encoded
        EmptyClaimSetError: If the claim set has no leaves
        MissingNonceError: If ``nonce_map`` lacks a nonce for some leaf
    """
    hash_type = parse_hash_type(hash_type)
    leaves = flatten_claims(claims)
    if not leaves:
        raise EmptyClaimSetError("Cannot commit to an empty claim set")

    generator = nonce_generator or _default_nonce_generator
    used_nonces: dict[ClaimPath, bytes] = {}
    hashes: list[bytes] = []

    for path, value in leaves:
        if not salted:
            nonce = b""
        elif nonce_map is not None:
            if path not in nonce_map:
                raise MissingNonceError(f"No nonce for claim {'.'.join(path)}")
            nonce = nonce_map[path]
        else:
            nonce = generator.generate_nonce(NONCE_LENGTH)
        if salted:
            used_nonces[path] = nonce
        hashes.append(field_hash(hash_type, path, value, nonce))

    logger.debug("committed %d claims with %s", len(hashes), hash_type.value)
    return Commitment(
        root_hash=root_hash_from_hashes(hash_type, hashes),
        field_hashes=tuple(hashes),
        nonce_map=used_nonces,
        hash_type=hash_type,
    )


def normalize_selector(selector: FieldSelector, leaf_paths: Iterable[ClaimPath]) -> ClaimPath:
    """Turn a field selector into a claim path.

    A string selects a top-level key when such a key (or subtree) exists,
    and is otherwise read as a dotted path. Tuples and lists are taken as
    explicit paths.
    """
    if isinstance(selector, str):
        whole = (selector,)
        if any(path[:1] == whole for path in leaf_paths):
            return whole
        return tuple(selector.split("."))
    return tuple(selector)


def _is_prefix(prefix: ClaimPath, path: ClaimPath) -> bool:
    return path[: len(prefix)] == prefix


def select_leaves(
    leaves: list[tuple[ClaimPath, Any]], selectors: Iterable[FieldSelector]
) -> tuple[list[tuple[ClaimPath, Any]], list[FieldSelector]]:
    """Select leaves matching any of the selectors.

    A selector matches a leaf when it equals the leaf path or names one of
    its enclosing objects.

    Returns:
        Tuple of (selected leaves in original order, selectors that matched
        nothing)
    """
    paths = [path for path, _ in leaves]
    wanted: list[ClaimPath] = []
    unknown: list[FieldSelector] = []
    for selector in selectors:
        path = normalize_selector(selector, paths)
        if path and any(_is_prefix(path, leaf) for leaf in paths):
            wanted.append(path)
        else:
            unknown.append(selector)
    selected = [
        (path, value) for path, value in leaves if any(_is_prefix(w, path) for w in wanted)
    ]
    return selected, unknown


def build_claims(leaves: Iterable[tuple[ClaimPath, Any]]) -> dict[str, Any]:
    """Rebuild a nested claim set from (path, value) leaves."""
    claims: dict[str, Any] = {}
    for path, value in leaves:
        container = claims
        for key in path[:-1]:
            container = container.setdefault(key, {})
        container[path[-1]] = value
    return claims


def disclosed_root_hash(
    claims: Mapping[str, Any],
    field_hashes: Iterable[bytes],
    nonce_map: Mapping[ClaimPath, bytes],
    hash_type: HashType,
) -> Optional[bytes]:
    """Recompute the root hash of a (partially) disclosed claim set.

    Each disclosed leaf is re-hashed with its nonce and must match an entry
    of the stored field hash list; the remaining entries stand in for the
    undisclosed leaves. The root is then computed over the full list.

    Args:
        claims: Disclosed claim values
        field_hashes: Complete field hash list recorded at issuance
        nonce_map: Nonces of the disclosed leaves
        hash_type: Root hash algorithm

    Returns:
        The root hash, or None if the disclosure is inconsistent (a disclosed
        value without a nonce, a nonce without a value, or a recomputed field
        hash absent from the stored list)
    """
    stored = list(field_hashes)
    leaves = flatten_claims(claims)
    if {path for path, _ in leaves} != set(nonce_map):
        return None

    remaining = list(stored)
    for path, value in leaves:
        recomputed = field_hash(hash_type, path, value, nonce_map[path])
        match = next(
            (i for i, h in enumerate(remaining) if constant_time_compare(h, recomputed)), None
        )
        if match is None:
            logger.debug("disclosed claim %s does not match any field hash", ".".join(path))
            return None
        del remaining[match]

    return root_hash_from_hashes(hash_type, stored)
