"""CBOR utilities module.

This module provides a unified interface for CBOR operations, isolating the
underlying CBOR library implementation.

Two encodings are used throughout the package:

- ``encode_canonical`` produces the deterministic encoding (RFC 8949 core
  deterministic encoding) that every hash in the protocol is computed over.
- ``encode`` produces the wire form of credentials and presentations, which
  keeps map keys in insertion order.

Currently uses cbor2 as the underlying implementation.
"""

from typing import Any

import cbor2

CBORDecodeError = cbor2.CBORDecodeError
CBOREncodeError = cbor2.CBOREncodeError


def encode(obj: Any) -> bytes:
    """Encode an object to CBOR bytes, preserving map insertion order.

    Args:
        obj: The object to encode

    Returns:
        CBOR-encoded bytes
    """
    return cbor2.dumps(obj)


def encode_canonical(obj: Any) -> bytes:
    """Encode an object with deterministic CBOR encoding.

    Map keys are sorted by their encoded form and floats use their shortest
    exact representation, so equal values always produce equal bytes.

    Args:
        obj: The object to encode

    Returns:
        Canonical CBOR-encoded bytes
    """
    return cbor2.dumps(obj, canonical=True)


def decode(data: bytes) -> Any:
    """Decode CBOR bytes to an object.

    Args:
        data: CBOR-encoded bytes

    Returns:
        The decoded object

    Raises:
        CBORDecodeError: If the data is not valid CBOR
    """
    return cbor2.loads(data)
