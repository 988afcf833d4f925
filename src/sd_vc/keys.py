"""COSE key generation, signing and verification.

Keys are plain COSE_Key dictionaries with integer labels. Two algorithms are
supported: ES256 (ECDSA P-256 / SHA-256, EC2 keys) and EdDSA (Ed25519, OKP
keys). These are the primitives behind the reference signer and resolver;
the protocol core only sees :class:`SignatureAlgorithm` tags and bytes.
"""

from enum import IntEnum
from typing import Any, Optional, Union

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec, ed25519, utils

from . import cbor_utils
from .errors import UnsupportedAlgorithmError

# COSE key labels
KTY = 1
KID = 2
ALG = 3
CRV = -1
X = -2
Y = -3
D = -4

COSE_KTY_OKP = 1
COSE_KTY_EC2 = 2
COSE_CRV_P256 = 1
COSE_CRV_ED25519 = 6


class SignatureAlgorithm(IntEnum):
    """COSE algorithm identifiers."""

    ES256 = -7
    EDDSA = -8

    @property
    def label(self) -> str:
        """Name used in proof ``type`` fields."""
        return _ALGORITHM_LABELS[self]


_ALGORITHM_LABELS = {
    SignatureAlgorithm.ES256: "ES256",
    SignatureAlgorithm.EDDSA: "EdDSA",
}


def parse_algorithm(value: Union[SignatureAlgorithm, int, str]) -> SignatureAlgorithm:
    """Convert a COSE identifier or proof label into a SignatureAlgorithm.

    Raises:
        UnsupportedAlgorithmError: If the algorithm is unknown
    """
    if isinstance(value, SignatureAlgorithm):
        return value
    if isinstance(value, str):
        for algorithm, label in _ALGORITHM_LABELS.items():
            if label == value:
                return algorithm
        raise UnsupportedAlgorithmError(f"Unsupported signature algorithm: {value!r}")
    try:
        return SignatureAlgorithm(value)
    except ValueError:
        raise UnsupportedAlgorithmError(f"Unsupported signature algorithm: {value!r}") from None


def key_generate(
    algorithm: SignatureAlgorithm = SignatureAlgorithm.EDDSA, key_id: Optional[bytes] = None
) -> dict[int, Any]:
    """Generate a COSE key pair.

    Args:
        algorithm: Signature algorithm the key is for
        key_id: Optional key identifier (kid parameter)

    Returns:
        COSE_Key dictionary containing both private and public key material
    """
    algorithm = parse_algorithm(algorithm)
    if algorithm is SignatureAlgorithm.ES256:
        private_key = ec.generate_private_key(ec.SECP256R1())
        private_value = private_key.private_numbers().private_value
        public_numbers = private_key.public_key().public_numbers()
        cose_key: dict[int, Any] = {
            KTY: COSE_KTY_EC2,
            ALG: SignatureAlgorithm.ES256.value,
            CRV: COSE_CRV_P256,
            X: public_numbers.x.to_bytes(32, byteorder="big"),
            Y: public_numbers.y.to_bytes(32, byteorder="big"),
            D: private_value.to_bytes(32, byteorder="big"),
        }
    elif algorithm is SignatureAlgorithm.EDDSA:
        ed_key = ed25519.Ed25519PrivateKey.generate()
        cose_key = {
            KTY: COSE_KTY_OKP,
            ALG: SignatureAlgorithm.EDDSA.value,
            CRV: COSE_CRV_ED25519,
            X: ed_key.public_key().public_bytes_raw(),
            D: ed_key.private_bytes_raw(),
        }
    else:
        raise UnsupportedAlgorithmError(f"Unsupported signature algorithm: {algorithm!r}")

    if key_id is not None:
        cose_key[KID] = key_id

    return cose_key


def key_algorithm(cose_key: dict[int, Any]) -> SignatureAlgorithm:
    """Return the signature algorithm of a COSE key.

    Raises:
        UnsupportedAlgorithmError: If the key type, curve or alg is unsupported
    """
    kty = cose_key.get(KTY)
    crv = cose_key.get(CRV)
    if kty == COSE_KTY_EC2 and crv == COSE_CRV_P256:
        algorithm = SignatureAlgorithm.ES256
    elif kty == COSE_KTY_OKP and crv == COSE_CRV_ED25519:
        algorithm = SignatureAlgorithm.EDDSA
    else:
        raise UnsupportedAlgorithmError(f"Unsupported key type/curve: kty={kty}, crv={crv}")

    alg = cose_key.get(ALG)
    if alg is not None and alg != algorithm.value:
        raise UnsupportedAlgorithmError(f"Key alg {alg} does not match key type {algorithm.label}")
    return algorithm


def key_get_public(cose_key: dict[int, Any]) -> dict[int, Any]:
    """Return a copy of a COSE key without private key material."""
    public_key = dict(cose_key)
    public_key.pop(D, None)
    return public_key


def key_to_cbor(cose_key: dict[int, Any]) -> bytes:
    """Convert a COSE key dictionary to CBOR bytes."""
    return cbor_utils.encode(cose_key)


def key_from_cbor(data: bytes) -> dict[int, Any]:
    """Convert CBOR bytes to a COSE key dictionary.

    Raises:
        UnsupportedAlgorithmError: If the data does not hold a COSE key map
    """
    cose_key = cbor_utils.decode(data)
    if not isinstance(cose_key, dict) or KTY not in cose_key:
        raise UnsupportedAlgorithmError("Data is not a COSE key")
    return cose_key


def key_sign(cose_key: dict[int, Any], message: bytes) -> bytes:
    """Sign a message with a private COSE key.

    ES256 signatures are returned in raw (r||s) form, 64 bytes.

    Args:
        cose_key: COSE key with private component (-4)
        message: Bytes to sign

    Returns:
        The signature bytes

    Raises:
        KeyError: If the private key component is missing
        UnsupportedAlgorithmError: If the key type is unsupported
    """
    if D not in cose_key:
        raise KeyError("Private key component (-4) missing from COSE key")

    algorithm = key_algorithm(cose_key)
    if algorithm is SignatureAlgorithm.ES256:
        private_value = int.from_bytes(cose_key[D], byteorder="big")
        private_key = ec.derive_private_key(private_value, ec.SECP256R1())
        signature_der = private_key.sign(message, ec.ECDSA(hashes.SHA256()))
        r, s = utils.decode_dss_signature(signature_der)
        return r.to_bytes(32, byteorder="big") + s.to_bytes(32, byteorder="big")
    if algorithm is SignatureAlgorithm.EDDSA:
        return ed25519.Ed25519PrivateKey.from_private_bytes(cose_key[D]).sign(message)
    raise UnsupportedAlgorithmError(f"Unsupported signature algorithm: {algorithm!r}")


def key_verify(cose_key: dict[int, Any], message: bytes, signature: bytes) -> bool:
    """Verify a signature with a public COSE key.

    Returns False for any cryptographically invalid signature, including
    signatures of the wrong length and public keys that are not valid curve
    points.

    Raises:
        UnsupportedAlgorithmError: If the key type is unsupported
    """
    algorithm = key_algorithm(cose_key)
    try:
        if algorithm is SignatureAlgorithm.ES256:
            if len(signature) != 64:
                return False
            x = int.from_bytes(cose_key[X], byteorder="big")
            y = int.from_bytes(cose_key[Y], byteorder="big")
            public_key = ec.EllipticCurvePublicNumbers(x, y, ec.SECP256R1()).public_key()
            r = int.from_bytes(signature[:32], byteorder="big")
            s = int.from_bytes(signature[32:], byteorder="big")
            public_key.verify(utils.encode_dss_signature(r, s), message, ec.ECDSA(hashes.SHA256()))
            return True
        if algorithm is SignatureAlgorithm.EDDSA:
            ed25519.Ed25519PublicKey.from_public_bytes(cose_key[X]).verify(signature, message)
            return True
    except InvalidSignature:
        return False
    except (ValueError, TypeError, KeyError):
        return False
    raise UnsupportedAlgorithmError(f"Unsupported signature algorithm: {algorithm!r}")
