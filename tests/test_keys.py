"""Tests for COSE key handling."""

import pytest

from sd_vc import SignatureAlgorithm, UnsupportedAlgorithmError, key_generate, key_get_public
from sd_vc.keys import (
    ALG,
    D,
    KID,
    key_algorithm,
    key_from_cbor,
    key_sign,
    key_to_cbor,
    key_verify,
    parse_algorithm,
)


@pytest.mark.requires_crypto
class TestKeys:
    """Test key generation, signing and verification."""

    @pytest.mark.parametrize("algorithm", list(SignatureAlgorithm))
    def test_sign_and_verify(self, algorithm):
        cose_key = key_generate(algorithm)
        signature = key_sign(cose_key, b"message")
        public_key = key_get_public(cose_key)
        assert key_verify(public_key, b"message", signature)
        assert not key_verify(public_key, b"other message", signature)

    def test_es256_signature_is_raw(self):
        signature = key_sign(key_generate(SignatureAlgorithm.ES256), b"message")
        assert len(signature) == 64

    def test_wrong_length_signature(self):
        cose_key = key_generate(SignatureAlgorithm.ES256)
        assert not key_verify(cose_key, b"message", b"\x00" * 10)
        ed_key = key_generate(SignatureAlgorithm.EDDSA)
        assert not key_verify(ed_key, b"message", b"\x00" * 10)

    def test_signature_from_other_key(self):
        signer = key_generate()
        other = key_generate()
        assert not key_verify(other, b"message", key_sign(signer, b"message"))

    def test_public_key_has_no_private_part(self):
        cose_key = key_generate()
        assert D in cose_key
        assert D not in key_get_public(cose_key)
        with pytest.raises(KeyError):
            key_sign(key_get_public(cose_key), b"message")

    def test_key_id(self):
        assert key_generate(key_id=b"kid-1")[KID] == b"kid-1"

    def test_cbor_roundtrip(self):
        cose_key = key_generate(SignatureAlgorithm.ES256)
        assert key_from_cbor(key_to_cbor(cose_key)) == cose_key

    @pytest.mark.parametrize("data", [b"\x80", b"\xa1\x20\x01"], ids=["array", "no-kty"])
    def test_not_a_cose_key(self, data):
        with pytest.raises(UnsupportedAlgorithmError):
            key_from_cbor(data)

    def test_algorithm_detection(self):
        assert key_algorithm(key_generate(SignatureAlgorithm.ES256)) is SignatureAlgorithm.ES256
        assert key_algorithm(key_generate(SignatureAlgorithm.EDDSA)) is SignatureAlgorithm.EDDSA

    def test_mismatched_alg_parameter(self):
        cose_key = key_generate(SignatureAlgorithm.EDDSA)
        cose_key[ALG] = SignatureAlgorithm.ES256.value
        with pytest.raises(UnsupportedAlgorithmError):
            key_algorithm(cose_key)

    def test_unsupported_key_type(self):
        with pytest.raises(UnsupportedAlgorithmError):
            key_algorithm({1: 3, -1: 1})

    def test_parse_algorithm(self):
        assert parse_algorithm("ES256") is SignatureAlgorithm.ES256
        assert parse_algorithm("EdDSA") is SignatureAlgorithm.EDDSA
        assert parse_algorithm(-7) is SignatureAlgorithm.ES256
        with pytest.raises(UnsupportedAlgorithmError):
            parse_algorithm("RS256")
        with pytest.raises(UnsupportedAlgorithmError):
            parse_algorithm(-35)
