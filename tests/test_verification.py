"""Tests for the verification pipeline."""

from dataclasses import replace

import pytest

from sd_vc import (
    CredentialBuilder,
    DisclosureMode,
    FailureReason,
    HashType,
    KeyNotFoundError,
    KeyPurpose,
    KeyRevokedError,
    LocalIdentity,
    MalformedCredentialError,
    NotFoundError,
    PresentationBuilder,
    ResolutionError,
    Schema,
    redact_credential,
    verify,
    verify_credential,
    verify_presentation,
)
from sd_vc.commitment import flatten_claims

from conftest import ISSUANCE_DATE, ISSUER_ID


class BrokenResolver:
    async def resolve(self, identity):
        raise TimeoutError("resolver timed out")


def _with_claim(credential, path, value):
    """Copy of a credential with one disclosed claim value replaced."""
    subject = dict(credential.credential_subject)
    container = subject
    for key in path[:-1]:
        container[key] = dict(container[key])
        container = container[key]
    container[path[-1]] = value
    return replace(credential, credential_subject=subject)


def _tampered(value):
    if isinstance(value, bool):
        return not value
    if isinstance(value, (int, float)):
        return value + 1
    if isinstance(value, str):
        return value + "!"
    if isinstance(value, list):
        return value + ["extra"]
    return "tampered"


class TestCredentialVerification:
    """Test verification of single credentials."""

    @pytest.mark.asyncio
    async def test_round_trip(self, credential, resolver):
        result = await verify(credential, resolver)
        assert result
        assert result.valid
        assert result.reason is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("version", ["0", "1"])
    @pytest.mark.parametrize("is_public", [False, True])
    async def test_round_trip_variants(
        self, es256_issuer, resolver, person_schema, sample_claims, make_raw, version, is_public
    ):
        raw = make_raw(person_schema, sample_claims, hash_type=HashType.SHA3_512)
        builder = CredentialBuilder.from_raw(raw, person_schema).with_version(version)
        credential = await builder.build(es256_issuer, is_public=is_public)
        assert await verify_credential(credential, resolver)

    @pytest.mark.asyncio
    async def test_idempotent(self, credential, resolver):
        first = await verify(credential, resolver)
        second = await verify(credential, resolver)
        assert first == second
        assert first.valid

    @pytest.mark.asyncio
    async def test_identity_document_as_source(self, credential, issuer, holder):
        assert await verify(credential, issuer.document())
        with pytest.raises(NotFoundError):
            await verify(credential, holder.document())

    @pytest.mark.asyncio
    async def test_public_credential_needs_no_mode(
        self, issuer, resolver, person_schema, sample_claims, make_raw
    ):
        raw = make_raw(person_schema, sample_claims)
        public = await CredentialBuilder.from_raw(raw, person_schema).build(issuer, is_public=True)
        assert await verify(public, resolver)
        assert await verify_credential(public, resolver, mode=DisclosureMode.FULL)

        dropped = replace(public, credential_subject={"name": "zCloak"})
        result = await verify(dropped, resolver)
        assert result.reason is FailureReason.DISCLOSURE_MISMATCH

        result = await verify_credential(public, resolver, mode=DisclosureMode.SELECTIVE)
        assert result.reason is FailureReason.DISCLOSURE_MISMATCH

    @pytest.mark.asyncio
    async def test_every_disclosed_field_is_bound(
        self, profile_credential, profile_claims, resolver
    ):
        for path, value in flatten_claims(profile_claims):
            tampered = _with_claim(profile_credential, path, _tampered(value))
            result = await verify(tampered, resolver)
            assert result.reason is FailureReason.DISCLOSURE_MISMATCH, path

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "changes",
        [
            {"holder": "did:example:mallory"},
            {"schema_id": "0xother"},
            {"issuance_date": ISSUANCE_DATE + 1},
            {"expiration_date": ISSUANCE_DATE + 10_000},
            {"digest": bytes(32)},
            {"hasher": (HashType.BLAKE2B_256, HashType.SHA3_256)},
        ],
    )
    async def test_metadata_is_bound(self, credential, resolver, changes):
        result = await verify(replace(credential, **changes), resolver)
        assert result.reason is FailureReason.DISCLOSURE_MISMATCH

    @pytest.mark.asyncio
    async def test_field_hash_list_is_bound(self, credential, resolver):
        hashes = list(credential.credential_subject_hashes)
        hashes[0] = bytes(len(hashes[0]))
        tampered = replace(credential, credential_subject_hashes=tuple(hashes))
        result = await verify(tampered, resolver)
        assert result.reason is FailureReason.DISCLOSURE_MISMATCH

    @pytest.mark.asyncio
    async def test_undisclosed_claim_cannot_be_dropped_in_full_mode(self, credential, resolver):
        selective = redact_credential(credential, DisclosureMode.SELECTIVE, ["age"])
        result = await verify_credential(selective, resolver, mode=DisclosureMode.FULL)
        assert result.reason is FailureReason.DISCLOSURE_MISMATCH
        assert await verify_credential(selective, resolver)

    @pytest.mark.asyncio
    async def test_signature_is_checked(self, credential, resolver):
        proof = replace(credential.proof, proof_value=bytes(64))
        result = await verify(replace(credential, proof=proof), resolver)
        assert result.reason is FailureReason.SIGNATURE_INVALID

    @pytest.mark.asyncio
    async def test_proof_type_must_match_key(self, credential, resolver):
        proof = replace(credential.proof, type="ES256")
        result = await verify(replace(credential, proof=proof), resolver)
        assert result.reason is FailureReason.SIGNATURE_INVALID

    @pytest.mark.asyncio
    async def test_issuer_is_bound_to_key(self, credential, resolver):
        result = await verify(replace(credential, issuer="did:example:mallory"), resolver)
        assert result.reason is FailureReason.ISSUER_MISMATCH

    @pytest.mark.asyncio
    async def test_proof_purpose(self, credential, resolver):
        proof = replace(credential.proof, proof_purpose=KeyPurpose.AUTHENTICATION)
        result = await verify(replace(credential, proof=proof), resolver)
        assert result.reason is FailureReason.PROOF_PURPOSE_MISMATCH

    @pytest.mark.asyncio
    async def test_authentication_key_cannot_issue(
        self, issuer, resolver, person_schema, sample_claims, make_raw
    ):
        """A signer that signs with its authentication key under assertionMethod."""

        class WrongKeySigner:
            async def sign(self, purpose, message):
                return await issuer.sign(KeyPurpose.AUTHENTICATION, message)

        raw = make_raw(person_schema, sample_claims)
        credential = await CredentialBuilder.from_raw(raw, person_schema).build(WrongKeySigner())
        result = await verify(credential, resolver)
        assert result.reason is FailureReason.PROOF_PURPOSE_MISMATCH

    @pytest.mark.asyncio
    async def test_expired(self, issuer, resolver, person_schema, sample_claims, make_raw):
        raw = make_raw(person_schema, sample_claims, expiration_date=ISSUANCE_DATE + 1000)
        credential = await CredentialBuilder.from_raw(raw, person_schema).build(issuer)
        assert await verify(credential, resolver)
        assert await verify(credential, resolver, now=ISSUANCE_DATE + 1000)
        result = await verify(credential, resolver, now=ISSUANCE_DATE + 1001)
        assert result.reason is FailureReason.EXPIRED

    @pytest.mark.asyncio
    async def test_revoked_key(self, credential, resolver):
        resolver.revoke(credential.proof.verification_method)
        with pytest.raises(KeyRevokedError):
            await verify(credential, resolver)

    @pytest.mark.asyncio
    async def test_unknown_key(self, credential, resolver):
        resolver.add(LocalIdentity.generate(ISSUER_ID).document())
        with pytest.raises(KeyNotFoundError):
            await verify(credential, resolver)

    @pytest.mark.asyncio
    async def test_resolver_failure(self, credential):
        with pytest.raises(ResolutionError):
            await verify(credential, BrokenResolver())

    @pytest.mark.asyncio
    async def test_malformed_verification_method(self, credential, resolver):
        proof = replace(credential.proof, verification_method="not-a-reference")
        with pytest.raises(MalformedCredentialError):
            await verify(replace(credential, proof=proof), resolver)

    @pytest.mark.asyncio
    async def test_not_verifiable(self, resolver):
        with pytest.raises(TypeError):
            await verify({"digest": b""}, resolver)


class TestPresentationVerification:
    """Test verification of presentations."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "mode,fields",
        [
            (DisclosureMode.FULL, None),
            (DisclosureMode.DIGEST_ONLY, None),
            (DisclosureMode.SELECTIVE, ["address.city", "roles"]),
            (DisclosureMode.SELECTIVE, []),
        ],
    )
    async def test_round_trip(self, profile_credential, holder, resolver, mode, fields):
        builder = PresentationBuilder().add(profile_credential, mode, fields)
        presentation = await builder.build(holder)
        assert await verify(presentation, resolver)
        assert await verify_presentation(presentation, resolver)

    @pytest.mark.asyncio
    async def test_challenge(self, credential, holder, resolver):
        presentation = await PresentationBuilder().add(credential).with_challenge("abc").build(
            holder
        )
        assert await verify(presentation, resolver, challenge="abc")
        assert await verify(presentation, resolver)
        result = await verify(presentation, resolver, challenge="xyz")
        assert result.reason is FailureReason.CHALLENGE_MISMATCH

    @pytest.mark.asyncio
    async def test_missing_challenge(self, credential, holder, resolver):
        presentation = await PresentationBuilder().add(credential).build(holder)
        result = await verify(presentation, resolver, challenge="abc")
        assert result.reason is FailureReason.CHALLENGE_MISMATCH

    @pytest.mark.asyncio
    async def test_challenge_is_bound(self, credential, holder, resolver):
        presentation = await PresentationBuilder().add(credential).with_challenge("abc").build(
            holder
        )
        result = await verify(replace(presentation, challenge="xyz"), resolver, challenge="xyz")
        assert result.reason is FailureReason.PRESENTATION_DIGEST_MISMATCH

    @pytest.mark.asyncio
    async def test_holder_signature(self, credential, holder, resolver):
        presentation = await PresentationBuilder().add(credential).build(holder)
        proof = replace(presentation.proof, proof_value=bytes(64))
        result = await verify(replace(presentation, proof=proof), resolver)
        assert result.reason is FailureReason.SIGNATURE_INVALID

    @pytest.mark.asyncio
    async def test_holder_proof_purpose(self, credential, holder, resolver):
        presentation = await PresentationBuilder().add(credential).build(holder)
        proof = replace(presentation.proof, proof_purpose=KeyPurpose.ASSERTION_METHOD)
        result = await verify(replace(presentation, proof=proof), resolver)
        assert result.reason is FailureReason.PROOF_PURPOSE_MISMATCH

    @pytest.mark.asyncio
    async def test_presented_by_someone_else(
        self, credential, issuer, holder, mallory, resolver, person_schema, sample_claims, make_raw
    ):
        raw = make_raw(person_schema, sample_claims, holder=mallory.identity)
        own = await CredentialBuilder.from_raw(raw, person_schema).build(issuer)
        mallory_presentation = await PresentationBuilder().add(own).build(mallory)
        presentation = await PresentationBuilder().add(credential).build(holder)
        stolen = replace(presentation, proof=mallory_presentation.proof)
        result = await verify(stolen, resolver)
        assert result.reason is FailureReason.HOLDER_MISMATCH
        assert result.index == 0

    @pytest.mark.asyncio
    async def test_failing_credential_index(
        self, credential, profile_credential, holder, resolver
    ):
        presentation = await (
            PresentationBuilder()
            .add(credential, DisclosureMode.SELECTIVE, ["age"])
            .add(profile_credential, DisclosureMode.SELECTIVE, ["name"])
            .build(holder)
        )
        tampered = _with_claim(presentation.verifiable_credential[1], ("name",), "Mallory")
        changed = replace(
            presentation,
            verifiable_credential=(presentation.verifiable_credential[0], tampered),
        )
        result = await verify(changed, resolver)
        assert result.reason is FailureReason.DISCLOSURE_MISMATCH
        assert result.index == 1

    @pytest.mark.asyncio
    async def test_idempotent(self, credential, holder, resolver):
        presentation = await PresentationBuilder().add(credential, "VP_Digest").build(holder)
        assert await verify(presentation, resolver) == await verify(presentation, resolver)

    @pytest.mark.asyncio
    async def test_identity_documents_as_source(self, credential, issuer, holder, mallory):
        presentation = await PresentationBuilder().add(credential).build(holder)
        documents = [issuer.document(), holder.document()]
        assert await verify(presentation, documents)
        with pytest.raises(NotFoundError):
            await verify(presentation, [holder.document(), mallory.document()])


@pytest.mark.integration
class TestScenarios:
    """End-to-end scenarios."""

    @pytest.mark.asyncio
    async def test_zcloak_selective_disclosure(self, credential, holder, resolver):
        """Root hash Blake2b256, digest Sha256: disclose age, then tamper with it."""
        assert credential.hasher == (HashType.BLAKE2B_256, HashType.SHA256)
        assert await verify(credential, resolver)

        presentation = await (
            PresentationBuilder().add(credential, DisclosureMode.SELECTIVE, ["age"]).build(holder)
        )
        assert presentation.verifiable_credential[0].credential_subject == {"age": 19}
        assert await verify(presentation, resolver)

        tampered = _with_claim(presentation.verifiable_credential[0], ("age",), 20)
        result = await verify(replace(presentation, verifiable_credential=(tampered,)), resolver)
        assert not result
        assert result.reason is FailureReason.DISCLOSURE_MISMATCH
        assert result.index == 0

    @pytest.mark.asyncio
    async def test_digest_only_reinsertion(self, credential, holder, resolver, sample_claims):
        presentation = await (
            PresentationBuilder().add(credential, DisclosureMode.DIGEST_ONLY).build(holder)
        )
        (redacted,) = presentation.verifiable_credential
        assert redacted.credential_subject_hashes == ()
        assert redacted.credential_subject_nonce_map == {}
        assert await verify(presentation, resolver)

        reinserted = replace(redacted, credential_subject=dict(sample_claims))
        result = await verify(replace(presentation, verifiable_credential=(reinserted,)), resolver)
        assert result.reason is FailureReason.DISCLOSURE_MISMATCH

        as_full = replace(
            presentation,
            types=(DisclosureMode.FULL,),
            verifiable_credential=(reinserted,),
        )
        result = await verify(as_full, resolver)
        assert result.reason is FailureReason.DISCLOSURE_MISMATCH

    @pytest.mark.asyncio
    async def test_order_swap(self, credential, issuer, holder, resolver, make_raw):
        """Two schemas, one Full and one DigestOnly: presentation order is strict."""
        badge_schema = Schema.create("Badge", {"level": "integer"})
        raw = make_raw(badge_schema, {"level": 3})
        badge = await CredentialBuilder.from_raw(raw, badge_schema).build(issuer)
        assert badge.schema_id != credential.schema_id

        forward = await (
            PresentationBuilder()
            .add(credential, DisclosureMode.FULL)
            .add(badge, DisclosureMode.DIGEST_ONLY)
            .build(holder)
        )
        backward = await (
            PresentationBuilder()
            .add(badge, DisclosureMode.DIGEST_ONLY)
            .add(credential, DisclosureMode.FULL)
            .build(holder)
        )
        assert forward.id != backward.id
        assert await verify(forward, resolver)
        assert await verify(backward, resolver)

        swapped = replace(
            forward,
            types=tuple(reversed(forward.types)),
            verifiable_credential=tuple(reversed(forward.verifiable_credential)),
        )
        result = await verify(swapped, resolver)
        assert result.reason is FailureReason.PRESENTATION_DIGEST_MISMATCH

        # As a multiset the credential digests still agree
        assert sorted(vc.digest for vc in swapped.verifiable_credential) == sorted(
            vc.digest for vc in forward.verifiable_credential
        )
