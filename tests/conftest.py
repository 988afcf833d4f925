"""Pytest configuration and shared fixtures for sd-vc tests."""

from typing import Any, Callable

import pytest
import pytest_asyncio

from sd_vc import (
    Credential,
    CredentialBuilder,
    HashType,
    InMemoryResolver,
    LocalIdentity,
    RawCredential,
    Schema,
    SeededNonceGenerator,
    SignatureAlgorithm,
)

ISSUER_ID = "did:example:issuer"
HOLDER_ID = "did:example:holder"
ISSUANCE_DATE = 1_700_000_000_000


@pytest.fixture(scope="session")
def issuer() -> LocalIdentity:
    """Issuer identity with EdDSA keys."""
    return LocalIdentity.generate(ISSUER_ID)


@pytest.fixture(scope="session")
def es256_issuer() -> LocalIdentity:
    """Second issuer identity with ES256 keys."""
    return LocalIdentity.generate("did:example:es256-issuer", SignatureAlgorithm.ES256)


@pytest.fixture(scope="session")
def holder() -> LocalIdentity:
    """Holder identity with EdDSA keys."""
    return LocalIdentity.generate(HOLDER_ID)


@pytest.fixture(scope="session")
def mallory() -> LocalIdentity:
    """An identity that is neither the issuer nor the holder."""
    return LocalIdentity.generate("did:example:mallory")


@pytest.fixture
def resolver(
    issuer: LocalIdentity,
    es256_issuer: LocalIdentity,
    holder: LocalIdentity,
    mallory: LocalIdentity,
) -> InMemoryResolver:
    """Resolver knowing every test identity; fresh per test since revoke mutates it."""
    return InMemoryResolver(
        [issuer.document(), es256_issuer.document(), holder.document(), mallory.document()]
    )


@pytest.fixture
def person_schema() -> Schema:
    """Schema of the zCloak example claim set."""
    return Schema.create("Person", {"name": "string", "age": "integer"})


@pytest.fixture
def profile_schema() -> Schema:
    """Schema with nested and optional fields."""
    return Schema.create(
        "Profile",
        {
            "name": "string",
            "address": "object",
            "roles": "array",
            "verified": "boolean",
            "score": "number",
            "nickname": "string",
        },
        required=["name", "address", "roles", "verified", "score"],
    )


@pytest.fixture
def sample_claims() -> dict[str, Any]:
    return {"name": "zCloak", "age": 19}


@pytest.fixture
def profile_claims() -> dict[str, Any]:
    return {
        "name": "Alice",
        "address": {"street": "123 Main St", "city": "Anytown", "geo": {"lat": 1.5, "lon": -2.25}},
        "roles": ["user", "admin"],
        "verified": True,
        "score": 9.5,
    }


@pytest.fixture
def make_raw() -> Callable[..., RawCredential]:
    """Factory for drafts with a fixed issuance date."""

    def _make(schema: Schema, claims: dict[str, Any], **kwargs: Any) -> RawCredential:
        kwargs.setdefault("holder", HOLDER_ID)
        kwargs.setdefault("issuance_date", ISSUANCE_DATE)
        return RawCredential(schema_id=schema.schema_id, claims=claims, **kwargs)

    return _make


@pytest_asyncio.fixture
async def credential(
    issuer: LocalIdentity,
    person_schema: Schema,
    sample_claims: dict[str, Any],
    make_raw: Callable[..., RawCredential],
) -> Credential:
    """Private credential: Blake2b256 root hash, Sha256 digest."""
    raw = make_raw(person_schema, sample_claims, hash_type=HashType.BLAKE2B_256)
    builder = CredentialBuilder.from_raw(raw, person_schema).with_digest_hash_type(
        HashType.SHA256
    )
    return await builder.build(issuer)


@pytest_asyncio.fixture
async def profile_credential(
    issuer: LocalIdentity,
    profile_schema: Schema,
    profile_claims: dict[str, Any],
    make_raw: Callable[..., RawCredential],
) -> Credential:
    """Private credential with nested claims, built with seeded nonces."""
    raw = make_raw(profile_schema, profile_claims)
    builder = CredentialBuilder.from_raw(raw, profile_schema).with_nonce_generator(
        SeededNonceGenerator(7)
    )
    return await builder.build(issuer)


def pytest_configure(config):
    """Configure pytest with custom settings."""
    config.addinivalue_line("markers", "integration: mark test as an end-to-end scenario")
    config.addinivalue_line(
        "markers", "requires_crypto: mark test as requiring cryptographic operations"
    )
