#!/usr/bin/env python3
"""Issue a credential, present part of it and verify the presentation."""

import asyncio

import sd_vc


async def main():
    """Demonstrate the issue / present / verify flow."""
    print("sd-vc Selective Disclosure Example")
    print("=" * 40)

    # 1. Identities for the issuer and the holder
    print("\n1. Generating identities...")
    issuer = sd_vc.LocalIdentity.generate("did:example:university")
    holder = sd_vc.LocalIdentity.generate("did:example:alice", sd_vc.SignatureAlgorithm.ES256)
    resolver = sd_vc.InMemoryResolver([issuer.document(), holder.document()])
    print(f"   Issuer key: {issuer.key_reference(sd_vc.KeyPurpose.ASSERTION_METHOD)[:48]}...")

    # 2. Schema and draft
    schema = sd_vc.Schema.create(
        "Diploma",
        {"name": "string", "degree": "string", "graduation": "object"},
    )
    raw = sd_vc.RawCredential(
        schema_id=schema.schema_id,
        holder=holder.identity,
        claims={
            "name": "Alice",
            "degree": "MSc Computer Science",
            "graduation": {"year": 2024, "honors": True},
        },
    )

    # 3. Issue
    print("\n2. Issuing credential...")
    credential = await sd_vc.CredentialBuilder.from_raw(raw, schema).build(issuer)
    print(f"   Digest: {credential.digest.hex()}")
    print(f"   Field hashes: {len(credential.credential_subject_hashes)}")

    # 4. Present only the degree and graduation year
    print("\n3. Presenting degree and graduation year...")
    presentation = await (
        sd_vc.PresentationBuilder()
        .add(credential, sd_vc.DisclosureMode.SELECTIVE, ["degree", "graduation.year"])
        .with_challenge("job-application-42")
        .build(holder)
    )
    print(f"   Disclosed: {presentation.verifiable_credential[0].credential_subject}")
    print(f"   Presentation size: {len(presentation.to_cbor())} bytes")

    # 5. Verify
    print("\n4. Verifying presentation...")
    result = await sd_vc.verify(presentation, resolver, challenge="job-application-42")
    print(f"   Valid: {result.valid}")

    result = await sd_vc.verify(presentation, resolver, challenge="another-challenge")
    print(f"   With the wrong challenge: {result.reason.value}")


if __name__ == "__main__":
    asyncio.run(main())
