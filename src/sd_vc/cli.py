"""Command-line interface for sd-vc."""

import argparse
import asyncio
import json
import logging
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import Any, Optional, Union

from . import __version__, cbor_utils
from .credential import Credential, CredentialBuilder, RawCredential
from .digest import CredentialVersion
from .errors import SDVCError
from .hashing import HashType
from .keys import SignatureAlgorithm, parse_algorithm
from .presentation import DisclosureMode, Presentation, PresentationBuilder
from .resolvers import IdentityDocument, InMemoryResolver
from .schema import Schema
from .signers import LocalIdentity
from .validation import to_diagnostic
from .verification import verify

logger = logging.getLogger(__name__)

MODE_SUFFIXES = {
    "full": DisclosureMode.FULL,
    "digest": DisclosureMode.DIGEST_ONLY,
}


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="sd-vc",
        description="Selective-disclosure verifiable credentials toolkit",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Keygen subcommand
    keygen_parser = subparsers.add_parser("keygen", help="Create an identity with fresh keys")
    keygen_parser.add_argument("identity", help="Identity to create (e.g. did:example:alice)")
    keygen_parser.add_argument("--output", "-o", required=True, help="Private identity file")
    keygen_parser.add_argument("--document", "-d", help="Public identity document file")
    keygen_parser.add_argument(
        "--alg",
        default=SignatureAlgorithm.EDDSA.label,
        choices=[algorithm.label for algorithm in SignatureAlgorithm],
        help="Signature algorithm",
    )

    # Issue subcommand
    issue_parser = subparsers.add_parser("issue", help="Issue a credential")
    issue_parser.add_argument("--issuer", required=True, help="Issuer identity file")
    issue_parser.add_argument("--holder", required=True, help="Holder identity")
    issue_parser.add_argument("--schema", "-s", required=True, help="Schema file (JSON)")
    issue_parser.add_argument("--claims", "-c", required=True, help="Claims file (JSON)")
    issue_parser.add_argument("--output", "-o", required=True, help="Credential file")
    issue_parser.add_argument("--public", action="store_true", help="Issue a public credential")
    issue_parser.add_argument("--expires", type=int, help="Expiration time (ms since epoch)")
    issue_parser.add_argument(
        "--cred-version",
        default=CredentialVersion.V1.value,
        choices=[version.value for version in CredentialVersion],
        help="Credential protocol version",
    )
    issue_parser.add_argument(
        "--root-hash",
        default=HashType.BLAKE2B_256.value,
        choices=[hash_type.value for hash_type in HashType],
        help="Hash algorithm for the claim commitment",
    )
    issue_parser.add_argument(
        "--digest-hash",
        default=HashType.SHA256.value,
        choices=[hash_type.value for hash_type in HashType],
        help="Hash algorithm for the credential digest",
    )

    # Present subcommand
    present_parser = subparsers.add_parser("present", help="Create a presentation")
    present_parser.add_argument("--holder", required=True, help="Holder identity file")
    present_parser.add_argument(
        "credentials",
        nargs="+",
        help="Credential files; append ':digest' to disclose the root hash only, "
        "or ':field,field' to disclose selected fields",
    )
    present_parser.add_argument("--challenge", help="Verifier challenge to bind")
    present_parser.add_argument("--output", "-o", required=True, help="Presentation file")

    # Verify subcommand
    verify_parser = subparsers.add_parser("verify", help="Verify a credential or presentation")
    verify_parser.add_argument("input", help="Credential or presentation file")
    verify_parser.add_argument(
        "--document",
        "-d",
        action="append",
        required=True,
        help="Identity document file (repeatable)",
    )
    verify_parser.add_argument("--challenge", help="Expected verifier challenge")
    verify_parser.add_argument("--now", type=int, help="Check expiration at this time (ms)")

    # Show subcommand
    show_parser = subparsers.add_parser("show", help="Print a file in diagnostic notation")
    show_parser.add_argument("input", help="CBOR file")

    return parser


def _read_json(path: str) -> Any:
    return json.loads(Path(path).read_text())


def parse_credential_arg(value: str) -> tuple[str, DisclosureMode, Optional[list[str]]]:
    """Split a ``present`` argument into (path, mode, fields)."""
    path, sep, suffix = value.rpartition(":")
    if not sep or not path:
        return value, DisclosureMode.FULL, None
    if suffix in MODE_SUFFIXES:
        return path, MODE_SUFFIXES[suffix], None
    fields = [field for field in suffix.split(",") if field]
    return path, DisclosureMode.SELECTIVE, fields


def load_document(data: bytes) -> Union[Credential, Presentation]:
    """Decode a credential or presentation file."""
    decoded = cbor_utils.decode(data)
    if isinstance(decoded, dict) and "verifiableCredential" in decoded:
        return Presentation.from_cbor(data)
    return Credential.from_cbor(data)


def cmd_keygen(args: argparse.Namespace) -> int:
    identity = LocalIdentity.generate(args.identity, parse_algorithm(args.alg))
    Path(args.output).write_bytes(identity.to_cbor())
    if args.document:
        Path(args.document).write_bytes(identity.document().to_cbor())
    print(f"Created {args.identity}")
    return 0


async def cmd_issue(args: argparse.Namespace) -> int:
    issuer = LocalIdentity.from_cbor(Path(args.issuer).read_bytes())
    schema = Schema.from_dict(_read_json(args.schema))
    raw = RawCredential(
        schema_id=schema.schema_id,
        holder=args.holder,
        claims=_read_json(args.claims),
        hash_type=HashType(args.root_hash),
        expiration_date=args.expires,
    )
    builder = (
        CredentialBuilder.from_raw(raw, schema)
        .with_version(args.cred_version)
        .with_digest_hash_type(args.digest_hash)
    )
    credential = await builder.build(issuer, is_public=args.public)
    Path(args.output).write_bytes(credential.to_cbor())
    print(f"Issued credential {credential.digest.hex()}")
    return 0


async def cmd_present(args: argparse.Namespace) -> int:
    holder = LocalIdentity.from_cbor(Path(args.holder).read_bytes())
    builder = PresentationBuilder()
    for value in args.credentials:
        path, mode, fields = parse_credential_arg(value)
        builder = builder.add(Credential.from_cbor(Path(path).read_bytes()), mode, fields)
    if args.challenge:
        builder = builder.with_challenge(args.challenge)
    presentation = await builder.build(holder)
    Path(args.output).write_bytes(presentation.to_cbor())
    print(f"Created presentation {presentation.id.hex()}")
    return 0


async def cmd_verify(args: argparse.Namespace) -> int:
    resolver = InMemoryResolver(
        IdentityDocument.from_cbor(Path(path).read_bytes()) for path in args.document
    )
    obj = load_document(Path(args.input).read_bytes())
    result = await verify(obj, resolver, challenge=args.challenge, now=args.now)
    if result:
        print("valid")
        return 0
    location = f" (credential {result.index})" if result.index is not None else ""
    print(f"invalid: {result.reason.value}{location}: {result.detail}")
    return 1


def cmd_show(args: argparse.Namespace) -> int:
    print(to_diagnostic(Path(args.input).read_bytes()))
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main CLI entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(name)s %(levelname)s %(message)s")

    try:
        if args.command == "keygen":
            return cmd_keygen(args)
        if args.command == "issue":
            return asyncio.run(cmd_issue(args))
        if args.command == "present":
            return asyncio.run(cmd_present(args))
        if args.command == "verify":
            return asyncio.run(cmd_verify(args))
        if args.command == "show":
            return cmd_show(args)
    except (SDVCError, OSError, json.JSONDecodeError, cbor_utils.CBORDecodeError) as err:
        logger.debug("command %s failed", args.command, exc_info=True)
        print(f"error: {err}", file=sys.stderr)
        return 2

    parser.error(f"unknown command {args.command}")
    return 2


if __name__ == "__main__":
    sys.exit(main())
