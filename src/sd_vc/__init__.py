"""sd-vc: selective-disclosure verifiable credentials."""

# Hide module imports
from . import (
    commitment,
    credential,
    digest,
    errors,
    hashing,
    keys,
    presentation,
    resolvers,
    schema,
    signers,
    verification,
)
from .commitment import (
    Commitment,
    NonceGenerator,
    SecureNonceGenerator,
    SeededNonceGenerator,
    commit,
    disclosed_root_hash,
)
from .credential import Credential, CredentialBuilder, Proof, RawCredential
from .digest import (
    CredentialVersion,
    DigestMetadata,
    DigestResult,
    PresentationVersion,
    calc_digest,
    calc_presentation_digest,
)
from .errors import (
    EmptyClaimSetError,
    EncodingError,
    HolderMismatchError,
    IncompleteCredentialError,
    KeyNotFoundError,
    KeyPurposeNotFoundError,
    KeyRevokedError,
    MalformedCredentialError,
    MissingNonceError,
    NotFoundError,
    RedactionError,
    ResolutionError,
    SchemaMismatchError,
    SDVCError,
    SigningError,
    UnknownFieldError,
    UnresolvedCollaboratorError,
    UnsupportedAlgorithmError,
    UnsupportedHashTypeError,
    UnsupportedVersionError,
)
from .hashing import HashType, hash_bytes
from .keys import SignatureAlgorithm, key_generate, key_get_public
from .presentation import (
    DisclosureMode,
    Presentation,
    PresentationBuilder,
    redact_credential,
)
from .resolvers import (
    IdentityDocument,
    IdentityResolver,
    InMemoryResolver,
    KeyPurpose,
    VerificationMethod,
    lookup_key,
)
from .schema import InMemorySchemaRegistry, Schema, SchemaRegistry
from .signers import LocalIdentity, SignatureResult, Signer
from .verification import (
    CredentialVerifier,
    FailureReason,
    PresentationVerifier,
    VerificationResult,
    verify,
    verify_credential,
    verify_presentation,
)

del commitment, credential, digest, errors, hashing, keys, presentation, resolvers, schema
del signers, verification

__version__ = "0.1.0"


__all__ = [
    "__version__",
    # Hash commitments
    "commit",
    "disclosed_root_hash",
    "Commitment",
    "HashType",
    "hash_bytes",
    # Nonce generators for deterministic testing
    "NonceGenerator",
    "SecureNonceGenerator",
    "SeededNonceGenerator",
    # Digests
    "calc_digest",
    "calc_presentation_digest",
    "CredentialVersion",
    "PresentationVersion",
    "DigestMetadata",
    "DigestResult",
    # Credentials
    "RawCredential",
    "Credential",
    "CredentialBuilder",
    "Proof",
    # Presentations
    "DisclosureMode",
    "Presentation",
    "PresentationBuilder",
    "redact_credential",
    # Verification
    "verify",
    "verify_credential",
    "verify_presentation",
    "CredentialVerifier",
    "PresentationVerifier",
    "VerificationResult",
    "FailureReason",
    # Collaborators
    "Signer",
    "SignatureResult",
    "LocalIdentity",
    "KeyPurpose",
    "SignatureAlgorithm",
    "key_generate",
    "key_get_public",
    "IdentityResolver",
    "IdentityDocument",
    "VerificationMethod",
    "InMemoryResolver",
    "lookup_key",
    "Schema",
    "SchemaRegistry",
    "InMemorySchemaRegistry",
    # Errors
    "SDVCError",
    "EncodingError",
    "EmptyClaimSetError",
    "MissingNonceError",
    "UnsupportedVersionError",
    "UnsupportedHashTypeError",
    "UnsupportedAlgorithmError",
    "IncompleteCredentialError",
    "SchemaMismatchError",
    "UnknownFieldError",
    "RedactionError",
    "HolderMismatchError",
    "MalformedCredentialError",
    "KeyNotFoundError",
    "KeyRevokedError",
    "KeyPurposeNotFoundError",
    "UnresolvedCollaboratorError",
    "NotFoundError",
    "ResolutionError",
    "SigningError",
]
