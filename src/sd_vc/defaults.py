"""Protocol defaults."""

import time

from .digest import CredentialVersion, PresentationVersion
from .hashing import HashType

DEFAULT_CONTEXT = ("https://www.w3.org/2018/credentials/v1",)

DEFAULT_CREDENTIAL_VERSION = CredentialVersion.V1
DEFAULT_PRESENTATION_VERSION = PresentationVersion.V0

DEFAULT_ROOT_HASH_TYPE = HashType.BLAKE2B_256
DEFAULT_DIGEST_HASH_TYPE = HashType.SHA256
DEFAULT_PRESENTATION_HASH_TYPE = HashType.SHA256

# 256-bit nonces
NONCE_LENGTH = 32


def now_ms() -> int:
    """Current time in milliseconds since the epoch."""
    return int(time.time() * 1000)
