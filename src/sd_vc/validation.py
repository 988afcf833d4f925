"""CBOR and CDDL validation utilities for sd-vc documents."""

import functools
import logging

import pycddl

from . import cbor_utils, edn_utils
from .cddl_schemas import CREDENTIAL_CDDL, PRESENTATION_CDDL
from .errors import MalformedCredentialError

logger = logging.getLogger(__name__)


class CDDLValidator:
    """Validates CBOR documents against a CDDL schema using pycddl."""

    def __init__(self, cddl_schema: str, name: str = "document"):
        """Initialize CDDL validator.

        Args:
            cddl_schema: CDDL schema string; its first rule is the root
            name: Document name used in error messages
        """
        self.name = name
        self.schema = pycddl.Schema(cddl_schema)

    def check(self, cbor_data: bytes) -> None:
        """Validate CBOR data, raising on any violation.

        Raises:
            MalformedCredentialError: If the data does not match the schema
        """
        try:
            self.schema.validate_cbor(cbor_data)
        except pycddl.ValidationError as err:
            logger.debug("%s failed CDDL validation: %s", self.name, err)
            raise MalformedCredentialError(f"Invalid {self.name}: {err}") from err

    def validate(self, cbor_data: bytes) -> bool:
        """Validate CBOR data against the schema.

        Returns:
            True if valid according to schema
        """
        try:
            self.check(cbor_data)
            return True
        except MalformedCredentialError:
            return False


@functools.lru_cache(maxsize=None)
def credential_validator() -> CDDLValidator:
    return CDDLValidator(CREDENTIAL_CDDL, "credential")


@functools.lru_cache(maxsize=None)
def presentation_validator() -> CDDLValidator:
    return CDDLValidator(PRESENTATION_CDDL, "presentation")


def decode_document(data: bytes, validator: CDDLValidator) -> dict:
    """Validate and decode a serialized document.

    Args:
        data: CBOR encoded document
        validator: Validator for the expected document type

    Returns:
        The decoded document map

    Raises:
        MalformedCredentialError: If the data is not valid CBOR or does not
            match the schema
    """
    try:
        decoded = cbor_utils.decode(data)
    except cbor_utils.CBORDecodeError as err:
        raise MalformedCredentialError(f"Invalid CBOR: {err}") from err
    validator.check(data)
    return decoded


def to_diagnostic(cbor_data: bytes) -> str:
    """Render a serialized document in CBOR diagnostic notation."""
    return edn_utils.cbor_to_diag(cbor_data)
