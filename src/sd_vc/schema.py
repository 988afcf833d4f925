"""Claim schemas.

A schema names the fields a credential's claim set must carry and the JSON
type of each. The builder uses it only as a precondition check before
committing; verification never re-checks schema conformance.

Field types are turned into a CDDL rule and checked with pycddl.
"""

import functools
import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Optional, Protocol

import pycddl

from . import cbor_utils
from .errors import EncodingError, MalformedCredentialError, NotFoundError
from .hashing import HashType, hash_bytes

logger = logging.getLogger(__name__)

# JSON type name -> CDDL type
FIELD_TYPES = {
    "string": "tstr",
    "integer": "int",
    "number": "int / float",
    "boolean": "bool",
    "array": "[* any]",
    "object": "{* tstr => any}",
    "null": "nil",
}


@functools.lru_cache(maxsize=64)
def _compile(cddl: str) -> pycddl.Schema:
    return pycddl.Schema(cddl)


def compute_schema_id(title: str, properties: Mapping[str, str], required: tuple[str, ...]) -> str:
    """Derive a schema id from the schema content.

    Returns:
        "0x"-prefixed hex SHA-256 over the canonical CBOR of the schema
    """
    content = {"title": title, "properties": dict(properties), "required": sorted(required)}
    return "0x" + hash_bytes(HashType.SHA256, cbor_utils.encode_canonical(content)).hex()


@dataclass(frozen=True)
class Schema:
    """Expected shape of a claim set."""

    schema_id: str
    title: str
    properties: Mapping[str, str]
    required: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        for name, type_name in self.properties.items():
            if type_name not in FIELD_TYPES:
                raise ValueError(f"Unsupported type {type_name!r} for field {name!r}")
        unknown = set(self.required) - set(self.properties)
        if unknown:
            raise ValueError(f"Required fields not declared: {sorted(unknown)}")

    @classmethod
    def create(
        cls,
        title: str,
        properties: Mapping[str, str],
        required: Optional[list[str]] = None,
    ) -> "Schema":
        """Create a schema whose id is derived from its content.

        Args:
            title: Human readable schema name
            properties: Field name -> JSON type name ("string", "integer", ...)
            required: Fields that must be present (all fields by default)
        """
        required_fields = tuple(properties) if required is None else tuple(required)
        return cls(
            schema_id=compute_schema_id(title, properties, required_fields),
            title=title,
            properties=dict(properties),
            required=required_fields,
        )

    @property
    def expected_fields(self) -> tuple[str, ...]:
        return tuple(self.properties)

    @property
    def validation_rules(self) -> str:
        """CDDL rule describing a conforming claim set."""
        entries = []
        for name, type_name in self.properties.items():
            optional = "" if name in self.required else "? "
            entries.append(f"  {optional}{json.dumps(name)}: {FIELD_TYPES[type_name]}")
        return "claims = {\n" + ",\n".join(entries) + "\n}\n"

    def check_claims(self, claims: Any) -> list[str]:
        """Check a claim set against the schema.

        Args:
            claims: Claim set to check

        Returns:
            List of problems; empty when the claim set conforms

        Raises:
            EncodingError: If a claim value has no CBOR representation
        """
        if not isinstance(claims, Mapping):
            return [f"claim set must be an object, got {type(claims).__name__}"]

        problems = []
        missing = [name for name in self.required if name not in claims]
        if missing:
            problems.append(f"missing fields: {', '.join(missing)}")
        unexpected = [name for name in claims if name not in self.properties]
        if unexpected:
            problems.append(f"unexpected fields: {', '.join(map(str, unexpected))}")
        if problems or not self.properties:
            return problems

        try:
            _compile(self.validation_rules).validate_cbor(cbor_utils.encode(dict(claims)))
        except pycddl.ValidationError as err:
            problems.append(f"type mismatch: {err}")
        except (cbor_utils.CBOREncodeError, TypeError, ValueError) as err:
            raise EncodingError(f"Claim set cannot be encoded: {err}") from err
        return problems

    def to_dict(self) -> dict[str, Any]:
        """Serialize as a JSON-schema style object."""
        return {
            "$id": self.schema_id,
            "title": self.title,
            "type": "object",
            "properties": {name: {"type": t} for name, t in self.properties.items()},
            "required": list(self.required),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Schema":
        """Load a schema from a JSON-schema style object.

        A missing "$id" is derived from the content.

        Raises:
            MalformedCredentialError: If the object is not a valid schema
        """
        try:
            title = data.get("title", "")
            properties = {name: prop["type"] for name, prop in data["properties"].items()}
            required = tuple(data.get("required", properties))
            schema_id = data.get("$id") or compute_schema_id(title, properties, required)
            return cls(
                schema_id=schema_id, title=title, properties=properties, required=required
            )
        except (KeyError, TypeError, ValueError, AttributeError) as err:
            raise MalformedCredentialError(f"Invalid schema: {err}") from err


class SchemaRegistry(Protocol):
    """Protocol for schema lookup."""

    def get_schema(self, schema_id: str) -> Schema:
        """Return the schema with the given id.

        Raises:
            NotFoundError: If the schema is unknown
        """


class InMemorySchemaRegistry:
    """Schema registry backed by a dictionary."""

    def __init__(self, schemas: tuple[Schema, ...] = ()):
        self._schemas = {schema.schema_id: schema for schema in schemas}

    def register(self, schema: Schema) -> None:
        self._schemas[schema.schema_id] = schema
        logger.debug("registered schema %s (%s)", schema.schema_id, schema.title)

    def get_schema(self, schema_id: str) -> Schema:
        try:
            return self._schemas[schema_id]
        except KeyError:
            raise NotFoundError(f"Schema not found: {schema_id}") from None
