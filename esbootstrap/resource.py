"""
Naming of the indices and aliases for a resource type.

Clients always address a resource through its alias (e.g. risk_score). The concrete index behind it
is named after the alias plus a suffix (e.g. risk_score-1234), where the suffix is a hash of the set
of top level field names. Adding, removing or renaming a field therefore gives a new index name,
but changing only the type of a field does not.

The hash is computed the way Java computes Set<String>.hashCode(), so index names are stable across
processes (and compatible with indices created by the JVM services that share the cluster).
"""

import re

from pydantic import BaseModel, ConfigDict

from esbootstrap.models import MappingNode, SchemaDescriptor
from esbootstrap.projector import DEFAULT_RULES, Rule, project

TEMP_SUFFIX = "_temp"


def normalize_name(type_name: str) -> str:
    """UpperCamel -> lower_underscore, e.g. RiskScore -> risk_score"""
    return re.sub(r"(?<!^)([A-Z])", r"_\1", type_name).lower()


def _int32(value: int) -> int:
    value &= 0xFFFFFFFF
    return value - 0x100000000 if value & 0x80000000 else value


def java_string_hash(s: str) -> int:
    h = 0
    encoded = s.encode("utf-16-be")
    for i in range(0, len(encoded), 2):
        h = _int32(31 * h + int.from_bytes(encoded[i:i + 2], "big"))
    return h


def field_set_hash(names: set[str] | frozenset[str] | list[str]) -> int:
    """Order independent, non-negative hash of a set of field names"""
    return abs(_int32(sum(java_string_hash(name) for name in set(names))))


class LogicalResource(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    alias: str
    suffix: int
    mapping: MappingNode

    @classmethod
    def from_schema(cls, schema: SchemaDescriptor, rules: tuple[Rule, ...] = DEFAULT_RULES) -> "LogicalResource":
        mapping = project(schema, rules)
        return cls(
            name=schema.name,
            alias=normalize_name(schema.name),
            suffix=field_set_hash(list(mapping.properties.keys())),
            mapping=mapping,
        )

    @property
    def index_name(self) -> str:
        return f"{self.alias}-{self.suffix}"

    @property
    def temp_index_name(self) -> str:
        return f"{self.index_name}{TEMP_SUFFIX}"

    @property
    def script_key(self) -> str:
        """<group>/<name> key of the reindex script for this version of the resource"""
        return f"{self.alias}/{self.suffix}"
