from enum import Enum
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from typing_extensions import Self


######################## SCHEMA DESCRIPTIONS #########################


class PrimitiveKind(str, Enum):
    DOUBLE = "double"
    FLOAT = "float"
    INT32 = "int32"
    INT64 = "int64"
    UINT32 = "uint32"
    UINT64 = "uint64"
    SINT32 = "sint32"
    SINT64 = "sint64"
    FIXED32 = "fixed32"
    FIXED64 = "fixed64"
    SFIXED32 = "sfixed32"
    SFIXED64 = "sfixed64"
    BOOL = "bool"
    STRING = "string"
    BYTES = "bytes"
    ENUM = "enum"
    MESSAGE = "message"
    GROUP = "group"


NESTED_KINDS = frozenset({PrimitiveKind.MESSAGE, PrimitiveKind.GROUP})


def lower_camel(name: str) -> str:
    """snake_case -> snakeCase, the default wire name of a field"""
    head, *rest = name.split("_")
    return head + "".join(part[:1].upper() + part[1:] for part in rest)


class FieldDescriptor(BaseModel):
    """One field of a schema. Nested kinds (message, group) carry the nested type and its descriptor."""

    model_config = ConfigDict(frozen=True)

    name: str
    json_name: str = ""  # defaults to lowerCamelCase of name
    kind: PrimitiveKind
    repeated: bool = False
    message_type: str | None = None  # fully qualified name of the nested type
    message: Optional["SchemaDescriptor"] = None

    @model_validator(mode="before")
    @classmethod
    def set_defaults(cls, data: Any) -> Any:
        if isinstance(data, dict):
            data = dict(data)
            if not data.get("json_name") and data.get("name"):
                data["json_name"] = lower_camel(data["name"])
            message = data.get("message")
            if message is not None and data.get("message_type") is None:
                data["message_type"] = message.full_name if isinstance(message, SchemaDescriptor) \
                    else message.get("full_name") or message.get("name")
        return data

    @model_validator(mode="after")
    def nested_needs_type(self) -> Self:
        if self.kind in NESTED_KINDS and self.message_type is None:
            raise ValueError(f"Field '{self.name}' of kind {self.kind.value} needs a message_type or message")
        return self


class SchemaDescriptor(BaseModel):
    """An ordered list of field descriptors for one record type"""

    model_config = ConfigDict(frozen=True)

    name: str
    full_name: str = ""
    fields: tuple[FieldDescriptor, ...] = ()

    @field_validator("fields")
    @classmethod
    def unique_names(cls, fields: tuple[FieldDescriptor, ...]) -> tuple[FieldDescriptor, ...]:
        seen: set[str] = set()
        for field in fields:
            if field.name in seen:
                raise ValueError(f"Duplicate field name: {field.name}")
            seen.add(field.name)
        return fields

    @model_validator(mode="before")
    @classmethod
    def default_full_name(cls, data: Any) -> Any:
        if isinstance(data, dict) and not data.get("full_name") and data.get("name"):
            data = {**data, "full_name": data["name"]}
        return data


######################## MAPPINGS #########################


class IndexFieldKind(str, Enum):
    """The elasticsearch field types we generate. Values are the elastic type names."""

    DOUBLE = "double"
    FLOAT = "float"
    LONG = "long"
    INTEGER = "integer"
    BOOLEAN = "boolean"
    KEYWORD = "keyword"
    TEXT = "text"
    DATE = "date"
    GEO_SHAPE = "geo_shape"
    NESTED = "nested"
    CUSTOM = "custom"  # anything we cannot resolve


class MappingNode(BaseModel):
    """
    A (projected or live) mapping tree. Only nested nodes have properties.
    The root node is a nested node with strict=True.
    """

    model_config = ConfigDict(frozen=True)

    kind: IndexFieldKind
    properties: dict[str, "MappingNode"] = Field(default_factory=dict)
    strict: bool = False
    format: str | None = None


class PathedDifference(BaseModel):
    model_config = ConfigDict(frozen=True)

    path: tuple[str, ...]
    kind: Literal["missing_on_candidate", "missing_on_reference", "kind_mismatch"]
    reference: IndexFieldKind | None = None
    candidate: IndexFieldKind | None = None

    @property
    def dotted(self) -> str:
        return ".".join(self.path)

    def __str__(self) -> str:
        if self.kind == "kind_mismatch":
            return f"{self.dotted}: {self.reference.value if self.reference else None} != " \
                   f"{self.candidate.value if self.candidate else None}"
        return f"{self.dotted}: {self.kind.replace('_', ' ')}"


######################## ALIASES AND OUTCOMES #########################


class AliasActionKind(str, Enum):
    ADD = "add"
    REMOVE = "remove"
    REMOVE_INDEX = "remove_index"


class AliasAction(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: AliasActionKind
    indices: tuple[str, ...]
    alias: str | None = None

    @model_validator(mode="after")
    def alias_required(self) -> Self:
        if self.kind != AliasActionKind.REMOVE_INDEX and not self.alias:
            raise ValueError(f"Alias action {self.kind.value} needs an alias")
        if not self.indices:
            raise ValueError("Alias action needs at least one index")
        return self

    def to_elastic(self) -> dict:
        body: dict = {"indices": list(self.indices)}
        if self.kind != AliasActionKind.REMOVE_INDEX:
            body["alias"] = self.alias
        return {self.kind.value: body}


class Outcome(str, Enum):
    CREATED = "created"  # index and alias did not exist
    UNCHANGED = "unchanged"  # live mapping already matched
    UPDATED = "updated"  # fields were added to the live mapping in place
    REINDEXED = "reindexed"  # documents were copied into a new index behind the alias


FieldDescriptor.model_rebuild()
SchemaDescriptor.model_rebuild()
MappingNode.model_rebuild()
