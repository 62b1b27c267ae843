"""
Projects a SchemaDescriptor onto an elasticsearch mapping tree.

The field type is resolved by an ordered table of (predicate, kind) rules; the first rule that
matches wins. Message fields that are not a well-known geometry or timestamp type become nested
fields, and we recurse into their descriptor. Repeated fields are projected exactly like singular ones.

Every mapping we produce is strict: documents with undeclared fields are rejected, so schema drift
shows up as an error instead of as a silently added dynamic field.
"""

import logging
from typing import Callable, Iterable, NamedTuple

from esbootstrap.models import (
    NESTED_KINDS,
    FieldDescriptor,
    IndexFieldKind,
    MappingNode,
    PrimitiveKind,
    SchemaDescriptor,
)

DATE_FORMAT = "strict_date_optional_time||epoch_second"

GEOMETRY_TYPES = frozenset({"geo.Data"})
TIMESTAMP_TYPES = frozenset({"google.protobuf.Timestamp"})

_LONG_KINDS = frozenset(
    {PrimitiveKind.INT64, PrimitiveKind.UINT64, PrimitiveKind.SINT64, PrimitiveKind.FIXED64, PrimitiveKind.SFIXED64}
)
_INTEGER_KINDS = frozenset(
    {PrimitiveKind.INT32, PrimitiveKind.UINT32, PrimitiveKind.SINT32, PrimitiveKind.FIXED32, PrimitiveKind.SFIXED32}
)


class Rule(NamedTuple):
    matches: Callable[[FieldDescriptor], bool]
    kind: IndexFieldKind


def _is(*kinds: PrimitiveKind) -> Callable[[FieldDescriptor], bool]:
    return lambda field: field.kind in kinds


def _string_named(test: Callable[[str], bool]) -> Callable[[FieldDescriptor], bool]:
    return lambda field: field.kind == PrimitiveKind.STRING and test(field.json_name.lower())


def _message_of(types: Iterable[str]) -> Callable[[FieldDescriptor], bool]:
    types = frozenset(types)
    return lambda field: field.kind in NESTED_KINDS and field.message_type in types


def field_rules(
    geometry_types: Iterable[str] = GEOMETRY_TYPES,
    timestamp_types: Iterable[str] = TIMESTAMP_TYPES,
) -> tuple[Rule, ...]:
    """Build the rule table. Order matters: the first matching rule decides the type."""
    return (
        Rule(_is(PrimitiveKind.DOUBLE), IndexFieldKind.DOUBLE),
        Rule(_is(PrimitiveKind.FLOAT), IndexFieldKind.FLOAT),
        Rule(_is(*_LONG_KINDS), IndexFieldKind.LONG),
        Rule(_is(*_INTEGER_KINDS), IndexFieldKind.INTEGER),
        Rule(_is(PrimitiveKind.BOOL), IndexFieldKind.BOOLEAN),
        # wkt centroids are stored as strings, but should be searchable as shapes
        Rule(_string_named(lambda name: "centroid" in name), IndexFieldKind.GEO_SHAPE),
        Rule(_string_named(lambda name: name == "id"), IndexFieldKind.TEXT),
        Rule(_is(PrimitiveKind.STRING), IndexFieldKind.KEYWORD),
        Rule(_is(PrimitiveKind.ENUM), IndexFieldKind.KEYWORD),
        Rule(_is(PrimitiveKind.BYTES), IndexFieldKind.TEXT),
        Rule(_message_of(geometry_types), IndexFieldKind.GEO_SHAPE),
        Rule(_message_of(timestamp_types), IndexFieldKind.DATE),
        Rule(_is(*NESTED_KINDS), IndexFieldKind.NESTED),
    )


DEFAULT_RULES = field_rules()


def resolve_kind(field: FieldDescriptor, rules: tuple[Rule, ...] = DEFAULT_RULES) -> IndexFieldKind:
    for rule in rules:
        if rule.matches(field):
            return rule.kind
    logging.error(f"Cannot resolve an elastic type for field {field.name!r} of kind {field.kind.value}")
    return IndexFieldKind.CUSTOM


def project(schema: SchemaDescriptor, rules: tuple[Rule, ...] = DEFAULT_RULES) -> MappingNode:
    """Project the schema onto a strict mapping"""
    return MappingNode(kind=IndexFieldKind.NESTED, properties=_project_fields(schema, rules), strict=True)


def _project_fields(schema: SchemaDescriptor, rules: tuple[Rule, ...]) -> dict[str, MappingNode]:
    properties: dict[str, MappingNode] = {}
    for field in schema.fields:
        properties[field.name] = _project_field(field, rules)
    return properties


def _project_field(field: FieldDescriptor, rules: tuple[Rule, ...]) -> MappingNode:
    kind = resolve_kind(field, rules)
    if kind == IndexFieldKind.NESTED:
        if field.message is None:
            logging.error(f"Nested field {field.name!r} ({field.message_type}) has no descriptor, mapping it empty")
            return MappingNode(kind=kind)
        return MappingNode(kind=kind, properties=_project_fields(field.message, rules))
    if kind == IndexFieldKind.DATE:
        return MappingNode(kind=kind, format=DATE_FORMAT)
    return MappingNode(kind=kind)
