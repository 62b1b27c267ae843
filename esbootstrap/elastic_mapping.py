"""
Conversion between MappingNode trees and the json mappings elasticsearch uses.

Every leaf field is indexed, numeric and shape fields coerce their input, and object levels are
strict (use nested fields for structures, as repeated messages are arrays of objects).
"""

from typing import Any, Dict, Literal, TypedDict, Union

from typing_extensions import NotRequired

from esbootstrap.models import IndexFieldKind, MappingNode

ElasticType = Literal[
    "double",
    "float",
    "long",
    "integer",
    "boolean",
    "keyword",
    "text",
    "date",
    "geo_shape",
    "nested",
]


class ElasticField(TypedDict):
    type: ElasticType
    index: NotRequired[bool]
    coerce: NotRequired[bool]
    format: NotRequired[str]


class ElasticNestedField(TypedDict):
    type: Literal["nested"]
    dynamic: Literal["strict"]
    properties: Dict[str, Union["ElasticField", "ElasticNestedField"]]


ElasticMappingProperties = Dict[str, ElasticField | ElasticNestedField]


class ElasticMapping(TypedDict):
    dynamic: Literal["strict"]
    properties: ElasticMappingProperties


_COERCED = frozenset({IndexFieldKind.DOUBLE, IndexFieldKind.FLOAT, IndexFieldKind.LONG, IndexFieldKind.INTEGER})
_KINDS = {kind.value: kind for kind in IndexFieldKind if kind != IndexFieldKind.CUSTOM}


def to_elastic(mapping: MappingNode) -> ElasticMapping:
    """Convert a (root) mapping node to the body for create index / put mapping"""
    return {"dynamic": "strict", "properties": elastic_properties(mapping)}


def elastic_properties(mapping: MappingNode) -> ElasticMappingProperties:
    return {name: _field_to_elastic(name, node) for name, node in mapping.properties.items()}


def _field_to_elastic(name: str, node: MappingNode) -> ElasticField | ElasticNestedField:
    if node.kind == IndexFieldKind.NESTED:
        return {"type": "nested", "dynamic": "strict", "properties": elastic_properties(node)}
    if node.kind == IndexFieldKind.CUSTOM:
        raise ValueError(f"Field {name!r} has no elastic type, cannot create a mapping for it")

    field: ElasticField = {"type": node.kind.value}  # type: ignore[typeddict-item]
    if node.kind == IndexFieldKind.GEO_SHAPE:
        field["coerce"] = True
        return field
    field["index"] = True
    if node.kind in _COERCED:
        field["coerce"] = True
    if node.format is not None:
        field["format"] = node.format
    return field


def from_elastic(mappings: dict[str, Any]) -> MappingNode:
    """
    Parse the "mappings" part of a get mapping response.
    Types we never generate (object, flattened, ...) are parsed as CUSTOM so they compare as different.
    """
    return MappingNode(
        kind=IndexFieldKind.NESTED,
        properties=_properties_from_elastic(mappings.get("properties", {})),
        strict=str(mappings.get("dynamic", "true")).lower() == "strict",
    )


def _properties_from_elastic(properties: dict[str, Any]) -> dict[str, MappingNode]:
    result: dict[str, MappingNode] = {}
    for name, field in properties.items():
        # object fields do not have an explicit type in get mapping responses
        kind = _KINDS.get(field.get("type", "object"), IndexFieldKind.CUSTOM)
        if kind == IndexFieldKind.NESTED:
            result[name] = MappingNode(kind=kind, properties=_properties_from_elastic(field.get("properties", {})))
        else:
            result[name] = MappingNode(kind=kind, format=field.get("format"))
    return result
