"""
Build SchemaDescriptors from pydantic models.

The projector only works on SchemaDescriptor values, so services can describe their resources in
whatever way they like. For services that model their resources as pydantic classes, this module
derives the descriptor from the model fields:

- str, bytes, bool, float and Enum fields map to the obvious primitive kinds
- int fields are 64 bit, unless annotated otherwise: Annotated[int, PrimitiveKind.INT32]
- datetime and date fields are timestamps
- pydantic model fields become nested messages (named by the __full_name__ class attribute if given)
- list, tuple, set and frozenset fields are repeated; Optional is ignored
"""

import datetime
import types
from enum import Enum
from typing import Any, Union, get_args, get_origin

from pydantic import BaseModel
from pydantic.fields import FieldInfo

from esbootstrap.models import FieldDescriptor, PrimitiveKind, SchemaDescriptor

TIMESTAMP_TYPE = "google.protobuf.Timestamp"

_REPEATED = (list, tuple, set, frozenset)
_SIMPLE: list[tuple[type, PrimitiveKind]] = [
    # bool before int, since bool is a subclass of int
    (bool, PrimitiveKind.BOOL),
    (int, PrimitiveKind.INT64),
    (float, PrimitiveKind.DOUBLE),
    (str, PrimitiveKind.STRING),
    (bytes, PrimitiveKind.BYTES),
]


def full_name(model: type[BaseModel]) -> str:
    return getattr(model, "__full_name__", None) or f"{model.__module__}.{model.__qualname__}"


def schema_from_model(model: type[BaseModel]) -> SchemaDescriptor:
    return _schema(model, ())


def _schema(model: type[BaseModel], parents: tuple[type, ...]) -> SchemaDescriptor:
    if model in parents:
        chain = " -> ".join(p.__name__ for p in parents + (model,))
        raise TypeError(f"Recursive models cannot be mapped: {chain}")
    fields = tuple(_field(name, info, parents + (model,)) for name, info in model.model_fields.items())
    return SchemaDescriptor(name=model.__name__, full_name=full_name(model), fields=fields)


def _unwrap(annotation: Any) -> tuple[Any, bool]:
    """Strip Optional and collection types, return the item type and whether the field is repeated"""
    repeated = False
    while True:
        origin = get_origin(annotation)
        if origin in (Union, types.UnionType):
            args = [a for a in get_args(annotation) if a is not type(None)]
            if len(args) != 1:
                raise TypeError(f"Union types cannot be mapped: {annotation}")
            annotation = args[0]
        elif origin in _REPEATED:
            if repeated:
                raise TypeError(f"Nested collections cannot be mapped: {annotation}")
            repeated = True
            args = [a for a in get_args(annotation) if a is not Ellipsis]
            annotation = args[0] if args else Any
        else:
            return annotation, repeated


def _field(name: str, info: FieldInfo, parents: tuple[type, ...]) -> FieldDescriptor:
    annotation, repeated = _unwrap(info.annotation)
    json_name = info.alias or name
    explicit = next((m for m in info.metadata if isinstance(m, PrimitiveKind)), None)

    if explicit is not None:
        return FieldDescriptor(name=name, json_name=json_name, kind=explicit, repeated=repeated)
    if isinstance(annotation, type):
        if issubclass(annotation, Enum):
            return FieldDescriptor(name=name, json_name=json_name, kind=PrimitiveKind.ENUM, repeated=repeated)
        if issubclass(annotation, (datetime.datetime, datetime.date)):
            return FieldDescriptor(
                name=name, json_name=json_name, kind=PrimitiveKind.MESSAGE, repeated=repeated,
                message_type=TIMESTAMP_TYPE,
            )
        if issubclass(annotation, BaseModel):
            return FieldDescriptor(
                name=name, json_name=json_name, kind=PrimitiveKind.MESSAGE, repeated=repeated,
                message=_schema(annotation, parents),
            )
        for python_type, kind in _SIMPLE:
            if issubclass(annotation, python_type):
                return FieldDescriptor(name=name, json_name=json_name, kind=kind, repeated=repeated)
    raise TypeError(f"Field {name!r} of {parents[-1].__name__} has a type that cannot be mapped: {annotation}")
