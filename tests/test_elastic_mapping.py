import pytest

from esbootstrap.elastic_mapping import from_elastic, to_elastic
from esbootstrap.models import FieldDescriptor, IndexFieldKind, MappingNode, PrimitiveKind
from esbootstrap.projector import DATE_FORMAT, project
from tests.tools import RISK_SCORE, mapping, schema


def test_to_elastic():
    assert to_elastic(project(RISK_SCORE)) == {
        "dynamic": "strict",
        "properties": {
            "id": {"type": "text", "index": True},
            "score": {"type": "integer", "index": True, "coerce": True},
        },
    }


def test_to_elastic_field_attributes():
    node = mapping(
        flag=IndexFieldKind.BOOLEAN,
        name=IndexFieldKind.KEYWORD,
        price=IndexFieldKind.DOUBLE,
        shape=IndexFieldKind.GEO_SHAPE,
        created=MappingNode(kind=IndexFieldKind.DATE, format=DATE_FORMAT),
        tags=MappingNode(kind=IndexFieldKind.NESTED, properties={"tag": MappingNode(kind=IndexFieldKind.KEYWORD)}),
    )
    assert to_elastic(node)["properties"] == {
        "flag": {"type": "boolean", "index": True},
        "name": {"type": "keyword", "index": True},
        "price": {"type": "double", "index": True, "coerce": True},
        "shape": {"type": "geo_shape", "coerce": True},
        "created": {"type": "date", "index": True, "format": DATE_FORMAT},
        "tags": {"type": "nested", "dynamic": "strict", "properties": {"tag": {"type": "keyword", "index": True}}},
    }


def test_to_elastic_custom_fails():
    with pytest.raises(ValueError, match="weird"):
        to_elastic(mapping(weird=IndexFieldKind.CUSTOM))


def test_from_elastic():
    live = from_elastic(
        {
            "dynamic": "strict",
            "properties": {
                "id": {"type": "text"},
                "created": {"type": "date", "format": "epoch_millis"},
                "address": {"type": "nested", "properties": {"city": {"type": "keyword"}}},
                "meta": {"properties": {"source": {"type": "keyword"}}},
                "labels": {"type": "flattened"},
            },
        }
    )
    assert live.strict
    assert live.properties["id"] == MappingNode(kind=IndexFieldKind.TEXT)
    assert live.properties["created"].format == "epoch_millis"
    assert live.properties["address"].properties == {"city": MappingNode(kind=IndexFieldKind.KEYWORD)}
    assert live.properties["meta"].kind == IndexFieldKind.CUSTOM
    assert live.properties["labels"].kind == IndexFieldKind.CUSTOM


def test_from_elastic_dynamic():
    assert not from_elastic({}).strict
    assert not from_elastic({"dynamic": True}).strict
    assert from_elastic({}).properties == {}


def test_created_mapping_reads_back_equal():
    nested = schema("Address", city=PrimitiveKind.STRING)
    resource = schema(
        "Person",
        id=PrimitiveKind.STRING,
        born=FieldDescriptor(name="born", kind=PrimitiveKind.MESSAGE, message_type="google.protobuf.Timestamp"),
        address=FieldDescriptor(name="address", kind=PrimitiveKind.MESSAGE, message=nested),
    )
    projected = project(resource)
    assert from_elastic(dict(to_elastic(projected))) == projected
