"""
esbootstrap: keep elasticsearch index mappings in line with the schemas of the resources stored in them
"""

from esbootstrap.comparator import compare
from esbootstrap.models import FieldDescriptor, IndexFieldKind, MappingNode, Outcome, PrimitiveKind, SchemaDescriptor
from esbootstrap.orchestrator import IndexBootstrapper, bootstrap
from esbootstrap.projector import project
from esbootstrap.resource import LogicalResource
from esbootstrap.schema import schema_from_model

__all__ = [
    "FieldDescriptor",
    "IndexBootstrapper",
    "IndexFieldKind",
    "LogicalResource",
    "MappingNode",
    "Outcome",
    "PrimitiveKind",
    "SchemaDescriptor",
    "bootstrap",
    "compare",
    "project",
    "schema_from_model",
]
