"""
esbootstrap: create or migrate the elasticsearch indices of a service's resources
"""

import argparse
import importlib
import json
import logging
import sys

from pydantic import BaseModel

from esbootstrap.config import ENV_PREFIX, get_settings
from esbootstrap.elastic_mapping import to_elastic
from esbootstrap.errors import BootstrapError
from esbootstrap.models import SchemaDescriptor
from esbootstrap.orchestrator import bootstrap
from esbootstrap.projector import field_rules
from esbootstrap.resource import LogicalResource
from esbootstrap.schema import schema_from_model


def import_model(target: str) -> type[BaseModel]:
    """Import a pydantic model given as package.module:ClassName"""
    module_name, _, class_name = target.partition(":")
    if not module_name or not class_name:
        raise argparse.ArgumentTypeError(f"Expected package.module:ClassName, got {target!r}")
    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise argparse.ArgumentTypeError(f"Cannot import {module_name}: {e}")
    model = getattr(module, class_name, None)
    if not (isinstance(model, type) and issubclass(model, BaseModel)):
        raise argparse.ArgumentTypeError(f"{target} is not a pydantic model")
    return model


def _schemas(args) -> list[SchemaDescriptor]:
    return [schema_from_model(model) for model in args.models]


def run_bootstrap(args):
    schemas = _schemas(args)
    try:
        outcomes = bootstrap(*schemas, max_workers=args.workers)
    except BootstrapError as e:
        logging.error(f"Bootstrap failed: {e}")
        sys.exit(1)
    for alias, outcome in outcomes.items():
        print(f"{alias}: {outcome.value}")


def show_mapping(args):
    settings = get_settings()
    rules = field_rules(settings.geometry_types, settings.timestamp_types)
    result = {}
    for schema in _schemas(args):
        resource = LogicalResource.from_schema(schema, rules)
        result[resource.name] = dict(
            alias=resource.alias,
            index=resource.index_name,
            script=resource.script_key,
            mappings=to_elastic(resource.mapping),
        )
    print(json.dumps(result, indent=2))


def show_config(_args):
    settings = get_settings()
    print(f"# Settings read from environment and {settings.env_file}")
    for fieldname, fieldinfo in type(settings).model_fields.items():
        if doc := fieldinfo.description:
            print(f"# {doc}")
        value = getattr(settings, fieldname)
        if isinstance(value, list):
            value = json.dumps(value)
        print(f"{ENV_PREFIX}{fieldname}={'' if value is None else value}\n")


def main():
    parser = argparse.ArgumentParser(description=__doc__, prog="python -m esbootstrap")

    subparsers = parser.add_subparsers(dest="action", title="action", help="Action to perform:", required=True)
    p = subparsers.add_parser("bootstrap", help="Create or migrate the indices of the given models")
    p.add_argument("models", nargs="+", type=import_model, help="Pydantic models, as package.module:ClassName")
    p.add_argument("-w", "--workers", type=int, default=1, help="Number of resources to bootstrap in parallel")
    p.set_defaults(func=run_bootstrap)

    p = subparsers.add_parser("mapping", help="Print the index name and mapping of the given models")
    p.add_argument("models", nargs="+", type=import_model, help="Pydantic models, as package.module:ClassName")
    p.set_defaults(func=show_mapping)

    p = subparsers.add_parser("config", help="Print the current settings")
    p.set_defaults(func=show_config)

    args = parser.parse_args()

    logging.basicConfig(format="[%(levelname)-7s:%(name)-15s] %(message)s", level=logging.INFO)
    es_logger = logging.getLogger("elasticsearch")
    es_logger.setLevel(logging.WARNING)

    args.func(args)


if __name__ == "__main__":
    main()
