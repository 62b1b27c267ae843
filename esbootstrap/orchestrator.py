"""
Bootstrapping of resource indices.

This is the main entry point. Call bootstrap() at startup with the schemas of all resources a service
uses; for each resource it makes sure that the index behind its alias has a mapping that matches the
schema:

1. If the alias does not exist, create the index and point the alias at it. An index with that name left
   by an earlier run is reused if its mapping matches the schema.
2. If the live mapping (via the alias) matches the projected mapping, there is nothing to do.
3. Otherwise try to add the new fields to the live mapping in place. If the live mapping then matches, done.
4. Otherwise do a full reindex:
   a. If an index with the new index name already exists (same field names, e.g. only a type changed,
      or a previous attempt that failed halfway), move it out of the way: freeze it, clone it to
      <index>_temp (deleting a copy left by an earlier reindex), point the alias at the clone instead,
      and delete it.
   b. Create the new index, and reindex the documents from the alias into it (optionally transformed by a
      painless script from the script repository).
   c. Point the alias at the new index, and remove it from the previous indices. These are two calls;
      if the second one fails, the alias points at both and the next bootstrap cleans it up.
   d. Check the live mapping again. If it still doesn't match, we fail.

Every decision is made on a fresh read of the cluster, so it is safe to re-run bootstrap after any
failure. Failures are fatal (ReconciliationError): we would rather not start than serve from an index
with a mapping that does not match the schema. Only the in-place update may fail, after which we
fall through to the full reindex. Destructive steps are never retried.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, NamedTuple, TypeVar

from esbootstrap.comparator import compare
from esbootstrap.config import Settings, get_settings
from esbootstrap.elastic_connection import elastic_connection
from esbootstrap.errors import BootstrapError, GatewayError, ReconciliationError
from esbootstrap.events import EventSink, log_event
from esbootstrap.gateway import ElasticGateway
from esbootstrap.models import AliasAction, AliasActionKind, MappingNode, Outcome, PathedDifference, SchemaDescriptor
from esbootstrap.projector import DEFAULT_RULES, Rule, field_rules
from esbootstrap.resource import LogicalResource
from esbootstrap.scripts import ScriptRepository

T = TypeVar("T")


class Timeouts(NamedTuple):
    """Seconds to wait for the long running operations"""

    clone: int = 600
    freeze: int = 120
    unfreeze: int = 60
    reindex: int = 600


class IndexBootstrapper:
    def __init__(
        self,
        gateway: ElasticGateway,
        scripts: ScriptRepository | None = None,
        events: EventSink = log_event,
        rules: tuple[Rule, ...] = DEFAULT_RULES,
        shards: int = 3,
        timeouts: Timeouts = Timeouts(),
    ):
        self.gateway = gateway
        self.scripts = scripts
        self.events = events
        self.rules = rules
        self.shards = shards
        self.timeouts = timeouts
        # We want one replica less than the number of data nodes, so every node has a copy
        health = gateway.cluster_health()
        self.replicas = max(int(health.get("number_of_data_nodes", 1)) - 1, 0)

    @classmethod
    def from_settings(cls, settings: Settings | None = None, events: EventSink = log_event) -> "IndexBootstrapper":
        settings = settings or get_settings()
        return cls(
            ElasticGateway(elastic_connection()),
            scripts=ScriptRepository(settings.scripts_dir),
            events=events,
            rules=field_rules(settings.geometry_types, settings.timestamp_types),
            shards=settings.number_of_shards,
            timeouts=Timeouts(
                clone=settings.clone_timeout,
                freeze=settings.freeze_timeout,
                unfreeze=settings.unfreeze_timeout,
                reindex=settings.reindex_timeout,
            ),
        )

    ######################## ENTRY POINTS #########################

    def bootstrap(self, *schemas: SchemaDescriptor, max_workers: int = 1) -> dict[str, Outcome]:
        """
        Reconcile the index of every resource with its schema, returning the outcome per alias.
        With max_workers > 1, resources are reconciled in parallel (each resource on its own thread).
        A failing resource does not stop the others: every resource is attempted, and the first failure
        (in the order of the schemas) is raised once all of them have finished.
        """
        if max_workers <= 1 or len(schemas) <= 1:
            results = [self._attempt(schema) for schema in schemas]
        else:
            with ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="esbootstrap") as pool:
                results = list(pool.map(self._attempt, schemas))
        outcomes: dict[str, Outcome] = {}
        failures: list[BootstrapError] = []
        for result in results:
            if isinstance(result, BootstrapError):
                failures.append(result)
            else:
                alias, outcome = result
                outcomes[alias] = outcome
        if failures:
            raise failures[0]
        return outcomes

    def _attempt(self, schema: SchemaDescriptor) -> tuple[str, Outcome] | BootstrapError:
        resource = self.resource(schema)
        try:
            return resource.alias, self.reconcile_resource(resource)
        except BootstrapError as e:
            return e

    def resource(self, schema: SchemaDescriptor) -> LogicalResource:
        return LogicalResource.from_schema(schema, self.rules)

    def reconcile(self, schema: SchemaDescriptor) -> Outcome:
        return self.reconcile_resource(self.resource(schema))

    def reconcile_resource(self, resource: LogicalResource) -> Outcome:
        self._emit("reconcile_started", resource)
        try:
            outcome = self._reconcile(resource)
        except ReconciliationError as e:
            self._emit("reconcile_failed", resource, step=e.step, error=str(e))
            raise
        self._emit("reconcile_done", resource, outcome=outcome.value)
        return outcome

    ######################## STATE MACHINE #########################

    def _reconcile(self, resource: LogicalResource) -> Outcome:
        alias = resource.alias

        if not self._step(resource, "alias_exists", lambda: self.gateway.alias_exists(alias)):
            self._create(resource)
            return Outcome.CREATED

        equal, members, _ = self._check_mapping(resource, "compare_mapping")
        if equal:
            self._prune_alias(resource, members)
            return Outcome.UNCHANGED

        if self._additive_update(resource):
            return Outcome.UPDATED

        self._full_reindex(resource)
        return Outcome.REINDEXED

    def _create(self, resource: LogicalResource) -> None:
        index = resource.index_name
        if self._step(resource, "index_exists", lambda: self.gateway.index_exists(index)):
            # An earlier run created the index but failed to add the alias
            self._reuse_index(resource)
        else:
            self._step(
                resource,
                "create_index",
                lambda: self.gateway.create_index(index, resource.mapping, self.shards, self.replicas),
            )
            self._emit("index_created", resource, shards=self.shards, replicas=self.replicas)
        self._step(resource, "add_alias", lambda: self.gateway.update_aliases([self._add(resource, index)]))
        self._emit("alias_added", resource, target=index)

    def _reuse_index(self, resource: LogicalResource) -> None:
        """
        Check that an existing index without alias has the projected mapping, so the alias can be put on it.
        If it does not, we refuse to touch it: it may hold documents we know nothing about.
        """
        alias, index = resource.alias, resource.index_name
        live = self._step(resource, "reuse_index", lambda: self.gateway.get_mapping(index))
        mapping = live.get(index)
        if mapping is None:
            raise ReconciliationError("existing index returned no mapping", alias, index, "reuse_index")
        equal, differences = compare(mapping, resource.mapping)
        if not equal:
            self._emit("mapping_mismatch", resource, differences=_describe(differences))
            raise ReconciliationError(
                "index exists without alias and its mapping does not match the schema",
                alias,
                index,
                "reuse_index",
                differences,
            )
        self._emit("index_reused", resource)

    def _additive_update(self, resource: LogicalResource) -> bool:
        try:
            self.gateway.put_mapping_additive(resource.alias, resource.mapping)
        except GatewayError as e:
            self._emit("additive_update_failed", resource, error=str(e))
            return False
        equal, _, differences = self._check_mapping(resource, "verify_additive_update")
        if not equal:
            self._emit("additive_update_incomplete", resource, differences=_describe(differences))
            return False
        self._emit("mapping_updated", resource)
        return True

    def _full_reindex(self, resource: LogicalResource) -> None:
        alias, index = resource.alias, resource.index_name
        self._emit("full_reindex_started", resource)

        if self._step(resource, "index_exists", lambda: self.gateway.index_exists(index)):
            self._prepare_reindex(resource)

        self._step(
            resource,
            "create_index",
            lambda: self.gateway.create_index(index, resource.mapping, self.shards, self.replicas),
        )
        self._emit("index_created", resource, shards=self.shards, replicas=self.replicas)

        script = self._step(resource, "load_script", lambda: self._script(resource))
        response = self._step(
            resource,
            "reindex",
            lambda: self.gateway.reindex(alias, index, script, self.timeouts.reindex),
        )
        self._emit("reindexed", resource, source=alias, script=script is not None, created=response.get("created"))

        self._swap_alias(resource)

        equal, _, differences = self._check_mapping(resource, "verify_reindex")
        if not equal:
            self._emit("mapping_mismatch", resource, differences=_describe(differences))
            raise ReconciliationError(
                "live mapping does not match the schema after reindex", alias, index, "verify_reindex", differences
            )

    def _prepare_reindex(self, resource: LogicalResource) -> None:
        """
        An index with the target name exists. Copy it to <index>_temp, let the alias serve from the copy,
        and delete it so the name is free. Any failure here leaves the cluster in a state that needs a human.

        A <index>_temp left by an earlier reindex is deleted first, unless the alias serves from it: then an
        earlier attempt already made the copy, and only the index itself still has to go.
        """
        alias, index, temp = resource.alias, resource.index_name, resource.temp_index_name
        step = "prepare_reindex"
        self._emit("prepare_reindex_started", resource, temp=temp)
        try:
            serving_from_temp = False
            if self.gateway.index_exists(temp):
                serving_from_temp = temp in self.gateway.get_indices_for_alias(alias)
                if not serving_from_temp:
                    self.gateway.delete_index(temp)
                    self._emit("temp_index_deleted", resource, temp=temp)
            if not serving_from_temp:
                self.gateway.freeze_index(index, self.timeouts.freeze)
                try:
                    self.gateway.clone_index(index, temp, self.timeouts.clone)
                except GatewayError:
                    self._unfreeze_quietly(resource, index)
                    raise
                # the clone inherits the write block of its source
                self.gateway.unfreeze_index(temp, self.timeouts.unfreeze)
                self.gateway.update_aliases([self._add(resource, temp)])
            if index in self.gateway.get_indices_for_alias(alias):
                self.gateway.update_aliases([self._remove(resource, [index])])
            self.gateway.delete_index(index)
        except GatewayError as e:
            self._emit("prepare_reindex_failed", resource, temp=temp, error=str(e))
            raise ReconciliationError(
                f"could not move existing index to {temp}: {e}. The cluster needs to be checked manually",
                alias,
                index,
                step,
            ) from e
        self._emit("prepare_reindex_done", resource, temp=temp)

    def _unfreeze_quietly(self, resource: LogicalResource, index: str) -> None:
        try:
            self.gateway.unfreeze_index(index, self.timeouts.unfreeze)
        except GatewayError as e:
            self._emit("unfreeze_failed", resource, target=index, error=str(e))

    def _swap_alias(self, resource: LogicalResource) -> None:
        alias, index = resource.alias, resource.index_name
        previous = [
            name
            for name in self._step(resource, "swap_alias", lambda: self.gateway.get_indices_for_alias(alias))
            if name != index
        ]
        self._step(resource, "swap_alias", lambda: self.gateway.update_aliases([self._add(resource, index)]))
        self._emit("alias_added", resource, target=index)
        if not previous:
            return
        try:
            self.gateway.update_aliases([self._remove(resource, previous)])
        except GatewayError as e:
            # The alias now points at the old and the new index. The next bootstrap removes the old ones.
            self._emit("alias_swap_incomplete", resource, previous=",".join(previous), error=str(e))
            return
        self._emit("alias_removed", resource, previous=",".join(previous))

    def _prune_alias(self, resource: LogicalResource, members: list[str]) -> None:
        """Remove stale indices from an alias that also points at the current index (left by an incomplete swap)"""
        stale = [name for name in members if name != resource.index_name]
        if not stale or resource.index_name not in members:
            return
        self._step(resource, "prune_alias", lambda: self.gateway.update_aliases([self._remove(resource, stale)]))
        self._emit("alias_removed", resource, previous=",".join(stale))

    ######################## HELPERS #########################

    def _check_mapping(self, resource: LogicalResource, step: str) -> tuple[bool, list[str], list[PathedDifference]]:
        """
        Compare the live mapping behind the alias with the projected mapping.
        If the alias points at multiple indices, we look at the current index name if it is one of them.
        """
        alias = resource.alias
        members = self._step(resource, step, lambda: self.gateway.get_indices_for_alias(alias))
        live = self._step(resource, step, lambda: self.gateway.get_mapping(alias))
        if not live:
            raise ReconciliationError("alias exists but no mapping was returned", alias, resource.index_name, step)
        if len(live) > 1:
            self._emit("alias_multiple_indices", resource, members=",".join(sorted(live)))
        mapping: MappingNode = live.get(resource.index_name) or live[sorted(live)[0]]
        equal, differences = compare(mapping, resource.mapping)
        self._emit("mapping_compared", resource, step=step, equal=equal, differences=_describe(differences))
        return equal, members, differences

    def _script(self, resource: LogicalResource) -> str | None:
        return self.scripts.get(resource.script_key) if self.scripts is not None else None

    def _step(self, resource: LogicalResource, step: str, fn: Callable[[], T]) -> T:
        try:
            return fn()
        except BootstrapError as e:
            if isinstance(e, ReconciliationError):
                raise
            raise ReconciliationError(str(e), resource.alias, resource.index_name, step) from e

    @staticmethod
    def _add(resource: LogicalResource, index: str) -> AliasAction:
        return AliasAction(kind=AliasActionKind.ADD, indices=(index,), alias=resource.alias)

    @staticmethod
    def _remove(resource: LogicalResource, indices: list[str]) -> AliasAction:
        return AliasAction(kind=AliasActionKind.REMOVE, indices=tuple(indices), alias=resource.alias)

    def _emit(self, event: str, resource: LogicalResource, **attributes: Any) -> None:
        self.events(event, {"resource": resource.name, "alias": resource.alias, "index": resource.index_name,
                            **attributes})


def _describe(differences: list[PathedDifference]) -> str:
    return "; ".join(str(d) for d in differences)


def bootstrap(*schemas: SchemaDescriptor, max_workers: int = 1) -> dict[str, Outcome]:
    """Bootstrap the given resources on the cluster configured in the settings"""
    logging.info(f"Bootstrapping indices for {', '.join(s.name for s in schemas)}")
    return IndexBootstrapper.from_settings().bootstrap(*schemas, max_workers=max_workers)
