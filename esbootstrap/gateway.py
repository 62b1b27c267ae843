"""
Gateway to the elasticsearch cluster: every index, alias and mapping operation the bootstrapper needs.

Each call either returns its result or raises:
- GatewayError if the call did not succeed (connection problems, timeouts, error responses)
- ClusterRejection if the cluster answered but did not do what we asked (acknowledged=false,
  reindex with failures or timed out)

Nothing is cached: every call goes to the cluster.

"Freezing" an index means putting a write block on it. The cluster only clones read-only indices,
so the source of a clone needs to be frozen first.
"""

import logging
from typing import Any, Callable, Iterable, TypeVar

from elasticsearch import ApiError, Elasticsearch, NotFoundError, TransportError

from esbootstrap.elastic_mapping import elastic_properties, from_elastic, to_elastic
from esbootstrap.errors import ClusterRejection, GatewayError
from esbootstrap.models import AliasAction, MappingNode

T = TypeVar("T")


def _body(response: Any) -> Any:
    return getattr(response, "body", response)


class ElasticGateway:
    def __init__(self, elastic: Elasticsearch):
        self.elastic = elastic

    def _call(self, operation: str, fn: Callable[[], T], **identifiers: str | None) -> T:
        try:
            return fn()
        except (ApiError, TransportError) as e:
            error = GatewayError(operation, str(e), **identifiers)
            logging.error(str(error), exc_info=True)
            raise error from e

    def _acknowledged(self, operation: str, response: Any, **identifiers: str | None) -> None:
        if not _body(response).get("acknowledged", False):
            error = ClusterRejection(operation, "request was not acknowledged", **identifiers)
            logging.warning(str(error))
            raise error
        logging.info(f"{operation} acknowledged: " + ", ".join(f"{k}={v}" for k, v in identifiers.items()))

    def _timed(self, timeout: int | None) -> Elasticsearch:
        # Make sure the client does not give up before the cluster does
        return self.elastic.options(request_timeout=timeout + 30) if timeout else self.elastic

    def alias_exists(self, alias: str) -> bool:
        return bool(self._call("alias_exists", lambda: self.elastic.indices.exists_alias(name=alias), alias=alias))

    def index_exists(self, index: str) -> bool:
        return bool(self._call("index_exists", lambda: self.elastic.indices.exists(index=index), index=index))

    def create_index(self, index: str, mapping: MappingNode, shards: int, replicas: int) -> None:
        response = self._call(
            "create_index",
            lambda: self.elastic.indices.create(
                index=index,
                mappings=to_elastic(mapping),
                settings={"number_of_shards": shards, "number_of_replicas": replicas},
            ),
            index=index,
        )
        self._acknowledged("create_index", response, index=index)

    def delete_index(self, index: str) -> None:
        response = self._call("delete_index", lambda: self.elastic.indices.delete(index=index), index=index)
        self._acknowledged("delete_index", response, index=index)

    def clone_index(self, source: str, target: str, timeout: int | None = None) -> None:
        response = self._call(
            "clone_index",
            lambda: self._timed(timeout).indices.clone(
                index=source, target=target, timeout=f"{timeout}s" if timeout else None
            ),
            source=source,
            target=target,
        )
        self._acknowledged("clone_index", response, source=source, target=target)

    def freeze_index(self, index: str, timeout: int | None = None) -> None:
        response = self._call(
            "freeze_index",
            lambda: self._timed(timeout).indices.add_block(
                index=index, block="write", timeout=f"{timeout}s" if timeout else None
            ),
            index=index,
        )
        self._acknowledged("freeze_index", response, index=index)

    def unfreeze_index(self, index: str, timeout: int | None = None) -> None:
        response = self._call(
            "unfreeze_index",
            lambda: self._timed(timeout).indices.put_settings(
                index=index, settings={"index.blocks.write": False}, timeout=f"{timeout}s" if timeout else None
            ),
            index=index,
        )
        self._acknowledged("unfreeze_index", response, index=index)

    def get_mapping(self, alias: str) -> dict[str, MappingNode]:
        """Get the live mapping of every index behind the alias (or of the index with that name)"""
        response = self._call("get_mapping", lambda: self.elastic.indices.get_mapping(index=alias), alias=alias)
        return {index: from_elastic(body.get("mappings", {})) for index, body in _body(response).items()}

    def put_mapping_additive(self, alias: str, mapping: MappingNode) -> None:
        """
        Put the properties of the mapping on the indices behind the alias.
        Elastic only accepts this if it only adds fields; changing the type of a field is rejected.
        """
        response = self._call(
            "put_mapping",
            lambda: self.elastic.indices.put_mapping(
                index=alias, properties=elastic_properties(mapping), dynamic="strict"
            ),
            alias=alias,
        )
        self._acknowledged("put_mapping", response, alias=alias)

    def update_aliases(self, actions: Iterable[AliasAction]) -> None:
        actions = list(actions)
        description = "; ".join(f"{a.kind.value} {','.join(a.indices)} {a.alias or ''}".strip() for a in actions)
        response = self._call(
            "update_aliases",
            lambda: self.elastic.indices.update_aliases(actions=[a.to_elastic() for a in actions]),
            actions=description,
        )
        self._acknowledged("update_aliases", response, actions=description)

    def get_indices_for_alias(self, alias: str) -> list[str]:
        try:
            response = self.elastic.indices.get_alias(name=alias)
        except NotFoundError:
            return []
        except (ApiError, TransportError) as e:
            error = GatewayError("get_indices_for_alias", str(e), alias=alias)
            logging.error(str(error), exc_info=True)
            raise error from e
        return sorted(_body(response).keys())

    def reindex(self, source: str, dest: str, script: str | None = None, timeout: int | None = None) -> dict:
        """Copy all documents from source into dest, optionally transformed by a painless script. Blocks."""
        kwargs: dict[str, Any] = dict(
            source={"index": source},
            dest={"index": dest},
            refresh=True,
            wait_for_completion=True,
        )
        if script is not None:
            kwargs["script"] = {"source": script, "lang": "painless"}
        if timeout:
            kwargs["timeout"] = f"{timeout}s"
        response = _body(
            self._call("reindex", lambda: self._timed(timeout).reindex(**kwargs), source=source, dest=dest)
        )
        if response.get("timed_out") or response.get("failures"):
            failures = response.get("failures") or []
            reason = f"timed out after {timeout}s" if response.get("timed_out") else f"{len(failures)} failures"
            if failures:
                reason += f", first failure: {failures[0].get('cause', failures[0])}"
            error = ClusterRejection("reindex", reason, source=source, dest=dest)
            logging.warning(str(error))
            raise error
        logging.info(
            f"Reindexed {source} into {dest}: {response.get('created', 0)} created, "
            f"{response.get('updated', 0)} updated, took {response.get('took')}ms"
        )
        return response

    def cluster_health(self) -> dict:
        return _body(self._call("cluster_health", lambda: self.elastic.cluster.health()))
