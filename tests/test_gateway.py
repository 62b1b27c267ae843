from unittest.mock import MagicMock

import pytest
from elasticsearch import ConnectionError as ElasticConnectionError
from elasticsearch import NotFoundError

from esbootstrap.elastic_mapping import to_elastic
from esbootstrap.errors import ClusterRejection, GatewayError
from esbootstrap.gateway import ElasticGateway
from esbootstrap.models import AliasAction, AliasActionKind, IndexFieldKind
from esbootstrap.projector import project
from tests.tools import RISK_SCORE

ACK = {"acknowledged": True}
NACK = {"acknowledged": False}


@pytest.fixture()
def gateway(elastic) -> ElasticGateway:
    return ElasticGateway(elastic)


def _not_found() -> NotFoundError:
    return NotFoundError("index_not_found_exception", MagicMock(status=404), {})


def test_exists(gateway, elastic):
    elastic.indices.exists_alias.return_value = True
    elastic.indices.exists.return_value = False
    assert gateway.alias_exists("risk_score") is True
    assert gateway.index_exists("risk_score-1") is False
    elastic.indices.exists_alias.assert_called_once_with(name="risk_score")
    elastic.indices.exists.assert_called_once_with(index="risk_score-1")


def test_create_index(gateway, elastic):
    mapping = project(RISK_SCORE)
    elastic.indices.create.return_value = ACK
    gateway.create_index("risk_score-1", mapping, shards=3, replicas=1)
    elastic.indices.create.assert_called_once_with(
        index="risk_score-1",
        mappings=to_elastic(mapping),
        settings={"number_of_shards": 3, "number_of_replicas": 1},
    )


def test_not_acknowledged(gateway, elastic):
    elastic.indices.create.return_value = NACK
    with pytest.raises(ClusterRejection) as e:
        gateway.create_index("risk_score-1", project(RISK_SCORE), shards=3, replicas=1)
    assert e.value.operation == "create_index"
    assert e.value.identifiers == {"index": "risk_score-1"}


def test_transport_error(gateway, elastic):
    elastic.indices.delete.side_effect = ElasticConnectionError("connection refused")
    with pytest.raises(GatewayError) as e:
        gateway.delete_index("risk_score-1")
    assert not isinstance(e.value, ClusterRejection)
    assert e.value.operation == "delete_index"
    assert "risk_score-1" in str(e.value)
    assert isinstance(e.value.__cause__, ElasticConnectionError)


def test_api_error(gateway, elastic):
    elastic.indices.get_mapping.side_effect = _not_found()
    with pytest.raises(GatewayError) as e:
        gateway.get_mapping("risk_score")
    assert e.value.identifiers == {"alias": "risk_score"}


def test_clone_freeze_unfreeze(gateway, elastic):
    elastic.indices.add_block.return_value = ACK
    elastic.indices.clone.return_value = ACK
    elastic.indices.put_settings.return_value = ACK
    gateway.freeze_index("risk_score-1", timeout=120)
    gateway.clone_index("risk_score-1", "risk_score-1_temp", timeout=600)
    gateway.unfreeze_index("risk_score-1_temp", timeout=60)
    elastic.indices.add_block.assert_called_once_with(index="risk_score-1", block="write", timeout="120s")
    elastic.indices.clone.assert_called_once_with(index="risk_score-1", target="risk_score-1_temp", timeout="600s")
    elastic.indices.put_settings.assert_called_once_with(
        index="risk_score-1_temp", settings={"index.blocks.write": False}, timeout="60s"
    )
    # the client waits longer than the cluster
    assert [c.kwargs["request_timeout"] for c in elastic.options.call_args_list] == [150, 630, 90]


def test_get_mapping(gateway, elastic):
    elastic.indices.get_mapping.return_value = {
        "risk_score-2": {"mappings": {"dynamic": "strict", "properties": {"score": {"type": "long"}}}},
        "risk_score-1": {"mappings": {"properties": {"score": {"type": "integer"}}}},
    }
    live = gateway.get_mapping("risk_score")
    assert live["risk_score-1"].properties["score"].kind == IndexFieldKind.INTEGER
    assert live["risk_score-2"].properties["score"].kind == IndexFieldKind.LONG
    assert live["risk_score-2"].strict and not live["risk_score-1"].strict


def test_put_mapping(gateway, elastic):
    mapping = project(RISK_SCORE)
    elastic.indices.put_mapping.return_value = ACK
    gateway.put_mapping_additive("risk_score", mapping)
    elastic.indices.put_mapping.assert_called_once_with(
        index="risk_score", properties=to_elastic(mapping)["properties"], dynamic="strict"
    )


def test_update_aliases(gateway, elastic):
    elastic.indices.update_aliases.return_value = ACK
    gateway.update_aliases(
        [
            AliasAction(kind=AliasActionKind.ADD, indices=("risk_score-2",), alias="risk_score"),
            AliasAction(kind=AliasActionKind.REMOVE, indices=("risk_score-0", "risk_score-1"), alias="risk_score"),
        ]
    )
    elastic.indices.update_aliases.assert_called_once_with(
        actions=[
            {"add": {"indices": ["risk_score-2"], "alias": "risk_score"}},
            {"remove": {"indices": ["risk_score-0", "risk_score-1"], "alias": "risk_score"}},
        ]
    )


def test_get_indices_for_alias(gateway, elastic):
    elastic.indices.get_alias.return_value = {"risk_score-2": {"aliases": {}}, "risk_score-1": {"aliases": {}}}
    assert gateway.get_indices_for_alias("risk_score") == ["risk_score-1", "risk_score-2"]
    elastic.indices.get_alias.side_effect = _not_found()
    assert gateway.get_indices_for_alias("risk_score") == []
    elastic.indices.get_alias.side_effect = ElasticConnectionError("connection refused")
    with pytest.raises(GatewayError):
        gateway.get_indices_for_alias("risk_score")


def test_reindex(gateway, elastic):
    elastic.reindex.return_value = {"took": 12, "timed_out": False, "created": 5, "updated": 0, "failures": []}
    response = gateway.reindex("risk_score", "risk_score-2", script="ctx._source.x = 1", timeout=600)
    assert response["created"] == 5
    elastic.reindex.assert_called_once_with(
        source={"index": "risk_score"},
        dest={"index": "risk_score-2"},
        refresh=True,
        wait_for_completion=True,
        script={"source": "ctx._source.x = 1", "lang": "painless"},
        timeout="600s",
    )

    elastic.reindex.reset_mock()
    gateway.reindex("risk_score", "risk_score-2")
    assert "script" not in elastic.reindex.call_args.kwargs
    assert "timeout" not in elastic.reindex.call_args.kwargs


@pytest.mark.parametrize(
    "response,reason",
    [
        ({"timed_out": True, "failures": []}, "timed out"),
        ({"timed_out": False, "failures": [{"cause": {"type": "mapper_parsing_exception"}}]}, "1 failures"),
    ],
)
def test_reindex_failures(gateway, elastic, response, reason):
    elastic.reindex.return_value = response
    with pytest.raises(ClusterRejection, match=reason):
        gateway.reindex("risk_score", "risk_score-2", timeout=600)


def test_cluster_health(gateway, elastic):
    elastic.cluster.health.return_value = {"status": "green", "number_of_data_nodes": 3}
    assert gateway.cluster_health()["number_of_data_nodes"] == 3
