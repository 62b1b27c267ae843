import argparse
import json
import sys
from typing import Annotated

import pytest
from pydantic import BaseModel

from esbootstrap import __main__ as cli
from esbootstrap.errors import ReconciliationError
from esbootstrap.models import Outcome, PrimitiveKind


class RiskScore(BaseModel):
    id: str
    score: Annotated[int, PrimitiveKind.INT32]


def run(monkeypatch, *args):
    monkeypatch.setattr(sys, "argv", ["esbootstrap", *args])
    cli.main()


def test_import_model():
    assert cli.import_model(f"{__name__}:RiskScore") is RiskScore
    for target in [f"{__name__}", f"{__name__}:Missing", f"{__name__}:run", "no_such_module:RiskScore"]:
        with pytest.raises(argparse.ArgumentTypeError):
            cli.import_model(target)


def test_mapping(monkeypatch, capsys):
    run(monkeypatch, "mapping", f"{__name__}:RiskScore")
    result = json.loads(capsys.readouterr().out)
    assert result == {
        "RiskScore": {
            "alias": "risk_score",
            "index": "risk_score-109267885",
            "script": "risk_score/109267885",
            "mappings": {
                "dynamic": "strict",
                "properties": {
                    "id": {"type": "text", "index": True},
                    "score": {"type": "integer", "index": True, "coerce": True},
                },
            },
        }
    }


def test_bootstrap(monkeypatch, capsys):
    calls = []

    def bootstrap(*schemas, max_workers):
        calls.append(([s.name for s in schemas], max_workers))
        return {"risk_score": Outcome.CREATED}

    monkeypatch.setattr(cli, "bootstrap", bootstrap)
    run(monkeypatch, "bootstrap", f"{__name__}:RiskScore", "--workers", "4")
    assert calls == [(["RiskScore"], 4)]
    assert capsys.readouterr().out == "risk_score: created\n"


def test_bootstrap_failure(monkeypatch):
    def bootstrap(*schemas, max_workers):
        raise ReconciliationError("failed", "risk_score", "risk_score-1", "reindex")

    monkeypatch.setattr(cli, "bootstrap", bootstrap)
    with pytest.raises(SystemExit) as e:
        run(monkeypatch, "bootstrap", f"{__name__}:RiskScore")
    assert e.value.code == 1


def test_bad_model(monkeypatch):
    with pytest.raises(SystemExit) as e:
        run(monkeypatch, "mapping", "no_such_module:RiskScore")
    assert e.value.code == 2


def test_config(monkeypatch, capsys):
    monkeypatch.setenv("ESBOOTSTRAP_NUMBER_OF_SHARDS", "7")
    run(monkeypatch, "config")
    lines = capsys.readouterr().out.splitlines()
    assert "esbootstrap_number_of_shards=7" in lines
    assert 'esbootstrap_geometry_types=["geo.Data"]' in lines
    assert "esbootstrap_elastic_password=" in lines
