from __future__ import annotations

import logging
from pathlib import Path

import orjson
import pytest
import structlog
import yaml

from riskmind.main import main


@pytest.fixture(autouse=True)
def restore_logging():
    yield
    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    structlog.reset_defaults()


def _config(root: Path) -> Path:
    path = root / "config.yaml"
    main(["init-config", "--path", str(path)])
    data = yaml.safe_load(path.read_text(encoding="utf-8"))
    data["storage"] = {
        "data_path": str(root / "data"),
        "audit_path": str(root / "audit"),
        "logs_path": str(root / "logs"),
    }
    path.write_text(yaml.safe_dump(data), encoding="utf-8")
    return path


def _write_json(path: Path, payload: dict) -> str:
    path.write_bytes(orjson.dumps(payload))
    return str(path)


def test_run_prints_state_and_writes_audit(
    workspace_tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    config = _config(workspace_tmp_path)
    tick = _write_json(
        workspace_tmp_path / "tick.json",
        {
            "symbol": "XYZ",
            "price": 100,
            "open": 98,
            "high": 101,
            "low": 97,
            "close": 100,
            "volume": 50000,
            "sentiment": 0.5,
            "volatility30d": 0.1,
        },
    )
    capsys.readouterr()

    code = main(["--config", str(config), "run", "--tick", tick, "--user", "tester"])

    assert code == 0
    state = orjson.loads(capsys.readouterr().out)
    assert state["user_id"] == "tester"
    assert state["decision"]["action"] == "HOLD"
    assert (workspace_tmp_path / "audit" / "audit.jsonl").exists()


def test_run_with_invalid_tick_exits_nonzero(
    workspace_tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    config = _config(workspace_tmp_path)
    tick = _write_json(workspace_tmp_path / "tick.json", {"symbol": "XYZ", "price": -1})

    assert main(["--config", str(config), "run", "--tick", tick]) == 1


def test_init_config_writes_yaml(workspace_tmp_path: Path) -> None:
    path = workspace_tmp_path / "config.yaml"
    assert main(["init-config", "--path", str(path)]) == 0
    data = yaml.safe_load(path.read_text(encoding="utf-8"))
    assert data["circuit_breaker"]["min_samples"] == 10
