"""Command-line entry point: run one tick, serve the operator API, write a config."""

from __future__ import annotations

import argparse
import asyncio
from pathlib import Path
import sys
from typing import Any

import orjson
import structlog
import uvicorn

from riskmind.api.operator import create_app
from riskmind.config.settings import create_default_config, load_settings
from riskmind.models import PortfolioSnapshot, Position
from riskmind.monitoring import Metrics, configure_logging
from riskmind.workflow.orchestrator import WorkflowOrchestrator

log = structlog.get_logger(__name__)


def _read_json(path: str | None) -> Any:
    if not path:
        return None
    return orjson.loads(Path(path).read_bytes())


def _position(data: dict[str, Any] | None, tick: dict[str, Any]) -> Position | None:
    if not data:
        return None
    return Position(
        symbol=str(data.get("symbol") or tick.get("symbol") or ""),
        quantity=float(data["quantity"]),
        entry_price=float(data.get("entry_price", data.get("entryPrice"))),
        current_price=float(data.get("current_price", data.get("currentPrice", tick.get("price", 0.0)))),
        realized_pnl=float(data.get("realized_pnl", 0.0)),
        unrealized_pnl=float(data.get("unrealized_pnl", 0.0)),
        position_id=data.get("position_id") or data.get("id"),
    )


def _portfolio(data: dict[str, Any] | None) -> PortfolioSnapshot | None:
    if not data:
        return None
    return PortfolioSnapshot(
        exposures={k: float(v) for k, v in data.get("exposures", {}).items()},
        sectors=dict(data.get("sectors", {})),
        total_value=data.get("total_value"),
    )


def _build_orchestrator(config_path: str | None) -> WorkflowOrchestrator:
    settings = load_settings(config_path)
    configure_logging(settings.monitoring.log_level, settings.storage.logs_path, settings.monitoring)
    metrics = None
    if settings.monitoring.metrics_enabled:
        metrics = Metrics()
        metrics.start_server(settings.monitoring.metrics_port)
        log.info("metrics_server_started", port=settings.monitoring.metrics_port)
    return WorkflowOrchestrator.from_settings(settings, metrics=metrics)


async def run_once(args: argparse.Namespace) -> int:
    tick = _read_json(args.tick)
    if not isinstance(tick, dict):
        log.error("tick_file_invalid", path=args.tick)
        return 2
    orchestrator = _build_orchestrator(args.config)
    state = await orchestrator.run(
        args.user,
        tick,
        position=_position(_read_json(args.position), tick),
        portfolio=_portfolio(_read_json(args.portfolio)),
    )
    sys.stdout.write(orjson.dumps(state.to_dict(), option=orjson.OPT_INDENT_2).decode() + "\n")
    return 0 if state.succeeded else 1


def serve(args: argparse.Namespace) -> int:
    orchestrator = _build_orchestrator(args.config)
    config = uvicorn.Config(
        create_app(orchestrator),
        host=args.host,
        port=args.port or orchestrator.settings.monitoring.api_port,
        log_level="info",
    )
    uvicorn.Server(config).run()
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="RiskMind trading-decision workflow.")
    parser.add_argument("--config", default=None, help="Path to config.yaml")
    sub = parser.add_subparsers(dest="command", required=True)

    run_parser = sub.add_parser("run", help="Run one tick through the workflow")
    run_parser.add_argument("--tick", required=True, help="JSON file with the raw tick")
    run_parser.add_argument("--position", default=None, help="JSON file with the current position")
    run_parser.add_argument("--portfolio", default=None, help="JSON file with portfolio exposures")
    run_parser.add_argument("--user", default="cli", help="User id recorded in the audit trail")

    serve_parser = sub.add_parser("serve", help="Serve the operator API")
    serve_parser.add_argument("--host", default="127.0.0.1")
    serve_parser.add_argument("--port", type=int, default=None)

    init_parser = sub.add_parser("init-config", help="Write a default config.yaml")
    init_parser.add_argument("--path", default="config.yaml")

    args = parser.parse_args(argv)
    if args.command == "run":
        return asyncio.run(run_once(args))
    if args.command == "serve":
        return serve(args)
    create_default_config(args.path)
    print(f"Wrote default configuration to {args.path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
