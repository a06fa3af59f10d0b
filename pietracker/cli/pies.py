"""pies CLI entrypoint.

Subcommands:
  run   Poll the API, keep the state file current, log a totals line per interval.
  show  Print the pies stored in the state file with derived returns.

The API token is read from TRADE212_API_TOKEN.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import time
from dataclasses import replace
from pathlib import Path
from typing import Optional

from pietracker.adapters.env_provider import API_TOKEN, EnvSecretsProvider, MissingSecretError
from pietracker.config.config_loader import ConfigLoader
from pietracker.config.configs import (
    EngineConfig,
    Environment,
    PersistenceConfig,
    RemoteConfig,
    TrackerConfig,
)
from pietracker.engine.refresh import RefreshEngine
from pietracker.engine.saver import PeriodicSaver
from pietracker.errors.errors import ConfigurationError
from pietracker.metrics.metrics import aggregate_totals, pie_rows
from pietracker.ports.secrets_provider import SecretsProvider
from pietracker.remote.source import Trading212Source
from pietracker.store.pie_store import PieStore
from pietracker.types.types import PieRecord

logger = logging.getLogger("pietracker.cli")


def build_parser() -> argparse.ArgumentParser:
    """
    Return the top-level CLI argument parser.
    """
    p = argparse.ArgumentParser(prog="pies", description="Track Trading 212 pies")
    sub = p.add_subparsers(dest="command", required=True)

    def add_common(sp: argparse.ArgumentParser) -> None:
        """Add arguments shared across all subcommands."""
        sp.add_argument("--config", type=Path, required=False, help="Path to a TOML config file")
        sp.add_argument("--state", type=Path, required=False, help="State file (default pies.json)")
        sp.add_argument("--debug", action="store_true", help="Enable debug logging")

    run = sub.add_parser("run", help="Poll the API and keep the state file current")
    add_common(run)
    run.add_argument("--interval", type=float, help="Refresh interval in seconds")
    run.add_argument("--demo", action="store_true", help="Use the demo environment")

    show = sub.add_parser("show", help="Print pies from the state file")
    add_common(show)
    return p


def _resolve_config(args: argparse.Namespace) -> TrackerConfig:
    """Config file values, with CLI flags taking precedence."""
    cfg = ConfigLoader().load_tracker_config(args.config)

    if args.state is not None:
        cfg = replace(cfg, persistence=replace(cfg.persistence, state_path=args.state))
    if getattr(args, "interval", None) is not None:
        cfg = replace(cfg, engine=EngineConfig(
            refresh_interval_s=args.interval,
            stop_timeout_s=cfg.engine.stop_timeout_s,
        ))
    if getattr(args, "demo", False):
        cfg = replace(cfg, remote=RemoteConfig.for_environment(
            Environment.DEMO, request_timeout_s=cfg.remote.request_timeout_s
        ))
    if args.debug:
        cfg = replace(cfg, log_level="DEBUG")
    return cfg


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level),
        format="%(asctime)s %(levelname)-7s %(name)s: %(message)s",
    )
    logging.getLogger("asyncio").setLevel(logging.WARNING)


def format_pie_line(row: dict) -> str:
    label = row["name"] or "-"
    return (
        f"ID: {row['id']} | {label} | Initial: {row['invested']:.2f} | "
        f"Now: {row['current']:.2f} | Result: {row['result_pct']:+.2f}% | "
        f"Progress: {row['progress_pct']:.1f}% | Annual Rate: {row['annualized_pct']:.2f}%"
    )


def format_totals_line(records: list[PieRecord]) -> str:
    totals = aggregate_totals(records)
    return (
        f"Total Initial: {totals.total_invested:.2f} | Total Now: {totals.total_current:.2f} | "
        f"Total Result: {totals.total_return_percent:+.2f}%"
    )


def render_lines(records: list[PieRecord], now: Optional[float] = None) -> list[str]:
    lines = [format_pie_line(row) for row in pie_rows(records, now)]
    lines.append(format_totals_line(records))
    return lines


async def run_tracker(cfg: TrackerConfig, token: str) -> None:
    """Run engine and saver until cancelled; always ends with a final save."""
    persistence: PersistenceConfig = cfg.persistence
    store = PieStore.from_disk(persistence.state_path)

    async with Trading212Source(token, cfg.remote) as source:
        engine = RefreshEngine(source, store, cfg.engine)
        saver = PeriodicSaver(store, persistence.state_path, persistence.save_interval_s)

        await engine.start()
        await saver.start()
        try:
            while True:
                await asyncio.sleep(cfg.engine.refresh_interval_s)
                records = await store.snapshot()
                logger.info(f"{len(records)} pies | {format_totals_line(records)}")
        finally:
            await engine.stop()
            await saver.stop()
            logger.info(f"Final state: {engine.get_stats()}")


def _cmd_run(cfg: TrackerConfig, secrets: Optional[SecretsProvider] = None) -> int:
    secrets = secrets or EnvSecretsProvider()
    try:
        token = secrets.get(API_TOKEN)
    except MissingSecretError as exc:
        print(f"[!] {exc}")
        return 1
    logger.info(f"API token read from {secrets.describe(API_TOKEN)}")

    try:
        asyncio.run(run_tracker(cfg, token))
    except KeyboardInterrupt:
        print("Interrupted by user.")
        return 130
    return 0


def _cmd_show(cfg: TrackerConfig) -> int:
    path = cfg.persistence.state_path
    if not path.exists():
        print(f"[!] No state file at {path}")
        return 1

    store = PieStore.from_disk(path)
    records = asyncio.run(store.snapshot())
    for line in render_lines(records, time.time()):
        print(line)
    return 0


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        cfg = _resolve_config(args)
    except (FileNotFoundError, ConfigurationError) as exc:
        print(f"[!] {exc}")
        return 1

    _configure_logging(cfg.log_level)

    if args.command == "run":
        return _cmd_run(cfg)
    return _cmd_show(cfg)


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
