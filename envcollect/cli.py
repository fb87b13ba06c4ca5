"""CLI entrypoint for the weather and pollen collectors."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

from envcollect.collect.pollen import PollenCollector
from envcollect.collect.runner import run_collection
from envcollect.collect.weather import WeatherCollector
from envcollect.common.config_loader import (
    ConfigBundle,
    RuntimeEnv,
    load_config,
    load_runtime_env,
    resolve_collectors,
    select_locations,
)
from envcollect.common.constants import COLLECTORS, EXIT_HARD_FAIL, EXIT_SUCCESS
from envcollect.common.errors import PipelineError
from envcollect.common.http import HttpClient, RetryConfig, TimeoutConfig
from envcollect.common.ids import generate_run_id
from envcollect.common.logging import build_logger, log_event
from envcollect.common.store import DocumentStore, FirestoreStore, MemoryStore


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("command", choices=[*COLLECTORS, "all"])
    parser.add_argument("--location", action="append", default=None, dest="locations")
    parser.add_argument("--run-id", default=None)
    parser.add_argument("--config-dir", default="./config")
    parser.add_argument("--overlay-config-dir", default=None)
    parser.add_argument("--log-dir", default=None)
    parser.add_argument("--log-level", default=None, choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    parser.add_argument("--store", default="firestore", choices=["firestore", "memory"])
    return parser.parse_args(argv)


def build_store(kind: str, bundle: ConfigBundle, env: RuntimeEnv) -> DocumentStore:
    if kind == "memory":
        return MemoryStore()
    return FirestoreStore.connect(env.project_id, bundle.database_id)


def build_collector(name: str, *, client: HttpClient, store: DocumentStore, bundle: ConfigBundle, env: RuntimeEnv, logger):
    if name == "weather":
        return WeatherCollector(client=client, api_key=env.api_key, store=store, settings=bundle.weather, logger=logger)
    if name == "pollen":
        return PollenCollector(client=client, api_key=env.api_key, store=store, settings=bundle.pollen, logger=logger)
    raise ValueError(f"Unknown collector: {name}")


def run_command(args: argparse.Namespace, environ=None, store: DocumentStore | None = None, client: HttpClient | None = None) -> int:
    run_id = args.run_id or generate_run_id()
    env = load_runtime_env(environ, require_project=store is None and args.store == "firestore")
    level = args.log_level or ("DEBUG" if env.debug else "INFO")
    logger = build_logger(run_id, log_dir=Path(args.log_dir) if args.log_dir else None, level=level)

    overlay_config_dir = Path(args.overlay_config_dir) if args.overlay_config_dir else None
    bundle = load_config(Path(args.config_dir), overlay_config_dir=overlay_config_dir)
    locations = select_locations(bundle, args.locations)
    collectors = resolve_collectors(args.command)

    owns_store = store is None
    store = store or build_store(args.store, bundle, env)
    owns_client = client is None
    client = client or HttpClient(
        timeout=TimeoutConfig(connect=bundle.api.timeout_seconds, read=bundle.api.timeout_seconds),
        retry=RetryConfig(backoff_seconds=bundle.api.backoff_seconds),
        logger=logger,
    )

    had_hard_failure = False
    try:
        for name in collectors:
            collector = build_collector(name, client=client, store=store, bundle=bundle, env=env, logger=logger)
            try:
                run_collection(collector, locations, logger, max_workers=bundle.max_workers)
            except PipelineError as exc:
                had_hard_failure = True
                log_event(
                    logger,
                    f"{name} collection failed",
                    level=logging.ERROR,
                    collector=name,
                    event="COLLECTOR_FAIL",
                    status="error",
                    error_code=exc.error_code,
                )
    finally:
        if owns_client:
            client.close()
        if owns_store:
            store.close()

    if had_hard_failure:
        return EXIT_HARD_FAIL
    return EXIT_SUCCESS


def main(argv: list[str] | None = None) -> int:
    load_dotenv()
    args = parse_args(argv if argv is not None else sys.argv[1:])
    try:
        return run_command(args)
    except PipelineError as exc:
        print(f"{exc.error_code}: {exc}", file=sys.stderr)
        return EXIT_HARD_FAIL


if __name__ == "__main__":
    raise SystemExit(main())
