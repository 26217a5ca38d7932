from __future__ import annotations

import argparse
import asyncio
import json
import sys
import time
from collections.abc import Iterable
from pathlib import Path
from typing import Any, TextIO

import structlog

from indexarr.domain.definitions import DefinitionFilter
from indexarr.domain.entities import SearchCriteria
from indexarr.infrastructure.composition import Services, open_services
from indexarr.infrastructure.config import AppConfig, load_config
from indexarr.infrastructure.config.instances import load_instances
from indexarr.infrastructure.logging.setup import configure_logging
from indexarr.interfaces.cli.presenter import (
    definition_to_dict,
    instance_test_to_dict,
    round_to_dict,
)

log = structlog.get_logger(__name__)


def _parse_args(argv: Iterable[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="indexarr",
        description="Search indexing sites described by YAML definitions.",
    )

    # Config wiring flags (no business logic)
    parser.add_argument(
        "--config",
        default=None,
        help="Path to YAML config file.",
    )
    parser.add_argument(
        "--dotenv",
        default=None,
        help="Path to .env file.",
    )
    parser.add_argument(
        "--definitions-dir",
        default=None,
        help="Override definitions directory.",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Override log level.",
    )
    parser.add_argument(
        "--log-format",
        default=None,
        choices=["json", "console"],
        help="Override log format.",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    p_defs = sub.add_parser("definitions", help="List loaded definitions.")
    p_defs.add_argument("--protocol", default=None, help="Filter by protocol.")
    p_defs.add_argument(
        "--search", default=None, help="Substring of id/name/description."
    )
    p_defs.add_argument(
        "--include-invalid",
        action="store_true",
        help="Also list definitions with validation errors.",
    )

    p_search = sub.add_parser("search", help="Search all configured instances.")
    p_search.add_argument("query", nargs="?", default="", help="Search terms.")
    p_search.add_argument(
        "--instances", required=True, help="YAML file with the instance list."
    )
    p_search.add_argument(
        "--mode",
        default="search",
        choices=["search", "movie-search", "tv-search"],
        help="Search mode.",
    )
    p_search.add_argument("--season", type=int, default=None)
    p_search.add_argument("--episode", type=int, default=None)
    p_search.add_argument("--year", type=int, default=None)
    p_search.add_argument("--imdb", default=None, help="IMDb id (tt1234567).")
    p_search.add_argument(
        "--category",
        type=int,
        action="append",
        default=[],
        help="Canonical category id (repeatable).",
    )
    p_search.add_argument("--limit", type=int, default=None)
    p_search.add_argument(
        "--deadline",
        type=float,
        default=None,
        help="Seconds after which the round returns partial results.",
    )

    p_test = sub.add_parser("test", help="Test one configured instance.")
    p_test.add_argument("instance_id", help="Instance id from the instances file.")
    p_test.add_argument(
        "--instances", required=True, help="YAML file with the instance list."
    )

    return parser.parse_args(argv)


def _emit(data: Any, out: TextIO) -> None:
    json.dump(data, out, indent=2, ensure_ascii=False)
    out.write("\n")


def _criteria_from_args(args: argparse.Namespace) -> SearchCriteria:
    return SearchCriteria(
        mode=args.mode,
        query=args.query,
        season=args.season,
        episode=args.episode,
        year=args.year,
        imdb_id=args.imdb,
        categories=tuple(args.category),
        limit=args.limit,
    )


async def _run(args: argparse.Namespace, config: AppConfig, out: TextIO) -> int:
    async with open_services(config) as services:
        if args.command == "definitions":
            return _cmd_definitions(services, args, out)
        if args.command == "search":
            return await _cmd_search(services, args, out)
        if args.command == "test":
            return await _cmd_test(services, args, out)
    raise ValueError(f"unknown command {args.command!r}")


def _cmd_definitions(services: Services, args: argparse.Namespace, out: TextIO) -> int:
    records = services.registry.query(
        DefinitionFilter(
            protocol=args.protocol,
            search=args.search,
            include_invalid=args.include_invalid,
        )
    )
    _emit([definition_to_dict(r) for r in records], out)
    return 0


async def _cmd_search(
    services: Services, args: argparse.Namespace, out: TextIO
) -> int:
    criteria = _criteria_from_args(args)
    instances = load_instances(Path(args.instances))
    deadline = None
    if args.deadline is not None:
        deadline = time.monotonic() + args.deadline

    result = await services.orchestrator.search(criteria, instances, deadline=deadline)
    _emit(round_to_dict(result), out)
    return 1 if result.all_failed else 0


async def _cmd_test(services: Services, args: argparse.Namespace, out: TextIO) -> int:
    instances = {i.id: i for i in load_instances(Path(args.instances))}
    instance = instances.get(args.instance_id)
    if instance is None:
        _emit(
            {"instance_id": args.instance_id, "ok": False, "error": "unknown instance"},
            out,
        )
        return 2

    result = await services.orchestrator.test_instance(instance)
    _emit(instance_test_to_dict(instance.id, result), out)
    return 0 if result.ok else 1


def start(argv: Iterable[str] | None = None) -> int:
    """
    Process entrypoint.

    Loads config exactly once, configures logging (to stderr, stdout carries
    the JSON output) and runs the requested command.
    """
    if argv is None:
        argv = sys.argv[1:]

    args = _parse_args(argv)

    config_path = Path(args.config) if args.config else None
    dotenv_path = Path(args.dotenv) if args.dotenv else None

    cli_overrides: dict[str, Any] = {}
    if args.definitions_dir:
        cli_overrides["definitions_dir"] = args.definitions_dir
    if args.log_level:
        cli_overrides["log_level"] = args.log_level
    if args.log_format:
        cli_overrides["log_format"] = args.log_format

    config = load_config(
        config_path=config_path,
        dotenv_path=dotenv_path,
        cli_overrides=cli_overrides,
    )
    configure_logging(config, stdout=False)

    try:
        return asyncio.run(_run(args, config, sys.stdout))
    except (ValueError, OSError) as e:
        log.error("command_failed", command=args.command, error_message=str(e))
        print(f"indexarr: error: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    raise SystemExit(start())
