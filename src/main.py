# src/main.py — v2
"""CLI entry point — load and query commands.

Usage:
    datamingle [-v...] load <dvm_file> [options]
    datamingle [-v...] query <datasources_path> <query_path> [options]

Logs go to stderr; query results go to stdout.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
import uuid
from pathlib import Path

from pydantic import ValidationError

from datamingle.config.settings import ConfigurationError, Settings, load_settings
from datamingle.logging.context import set_run_context
from datamingle.logging.logger import get_logger, setup_logging, verbosity_to_level
from datamingle.version import __version__

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    try:
        settings = _settings_from_args(args)
    except (ConfigurationError, ValidationError) as exc:
        setup_logging(level="ERROR")
        logger.error("Invalid configuration: %s", exc)
        return 1

    _setup_logging(args.verbose, settings)

    try:
        return asyncio.run(args.func(args, settings))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except Exception as exc:
        logger.error("Fatal error: %s", exc, exc_info=args.verbose >= 2)
        return 1


def cli() -> None:
    """Console-script wrapper."""
    sys.exit(main())


def _build_parser() -> argparse.ArgumentParser:
    """Build CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="datamingle",
        description=f"datamingle v{__version__} — federated queries over a value-mapping graph",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose", action="count", default=0,
        help="Verbosity: -v info, -vv debug, -vvv trace (default: errors only)",
    )

    subparsers = parser.add_subparsers(dest="command")

    # --- load ---
    p_load = subparsers.add_parser(
        "load", help="Load a DVM mapping document into the graph store",
    )
    p_load.add_argument("dvm_file", type=Path, help="Path to the DVM file")
    p_load.add_argument(
        "--use-existing-graph", action="store_true",
        help="Keep the current graph instead of clearing it first",
    )
    _add_store_arguments(p_load)
    p_load.set_defaults(func=_cmd_load)

    # --- query ---
    p_query = subparsers.add_parser(
        "query", help="Evaluate a query document against the graph store",
    )
    p_query.add_argument("datasources_path", type=Path, help="Path to the datasource catalog")
    p_query.add_argument("query_path", type=Path, help="Path to the query document")
    p_query.add_argument(
        "-o", "--output", type=str.lower, default="text",
        choices=["none", "text", "json"],
        help="Result format on stdout (default: text)",
    )
    p_query.add_argument(
        "-m", "--mode", type=str.lower, default=None,
        choices=["sequential", "concurrent"],
        help="Sibling evaluation mode (default: EVALUATION_MODE or sequential)",
    )
    _add_store_arguments(p_query)
    p_query.set_defaults(func=_cmd_query)

    return parser


def _add_store_arguments(p: argparse.ArgumentParser) -> None:
    p.add_argument(
        "--store", choices=["neo4j", "memory"], default=None,
        help="Graph store backend (default: GRAPH_DB_TYPE or neo4j)",
    )
    p.add_argument(
        "-b", "--bolt-uri", default=None,
        help="Neo4j endpoint (default: GRAPH_DB_URI or bolt://localhost:7687)",
    )
    p.add_argument("--user", default=None, help="Neo4j user")
    p.add_argument("--password", default=None, help="Neo4j password")
    p.add_argument(
        "--snapshot", type=Path, default=None,
        help="Graph snapshot file for the memory store",
    )


def _settings_from_args(args: argparse.Namespace) -> Settings:
    return load_settings(
        graph_db_type=args.store,
        graph_db_uri=args.bolt_uri,
        graph_db_user=args.user,
        graph_db_password=args.password,
        graph_db_snapshot=args.snapshot,
        evaluation_mode=getattr(args, "mode", None),
    )


async def _cmd_load(args: argparse.Namespace, settings: Settings) -> int:
    """Ingest a DVM document."""
    from datamingle.graph_store.store_factory import connect_mapping_store
    from datamingle.loader.graph_loader import GraphLoader

    set_run_context(_new_run_id(), "load")
    log = get_logger("loader")
    log.info("Starting DVM loader...")

    store = await connect_mapping_store(settings)
    async with store:
        loader = GraphLoader(store, logger=log)
        summary = await loader.load_file(args.dvm_file, reset=not args.use_existing_graph)

    log.info("Finished loading DVM")
    print("\nLoad complete:")
    print(f"  Records:     {summary.records}")
    print(f"  Attributes:  {summary.attributes}")
    print(f"  Edges:       {summary.edges}")
    return 0


async def _cmd_query(args: argparse.Namespace, settings: Settings) -> int:
    """Compile and evaluate a query document."""
    from datamingle.datasources.catalog import load_datasources_xml
    from datamingle.engine.evaluator import EvaluationEngine
    from datamingle.engine.results import write_results
    from datamingle.graph_store.store_factory import connect_mapping_store
    from datamingle.query.tree_builder import compile_query

    set_run_context(_new_run_id(), "query")

    datasources = load_datasources_xml(args.datasources_path)
    tree = compile_query(args.query_path, max_depth=settings.max_tree_depth)

    store = await connect_mapping_store(settings)
    async with store:
        engine = EvaluationEngine(
            store,
            datasources,
            logger=get_logger("engine"),
            mode=settings.evaluation_mode,
        )
        results = await engine.evaluate(tree)

    write_results(results, args.output, sys.stdout)
    return 0


def _new_run_id() -> str:
    return uuid.uuid4().hex[:12]


def _setup_logging(verbose: int, settings: Settings) -> None:
    """Configure logging for CLI usage; -v flags take precedence over LOG_LEVEL."""
    level = verbosity_to_level(verbose) if verbose else settings.log_level
    setup_logging(
        level=level,
        log_format=settings.log_format,
        log_file=settings.log_file,
        max_bytes=settings.log_max_bytes,
        backup_count=settings.log_backup_count,
    )
    # Quiet the driver's own connection chatter
    logging.getLogger("neo4j").setLevel(logging.WARNING)


if __name__ == "__main__":
    cli()
