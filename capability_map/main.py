"""
Capability Map — Main Entry Point

Run over an exported task list (CLI):
    python -m capability_map tasks.json
    python -m capability_map tasks.json --json > map.json

Or import and run programmatically:
    from capability_map.main import run
    capability_map = run("path/to/tasks.json")
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from datetime import datetime, timezone
from typing import Optional

from capability_map.config import get_settings
from capability_map.engine.generator import CapabilityMapGenerator
from capability_map.models.schemas import CapabilityMap, DiscoveryOptions
from capability_map.services.task_source import load_tasks
from capability_map.utils.logger import setup_logging


def run(
    file_path: str,
    options: Optional[DiscoveryOptions] = None,
    generator: Optional[CapabilityMapGenerator] = None,
) -> CapabilityMap:
    """Load a task snapshot, generate its capability map and log a summary."""
    settings = get_settings()
    setup_logging(settings.log_level)
    logger = logging.getLogger(__name__)

    logger.info("=" * 60)
    logger.info(f"  {settings.app_name.upper()}")
    logger.info(f"  Source: {file_path} | Started: {datetime.now(timezone.utc).isoformat()}")
    logger.info("=" * 60)

    snapshot = load_tasks(file_path)
    generator = generator or CapabilityMapGenerator.from_settings(settings)
    capability_map = asyncio.run(generator.generate(snapshot.tasks, options))

    if snapshot.invalid_count:
        metadata = capability_map.metadata.model_copy(update={
            "skipped_task_count": capability_map.metadata.skipped_task_count + snapshot.invalid_count,
        })
        capability_map = capability_map.model_copy(update={"metadata": metadata})

    _print_summary(capability_map)
    return capability_map


def _print_summary(capability_map: CapabilityMap) -> None:
    """Log a human-readable summary of the generated map."""
    logger = logging.getLogger(__name__)
    meta = capability_map.metadata

    logger.info("-" * 60)
    logger.info("  CAPABILITY MAP SUMMARY")
    logger.info("-" * 60)
    logger.info(f"  Tasks:          {meta.task_count} ({meta.skipped_task_count} skipped)")
    logger.info(f"  Capabilities:   {meta.capability_count}")
    logger.info(f"  Edges:          {meta.edge_count} {meta.edge_type_counts}")
    logger.info(f"  Confidence:     {meta.confidence:.2f}")
    if meta.degraded_strategies:
        logger.info(f"  Degraded:       {', '.join(meta.degraded_strategies)}")
    logger.info("-" * 60)

    if capability_map.is_empty:
        logger.info("  No capabilities found.")
    for node in capability_map.nodes:
        logger.info(
            f"    {node.name[:40]:<40} | {node.size:>3} tasks | "
            f"{node.progress:>4.0%} done | {', '.join(node.keywords[:3])}"
        )
    logger.info("")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="capability_map",
        description="Infer capability groups from an exported task list.",
    )
    parser.add_argument("tasks_file", help="JSON file with a list of tasks")
    parser.add_argument("--json", action="store_true", help="print the map as JSON on stdout")
    parser.add_argument("--no-semantic", action="store_true", help="skip the embedding matcher")
    parser.add_argument("--ai", action="store_true", help="ask the LLM for extra relations")
    parser.add_argument("--exclude-done", action="store_true", help="ignore completed tasks")
    parser.add_argument("--no-singletons", action="store_true", help="drop one-task capabilities")
    parser.add_argument("--strong-threshold", type=float, default=None)
    parser.add_argument("--max-capabilities", type=int, default=None)
    return parser


def cli(argv: Optional[list[str]] = None) -> int:
    args = _build_parser().parse_args(argv)
    settings = get_settings().model_copy(update={
        "enable_semantic": get_settings().enable_semantic and not args.no_semantic,
        "enable_ai_relations": get_settings().enable_ai_relations or args.ai,
    })

    options = DiscoveryOptions.from_settings(settings)
    overrides = {}
    if args.strong_threshold is not None:
        overrides["strong_threshold"] = args.strong_threshold
    if args.max_capabilities is not None:
        overrides["max_capabilities"] = args.max_capabilities
    if args.no_singletons:
        overrides["include_singletons"] = False
    options = options.model_copy(update={
        "include_completed_tasks": not args.exclude_done,
        "clustering": options.clustering.model_validate(
            {**options.clustering.model_dump(), **overrides}
        ),
    })

    try:
        capability_map = run(
            args.tasks_file,
            options=options,
            generator=CapabilityMapGenerator.from_settings(settings),
        )
    except KeyboardInterrupt:
        logging.getLogger(__name__).warning("Interrupted — no capability map produced")
        return 130

    if args.json:
        sys.stdout.write(capability_map.model_dump_json(indent=2) + "\n")
    return 0


if __name__ == "__main__":
    sys.exit(cli())
