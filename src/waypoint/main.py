"""
Waypoint entry point.

This file handles startup concerns (arg-parsing, env setup, logging), wires the provider, tool
registry, archive and planner together, and launches the interactive shell.
"""

import argparse
import logging
import sys

from waypoint.agent.agent_loop import run_cli
from waypoint.agent.planner import Planner
from waypoint.agent.providers import load_provider
from waypoint.config import settings
from waypoint.core.context import Context
from waypoint.memory.archive import load_archive
from waypoint.tools import ToolRegistry
from waypoint.tools.builtin import register_builtin_tools

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _init_logging(level: str) -> None:
    numeric = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=numeric,
        format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
        stream=sys.stdout,
    )
    # Keep third-party clients quiet unless something goes wrong
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("chromadb").setLevel(logging.WARNING)


def build_planner(provider_name: str | None = None, use_memory: bool = True):
    """Construct the planner and the archive its registry writes to."""
    archive = load_archive(None if use_memory else "none")
    registry = register_builtin_tools(ToolRegistry(archive=archive))
    logger.info("Registered %d tools: %s", len(registry), ", ".join(registry.names()))
    planner = Planner(load_provider(provider_name), registry)
    return planner, archive


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------
def main(argv: list[str] | None = None) -> None:
    """
    Main entry point for the Waypoint application.

    This function sets up the command-line interface, initializes logging, and starts the
    interactive shell.
    """
    if argv is None:
        argv = sys.argv[1:]

    parser = argparse.ArgumentParser(description="Run the Waypoint task executor")
    parser.add_argument(
        "--provider",
        choices=["ollama", "openai", "anthropic"],
        type=str.lower,
        default=settings.PROVIDER,
        help="Model provider (default from env: %(default)s)",
    )
    parser.add_argument(
        "--max-steps",
        type=int,
        default=settings.MAX_STEPS,
        help="Maximum planner steps per turn (default from env: %(default)s)",
    )
    parser.add_argument(
        "--no-memory",
        action="store_true",
        help="Disable the retrieval archive",
    )
    parser.add_argument(
        "--load",
        metavar="PATH",
        help="Resume a conversation saved with /save",
    )
    parser.add_argument(
        "--log-level",
        choices=["debug", "info", "warning", "error", "critical"],
        type=str.lower,
        default=settings.LOG_LEVEL,
        help="Logging level (default from env: %(default)s)",
    )
    args = parser.parse_args(argv)

    # Override settings with command-line arguments
    settings.LOG_LEVEL = args.log_level
    settings.MAX_STEPS = args.max_steps

    _init_logging(settings.LOG_LEVEL)

    logger.info("Starting Waypoint [%s provider]", args.provider)
    logger.debug(
        "Settings: %s", settings.model_dump(exclude={"OPENAI_API_KEY", "ANTHROPIC_API_KEY"})
    )

    planner, archive = build_planner(args.provider, use_memory=not args.no_memory)
    context = Context.load(args.load) if args.load else None
    run_cli(planner, archive, context)


if __name__ == "__main__":
    main()
