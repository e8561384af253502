"""MCP server exposing ManasX governance: context, compliance checks, learning and drift."""

import argparse
import asyncio
import json
import logging
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

from mcp.server.fastmcp import FastMCP
from mcp.types import ToolAnnotations

from .config import Settings, get_settings
from .drift import DriftDetector
from .errors import ErrorCategory, StartupError, log_and_format_error
from .learner import PatternLearner, load_profile, save_profile
from .monitor import ContinuousMonitor
from .rules import DEFAULT_RULES_FILE, RuleEngine

logger = logging.getLogger(__name__)

# Global monitor instance
_monitor: ContinuousMonitor | None = None
_watch_on_start = False


def configure(settings: Settings | None = None, watch: bool = False) -> ContinuousMonitor:
    """Replace the server's monitor, optionally starting it with the server."""
    global _monitor, _watch_on_start
    _monitor = ContinuousMonitor(settings or get_settings())
    _watch_on_start = watch
    return _monitor


def get_monitor() -> ContinuousMonitor:
    """Get the monitor instance, creating it if needed."""
    global _monitor
    if _monitor is None:
        _monitor = ContinuousMonitor(get_settings())
    return _monitor


def _to_json(data: Any) -> str:
    return json.dumps(data, indent=2, default=str)


@asynccontextmanager
async def monitor_lifespan(server: FastMCP) -> AsyncIterator[None]:
    """Run the continuous monitor for as long as the server is up when watching."""
    monitor = get_monitor()
    if _watch_on_start:
        try:
            await monitor.start()
        except StartupError as e:
            logger.error(f"Monitor failed to start, serving queries only: {e}")
    try:
        yield
    finally:
        await monitor.close()


mcp = FastMCP("manasx-governance", lifespan=monitor_lifespan)


@mcp.tool(annotations=ToolAnnotations(title="Health Check", readOnlyHint=True))
async def health_check() -> str:
    """Report whether the server is up and what state the monitor is in.

    Returns:
        JSON object with healthy, monitor and timestamp.
    """
    return _to_json(get_monitor().health())


@mcp.tool(
    annotations=ToolAnnotations(title="Get Organizational Context", readOnlyHint=True)
)
async def get_organizational_context() -> str:
    """Get learned patterns, rule status, monitoring stats and recent issues.

    Returns:
        JSON snapshot of the organizational context.
    """
    try:
        context = get_monitor().get_organizational_context()
        return _to_json(context.to_json_dict())
    except Exception as e:
        return log_and_format_error(
            "get_organizational_context", e, ErrorCategory.MONITOR, "Failed to read context"
        )


@mcp.tool(
    annotations=ToolAnnotations(title="Check Code Compliance", readOnlyHint=True, openWorldHint=True)
)
async def check_code_compliance(code: str, filename: str = "snippet.js") -> str:
    """Check a code snippet against learned patterns, organizational rules and AI audit rules.

    Nothing is written to the governance logs.

    Args:
        code: Source text to check
        filename: Path the snippet would live at, used for architecture and exception matching

    Returns:
        JSON analysis result with violations, insights and a summary.
    """
    try:
        result = await get_monitor().check_compliance(code, filename)
        return _to_json(result)
    except Exception as e:
        return log_and_format_error(
            "check_code_compliance",
            e,
            ErrorCategory.MONITOR,
            "Failed to check compliance",
            filename=filename,
        )


@mcp.tool(annotations=ToolAnnotations(title="Get Recent Activity", readOnlyHint=True))
async def get_recent_activity(limit: int = 5) -> str:
    """Get the most recent file analyses recorded by the monitor.

    Args:
        limit: Maximum number of analyses to return

    Returns:
        JSON list of analysis records, oldest first.
    """
    try:
        return _to_json(get_monitor().get_recent_analysis(limit))
    except Exception as e:
        return log_and_format_error(
            "get_recent_activity", e, ErrorCategory.MONITOR, "Failed to read recent activity"
        )


@mcp.tool(
    annotations=ToolAnnotations(title="Learn Patterns", readOnlyHint=False, openWorldHint=True)
)
async def learn_patterns(
    directory: str = ".", max_files: int = 1000, output: str | None = None
) -> str:
    """Learn naming, import, architecture, testing and comment conventions from a source tree.

    Args:
        directory: Root of the source tree
        max_files: Upper bound on files analyzed
        output: Where to save the profile (default: patterns.json in the directory)

    Returns:
        JSON with the saved path, confidence, file count and recommendations.
    """
    try:
        settings = get_monitor().settings
        learner = PatternLearner()
        profile = await asyncio.to_thread(
            learner.learn, directory, settings.extensions, settings.ignore_dirs, max_files
        )
        destination = Path(output) if output else Path(directory) / settings.patterns_file
        save_profile(profile, destination)
        return _to_json(
            {
                "saved": str(destination),
                "confidence": profile.confidence.value,
                "filesAnalyzed": profile.files_analyzed,
                "recommendations": profile.recommendations.to_json_dict(),
            }
        )
    except Exception as e:
        return log_and_format_error(
            "learn_patterns",
            e,
            ErrorCategory.LEARN,
            "Failed to learn patterns",
            directory=directory,
        )


@mcp.tool(annotations=ToolAnnotations(title="Detect Drift", readOnlyHint=True))
async def detect_drift(
    path: str, include_info: bool = False, patterns: str | None = None, threshold: float = 0.7
) -> str:
    """Compare a file or directory against a learned pattern profile.

    Args:
        path: File or directory to analyze
        include_info: Keep informational findings
        patterns: Profile file (default: patterns.json in the watch directory)
        threshold: Minimum score ratio for a file to pass

    Returns:
        JSON drift result for the file or directory.
    """
    try:
        monitor = get_monitor()
        settings = monitor.settings
        patterns_path = Path(patterns) if patterns else monitor.context.root / settings.patterns_file
        profile = load_profile(patterns_path)
        if profile is None:
            return f"No learned patterns found at {patterns_path}. Run learn_patterns first."

        detector = DriftDetector(
            profile,
            root_dir=monitor.context.root,
            extensions=settings.extensions,
            ignore_patterns=settings.ignore_dirs,
        )
        result = await asyncio.to_thread(detector.detect_drift, path, threshold, include_info)
        return _to_json(result.to_json_dict())
    except Exception as e:
        return log_and_format_error(
            "detect_drift", e, ErrorCategory.DRIFT, "Failed to detect drift", path=path
        )


@mcp.tool(annotations=ToolAnnotations(title="Initialize Rules", readOnlyHint=False))
async def init_rules(path: str = DEFAULT_RULES_FILE, author: str | None = None) -> str:
    """Write a starter rule configuration, overwriting any existing file.

    Args:
        path: Destination file
        author: Recorded author (default: $USER)

    Returns:
        Confirmation with the number of rules written.
    """
    try:
        config = RuleEngine().create_initial_config(path, author)
        return f"Initial configuration with {config.rule_count()} rules created at {path}"
    except Exception as e:
        return log_and_format_error(
            "init_rules", e, ErrorCategory.RULES, "Failed to create rules", path=path
        )


@mcp.tool(annotations=ToolAnnotations(title="Validate Rules", readOnlyHint=True))
async def validate_rules(path: str = DEFAULT_RULES_FILE) -> str:
    """Load a rule configuration and report errors and warnings in its rules.

    Args:
        path: Rule file name or path, searched upward from the watch directory

    Returns:
        JSON with valid, configPath, rulesCount, errors and warnings.
    """
    try:
        engine = RuleEngine(root_dir=get_monitor().context.root)
        engine.load(path, start_dir=get_monitor().context.root)
        report = engine.validate_rules()
        return _to_json(
            {
                "valid": not report["errors"],
                "configPath": str(engine.config_path) if engine.config_path else None,
                "rulesCount": len(engine.rules),
                **report,
            }
        )
    except Exception as e:
        return log_and_format_error(
            "validate_rules", e, ErrorCategory.RULES, "Invalid rule configuration", path=path
        )


def run_server():
    """Run the MCP server."""
    # FastMCP.run() is synchronous and manages its own event loop
    mcp.run(transport="stdio")


def parse_args(argv: list[str] | None = None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="ManasX governance MCP server",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Serve queries only
  manasx-mcp-server

  # Also watch ./src and analyze every change
  manasx-mcp-server --watch --directory ./src
        """,
    )
    parser.add_argument(
        "--watch",
        "-w",
        action="store_true",
        help="Run the continuous monitor while the server is up",
    )
    parser.add_argument(
        "--directory",
        "-d",
        default=None,
        help="Directory to govern (default: MANASX_WATCH_DIRECTORY or cwd)",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose logging",
    )
    return parser.parse_args(argv)


def main():
    """Main entry point."""
    args = parse_args()

    if args.verbose:
        logging.getLogger("manasx").setLevel(logging.DEBUG)
        for handler in logging.getLogger("manasx").handlers:
            handler.setLevel(logging.DEBUG)

    overrides = {"watch_directory": args.directory} if args.directory else {}
    configure(get_settings(**overrides), watch=args.watch)

    try:
        run_server()
    except KeyboardInterrupt:
        logger.info("Received keyboard interrupt, shutting down...")
    except Exception as e:
        logger.error(f"Server error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
