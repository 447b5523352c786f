#!/usr/bin/env python3
"""newsbrief: news article ingestion and AI summarization pipeline.

This CLI tool pulls articles from the Guardian content API, summarizes them
with an OpenAI model and stores the results for a publishing front end.

Commands:
    run             Execute an ingestion run (once or continuously)
    ingest          Fetch and process specific articles by id
    reprocess       Re-summarize a stored article
    delete          Soft delete articles (ids stay claimed)
    publish         Mark articles PUBLISHED
    unpublish       Mark articles UNPUBLISHED
    recover-stale   Fail summaries stuck in PROCESSING
    backfill-slugs  Assign slugs to completed summaries without one
    runs            Show recent job ledger entries
    status          Show configuration and database statistics
    serve           Start the HTTP trigger endpoints

Examples:
    python main.py run                       # Scheduled run, default count
    python main.py run --manual --count 10   # Manual run
    python main.py run -c --interval 3600    # Continuous polling
    python main.py reprocess --id science/2024/jan/01/octopus-dreams
    python main.py serve --port 8000

Environment:
    GUARDIAN_API_KEY, OPENAI_API_KEY: Required for runs
    See config.py for all configuration options
"""

import argparse
import asyncio
import json
import logging
import sys
from datetime import datetime

from config import Config
from database import Database
from models.job import RunType
from observability.logging import setup_logging

logger = logging.getLogger(__name__)

OPERATOR = "cli"


def _print_result(result: dict) -> None:
    print(json.dumps(result, indent=2))


def cmd_run(args: argparse.Namespace, config: Config) -> int:
    """Execute an ingestion run.

    Args:
        args: Parsed command line arguments
        config: Application configuration

    Returns:
        Exit code (0 for success, 1 when the run failed)
    """
    from pipeline import run_once, run_continuous

    if args.interval:
        config.poll_interval_seconds = args.interval

    try:
        if args.continuous:
            logger.info("Starting continuous mode...")
            try:
                asyncio.run(run_continuous(config, count=args.count))
            except KeyboardInterrupt:
                logger.info("Stopped by user (Ctrl+C)")
            return 0

        run_type = RunType.MANUAL if args.manual else RunType.SCHEDULED
        result = asyncio.run(
            run_once(config, count=args.count, run_type=run_type, requested_by=OPERATOR)
        )
        logger.info("Run complete | result=%s", json.dumps(result))
        _print_result(result)
        return 0 if result["success"] else 1
    except KeyboardInterrupt:
        logger.info("Stopped by user (Ctrl+C)")
        return 130  # Standard exit code for SIGINT
    except Exception as e:
        logger.error("Pipeline failed | error=%s type=%s", e, type(e).__name__, exc_info=True)
        return 1


def cmd_ingest(args: argparse.Namespace, config: Config) -> int:
    """Fetch specific articles by id and process them."""
    from pipeline import Pipeline

    async def ingest() -> dict:
        pipeline = Pipeline(config)
        try:
            return (await pipeline.ingest_ids(args.ids, requested_by=OPERATOR)).to_dict()
        finally:
            pipeline.close()

    result = asyncio.run(ingest())
    _print_result(result)
    return 0 if result["articles_failed"] == 0 else 1


def cmd_reprocess(args: argparse.Namespace, config: Config) -> int:
    """Re-summarize one stored article."""
    from errors import PipelineError
    from pipeline import Pipeline

    async def reprocess():
        pipeline = Pipeline(config)
        try:
            return await pipeline.reprocess(args.id, requested_by=OPERATOR)
        finally:
            pipeline.close()

    try:
        result = asyncio.run(reprocess())
    except PipelineError as e:
        print(f"Reprocess failed: {e}", file=sys.stderr)
        return 1

    print(f"Reprocessed {args.id}: {result.summary.heading}")
    print(f"Tokens: {result.tokens_used}  Cost: ${result.estimated_cost_usd:.4f}")
    return 0


def cmd_delete(args: argparse.Namespace, config: Config) -> int:
    """Soft delete articles."""
    from pipeline import Pipeline

    pipeline = Pipeline(config)
    try:
        deleted = pipeline.delete_articles(args.ids, requested_by=OPERATOR)
    finally:
        pipeline.close()

    print(f"Deleted {deleted} of {len(args.ids)} article(s).")
    return 0


def cmd_publication(args: argparse.Namespace, config: Config) -> int:
    """Publish or unpublish articles."""
    from pipeline import Pipeline

    published = args.command == "publish"
    pipeline = Pipeline(config)
    try:
        changed = pipeline.set_publication(args.ids, published, requested_by=OPERATOR)
    finally:
        pipeline.close()

    print(f"{'Published' if published else 'Unpublished'} {changed} article(s).")
    return 0


def cmd_recover_stale(args: argparse.Namespace, config: Config) -> int:
    """Fail summaries stuck in PROCESSING."""
    from pipeline import Pipeline

    pipeline = Pipeline(config)
    try:
        recovered = pipeline.recover_stale(args.minutes, requested_by=OPERATOR)
    finally:
        pipeline.close()

    if not recovered:
        print("No stale summaries.")
        return 0

    print(f"Marked {len(recovered)} stale summary(ies) FAILED:")
    for article_id in recovered:
        print(f"  {article_id}")
    return 0


def cmd_backfill_slugs(args: argparse.Namespace, config: Config) -> int:
    """Assign slugs to completed summaries that have none."""
    from pipeline import Pipeline

    pipeline = Pipeline(config)
    try:
        assigned = pipeline.backfill_slugs()
    finally:
        pipeline.close()

    print(f"Assigned {assigned} slug(s).")
    return 0


def cmd_runs(args: argparse.Namespace, config: Config) -> int:
    """Display recent job ledger entries."""
    from ledger import JobLedger

    with Database(config.db_path) as db:
        runs = JobLedger(db).recent(args.limit)

    if not runs:
        print("No runs recorded.")
        return 0

    print(f"\n=== Recent Runs (last {len(runs)}) ===\n")

    for run in runs:
        started = datetime.fromtimestamp(run["started_at"])
        finished = datetime.fromtimestamp(run["finished_at"]) if run["finished_at"] else None

        print(f"#{run['id']} {run['run_type']} {run['status']}")
        print(f"   Started:  {started.strftime('%Y-%m-%d %H:%M:%S')}")
        if finished:
            print(f"   Finished: {finished.strftime('%Y-%m-%d %H:%M:%S')}")
        print(
            f"   Found: {run['articles_found']}  Processed: {run['articles_processed']}"
            f"  Failed: {run['articles_failed']}"
        )

        if run["error"]:
            error = run["error"]
            if len(error) > 200:
                error = error[:200] + "..."
            print(f"   Errors: {error}")

        print()

    return 0


def cmd_status(args: argparse.Namespace, config: Config) -> int:
    """Display configuration and database statistics.

    Args:
        args: Parsed command line arguments
        config: Application configuration

    Returns:
        Exit code (0 for success)
    """
    with Database(config.db_path) as db:
        db_stats = db.stats()

    status = {
        "config": {
            "summary_model": config.summary_model,
            "sections": list(config.sections),
            "default_fetch_count": config.default_fetch_count,
            "manual_fetch_count": config.manual_fetch_count,
            "poll_interval": config.poll_interval_seconds,
            "enable_logfire": config.enable_logfire,
        },
        "database": {
            "path": str(config.db_path),
            **db_stats,
        },
    }

    print(json.dumps(status, indent=2))
    return 0


def cmd_serve(args: argparse.Namespace, config: Config) -> int:
    """Run the HTTP trigger endpoints."""
    from server import serve

    if not config.cron_secret and not config.admin_token:
        logger.warning("Neither CRON_SECRET nor ADMIN_TOKEN is set; every request will be rejected")

    try:
        serve(config, host=args.host, port=args.port)
    except KeyboardInterrupt:
        logger.info("Stopped by user (Ctrl+C)")
        return 130
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="newsbrief: news ingestion and summarization pipeline",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # run command
    run_parser = subparsers.add_parser("run", help="Run the ingestion pipeline")
    run_parser.add_argument(
        "--count",
        type=int,
        help="Target number of articles (default: DEFAULT_FETCH_COUNT, or MANUAL_FETCH_COUNT with --manual)",
    )
    run_parser.add_argument(
        "--manual",
        action="store_true",
        help="Record the run as MANUAL in the job ledger",
    )
    run_parser.add_argument(
        "-c", "--continuous",
        action="store_true",
        help="Run continuously with polling",
    )
    run_parser.add_argument(
        "--interval",
        type=int,
        help="Poll interval in seconds (continuous mode)",
    )

    # ingest command
    ingest_parser = subparsers.add_parser("ingest", help="Fetch and process specific articles")
    ingest_parser.add_argument(
        "--id",
        dest="ids",
        action="append",
        required=True,
        help="Content API article id (repeatable)",
    )

    # reprocess command
    reprocess_parser = subparsers.add_parser("reprocess", help="Re-summarize a stored article")
    reprocess_parser.add_argument("--id", required=True, help="Article id")

    # delete / publish / unpublish commands
    for name, help_text in (
        ("delete", "Soft delete articles (ids are never ingested again)"),
        ("publish", "Mark articles PUBLISHED"),
        ("unpublish", "Mark articles UNPUBLISHED"),
    ):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument(
            "--id",
            dest="ids",
            action="append",
            required=True,
            help="Article id (repeatable)",
        )

    # recover-stale command
    stale_parser = subparsers.add_parser("recover-stale", help="Fail summaries stuck in PROCESSING")
    stale_parser.add_argument(
        "--minutes",
        type=int,
        help="Age threshold in minutes (default: STALE_PROCESSING_MINUTES)",
    )

    # backfill-slugs command
    subparsers.add_parser("backfill-slugs", help="Assign slugs to completed summaries without one")

    # runs command
    runs_parser = subparsers.add_parser("runs", help="Show recent job runs")
    runs_parser.add_argument(
        "--limit",
        type=int,
        default=10,
        help="Number of runs to show (default: 10)",
    )

    # status command
    subparsers.add_parser("status", help="Show configuration and statistics")

    # serve command
    serve_parser = subparsers.add_parser("serve", help="Start the HTTP trigger endpoints")
    serve_parser.add_argument("--host", help="Bind address (default: SERVER_HOST)")
    serve_parser.add_argument("--port", type=int, help="Port (default: SERVER_PORT)")

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point.

    Returns:
        Exit code
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    # Load configuration
    config = Config.load()

    # Setup logging
    setup_logging(config, verbose=args.verbose)

    # Validate configuration for commands that call external APIs
    if args.command in ("run", "ingest", "reprocess", "serve"):
        error = config.validate()
        if error:
            print(f"Configuration error: {error}", file=sys.stderr)
            return 1

    # Route to command handler
    commands = {
        "run": cmd_run,
        "ingest": cmd_ingest,
        "reprocess": cmd_reprocess,
        "delete": cmd_delete,
        "publish": cmd_publication,
        "unpublish": cmd_publication,
        "recover-stale": cmd_recover_stale,
        "backfill-slugs": cmd_backfill_slugs,
        "runs": cmd_runs,
        "status": cmd_status,
        "serve": cmd_serve,
    }

    if args.command in commands:
        if args.command == "run" and args.count is not None and args.count < 1:
            print("Error: --count must be at least 1", file=sys.stderr)
            return 1
        try:
            return commands[args.command](args, config)
        except KeyboardInterrupt:
            logger.info("Stopped by user (Ctrl+C)")
            return 130
        except Exception as e:
            logger.error("Command failed | cmd=%s error=%s", args.command, e, exc_info=True)
            print(f"Error: {e}", file=sys.stderr)
            return 1
    else:
        parser.print_help()
        return 0


if __name__ == "__main__":
    sys.exit(main())
