"""
Guest Review Hub CLI
====================

Command-line interface for review ingestion and reporting.

Commands:
    sync        - Pull reviews from a channel and ingest them
    stats       - Show headline review numbers
    performance - Show per-listing scorecards
    health      - Check store connectivity
    serve       - Run the HTTP API

Usage:
    python -m src.orchestrator.cli sync --source hostaway
    python -m src.orchestrator.cli sync --source google --place-id ChIJN1t_tDeuEmsRUsoyG83frY4
    python -m src.orchestrator.cli stats --timeframe 90d --json
    python -m src.orchestrator.cli performance --listing-ids a,b
    python -m src.orchestrator.cli serve --port 8000
"""

import argparse
import asyncio
import json
import logging
import sys

from ..data.config import get_settings
from ..data.google_places_client import GooglePlacesClient
from ..data.hostaway_client import HostawayClient
from ..data.ingestion_pipeline import IngestionPipeline
from ..data.places_service import PlacesReviewService
from ..data.store_factory import create_store
from ..reviews.analytics import ReviewAnalytics
from .logging_config import setup_logging

SOURCES = ("hostaway", "google")


def configure_logging(verbose: bool = False):
    """CLI logging: settings-driven, DEBUG when -v is given."""
    cfg = get_settings().logging
    setup_logging(
        level="DEBUG" if verbose else cfg.level,
        json_output=cfg.json_logs,
        log_file=cfg.log_file,
    )


def _apply_backend(args):
    if getattr(args, "backend", None):
        get_settings().store.backend = args.backend


async def _run_sync(args):
    store = await create_store()
    try:
        if args.source == "google":
            service = PlacesReviewService(store, client=GooglePlacesClient())
            payload = await service.get_reviews(
                place_id=args.place_id, listing_id=args.listing_id, force_refresh=True,
            )
            return payload["sync"]
        pipeline = IngestionPipeline(store)
        result = await pipeline.sync_source(HostawayClient(), "hostaway")
        return result.to_dict()
    finally:
        await store.close()


def cmd_sync(args):
    """Pull and ingest one channel."""
    if args.source == "google" and not (args.place_id or args.listing_id):
        print("ERROR: --place-id or --listing-id is required for google")
        return 1

    print("=" * 60)
    print(f"REVIEW SYNC: {args.source}")
    print("=" * 60)

    try:
        result = asyncio.run(_run_sync(args))
    except Exception as e:
        print(f"\nERROR: Sync failed: {e}")
        logging.exception("Sync failed")
        return 1

    print(f"Processed: {result['processed']}")
    print(f"Imported:  {result['imported']}")
    print(f"Updated:   {result['updated']}")
    print(f"Errors:    {len(result['errors'])}")
    for error in result["errors"]:
        print(f"  ✗ {error['review']}: {error['error']}")

    if args.json:
        print()
        print(json.dumps(result, indent=2, default=str))

    return 1 if result["errors"] and not result["processed"] else 0


async def _run_stats(timeframe, listing_id):
    store = await create_store()
    try:
        return await ReviewAnalytics(store).quick_stats(timeframe=timeframe, listing_id=listing_id)
    finally:
        await store.close()


def cmd_stats(args):
    """Headline numbers."""
    try:
        stats = asyncio.run(_run_stats(args.timeframe, args.listing_id))
    except Exception as e:
        print(f"ERROR: Failed to compute stats: {e}")
        return 1

    print("=" * 60)
    print(f"REVIEW STATS ({args.timeframe})")
    print("=" * 60)
    totals = stats["totals"]
    print(f"Reviews:  {totals['reviews']} ({totals['approved']} approved, {totals['pending']} pending)")
    print(f"Listings: {totals['listings']}")
    print(f"Channels: {totals['channels']}")
    print(f"Average rating: {stats['averages']['rating']}")
    print(f"Approval rate:  {stats['averages']['approvalRate']}%")
    print(f"Last 7 days:    {stats['recent']['last7Days']} ({stats['recent']['newReviews']} awaiting approval)")
    print(f"Low ratings:    {stats['health']['issues']}")

    if args.json:
        print()
        print(json.dumps(stats, indent=2, default=str))
    return 0


async def _run_performance(timeframe, listing_ids):
    store = await create_store()
    try:
        return await ReviewAnalytics(store).property_performance(timeframe=timeframe, listing_ids=listing_ids)
    finally:
        await store.close()


def cmd_performance(args):
    """Per-listing scorecards."""
    listing_ids = [i.strip() for i in args.listing_ids.split(",") if i.strip()] if args.listing_ids else None
    try:
        report = asyncio.run(_run_performance(args.timeframe, listing_ids))
    except Exception as e:
        print(f"ERROR: Failed to compute performance: {e}")
        return 1

    print("=" * 60)
    print(f"PROPERTY PERFORMANCE ({args.timeframe})")
    print("=" * 60)
    print()

    if not report["properties"]:
        print("No active listings found.")
        return 0

    for i, prop in enumerate(report["properties"], 1):
        print(f"{i}. {prop['listingName']}")
        print(f"   Rating: {prop['averageRating']} over {prop['totalReviews']} reviews")
        print(f"   Sentiment: {prop['sentimentScore']}")
        for rec in prop["recommendations"]:
            print(f"   - {rec}")
        print()

    print(f"Total: {report['overall']['totalProperties']} listings, overall {report['overall']['averageRating']}")

    if args.json:
        print()
        print(json.dumps(report, indent=2, default=str))
    return 0


async def _run_health():
    store = await create_store()
    try:
        return await store.ping()
    finally:
        await store.close()


def cmd_health(args):
    """Check store connectivity."""
    settings = get_settings()
    try:
        healthy = asyncio.run(_run_health())
    except Exception as e:
        print(f"ERROR: Health check failed: {e}")
        return 1

    print("=" * 60)
    print("HEALTH CHECK")
    print("=" * 60)
    icon = "✓" if healthy else "✗"
    print(f"  {icon} store ({settings.store.backend}): {'reachable' if healthy else 'unreachable'}")
    print(f"  - hostaway: {'mock' if settings.hostaway.use_mock else 'live'}")
    print(f"  - google: {'mock' if settings.google.use_mock else 'live'}")
    return 0 if healthy else 1


def cmd_serve(args):
    """Run the API under uvicorn."""
    import uvicorn

    uvicorn.run("src.api.main:app", host=args.host, port=args.port, reload=args.reload)
    return 0


def main():
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="guest-reviews",
        description="Guest Review Hub CLI",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose output",
    )
    parser.add_argument(
        "--backend",
        choices=("postgres", "memory"),
        help="Override STORE_BACKEND",
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # sync command
    sync_parser = subparsers.add_parser("sync", help="Pull reviews from a channel")
    sync_parser.add_argument(
        "--source",
        choices=SOURCES,
        default="hostaway",
        help="Channel to pull from (default: hostaway)",
    )
    sync_parser.add_argument("--place-id", help="Google place id")
    sync_parser.add_argument("--listing-id", help="Listing to attach Google reviews to")
    sync_parser.add_argument(
        "--json",
        action="store_true",
        help="Output the sync result as JSON",
    )

    # stats command
    stats_parser = subparsers.add_parser("stats", help="Show headline review numbers")
    stats_parser.add_argument(
        "--timeframe",
        default="30d",
        help="7d, 30d, 90d, 1y or all (default: 30d)",
    )
    stats_parser.add_argument("--listing-id", help="Restrict to one listing")
    stats_parser.add_argument(
        "--json",
        action="store_true",
        help="Output as JSON",
    )

    # performance command
    perf_parser = subparsers.add_parser("performance", help="Show per-listing scorecards")
    perf_parser.add_argument(
        "--timeframe",
        default="30d",
        help="7d, 30d, 90d or 1y (default: 30d)",
    )
    perf_parser.add_argument("--listing-ids", help="Comma-separated listing ids")
    perf_parser.add_argument(
        "--json",
        action="store_true",
        help="Output as JSON",
    )

    # health command
    subparsers.add_parser("health", help="Check store connectivity")

    # serve command
    serve_parser = subparsers.add_parser("serve", help="Run the HTTP API")
    serve_parser.add_argument("--host", default="0.0.0.0")
    serve_parser.add_argument("--port", type=int, default=8000)
    serve_parser.add_argument("--reload", action="store_true")

    args = parser.parse_args()
    configure_logging(args.verbose)
    _apply_backend(args)

    if args.command is None:
        parser.print_help()
        return 1

    # Dispatch to command handler
    commands = {
        "sync": cmd_sync,
        "stats": cmd_stats,
        "performance": cmd_performance,
        "health": cmd_health,
        "serve": cmd_serve,
    }

    handler = commands.get(args.command)
    if handler:
        return handler(args)
    else:
        parser.print_help()
        return 1


if __name__ == "__main__":
    sys.exit(main())
