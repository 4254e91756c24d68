"""
Daemon that periodically refreshes the earthquake feed and the analysis
cache so user requests are served warm.
"""

from __future__ import annotations

import argparse
import logging
import random
import sys
import time
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from backend.dependencies import get_analysis_cache, get_source_fetcher
from backend.errors import UpstreamFetchError

logger = logging.getLogger(__name__)


def warm_once() -> bool:
    """Refresh the feed, then the analysis for it. Returns False if the feed failed."""
    try:
        events = get_source_fetcher().get()
    except UpstreamFetchError as exc:
        logger.error("Feed refresh failed: %s", exc)
        return False
    analysis = get_analysis_cache().analyze(events)
    logger.info(
        "Warmed %d events, risk level %s", len(events), analysis.riskLevel.value
    )
    return True


def main() -> int:
    parser = argparse.ArgumentParser(description="BD Quake Monitor cache warmer")
    parser.add_argument(
        "--interval-seconds",
        type=int,
        default=60,
        help="Seconds between refresh runs",
    )
    parser.add_argument(
        "--jitter-seconds",
        type=int,
        default=5,
        help="Max random jitter added to sleep",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single refresh and exit",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(name)s %(levelname)s %(asctime)s %(message)s",
        datefmt="%m/%d/%Y %I:%M:%S %p",
    )

    while True:
        ok = warm_once()
        if args.once:
            return 0 if ok else 1

        sleep_for = args.interval_seconds + random.uniform(0, args.jitter_seconds)
        logger.info("Sleeping for %.1fs", sleep_for)
        time.sleep(sleep_for)


if __name__ == "__main__":
    raise SystemExit(main())
