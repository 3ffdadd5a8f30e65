#!/usr/bin/env python3
"""
Full sync: run every sync step in order for a complete data rebuild.

Usage:
    python scripts/sync_full.py                 # run everything
    python scripts/sync_full.py --dry-run       # preview without writing to the DB
    python scripts/sync_full.py --skip-ai       # skip AI-powered steps
    python scripts/sync_full.py --from=5        # resume from step 5
    python scripts/sync_full.py --steps steps.yml
"""

import argparse
import logging
import sys
import time

from poligraph import config
from poligraph.sync.runner import DEFAULT_STEPS, load_steps, run_sync, summarize

logging.basicConfig(
    level=config.LOG_LEVEL,
    format='%(asctime)s - %(levelname)s - %(message)s',
)
logger = logging.getLogger(__name__)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Run all sync steps sequentially")
    parser.add_argument("--dry-run", action="store_true", help="Pass --dry-run to every step")
    parser.add_argument("--skip-ai", action="store_true", help="Skip AI-powered steps")
    parser.add_argument("--from", dest="from_step", type=int, default=1, help="Resume from step N (1-based)")
    parser.add_argument("--steps", help="YAML file with the steps to run instead of the built-in list")
    args = parser.parse_args(argv)
    if args.from_step < 1:
        parser.error("--from must be >= 1")
    return args


def main(argv=None) -> int:
    args = parse_args(argv)
    steps = load_steps(args.steps) if args.steps else DEFAULT_STEPS

    start = time.monotonic()
    results = run_sync(steps, dry_run=args.dry_run, skip_ai=args.skip_ai, from_step=args.from_step)
    return summarize(results, time.monotonic() - start)


if __name__ == "__main__":
    sys.exit(main())
