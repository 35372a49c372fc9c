"""
Job runner.

Usage:
    python -m planning_poker.jobs [job] [--days N]

The job name defaults to ``$JOB_NAME``, then ``data_retention``.
"""

import argparse
import asyncio
import os
import sys

from planning_poker.config import get_settings
from planning_poker.jobs import DEFAULT_JOB, run_job
from planning_poker.log import configure_logging


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(prog="python -m planning_poker.jobs", description="Run a scheduled job.")
    parser.add_argument("job", nargs="?", default=os.environ.get("JOB_NAME") or DEFAULT_JOB)
    parser.add_argument("--days", type=int, default=None, help="Retention window override in days")
    args = parser.parse_args(argv)

    if args.days is not None and args.days < 1:
        parser.error("--days must be a positive integer")

    settings = get_settings()
    configure_logging(settings.log_level)
    ok = asyncio.run(run_job(args.job, settings, days=args.days))
    return 0 if ok else 1


if __name__ == "__main__":
    sys.exit(main())
