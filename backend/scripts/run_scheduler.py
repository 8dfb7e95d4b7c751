"""Resume due delays and fail stale executions; meant to run from cron."""
from __future__ import annotations

import argparse
import pathlib
import sys
import time

ROOT = pathlib.Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from backend.app import create_app
from backend.app.flows import run_scheduler_tick


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--interval",
        type=float,
        default=0,
        help="Seconds between ticks; run a single tick when omitted.",
    )
    args = parser.parse_args()

    app = create_app()
    with app.app_context():
        while True:
            summary = run_scheduler_tick()
            print(
                "Scheduler tick",
                f"processed={summary['processed']}",
                f"errors={summary['errors']}",
                f"stale={summary['stale']}",
            )
            if args.interval <= 0:
                break
            time.sleep(args.interval)


if __name__ == "__main__":
    main()
