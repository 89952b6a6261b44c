"""Run scan ticks from cron or as a long-running loop.

    python scripts/run_scan.py              # one tick, then exit
    python scripts/run_scan.py --loop       # tick every NERDIVERSARY_SCAN_INTERVAL_SECONDS
"""

from __future__ import annotations

import argparse
import asyncio
import datetime
import json
import logging
import os
import sys

# Add the project root to the path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

logger = logging.getLogger("scripts.run_scan")


def _parse_now(raw: str | None, *, current: datetime.datetime | None = None) -> datetime.datetime | None:
  """Parse --now; a future instant would push the persisted watermark past the real clock."""
  from nerdiversary.utils.time import ensure_utc, utc_now

  if raw is None:
    return None

  now = ensure_utc(datetime.datetime.fromisoformat(raw.replace("Z", "+00:00")))
  if now > (current or utc_now()):
    raise ValueError(f"--now must not be in the future: {raw}")
  return now


async def main(*, loop: bool, now: datetime.datetime | None) -> int:
  from nerdiversary.config import get_settings
  from nerdiversary.core.database import dispose_engine
  from nerdiversary.core.logging import _initialize_logging
  from nerdiversary.core.migrations import upgrade_schema
  from nerdiversary.notifications.factory import build_pipeline

  settings = get_settings()
  _initialize_logging(settings)
  if settings.auto_create_schema:
    await upgrade_schema()

  pipeline = build_pipeline(settings)
  try:
    while True:
      try:
        report = await pipeline.run_scan(now)
        print(json.dumps(report.to_dict()))
      except Exception:  # noqa: BLE001
        if not loop:
          raise
        logger.error("Scan tick failed; retrying next interval.", exc_info=True)

      if not loop:
        return 0
      await asyncio.sleep(settings.scan_interval_seconds)
  finally:
    await dispose_engine()


if __name__ == "__main__":
  parser = argparse.ArgumentParser(description="Deliver due milestone notifications.")
  parser.add_argument("--loop", action="store_true", help="Keep ticking every scan interval instead of exiting.")
  parser.add_argument("--now", default=None, help="Override the scan instant (ISO-8601); single tick only.")
  args = parser.parse_args()
  if args.loop and args.now:
    parser.error("--now cannot be combined with --loop")

  try:
    scan_now = _parse_now(args.now)
  except ValueError as exc:
    parser.error(str(exc))

  sys.exit(asyncio.run(main(loop=args.loop, now=scan_now)))
