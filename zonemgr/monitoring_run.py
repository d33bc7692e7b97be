"""Run one monitoring sweep from cron: ``python -m zonemgr.monitoring_run``."""

from __future__ import annotations

import argparse
import logging
import sys

from zonemgr.db.session import SessionLocal
from zonemgr.services.diagnostics import cleanup_diagnostic_log, run_monitoring
from zonemgr.settings import get_settings

log = logging.getLogger("zonemgr.monitoring_run")


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Check all active name servers and their zones.")
    parser.add_argument(
        "--cleanup-log",
        action="store_true",
        help="also delete diagnostic log entries older than the configured retention",
    )
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=get_settings().log_level.upper(),
        format="%(levelname)s [%(name)s] %(message)s",
        stream=sys.stdout,
    )

    db = SessionLocal()
    try:
        result = run_monitoring(db)
        if args.cleanup_log:
            cleanup_diagnostic_log(db)
    except Exception as e:
        log.error(f"Monitoring run failed: {e}")
        db.rollback()
        return 1
    finally:
        db.close()

    if not result.ok:
        log.error(f"Monitoring run finished with {len(result.errors)} failure(s)")
        return 1
    log.info("Monitoring run finished")
    return 0


if __name__ == "__main__":
    sys.exit(main())
