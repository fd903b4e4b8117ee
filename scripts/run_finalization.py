"""
Run daily attendance finalization (cron entry point).
Safe to re-run for the same date: finalized records are left alone.

Usage:
  python scripts/run_finalization.py                    # yesterday
  python scripts/run_finalization.py --date 2026-03-02
  python scripts/run_finalization.py --date 2026-03-02 --workers 4
"""
import argparse
import json
import logging
import sys
from datetime import date
from pathlib import Path

# Add project root so attendance_engine is importable
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from sqlalchemy.exc import OperationalError

from attendance_engine.core.config import settings
from attendance_engine.core.errors import AttendanceError
from attendance_engine.core.logging import setup_logging
from attendance_engine.db import session as db_session
from attendance_engine.services.finalization_service import run_finalization

logger = logging.getLogger("run_finalization")


def main():
    parser = argparse.ArgumentParser(description="Finalize attendance for a work date")
    parser.add_argument("--date", type=date.fromisoformat, default=None, help="Work date YYYY-MM-DD (default: yesterday)")
    parser.add_argument("--workers", type=int, default=settings.FINALIZATION_MAX_WORKERS, help="Parallel workers")
    args = parser.parse_args()

    setup_logging()
    db_session.init_sqlite_schema()

    db = db_session.SessionLocal()
    try:
        summary = run_finalization(
            db,
            args.date,
            max_workers=max(1, args.workers),
            session_factory=db_session.SessionLocal,
        )
    except AttendanceError as e:
        print(f"Rejected: {e.detail}")
        return 2
    except OperationalError:
        logger.error("Database unavailable; run aborted")
        return 1
    finally:
        db.close()

    print(json.dumps(summary.to_dict(), indent=2, default=str))
    return 1 if summary.errored else 0


if __name__ == "__main__":
    sys.exit(main())
