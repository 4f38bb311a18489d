"""
Renormalize README

Sweeps every (school_id, program) waitlist that still has active entries
and rewrites their positions to 1..N in their current order. Declining or
enrolling an entry leaves a gap behind; run this to close those gaps
without waiting for the next manual reorder.
"""

import argparse
import logging
from admissions.core import db as database
from admissions.core.api import AdmissionsAPI

logger = logging.getLogger(__name__)


def renormalize(school_id=None, program=None):
    db = database.SessionLocal()
    try:
        api = AdmissionsAPI.from_session(db)
        if school_id and program:
            count = api.reorderer.renormalize(school_id, program)
            return {(school_id, program): count} if count else {}
        return api.renormalize_all()
    finally:
        db.close()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Close gaps in active waitlist positions")
    parser.add_argument("--school-id", help="Only this school (requires --program)")
    parser.add_argument("--program", help="Only this program (requires --school-id)")
    parser.add_argument("-v", "--verbose", action="store_true")
    args = parser.parse_args()
    if bool(args.school_id) != bool(args.program):
        parser.error("--school-id and --program must be given together")

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(levelname)s - %(message)s",
    )
    repaired = renormalize(args.school_id, args.program)
    for (school_id, program), count in sorted(repaired.items()):
        logger.info(f"{school_id}/{program}: {count} position(s) repaired")
    logger.info(f"Renormalized {len(repaired)} waitlist(s)")
