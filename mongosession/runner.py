from __future__ import annotations

import argparse
import logging
from typing import List, Optional

from dotenv import load_dotenv

from mongosession.app.logging import setup_logging
from mongosession.app.settings import Settings, load_settings
from mongosession.session.store import SessionStore

logger = logging.getLogger(__name__)


def run_gc(settings: Settings) -> bool:
    """Deactivate every expired session."""
    store = SessionStore.from_settings(settings)
    try:
        return store.gc()
    finally:
        store.close()


def run_cleanup(settings: Settings) -> int:
    """
    Batch job for cron:
    - deactivate expired sessions
    - hard-delete the inactive ones
    Returns the number of removed documents.
    """
    store = SessionStore.from_settings(settings)
    try:
        if not store.gc():
            logger.warning("sweep failed, purging previously deactivated sessions only")
        return store.purge_inactive()
    finally:
        store.close()


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(prog="mongosession", description="Session store maintenance jobs.")
    parser.add_argument("job", choices=["gc", "cleanup"], help="gc: soft-delete expired sessions; cleanup: gc then purge")
    args = parser.parse_args(argv)

    load_dotenv()  # Load .env file
    s = load_settings()
    setup_logging(s.log_level)

    if args.job == "gc":
        return 0 if run_gc(s) else 1

    removed = run_cleanup(s)
    logger.info("cleanup finished, %d sessions removed", removed)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
