"""Check that notifications can be created for a project."""

from __future__ import annotations

import argparse
import asyncio
import logging

from siteledger.application.use_cases.notifications import run_notification_diagnostics
from siteledger.config import get_settings
from siteledger.infrastructure.database import (
    create_database_engine,
    create_session_factory,
    initialize_database,
)
from siteledger.infrastructure.notifications import ChangeFeed
from siteledger.infrastructure.record_store import SqlRecordStore


def parse_args() -> argparse.Namespace:
    """Parse command line arguments for the diagnostics run."""

    parser = argparse.ArgumentParser(
        description="Run the SiteLedger notification pipeline diagnostics.",
    )
    parser.add_argument("--project-id", required=True, help="Project whose admin should be notified")
    parser.add_argument("--actor-id", required=True, help="User the test event is attributed to")
    parser.add_argument(
        "--skip-create",
        action="store_true",
        help="Do not write the final test notification.",
    )
    parser.add_argument("--verbose", action="store_true", help="Log every lookup.")
    return parser.parse_args()


async def run(args: argparse.Namespace) -> bool:
    settings = get_settings()
    engine = create_database_engine(settings.database_url)
    initialize_database(engine)
    try:
        store = SqlRecordStore(create_session_factory(engine), ChangeFeed(), max_workers=1)
        report = await run_notification_diagnostics(
            store,
            project_id=args.project_id,
            actor_id=args.actor_id,
            create_test_notification=not args.skip_create,
        )
    finally:
        engine.dispose()

    for step in report.steps:
        marker = "PASS" if step.passed else "FAIL"
        print(f"[{marker}] {step.name}: {step.detail}")
    if report.passed:
        print("All checks passed; notifications should be delivered.")
    return report.passed


def main() -> None:
    """Run the diagnostics and exit non-zero when a check fails."""

    args = parse_args()
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)
    if not asyncio.run(run(args)):
        raise SystemExit(1)


if __name__ == "__main__":
    main()
