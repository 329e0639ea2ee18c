"""
SitePortal — Entry Point.

`python main.py` loads the portal from the configured store (seeding it on
first run) and logs a snapshot of the office dashboard.
"""

import logging

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

from siteportal.adapters.store_factory import create_store
from siteportal.core.portal import Portal

logger = logging.getLogger("siteportal")


def main() -> None:
    portal = Portal.load(create_store())
    user = portal.current_user
    if user is None:
        logger.info("No active session. Sign in with a team email to continue.")
        return

    stats = portal.dashboard()
    report = portal.completed_report()
    board = portal.task_board()
    logger.info(
        "%s (%s): %d active jobs, %d new, %d completed this month worth £%.2f",
        user.name, user.role.value, stats.active, stats.new, report.count, report.total_value,
    )
    logger.info(
        "Tasks: %d overdue, %d today, %d tomorrow, %d upcoming, %d delegated",
        len(board.groups.overdue), len(board.groups.today), len(board.groups.tomorrow),
        len(board.groups.upcoming), len(board.delegated),
    )


if __name__ == "__main__":
    main()
