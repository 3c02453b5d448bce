"""
Seed the kanban board with its default columns and, optionally, demo tasks.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from accountify import kanban
from accountify.config import get_settings
from accountify.dependencies import get_db_client
from accountify.enums import Priority, TaskType
from accountify.logging_config import configure_logging

logger = logging.getLogger(__name__)

# (column title, title, type, client, deadline, priority, assignee)
DEMO_TASKS = (
    (
        "Backlog",
        "Contact new client",
        TaskType.CONSULTATION,
        "Smith & Co.",
        "2023-07-15",
        Priority.MEDIUM,
        "Sarah Johnson",
    ),
    (
        "Backlog",
        "Prepare quarterly reports",
        TaskType.BOOKKEEPING,
        "Johnson LLC",
        "2023-07-20",
        Priority.HIGH,
        "Michael Davis",
    ),
    (
        "In Progress",
        "Review tax documents",
        TaskType.TAX_FILING,
        "ABC Corporation",
        "2023-07-10",
        Priority.HIGH,
        "Emma Wilson",
    ),
    (
        "Review",
        "Internal audit",
        TaskType.AUDIT,
        "XYZ Enterprises",
        "2023-07-05",
        Priority.URGENT,
        "Robert Brown",
    ),
    (
        "Complete",
        "File annual returns",
        TaskType.TAX_FILING,
        "Davis Accounting",
        "2023-06-30",
        Priority.HIGH,
        "Jennifer Lee",
    ),
)


def main() -> int:
    parser = argparse.ArgumentParser(description="Seed the kanban board")
    parser.add_argument(
        "--demo-tasks",
        action="store_true",
        help="Also add a handful of sample tasks",
    )
    args = parser.parse_args()

    configure_logging(get_settings().log_level)
    db = get_db_client()

    created = kanban.seed_default_board(db)
    if not created:
        logger.info("Board already has columns; nothing to seed")
        return 0
    logger.info("Created %d columns", len(created))

    if args.demo_tasks:
        by_title = {column.title: column.id for column in created}
        for column_title, title, task_type, client, deadline, priority, assignee in DEMO_TASKS:
            column_id = by_title.get(column_title)
            if column_id is None:
                continue
            kanban.add_task(
                db,
                title=title,
                task_type=task_type,
                priority=priority,
                column_id=column_id,
                client_name=client,
                deadline=deadline,
                assigned_to=assignee,
            )
        logger.info("Added %d demo tasks", len(DEMO_TASKS))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
