"""
Kanban board operations: columns, tasks and drag-and-drop positioning.

Tasks are ordered inside their column by ``order_index``. New and moved tasks
land at the end of the target column, one past its highest index.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional

from accountify.db import (
    COLUMNS_TABLE,
    TASKS_TABLE,
    DbClient,
    KanbanColumnRecord,
    KanbanTaskRecord,
)
from accountify.enums import ChangeType, Priority, TaskType
from accountify.realtime import ChangeFeed, publish_change

logger = logging.getLogger(__name__)

DEFAULT_COLUMNS = ("Backlog", "In Progress", "Review", "Complete")


class BoardError(LookupError):
    """Raised when a column or task referenced by an operation does not exist."""


@dataclass
class BoardColumn:
    id: str
    title: str
    order_index: int
    tasks: list[KanbanTaskRecord] = field(default_factory=list)

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "order_index": self.order_index,
            "tasks": [task.as_dict() for task in self.tasks],
        }


def get_board(db: DbClient) -> list[BoardColumn]:
    columns = [
        BoardColumn(id=c.id, title=c.title, order_index=c.order_index)
        for c in db.list_columns()
    ]
    by_id = {column.id: column for column in columns}
    for task in db.list_tasks():
        column = by_id.get(task.column_id)
        if column is not None:
            column.tasks.append(task)
    return columns


def next_order_index(db: DbClient, column_id: str) -> int:
    tasks = db.list_tasks(column_id=column_id)
    if not tasks:
        return 1
    return max(task.order_index for task in tasks) + 1


def next_column_index(db: DbClient) -> int:
    columns = db.list_columns()
    if not columns:
        return 0
    return max(column.order_index for column in columns) + 1


def create_column(
    db: DbClient,
    title: str,
    order_index: Optional[int] = None,
    feed: ChangeFeed | None = None,
) -> KanbanColumnRecord:
    if order_index is None:
        order_index = next_column_index(db)
    column = db.create_column(title, order_index)
    publish_change(feed, COLUMNS_TABLE, ChangeType.INSERT, record=column.as_dict())
    return column


def update_column(
    db: DbClient,
    column_id: str,
    title: str,
    order_index: int,
    feed: ChangeFeed | None = None,
) -> KanbanColumnRecord:
    column = db.update_column(column_id, title, order_index)
    if column is None:
        raise BoardError(f"Column {column_id} not found")
    publish_change(feed, COLUMNS_TABLE, ChangeType.UPDATE, record=column.as_dict())
    return column


def delete_column(db: DbClient, column_id: str, feed: ChangeFeed | None = None) -> None:
    if not db.delete_column(column_id):
        raise BoardError(f"Column {column_id} not found")
    publish_change(feed, COLUMNS_TABLE, ChangeType.DELETE, old_record={"id": column_id})


def add_task(
    db: DbClient,
    *,
    title: str,
    task_type: TaskType,
    priority: Priority,
    column_id: str,
    order_index: Optional[int] = None,
    description: Optional[str] = None,
    client_name: Optional[str] = None,
    deadline: Optional[str] = None,
    assigned_to: Optional[str] = None,
    feed: ChangeFeed | None = None,
) -> KanbanTaskRecord:
    """Create a task, appending it to its column unless an index is given."""
    if db.get_column(column_id) is None:
        raise BoardError(f"Column {column_id} not found")
    if order_index is None:
        order_index = next_order_index(db, column_id)
    task = db.create_task(
        title=title,
        task_type=task_type,
        priority=priority,
        column_id=column_id,
        order_index=order_index,
        description=description or None,
        client_name=client_name or None,
        deadline=deadline or None,
        assigned_to=assigned_to or None,
    )
    publish_change(feed, TASKS_TABLE, ChangeType.INSERT, record=task.as_dict())
    return task


def update_task(
    db: DbClient, task_id: str, feed: ChangeFeed | None = None, **fields
) -> KanbanTaskRecord:
    column_id = fields.get("column_id")
    if column_id is not None and db.get_column(column_id) is None:
        raise BoardError(f"Column {column_id} not found")
    old = db.get_task(task_id)
    if old is None:
        raise BoardError(f"Task {task_id} not found")
    old_record = old.as_dict()
    task = db.update_task(task_id, **fields)
    if task is None:
        raise BoardError(f"Task {task_id} not found")
    publish_change(
        feed,
        TASKS_TABLE,
        ChangeType.UPDATE,
        record=task.as_dict(),
        old_record=old_record,
    )
    return task


def delete_task(db: DbClient, task_id: str, feed: ChangeFeed | None = None) -> None:
    if not db.delete_task(task_id):
        raise BoardError(f"Task {task_id} not found")
    publish_change(feed, TASKS_TABLE, ChangeType.DELETE, old_record={"id": task_id})


def move_task(
    db: DbClient,
    task_id: str,
    column_id: str,
    order_index: Optional[int] = None,
    feed: ChangeFeed | None = None,
) -> KanbanTaskRecord:
    """
    Move a task to another column.

    Dropping a task on its own column without an explicit index changes
    nothing. Otherwise the task goes to ``order_index`` or, when that is not
    given, to the end of the target column.
    """
    task = db.get_task(task_id)
    if task is None:
        raise BoardError(f"Task {task_id} not found")
    if db.get_column(column_id) is None:
        raise BoardError(f"Column {column_id} not found")
    if task.column_id == column_id and order_index is None:
        return task
    if order_index is None:
        order_index = next_order_index(db, column_id)
    old_record = task.as_dict()
    moved = db.set_task_position(task_id, column_id, order_index)
    logger.debug("Moved task %s to column %s at %d", task_id, column_id, order_index)
    publish_change(
        feed,
        TASKS_TABLE,
        ChangeType.UPDATE,
        record=moved.as_dict(),
        old_record=old_record,
    )
    return moved


def reorder_tasks(
    db: DbClient,
    positions: Iterable[tuple[str, int]],
    feed: ChangeFeed | None = None,
) -> list[KanbanTaskRecord]:
    """Apply ``(task_id, order_index)`` pairs in order, stopping at an unknown id."""
    updated = []
    for task_id, order_index in positions:
        task = db.update_task(task_id, order_index=order_index)
        if task is None:
            raise BoardError(f"Task {task_id} not found")
        publish_change(feed, TASKS_TABLE, ChangeType.UPDATE, record=task.as_dict())
        updated.append(task)
    return updated


def seed_default_board(
    db: DbClient, titles: Iterable[str] = DEFAULT_COLUMNS
) -> list[KanbanColumnRecord]:
    """Create the default columns when the board has none."""
    if db.list_columns():
        return []
    return [db.create_column(title, index) for index, title in enumerate(titles)]
