import unittest

from testing_utils import ADMIN, CLIENT_USER, COLLABORATOR, make_client

from accountify import kanban
from accountify.db import InMemoryDbClient
from accountify.enums import Priority, TaskType
from accountify.realtime import InMemoryChangeFeed


def _task(db, column_id, title="Prepare quarterly reports", **kwargs):
    return kanban.add_task(
        db,
        title=title,
        task_type=kwargs.pop("task_type", TaskType.BOOKKEEPING),
        priority=kwargs.pop("priority", Priority.HIGH),
        column_id=column_id,
        **kwargs,
    )


class KanbanTests(unittest.TestCase):
    def setUp(self):
        self.db = InMemoryDbClient()
        self.feed = InMemoryChangeFeed()
        self.backlog, self.doing, self.review, self.done = kanban.seed_default_board(
            self.db
        )

    def test_seed_only_on_empty_board(self):
        self.assertEqual(
            [c.title for c in self.db.list_columns()],
            ["Backlog", "In Progress", "Review", "Complete"],
        )
        self.assertEqual(kanban.seed_default_board(self.db), [])
        self.assertEqual(len(self.db.list_columns()), 4)

    def test_new_tasks_append_to_column(self):
        first = _task(self.db, self.backlog.id)
        second = _task(self.db, self.backlog.id, title="Contact new client")
        self.assertEqual(first.order_index, 1)
        self.assertEqual(second.order_index, 2)

    def test_explicit_order_index_is_kept(self):
        task = _task(self.db, self.backlog.id, order_index=7)
        self.assertEqual(task.order_index, 7)
        self.assertEqual(kanban.next_order_index(self.db, self.backlog.id), 8)

    def test_blank_optional_fields_become_none(self):
        task = _task(self.db, self.backlog.id, client_name="", assigned_to="")
        self.assertIsNone(task.client_name)
        self.assertIsNone(task.assigned_to)

    def test_add_task_to_unknown_column(self):
        with self.assertRaises(kanban.BoardError):
            _task(self.db, "missing")

    def test_board_groups_tasks_in_order(self):
        _task(self.db, self.doing.id, title="b", order_index=2)
        _task(self.db, self.doing.id, title="a", order_index=1)
        _task(self.db, self.review.id, title="c")

        board = kanban.get_board(self.db)
        self.assertEqual([c.title for c in board], ["Backlog", "In Progress", "Review", "Complete"])
        self.assertEqual([t.title for t in board[1].tasks], ["a", "b"])
        self.assertEqual([t.title for t in board[2].tasks], ["c"])
        self.assertEqual(board[0].tasks, [])

    def test_move_appends_to_target_column(self):
        _task(self.db, self.review.id, title="existing", order_index=4)
        task = _task(self.db, self.backlog.id)

        moved = kanban.move_task(self.db, task.id, self.review.id, feed=self.feed)

        self.assertEqual(moved.column_id, self.review.id)
        self.assertEqual(moved.order_index, 5)
        event = self.feed.published[-1]
        self.assertEqual(event.old_record["column_id"], self.backlog.id)
        self.assertEqual(event.record["column_id"], self.review.id)

    def test_move_into_empty_column_starts_at_one(self):
        task = _task(self.db, self.backlog.id)
        moved = kanban.move_task(self.db, task.id, self.done.id)
        self.assertEqual(moved.order_index, 1)

    def test_drop_on_same_column_is_noop(self):
        task = _task(self.db, self.backlog.id)
        unchanged = kanban.move_task(self.db, task.id, self.backlog.id, feed=self.feed)
        self.assertEqual(unchanged.order_index, task.order_index)
        self.assertEqual(len(self.feed.published), 0)

    def test_move_unknown_task_or_column(self):
        task = _task(self.db, self.backlog.id)
        with self.assertRaises(kanban.BoardError):
            kanban.move_task(self.db, "missing", self.done.id)
        with self.assertRaises(kanban.BoardError):
            kanban.move_task(self.db, task.id, "missing")

    def test_reorder_applies_positions(self):
        a = _task(self.db, self.backlog.id, title="a")
        b = _task(self.db, self.backlog.id, title="b")
        kanban.reorder_tasks(self.db, [(a.id, 2), (b.id, 1)])
        self.assertEqual(
            [t.title for t in self.db.list_tasks(self.backlog.id)], ["b", "a"]
        )

    def test_reorder_stops_at_unknown_task(self):
        a = _task(self.db, self.backlog.id, title="a")
        with self.assertRaises(kanban.BoardError):
            kanban.reorder_tasks(self.db, [(a.id, 9), ("missing", 1)])
        self.assertEqual(self.db.get_task(a.id).order_index, 9)

    def test_delete_column_removes_its_tasks(self):
        task = _task(self.db, self.backlog.id)
        kanban.delete_column(self.db, self.backlog.id)
        self.assertIsNone(self.db.get_task(task.id))
        with self.assertRaises(kanban.BoardError):
            kanban.delete_column(self.db, self.backlog.id)

    def test_new_column_goes_last(self):
        column = kanban.create_column(self.db, "Archived")
        self.assertEqual(column.order_index, 4)


class KanbanApiTests(unittest.TestCase):
    def setUp(self):
        self.client, self.db, self.storage, self.feed = make_client()
        kanban.seed_default_board(self.db)
        self.columns = self.db.list_columns()

    def test_board_crud_flow(self):
        created = self.client.post(
            "/api/kanban/tasks",
            json={
                "title": "Review tax documents",
                "task_type": "Tax Filing",
                "priority": "Urgent",
                "column_id": self.columns[0].id,
                "client_name": "ABC Corporation",
                "deadline": "2023-07-10",
            },
            headers=COLLABORATOR,
        )
        self.assertEqual(created.status_code, 201)
        task = created.json()
        self.assertEqual(task["order_index"], 1)

        moved = self.client.post(
            f"/api/kanban/tasks/{task['id']}/move",
            json={"column_id": self.columns[1].id},
            headers=ADMIN,
        )
        self.assertEqual(moved.status_code, 200)
        self.assertEqual(moved.json()["column_id"], self.columns[1].id)

        patched = self.client.patch(
            f"/api/kanban/tasks/{task['id']}",
            json={"assigned_to": "Emma Wilson", "priority": "High"},
            headers=ADMIN,
        )
        self.assertEqual(patched.json()["assigned_to"], "Emma Wilson")
        self.assertEqual(patched.json()["priority"], "High")

        board = self.client.get("/api/kanban/board", headers=ADMIN).json()
        self.assertEqual(board["columns"][1]["tasks"][0]["id"], task["id"])

        deleted = self.client.delete(f"/api/kanban/tasks/{task['id']}", headers=ADMIN)
        self.assertEqual(deleted.status_code, 200)

    def test_invalid_enum_values_are_rejected(self):
        response = self.client.post(
            "/api/kanban/tasks",
            json={
                "title": "x",
                "task_type": "Gardening",
                "priority": "Low",
                "column_id": self.columns[0].id,
            },
            headers=ADMIN,
        )
        self.assertEqual(response.status_code, 422)

    def test_update_task_rejects_null_required_fields(self):
        task = _task(self.db, self.columns[0].id)
        for field in ("title", "task_type", "priority", "column_id", "order_index"):
            response = self.client.patch(
                f"/api/kanban/tasks/{task.id}", json={field: None}, headers=ADMIN
            )
            self.assertEqual(response.status_code, 422, field)

        board = self.client.get("/api/kanban/board", headers=ADMIN)
        self.assertEqual(board.status_code, 200)
        tasks = board.json()["columns"][0]["tasks"]
        self.assertEqual([t["id"] for t in tasks], [task.id])
        self.assertEqual(tasks[0]["task_type"], "Bookkeeping")

    def test_reorder_endpoint(self):
        a = _task(self.db, self.columns[0].id, title="a")
        b = _task(self.db, self.columns[0].id, title="b")
        response = self.client.post(
            "/api/kanban/tasks/reorder",
            json={"tasks": [{"id": a.id, "order_index": 2}, {"id": b.id, "order_index": 1}]},
            headers=ADMIN,
        )
        self.assertEqual(response.status_code, 200)
        board = self.client.get("/api/kanban/board", headers=ADMIN).json()
        self.assertEqual([t["title"] for t in board["columns"][0]["tasks"]], ["b", "a"])

    def test_column_endpoints(self):
        created = self.client.post(
            "/api/kanban/columns", json={"title": "Blocked"}, headers=ADMIN
        )
        self.assertEqual(created.status_code, 201)
        column_id = created.json()["id"]
        renamed = self.client.put(
            f"/api/kanban/columns/{column_id}",
            json={"title": "On Hold", "order_index": 9},
            headers=ADMIN,
        )
        self.assertEqual(renamed.json()["title"], "On Hold")
        missing = self.client.put(
            "/api/kanban/columns/missing",
            json={"title": "x", "order_index": 0},
            headers=ADMIN,
        )
        self.assertEqual(missing.status_code, 404)
        deleted = self.client.delete(f"/api/kanban/columns/{column_id}", headers=ADMIN)
        self.assertEqual(deleted.status_code, 200)

    def test_clients_cannot_see_board(self):
        response = self.client.get("/api/kanban/board", headers=CLIENT_USER)
        self.assertEqual(response.status_code, 403)


if __name__ == "__main__":
    unittest.main()
