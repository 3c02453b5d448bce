import unittest

from accountify.db import PostgresDbClient, ProfileRecord
from accountify.enums import Priority, TaskType, UserRole


class PostgresDbClientTests(unittest.TestCase):
    """
    Uses SQLite via SQLAlchemy URL for fast/local testing of the Postgres client logic.
    """

    def setUp(self):
        self.db = PostgresDbClient("sqlite+pysqlite:///:memory:")
        self.client = self.db.create_client(
            name="Jane Smith",
            company="Smith & Co",
            email="jane@smithco.test",
            phone="555-0100",
        )

    def test_requires_url(self):
        with self.assertRaises(ValueError):
            PostgresDbClient("")

    def test_client_roundtrip(self):
        fetched = self.db.get_client(self.client.id)
        self.assertEqual(fetched.company, "Smith & Co")
        self.assertEqual(
            self.db.get_client_by_email("jane@smithco.test").id, self.client.id
        )
        self.assertIsNone(self.db.get_client_by_email("nobody@example.test"))

    def test_list_clients_sorted_by_name(self):
        self.db.create_client(
            name="adam Brown", company="Brown LLC", email="a@b.test", phone="1"
        )
        names = [c.name for c in self.db.list_clients()]
        self.assertEqual(names, ["adam Brown", "Jane Smith"])

    def test_update_client(self):
        updated = self.db.update_client(self.client.id, notes="Quarterly filer")
        self.assertEqual(updated.notes, "Quarterly filer")
        self.assertIsNone(self.db.update_client("missing", notes="x"))
        with self.assertRaises(ValueError):
            self.db.update_client(self.client.id, id="other")

    def test_delete_client_removes_messages_and_files(self):
        self.db.create_message(self.client.id, "hi", sender_is_user=True, read=False)
        self.db.create_file(
            name="w2.pdf",
            type="application/pdf",
            size=10,
            uploaded_by="You",
            client_id=self.client.id,
            storage_path=f"{self.client.id}/1.pdf",
        )
        self.assertTrue(self.db.delete_client(self.client.id))
        self.assertIsNone(self.db.get_client(self.client.id))
        self.assertEqual(self.db.list_messages(self.client.id), [])
        self.assertEqual(self.db.list_files(client_id=self.client.id), [])
        self.assertFalse(self.db.delete_client(self.client.id))

    def test_unread_counts_and_mark_read(self):
        self.db.create_message(self.client.id, "one", sender_is_user=True, read=False)
        self.db.create_message(self.client.id, "two", sender_is_user=True, read=False)
        self.db.create_message(self.client.id, "reply", sender_is_user=False, read=True)

        self.assertEqual(self.db.unread_counts(), {self.client.id: 2})
        self.assertEqual(self.db.mark_messages_read(self.client.id), 2)
        self.assertEqual(self.db.unread_counts(), {})
        self.assertEqual(self.db.mark_messages_read(self.client.id), 0)
        self.assertTrue(all(m.read for m in self.db.list_messages(self.client.id)))

    def test_files_without_client(self):
        record = self.db.create_file(
            name="policy.docx",
            type="application/octet-stream",
            size=3,
            uploaded_by="Sarah Johnson",
            storage_path="abc.docx",
        )
        self.assertIsNone(self.db.get_file(record.id).client_id)
        self.assertEqual([f.id for f in self.db.list_files()], [record.id])
        self.assertEqual(self.db.list_files(client_id=self.client.id), [])
        self.assertTrue(self.db.delete_file(record.id))
        self.assertFalse(self.db.delete_file(record.id))

    def test_columns_and_tasks(self):
        review = self.db.create_column("Review", 1)
        backlog = self.db.create_column("Backlog", 0)
        self.assertEqual(
            [c.title for c in self.db.list_columns()], ["Backlog", "Review"]
        )

        task = self.db.create_task(
            title="File 1040",
            task_type=TaskType.TAX_FILING,
            priority=Priority.HIGH,
            column_id=backlog.id,
            order_index=1,
        )
        fetched = self.db.get_task(task.id)
        self.assertEqual(fetched.task_type, TaskType.TAX_FILING)
        self.assertEqual(fetched.priority, Priority.HIGH)

        moved = self.db.set_task_position(task.id, review.id, 3)
        self.assertEqual((moved.column_id, moved.order_index), (review.id, 3))
        self.assertEqual(self.db.list_tasks(column_id=backlog.id), [])

        updated = self.db.update_task(task.id, priority="Low")
        self.assertEqual(updated.priority, Priority.LOW)

        self.assertTrue(self.db.delete_column(review.id))
        self.assertIsNone(self.db.get_task(task.id))
        self.assertIsNone(self.db.update_column(review.id, "Gone", 5))

    def test_profile_upsert_and_role(self):
        self.db.save_profile(
            ProfileRecord(id="u1", email="u1@example.test", full_name="User One")
        )
        profile = self.db.get_profile("u1")
        self.assertEqual(profile.role, UserRole.CLIENT)
        self.assertEqual(profile.display_name, "User One")

        promoted = self.db.update_profile_role("u1", UserRole.COLLABORATOR)
        self.assertEqual(promoted.role, UserRole.COLLABORATOR)
        self.assertIsNone(self.db.update_profile_role("missing", UserRole.ADMIN))
        self.assertEqual([p.id for p in self.db.list_profiles()], ["u1"])


if __name__ == "__main__":
    unittest.main()
