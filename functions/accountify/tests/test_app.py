import unittest

from testing_utils import (
    ADMIN,
    ADMIN_ID,
    CLIENT_EMAIL,
    CLIENT_USER,
    CLIENT_USER_ID,
    COLLABORATOR,
    COLLABORATOR_ID,
    auth_headers,
    make_client,
)

from accountify.auth import create_access_token
from accountify.enums import UserRole

NEW_CLIENT = {
    "name": "Jane Smith",
    "company": "Smith & Co.",
    "email": CLIENT_EMAIL,
    "phone": "555-0100",
}


class BackendApiTests(unittest.TestCase):
    def setUp(self):
        self.client, self.db, self.storage, self.feed = make_client()

    def test_health(self):
        response = self.client.get("/health")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"status": "ok"})

    def test_requires_bearer_token(self):
        response = self.client.get("/api/clients")
        self.assertEqual(response.status_code, 401)

    def test_rejects_token_signed_with_other_secret(self):
        from accountify.config import Settings

        other = Settings(jwt_secret="another-secret-that-is-long-enough-for-hs256")
        token = create_access_token(ADMIN_ID, settings=other)
        response = self.client.get(
            "/api/clients", headers={"Authorization": f"Bearer {token}"}
        )
        self.assertEqual(response.status_code, 401)

    def test_rejects_expired_token(self):
        token = create_access_token(ADMIN_ID, expires_in=-10)
        response = self.client.get(
            "/api/clients", headers={"Authorization": f"Bearer {token}"}
        )
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()["detail"], "Token has expired")

    def test_client_role_is_denied_staff_routes(self):
        response = self.client.get("/api/clients", headers=CLIENT_USER)
        self.assertEqual(response.status_code, 403)

    def test_first_login_creates_client_profile(self):
        headers = auth_headers("brand-new-user", "new@example.test")
        response = self.client.get("/api/profiles/me", headers=headers)
        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertEqual(payload["role"], "Client")
        self.assertEqual(payload["email"], "new@example.test")
        self.assertIsNotNone(self.db.get_profile("brand-new-user"))

    def test_create_list_update_delete_client(self):
        created = self.client.post("/api/clients", json=NEW_CLIENT, headers=COLLABORATOR)
        self.assertEqual(created.status_code, 201)
        client_id = created.json()["id"]

        listing = self.client.get("/api/clients", headers=ADMIN)
        self.assertEqual([c["id"] for c in listing.json()], [client_id])

        updated = self.client.patch(
            f"/api/clients/{client_id}",
            json={"notes": "Prefers email", "tax_id": "12-3456789"},
            headers=ADMIN,
        )
        self.assertEqual(updated.status_code, 200)
        self.assertEqual(updated.json()["notes"], "Prefers email")
        self.assertEqual(updated.json()["name"], "Jane Smith")

        deleted = self.client.delete(f"/api/clients/{client_id}", headers=ADMIN)
        self.assertEqual(deleted.json(), {"status": "ok"})
        missing = self.client.get(f"/api/clients/{client_id}", headers=ADMIN)
        self.assertEqual(missing.status_code, 404)

    def test_create_client_requires_fields(self):
        response = self.client.post(
            "/api/clients",
            json={"name": "No Company", "email": "x@example.test"},
            headers=ADMIN,
        )
        self.assertEqual(response.status_code, 422)

    def test_update_client_rejects_null_required_fields(self):
        client_id = self.client.post(
            "/api/clients", json=NEW_CLIENT, headers=ADMIN
        ).json()["id"]

        for field in ("name", "company", "email", "phone"):
            response = self.client.patch(
                f"/api/clients/{client_id}", json={field: None}, headers=ADMIN
            )
            self.assertEqual(response.status_code, 422, field)

        cleared = self.client.patch(
            f"/api/clients/{client_id}", json={"notes": None}, headers=ADMIN
        )
        self.assertEqual(cleared.status_code, 200)
        self.assertIsNone(cleared.json()["notes"])

        listing = self.client.get("/api/clients", headers=ADMIN)
        self.assertEqual(listing.status_code, 200)
        self.assertEqual(listing.json()[0]["name"], "Jane Smith")
        self.assertEqual(listing.json()[0]["phone"], "555-0100")

    def test_delete_client_removes_messages_files_and_objects(self):
        client = self.db.create_client(**NEW_CLIENT)
        self.db.create_message(client.id, "hello", sender_is_user=True, read=False)
        self.storage.upload_bytes(f"{client.id}/1.pdf", b"%PDF")
        self.db.create_file(
            name="return.pdf",
            type="application/pdf",
            size=4,
            uploaded_by="You",
            client_id=client.id,
            storage_path=f"{client.id}/1.pdf",
        )

        response = self.client.delete(f"/api/clients/{client.id}", headers=ADMIN)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(self.db.list_messages(client.id), [])
        self.assertEqual(self.db.list_files(client_id=client.id), [])
        self.assertNotIn(f"{client.id}/1.pdf", self.storage.stored_objects)

    def test_admin_lists_profiles_and_changes_roles(self):
        response = self.client.get("/api/profiles", headers=ADMIN)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(response.json()), 3)

        changed = self.client.patch(
            f"/api/profiles/{CLIENT_USER_ID}/role",
            json={"role": "Collaborator"},
            headers=ADMIN,
        )
        self.assertEqual(changed.status_code, 200)
        self.assertEqual(changed.json()["role"], "Collaborator")
        self.assertEqual(
            self.db.get_profile(CLIENT_USER_ID).role, UserRole.COLLABORATOR
        )

    def test_admin_cannot_change_own_role(self):
        response = self.client.patch(
            f"/api/profiles/{ADMIN_ID}/role", json={"role": "Client"}, headers=ADMIN
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(self.db.get_profile(ADMIN_ID).role, UserRole.ADMIN)

    def test_collaborator_cannot_manage_roles(self):
        response = self.client.patch(
            f"/api/profiles/{CLIENT_USER_ID}/role",
            json={"role": "Admin"},
            headers=COLLABORATOR,
        )
        self.assertEqual(response.status_code, 403)
        listing = self.client.get("/api/profiles", headers=COLLABORATOR)
        self.assertEqual(listing.status_code, 403)

    def test_unknown_role_is_rejected(self):
        response = self.client.patch(
            f"/api/profiles/{COLLABORATOR_ID}/role",
            json={"role": "Owner"},
            headers=ADMIN,
        )
        self.assertEqual(response.status_code, 422)

    def test_client_portal_shows_own_record(self):
        client = self.db.create_client(**NEW_CLIENT)
        self.db.create_message(client.id, "Welcome aboard", sender_is_user=False, read=True)

        response = self.client.get("/api/me/client", headers=CLIENT_USER)
        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertEqual(payload["client"]["id"], client.id)
        self.assertEqual(payload["messages"][0]["sender"]["name"], "Accountant")
        self.assertEqual(payload["files"], [])

    def test_client_portal_without_client_record(self):
        response = self.client.get("/api/me/client", headers=CLIENT_USER)
        self.assertEqual(response.status_code, 404)


if __name__ == "__main__":
    unittest.main()
