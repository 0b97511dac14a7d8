import asyncio
import unittest
from unittest.mock import AsyncMock, patch

from bson import ObjectId
from fastapi.testclient import TestClient

from app.config.settings import get_settings
from app.dependencies.auth import clear_token_cache, create_access_token
from app.dependencies.store import get_store
from app.main import create_app
from app.repositories.store import InMemoryDocumentStore
from app.uploads import resolve_upload

SPILL = {"reportType": "spill", "description": "oil on floor", "status": "open"}


class HazardReportApiTests(unittest.TestCase):
    def setUp(self):
        clear_token_cache()
        self.store = InMemoryDocumentStore()
        self.app = create_app()
        self.app.dependency_overrides[get_store] = lambda: self.store
        self.client = TestClient(self.app)
        self.user = self.make_user("alice")
        self.headers = self.auth_headers(self.user.id)

    def make_user(self, name):
        return asyncio.run(
            self.store.create_user(
                {
                    "firstName": name.title(),
                    "lastName": "Tester",
                    "userName": name,
                    "email": "%s@example.com" % name,
                    "password": "not-a-real-hash",
                }
            )
        )

    def auth_headers(self, user_id):
        return {"Authorization": "Bearer %s" % create_access_token(user_id)}

    def create_report(self, payload=SPILL, headers=None):
        response = self.client.post(
            "/api/hazardreports", json=payload, headers=headers or self.headers
        )
        self.assertEqual(response.status_code, 201, response.text)
        return response.json()["hazardReport"]

    # create

    def test_create_links_report_to_caller(self):
        response = self.client.post("/api/hazardreports", json=SPILL, headers=self.headers)
        self.assertEqual(response.status_code, 201)
        body = response.json()
        self.assertEqual(body["message"], "Hazard Report created successfully")
        report = body["hazardReport"]
        self.assertEqual(report["user"], self.user.id)
        self.assertEqual(report["reportType"], "spill")
        self.assertEqual(report["images"], [])
        self.assertIn("createdAt", report)

        owner = asyncio.run(self.store.find_user_by_id(self.user.id))
        self.assertEqual(owner.reports, [report["_id"]])

    def test_each_create_appends_exactly_one_id(self):
        self.create_report()
        self.create_report()
        owner = asyncio.run(self.store.find_user_by_id(self.user.id))
        self.assertEqual(len(owner.reports), 2)

    def test_create_with_uploaded_images(self):
        response = self.client.post(
            "/api/hazardreports",
            data=SPILL,
            files=[
                ("images", ("floor.png", b"\x89PNG fake", "image/png")),
                ("images", ("wide.jpg", b"\xff\xd8 fake", "image/jpeg")),
            ],
            headers=self.headers,
        )
        self.assertEqual(response.status_code, 201, response.text)
        images = response.json()["hazardReport"]["images"]
        self.assertEqual(len(images), 2)
        self.assertTrue(images[0].endswith(".png"))

        download = self.client.get("/api/hazardreports/images/%s" % images[0])
        self.assertEqual(download.status_code, 200)
        self.assertEqual(download.content, b"\x89PNG fake")

    def test_create_rejects_disallowed_extension(self):
        response = self.client.post(
            "/api/hazardreports",
            data=SPILL,
            files=[("images", ("notes.txt", b"hello", "text/plain"))],
            headers=self.headers,
        )
        self.assertEqual(response.status_code, 400)
        self.assertIn('"images"', response.json()["message"])
        self.assertEqual(self.store.reports, {})

    def test_create_rejects_oversize_image(self):
        limited = get_settings().model_copy(update={"max_upload_bytes": 4})
        with patch("app.uploads.get_settings", return_value=limited):
            response = self.client.post(
                "/api/hazardreports",
                data=SPILL,
                files=[("images", ("floor.png", b"\x89PNG too big", "image/png"))],
                headers=self.headers,
            )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["message"], '"images" file floor.png exceeds 4 bytes')
        self.assertEqual(self.store.reports, {})

    def test_create_rejects_too_many_images(self):
        limited = get_settings().model_copy(update={"max_upload_files": 1})
        with patch("app.uploads.get_settings", return_value=limited):
            response = self.client.post(
                "/api/hazardreports",
                data=SPILL,
                files=[
                    ("images", ("a.png", b"a", "image/png")),
                    ("images", ("b.png", b"b", "image/png")),
                ],
                headers=self.headers,
            )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(
            response.json()["message"], '"images" must contain less than or equal to 1 items'
        )

    def test_create_rejects_file_outside_images_field(self):
        response = self.client.post(
            "/api/hazardreports",
            data=SPILL,
            files=[("attachment", ("floor.png", b"\x89PNG", "image/png"))],
            headers=self.headers,
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["message"], '"attachment" is not allowed')
        self.assertEqual(self.store.reports, {})

    def test_images_kept_when_owner_update_fails(self):
        client = TestClient(self.app, raise_server_exceptions=False)
        with patch.object(
            self.store, "add_report_to_user", new_callable=AsyncMock, side_effect=RuntimeError("push failed")
        ):
            response = client.post(
                "/api/hazardreports",
                data=SPILL,
                files=[("images", ("a.png", b"\x89PNG", "image/png"))],
                headers=self.headers,
            )
        self.assertEqual(response.status_code, 500)
        self.assertEqual(len(self.store.reports), 1)
        stored = next(iter(self.store.reports.values()))
        self.assertEqual(len(stored["images"]), 1)
        self.assertIsNotNone(resolve_upload(stored["images"][0]))

    def test_create_missing_field(self):
        response = self.client.post(
            "/api/hazardreports",
            json={"reportType": "spill"},
            headers=self.headers,
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["message"], '"description" is required')

    def test_create_validates_before_auth(self):
        response = self.client.post("/api/hazardreports", json={"reportType": "spill"})
        self.assertEqual(response.status_code, 400)

    def test_create_without_identity(self):
        response = self.client.post("/api/hazardreports", json=SPILL)
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()["message"], "Unauthorized")

    def test_create_with_invalid_token(self):
        response = self.client.post(
            "/api/hazardreports",
            json=SPILL,
            headers={"Authorization": "Bearer not.a.token"},
        )
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()["message"], "Invalid or expired token")

    def test_create_with_expired_token(self):
        token = create_access_token(self.user.id, expires_minutes=-1)
        response = self.client.post(
            "/api/hazardreports", json=SPILL, headers={"Authorization": "Bearer %s" % token}
        )
        self.assertEqual(response.status_code, 401)

    def test_create_for_unknown_user(self):
        response = self.client.post(
            "/api/hazardreports", json=SPILL, headers=self.auth_headers(str(ObjectId()))
        )
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["message"], "User not found")
        self.assertEqual(self.store.reports, {})

    # list

    def test_list_empty_store(self):
        response = self.client.get("/api/hazardreports")
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["hazardReports"], [])
        self.assertEqual(body["count"], 0)

    def test_list_returns_every_report(self):
        other = self.make_user("bob")
        self.create_report()
        self.create_report(headers=self.auth_headers(other.id))
        body = self.client.get("/api/hazardreports").json()
        self.assertEqual(body["count"], 2)
        self.assertEqual(len(body["hazardReports"]), 2)

    # get by id

    def test_get_by_id(self):
        report = self.create_report()
        response = self.client.get("/api/hazardreports/%s" % report["_id"])
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["message"], "Hazard Report found")
        self.assertEqual(response.json()["hazardreport"], report)

    def test_get_unknown_id(self):
        response = self.client.get("/api/hazardreports/%s" % ObjectId())
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["message"], "Hazard Report not found")

    # update

    def test_put_updates_and_returns_new_state(self):
        report = self.create_report()
        response = self.client.put(
            "/api/hazardreports/%s" % report["_id"],
            json={"reportType": "spill", "description": "cleaned up", "status": "resolved"},
        )
        self.assertEqual(response.status_code, 200)
        updated = response.json()["hazardReport"]
        self.assertEqual(updated["description"], "cleaned up")
        self.assertEqual(updated["status"], "resolved")
        self.assertEqual(updated["user"], self.user.id)

    def test_put_requires_full_payload(self):
        report = self.create_report()
        response = self.client.put(
            "/api/hazardreports/%s" % report["_id"], json={"status": "resolved"}
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["message"], '"reportType" is required')

    def test_patch_accepts_partial_payload(self):
        report = self.create_report()
        response = self.client.patch(
            "/api/hazardreports/%s" % report["_id"], json={"status": "in_progress"}
        )
        self.assertEqual(response.status_code, 200)
        updated = response.json()["hazardReport"]
        self.assertEqual(updated["status"], "in_progress")
        self.assertEqual(updated["description"], "oil on floor")

    def test_update_cannot_reassign_owner(self):
        report = self.create_report()
        response = self.client.patch(
            "/api/hazardreports/%s" % report["_id"], json={"user": str(ObjectId())}
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["message"], '"user" is not allowed')

    def test_update_unknown_id(self):
        response = self.client.put("/api/hazardreports/%s" % ObjectId(), json=SPILL)
        self.assertEqual(response.status_code, 404)

    # delete

    def test_delete_twice(self):
        report = self.create_report()
        first = self.client.delete("/api/hazardreports/%s" % report["_id"])
        self.assertEqual(first.status_code, 200)
        self.assertEqual(first.json()["message"], "Hazard Report deleted successfully")
        second = self.client.delete("/api/hazardreports/%s" % report["_id"])
        self.assertEqual(second.status_code, 404)

    def test_delete_leaves_owner_list_untouched(self):
        report = self.create_report()
        self.client.delete("/api/hazardreports/%s" % report["_id"])
        owner = asyncio.run(self.store.find_user_by_id(self.user.id))
        self.assertEqual(owner.reports, [report["_id"]])

    # malformed ids never reach the store

    def test_malformed_ids_rejected_without_lookup(self):
        with patch.object(self.store, "find_report_by_id", new_callable=AsyncMock) as find, \
                patch.object(self.store, "update_report_by_id", new_callable=AsyncMock) as update, \
                patch.object(self.store, "delete_report_by_id", new_callable=AsyncMock) as delete:
            responses = [
                self.client.get("/api/hazardreports/not-an-id"),
                self.client.put("/api/hazardreports/not-an-id", json=SPILL),
                self.client.patch("/api/hazardreports/123", json={"status": "closed"}),
                self.client.delete("/api/hazardreports/zzzzzzzzzzzzzzzzzzzzzzzz"),
            ]
        for response in responses:
            self.assertEqual(response.status_code, 400)
            self.assertEqual(response.json()["message"], "Invalid hazard report ID format")
        find.assert_not_called()
        update.assert_not_called()
        delete.assert_not_called()

    # caller's reports

    def test_user_reports_only_include_callers(self):
        other = self.make_user("bob")
        mine = [self.create_report()["_id"] for _ in range(2)]
        self.create_report(headers=self.auth_headers(other.id))

        response = self.client.get("/api/hazardreports/user/me", headers=self.headers)
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["count"], 2)
        self.assertEqual(sorted(r["_id"] for r in body["hazardReports"]), sorted(mine))
        self.assertTrue(all(r["user"] == self.user.id for r in body["hazardReports"]))

    def test_user_reports_without_identity(self):
        response = self.client.get("/api/hazardreports/user/me")
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()["message"], "Unauthorized: User ID is missing in JWT")

    def test_user_reports_with_malformed_identity(self):
        response = self.client.get(
            "/api/hazardreports/user/me", headers=self.auth_headers("alice")
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["message"], "Invalid User ID format")

    # images

    def test_image_path_cannot_escape_upload_dir(self):
        response = self.client.get("/api/hazardreports/images/..%2Fsecret.png")
        self.assertEqual(response.status_code, 404)

    # unexpected errors

    def test_store_failure_becomes_500(self):
        client = TestClient(self.app, raise_server_exceptions=False)
        with patch.object(
            self.store, "find_reports", new_callable=AsyncMock, side_effect=RuntimeError("down")
        ):
            response = client.get("/api/hazardreports")
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json()["message"], "Internal Server Error")


if __name__ == "__main__":
    unittest.main()
