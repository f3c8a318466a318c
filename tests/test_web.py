import unittest

from storage_browser.errors import (
    AggregationError,
    NotFoundError,
    RetrievalError,
    TransportError,
)
from storage_browser.models import ListedEntry, ListingResult, ObjectBody, StorageStatistics
from storage_browser.web import create_app, parse_storage_id

ADMIN = {"Authorization": "Bearer admin-token"}
VIEWER = {"Authorization": "Bearer viewer-token"}

CONFIG = {
    "name": "storage-browser-test",
    "api_tokens": {
        "admin-token": {"user": "root", "admin": True},
        "viewer-token": {"user": "guest"},
    },
}


class FakeController:
    def __init__(self):
        self.stats = StorageStatistics()
        self.stats.record_file("pdf", 100)
        self.stats.record_folder()
        self.listing = ListingResult(
            entries=[
                ListedEntry(key="docs/", name="docs", is_directory=True),
                ListedEntry(key="clip.mp4", name="clip.mp4", size=10, last_modified="today", etag='"e"'),
                ListedEntry(key="main.py", name="main.py", size=3),
            ],
            directory_names=["docs"],
            is_truncated=True,
            continuation_token="next",
        )
        self.error = None
        self.calls = []

    def _maybe_fail(self):
        if self.error:
            raise self.error

    def collect_statistics(self, storage_id, *, is_admin=True, cancel_requested=None):
        self.calls.append(("stats", storage_id, is_admin))
        self._maybe_fail()
        return self.stats

    def list_objects(self, storage_id, *, prefix="", continuation_token=None):
        self.calls.append(("list", storage_id, prefix, continuation_token))
        self._maybe_fail()
        return self.listing

    def get_object(self, storage_id, key):
        self.calls.append(("get", storage_id, key))
        self._maybe_fail()
        return ObjectBody(stream=iter([b"hello ", b"world"]), content_type="text/plain", content_length=11)


class StorageStatsRouteTests(unittest.TestCase):
    def setUp(self):
        self.controller = FakeController()
        self.client = create_app(CONFIG, self.controller).test_client()

    def test_returns_stats_for_admin(self):
        response = self.client.get("/api/storage-stats/5", headers=ADMIN)

        self.assertEqual(200, response.status_code)
        self.assertEqual(
            {
                "stats": {
                    "totalSize": 100,
                    "fileCount": 1,
                    "folderCount": 1,
                    "typeDistribution": {"pdf": {"count": 1, "size": 100}},
                }
            },
            response.get_json(),
        )
        self.assertEqual([("stats", 5, True)], self.controller.calls)

    def test_requires_credentials(self):
        response = self.client.get("/api/storage-stats/5")

        self.assertEqual(401, response.status_code)
        self.assertEqual({"error": "Not authenticated"}, response.get_json())
        self.assertEqual([], self.controller.calls)

    def test_unknown_token_is_not_authenticated(self):
        response = self.client.get("/api/storage-stats/5", headers={"Authorization": "Bearer nope"})

        self.assertEqual(401, response.status_code)

    def test_requires_admin(self):
        response = self.client.get("/api/storage-stats/5", headers=VIEWER)

        self.assertEqual(403, response.status_code)
        self.assertEqual({"error": "Unauthorized"}, response.get_json())
        self.assertEqual([], self.controller.calls)

    def test_rejects_invalid_ids(self):
        for storage_id in ("abc", "0", "-3"):
            response = self.client.get(f"/api/storage-stats/{storage_id}", headers=ADMIN)
            self.assertEqual(400, response.status_code)
            self.assertEqual({"error": "Invalid storage ID"}, response.get_json())
        self.assertEqual([], self.controller.calls)

    def test_unknown_storage(self):
        self.controller.error = NotFoundError("Storage 9 does not exist")

        response = self.client.get("/api/storage-stats/9", headers=ADMIN)

        self.assertEqual(404, response.status_code)
        self.assertEqual({"error": "Storage not found"}, response.get_json())

    def test_listing_failure_is_a_server_error(self):
        cause = TransportError("WebDAV PROPFIND failed: 403", status_code=403)
        self.controller.error = AggregationError("docs/", cause)

        with self.assertLogs("storage_browser.web", level="ERROR"):
            response = self.client.get("/api/storage-stats/5", headers=ADMIN)

        self.assertEqual(500, response.status_code)
        self.assertIn("docs/", response.get_json()["error"])
        self.assertNotIn("stats", response.get_json())

    def test_unexpected_errors_stay_json(self):
        self.controller.error = KeyError("boom")

        with self.assertLogs("storage_browser.web", level="ERROR"):
            response = self.client.get("/api/storage-stats/5", headers=ADMIN)

        self.assertEqual(500, response.status_code)
        self.assertEqual({"error": "Failed to collect storage statistics"}, response.get_json())


class FileRouteTests(unittest.TestCase):
    def setUp(self):
        self.controller = FakeController()
        self.client = create_app(CONFIG, self.controller).test_client()

    def test_lists_one_level(self):
        response = self.client.get("/api/files/2/?prefix=media/&token=abc", headers=VIEWER)

        self.assertEqual(200, response.status_code)
        payload = response.get_json()
        self.assertEqual(["docs/", "clip.mp4", "main.py"], [entry["key"] for entry in payload["entries"]])
        self.assertIsNone(payload["entries"][0]["previewType"])
        self.assertEqual("video", payload["entries"][1]["previewType"])
        self.assertIsNone(payload["entries"][1]["codeLanguage"])
        self.assertEqual("code", payload["entries"][2]["previewType"])
        self.assertEqual("python", payload["entries"][2]["codeLanguage"])
        self.assertEqual("today", payload["entries"][1]["lastModified"])
        self.assertEqual(["docs"], payload["directories"])
        self.assertTrue(payload["isTruncated"])
        self.assertEqual("next", payload["continuationToken"])
        self.assertEqual([("list", 2, "media/", "abc")], self.controller.calls)

    def test_listing_requires_credentials(self):
        self.assertEqual(401, self.client.get("/api/files/2/").status_code)

    def test_downloads_object(self):
        response = self.client.get("/api/files/2/docs/a%20b.txt?action=download", headers=VIEWER)

        self.assertEqual(200, response.status_code)
        self.assertEqual(b"hello world", response.data)
        self.assertTrue(response.content_type.startswith("text/plain"))
        self.assertEqual("11", response.headers["Content-Length"])
        self.assertEqual([("get", 2, "docs/a b.txt")], self.controller.calls)

    def test_download_requires_action(self):
        response = self.client.get("/api/files/2/docs/a.txt?action=delete", headers=VIEWER)

        self.assertEqual(400, response.status_code)
        self.assertEqual({"error": "Unsupported action"}, response.get_json())
        self.assertEqual([], self.controller.calls)

    def test_missing_object(self):
        self.controller.error = RetrievalError("WebDAV GetObject failed: 404", status_code=404)

        response = self.client.get("/api/files/2/gone.txt?action=download", headers=VIEWER)

        self.assertEqual(404, response.status_code)
        self.assertEqual({"error": "File not found"}, response.get_json())

    def test_unexpected_download_errors_stay_json(self):
        self.controller.error = OSError("disk gone")

        with self.assertLogs("storage_browser.web", level="ERROR"):
            response = self.client.get("/api/files/2/a.txt?action=download", headers=VIEWER)

        self.assertEqual(500, response.status_code)
        self.assertEqual({"error": "Failed to download file"}, response.get_json())


class CreateAppTests(unittest.TestCase):
    def test_requires_tokens(self):
        with self.assertRaises(ValueError):
            create_app({}, FakeController())

    def test_parse_storage_id(self):
        self.assertEqual(12, parse_storage_id("12"))
        self.assertIsNone(parse_storage_id("0"))
        self.assertIsNone(parse_storage_id("1.5"))
        self.assertIsNone(parse_storage_id(None))


if __name__ == "__main__":
    unittest.main()
