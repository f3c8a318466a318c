import unittest

import requests

from storage_browser.errors import (
    RetrievalError,
    TransportError,
    UnsupportedOperationError,
    WriteError,
)
from storage_browser.models import AccessKeyCredentials, BasicCredentials, StorageConfig
from storage_browser.webdav import WebDAVStorageClient

ROOT_LISTING = """<?xml version="1.0" encoding="utf-8"?>
<d:multistatus xmlns:d="DAV:">
  <d:response><d:href>/dav/files/</d:href>
    <d:propstat><d:prop><d:resourcetype><d:collection/></d:resourcetype></d:prop>
    <d:status>HTTP/1.1 200 OK</d:status></d:propstat></d:response>
  <d:response><d:href>/dav/files/docs/</d:href>
    <d:propstat><d:prop><d:resourcetype><d:collection/></d:resourcetype></d:prop>
    <d:status>HTTP/1.1 200 OK</d:status></d:propstat></d:response>
  <d:response><d:href>/dav/files/readme.md</d:href>
    <d:propstat><d:prop><d:getcontentlength>42</d:getcontentlength><d:resourcetype/></d:prop>
    <d:status>HTTP/1.1 200 OK</d:status></d:propstat></d:response>
</d:multistatus>
"""

DOCS_LISTING = """<?xml version="1.0" encoding="utf-8"?>
<d:multistatus xmlns:d="DAV:">
  <d:response><d:href>/dav/files/docs/</d:href>
    <d:propstat><d:prop><d:resourcetype><d:collection/></d:resourcetype></d:prop>
    <d:status>HTTP/1.1 200 OK</d:status></d:propstat></d:response>
  <d:response><d:href>/dav/files/docs/plan.txt</d:href>
    <d:propstat><d:prop><d:getcontentlength>7</d:getcontentlength><d:resourcetype/></d:prop>
    <d:status>HTTP/1.1 200 OK</d:status></d:propstat></d:response>
</d:multistatus>
"""


class FakeResponse:
    def __init__(self, status_code=200, content=b"", headers=None):
        self.status_code = status_code
        self.content = content.encode("utf-8") if isinstance(content, str) else content
        self.headers = headers or {}
        self.closed = False

    @property
    def ok(self):
        return self.status_code < 400

    @property
    def text(self):
        return self.content.decode("utf-8")

    def iter_content(self, chunk_size=1):
        for start in range(0, len(self.content), chunk_size):
            yield self.content[start:start + chunk_size]

    def close(self):
        self.closed = True


class FakeSession:
    def __init__(self, responses):
        self.responses = list(responses)
        self.calls = []

    def request(self, method, url, **kwargs):
        self.calls.append({"method": method, "url": url, **kwargs})
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def make_config(base_path="/files/"):
    return StorageConfig(
        kind="webdav",
        endpoint="https://dav.example.com/dav/",
        credentials=BasicCredentials("alice", "s3cret"),
        base_path=base_path,
    )


class WebDAVStorageClientTests(unittest.TestCase):
    def make_client(self, *responses, timeout=12.5):
        session = FakeSession(responses)
        return WebDAVStorageClient(make_config(), session=session, timeout=timeout), session

    def test_rejects_non_webdav_configs(self):
        config = StorageConfig(
            kind="s3",
            endpoint="https://s3.example.com",
            credentials=AccessKeyCredentials("key", "secret"),
            bucket="bucket",
        )
        with self.assertRaises(ValueError):
            WebDAVStorageClient(config, session=FakeSession([]))

    def test_list_objects_sends_depth_one_propfind(self):
        client, session = self.make_client(FakeResponse(207, ROOT_LISTING))

        result = client.list_objects()

        call = session.calls[0]
        self.assertEqual("PROPFIND", call["method"])
        self.assertEqual("https://dav.example.com/dav/files/", call["url"])
        self.assertEqual("1", call["headers"]["Depth"])
        self.assertEqual("application/xml", call["headers"]["Content-Type"])
        self.assertIn(b"propfind", call["data"])
        self.assertEqual(12.5, call["timeout"])
        self.assertEqual(["docs/", "readme.md"], [entry.key for entry in result.entries])
        self.assertEqual(42, result.entries[1].size)
        self.assertFalse(result.is_truncated)

    def test_every_request_carries_basic_auth(self):
        client, session = self.make_client(FakeResponse(207, ROOT_LISTING), FakeResponse(204))

        client.list_objects()
        client.delete_object("readme.md")

        for call in session.calls:
            prepared = requests.Request("GET", call["url"], auth=call["auth"]).prepare()
            self.assertEqual("Basic YWxpY2U6czNjcmV0", prepared.headers["Authorization"])

    def test_directory_key_round_trips_as_prefix(self):
        client, session = self.make_client(
            FakeResponse(207, ROOT_LISTING),
            FakeResponse(207, DOCS_LISTING),
        )

        root = client.list_objects()
        docs_key = next(entry.key for entry in root.entries if entry.is_directory)
        docs = client.list_objects(docs_key)

        self.assertEqual("https://dav.example.com/dav/files/docs/", session.calls[1]["url"])
        self.assertEqual(["docs/plan.txt"], [entry.key for entry in docs.entries])

    def test_percent_encoded_endpoint_and_base_path(self):
        listing = """<?xml version="1.0"?>
<d:multistatus xmlns:d="DAV:">
  <d:response><d:href>/my%20dav/team%20files/</d:href>
    <d:propstat><d:prop><d:resourcetype><d:collection/></d:resourcetype></d:prop>
    <d:status>HTTP/1.1 200 OK</d:status></d:propstat></d:response>
  <d:response><d:href>/my%20dav/team%20files/docs/</d:href>
    <d:propstat><d:prop><d:resourcetype><d:collection/></d:resourcetype></d:prop>
    <d:status>HTTP/1.1 200 OK</d:status></d:propstat></d:response>
</d:multistatus>"""
        config = StorageConfig(
            kind="webdav",
            endpoint="https://dav.example.com/my%20dav/",
            credentials=BasicCredentials("alice", "s3cret"),
            base_path="team%20files",
        )
        session = FakeSession([FakeResponse(207, listing), FakeResponse(200, b"x")])
        client = WebDAVStorageClient(config, session=session)

        result = client.list_objects()
        client.get_object("docs/a b.txt")

        self.assertEqual("https://dav.example.com/my%20dav/team%20files/", session.calls[0]["url"])
        self.assertEqual(["docs/"], [entry.key for entry in result.entries])
        self.assertEqual(
            "https://dav.example.com/my%20dav/team%20files/docs/a%20b.txt",
            session.calls[1]["url"],
        )

    def test_list_objects_appends_missing_slash(self):
        client, session = self.make_client(FakeResponse(207, DOCS_LISTING))

        result = client.list_objects("docs")

        self.assertEqual("https://dav.example.com/dav/files/docs/", session.calls[0]["url"])
        self.assertEqual(["docs/plan.txt"], [entry.key for entry in result.entries])

    def test_list_objects_raises_on_error_status(self):
        client, _ = self.make_client(FakeResponse(401, "denied"))

        with self.assertRaises(TransportError) as ctx:
            client.list_objects()

        self.assertEqual(401, ctx.exception.status_code)

    def test_network_failures_become_transport_errors(self):
        client, _ = self.make_client(requests.ConnectionError("refused"))

        with self.assertRaises(TransportError) as ctx:
            client.list_objects()

        self.assertIsNone(ctx.exception.status_code)
        self.assertIsInstance(ctx.exception.__cause__, requests.ConnectionError)

    def test_get_object_streams_body(self):
        client, session = self.make_client(
            FakeResponse(200, b"hello world", {"Content-Type": "text/plain", "Content-Length": "11"})
        )

        body = client.get_object("docs/My Notes.txt")

        self.assertEqual("GET", session.calls[0]["method"])
        self.assertEqual("https://dav.example.com/dav/files/docs/My%20Notes.txt", session.calls[0]["url"])
        self.assertTrue(session.calls[0]["stream"])
        self.assertEqual(b"hello world", b"".join(body.stream))
        self.assertEqual("text/plain", body.content_type)
        self.assertEqual(11, body.content_length)

    def test_get_object_failure_carries_status(self):
        client, _ = self.make_client(FakeResponse(404))

        with self.assertRaises(RetrievalError) as ctx:
            client.get_object("missing.txt")

        self.assertEqual(404, ctx.exception.status_code)

    def test_put_object_encodes_text_bodies(self):
        client, session = self.make_client(FakeResponse(201))

        client.put_object("notes.txt", "héllo", "text/plain")

        call = session.calls[0]
        self.assertEqual("PUT", call["method"])
        self.assertEqual("héllo".encode("utf-8"), call["data"])
        self.assertEqual("text/plain", call["headers"]["Content-Type"])

    def test_put_object_defaults_content_type(self):
        client, session = self.make_client(FakeResponse(204))

        client.put_object("blob.bin", b"\x00\x01")

        self.assertEqual("application/octet-stream", session.calls[0]["headers"]["Content-Type"])

    def test_put_object_failure_includes_status_and_body(self):
        client, _ = self.make_client(FakeResponse(507, "quota exceeded"))

        with self.assertRaises(WriteError) as ctx:
            client.put_object("big.bin", b"data")

        self.assertEqual(507, ctx.exception.status_code)
        self.assertIn("507", str(ctx.exception))
        self.assertIn("quota exceeded", str(ctx.exception))

    def test_delete_accepts_no_content(self):
        client, session = self.make_client(FakeResponse(204))

        client.delete_object("old.txt")

        self.assertEqual("DELETE", session.calls[0]["method"])

    def test_delete_failure_raises(self):
        client, _ = self.make_client(FakeResponse(423, "locked"))

        with self.assertRaises(TransportError) as ctx:
            client.delete_object("old.txt")

        self.assertEqual(423, ctx.exception.status_code)

    def test_create_folder_ensures_trailing_slash(self):
        client, session = self.make_client(FakeResponse(201))

        client.create_folder("projects/new")

        self.assertEqual("MKCOL", session.calls[0]["method"])
        self.assertEqual("https://dav.example.com/dav/files/projects/new/", session.calls[0]["url"])

    def test_create_folder_failure_raises(self):
        client, _ = self.make_client(FakeResponse(405, "exists"))

        with self.assertRaises(TransportError):
            client.create_folder("projects/")

    def test_copy_targets_source_with_destination_header(self):
        client, session = self.make_client(FakeResponse(201))

        client.copy_object("docs/a.txt", "archive/a.txt")

        call = session.calls[0]
        self.assertEqual("COPY", call["method"])
        self.assertEqual("https://dav.example.com/dav/files/docs/a.txt", call["url"])
        self.assertEqual("https://dav.example.com/dav/files/archive/a.txt", call["headers"]["Destination"])
        self.assertEqual("F", call["headers"]["Overwrite"])

    def test_copy_failure_raises(self):
        client, _ = self.make_client(FakeResponse(412, "exists"))

        with self.assertRaises(TransportError) as ctx:
            client.copy_object("a.txt", "b.txt")

        self.assertEqual(412, ctx.exception.status_code)

    def test_head_object_returns_metadata(self):
        client, session = self.make_client(
            FakeResponse(
                200,
                headers={
                    "Content-Length": "512",
                    "Content-Type": "image/png",
                    "Last-Modified": "Mon, 01 Jan 2024 12:00:00 GMT",
                },
            )
        )

        metadata = client.head_object("logo.png")

        self.assertEqual("HEAD", session.calls[0]["method"])
        self.assertEqual(512, metadata.content_length)
        self.assertEqual("image/png", metadata.content_type)
        self.assertEqual("Mon, 01 Jan 2024 12:00:00 GMT", metadata.last_modified)

    def test_head_object_defaults_missing_headers(self):
        client, _ = self.make_client(FakeResponse(200))

        metadata = client.head_object("unknown")

        self.assertEqual(0, metadata.content_length)
        self.assertEqual("application/octet-stream", metadata.content_type)
        self.assertEqual("", metadata.last_modified)

    def test_head_object_returns_none_when_missing(self):
        client, _ = self.make_client(FakeResponse(404))

        self.assertIsNone(client.head_object("gone.txt"))

    def test_head_object_raises_on_other_errors(self):
        client, _ = self.make_client(FakeResponse(500))

        with self.assertRaises(TransportError):
            client.head_object("broken.txt")

    def test_multipart_is_an_explicit_capability_gap(self):
        client, session = self.make_client()

        upload_id = client.initiate_multipart_upload("video.mp4", "video/mp4")

        self.assertFalse(client.supports_multipart)
        self.assertTrue(upload_id.startswith("webdav-"))
        with self.assertRaises(UnsupportedOperationError):
            client.upload_part("video.mp4", upload_id, 1, b"chunk")
        client.complete_multipart_upload("video.mp4", upload_id, [])
        client.abort_multipart_upload("video.mp4", upload_id)
        self.assertEqual([], session.calls)

    def test_signed_urls_are_plain_resource_urls(self):
        client, session = self.make_client()

        url = client.get_signed_url("docs/a b.txt", expires_in=60)
        part_url = client.get_signed_upload_part_url("docs/a b.txt", "webdav-1", 2)

        self.assertFalse(client.supports_presigned_urls)
        self.assertEqual("https://dav.example.com/dav/files/docs/a%20b.txt", url)
        self.assertEqual(url, part_url)
        self.assertEqual([], session.calls)

    def test_without_base_path_root_is_the_endpoint(self):
        session = FakeSession([FakeResponse(207, "<d:multistatus xmlns:d='DAV:'/>")])
        client = WebDAVStorageClient(make_config(base_path=""), session=session)

        result = client.list_objects()

        self.assertEqual("https://dav.example.com/dav", session.calls[0]["url"])
        self.assertEqual([], result.entries)

    def test_config_repr_hides_password(self):
        self.assertNotIn("s3cret", repr(make_config()))


if __name__ == "__main__":
    unittest.main()
