from __future__ import annotations
"""Storage client speaking WebDAV."""
import logging
import uuid
from typing import Optional, Union
from urllib.parse import quote, unquote

import requests
from requests.auth import HTTPBasicAuth

from .errors import RetrievalError, TransportError, UnsupportedOperationError, WriteError
from .models import (
    BACKEND_WEBDAV,
    ListingResult,
    ObjectBody,
    ObjectMetadata,
    StorageConfig,
)
from .webdav_xml import PROPFIND_BODY, parse_propfind_response

LOGGER = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0
DOWNLOAD_CHUNK_SIZE = 64 * 1024


class WebDAVStorageClient:
    """Implements the storage-client contract on top of a WebDAV server.

    WebDAV has no equivalent for some of the S3 operations the contract
    exposes:

    * listings are never paginated; a large directory comes back as one page;
    * multipart uploads are not supported (``supports_multipart`` is False).
      :meth:`initiate_multipart_upload` hands out a token so callers can keep a
      single code path, but parts cannot be uploaded; callers must fall back to
      :meth:`put_object`;
    * there are no expiring pre-signed URLs (``supports_presigned_urls`` is
      False). :meth:`get_signed_url` returns the plain resource URL, which still
      requires the Basic-Auth credentials and must not be handed to untrusted
      parties.
    """

    supports_multipart = False
    supports_presigned_urls = False

    def __init__(
        self,
        config: StorageConfig,
        *,
        session: requests.Session | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        if config.kind != BACKEND_WEBDAV:
            raise ValueError(f"WebDAVStorageClient cannot serve a '{config.kind}' storage")
        self._config = config
        self._session = session or requests.Session()
        self._timeout = timeout
        self._auth = HTTPBasicAuth(config.credentials.username, config.credentials.password)
        # kept decoded like parsed hrefs; _url re-encodes it
        self._base_path = unquote(config.normalized_base_path)

    @property
    def config(self) -> StorageConfig:
        return self._config

    def list_objects(
        self,
        prefix: str = "",
        delimiter: str = "/",
        max_keys: int = 1000,
        continuation_token: str | None = None,
    ) -> ListingResult:
        """List the immediate children of ``prefix``.

        ``delimiter``, ``max_keys`` and ``continuation_token`` are accepted for
        parity with the S3 client; a PROPFIND with ``Depth: 1`` always returns
        the whole directory.
        """

        normalized_prefix = prefix.lstrip("/")
        if normalized_prefix and not normalized_prefix.endswith("/"):
            normalized_prefix += "/"
        full_prefix = self._full_path(normalized_prefix)

        response = self._request(
            "PROPFIND",
            full_prefix,
            headers={"Content-Type": "application/xml", "Depth": "1"},
            data=PROPFIND_BODY.encode("utf-8"),
        )
        if not response.ok:
            raise TransportError(
                f"WebDAV PROPFIND failed: {response.status_code}",
                status_code=response.status_code,
            )
        LOGGER.debug("PROPFIND returned %d for prefix '%s'", response.status_code, normalized_prefix)
        return parse_propfind_response(
            response.content,
            full_prefix,
            normalized_prefix,
            endpoint_path=self._config.endpoint_path,
            base_path=self._base_path,
        )

    def get_object(self, key: str) -> ObjectBody:
        response = self._request("GET", self._full_path(key), stream=True)
        if not response.ok:
            response.close()
            raise RetrievalError(
                f"WebDAV GetObject failed: {response.status_code}",
                status_code=response.status_code,
            )
        length = response.headers.get("Content-Length")
        return ObjectBody(
            stream=response.iter_content(chunk_size=DOWNLOAD_CHUNK_SIZE),
            content_type=response.headers.get("Content-Type") or "application/octet-stream",
            content_length=int(length) if length and length.isdigit() else None,
        )

    def put_object(
        self,
        key: str,
        body: Union[bytes, str],
        content_type: Optional[str] = None,
    ) -> None:
        data = body.encode("utf-8") if isinstance(body, str) else body
        response = self._request(
            "PUT",
            self._full_path(key),
            headers={"Content-Type": content_type or "application/octet-stream"},
            data=data,
        )
        if not response.ok:
            raise WriteError(
                f"WebDAV PutObject failed: {response.status_code} {response.text}",
                status_code=response.status_code,
                response_text=response.text,
            )

    def delete_object(self, key: str) -> None:
        response = self._request("DELETE", self._full_path(key))
        if not response.ok:
            raise TransportError(
                f"WebDAV DeleteObject failed: {response.status_code} {response.text}",
                status_code=response.status_code,
                response_text=response.text,
            )

    def create_folder(self, folder_path: str) -> None:
        normalized = folder_path if folder_path.endswith("/") else folder_path + "/"
        response = self._request("MKCOL", self._full_path(normalized))
        if not response.ok:
            raise TransportError(
                f"WebDAV MKCOL failed: {response.status_code} {response.text}",
                status_code=response.status_code,
                response_text=response.text,
            )

    def copy_object(self, source_key: str, dest_key: str) -> None:
        response = self._request(
            "COPY",
            self._full_path(source_key),
            headers={"Destination": self._url(self._full_path(dest_key)), "Overwrite": "F"},
        )
        if not response.ok:
            raise TransportError(
                f"WebDAV COPY failed: {response.status_code} {response.text}",
                status_code=response.status_code,
                response_text=response.text,
            )

    def head_object(self, key: str) -> ObjectMetadata | None:
        response = self._request("HEAD", self._full_path(key))
        if response.status_code == 404:
            return None
        if not response.ok:
            raise TransportError(
                f"WebDAV HeadObject failed: {response.status_code}",
                status_code=response.status_code,
            )
        length = response.headers.get("Content-Length") or "0"
        return ObjectMetadata(
            content_length=int(length) if length.isdigit() else 0,
            content_type=response.headers.get("Content-Type") or "application/octet-stream",
            last_modified=response.headers.get("Last-Modified") or "",
        )

    def initiate_multipart_upload(self, key: str, content_type: str | None = None) -> str:
        LOGGER.debug("Multipart upload requested for '%s'; WebDAV needs a single PUT", key)
        return f"webdav-{uuid.uuid4().hex}"

    def upload_part(
        self,
        key: str,
        upload_id: str,
        part_number: int,
        body: bytes,
        content_length: int | None = None,
    ) -> str:
        raise UnsupportedOperationError(
            "WebDAV does not support multipart uploads; upload the whole object with put_object"
        )

    def complete_multipart_upload(self, key: str, upload_id: str, parts: list[dict]) -> None:
        return None

    def abort_multipart_upload(self, key: str, upload_id: str) -> None:
        return None

    def get_signed_url(self, key: str, expires_in: int = 3600) -> str:
        """Return the direct resource URL. It is not signed and does not expire."""

        return self._url(self._full_path(key))

    def get_signed_upload_part_url(
        self,
        key: str,
        upload_id: str,
        part_number: int,
        expires_in: int = 3600,
    ) -> str:
        return self.get_signed_url(key, expires_in)

    def _full_path(self, path: str) -> str:
        base_path = self._base_path
        clean_path = path.lstrip("/")
        return f"{base_path}/{clean_path}" if base_path else clean_path

    def _url(self, full_path: str) -> str:
        endpoint = self._config.normalized_endpoint
        if not full_path:
            return endpoint
        return f"{endpoint}/{quote(full_path, safe='/')}"

    def _request(self, method: str, full_path: str, **kwargs) -> requests.Response:
        try:
            return self._session.request(
                method,
                self._url(full_path),
                auth=self._auth,
                timeout=self._timeout,
                **kwargs,
            )
        except requests.RequestException as exc:
            raise TransportError(f"WebDAV {method} request failed: {exc}") from exc
