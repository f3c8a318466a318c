from __future__ import annotations
"""The storage-client contract and a factory for the concrete backends."""
from typing import Callable, Optional, Protocol, Union

import requests

from .models import (
    BACKEND_S3,
    BACKEND_WEBDAV,
    ListingResult,
    ObjectBody,
    ObjectMetadata,
    StorageConfig,
)
from .s3 import S3StorageClient
from .webdav import WebDAVStorageClient

DEFAULT_TIMEOUT = 30.0


class ObjectLister(Protocol):
    """Anything that can list one directory level, page by page."""

    def list_objects(
        self,
        prefix: str = "",
        delimiter: str = "/",
        max_keys: int = 1000,
        continuation_token: str | None = None,
    ) -> ListingResult:
        ...


class StorageClient(ObjectLister, Protocol):
    """Full object-storage contract shared by the S3 and WebDAV clients."""

    supports_multipart: bool
    supports_presigned_urls: bool

    def get_object(self, key: str) -> ObjectBody:
        ...

    def put_object(self, key: str, body: Union[bytes, str], content_type: Optional[str] = None) -> None:
        ...

    def delete_object(self, key: str) -> None:
        ...

    def create_folder(self, folder_path: str) -> None:
        ...

    def copy_object(self, source_key: str, dest_key: str) -> None:
        ...

    def head_object(self, key: str) -> ObjectMetadata | None:
        ...

    def initiate_multipart_upload(self, key: str, content_type: str | None = None) -> str:
        ...

    def upload_part(
        self,
        key: str,
        upload_id: str,
        part_number: int,
        body: bytes,
        content_length: int | None = None,
    ) -> str:
        ...

    def complete_multipart_upload(self, key: str, upload_id: str, parts: list[dict]) -> None:
        ...

    def abort_multipart_upload(self, key: str, upload_id: str) -> None:
        ...

    def get_signed_url(self, key: str, expires_in: int = 3600) -> str:
        ...

    def get_signed_upload_part_url(
        self,
        key: str,
        upload_id: str,
        part_number: int,
        expires_in: int = 3600,
    ) -> str:
        ...


def create_storage_client(
    config: StorageConfig,
    *,
    timeout: float = DEFAULT_TIMEOUT,
    session: requests.Session | None = None,
    client_factory: Callable[..., object] | None = None,
) -> StorageClient:
    """Build the client matching ``config.kind``."""

    if config.kind == BACKEND_WEBDAV:
        return WebDAVStorageClient(config, session=session, timeout=timeout)
    if config.kind == BACKEND_S3:
        return S3StorageClient(config, client_factory=client_factory, timeout=timeout)
    raise ValueError(f"Unsupported storage kind '{config.kind}'")
