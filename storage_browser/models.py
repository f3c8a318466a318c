from __future__ import annotations
"""Data models shared by the storage clients and the statistics aggregator."""
from dataclasses import dataclass, field
from typing import Iterable, Optional, Union
from urllib.parse import unquote, urlsplit

BACKEND_S3 = "s3"
BACKEND_WEBDAV = "webdav"
BACKEND_KINDS = (BACKEND_S3, BACKEND_WEBDAV)

NO_EXTENSION = "no-extension"


@dataclass(frozen=True)
class BasicCredentials:
    """Username/password pair used for WebDAV Basic-Auth."""

    username: str
    password: str = field(repr=False)


@dataclass(frozen=True)
class AccessKeyCredentials:
    """Access key pair used for S3-compatible endpoints."""

    access_key_id: str
    secret_access_key: str = field(repr=False)


Credentials = Union[BasicCredentials, AccessKeyCredentials]


@dataclass(frozen=True)
class StorageConfig:
    """Immutable connection settings for one remote storage."""

    kind: str
    endpoint: str
    credentials: Credentials
    base_path: str = ""
    bucket: str = ""
    region: str = ""

    def __post_init__(self) -> None:
        if self.kind not in BACKEND_KINDS:
            raise ValueError(f"Unsupported storage kind '{self.kind}'")
        if not self.endpoint:
            raise ValueError("endpoint is required")
        if self.kind == BACKEND_WEBDAV and not isinstance(self.credentials, BasicCredentials):
            raise ValueError("WebDAV storages require BasicCredentials")
        if self.kind == BACKEND_S3 and not isinstance(self.credentials, AccessKeyCredentials):
            raise ValueError("S3 storages require AccessKeyCredentials")

    @property
    def normalized_endpoint(self) -> str:
        return self.endpoint.rstrip("/")

    @property
    def endpoint_path(self) -> str:
        return unquote(urlsplit(self.endpoint).path).strip("/")

    @property
    def normalized_base_path(self) -> str:
        return (self.base_path or "").strip("/")


@dataclass
class ListedEntry:
    """A single file or directory returned by a listing call."""

    key: str
    name: str
    size: int = 0
    last_modified: str = ""
    is_directory: bool = False
    etag: Optional[str] = None


@dataclass
class ListingResult:
    """One page of a directory listing."""

    entries: list[ListedEntry] = field(default_factory=list)
    directory_names: list[str] = field(default_factory=list)
    is_truncated: bool = False
    continuation_token: Optional[str] = None

    def __post_init__(self) -> None:
        if self.is_truncated and not self.continuation_token:
            raise ValueError("A truncated listing must carry a continuation token")


def sort_entries(entries: Iterable[ListedEntry]) -> list[ListedEntry]:
    """Order entries directories first, then by name.

    Names compare case-insensitively, with lower case first on ties, which
    matches the usual locale collation without depending on the host locale.
    """

    return sorted(
        entries,
        key=lambda entry: (not entry.is_directory, entry.name.casefold(), entry.name.swapcase()),
    )


@dataclass
class ObjectMetadata:
    """Metadata returned by a HEAD-style request."""

    content_length: int = 0
    content_type: str = "application/octet-stream"
    last_modified: str = ""


@dataclass
class ObjectBody:
    """Streamed content of a fetched object."""

    stream: Iterable[bytes]
    content_type: str = "application/octet-stream"
    content_length: Optional[int] = None


@dataclass
class TypeStatistics:
    count: int = 0
    total_size_bytes: int = 0


@dataclass
class StorageStatistics:
    """Aggregate counts and sizes for a whole storage tree."""

    total_size_bytes: int = 0
    file_count: int = 0
    folder_count: int = 0
    type_distribution: dict[str, TypeStatistics] = field(default_factory=dict)

    def record_file(self, extension: str, size: int) -> None:
        self.file_count += 1
        self.total_size_bytes += size
        bucket = self.type_distribution.setdefault(extension or NO_EXTENSION, TypeStatistics())
        bucket.count += 1
        bucket.total_size_bytes += size

    def record_folder(self) -> None:
        self.folder_count += 1

    def to_dict(self) -> dict[str, object]:
        return {
            "totalSize": self.total_size_bytes,
            "fileCount": self.file_count,
            "folderCount": self.folder_count,
            "typeDistribution": {
                extension: {"count": stats.count, "size": stats.total_size_bytes}
                for extension, stats in sorted(self.type_distribution.items())
            },
        }
