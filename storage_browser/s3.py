from __future__ import annotations
"""Storage client for S3-compatible endpoints."""
import logging
from datetime import datetime
from typing import Callable, Optional, Union

import boto3
from botocore.client import Config
from botocore.exceptions import BotoCoreError, ClientError

from .errors import RetrievalError, TransportError, WriteError
from .models import (
    BACKEND_S3,
    ListedEntry,
    ListingResult,
    ObjectBody,
    ObjectMetadata,
    StorageConfig,
    sort_entries,
)

LOGGER = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0


def _status_of(exc: Exception) -> Optional[int]:
    if isinstance(exc, ClientError):
        return exc.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
    return None


def _format_timestamp(value: object) -> str:
    if not value:
        return ""
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


class S3StorageClient:
    """Implements the storage-client contract with boto3."""

    supports_multipart = True
    supports_presigned_urls = True

    def __init__(
        self,
        config: StorageConfig,
        *,
        client_factory: Callable[..., object] | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        if config.kind != BACKEND_S3:
            raise ValueError(f"S3StorageClient cannot serve a '{config.kind}' storage")
        if not config.bucket:
            raise ValueError("S3 storages require a bucket")
        self._config = config
        self._client_factory = client_factory or boto3.client
        self._timeout = timeout
        self._client = None

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
        normalized_prefix = prefix.lstrip("/")
        if normalized_prefix and delimiter and not normalized_prefix.endswith(delimiter):
            normalized_prefix += delimiter
        full_prefix = self._full_key(normalized_prefix)

        list_params = {"Bucket": self._config.bucket, "MaxKeys": max_keys}
        if full_prefix:
            list_params["Prefix"] = full_prefix
        if delimiter:
            list_params["Delimiter"] = delimiter
        if continuation_token:
            list_params["ContinuationToken"] = continuation_token

        try:
            response = self._get_client().list_objects_v2(**list_params)
        except (ClientError, BotoCoreError) as exc:
            raise TransportError(f"S3 ListObjectsV2 failed: {exc}", status_code=_status_of(exc)) from exc

        entries: list[ListedEntry] = []
        for common in response.get("CommonPrefixes", []):
            relative = self._relative_key(common["Prefix"])
            name = relative.rstrip("/").rpartition("/")[2]
            if not name:
                continue
            entries.append(ListedEntry(key=relative, name=name, is_directory=True))
        for obj in response.get("Contents", []):
            if obj["Key"] == full_prefix:
                # folder marker object
                continue
            relative = self._relative_key(obj["Key"])
            entries.append(
                ListedEntry(
                    key=relative,
                    name=relative.rpartition("/")[2],
                    size=int(obj.get("Size") or 0),
                    last_modified=_format_timestamp(obj.get("LastModified")),
                    etag=obj.get("ETag"),
                )
            )

        ordered = sort_entries(entries)
        truncated = bool(response.get("IsTruncated", False))
        token = response.get("NextContinuationToken")
        return ListingResult(
            entries=ordered,
            directory_names=[entry.name for entry in ordered if entry.is_directory],
            is_truncated=truncated and bool(token),
            continuation_token=token if truncated else None,
        )

    def get_object(self, key: str) -> ObjectBody:
        try:
            response = self._get_client().get_object(Bucket=self._config.bucket, Key=self._full_key(key))
        except (ClientError, BotoCoreError) as exc:
            raise RetrievalError(f"S3 GetObject failed: {exc}", status_code=_status_of(exc)) from exc
        return ObjectBody(
            stream=response["Body"].iter_chunks(),
            content_type=response.get("ContentType") or "application/octet-stream",
            content_length=response.get("ContentLength"),
        )

    def put_object(
        self,
        key: str,
        body: Union[bytes, str],
        content_type: Optional[str] = None,
    ) -> None:
        data = body.encode("utf-8") if isinstance(body, str) else body
        try:
            self._get_client().put_object(
                Bucket=self._config.bucket,
                Key=self._full_key(key),
                Body=data,
                ContentType=content_type or "application/octet-stream",
            )
        except (ClientError, BotoCoreError) as exc:
            raise WriteError(f"S3 PutObject failed: {exc}", status_code=_status_of(exc)) from exc

    def delete_object(self, key: str) -> None:
        self._call("DeleteObject", "delete_object", Bucket=self._config.bucket, Key=self._full_key(key))

    def create_folder(self, folder_path: str) -> None:
        normalized = folder_path if folder_path.endswith("/") else folder_path + "/"
        self._call(
            "PutObject",
            "put_object",
            Bucket=self._config.bucket,
            Key=self._full_key(normalized),
            Body=b"",
        )

    def copy_object(self, source_key: str, dest_key: str) -> None:
        self._call(
            "CopyObject",
            "copy_object",
            Bucket=self._config.bucket,
            Key=self._full_key(dest_key),
            CopySource={"Bucket": self._config.bucket, "Key": self._full_key(source_key)},
        )

    def head_object(self, key: str) -> ObjectMetadata | None:
        try:
            response = self._get_client().head_object(Bucket=self._config.bucket, Key=self._full_key(key))
        except ClientError as exc:
            if _status_of(exc) == 404:
                return None
            raise TransportError(f"S3 HeadObject failed: {exc}", status_code=_status_of(exc)) from exc
        except BotoCoreError as exc:
            raise TransportError(f"S3 HeadObject failed: {exc}") from exc
        return ObjectMetadata(
            content_length=int(response.get("ContentLength") or 0),
            content_type=response.get("ContentType") or "application/octet-stream",
            last_modified=_format_timestamp(response.get("LastModified")),
        )

    def initiate_multipart_upload(self, key: str, content_type: str | None = None) -> str:
        response = self._call(
            "CreateMultipartUpload",
            "create_multipart_upload",
            Bucket=self._config.bucket,
            Key=self._full_key(key),
            ContentType=content_type or "application/octet-stream",
        )
        return response["UploadId"]

    def upload_part(
        self,
        key: str,
        upload_id: str,
        part_number: int,
        body: bytes,
        content_length: int | None = None,
    ) -> str:
        params = {
            "Bucket": self._config.bucket,
            "Key": self._full_key(key),
            "UploadId": upload_id,
            "PartNumber": part_number,
            "Body": body,
        }
        if content_length is not None:
            params["ContentLength"] = content_length
        response = self._call("UploadPart", "upload_part", **params)
        return response["ETag"]

    def complete_multipart_upload(self, key: str, upload_id: str, parts: list[dict]) -> None:
        ordered = sorted(parts, key=lambda part: part["partNumber"])
        self._call(
            "CompleteMultipartUpload",
            "complete_multipart_upload",
            Bucket=self._config.bucket,
            Key=self._full_key(key),
            UploadId=upload_id,
            MultipartUpload={
                "Parts": [{"PartNumber": part["partNumber"], "ETag": part["etag"]} for part in ordered]
            },
        )

    def abort_multipart_upload(self, key: str, upload_id: str) -> None:
        self._call(
            "AbortMultipartUpload",
            "abort_multipart_upload",
            Bucket=self._config.bucket,
            Key=self._full_key(key),
            UploadId=upload_id,
        )

    def get_signed_url(self, key: str, expires_in: int = 3600) -> str:
        if expires_in <= 0:
            raise ValueError("expires_in must be greater than zero")
        return self._call(
            "GeneratePresignedUrl",
            "generate_presigned_url",
            "get_object",
            Params={"Bucket": self._config.bucket, "Key": self._full_key(key)},
            ExpiresIn=expires_in,
        )

    def get_signed_upload_part_url(
        self,
        key: str,
        upload_id: str,
        part_number: int,
        expires_in: int = 3600,
    ) -> str:
        if expires_in <= 0:
            raise ValueError("expires_in must be greater than zero")
        return self._call(
            "GeneratePresignedUrl",
            "generate_presigned_url",
            "upload_part",
            Params={
                "Bucket": self._config.bucket,
                "Key": self._full_key(key),
                "UploadId": upload_id,
                "PartNumber": part_number,
            },
            ExpiresIn=expires_in,
        )

    def _full_key(self, key: str) -> str:
        base_path = self._config.normalized_base_path
        clean_key = key.lstrip("/")
        return f"{base_path}/{clean_key}" if base_path else clean_key

    def _relative_key(self, key: str) -> str:
        base_path = self._config.normalized_base_path
        if base_path and key.startswith(base_path + "/"):
            return key[len(base_path) + 1:]
        return key

    def _call(self, operation: str, method: str, *args, **kwargs):
        try:
            return getattr(self._get_client(), method)(*args, **kwargs)
        except (ClientError, BotoCoreError) as exc:
            raise TransportError(f"S3 {operation} failed: {exc}", status_code=_status_of(exc)) from exc

    def _get_client(self):
        if self._client is None:
            self._client = self._create_client()
        return self._client

    def _create_client(self):
        config = Config(
            signature_version="s3v4",
            connect_timeout=self._timeout,
            read_timeout=self._timeout,
        )
        params = {
            "endpoint_url": self._config.endpoint,
            "aws_access_key_id": self._config.credentials.access_key_id,
            "aws_secret_access_key": self._config.credentials.secret_access_key,
            "config": config,
        }
        if self._config.region:
            params["region_name"] = self._config.region
        return self._client_factory("s3", **params)
