from __future__ import annotations
"""Saved storage profiles and their persistence."""
from dataclasses import dataclass, field
import json
from pathlib import Path

import keyring
from keyring.errors import KeyringError

from .models import (
    BACKEND_KINDS,
    BACKEND_S3,
    AccessKeyCredentials,
    BasicCredentials,
    StorageConfig,
)

_PUBLIC_FIELDS = ("id", "name", "kind", "endpoint", "access_key", "bucket", "region", "base_path")


@dataclass
class StorageProfile:
    """Represents a saved storage connection, addressed by its numeric id."""

    id: int
    name: str
    kind: str
    endpoint: str
    access_key: str
    secret: str = field(default="", repr=False)
    bucket: str = ""
    region: str = ""
    base_path: str = ""

    def to_config(self) -> StorageConfig:
        """Build the immutable client configuration.

        For WebDAV storages the access key is the Basic-Auth username.
        """

        if self.kind == BACKEND_S3:
            credentials = AccessKeyCredentials(self.access_key, self.secret)
        else:
            credentials = BasicCredentials(self.access_key, self.secret)
        return StorageConfig(
            kind=self.kind,
            endpoint=self.endpoint,
            credentials=credentials,
            base_path=self.base_path,
            bucket=self.bucket,
            region=self.region,
        )


class KeychainStore:
    """Encapsulates OS keychain access for secrets."""

    def __init__(self, service_name: str = "storage-browser"):
        self._service_name = service_name

    def get_secret(self, profile_id: int) -> str:
        try:
            return keyring.get_password(self._service_name, str(profile_id)) or ""
        except KeyringError:
            return ""

    def set_secret(self, profile_id: int, secret: str) -> None:
        if not secret:
            self.delete_secret(profile_id)
            return
        try:
            keyring.set_password(self._service_name, str(profile_id), secret)
        except KeyringError:
            return

    def delete_secret(self, profile_id: int) -> None:
        try:
            keyring.delete_password(self._service_name, str(profile_id))
        except KeyringError:
            return


class ProfileStorage:
    """Simple JSON-backed store for storage profiles; secrets stay in the keychain."""

    def __init__(self, storage_path: str | Path | None = None):
        if storage_path is None:
            storage_path = Path.home() / ".storage_browser_storages.json"
        self._path = Path(storage_path)
        self._keychain = KeychainStore()

    def load(self) -> list[StorageProfile]:
        data = self._read_data()
        profiles: list[StorageProfile] = []
        sanitized: list[dict[str, object]] = []
        saw_plaintext = False
        for entry in data:
            try:
                profile_id = int(entry["id"])
                kind = entry["kind"]
                if kind not in BACKEND_KINDS or profile_id <= 0:
                    continue
                secret = entry.get("secret", "")
                if secret:
                    saw_plaintext = True
                    self._keychain.set_secret(profile_id, secret)
                else:
                    secret = self._keychain.get_secret(profile_id)
                profile = StorageProfile(
                    id=profile_id,
                    name=entry.get("name") or f"storage-{profile_id}",
                    kind=kind,
                    endpoint=entry["endpoint"],
                    access_key=entry.get("access_key", ""),
                    secret=secret,
                    bucket=entry.get("bucket", ""),
                    region=entry.get("region", ""),
                    base_path=entry.get("base_path", ""),
                )
            except (AttributeError, KeyError, TypeError, ValueError):
                continue
            profiles.append(profile)
            sanitized.append(self._public_data(profile))
        if saw_plaintext:
            self._write_data(sanitized)
        return profiles

    def get(self, profile_id: int) -> StorageProfile | None:
        for profile in self.load():
            if profile.id == profile_id:
                return profile
        return None

    def save(self, profiles: list[StorageProfile]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        data = []
        for profile in profiles:
            self._keychain.set_secret(profile.id, profile.secret)
            data.append(self._public_data(profile))
        existing_ids = self._load_profile_ids()
        current_ids = {profile.id for profile in profiles}
        for profile_id in existing_ids - current_ids:
            self._keychain.delete_secret(profile_id)
        self._write_data(data)

    def _load_profile_ids(self) -> set[int]:
        ids = set()
        for entry in self._read_data():
            try:
                ids.add(int(entry.get("id")))
            except (AttributeError, TypeError, ValueError):
                continue
        return ids

    def _read_data(self) -> list:
        if not self._path.exists():
            return []
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError):
            return []
        return data if isinstance(data, list) else []

    @staticmethod
    def _public_data(profile: StorageProfile) -> dict[str, object]:
        return {name: getattr(profile, name) for name in _PUBLIC_FIELDS}

    def _write_data(self, data: list[dict[str, object]]) -> None:
        self._path.write_text(json.dumps(data, indent=2), encoding="utf-8")
