from __future__ import annotations
"""Resolves saved storages to clients and runs operations against them."""

from typing import Callable, Optional

import requests

from .clients import StorageClient, create_storage_client
from .errors import AuthorizationError, NotFoundError
from .models import ListingResult, ObjectBody, StorageStatistics
from .profiles import ProfileStorage, StorageProfile
from .settings import AppSettings
from .stats import collect_storage_statistics

ClientFactory = Callable[[StorageProfile], StorageClient]


class StorageController:
    """Coordinates storage lookups with the storage clients and the aggregator."""

    def __init__(
        self,
        storage: ProfileStorage | None = None,
        settings: AppSettings | None = None,
        *,
        client_factory: ClientFactory | None = None,
        session: requests.Session | None = None,
    ):
        self._storage = storage or ProfileStorage()
        self._settings = settings or AppSettings()
        self._session = session
        self._client_factory = client_factory or self._default_client_factory

    @property
    def settings(self) -> AppSettings:
        return self._settings

    def list_profiles(self) -> list[StorageProfile]:
        return self._storage.load()

    def get_profile(self, storage_id: int) -> StorageProfile:
        profile = self._storage.get(storage_id)
        if profile is None:
            raise NotFoundError(f"Storage {storage_id} does not exist")
        return profile

    def client_for(self, storage_id: int) -> StorageClient:
        return self._client_factory(self.get_profile(storage_id))

    def list_objects(
        self,
        storage_id: int,
        *,
        prefix: str = "",
        continuation_token: str | None = None,
    ) -> ListingResult:
        client = self.client_for(storage_id)
        return client.list_objects(
            prefix,
            "/",
            self._settings.list_page_size,
            continuation_token,
        )

    def get_object(self, storage_id: int, key: str) -> ObjectBody:
        return self.client_for(storage_id).get_object(key)

    def collect_statistics(
        self,
        storage_id: int,
        *,
        is_admin: bool = True,
        cancel_requested: Optional[Callable[[], bool]] = None,
    ) -> StorageStatistics:
        """Walk the whole storage and summarize its usage.

        The admin check and the storage lookup happen before any remote call.
        """

        if not is_admin:
            raise AuthorizationError("Storage statistics require administrator rights")
        client = self.client_for(storage_id)
        return collect_storage_statistics(
            client,
            page_size=self._settings.list_page_size,
            cancel_requested=cancel_requested,
        )

    def _default_client_factory(self, profile: StorageProfile) -> StorageClient:
        return create_storage_client(
            profile.to_config(),
            timeout=self._settings.request_timeout,
            session=self._session,
        )
