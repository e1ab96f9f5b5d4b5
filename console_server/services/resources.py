"""
Pass-through collections of the fulfillment API.

Only ``list`` is deduplicated: list pages are requested by several views at
once, while single-object reads and all writes go straight to the client.
"""

from typing import Any

from loguru import logger

from console_server.services.client import FulfillmentClient
from console_server.services.config_provider import (
    ConfigProvider,
    RemoteConfigProvider,
    StaticConfigProvider,
)
from console_server.services.deduplicator import RequestDeduplicator
from console_server.services.tokens import TokenStore
from console_server.settings import Settings

COLLECTIONS = (
    "virtual_machines",
    "clusters",
    "cluster_templates",
    "hosts",
    "host_classes",
    "hubs",
    "tenants",
    "templates",
)


class ResourceCollection:
    """CRUD calls for one fulfillment API collection."""

    def __init__(
        self,
        name: str,
        client: FulfillmentClient,
        deduplicator: RequestDeduplicator,
    ):
        self.name = name
        self._client = client
        self._dedup = deduplicator

    @property
    def list_key(self) -> str:
        return f"{self.name.replace('_', '-')}-list"

    async def list(self) -> Any:
        async def fetch() -> Any:
            logger.debug(f"Fetching {self.name} list")
            response = await self._client.get(f"/{self.name}")
            items = response.get("items") if isinstance(response, dict) else response
            count = len(items) if isinstance(items, list) else 0
            logger.info(f"{self.name} fetched successfully ({count} items)")
            return response

        try:
            return await self._dedup.dedupe(self.list_key, fetch)
        except Exception as e:
            logger.error(f"Failed to fetch {self.name}: {e}")
            raise

    async def get(self, object_id: str) -> dict[str, Any]:
        try:
            return await self._client.get(f"/{self.name}/{object_id}")
        except Exception as e:
            logger.error(f"Failed to fetch {self.name} {object_id}: {e}")
            raise

    async def create(self, obj: dict[str, Any]) -> dict[str, Any]:
        logger.info(f"Creating {self.name} object")
        try:
            return await self._client.post(f"/{self.name}", obj)
        except Exception as e:
            logger.error(f"Failed to create {self.name} object: {e}")
            raise

    async def update(self, object_id: str, obj: dict[str, Any]) -> dict[str, Any]:
        logger.info(f"Updating {self.name} {object_id}")
        try:
            return await self._client.put(f"/{self.name}/{object_id}", obj)
        except Exception as e:
            logger.error(f"Failed to update {self.name} {object_id}: {e}")
            raise

    async def delete(self, object_id: str) -> None:
        logger.info(f"Deleting {self.name} {object_id}")
        try:
            await self._client.delete(f"/{self.name}/{object_id}")
        except Exception as e:
            logger.error(f"Failed to delete {self.name} {object_id}: {e}")
            raise


class FulfillmentApi:
    """
    Every known collection, sharing one client and one deduplicator.

    Usage:
        api = FulfillmentApi(client)
        vms = await api.virtual_machines.list()
    """

    def __init__(
        self,
        client: FulfillmentClient,
        deduplicator: RequestDeduplicator | None = None,
    ):
        self.client = client
        self.deduplicator = deduplicator or RequestDeduplicator()
        self._collections = {
            name: ResourceCollection(name, client, self.deduplicator)
            for name in COLLECTIONS
        }

    def collection(self, name: str) -> ResourceCollection:
        if name not in self._collections:
            raise KeyError(f"Unknown collection: {name}")
        return self._collections[name]

    def __getattr__(self, name: str) -> ResourceCollection:
        collections = self.__dict__.get("_collections", {})
        if name in collections:
            return collections[name]
        raise AttributeError(name)


def build_fulfillment_api(
    settings: Settings,
    config_url: str | None = None,
    token_store: TokenStore | None = None,
) -> FulfillmentApi:
    """
    Wire a client and deduplicator from settings.

    With ``config_url`` the upstream locations are fetched from a console
    server's ``/api/config``; without it they come from ``settings``.
    """
    if config_url:
        provider: ConfigProvider = RemoteConfigProvider(config_url)
    else:
        provider = StaticConfigProvider(settings)

    client = FulfillmentClient(provider, token_store=token_store)
    return FulfillmentApi(client, RequestDeduplicator(ttl=settings.dedup_ttl))
