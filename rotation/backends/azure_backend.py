"""
rotation/backends/azure_backend.py - Azure backend using the Azure management SDKs.

This is the PRODUCTION backend.

Authentication: ClientSecretCredential when AZURE_TENANT_ID, AZURE_CLIENT_ID
and AZURE_CLIENT_SECRET are all set, DefaultAzureCredential otherwise
(Azure CLI, managed identity, environment).
Keys: CosmosDBManagementClient.database_accounts, StorageManagementClient.storage_accounts
App configuration and slot swaps: WebSiteManagementClient.web_apps

The SDK clients are blocking, so every call runs in a worker thread through
asyncio.to_thread. Long-running operations are awaited for at most
ROTATION_LRO_TIMEOUT seconds. Every AzureError is re-raised as
ResourceOperationError.
"""
import asyncio
import logging
import threading
from typing import Any, Callable

from azure.core.exceptions import AzureError
from azure.identity import ClientSecretCredential, DefaultAzureCredential
from azure.mgmt.cosmosdb import CosmosDBManagementClient
from azure.mgmt.cosmosdb.models import DatabaseAccountRegenerateKeyParameters
from azure.mgmt.storage import StorageManagementClient
from azure.mgmt.storage.models import StorageAccountRegenerateKeyParameters
from azure.mgmt.web import WebSiteManagementClient
from azure.mgmt.web.models import (
    ConnectionStringDictionary,
    ConnStringValueTypePair,
    CsmSlotEntity,
    StringDictionary,
)

from rotation import config
from rotation.backends import AppConfigClient, ResourceClient, ResourceReference, SlotUpdate
from rotation.errors import ResourceOperationError

log = logging.getLogger(__name__)

COSMOS_TYPE = "Microsoft.DocumentDB/databaseAccounts"
STORAGE_TYPE = "Microsoft.Storage/storageAccounts"
PRODUCTION_SLOT = "production"

# listKeys field -> DatabaseAccountListKeysResult attribute
COSMOS_KEY_ATTRIBUTES = {
    "primaryMasterKey": "primary_master_key",
    "secondaryMasterKey": "secondary_master_key",
    "primaryReadonlyMasterKey": "primary_readonly_master_key",
    "secondaryReadonlyMasterKey": "secondary_readonly_master_key",
}


def get_credential(
    tenant_id: str | None = None,
    client_id: str | None = None,
    client_secret: str | None = None,
) -> Any:
    """Service principal credential if fully configured, else the default chain."""
    tenant_id = tenant_id or config.AZURE_TENANT_ID
    client_id = client_id or config.AZURE_CLIENT_ID
    client_secret = client_secret or config.AZURE_CLIENT_SECRET
    if tenant_id and client_id and client_secret:
        return ClientSecretCredential(
            tenant_id=tenant_id,
            client_id=client_id,
            client_secret=client_secret,
        )
    return DefaultAzureCredential()


def build_resource_id(subscription_id: str, resource: ResourceReference) -> str:
    if not subscription_id:
        raise ResourceOperationError("AZURE_SUBSCRIPTION_ID is not set")
    return (
        f"/subscriptions/{subscription_id}/resourceGroups/{resource.resource_group}"
        f"/providers/{resource.resource_type}/{resource.resource_name}"
    )


def parse_resource_id(resource_id: str) -> tuple[str, str, str]:
    """Split an ARM resource id into (resource type, resource group, name)."""
    parts = resource_id.strip("/").split("/")
    lowered = [p.lower() for p in parts]
    try:
        group = parts[lowered.index("resourcegroups") + 1]
        i = lowered.index("providers")
        return f"{parts[i + 1]}/{parts[i + 2]}", group, parts[i + 3]
    except (ValueError, IndexError):
        raise ResourceOperationError(f"Not an ARM resource id: {resource_id}") from None


def call_azure(description: str, fn: Callable[..., Any], *args: Any) -> Any:
    try:
        return fn(*args)
    except AzureError as e:
        raise ResourceOperationError(f"{description} failed: {e}") from e


def run_operation(description: str, begin: Callable[..., Any], *args: Any) -> Any:
    """Start a long-running operation and wait for it to finish."""

    def operation() -> Any:
        poller = begin(*args)
        poller.wait(timeout=config.LRO_TIMEOUT)
        if not poller.done():
            raise ResourceOperationError(
                f"{description} did not finish within {config.LRO_TIMEOUT:.0f}s"
            )
        return poller.result()

    return call_azure(description, operation)


class _AzureClientFactory:
    """Lazily builds management clients; safe to share between worker threads."""

    def __init__(self, subscription_id: str | None, credential: Any | None) -> None:
        self.subscription_id = subscription_id or config.AZURE_SUBSCRIPTION_ID
        self._credential = credential
        self._lock = threading.Lock()

    def _build(self, attr: str, client_cls: type) -> Any:
        with self._lock:
            if getattr(self, attr) is None:
                if not self.subscription_id:
                    raise ResourceOperationError("AZURE_SUBSCRIPTION_ID is not set")
                if self._credential is None:
                    self._credential = get_credential()
                setattr(self, attr, client_cls(
                    credential=self._credential,
                    subscription_id=self.subscription_id,
                ))
            return getattr(self, attr)


class AzureKeyClient(_AzureClientFactory, ResourceClient):
    """ResourceClient over Cosmos DB and Storage account key operations."""

    def __init__(
        self,
        subscription_id: str | None = None,
        credential: Any | None = None,
        cosmos_client: CosmosDBManagementClient | None = None,
        storage_client: StorageManagementClient | None = None,
    ) -> None:
        super().__init__(subscription_id, credential)
        self._cosmos_client = cosmos_client
        self._storage_client = storage_client

    def _get_cosmos_client(self) -> CosmosDBManagementClient:
        return self._build("_cosmos_client", CosmosDBManagementClient)

    def _get_storage_client(self) -> StorageManagementClient:
        return self._build("_storage_client", StorageManagementClient)

    def resolve(self, resource: ResourceReference) -> str:
        return build_resource_id(self.subscription_id, resource)

    async def list_keys(self, resource_id: str) -> dict[str, str]:
        return await asyncio.to_thread(self._list_keys, resource_id)

    def _list_keys(self, resource_id: str) -> dict[str, str]:
        resource_type, group, name = parse_resource_id(resource_id)
        description = f"listKeys on {resource_id}"
        if resource_type == COSMOS_TYPE:
            result = call_azure(
                description, self._get_cosmos_client().database_accounts.list_keys, group, name
            )
            keys = {field: getattr(result, attr, None) for field, attr in COSMOS_KEY_ATTRIBUTES.items()}
            return {field: value for field, value in keys.items() if isinstance(value, str)}
        if resource_type == STORAGE_TYPE:
            result = call_azure(
                description, self._get_storage_client().storage_accounts.list_keys, group, name
            )
            return {key.key_name: key.value for key in result.keys or []}
        raise ResourceOperationError(f"Unsupported resource type {resource_type}")

    async def regenerate_key(self, resource_id: str, key_name: str) -> None:
        log.info(f"Regenerating key {key_name} on {resource_id}")
        await asyncio.to_thread(self._regenerate_key, resource_id, key_name)

    def _regenerate_key(self, resource_id: str, key_name: str) -> None:
        resource_type, group, name = parse_resource_id(resource_id)
        description = f"regenerateKey {key_name} on {resource_id}"
        if resource_type == COSMOS_TYPE:
            run_operation(
                description,
                self._get_cosmos_client().database_accounts.begin_regenerate_key,
                group,
                name,
                DatabaseAccountRegenerateKeyParameters(key_kind=key_name),
            )
        elif resource_type == STORAGE_TYPE:
            call_azure(
                description,
                self._get_storage_client().storage_accounts.regenerate_key,
                group,
                name,
                StorageAccountRegenerateKeyParameters(key_name=key_name),
            )
        else:
            raise ResourceOperationError(f"Unsupported resource type {resource_type}")


class AzureAppConfigClient(_AzureClientFactory, AppConfigClient):
    """AppConfigClient over App Service / Functions site configuration."""

    def __init__(
        self,
        subscription_id: str | None = None,
        credential: Any | None = None,
        web_client: WebSiteManagementClient | None = None,
    ) -> None:
        super().__init__(subscription_id, credential)
        self._web_client = web_client

    def _web_apps(self) -> Any:
        return self._build("_web_client", WebSiteManagementClient).web_apps

    async def get_slot(self, app: ResourceReference, slot: str) -> SlotUpdate:
        web_apps = self._web_apps()
        description = f"get {app} slot {slot}"
        if slot == PRODUCTION_SLOT:
            await asyncio.to_thread(
                call_azure, description, web_apps.get, app.resource_group, app.resource_name
            )
        else:
            await asyncio.to_thread(
                call_azure, description, web_apps.get_slot, app.resource_group, app.resource_name, slot
            )
        return SlotUpdate(app=app, slot=slot)

    async def apply(self, update: SlotUpdate) -> None:
        await asyncio.to_thread(self._apply, update)

    def _apply(self, update: SlotUpdate) -> None:
        web_apps = self._web_apps()
        on_slot = update.slot != PRODUCTION_SLOT
        target = (update.app.resource_group, update.app.resource_name)
        if on_slot:
            target += (update.slot,)
        context = f"{update.app} slot {update.slot}"
        ops = {op for op, _, _, _ in update.operations}

        if "set_setting" in ops:
            current = call_azure(
                f"list app settings of {context}",
                web_apps.list_application_settings_slot if on_slot else web_apps.list_application_settings,
                *target,
            )
            properties = dict(current.properties or {})
            for op, name, value, _ in update.operations:
                if op == "set_setting":
                    properties[name] = value
            call_azure(
                f"update app settings of {context}",
                web_apps.update_application_settings_slot if on_slot else web_apps.update_application_settings,
                *target,
                StringDictionary(properties=properties),
            )

        if ops & {"remove_connection_string", "set_connection_string"}:
            current = call_azure(
                f"list connection strings of {context}",
                web_apps.list_connection_strings_slot if on_slot else web_apps.list_connection_strings,
                *target,
            )
            properties = dict(current.properties or {})
            for op, name, value, cs_type in update.operations:
                if op == "remove_connection_string":
                    properties.pop(name, None)
                elif op == "set_connection_string":
                    properties[name] = ConnStringValueTypePair(value=value, type=cs_type)
            call_azure(
                f"update connection strings of {context}",
                web_apps.update_connection_strings_slot if on_slot else web_apps.update_connection_strings,
                *target,
                ConnectionStringDictionary(properties=properties),
            )
        log.info(f"Applied {len(update.operations)} change(s) to {context}")

    async def swap_slot(self, app: ResourceReference, slot: str, target_slot: str) -> None:
        await asyncio.to_thread(self._swap_slot, app, slot, target_slot)

    def _swap_slot(self, app: ResourceReference, slot: str, target_slot: str) -> None:
        web_apps = self._web_apps()
        description = f"swap {app} slot {slot} with {target_slot}"
        if PRODUCTION_SLOT in (slot, target_slot):
            other = target_slot if slot == PRODUCTION_SLOT else slot
            run_operation(
                description,
                web_apps.begin_swap_slot_with_production,
                app.resource_group,
                app.resource_name,
                CsmSlotEntity(target_slot=other, preserve_vnet=True),
            )
        else:
            run_operation(
                description,
                web_apps.begin_swap_slot,
                app.resource_group,
                app.resource_name,
                slot,
                CsmSlotEntity(target_slot=target_slot, preserve_vnet=True),
            )
