"""Shared fixtures: an in-memory Cosmos DB account and a two-slot application."""

import itertools

import pytest

from rotation.backends import ResourceReference
from rotation.backends.memory_backend import InMemoryAppConfigClient, InMemoryResourceClient
from rotation.consumers.app_settings import AppSettingConsumer
from rotation.models import AppSettingConfiguration, KeyConfiguration, KeyKind
from rotation.providers.cosmosdb import CosmosDbKeyProvider

COSMOS_KEY_FIELDS = {
    "primary": "primaryMasterKey",
    "secondary": "secondaryMasterKey",
    "primaryReadonly": "primaryReadonlyMasterKey",
    "secondaryReadonly": "secondaryReadonlyMasterKey",
}

COSMOS_ACCOUNT = ResourceReference("Microsoft.DocumentDB/databaseAccounts", "rg-orders", "orders-db")
APP = ResourceReference("Microsoft.Web/sites", "rg-orders", "orders-api")


def sequential_keys():
    """Generator producing P2, S2, P3, S3... as primary/secondary keys are regenerated."""
    counters = {"primary": itertools.count(2), "secondary": itertools.count(2)}

    def generate(key_name: str) -> str:
        prefix = "P" if key_name.startswith("primary") else "S"
        return f"{prefix}{next(counters['primary' if prefix == 'P' else 'secondary'])}"

    return generate


@pytest.fixture
def key_client():
    client = InMemoryResourceClient(key_fields=COSMOS_KEY_FIELDS, generate=sequential_keys())
    client.add_resource(COSMOS_ACCOUNT, {
        "primaryMasterKey": "P1",
        "secondaryMasterKey": "S1",
        "primaryReadonlyMasterKey": "PR1",
        "secondaryReadonlyMasterKey": "SR1",
    })
    return client


@pytest.fixture
def app_client():
    client = InMemoryAppConfigClient()
    client.add_app(APP, ["production", "temporary"])
    client.slot(APP, "production")["settings"]["CosmosKey"] = "P1"
    return client


@pytest.fixture
def key_config():
    return KeyConfiguration(
        resource_group="rg-orders",
        resource_name="orders-db",
        key_kind=KeyKind.PRIMARY,
    )


@pytest.fixture
def cosmos_provider(key_config, key_client):
    return CosmosDbKeyProvider(key_config, key_client)


@pytest.fixture
def app_setting_consumer(app_client):
    config = AppSettingConfiguration(
        resource_group="rg-orders",
        resource_name="orders-api",
        setting_name="CosmosKey",
    )
    return AppSettingConsumer(config, app_client)


def cosmos_keys(client: InMemoryResourceClient) -> dict[str, str]:
    return client.resources[client.resolve(COSMOS_ACCOUNT)]


def live_settings(client: InMemoryAppConfigClient, slot: str = "production") -> dict[str, str]:
    return client.slot(APP, slot)["settings"]
