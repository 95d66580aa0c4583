"""
rotation/registry.py - Maps provider type identifiers to factories.

Hosts register the providers they run at start-up, then build provider
instances from plain configuration records:

    registry = default_registry()
    provider = registry.create("cosmosdb-key", {"resourceGroup": ..., ...}, key_client)
"""
from typing import Any, Callable, Mapping

from rotation.consumers.app_settings import AppSettingConsumer
from rotation.consumers.connection_string import ConnectionStringConsumer
from rotation.errors import UnsupportedConfigurationError
from rotation.models import AppSettingConfiguration, ConnectionStringConfiguration, KeyConfiguration
from rotation.providers.cosmosdb import CosmosDbKeyProvider
from rotation.providers.storage import StorageAccountKeyProvider

SECRET = "secret"
CONSUMER = "consumer"

Factory = Callable[[Mapping[str, Any], Any], Any]


class ProviderRegistry:
    """Explicit provider registry: type id -> factory(record, client)."""

    def __init__(self) -> None:
        self._factories: dict[str, Factory] = {}
        self._roles: dict[str, str] = {}

    def register(self, type_id: str, factory: Factory, role: str = SECRET) -> None:
        if type_id in self._factories:
            raise ValueError(f"Provider type already registered: {type_id}")
        if role not in (SECRET, CONSUMER):
            raise ValueError(f"Unknown provider role: {role}")
        self._factories[type_id] = factory
        self._roles[type_id] = role

    def role(self, type_id: str) -> str:
        """Return SECRET or CONSUMER, telling which client the factory expects."""
        try:
            return self._roles[type_id]
        except KeyError:
            raise UnsupportedConfigurationError(f"Unknown provider type: {type_id}") from None

    def types(self) -> list[str]:
        return sorted(self._factories)

    def create(self, type_id: str, record: Mapping[str, Any], client: Any) -> Any:
        try:
            factory = self._factories[type_id]
        except KeyError:
            raise UnsupportedConfigurationError(
                f"Unknown provider type: {type_id}. Registered: {', '.join(self.types())}"
            ) from None
        settings = {k: v for k, v in record.items() if k != "type"}
        return factory(settings, client)


def default_registry() -> ProviderRegistry:
    """Registry holding every provider shipped with the package."""
    registry = ProviderRegistry()
    registry.register(
        "cosmosdb-key",
        lambda record, client: CosmosDbKeyProvider(KeyConfiguration.from_dict(record), client),
    )
    registry.register(
        "storage-account-key",
        lambda record, client: StorageAccountKeyProvider(KeyConfiguration.from_dict(record), client),
    )
    registry.register(
        "app-setting",
        lambda record, client: AppSettingConsumer(AppSettingConfiguration.from_dict(record), client),
        role=CONSUMER,
    )
    registry.register(
        "connection-string",
        lambda record, client: ConnectionStringConsumer(
            ConnectionStringConfiguration.from_dict(record), client
        ),
        role=CONSUMER,
    )
    return registry
