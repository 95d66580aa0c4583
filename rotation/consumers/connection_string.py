"""
rotation/consumers/connection_string.py - Application reading its secret from a connection string.

Connection strings are a keyed collection: an existing entry is removed
before the new one is added, within the same batch.
"""
import logging

from rotation.backends import AppConfigClient, SlotUpdate
from rotation.consumers.slots import SlotHandoffConsumer
from rotation.models import ConnectionStringConfiguration, RegeneratedSecret, setting_name

log = logging.getLogger(__name__)


class ConnectionStringConsumer(SlotHandoffConsumer):
    """Writes the managed secret into a connection string entry."""

    configuration: ConnectionStringConfiguration

    def __init__(self, configuration: ConnectionStringConfiguration, client: AppConfigClient) -> None:
        super().__init__(configuration, client)

    def stage_secret(self, update: SlotUpdate, secret: RegeneratedSecret) -> SlotUpdate:
        name = setting_name(self.configuration.connection_string_name, secret.user_hint)
        log.info(f"Updating Connection String '{name}' in slot '{update.slot}'")
        return (
            update.without_connection_string(name)
            .with_connection_string(
                name,
                secret.connection_string_or_key.reveal(),
                self.configuration.connection_string_type,
            )
        )

    def get_description(self) -> str:
        c = self.configuration
        return (
            f"Populates a Connection String for '{c.connection_string_type}' called "
            f"'{c.connection_string_name}' in an application called {c.resource_name} "
            f"(Resource Group '{c.resource_group}'). " + self._slot_path()
        )
