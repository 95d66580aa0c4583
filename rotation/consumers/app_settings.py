"""
rotation/consumers/app_settings.py - Application reading its secret from an app setting.
"""
import logging

from rotation.backends import AppConfigClient, SlotUpdate
from rotation.consumers.slots import SlotHandoffConsumer
from rotation.models import AppSettingConfiguration, RegeneratedSecret, setting_name

log = logging.getLogger(__name__)


class AppSettingConsumer(SlotHandoffConsumer):
    """Writes the managed secret into an application setting."""

    configuration: AppSettingConfiguration

    def __init__(self, configuration: AppSettingConfiguration, client: AppConfigClient) -> None:
        super().__init__(configuration, client)

    def stage_secret(self, update: SlotUpdate, secret: RegeneratedSecret) -> SlotUpdate:
        name = setting_name(self.configuration.setting_name, secret.user_hint)
        as_connection_string = self.configuration.commit_as_connection_string
        log.info(
            f"Updating AppSetting '{name}' in slot '{update.slot}' "
            f"(as {'connection string' if as_connection_string else 'secret'})"
        )
        value = secret.connection_string_or_key if as_connection_string else secret.value
        return update.with_app_setting(name, value.reveal())

    def get_description(self) -> str:
        c = self.configuration
        return (
            f"Populates an App Setting called '{c.setting_name}' in an application "
            f"called {c.resource_name} (Resource Group '{c.resource_group}'). "
            + self._slot_path()
        )
