"""
rotation/providers/dual_key.py - Ping-pong rotation over a resource with two keys.

The resource keeps two independently regenerable keys of each role. While
the active key is regenerated, consumers run on the other one:

    standby   read other(active), unchanged          -> consumers switch to it
    rekey     regenerate active, read it back        -> consumers commit it
    finalize  regenerate other(active) (scramble)    -> standby is destroyed

At every instant at least one of the two keys is valid for the consumers.
"""
import logging
from datetime import timedelta

from rotation.backends import ResourceClient, ResourceReference
from rotation.errors import ResourceOperationError, UnsupportedConfigurationError
from rotation.models import (
    TEMPORARY_SECRET_VALIDITY,
    KeyConfiguration,
    KeyKind,
    RegeneratedSecret,
    RiskyConfigurationItem,
    SecretValue,
)
from rotation.providers import SecretProvider

log = logging.getLogger(__name__)

SKIP_SCRAMBLING_RISK_SCORE = 80


class DualKeyProvider(SecretProvider):
    """
    Shared rotation logic for dual-key resources.

    Subclasses set `resource_type` and `display_name`, and map key kinds to
    the vendor's names via KEY_NAMES (the regenerate call) and KEY_FIELDS
    (the listKeys response).
    """

    resource_type: str = ""
    display_name: str = "resource"
    KEY_NAMES: dict[KeyKind, str] = {}
    KEY_FIELDS: dict[KeyKind, str] = {}

    def __init__(self, configuration: KeyConfiguration, client: ResourceClient) -> None:
        self.configuration = configuration
        self._client = client
        self._resource_id: str | None = None
        # Both kinds must map before any key is touched
        self.key_name(configuration.key_kind)
        self.key_name(configuration.key_kind.other())

    @property
    def resource(self) -> ResourceReference:
        return ResourceReference(
            self.resource_type,
            self.configuration.resource_group,
            self.configuration.resource_name,
        )

    @property
    def resource_id(self) -> str:
        if self._resource_id is None:
            self._resource_id = self._client.resolve(self.resource)
        return self._resource_id

    @property
    def key_kind(self) -> KeyKind:
        return self.configuration.key_kind

    @property
    def other_key_kind(self) -> KeyKind:
        return self.configuration.key_kind.other()

    def key_name(self, kind: KeyKind) -> str:
        try:
            return self.KEY_NAMES[kind]
        except KeyError:
            raise UnsupportedConfigurationError(
                f"KeyKind '{kind.value}' not implemented for {self.display_name}"
            ) from None

    def key_field(self, kind: KeyKind) -> str:
        try:
            return self.KEY_FIELDS[kind]
        except KeyError:
            raise UnsupportedConfigurationError(
                f"KeyKind '{kind.value}' not implemented for {self.display_name}"
            ) from None

    async def _read_key(self, kind: KeyKind) -> SecretValue:
        keys = await self._client.list_keys(self.resource_id)
        field_name = self.key_field(kind)
        if field_name not in keys:
            raise ResourceOperationError(
                f"{self.display_name} '{self.configuration.resource_name}' returned no {kind.value} key"
            )
        return SecretValue(keys[field_name])

    def build_connection_string(self, key: SecretValue) -> SecretValue | None:
        """Override to hand consumers a full connection string alongside the key."""
        return None

    def _secret(self, key: SecretValue, valid_for: timedelta) -> RegeneratedSecret:
        return RegeneratedSecret.expiring_in(
            key,
            valid_for,
            user_hint=self.configuration.user_hint,
            connection_string=self.build_connection_string(key),
        )

    async def get_secret_to_use_during_rekeying(self) -> RegeneratedSecret:
        log.info(
            f"Getting temporary secret from other ({self.other_key_kind.value}) key "
            f"of {self.display_name} '{self.configuration.resource_name}'"
        )
        key = await self._read_key(self.other_key_kind)
        log.info("Retrieved temporary secret")
        return self._secret(key, TEMPORARY_SECRET_VALIDITY)

    async def rekey(self, requested_valid_period: timedelta) -> RegeneratedSecret:
        log.info(
            f"Regenerating {self.display_name} '{self.configuration.resource_name}' "
            f"key kind {self.key_kind.value}"
        )
        await self._client.regenerate_key(self.resource_id, self.key_name(self.key_kind))
        key = await self._read_key(self.key_kind)
        log.info(f"Rekeyed {self.display_name} key kind {self.key_kind.value}")
        return self._secret(key, requested_valid_period)

    async def on_consuming_application_swapped(self) -> None:
        if self.configuration.skip_scrambling_other_key:
            log.info(f"Skipping scrambling of {self.display_name} key kind {self.other_key_kind.value}")
            return
        log.info(f"Scrambling {self.display_name} key kind {self.other_key_kind.value}")
        await self._client.regenerate_key(self.resource_id, self.key_name(self.other_key_kind))

    def get_risks(self) -> list[RiskyConfigurationItem]:
        issues = []
        if self.configuration.skip_scrambling_other_key:
            issues.append(RiskyConfigurationItem(
                score=SKIP_SCRAMBLING_RISK_SCORE,
                risk=(
                    f"The other (unused) {self.display_name} key of this type is not "
                    f"being scrambled during key rotation"
                ),
                recommendation=(
                    f"Unless other services use the alternate key, allow scrambling of the "
                    f"unused key to fully rekey the {self.display_name}."
                ),
            ))
        return issues

    def get_description(self) -> str:
        other = self.other_key_kind.value
        return (
            f"Regenerates the {self.key_kind.value} key for a {self.display_name} "
            f"called '{self.configuration.resource_name}' (Resource Group "
            f"'{self.configuration.resource_group}'). The {other} key is used as a "
            f"temporary key while rekeying is taking place. The {other} key will "
            f"{'not' if self.configuration.skip_scrambling_other_key else 'also'} be rotated."
        )
