"""
rotation/providers/storage.py - Storage account access key rotation.

Storage accounts have exactly two access keys, key1 and key2, with no
read-only variants. Configuring a read-only key kind is rejected when the
provider is built.

ARM equivalent:
    POST {account}/listKeys  -> { "keys": [{ "keyName": "key1", "value": ... }, ...] }
    POST {account}/regenerateKey  { "keyName": "key1" }
"""
from rotation.models import KeyKind, SecretValue
from rotation.providers.dual_key import DualKeyProvider

ENDPOINT_SUFFIX = "core.windows.net"


class StorageAccountKeyProvider(DualKeyProvider):
    """Regenerates an access key of a storage account."""

    resource_type = "Microsoft.Storage/storageAccounts"
    display_name = "Storage Account"

    KEY_NAMES = {
        KeyKind.PRIMARY: "key1",
        KeyKind.SECONDARY: "key2",
    }
    KEY_FIELDS = KEY_NAMES

    def build_connection_string(self, key: SecretValue) -> SecretValue:
        return SecretValue(
            f"DefaultEndpointsProtocol=https;AccountName={self.configuration.resource_name};"
            f"AccountKey={key.reveal()};EndpointSuffix={ENDPOINT_SUFFIX}"
        )
