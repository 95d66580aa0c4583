"""
rotation/providers/cosmosdb.py - Cosmos DB master key rotation.

A Cosmos DB account holds four master keys: primary/secondary read-write
and primary/secondary read-only. Any of the four can be the active key;
its pair is the standby.

ARM equivalent:
    POST {account}/listKeys
    -> { "primaryMasterKey": ..., "secondaryMasterKey": ...,
         "primaryReadonlyMasterKey": ..., "secondaryReadonlyMasterKey": ... }
    POST {account}/regenerateKey  { "keyKind": "primary" }
"""
from rotation.models import KeyKind, SecretValue
from rotation.providers.dual_key import DualKeyProvider


class CosmosDbKeyProvider(DualKeyProvider):
    """Regenerates a master key of a Cosmos DB account."""

    resource_type = "Microsoft.DocumentDB/databaseAccounts"
    display_name = "CosmosDB"

    KEY_NAMES = {
        KeyKind.PRIMARY: "primary",
        KeyKind.SECONDARY: "secondary",
        KeyKind.PRIMARY_READ_ONLY: "primaryReadonly",
        KeyKind.SECONDARY_READ_ONLY: "secondaryReadonly",
    }
    KEY_FIELDS = {
        KeyKind.PRIMARY: "primaryMasterKey",
        KeyKind.SECONDARY: "secondaryMasterKey",
        KeyKind.PRIMARY_READ_ONLY: "primaryReadonlyMasterKey",
        KeyKind.SECONDARY_READ_ONLY: "secondaryReadonlyMasterKey",
    }

    def build_connection_string(self, key: SecretValue) -> SecretValue:
        endpoint = f"https://{self.configuration.resource_name}.documents.azure.com:443/"
        return SecretValue(f"AccountEndpoint={endpoint};AccountKey={key.reveal()};")
