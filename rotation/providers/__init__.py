"""
rotation/providers/__init__.py - Abstract base class for secret providers.

A secret provider owns a resource holding rotatable key material. During
one rotation operation it is called in this order:
  1. get_secret_to_use_during_rekeying - hand out a standby secret
  2. rekey - regenerate the active key
  3. on_consuming_application_swapped - optionally invalidate the standby key

get_risks() and get_description() are static views of the configuration
for reviewers; they never touch the network.
"""
from abc import ABC, abstractmethod
from datetime import timedelta

from rotation.models import RegeneratedSecret, RiskyConfigurationItem


class SecretProvider(ABC):
    """Abstract interface for a resource whose secret can be rotated."""

    @abstractmethod
    async def get_secret_to_use_during_rekeying(self) -> RegeneratedSecret:
        """
        Return a secret that stays valid while the active one is regenerated.

        Must not modify the resource.
        """
        ...

    @abstractmethod
    async def rekey(self, requested_valid_period: timedelta) -> RegeneratedSecret:
        """Regenerate the active secret and return its new value."""
        ...

    @abstractmethod
    async def on_consuming_application_swapped(self) -> None:
        """Called once every consumer serves the secret returned by rekey()."""
        ...

    def get_risks(self) -> list[RiskyConfigurationItem]:
        return []

    @abstractmethod
    def get_description(self) -> str:
        ...
