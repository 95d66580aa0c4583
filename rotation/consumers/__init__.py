"""
rotation/consumers/__init__.py - Abstract base class for consuming applications.

A consumer is an application that reads a managed secret from its
configuration. During one rotation operation it is called in this order:
  1. before_rekeying - switch to the standby secret
  2. commit_new_secrets - switch to the regenerated secret
  3. after_rekeying - finish the cut-over
"""
from abc import ABC, abstractmethod

from rotation.models import RegeneratedSecret


class ConsumerProvider(ABC):
    """Abstract interface for an application consuming a rotated secret."""

    @abstractmethod
    async def before_rekeying(self, temporary_use_secrets: list[RegeneratedSecret]) -> None:
        """
        Prepare the application for a new secret.

        The secrets passed in stay valid while the active key is regenerated.
        """
        ...

    @abstractmethod
    async def commit_new_secrets(self, new_secrets: list[RegeneratedSecret]) -> None:
        """Switch the application to the newly generated secrets."""
        ...

    @abstractmethod
    async def after_rekeying(self) -> None:
        """Called after all new secrets have been committed."""
        ...

    @abstractmethod
    def get_description(self) -> str:
        ...
