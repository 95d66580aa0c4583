"""
rotation/backends/__init__.py - Capability interfaces used by the providers.

Two narrow interfaces separate the rotation core from vendor APIs:
  - ResourceClient: list and regenerate the keys of a dual-key resource
  - AppConfigClient: stage settings into an application slot and swap slots

Azure Resource Manager and in-memory implementations live next to this
module. Implementations wrap vendor failures in ResourceOperationError;
the providers never catch them.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class ResourceReference:
    """Vendor-neutral pointer to a resource (a database account, a web app...)."""

    resource_type: str
    resource_group: str
    resource_name: str

    def __str__(self) -> str:
        return f"{self.resource_group}/{self.resource_name}"


@dataclass
class SlotUpdate:
    """
    Batch of configuration changes for one application slot.

    Operations are accumulated in order and submitted in a single
    AppConfigClient.apply() call. Each entry is a tuple of
    (operation, name, value, extra); repr() shows operation names only.
    """

    app: ResourceReference
    slot: str
    operations: list[tuple[str, str, Any, Any]] = field(default_factory=list, repr=False)

    def with_app_setting(self, name: str, value: str) -> "SlotUpdate":
        self.operations.append(("set_setting", name, value, None))
        return self

    def without_connection_string(self, name: str) -> "SlotUpdate":
        self.operations.append(("remove_connection_string", name, None, None))
        return self

    def with_connection_string(self, name: str, value: str, cs_type: str) -> "SlotUpdate":
        self.operations.append(("set_connection_string", name, value, cs_type))
        return self

    @property
    def names(self) -> list[str]:
        return [name for _, name, _, _ in self.operations]

    def __repr__(self) -> str:
        ops = ", ".join(f"{op}:{name}" for op, name, _, _ in self.operations)
        return f"SlotUpdate(app={self.app}, slot={self.slot!r}, operations=[{ops}])"


class ResourceClient(ABC):
    """Access to the key material of resources holding two rotatable keys."""

    @abstractmethod
    def resolve(self, resource: ResourceReference) -> str:
        """
        Turn a reference into the identifier the other calls expect.

        Must not perform network I/O.
        """
        ...

    @abstractmethod
    async def list_keys(self, resource_id: str) -> dict[str, str]:
        """
        Return the current key material of a resource.

        Returns:
            Dict of vendor key field name -> key value.
        """
        ...

    @abstractmethod
    async def regenerate_key(self, resource_id: str, key_name: str) -> None:
        """Regenerate one key of a resource, identified by its vendor name."""
        ...


class AppConfigClient(ABC):
    """Access to an application's per-slot configuration and slot swaps."""

    @abstractmethod
    async def get_slot(self, app: ResourceReference, slot: str) -> SlotUpdate:
        """Return an empty update batch bound to an existing slot."""
        ...

    @abstractmethod
    async def apply(self, update: SlotUpdate) -> None:
        """Submit a batch of configuration changes in one call."""
        ...

    @abstractmethod
    async def swap_slot(self, app: ResourceReference, slot: str, target_slot: str) -> None:
        """
        Exchange the configurations of two slots.

        After the call, target_slot serves what slot held and slot holds
        what target_slot served.
        """
        ...
