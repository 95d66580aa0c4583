"""
rotation/backends/memory_backend.py - In-memory resource and app configuration clients.

Used for dry runs and tests. Every mutating call is appended to `calls`
so a rotation can be replayed and inspected afterwards. Key material is
generated with the secrets module.
"""
import logging
import secrets
from typing import Any, Callable

from rotation.backends import AppConfigClient, ResourceClient, ResourceReference, SlotUpdate
from rotation.errors import ResourceOperationError

log = logging.getLogger(__name__)


class InMemoryResourceClient(ResourceClient):
    """
    Dual-key resources held in a dict.

    resources: resource id -> {key field name: value}
    key_fields: optional key name -> key field name, for vendors whose
      regenerate call and list response use different names.
    generate: optional key name -> new key value, defaults to random material.
    """

    def __init__(
        self,
        resources: dict[str, dict[str, str]] | None = None,
        key_fields: dict[str, str] | None = None,
        generate: Callable[[str], str] | None = None,
    ) -> None:
        self.resources: dict[str, dict[str, str]] = resources if resources is not None else {}
        self.key_fields = key_fields or {}
        self._generate = generate or (lambda key_name: secrets.token_urlsafe(48))
        self.calls: list[tuple[str, str, str | None]] = []

    def resolve(self, resource: ResourceReference) -> str:
        return f"{resource.resource_type}/{resource.resource_group}/{resource.resource_name}"

    def add_resource(self, resource: ResourceReference, keys: dict[str, str]) -> str:
        resource_id = self.resolve(resource)
        self.resources[resource_id] = dict(keys)
        return resource_id

    def _get(self, resource_id: str) -> dict[str, str]:
        try:
            return self.resources[resource_id]
        except KeyError:
            raise ResourceOperationError(f"Resource not found: {resource_id}") from None

    async def list_keys(self, resource_id: str) -> dict[str, str]:
        self.calls.append(("list_keys", resource_id, None))
        return dict(self._get(resource_id))

    async def regenerate_key(self, resource_id: str, key_name: str) -> None:
        self.calls.append(("regenerate_key", resource_id, key_name))
        keys = self._get(resource_id)
        field_name = self.key_fields.get(key_name, key_name)
        if field_name not in keys:
            raise ResourceOperationError(f"Key {key_name!r} not found on {resource_id}")
        keys[field_name] = self._generate(key_name)
        log.info(f"Regenerated key {key_name} on {resource_id}")


class InMemoryAppConfigClient(AppConfigClient):
    """
    Applications with named slots, each slot a dict of settings.

    slots: "group/name" -> {slot name: {"settings": {...}, "connection_strings": {...}}}
    Set fail_on to the name of a method ("apply", "swap_slot", "get_slot")
    to make the next call to it raise ResourceOperationError.
    """

    def __init__(self) -> None:
        self.slots: dict[str, dict[str, dict[str, dict[str, Any]]]] = {}
        self.calls: list[tuple[Any, ...]] = []
        self.fail_on: str | None = None

    def add_app(self, app: ResourceReference, slot_names: list[str]) -> None:
        self.slots[str(app)] = {
            name: {"settings": {}, "connection_strings": {}} for name in slot_names
        }

    def slot(self, app: ResourceReference, slot: str) -> dict[str, dict[str, Any]]:
        try:
            return self.slots[str(app)][slot]
        except KeyError:
            raise ResourceOperationError(f"Slot {slot!r} not found on app {app}") from None

    def _maybe_fail(self, method: str, context: str) -> None:
        if self.fail_on == method:
            self.fail_on = None
            raise ResourceOperationError(f"{method} failed for {context}")

    @property
    def swaps(self) -> list[tuple[str, str]]:
        return [(c[2], c[3]) for c in self.calls if c[0] == "swap_slot"]

    async def get_slot(self, app: ResourceReference, slot: str) -> SlotUpdate:
        self._maybe_fail("get_slot", f"{app} slot {slot}")
        self.slot(app, slot)
        return SlotUpdate(app=app, slot=slot)

    async def apply(self, update: SlotUpdate) -> None:
        self.calls.append(("apply", str(update.app), update.slot, tuple(update.names)))
        self._maybe_fail("apply", f"{update.app} slot {update.slot}")
        current = self.slot(update.app, update.slot)
        target = {section: dict(values) for section, values in current.items()}
        for op, name, value, cs_type in update.operations:
            if op == "set_setting":
                target["settings"][name] = value
            elif op == "remove_connection_string":
                target["connection_strings"].pop(name, None)
            elif op == "set_connection_string":
                if name in target["connection_strings"]:
                    raise ResourceOperationError(
                        f"Connection string {name!r} already exists in slot {update.slot}"
                    )
                target["connection_strings"][name] = {"value": value, "type": cs_type}
            else:
                raise ResourceOperationError(f"Unknown slot operation {op!r}")
        current.update(target)

    async def swap_slot(self, app: ResourceReference, slot: str, target_slot: str) -> None:
        self.calls.append(("swap_slot", str(app), slot, target_slot))
        self._maybe_fail("swap_slot", f"{app} slot {slot} -> {target_slot}")
        slots = self.slots.get(str(app), {})
        if slot not in slots or target_slot not in slots:
            raise ResourceOperationError(f"Cannot swap {slot!r} with {target_slot!r} on app {app}")
        slots[slot], slots[target_slot] = slots[target_slot], slots[slot]
        log.info(f"Swapped slot {slot} into {target_slot} on {app}")
