"""
rotation/consumers/slots.py - Zero-downtime slot handoff shared by slot-based consumers.

Secrets are never written into the slot serving traffic. Each batch is
written to the temporary slot, applied in one call, and only then swapped
into the source slot's position:

    before_rekeying     write standby -> temporary, swap temporary <-> source
    commit_new_secrets  write new     -> temporary, swap temporary <-> source
    after_rekeying      swap source <-> destination (skipped when they are the same slot)

If validation or the configuration write fails, no swap happens and the
serving slot keeps its previous, still valid, configuration.

A swap moves the whole configuration of a slot, so consumers of the same
application must not swap independently: group_by_application() merges
them into one SlotHandoffGroup writing every change in a single batch.
"""
import logging
from abc import abstractmethod
from typing import Iterable

from rotation.backends import AppConfigClient, ResourceReference, SlotUpdate
from rotation.consumers import ConsumerProvider
from rotation.models import RegeneratedSecret, SlotConfiguration, validate_batch

log = logging.getLogger(__name__)

APP_RESOURCE_TYPE = "Microsoft.Web/sites"


class SlotHandoffConsumer(ConsumerProvider):
    """Base class for consumers that stage secrets through a temporary slot."""

    def __init__(self, configuration: SlotConfiguration, client: AppConfigClient) -> None:
        self.configuration = configuration
        self._client = client

    @property
    def app(self) -> ResourceReference:
        return ResourceReference(
            APP_RESOURCE_TYPE,
            self.configuration.resource_group,
            self.configuration.resource_name,
        )

    @property
    def app_key(self) -> tuple[str, str]:
        # Azure resource names are case-insensitive
        return self.configuration.resource_group.lower(), self.configuration.resource_name.lower()

    @property
    def slots(self) -> tuple[str, str, str]:
        c = self.configuration
        return c.source_slot, c.temporary_slot, c.destination_slot

    @property
    def temporary_slot(self) -> str:
        return self.configuration.temporary_slot

    @abstractmethod
    def stage_secret(self, update: SlotUpdate, secret: RegeneratedSecret) -> SlotUpdate:
        """Add the configuration changes for one secret to the batch."""
        ...

    async def before_rekeying(self, temporary_use_secrets: list[RegeneratedSecret]) -> None:
        await _stage_and_swap([self], temporary_use_secrets)
        log.info(f"BeforeRekeying completed for {self.app}")

    async def commit_new_secrets(self, new_secrets: list[RegeneratedSecret]) -> None:
        await _stage_and_swap([self], new_secrets)
        log.info(f"CommitNewSecrets completed for {self.app}")

    async def after_rekeying(self) -> None:
        await _promote(self)

    def _slot_path(self) -> str:
        c = self.configuration
        return (
            f"During the rekeying, the application will be moved from slot "
            f"'{c.source_slot}' to slot '{c.temporary_slot}' temporarily, and then "
            f"to slot '{c.destination_slot}'."
        )


class SlotHandoffGroup(ConsumerProvider):
    """
    Consumers of one application handed off together.

    Every step stages the changes of all members into one SlotUpdate and
    swaps once, using the first member's client.
    """

    def __init__(self, members: Iterable[SlotHandoffConsumer]) -> None:
        self.members: list[SlotHandoffConsumer] = []
        for member in members:
            self.add(member)
        if not self.members:
            raise ValueError("A slot handoff group needs at least one consumer")

    def add(self, member: SlotHandoffConsumer) -> None:
        if self.members:
            first = self.members[0]
            if member.app_key != first.app_key:
                raise ValueError(f"Consumer of {member.app} cannot join the group for {first.app}")
            if member.slots != first.slots:
                raise ValueError(
                    f"Consumers of {first.app} disagree on slots: {first.slots} vs {member.slots}"
                )
        self.members.append(member)

    @property
    def app(self) -> ResourceReference:
        return self.members[0].app

    async def before_rekeying(self, temporary_use_secrets: list[RegeneratedSecret]) -> None:
        await _stage_and_swap(self.members, temporary_use_secrets)
        log.info(f"BeforeRekeying completed for {self.app} ({len(self.members)} consumers)")

    async def commit_new_secrets(self, new_secrets: list[RegeneratedSecret]) -> None:
        await _stage_and_swap(self.members, new_secrets)
        log.info(f"CommitNewSecrets completed for {self.app} ({len(self.members)} consumers)")

    async def after_rekeying(self) -> None:
        await _promote(self.members[0])

    def get_description(self) -> str:
        return " ".join(member.get_description() for member in self.members)


def group_by_application(consumers: Iterable[ConsumerProvider]) -> list[ConsumerProvider]:
    """
    Merge slot handoff consumers sharing an application into one group.

    Other consumers, and slot consumers alone on their application, are
    returned unchanged. Order follows the first appearance of each entry.
    Raises ValueError when consumers of one application use different slots.
    """
    groups: dict[tuple[str, str], SlotHandoffGroup] = {}
    result: list[ConsumerProvider] = []
    for consumer in consumers:
        if not isinstance(consumer, SlotHandoffConsumer):
            result.append(consumer)
            continue
        group = groups.get(consumer.app_key)
        if group is None:
            group = groups[consumer.app_key] = SlotHandoffGroup([consumer])
            result.append(group)
        else:
            group.add(consumer)
    return [
        entry.members[0] if isinstance(entry, SlotHandoffGroup) and len(entry.members) == 1 else entry
        for entry in result
    ]


async def _stage_and_swap(
    members: list[SlotHandoffConsumer], secrets: list[RegeneratedSecret]
) -> None:
    secrets = validate_batch(secrets)
    first = members[0]
    source, temporary, _ = first.slots

    update = await first._client.get_slot(first.app, temporary)
    for member in members:
        for secret in secrets:
            update = member.stage_secret(update, secret)

    log.info(f"Applying changes to slot '{temporary}'")
    await first._client.apply(update)

    log.info(f"Swapping '{temporary}' into '{source}'")
    await first._client.swap_slot(first.app, temporary, source)


async def _promote(consumer: SlotHandoffConsumer) -> None:
    source, _, destination = consumer.slots
    if source == destination:
        log.info(f"New configuration already serving from '{destination}' on {consumer.app}")
        return
    log.info(f"Swapping '{source}' into '{destination}'")
    await consumer._client.swap_slot(consumer.app, source, destination)
    log.info("Swap complete!")
