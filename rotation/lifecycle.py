"""
rotation/lifecycle.py - The rotation protocol driving secret providers and consumers.

One RotationOperation rotates the secrets of one or more secret providers
and hands them to one or more consumers, in a fixed order:

    IDLE
      1. stage     standby secrets -> consumers.before_rekeying     STAGED
      2. rotate    secret providers rekey the active key           ROTATED
      3. commit    new secrets -> consumers.commit_new_secrets      COMMITTED
      4. promote   consumers.after_rekeying                        PROMOTED
      5. finalize  secret providers scramble the standby key        COMPLETE

Steps only move forward. Calling a step in any other state raises
ProtocolOrderError. A failing step moves the operation to ABORTED and the
error propagates unchanged; nothing is rolled back. Steps 1-3 never remove
the configuration serving traffic, so an aborted operation leaves every
consumer on a valid secret and can be started again from the beginning.

Finalize is only reachable once every consumer completed after_rekeying,
so the standby key is never scrambled while a consumer may still use it.

A provider instance must take part in at most one in-flight operation.
Slot consumers of the same application are grouped and handed off
together; giving them different slots raises ValueError.
"""
import asyncio
import logging
from datetime import timedelta
from enum import Enum
from typing import Awaitable, Callable, Iterable

from rotation import config
from rotation.audit import AuditLog, make_event
from rotation.consumers import ConsumerProvider
from rotation.consumers.slots import group_by_application
from rotation.errors import ProtocolOrderError
from rotation.models import RegeneratedSecret, validate_batch
from rotation.providers import SecretProvider

log = logging.getLogger("rotation.lifecycle")


class RotationState(str, Enum):
    IDLE = "idle"
    STAGED = "staged"
    ROTATED = "rotated"
    COMMITTED = "committed"
    PROMOTED = "promoted"
    COMPLETE = "complete"
    ABORTED = "aborted"


class RotationOperation:
    """One execution of the rotation protocol over a set of providers."""

    def __init__(
        self,
        secret_providers: Iterable[SecretProvider],
        consumers: Iterable[ConsumerProvider],
        valid_period: timedelta | None = None,
        audit: AuditLog | None = None,
        name: str = "rotation",
    ) -> None:
        self.secret_providers = list(secret_providers)
        self.consumers = list(consumers)
        if not self.secret_providers:
            raise ValueError("A rotation operation needs at least one secret provider")
        if len(set(map(id, self.secret_providers + self.consumers))) != len(
            self.secret_providers
        ) + len(self.consumers):
            raise ValueError("A provider instance appears more than once in the operation")
        # Consumers of one application share each write and swap
        self._handoffs = group_by_application(self.consumers)
        self.valid_period = config.DEFAULT_VALID_PERIOD if valid_period is None else valid_period
        self.audit = audit
        self.name = name
        self.state = RotationState.IDLE
        self.temporary_secrets: list[RegeneratedSecret] = []
        self.new_secrets: list[RegeneratedSecret] = []

    async def _step(
        self,
        action: str,
        expected: RotationState,
        target: RotationState,
        body: Callable[[], Awaitable[None]],
    ) -> None:
        if self.state != expected:
            raise ProtocolOrderError(
                f"Cannot {action} rotation '{self.name}' in state '{self.state.value}' "
                f"(expected '{expected.value}')"
            )
        log.info(f"[{self.name}] {action}...")
        try:
            await body()
        except Exception as e:
            self.state = RotationState.ABORTED
            log.error(f"[{self.name}] {action} failed, operation aborted: {e}")
            self._audit(f"rotation_{action}_failed", "failure", {"error": str(e)})
            raise
        self.state = target
        log.info(f"[{self.name}] [OK] {action} -> {target.value}")
        self._audit(f"rotation_{target.value}", "success", {})

    def _audit(self, action: str, result: str, metadata: dict) -> None:
        if self.audit is None:
            return
        metadata = {
            **metadata,
            "state": self.state.value,
            "secret_providers": [type(p).__name__ for p in self.secret_providers],
            "consumers": [type(c).__name__ for c in self.consumers],
        }
        self.audit.write(make_event(action, self.name, result, metadata))

    async def stage(self) -> list[RegeneratedSecret]:
        async def body() -> None:
            secrets = await asyncio.gather(
                *(p.get_secret_to_use_during_rekeying() for p in self.secret_providers)
            )
            self.temporary_secrets = validate_batch(secrets)
            await asyncio.gather(*(c.before_rekeying(self.temporary_secrets) for c in self._handoffs))

        await self._step("stage", RotationState.IDLE, RotationState.STAGED, body)
        return self.temporary_secrets

    async def rotate(self) -> list[RegeneratedSecret]:
        async def body() -> None:
            secrets = await asyncio.gather(*(p.rekey(self.valid_period) for p in self.secret_providers))
            self.new_secrets = validate_batch(secrets)

        await self._step("rotate", RotationState.STAGED, RotationState.ROTATED, body)
        return self.new_secrets

    async def commit(self) -> None:
        async def body() -> None:
            await asyncio.gather(*(c.commit_new_secrets(self.new_secrets) for c in self._handoffs))

        await self._step("commit", RotationState.ROTATED, RotationState.COMMITTED, body)

    async def promote(self) -> None:
        async def body() -> None:
            await asyncio.gather(*(c.after_rekeying() for c in self._handoffs))

        await self._step("promote", RotationState.COMMITTED, RotationState.PROMOTED, body)

    async def finalize(self) -> None:
        async def body() -> None:
            await asyncio.gather(*(p.on_consuming_application_swapped() for p in self.secret_providers))

        await self._step("finalize", RotationState.PROMOTED, RotationState.COMPLETE, body)

    async def run(self) -> list[RegeneratedSecret]:
        """Run all five steps and return the secrets now in use."""
        log.info(f"{'=' * 60}")
        log.info(f"Starting rotation: {self.name}")
        log.info(f"Valid period: {self.valid_period}")
        for provider in self.secret_providers + self.consumers:
            log.info(f"  {provider.get_description()}")
        await self.stage()
        await self.rotate()
        await self.commit()
        await self.promote()
        await self.finalize()
        log.info(f"[OK] Rotation complete: {self.name}")
        return self.new_secrets
