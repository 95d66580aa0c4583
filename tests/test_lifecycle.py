"""Tests for the five-step rotation protocol."""

from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest

from conftest import APP, cosmos_keys, live_settings
from rotation import config
from rotation.audit import AuditLog
from rotation.consumers import ConsumerProvider
from rotation.consumers.app_settings import AppSettingConsumer
from rotation.consumers.connection_string import ConnectionStringConsumer
from rotation.errors import ProtocolOrderError, ResourceOperationError, ValidationError
from rotation.lifecycle import RotationOperation, RotationState
from rotation.models import (
    AppSettingConfiguration,
    ConnectionStringConfiguration,
    KeyConfiguration,
    KeyKind,
    RegeneratedSecret,
    SecretValue,
)
from rotation.providers import SecretProvider
from rotation.providers.cosmosdb import CosmosDbKeyProvider


def mock_secret_provider(hint: str = "") -> MagicMock:
    provider = MagicMock(spec=SecretProvider)
    provider.get_secret_to_use_during_rekeying = AsyncMock(
        return_value=RegeneratedSecret.expiring_in(SecretValue("standby"), timedelta(minutes=10), hint)
    )
    provider.rekey = AsyncMock(
        return_value=RegeneratedSecret.expiring_in(SecretValue("new"), timedelta(hours=1), hint)
    )
    provider.on_consuming_application_swapped = AsyncMock()
    provider.get_description.return_value = "mock secret provider"
    return provider


def mock_consumer() -> MagicMock:
    consumer = MagicMock(spec=ConsumerProvider)
    consumer.before_rekeying = AsyncMock()
    consumer.commit_new_secrets = AsyncMock()
    consumer.after_rekeying = AsyncMock()
    consumer.get_description.return_value = "mock consumer"
    return consumer


class TestScenario:
    @pytest.mark.asyncio
    async def test_primary_rotation_end_to_end(self, cosmos_provider, app_setting_consumer, key_client, app_client):
        operation = RotationOperation([cosmos_provider], [app_setting_consumer], timedelta(hours=24))

        staged = await operation.stage()
        assert staged[0].value == SecretValue("S1")
        assert live_settings(app_client)["CosmosKey"] == "S1"

        rotated = await operation.rotate()
        assert rotated[0].value == SecretValue("P2")
        # Production keeps running on the untouched standby key
        assert live_settings(app_client)["CosmosKey"] == cosmos_keys(key_client)["secondaryMasterKey"]

        await operation.commit()
        await operation.promote()
        assert live_settings(app_client)["CosmosKey"] == "P2"
        assert cosmos_keys(key_client)["secondaryMasterKey"] == "S1"

        await operation.finalize()
        assert operation.state == RotationState.COMPLETE
        assert cosmos_keys(key_client)["secondaryMasterKey"] == "S2"
        assert live_settings(app_client)["CosmosKey"] == cosmos_keys(key_client)["primaryMasterKey"]

    @pytest.mark.asyncio
    async def test_scramble_targets_other_of_active_kind(self, key_client, app_setting_consumer):
        provider = CosmosDbKeyProvider(
            KeyConfiguration("rg-orders", "orders-db", KeyKind.SECONDARY), key_client
        )
        await RotationOperation([provider], [app_setting_consumer]).run()

        regenerated = [key for call, _, key in key_client.calls if call == "regenerate_key"]
        assert regenerated == ["secondary", "primary"]

    @pytest.mark.asyncio
    async def test_run_returns_new_secrets(self, cosmos_provider, app_setting_consumer):
        secrets = await RotationOperation([cosmos_provider], [app_setting_consumer]).run()
        assert [s.value for s in secrets] == [SecretValue("P2")]


class TestOrdering:
    @pytest.mark.asyncio
    async def test_calls_follow_protocol_order(self):
        secret_provider, consumer = mock_secret_provider(), mock_consumer()
        manager = MagicMock()
        manager.attach_mock(secret_provider.get_secret_to_use_during_rekeying, "standby")
        manager.attach_mock(consumer.before_rekeying, "before")
        manager.attach_mock(secret_provider.rekey, "rekey")
        manager.attach_mock(consumer.commit_new_secrets, "commit")
        manager.attach_mock(consumer.after_rekeying, "after")
        manager.attach_mock(secret_provider.on_consuming_application_swapped, "swapped")

        await RotationOperation([secret_provider], [consumer], timedelta(hours=2)).run()

        assert [c[0] for c in manager.mock_calls] == [
            "standby", "before", "rekey", "commit", "after", "swapped",
        ]
        secret_provider.rekey.assert_awaited_once_with(timedelta(hours=2))

    @pytest.mark.asyncio
    async def test_rekey_before_stage_rejected(self):
        secret_provider = mock_secret_provider()
        operation = RotationOperation([secret_provider], [mock_consumer()])
        with pytest.raises(ProtocolOrderError):
            await operation.rotate()
        secret_provider.rekey.assert_not_awaited()
        assert operation.state == RotationState.IDLE

    @pytest.mark.asyncio
    async def test_steps_cannot_repeat(self):
        operation = RotationOperation([mock_secret_provider()], [mock_consumer()])
        await operation.stage()
        with pytest.raises(ProtocolOrderError):
            await operation.stage()

    @pytest.mark.asyncio
    async def test_finalize_requires_promotion(self):
        secret_provider = mock_secret_provider()
        operation = RotationOperation([secret_provider], [mock_consumer()])
        await operation.stage()
        await operation.rotate()
        await operation.commit()
        with pytest.raises(ProtocolOrderError):
            await operation.finalize()
        secret_provider.on_consuming_application_swapped.assert_not_awaited()


class TestFailure:
    @pytest.mark.asyncio
    async def test_failed_commit_aborts_and_keeps_standby_live(
        self, cosmos_provider, app_setting_consumer, key_client, app_client
    ):
        operation = RotationOperation([cosmos_provider], [app_setting_consumer])
        await operation.stage()
        await operation.rotate()
        app_client.fail_on = "apply"

        with pytest.raises(ResourceOperationError):
            await operation.commit()

        assert operation.state == RotationState.ABORTED
        assert len(app_client.swaps) == 1
        assert live_settings(app_client)["CosmosKey"] == cosmos_keys(key_client)["secondaryMasterKey"]
        with pytest.raises(ProtocolOrderError):
            await operation.promote()

    @pytest.mark.asyncio
    async def test_failed_promotion_never_scrambles(self):
        secret_provider, consumer = mock_secret_provider(), mock_consumer()
        consumer.after_rekeying.side_effect = ResourceOperationError("swap failed")

        operation = RotationOperation([secret_provider], [consumer])
        with pytest.raises(ResourceOperationError):
            await operation.run()

        assert operation.state == RotationState.ABORTED
        secret_provider.on_consuming_application_swapped.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_rerun_after_abort_is_safe(self, cosmos_provider, app_setting_consumer, app_client):
        first = RotationOperation([cosmos_provider], [app_setting_consumer])
        await first.stage()
        await first.rotate()
        app_client.fail_on = "swap_slot"
        with pytest.raises(ResourceOperationError):
            await first.commit()
        assert live_settings(app_client)["CosmosKey"] == "S1"

        await RotationOperation([cosmos_provider], [app_setting_consumer]).run()
        assert live_settings(app_client)["CosmosKey"] == "P3"


class TestMultipleProviders:
    @pytest.mark.asyncio
    async def test_distinct_hints_reach_every_consumer(self):
        providers = [mock_secret_provider("reader"), mock_secret_provider("writer")]
        consumers = [mock_consumer(), mock_consumer()]

        await RotationOperation(providers, consumers).run()

        for consumer in consumers:
            batch = consumer.commit_new_secrets.await_args.args[0]
            assert [s.user_hint for s in batch] == ["reader", "writer"]

    @pytest.mark.asyncio
    async def test_ambiguous_hints_rejected_before_consumers(self):
        consumer = mock_consumer()
        operation = RotationOperation([mock_secret_provider(), mock_secret_provider()], [consumer])

        with pytest.raises(ValidationError):
            await operation.stage()
        consumer.before_rekeying.assert_not_awaited()
        assert operation.state == RotationState.ABORTED

    def test_requires_a_secret_provider(self):
        with pytest.raises(ValueError):
            RotationOperation([], [mock_consumer()])

    def test_rejects_repeated_instance(self):
        provider = mock_secret_provider()
        with pytest.raises(ValueError):
            RotationOperation([provider, provider], [])

    def test_explicit_zero_valid_period_kept(self):
        operation = RotationOperation([mock_secret_provider()], [], timedelta(0))
        assert operation.valid_period == timedelta(0)

    def test_default_valid_period(self):
        assert RotationOperation([mock_secret_provider()], []).valid_period == config.DEFAULT_VALID_PERIOD


class TestAudit:
    @pytest.mark.asyncio
    async def test_events_per_step_without_secrets(self, tmp_path, cosmos_provider, app_setting_consumer):
        audit = AuditLog(tmp_path / "audit.log")
        await RotationOperation([cosmos_provider], [app_setting_consumer], audit=audit, name="orders").run()

        events = audit.read()
        assert [e["action"] for e in events] == [
            "rotation_staged", "rotation_rotated", "rotation_committed",
            "rotation_promoted", "rotation_complete",
        ]
        assert all(e["resource"] == "orders" and e["result"] == "success" for e in events)
        raw = (tmp_path / "audit.log").read_text()
        assert "S1" not in raw and "P2" not in raw

    @pytest.mark.asyncio
    async def test_failure_event(self, tmp_path):
        consumer = mock_consumer()
        consumer.before_rekeying.side_effect = ResourceOperationError("slot temporary not found")
        audit = AuditLog(tmp_path / "audit.log")

        with pytest.raises(ResourceOperationError):
            await RotationOperation([mock_secret_provider()], [consumer], audit=audit).stage()

        event = audit.read()[-1]
        assert event["action"] == "rotation_stage_failed"
        assert event["result"] == "failure"
        assert event["metadata"]["state"] == "aborted"


class TestSharedApplication:
    @pytest.fixture
    def connection_string_consumer(self, app_client):
        return ConnectionStringConsumer(
            ConnectionStringConfiguration(
                "rg-orders", "orders-api",
                connection_string_name="Orders", connection_string_type="DocDb",
            ),
            app_client,
        )

    @pytest.mark.asyncio
    async def test_consumers_of_one_app_stay_on_valid_keys(
        self, cosmos_provider, app_setting_consumer, connection_string_consumer, key_client, app_client
    ):
        def valid_keys() -> set[str]:
            keys = cosmos_keys(key_client)
            return {keys["primaryMasterKey"], keys["secondaryMasterKey"]}

        def live_connection_string() -> str:
            return app_client.slot(APP, "production")["connection_strings"]["Orders"]["value"]

        operation = RotationOperation([cosmos_provider], [app_setting_consumer, connection_string_consumer])
        await operation.stage()
        await operation.rotate()
        assert live_settings(app_client)["CosmosKey"] in valid_keys()
        assert "AccountKey=S1;" in live_connection_string()

        await operation.commit()
        await operation.promote()
        await operation.finalize()
        assert live_settings(app_client)["CosmosKey"] == "P2"
        assert live_settings(app_client)["CosmosKey"] in valid_keys()
        assert "AccountKey=P2;" in live_connection_string()
        assert len(app_client.swaps) == 2
        assert len([c for c in app_client.calls if c[0] == "apply"]) == 2

    def test_disagreeing_slots_rejected(self, app_setting_consumer, app_client):
        staged_elsewhere = AppSettingConsumer(
            AppSettingConfiguration(
                "rg-orders", "orders-api", source_slot="staging", setting_name="OtherKey",
            ),
            app_client,
        )
        with pytest.raises(ValueError, match="disagree on slots"):
            RotationOperation([mock_secret_provider()], [app_setting_consumer, staged_elsewhere])
