"""
rotation/models.py - Secrets, key kinds and provider configuration records.

Configuration records are frozen: a provider receives one at construction
and it does not change for the lifetime of a rotation operation.
"""
from dataclasses import dataclass, field, fields
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Iterable, Mapping

from rotation.errors import ValidationError

# Validity of the standby secret handed out while the active key is regenerated
TEMPORARY_SECRET_VALIDITY = timedelta(minutes=10)


class SecretValue:
    """Opaque wrapper around secret material.

    The plain value is only available through reveal(), which callers use at
    the point of writing it to configuration.
    """

    __slots__ = ("_value",)

    def __init__(self, value: str) -> None:
        if not isinstance(value, str):
            raise TypeError("SecretValue expects a str")
        self._value = value

    def reveal(self) -> str:
        return self._value

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SecretValue):
            return NotImplemented
        return self._value == other._value

    def __hash__(self) -> int:
        return hash(self._value)

    def __bool__(self) -> bool:
        return bool(self._value)

    def __repr__(self) -> str:
        return "SecretValue('***')"

    __str__ = __repr__


class KeyKind(str, Enum):
    """Role of a key on a dual-key resource."""

    PRIMARY = "Primary"
    SECONDARY = "Secondary"
    PRIMARY_READ_ONLY = "PrimaryReadOnly"
    SECONDARY_READ_ONLY = "SecondaryReadOnly"

    def other(self) -> "KeyKind":
        """Return the paired kind. other(other(k)) == k and other(k) != k."""
        return _OTHER_KIND[self]

    @classmethod
    def parse(cls, value: "str | KeyKind") -> "KeyKind":
        """Accept either the enum value ("PrimaryReadOnly") or member name."""
        if isinstance(value, KeyKind):
            return value
        if not isinstance(value, str):
            raise ValueError(f"Key kind must be a string, got {type(value).__name__}")
        for kind in cls:
            if value in (kind.value, kind.name) or value.lower() == kind.value.lower():
                return kind
        raise ValueError(f"Unknown key kind: {value!r}")


_OTHER_KIND = {
    KeyKind.PRIMARY: KeyKind.SECONDARY,
    KeyKind.SECONDARY: KeyKind.PRIMARY,
    KeyKind.PRIMARY_READ_ONLY: KeyKind.SECONDARY_READ_ONLY,
    KeyKind.SECONDARY_READ_ONLY: KeyKind.PRIMARY_READ_ONLY,
}


@dataclass
class RegeneratedSecret:
    """A secret produced by one step of a rotation operation."""

    value: SecretValue
    expiry: datetime
    user_hint: str = ""
    connection_string: SecretValue | None = None

    @property
    def connection_string_or_key(self) -> SecretValue:
        return self.connection_string if self.connection_string else self.value

    @classmethod
    def expiring_in(
        cls,
        value: SecretValue,
        valid_for: timedelta,
        user_hint: str = "",
        connection_string: SecretValue | None = None,
    ) -> "RegeneratedSecret":
        return cls(
            value=value,
            expiry=datetime.now(timezone.utc) + valid_for,
            user_hint=user_hint or "",
            connection_string=connection_string,
        )


@dataclass(frozen=True)
class RiskyConfigurationItem:
    """A risk found by static inspection of a provider's configuration."""

    score: int
    risk: str
    recommendation: str

    def __post_init__(self) -> None:
        if not 0 <= self.score <= 100:
            raise ValueError(f"Risk score must be between 0 and 100, got {self.score}")


def validate_batch(secrets: Iterable[RegeneratedSecret]) -> list[RegeneratedSecret]:
    """
    Reject a batch whose user hints cannot tell its secrets apart.

    A single secret is always accepted. With two or more, every hint must be
    distinct; two blank hints count as a duplicate.
    """
    batch = list(secrets)
    if len(batch) > 1:
        hints = [s.user_hint or "" for s in batch]
        if len(set(hints)) != len(hints):
            raise ValidationError(
                f"Multiple secrets ({len(batch)}) sent to provider without distinct user hints"
            )
    return batch


def setting_name(base_name: str, user_hint: str | None) -> str:
    """Derive the configuration entry name for a secret."""
    return f"{base_name}-{user_hint}" if user_hint else base_name


def _record_kwargs(cls: type, record: Mapping[str, Any]) -> dict[str, Any]:
    """Pick the dataclass fields out of a plain record, accepting camelCase keys."""
    kwargs: dict[str, Any] = {}
    for f in fields(cls):
        camel = "".join(
            part if i == 0 else part.capitalize() for i, part in enumerate(f.name.split("_"))
        )
        for key in (f.name, camel, camel[0].upper() + camel[1:]):
            if key in record:
                kwargs[f.name] = record[key]
                break
    return kwargs


@dataclass(frozen=True)
class KeyConfiguration:
    """Configuration of a Secret Provider over a dual-key resource."""

    resource_group: str
    resource_name: str
    key_kind: KeyKind = KeyKind.PRIMARY
    skip_scrambling_other_key: bool = False
    user_hint: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "key_kind", KeyKind.parse(self.key_kind))

    @classmethod
    def from_dict(cls, record: Mapping[str, Any]) -> "KeyConfiguration":
        return cls(**_record_kwargs(cls, record))


@dataclass(frozen=True)
class SlotConfiguration:
    """Where a consuming application lives and which slots it moves through."""

    resource_group: str
    resource_name: str
    source_slot: str = "production"
    temporary_slot: str = "temporary"
    destination_slot: str = "production"

    @classmethod
    def from_dict(cls, record: Mapping[str, Any]):
        return cls(**_record_kwargs(cls, record))


@dataclass(frozen=True)
class AppSettingConfiguration(SlotConfiguration):
    setting_name: str = field(default="")
    commit_as_connection_string: bool = False

    def __post_init__(self) -> None:
        if not self.setting_name:
            raise ValueError("setting_name is required")


@dataclass(frozen=True)
class ConnectionStringConfiguration(SlotConfiguration):
    connection_string_name: str = field(default="")
    connection_string_type: str = "Custom"

    def __post_init__(self) -> None:
        if not self.connection_string_name:
            raise ValueError("connection_string_name is required")
