"""
rotation - Zero-downtime rotation of credentials held by cloud resources.

Secret providers (rotation.providers) regenerate the keys of a dual-key
resource; consumers (rotation.consumers) move an application onto each new
key through a staging slot; rotation.lifecycle drives both through the
five-step protocol.
"""
from rotation.errors import (
    ProtocolOrderError,
    ResourceOperationError,
    RotationError,
    UnsupportedConfigurationError,
    ValidationError,
)
from rotation.models import (
    KeyKind,
    RegeneratedSecret,
    RiskyConfigurationItem,
    SecretValue,
)

__version__ = "0.1.0"

__all__ = [
    "KeyKind",
    "ProtocolOrderError",
    "RegeneratedSecret",
    "ResourceOperationError",
    "RiskyConfigurationItem",
    "RotationError",
    "SecretValue",
    "UnsupportedConfigurationError",
    "ValidationError",
]
