"""
rotation/errors.py - Exception types raised by the rotation core.

Nothing here is caught inside the package: every error surfaces to the
caller of the failing step. Messages carry resource, slot and key-kind
names only, never secret values.
"""


class RotationError(Exception):
    """Base class for every error raised by a rotation operation."""


class ValidationError(RotationError):
    """A batch of secrets cannot be applied (duplicate or blank user hints)."""


class UnsupportedConfigurationError(RotationError):
    """An enumerated value has no vendor-specific mapping."""


class ResourceOperationError(RotationError):
    """A resource or configuration client call failed."""


class ProtocolOrderError(RotationError):
    """A lifecycle step was invoked out of order or after an abort."""
