"""Error taxonomy shared across the relay."""

from __future__ import annotations


class RelayError(Exception):
    """Base class for all relay errors."""


class UpstreamUnavailable(RelayError):
    """The hardware monitor endpoint could not be reached or decoded."""


class UpstreamShapeInvalid(RelayError):
    """The monitor responded, but without a usable root/children shape."""


class Unauthorized(RelayError):
    """An inbound request or connection failed the shared-secret check."""


class PartitionSourceUnavailable(RelayError):
    """Local filesystem capacity could not be inspected."""


class DeliveryDeferred(RelayError):
    """A sink could not deliver this tick's message but stays subscribed."""
