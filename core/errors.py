"""Exception types raised by the gateway pipeline."""
from typing import Optional


class GatewayError(Exception):
    """Base class for errors raised while processing gateway packets."""


class DecodeError(GatewayError):
    """A packet is missing a required field or carries a field of the wrong type.

    Attributes:
        packet_type: Type tag of the offending packet
        field: Name of the offending field, if known
        reason: Human readable description of the problem
    """

    def __init__(self, packet_type: str, field: Optional[str], reason: str) -> None:
        self.packet_type = packet_type
        self.field = field
        self.reason = reason
        where = f" field {field!r}" if field else ""
        super().__init__(f"Cannot decode {packet_type} packet:{where} {reason}")
