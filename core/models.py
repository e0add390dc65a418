"""Inbound gateway packets.

Defines the Packet dataclass, parsing of raw gateway frames, and typed field
accessors that raise DecodeError on malformed payloads.
"""
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional

from core.entities import Emoji
from core.errors import DecodeError
from utils.emoji import normalize_emoji_name

DISPATCH_OPCODE = 0


@dataclass(frozen=True)
class Packet:
    """A decoded dispatch frame received from the gateway.

    Attributes:
        type: Packet type tag, e.g. ``MESSAGE_REACTION_REMOVE_ALL``
        data: Packet payload (read-only)
        sequence: Gateway sequence number, if the frame carried one
    """
    type: str
    data: Mapping[str, Any] = field(default_factory=dict)
    sequence: Optional[int] = None

    def __post_init__(self) -> None:
        if not isinstance(self.data, MappingProxyType):
            object.__setattr__(self, "data", MappingProxyType(dict(self.data)))

    def get(self, name: str, default: Any = None) -> Any:
        return self.data.get(name, default)

    def _require(self, name: str) -> Any:
        if name not in self.data or self.data[name] is None:
            raise DecodeError(self.type, name, "missing required field")
        return self.data[name]

    def get_snowflake(self, name: str) -> int:
        return to_snowflake(self.type, name, self._require(name))

    def get_optional_snowflake(self, name: str) -> Optional[int]:
        value = self.data.get(name)
        if value is None:
            return None
        return to_snowflake(self.type, name, value)

    def get_str(self, name: str) -> str:
        value = self._require(name)
        if not isinstance(value, str):
            raise DecodeError(self.type, name, f"expected string, got {type(value).__name__}")
        return value

    def get_optional_str(self, name: str, default: str = "") -> str:
        value = self.data.get(name)
        if value is None:
            return default
        if not isinstance(value, str):
            raise DecodeError(self.type, name, f"expected string, got {type(value).__name__}")
        return value

    def get_mapping(self, name: str) -> Mapping[str, Any]:
        value = self._require(name)
        if not isinstance(value, Mapping):
            raise DecodeError(self.type, name, f"expected object, got {type(value).__name__}")
        return value

    def get_list(self, name: str) -> List[Any]:
        """Return a list field; a missing field reads as an empty list."""
        value = self.data.get(name)
        if value is None:
            return []
        if not isinstance(value, list):
            raise DecodeError(self.type, name, f"expected array, got {type(value).__name__}")
        return value

    def get_emoji(self, name: str = "emoji") -> Emoji:
        return parse_emoji(self.type, self.get_mapping(name))


def to_snowflake(packet_type: str, name: str, value: Any) -> int:
    """Convert a snowflake sent as int or decimal string to an int."""
    # bool is an int subclass; never a valid id
    if isinstance(value, bool):
        raise DecodeError(packet_type, name, "expected snowflake, got bool")
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.isascii() and value.isdigit():
        return int(value)
    raise DecodeError(packet_type, name, f"expected snowflake, got {value!r}")


def parse_emoji(packet_type: str, data: Mapping[str, Any]) -> Emoji:
    """Decode a partial emoji object (``{"id": ..., "name": ...}``)."""
    emoji_id = data.get("id")
    name = data.get("name")
    if name is not None and not isinstance(name, str):
        raise DecodeError(packet_type, "emoji.name", "expected string")
    if emoji_id is None:
        if not name:
            raise DecodeError(packet_type, "emoji", "emoji has neither id nor name")
        return Emoji(name=normalize_emoji_name(name))
    return Emoji(name=name, id=to_snowflake(packet_type, "emoji.id", emoji_id))


def parse_packet(frame: Dict[str, Any]) -> Optional[Packet]:
    """Parse a raw gateway frame into a Packet.

    Args:
        frame: Raw frame, ``{"op": 0, "t": <type>, "s": <seq>, "d": {...}}``

    Returns:
        Packet for dispatch frames, None for other opcodes (heartbeats,
        hello, ...), which belong to the connection layer
    """
    if not isinstance(frame, Mapping):
        raise DecodeError("<frame>", None, f"expected object, got {type(frame).__name__}")
    if frame.get("op", DISPATCH_OPCODE) != DISPATCH_OPCODE:
        return None
    packet_type = frame.get("t")
    if not isinstance(packet_type, str) or not packet_type:
        raise DecodeError("<frame>", "t", "missing packet type")
    data = frame.get("d") or {}
    if not isinstance(data, Mapping):
        raise DecodeError(packet_type, "d", f"expected object, got {type(data).__name__}")
    sequence = frame.get("s")
    if sequence is not None and (isinstance(sequence, bool) or not isinstance(sequence, int)):
        raise DecodeError(packet_type, "s", "expected integer sequence")
    return Packet(type=packet_type, data=data, sequence=sequence)
