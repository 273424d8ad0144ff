"""EvCache Serializer - Value Serialization.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.

A cached value is read back by other processes long after the source
produced it, so a serializer must give back an equal value of the same
shape. Values a format would silently reshape (tuples turning into lists,
int keys turning into strings) are rejected when written.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, FrozenSet, List, Optional

import msgpack

logger = logging.getLogger(__name__)

DEFAULT_FORMAT = "json"


class SerializationError(ValueError):
    """Raised when a value cannot be encoded or a payload cannot be decoded."""


def check_round_trip(
    value: Any,
    format_name: str,
    leaf_types: FrozenSet[type],
    key_types: FrozenSet[type],
    path: str = "value",
) -> None:
    """Reject values a format cannot give back unchanged.

    Types are matched exactly; subclasses such as enums or named tuples
    would come back as their base type.

    Args:
        value: Value about to be encoded
        format_name: Format name, used in error messages
        leaf_types: Scalar types the format restores as-is
        key_types: Types allowed as dict keys
        path: Location of value inside the top-level value

    Raises:
        SerializationError: At the first offending item
    """
    kind = type(value)
    if kind in leaf_types:
        return

    if kind is list:
        for index, item in enumerate(value):
            check_round_trip(item, format_name, leaf_types, key_types, f"{path}[{index}]")
        return

    if kind is dict:
        for key, item in value.items():
            if type(key) not in key_types:
                raise SerializationError(
                    f"{format_name} cannot keep {type(key).__name__} key {key!r} at {path}"
                )
            check_round_trip(item, format_name, leaf_types, key_types, f"{path}[{key!r}]")
        return

    raise SerializationError(f"{format_name} cannot round-trip {kind.__name__} at {path}")


class Serializer(ABC):
    """Abstract serializer for cached values.

    Payloads are stored as hash fields, so every serializer produces text.
    """

    @property
    @abstractmethod
    def format_name(self) -> str:
        """Get format name."""
        pass

    @abstractmethod
    def serialize(self, value: Any) -> str:
        """Serialize value to text.

        Args:
            value: Value to serialize

        Returns:
            Serialized text

        Raises:
            SerializationError: If the value cannot be stored unchanged
        """
        pass

    @abstractmethod
    def deserialize(self, data: str) -> Any:
        """Deserialize text to value.

        Args:
            data: Serialized text

        Returns:
            Deserialized value

        Raises:
            SerializationError: If the payload is malformed
        """
        pass


class JSONSerializer(Serializer):
    """Strict JSON serializer.

    Accepts None, bool, int, float, str, list and dicts with str keys.
    NaN and infinities are rejected since other JSON readers cannot
    parse them.
    """

    LEAF_TYPES = frozenset({type(None), bool, int, float, str})
    KEY_TYPES = frozenset({str})

    @property
    def format_name(self) -> str:
        return "json"

    def serialize(self, value: Any) -> str:
        check_round_trip(value, self.format_name, self.LEAF_TYPES, self.KEY_TYPES)
        try:
            return json.dumps(value, separators=(",", ":"), allow_nan=False)
        except (TypeError, ValueError) as e:
            raise SerializationError(f"Cannot encode {type(value).__name__} as JSON: {e}") from e

    def deserialize(self, data: str) -> Any:
        try:
            return json.loads(data)
        except (TypeError, ValueError) as e:
            raise SerializationError(f"Malformed JSON payload: {e}") from e


class MsgPackSerializer(Serializer):
    """MessagePack serializer.

    Compact binary format, wrapped in base64 so it fits a text field.
    Unlike JSON it keeps bytes values and int or bytes dict keys.
    """

    LEAF_TYPES = frozenset({type(None), bool, int, float, str, bytes})
    KEY_TYPES = frozenset({str, int, bytes})

    @property
    def format_name(self) -> str:
        return "msgpack"

    def serialize(self, value: Any) -> str:
        check_round_trip(value, self.format_name, self.LEAF_TYPES, self.KEY_TYPES)
        try:
            packed = msgpack.packb(value, use_bin_type=True)
        except (TypeError, ValueError, OverflowError) as e:
            raise SerializationError(
                f"Cannot encode {type(value).__name__} as MessagePack: {e}"
            ) from e
        return base64.b64encode(packed).decode("ascii")

    def deserialize(self, data: str) -> Any:
        try:
            packed = base64.b64decode(data.encode("ascii"), validate=True)
            return msgpack.unpackb(packed, raw=False, strict_map_key=False)
        except (binascii.Error, UnicodeEncodeError, ValueError, msgpack.UnpackException) as e:
            raise SerializationError(f"Malformed MessagePack payload: {e}") from e


# Formats by name; every engine of a deployment must pick the same one
_formats: Dict[str, Serializer] = {}


def register_serializer(serializer: Serializer, replace: bool = False) -> None:
    """Make a serializer available to EngineConfig.serializer.

    Args:
        serializer: Serializer instance
        replace: Allow replacing a format registered earlier

    Raises:
        ValueError: If the format name is taken and replace is False
    """
    name = serializer.format_name
    if name in _formats and not replace:
        raise ValueError(f"Serializer format already registered: {name}")
    _formats[name] = serializer
    logger.debug(f"Registered serializer format {name}")


def get_serializer(format_name: Optional[str] = None) -> Serializer:
    """Get serializer by format.

    Args:
        format_name: Format name, DEFAULT_FORMAT when None

    Returns:
        Serializer instance

    Raises:
        KeyError: If format not found
    """
    name = format_name or DEFAULT_FORMAT
    try:
        return _formats[name]
    except KeyError:
        raise KeyError(
            f"Unknown serializer format: {name} (available: {', '.join(available_formats())})"
        ) from None


def available_formats() -> List[str]:
    """List registered format names."""
    return sorted(_formats)


register_serializer(JSONSerializer())
register_serializer(MsgPackSerializer())


__all__ = [
    "Serializer",
    "SerializationError",
    "JSONSerializer",
    "MsgPackSerializer",
    "DEFAULT_FORMAT",
    "check_round_trip",
    "get_serializer",
    "register_serializer",
    "available_formats",
]
