"""Protocol module - Value serialization."""

from evcache_core.protocol.serializer import (
    Serializer,
    SerializationError,
    JSONSerializer,
    MsgPackSerializer,
    available_formats,
    get_serializer,
    register_serializer,
)

__all__ = [
    "Serializer",
    "SerializationError",
    "JSONSerializer",
    "MsgPackSerializer",
    "available_formats",
    "get_serializer",
    "register_serializer",
]
