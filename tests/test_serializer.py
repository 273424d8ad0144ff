"""Tests for serializers.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

import pytest

from evcache_core.protocol.serializer import (
    JSONSerializer,
    MsgPackSerializer,
    SerializationError,
    Serializer,
    available_formats,
    get_serializer,
    register_serializer,
)


VALUE = {"id": 7, "name": "Ada", "tags": ["a", "b"], "score": 1.5, "active": None}


class TestJSONSerializer:
    """Tests for JSONSerializer."""

    def test_round_trip(self):
        """Structured values survive a round trip."""
        serializer = JSONSerializer()

        assert serializer.deserialize(serializer.serialize(VALUE)) == VALUE

    def test_compact_output(self):
        """Output has no whitespace between tokens."""
        assert JSONSerializer().serialize({"a": [1, 2]}) == '{"a":[1,2]}'

    def test_unencodable_value(self):
        """Values outside JSON raise SerializationError."""
        with pytest.raises(SerializationError):
            JSONSerializer().serialize({"when": object()})

    def test_malformed_payload(self):
        """Garbage payloads raise SerializationError."""
        with pytest.raises(SerializationError):
            JSONSerializer().deserialize("{not json")

    def test_error_is_value_error(self):
        """Callers catching ValueError see serialization failures."""
        with pytest.raises(ValueError):
            JSONSerializer().deserialize("")

    @pytest.mark.parametrize(
        "value",
        [
            (1, 2),
            {1: "a"},
            {"outer": [{"inner": (3,)}]},
            {"ids": {1, 2}},
            b"raw",
            float("nan"),
            float("inf"),
        ],
    )
    def test_rejects_values_json_would_reshape(self, value):
        """Values that would come back different are refused."""
        with pytest.raises(SerializationError):
            JSONSerializer().serialize(value)

    def test_error_names_location(self):
        """The error points at the offending item."""
        with pytest.raises(SerializationError, match=r"tuple at value\['rows'\]\[1\]"):
            JSONSerializer().serialize({"rows": [[1], (2,)]})

    def test_bool_and_int_keep_types(self):
        """bool and int survive as themselves."""
        assert JSONSerializer().deserialize(JSONSerializer().serialize([True, 1, 1.0])) == [True, 1, 1.0]


class TestMsgPackSerializer:
    """Tests for MsgPackSerializer."""

    def test_round_trip(self):
        """Structured values survive a round trip."""
        serializer = MsgPackSerializer()

        assert serializer.deserialize(serializer.serialize(VALUE)) == VALUE

    def test_output_is_text(self):
        """Payloads fit in a text hash field."""
        payload = MsgPackSerializer().serialize(b"\x00\xff")

        assert isinstance(payload, str)
        payload.encode("ascii")

    def test_malformed_base64(self):
        """Invalid base64 raises SerializationError."""
        with pytest.raises(SerializationError):
            MsgPackSerializer().deserialize("@@@not-base64@@@")

    def test_unencodable_value(self):
        """Values outside MessagePack raise SerializationError."""
        with pytest.raises(SerializationError):
            MsgPackSerializer().serialize(object())

    def test_int_and_bytes_keys(self):
        """Non-string keys come back unchanged."""
        serializer = MsgPackSerializer()
        value = {1: "a", b"k": [b"\x01"], "s": 2}

        assert serializer.deserialize(serializer.serialize(value)) == value

    def test_rejects_tuples(self):
        """Tuples would come back as lists."""
        with pytest.raises(SerializationError):
            MsgPackSerializer().serialize({"pair": (1, 2)})


class TestRegistry:
    """Tests for serializer lookup."""

    def test_default_is_json(self):
        """JSON is the default format."""
        assert get_serializer().format_name == "json"
        assert get_serializer("msgpack").format_name == "msgpack"

    def test_unknown_format(self):
        """Unknown formats raise KeyError."""
        with pytest.raises(KeyError):
            get_serializer("yaml")

    def test_register_custom(self):
        """Custom serializers can be registered by name."""

        class UpperSerializer(Serializer):
            @property
            def format_name(self) -> str:
                return "upper"

            def serialize(self, value):
                return str(value).upper()

            def deserialize(self, data):
                return data

        register_serializer(UpperSerializer(), replace=True)

        assert get_serializer("upper").serialize("abc") == "ABC"
        assert {"json", "msgpack", "upper"} <= set(available_formats())

    def test_register_refuses_taken_name(self):
        """Built-in formats are not replaced by accident."""
        with pytest.raises(ValueError):
            register_serializer(JSONSerializer())


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
