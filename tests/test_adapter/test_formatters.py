"""
Formatter Test Suite

Schema-driven conversion between JSON-RPC hex strings and native values.
"""

import pytest

from txflow.schemas.formatters import (
    BLOCK_SCHEMA,
    RECEIPT_SCHEMA,
    BytesFormat,
    NumberFormat,
    format_transaction,
    format_value,
)


class TestUintFormatting:

    @pytest.mark.parametrize("value", [26, "0x1a", "26"])
    def test_any_quantity_form_reads_as_int(self, value):
        assert format_value("uint", value) == 26

    def test_output_formats(self):
        assert format_value("uint", 26, NumberFormat.HEX) == "0x1a"
        assert format_value("uint", "0x1a", NumberFormat.STR) == "26"
        assert format_value("uint", 0, NumberFormat.HEX) == "0x0"

    @pytest.mark.parametrize("value", [-1, True, "1.5", "abc", 1.0])
    def test_invalid_quantities_raise(self, value):
        with pytest.raises(ValueError):
            format_value("uint", value)


class TestBytesFormatting:

    def test_hex_is_normalized_to_lower_case(self):
        assert format_value("bytes", "0xDEADBEEF") == "0xdeadbeef"

    def test_bytes_output(self):
        assert format_value("bytes", "0xdead", bytes_format=BytesFormat.BYTES) == b"\xde\xad"
        assert format_value("bytes", b"\xde\xad") == "0xdead"

    def test_unprefixed_string_is_rejected(self):
        with pytest.raises(ValueError):
            format_value("bytes", "dead")


class TestStructuredSchemas:

    def test_none_passes_through_at_every_level(self):
        assert format_value(RECEIPT_SCHEMA, None) is None
        assert format_value(RECEIPT_SCHEMA, {"contractAddress": None, "blockNumber": "0x1"}) == {
            "contractAddress": None,
            "blockNumber": 1,
        }

    def test_unknown_keys_are_kept(self):
        block = format_value(BLOCK_SCHEMA, {"number": "0xa", "extraData": "0x00"})
        assert block == {"number": 10, "extraData": "0x00"}

    def test_nested_logs_are_formatted(self):
        receipt = format_value(
            RECEIPT_SCHEMA,
            {"logs": [{"logIndex": "0x2", "topics": ["0xAA"], "address": "0xAbC"}]},
        )
        assert receipt["logs"] == [{"logIndex": 2, "topics": ["0xaa"], "address": "0xAbC"}]

    def test_input_is_not_mutated(self):
        raw = {"blockNumber": "0xa"}
        format_value(RECEIPT_SCHEMA, raw)
        assert raw == {"blockNumber": "0xa"}

    def test_shape_mismatch_raises(self):
        with pytest.raises(ValueError):
            format_value(RECEIPT_SCHEMA, ["not", "a", "mapping"])
        with pytest.raises(ValueError):
            format_value(["uint"], "0x1")

    def test_unknown_schema_raises(self):
        with pytest.raises(ValueError, match="Unknown schema"):
            format_value("int256", 1)


def test_format_transaction_hex_encodes_and_drops_unset_fields():
    tx = format_transaction({"from": "0xAbC", "to": None, "value": 1, "gas": 21000, "data": "0xAB"})
    assert tx == {"from": "0xAbC", "value": "0x1", "gas": "0x5208", "data": "0xab"}
