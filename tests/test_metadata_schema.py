"""Tests for the borsh metadata codec."""

from __future__ import annotations

import pytest
from solders.keypair import Keypair

from decorated_spl.errors import SchemaDecodingError, SchemaEncodingError
from decorated_spl.metadata_schema import (
    Creator,
    MetadataRecord,
    decode_create_metadata_args,
    decode_metadata,
    decode_metadata_account,
    encode_create_metadata_args,
    encode_metadata,
)


def _borsh_str(value: str) -> bytes:
    raw = value.encode("utf-8")
    return len(raw).to_bytes(4, "little") + raw


def _creators(count: int):
    share = 100 // count
    return [
        Creator(
            address=Keypair.from_seed(bytes([20 + i]) * 32).pubkey(),
            verified=i % 2 == 0,
            share=share + (100 - share * count if i == 0 else 0),
        )
        for i in range(count)
    ]


class TestEncodeLayout:
    def test_alice_record_bytes(self, alice_record):
        expected = (
            _borsh_str("0xAlice")
            + _borsh_str("ALICE")
            + _borsh_str("")
            + (0).to_bytes(2, "little")
            + b"\x00"
        )
        assert encode_metadata(alice_record) == expected

    def test_empty_uri_is_bare_length_prefix(self, alice_record):
        encoded = encode_metadata(alice_record)
        uri_offset = 4 + 7 + 4 + 5
        assert encoded[uri_offset:uri_offset + 4] == b"\x00\x00\x00\x00"

    def test_seller_fee_little_endian(self):
        record = MetadataRecord(name="", symbol="", uri="", seller_fee_basis_points=0x0102)
        assert encode_metadata(record)[12:14] == b"\x02\x01"

    def test_creator_encoding(self):
        creator = Creator(address=Keypair.from_seed(bytes([9]) * 32).pubkey(), verified=True, share=100)
        record = MetadataRecord(name="", symbol="", creators=[creator])
        tail = encode_metadata(record)[14:]
        assert tail == b"\x01" + (1).to_bytes(4, "little") + bytes(creator.address) + b"\x01" + bytes([100])

    def test_create_metadata_args_appends_mutability(self, alice_record):
        body = encode_metadata(alice_record)
        assert encode_create_metadata_args(alice_record, True) == body + b"\x01"
        assert encode_create_metadata_args(alice_record, False) == body + b"\x00"


class TestRoundTrip:
    def test_absent_creators(self, alice_record):
        assert decode_metadata(encode_metadata(alice_record)) == alice_record

    @pytest.mark.parametrize("count", [1, 2, 3, 4, 5])
    def test_with_creators(self, count):
        record = MetadataRecord(
            name="Decorated",
            symbol="DEC",
            uri="https://example.com/meta.json",
            seller_fee_basis_points=250,
            creators=_creators(count),
        )
        decoded = decode_metadata(encode_metadata(record))
        assert decoded == record
        assert len(decoded.creators) == count

    def test_unicode_strings(self):
        record = MetadataRecord(name="Café ☕", symbol="CAFÉ", uri="ipfs://ü")
        assert decode_metadata(encode_metadata(record)) == record

    def test_create_metadata_args(self, creator_record):
        payload = encode_create_metadata_args(creator_record, is_mutable=False)
        assert decode_create_metadata_args(payload) == (creator_record, False)


class TestAbsentCreators:
    def test_empty_list_is_absent(self):
        record = MetadataRecord(name="a", symbol="b", creators=[])
        assert record.creators is None
        assert record == MetadataRecord(name="a", symbol="b")
        assert encode_metadata(record).endswith(b"\x00")

    def test_present_but_empty_decodes_as_absent(self):
        raw = _borsh_str("a") + _borsh_str("b") + _borsh_str("") + b"\x00\x00" + b"\x01" + bytes(4)
        assert decode_metadata(raw).creators is None

    def test_creator_address_from_string(self):
        address = Keypair.from_seed(bytes([9]) * 32).pubkey()
        assert Creator(address=str(address), share=100).address == address


class TestBounds:
    @pytest.mark.parametrize(
        "kwargs",
        [
            {"name": "n" * 33, "symbol": "S"},
            {"name": "é" * 17, "symbol": "S"},
            {"name": "N", "symbol": "S" * 11},
            {"name": "N", "symbol": "S", "uri": "u" * 201},
            {"name": "N", "symbol": "S", "seller_fee_basis_points": 10_001},
            {"name": "N", "symbol": "S", "seller_fee_basis_points": -1},
        ],
    )
    def test_field_limits(self, kwargs):
        with pytest.raises(SchemaEncodingError):
            encode_metadata(MetadataRecord(**kwargs))

    def test_limits_are_inclusive(self):
        record = MetadataRecord(name="n" * 32, symbol="s" * 10, uri="u" * 200, seller_fee_basis_points=10_000)
        assert decode_metadata(encode_metadata(record)) == record

    def test_too_many_creators(self):
        creators = _creators(5) + _creators(1)
        with pytest.raises(SchemaEncodingError):
            encode_metadata(MetadataRecord(name="N", symbol="S", creators=creators))

    def test_share_out_of_range(self):
        creator = Creator(address=Keypair.from_seed(bytes([9]) * 32).pubkey(), share=101)
        with pytest.raises(SchemaEncodingError):
            encode_metadata(MetadataRecord(name="N", symbol="S", creators=[creator]))

    def test_share_sum_not_enforced_by_codec(self):
        creator = Creator(address=Keypair.from_seed(bytes([9]) * 32).pubkey(), share=30)
        record = MetadataRecord(name="N", symbol="S", creators=[creator])
        assert decode_metadata(encode_metadata(record)) == record


class TestDecodeErrors:
    def test_truncated(self, alice_record):
        with pytest.raises(SchemaDecodingError):
            decode_metadata(encode_metadata(alice_record)[:-3])

    def test_trailing_bytes(self, alice_record):
        with pytest.raises(SchemaDecodingError):
            decode_metadata(encode_metadata(alice_record) + b"\x00")

    def test_invalid_utf8(self):
        raw = (2).to_bytes(4, "little") + b"\xff\xfe" + _borsh_str("") + _borsh_str("") + b"\x00\x00\x00"
        with pytest.raises(SchemaDecodingError):
            decode_metadata(raw)


class TestMetadataAccount:
    def test_decodes_padded_account(self, authority, mint_keypair):
        data = (
            bytes([4])
            + bytes(authority.pubkey())
            + bytes(mint_keypair.pubkey())
            + _borsh_str("0xAlice".ljust(32, "\x00"))
            + _borsh_str("ALICE".ljust(10, "\x00"))
            + _borsh_str("".ljust(200, "\x00"))
            + (0).to_bytes(2, "little")
            + b"\x00"
            + b"\x00"
            + b"\x01"
            + bytes(64)
        )
        account = decode_metadata_account(data)
        assert account.key == 4
        assert account.update_authority == authority.pubkey()
        assert account.mint == mint_keypair.pubkey()
        assert account.data == MetadataRecord(name="0xAlice", symbol="ALICE")
        assert account.primary_sale_happened is False
        assert account.is_mutable is True

    def test_short_account(self):
        with pytest.raises(SchemaDecodingError):
            decode_metadata_account(bytes(10))
