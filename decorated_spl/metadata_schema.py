"""Borsh layouts for Metaplex token metadata.

``Data`` is serialized field by field in a fixed order::

    name     u32 length + utf-8
    symbol   u32 length + utf-8
    uri      u32 length + utf-8
    seller_fee_basis_points  u16
    creators Option<Vec<Creator>>   (Creator = pubkey, verified u8, share u8)

The create-metadata instruction appends a one byte ``is_mutable`` flag.
"""

from __future__ import annotations

import io
from typing import Any, Optional, Tuple

from borsh_construct import Bool, CStruct, Option, String, U8, U16, Vec
from construct import ConstructError
from pydantic import BaseModel, ConfigDict, field_validator
from solders.pubkey import Pubkey

from .errors import SchemaDecodingError, SchemaEncodingError

MAX_NAME_LENGTH = 32
MAX_SYMBOL_LENGTH = 10
MAX_URI_LENGTH = 200
MAX_CREATOR_LIMIT = 5
MAX_SELLER_FEE_BASIS_POINTS = 10_000

CreatorLayout = CStruct(
    "address" / U8[32],
    "verified" / Bool,
    "share" / U8,
)
DataLayout = CStruct(
    "name" / String,
    "symbol" / String,
    "uri" / String,
    "seller_fee_basis_points" / U16,
    "creators" / Option(Vec(CreatorLayout)),
)
CreateMetadataArgsLayout = CStruct(
    "data" / DataLayout,
    "is_mutable" / Bool,
)
# On-chain account prefix; the program pads strings with NUL bytes.
MetadataAccountLayout = CStruct(
    "key" / U8,
    "update_authority" / U8[32],
    "mint" / U8[32],
    "data" / DataLayout,
    "primary_sale_happened" / Bool,
    "is_mutable" / Bool,
)


class Creator(BaseModel):
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    address: Pubkey
    verified: bool = False
    share: int

    @field_validator("address", mode="before")
    @classmethod
    def _coerce_address(cls, value: Any) -> Any:
        if isinstance(value, str):
            return Pubkey.from_string(value)
        if isinstance(value, (bytes, bytearray, list)):
            return Pubkey.from_bytes(bytes(value))
        return value


class MetadataRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    symbol: str
    uri: str = ""
    seller_fee_basis_points: int = 0
    creators: Optional[Tuple[Creator, ...]] = None

    @field_validator("creators", mode="before")
    @classmethod
    def _empty_creators_are_absent(cls, value: Any) -> Any:
        # There is a single "absent" state; an empty list is not a distinct value.
        if value is not None and len(value) == 0:
            return None
        return value

    def total_share(self) -> int:
        return sum(c.share for c in self.creators or ())


class MetadataAccount(BaseModel):
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    key: int
    update_authority: Pubkey
    mint: Pubkey
    data: MetadataRecord
    primary_sale_happened: bool
    is_mutable: bool


def _check_text(field: str, value: str, limit: int) -> None:
    size = len(value.encode("utf-8"))
    if size > limit:
        raise SchemaEncodingError(f"{field} is {size} bytes; max is {limit}")


def _record_to_container(record: MetadataRecord) -> dict:
    _check_text("name", record.name, MAX_NAME_LENGTH)
    _check_text("symbol", record.symbol, MAX_SYMBOL_LENGTH)
    _check_text("uri", record.uri, MAX_URI_LENGTH)
    bps = record.seller_fee_basis_points
    if not 0 <= bps <= MAX_SELLER_FEE_BASIS_POINTS:
        raise SchemaEncodingError(f"seller_fee_basis_points {bps} outside 0..{MAX_SELLER_FEE_BASIS_POINTS}")
    creators = None
    if record.creators is not None:
        if len(record.creators) > MAX_CREATOR_LIMIT:
            raise SchemaEncodingError(f"{len(record.creators)} creators; max is {MAX_CREATOR_LIMIT}")
        creators = []
        for creator in record.creators:
            if not 0 <= creator.share <= 100:
                raise SchemaEncodingError(f"creator {creator.address} share {creator.share} outside 0..100")
            creators.append(
                {
                    "address": list(bytes(creator.address)),
                    "verified": creator.verified,
                    "share": creator.share,
                }
            )
    return {
        "name": record.name,
        "symbol": record.symbol,
        "uri": record.uri,
        "seller_fee_basis_points": bps,
        "creators": creators,
    }


def _container_to_record(parsed: Any, strip_padding: bool = False) -> MetadataRecord:
    def text(value: str) -> str:
        return value.rstrip("\x00") if strip_padding else value

    creators = None
    if parsed.creators is not None:
        creators = [
            Creator(address=Pubkey.from_bytes(bytes(c.address)), verified=c.verified, share=c.share)
            for c in parsed.creators
        ]
    return MetadataRecord(
        name=text(parsed.name),
        symbol=text(parsed.symbol),
        uri=text(parsed.uri),
        seller_fee_basis_points=parsed.seller_fee_basis_points,
        creators=creators,
    )


def _build(layout: CStruct, value: dict) -> bytes:
    try:
        return layout.build(value)
    except ConstructError as exc:
        raise SchemaEncodingError(f"unable to serialize metadata: {exc}") from exc


def _parse_exact(layout: CStruct, data: bytes, label: str) -> Any:
    stream = io.BytesIO(bytes(data))
    try:
        parsed = layout.parse_stream(stream)
    except (ConstructError, UnicodeDecodeError) as exc:
        raise SchemaDecodingError(f"malformed {label}: {exc}") from exc
    trailing = len(data) - stream.tell()
    if trailing:
        raise SchemaDecodingError(f"{trailing} trailing bytes after {label}")
    return parsed


def encode_metadata(record: MetadataRecord) -> bytes:
    return _build(DataLayout, _record_to_container(record))


def decode_metadata(data: bytes) -> MetadataRecord:
    return _container_to_record(_parse_exact(DataLayout, data, "metadata record"))


def encode_create_metadata_args(record: MetadataRecord, is_mutable: bool = True) -> bytes:
    return _build(
        CreateMetadataArgsLayout,
        {"data": _record_to_container(record), "is_mutable": is_mutable},
    )


def decode_create_metadata_args(data: bytes) -> Tuple[MetadataRecord, bool]:
    parsed = _parse_exact(CreateMetadataArgsLayout, data, "create metadata args")
    return _container_to_record(parsed.data), parsed.is_mutable


def decode_metadata_account(data: bytes) -> MetadataAccount:
    """Decode the leading fields of an on-chain metadata account.

    Later fields (edition nonce, collection, uses, ...) are ignored.
    """
    try:
        parsed = MetadataAccountLayout.parse(bytes(data))
    except (ConstructError, UnicodeDecodeError) as exc:
        raise SchemaDecodingError(f"malformed metadata account: {exc}") from exc
    return MetadataAccount(
        key=parsed.key,
        update_authority=Pubkey.from_bytes(bytes(parsed.update_authority)),
        mint=Pubkey.from_bytes(bytes(parsed.mint)),
        data=_container_to_record(parsed.data, strip_padding=True),
        primary_sale_happened=parsed.primary_sale_happened,
        is_mutable=parsed.is_mutable,
    )
